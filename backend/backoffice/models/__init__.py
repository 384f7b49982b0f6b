from backoffice.models.activity_log import ActivityLog
from backoffice.models.case import COMPENSABLE_CASE_STATUSES, Case
from backoffice.models.financial_aid_request import FinancialAidRequest
from backoffice.models.individual_service import IndividualService
from backoffice.models.individual_service_request import IndividualServiceRequest
from backoffice.models.lawyer import Lawyer
from backoffice.models.lawyer_salary import LawyerSalary
from backoffice.models.payment_transaction import PaymentTransaction
from backoffice.models.service_package import ServicePackage
from backoffice.models.service_request import ServiceRequest

__all__ = [
    "ActivityLog",
    "Case",
    "COMPENSABLE_CASE_STATUSES",
    "FinancialAidRequest",
    "IndividualService",
    "IndividualServiceRequest",
    "Lawyer",
    "LawyerSalary",
    "PaymentTransaction",
    "ServicePackage",
    "ServiceRequest",
]
