"""Identity of the staff member performing a back-office action."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Actor:
    user_id: str
    user_type: str  # finance_manager | admin
