import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.database import init_db
from backoffice.routes import dashboard, financial_aid, salaries, service_requests

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = "Legal Back Office Finance API"

app = FastAPI(title=APP_NAME)

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Finance manager surface
app.include_router(dashboard.router, prefix="/api", tags=["finance-dashboard"])
app.include_router(service_requests.router, prefix="/api", tags=["service-requests"])
app.include_router(financial_aid.router, prefix="/api", tags=["financial-aid"])
app.include_router(salaries.router, prefix="/api", tags=["lawyer-salaries"])


@app.on_event("startup")
def on_startup():
    init_db()  # imports models and creates tables
    logger.info("%s started with %d routes", APP_NAME, len(app.routes))


@app.get("/api/health")
def health_check():
    return {"app_name": APP_NAME, "status": "healthy"}
