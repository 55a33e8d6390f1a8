"""Main FastAPI application"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from src.crm_tool.api.endpoints import health, csv_import
from src.crm_tool.config import settings
from src.crm_tool.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting CRM Tool API in {settings.APP_ENV} environment")
    
    yield
    
    logger.info("Shutting down CRM Tool API")


app = FastAPI(
    title="CRM Tool - Client Import",
    description="Bulk client import with preview, validation and duplicate detection",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(health.router, tags=["Health"])
app.include_router(csv_import.router, tags=["Import"])


@app.get("/")
def root():
    return {
        "message": "CRM Tool API",
        "environment": settings.APP_ENV,
        "docs": "/docs"
    }
