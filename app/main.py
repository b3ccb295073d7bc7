from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from app.database.database import sync_engine, Base
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Import routers
from app.modules.quotations.router import quotations_router
from app.modules.purchase_orders.router import purchase_orders_router
from app.modules.invoices.router import router as invoices_router
from app.modules.credit_notes.router import credit_notes_router
from app.modules.subscriptions.router import router as subscriptions_router

# Import models for table creation
import app.modules.billing.models
import app.modules.quotations.models
import app.modules.purchase_orders.models
import app.modules.invoices.models
import app.modules.credit_notes.models
import app.modules.subscriptions.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Workspace Billing API",
    description="Quotations, purchase orders, invoices, credit notes and recurring subscriptions "
                "for vendor / project-manager workspaces",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(quotations_router)
app.include_router(purchase_orders_router)
app.include_router(invoices_router)
app.include_router(credit_notes_router)
app.include_router(subscriptions_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=sync_engine)

@app.get("/")
async def read_root():
    return {
        "message": "Workspace Billing API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }

@app.get("/health")
def health_check():
    """El almacén de documentos es la única dependencia síncrona del API."""
    try:
        with sync_engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check: base de datos no disponible: {e}")
        database = "unavailable"
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "environment": settings.ENVIRONMENT
    }

@app.on_event("startup")
async def startup_event():
    logger.info("Workspace Billing API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Lifecycle events dispatch: {settings.EVENT_DISPATCH}")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Workspace Billing API shutting down...")
