from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from shopadmin.config import get_settings
from shopadmin.database import engine, Base
from shopadmin.models import customer, employee, order, product  # noqa: F401  (register tables)
from shopadmin.api import customers, employees, health, orders, products, revenue

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Starting up application...")

    # Create database tables
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    yield

    # Shutdown
    logger.info("Shutting down application...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Back office API for a small electronics shop:

    - **Catalog**: products in four categories (iPhone, Charger, Cable, AirPod)
    - **Directories**: customers and employees
    - **Orders**: placement and editing with stock reconciliation
    - **Dashboard**: revenue cards, customer purchase counts, employee sales

    ## Features

    ### Stock Reconciliation
    Placing an order consumes stock for every line; editing an order moves
    stock by the difference between the old and new lines. Each write is one
    database transaction using conditional updates, so stock never goes
    negative and a failed write leaves no partial order behind.

    ### Background Processing
    Orders are processed asynchronously using Celery workers, which also
    report products running low on stock.

    ### Caching
    Product details and revenue summaries are cached in Redis.
    """,
    version=settings.APP_VERSION,
    contact={
        "name": "API Support",
        "email": "support@example.com"
    },
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT"
    },
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(customers.router, prefix="/api/v1")
app.include_router(employees.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1")
app.include_router(revenue.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/v1/health"
    }
