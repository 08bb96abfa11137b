from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import os
import logging

# Load environment variables from .env file FIRST
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from database import create_db_and_tables
import models  # Import models to register them with SQLModel
from routers import (
    auth, users, districts, cities, distributors, teams, doctors, patients,
    prescriptions, orders, products, banners, dashboard, reports,
)
from middleware.exception_handler import setup_exception_handlers
from middleware.request_logger import RequestLoggingMiddleware
from middleware.security_headers import SecurityHeadersMiddleware

@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    logger.info("DastEYaar Admin API started")
    yield

app = FastAPI(
    title="DastEYaar Admin API",
    description="Admin API for the DastEYaar pharma distribution platform",
    version="1.0.0",
    lifespan=lifespan
)

# Login endpoints are rate limited per client address
app.state.limiter = auth.limiter
setup_exception_handlers(app)

origins = [
    "http://localhost:3000",  # Development frontend
    "http://localhost:8000",  # Development API
    os.getenv("FRONTEND_URL", "http://localhost:3000"),  # Production frontend from env
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept", "Origin"],
)

app.add_middleware(RequestLoggingMiddleware)

# Add security headers middleware (added last so it wraps every response)
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(districts.router)
app.include_router(cities.router)
app.include_router(distributors.router)
app.include_router(teams.router)
app.include_router(doctors.router)
app.include_router(patients.router)
app.include_router(prescriptions.router)
app.include_router(orders.router)
app.include_router(products.router)
app.include_router(banners.router)
app.include_router(dashboard.router)
app.include_router(reports.router)

@app.get("/")
def read_root():
    return {"message": "Welcome to DastEYaar Admin API"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}
