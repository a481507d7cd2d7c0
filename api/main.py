"""
Consultant Commerce API - Main Application.

FastAPI application for the storefront's consultant attribution, order
intake, payment webhooks and commission administration.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from config.settings import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI application
app = FastAPI(
    title="Consultant Commerce API",
    description="Referral attribution, order intake and consultant commissions for the jewelry storefront",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Credentialed requests (attribution cookie) need an explicit origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().public_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "consultant-commerce-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Consultant Commerce API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import attribution, commissions, consultants, orders, reports, webhooks

app.include_router(attribution.router, prefix="/api/v1", tags=["Attribution"])
app.include_router(consultants.router, prefix="/api/v1", tags=["Consultants"])
app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
app.include_router(webhooks.router, prefix="/api/v1", tags=["Webhooks"])
app.include_router(commissions.router, prefix="/api/v1", tags=["Commissions"])
app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])
