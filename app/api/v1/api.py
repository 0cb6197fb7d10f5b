# app/api/v1/api.py

from fastapi import APIRouter
from app.api.v1.endpoints import (
    health,
    payments,
    registrations,
)

# This is the main router for the v1 API.
# It will include all the specific endpoint routers.
api_router = APIRouter()

api_router.include_router(registrations.router)
api_router.include_router(payments.router)
api_router.include_router(health.router)
