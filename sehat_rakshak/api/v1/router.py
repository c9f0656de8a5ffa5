# sehat_rakshak/api/v1/router.py
from fastapi import APIRouter

from sehat_rakshak.api.v1.endpoints import (
    assistant,
    auth,
    patients,
    prescriptions,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(patients.router, prefix="/patients", tags=["patients"])
api_router.include_router(prescriptions.router, prefix="/prescriptions", tags=["prescriptions"])
api_router.include_router(assistant.router, prefix="/assistant", tags=["assistant"])
