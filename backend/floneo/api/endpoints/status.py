"""
Status API endpoints.
Liveness probe for load balancers and the editor's connection indicator.
"""
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from floneo.core.config import settings

router = APIRouter(tags=["status"])


class HealthStatus(BaseModel):
    status: Literal["ok"] = "ok"
    version: str


@router.get("/health", response_model=HealthStatus)
def health():
    return HealthStatus(version=settings.APP_VERSION)
