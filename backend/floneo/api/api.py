from fastapi import APIRouter

from floneo.api.endpoints import apps, canvas, templates

api_router = APIRouter()
api_router.include_router(apps.router, prefix="/apps", tags=["apps"])
api_router.include_router(canvas.router, prefix="/canvas", tags=["canvas"])
api_router.include_router(templates.router, prefix="/templates", tags=["templates"])
