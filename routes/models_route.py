"""
Route handlers for model and tool listing operations.
"""
from dataclasses import asdict

from fastapi import APIRouter, Depends

from dependencies import Services, get_services

router = APIRouter()


@router.get("/list")
async def list_models(services: Services = Depends(get_services)):
    """List known local and cloud models with their capabilities."""
    return {"models": [asdict(model) for model in services.catalog.list()]}


@router.post("/models/refresh")
async def refresh_models(services: Services = Depends(get_services)):
    """Reload the model list from the local runtime and the cloud endpoint."""
    await services.refresh_models()
    return {"models": [asdict(model) for model in services.catalog.list()]}


@router.get("/tools")
async def list_tools(services: Services = Depends(get_services)):
    return {"tools": services.tools.list_tools()}
