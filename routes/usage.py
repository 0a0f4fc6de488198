"""
Route handlers for usage statistics.
"""
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status

from dependencies import Services, get_services

router = APIRouter()


@router.get("/usage/stats")
async def usage_stats(services: Services = Depends(get_services)):
    return asdict(services.usage.stats())


@router.get("/usage/graph")
async def usage_graph(range_name: str = Query("daily", alias="range"), services: Services = Depends(get_services)):
    """Entry counts per bucket for one of: hourly, daily, weekly, monthly, yearly, all."""
    try:
        buckets = services.usage.buckets(range_name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"range": range_name, "buckets": buckets}


@router.delete("/usage")
async def clear_usage(services: Services = Depends(get_services)):
    services.usage.clear()
    return {"cleared": True}
