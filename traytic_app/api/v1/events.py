import logging
from typing import Awaitable, List, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, status

from traytic_app.dependencies import get_owned_site_id, get_query_service
from traytic_app.schemas.stats import (
    CountryStat,
    DeviceStat,
    LiveVisitors,
    OverviewStats,
    PageStat,
    SourceStat,
    TimeseriesPoint,
    VitalStat,
)
from traytic_app.services.query_service import DEFAULT_LIMIT, Period, QueryService
from traytic_app.storage.strategies import StorageError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

T = TypeVar("T")


async def _guarded(result: Awaitable[T]) -> T:
    """Map store failures to 503"""
    try:
        return await result
    except StorageError as e:
        logger.error("Analytics query failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Analytics store unavailable"
        )


@router.get("/{site_id}/overview", response_model=OverviewStats)
async def get_overview(
    site_id: str = Depends(get_owned_site_id),
    period: Period = Period.MONTH,
    query_service: QueryService = Depends(get_query_service)
):
    """Visitors, pageviews, average duration and bounce rate"""
    return await _guarded(query_service.overview(site_id, period))


@router.get("/{site_id}/timeseries", response_model=List[TimeseriesPoint])
async def get_timeseries(
    site_id: str = Depends(get_owned_site_id),
    period: Period = Period.MONTH,
    query_service: QueryService = Depends(get_query_service)
):
    """Hourly points for 24h, daily otherwise"""
    return await _guarded(query_service.timeseries(site_id, period))


@router.get("/{site_id}/pages", response_model=List[PageStat])
async def get_top_pages(
    site_id: str = Depends(get_owned_site_id),
    period: Period = Period.MONTH,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=100),
    query_service: QueryService = Depends(get_query_service)
):
    return await _guarded(query_service.top_pages(site_id, period, limit))


@router.get("/{site_id}/sources", response_model=List[SourceStat])
async def get_top_sources(
    site_id: str = Depends(get_owned_site_id),
    period: Period = Period.MONTH,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=100),
    query_service: QueryService = Depends(get_query_service)
):
    return await _guarded(query_service.top_sources(site_id, period, limit))


@router.get("/{site_id}/countries", response_model=List[CountryStat])
async def get_countries(
    site_id: str = Depends(get_owned_site_id),
    period: Period = Period.MONTH,
    query_service: QueryService = Depends(get_query_service)
):
    return await _guarded(query_service.countries(site_id, period))


@router.get("/{site_id}/devices", response_model=List[DeviceStat])
async def get_devices(
    site_id: str = Depends(get_owned_site_id),
    period: Period = Period.MONTH,
    query_service: QueryService = Depends(get_query_service)
):
    return await _guarded(query_service.devices(site_id, period))


@router.get("/{site_id}/vitals", response_model=List[VitalStat])
async def get_web_vitals(
    site_id: str = Depends(get_owned_site_id),
    period: Period = Period.MONTH,
    query_service: QueryService = Depends(get_query_service)
):
    """p75/p95 and good-rating share per web vital"""
    return await _guarded(query_service.web_vitals(site_id, period))


@router.get("/{site_id}/live", response_model=LiveVisitors)
async def get_live_visitors(
    site_id: str = Depends(get_owned_site_id),
    query_service: QueryService = Depends(get_query_service)
):
    """Unique visitors in the last five minutes"""
    return await _guarded(query_service.live_visitors(site_id))
