"""
Analytics controller - per-user and platform rollups, CSV export
"""

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import Response

from scoring_service.core.dependencies import Database
from scoring_service.core.exceptions import ScoringServiceError, to_http_exception
from scoring_service.models.analytics import PlatformAnalytics, UserAnalytics
from scoring_service.services.scoring_service import ScoringService


router = APIRouter(prefix="/analytics", tags=["analytics"])

TIME_RANGE_HELP = "7d, 30d, 90d or all (default 30d)"


@router.get("/users/{user_id}", response_model=UserAnalytics)
async def get_user_analytics(
    user_id: int,
    db: Database,
    time_range: Optional[str] = Query(None, description=TIME_RANGE_HELP),
):
    """
    Accuracy and points of a user: overall, by sport, league and
    prediction type, over time, and the platform average for comparison.
    """
    service = ScoringService(db)

    try:
        return await service.get_user_analytics(user_id, time_range)
    except ScoringServiceError as e:
        raise to_http_exception(e)


@router.get("/users/{user_id}/export")
async def export_user_analytics(
    user_id: int,
    db: Database,
    time_range: Optional[str] = Query(None, description=TIME_RANGE_HELP),
):
    """📄 Same numbers as a downloadable CSV report"""
    service = ScoringService(db)

    try:
        content, filename = await service.export_analytics(user_id, time_range)
    except ScoringServiceError as e:
        raise to_http_exception(e)

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/platform", response_model=PlatformAnalytics)
async def get_platform_analytics(
    db: Database,
    time_range: Optional[str] = Query(None, description=TIME_RANGE_HELP),
    group_by: str = Query("sport", description="sport, league, prediction_type, day, week or month"),
):
    service = ScoringService(db)

    try:
        return await service.get_platform_analytics(time_range, group_by)
    except ScoringServiceError as e:
        raise to_http_exception(e)
