# =============================================================================
# app/routers/analytics.py - Analytics Endpoints
# =============================================================================

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from app.auth import AuthUser, get_current_user
from core.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get("")
async def get_analytics(
    user: AuthUser = Depends(get_current_user),
    date_from: Annotated[date | None, Query(description="Start date (YYYY-MM-DD), default 30 days ago")] = None,
    date_to: Annotated[date | None, Query(description="End date (YYYY-MM-DD), default today")] = None,
    channel: Annotated[str | None, Query(description="Channel filter, or 'all'")] = None,
) -> dict[str, Any]:
    """
    Overview totals, daily chart data and top posts for the date range.
    """
    return AnalyticsService.get_analytics(
        user.id,
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
        channel=channel,
    )


@router.get("/export")
async def export_analytics(
    user: AuthUser = Depends(get_current_user),
    date_from: Annotated[date | None, Query(description="Start date (YYYY-MM-DD)")] = None,
    date_to: Annotated[date | None, Query(description="End date (YYYY-MM-DD)")] = None,
    channel: Annotated[str | None, Query(description="Channel filter, or 'all'")] = None,
):
    """The same report as a CSV attachment."""
    analytics = AnalyticsService.get_analytics(
        user.id,
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
        channel=channel,
    )
    date_range = analytics["dateRange"]
    filename = f"analytics-{date_range['from']}-to-{date_range['to']}.csv"

    return Response(
        content=AnalyticsService.export_csv(analytics),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
