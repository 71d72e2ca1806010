# =============================================================================
# core/models/analytics.py - Analytics Schemas
# =============================================================================
# Response shapes for the analytics overview. Field names are camelCase
# because the dashboard charts consume them as-is.
# =============================================================================

from enum import Enum

from pydantic import BaseModel


class MetricType(str, Enum):
    IMPRESSIONS = "impressions"
    ENGAGEMENT = "engagement"
    FOLLOWERS = "followers"


class ChartPoint(BaseModel):
    name: str        # short weekday, e.g. "Mon"
    date: str        # YYYY-MM-DD
    impressions: int = 0
    engagement: int = 0
    followers: int = 0


class TopPost(BaseModel):
    id: str
    title: str
    channel: str
    impressions: int = 0
    engagement: int = 0
    engagementRate: float = 0.0


class AnalyticsOverview(BaseModel):
    impressions: int = 0
    engagement: int = 0
    topPostsCount: int = 0
    followerGrowth: int = 0


class AnalyticsResponse(BaseModel):
    overview: AnalyticsOverview
    chartData: list[ChartPoint]
    topPosts: list[TopPost]
