# =============================================================================
# core/services/analytics_service.py - Analytics Aggregation
# =============================================================================
# Turns raw analytics_metrics snapshots into the daily chart, overview
# totals and top posts shown on the analytics page, and renders the same
# data as a CSV report.
#
# Metric semantics:
# - impressions, engagement: counts, summed per day
# - followers: a running total, so a day keeps its last snapshot
# =============================================================================

import csv
import io
import logging
from datetime import date, timedelta
from typing import Any
from uuid import UUID

import pandas as pd

from app.exceptions import InvalidRequestError
from core.models.analytics import MetricType
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

METRICS_TABLE = "analytics_metrics"
CONTENT_TABLE = "analytics_content"

DEFAULT_RANGE_DAYS = 30
MAX_CONTENT_ROWS = 50
TOP_POSTS_LIMIT = 10


def resolve_date_range(date_from: str | None, date_to: str | None) -> tuple[date, date]:
    """
    Parse YYYY-MM-DD bounds, defaulting to the last 30 days.

    Raises:
        InvalidRequestError: If a bound is malformed or the range is inverted
    """
    today = utc_now().date()
    try:
        end = date.fromisoformat(date_to) if date_to else today
        start = date.fromisoformat(date_from) if date_from else end - timedelta(days=DEFAULT_RANGE_DAYS)
    except ValueError:
        raise InvalidRequestError("Dates must be in YYYY-MM-DD format")

    if start > end:
        raise InvalidRequestError("date_from must not be after date_to")
    return start, end


def _chart_point(day: pd.Timestamp, impressions=0, engagement=0, followers=0) -> dict[str, Any]:
    return {
        "name": day.strftime("%a"),
        "date": day.strftime("%Y-%m-%d"),
        "impressions": int(impressions),
        "engagement": int(engagement),
        "followers": int(followers),
    }


def _per_day(df: pd.DataFrame, metric_type: MetricType, how: str) -> pd.Series:
    subset = df[df["metric_type"] == metric_type.value]
    return subset.groupby("day")["metric_value"].agg(how)


def build_chart_data(metrics: list[dict[str, Any]], start: date, end: date) -> list[dict[str, Any]]:
    """
    Aggregate metric rows per day.

    Only days with at least one metric appear. With no rows at all every
    day of the range is listed with zeros.
    """
    if not metrics:
        return [_chart_point(day) for day in pd.date_range(start, end, freq="D")]

    df = pd.DataFrame(metrics)
    df["recorded_at"] = pd.to_datetime(df["recorded_at"], utc=True, format="ISO8601")
    df["metric_value"] = pd.to_numeric(df["metric_value"], errors="coerce").fillna(0)
    df["day"] = df["recorded_at"].dt.strftime("%Y-%m-%d")
    df = df.sort_values("recorded_at")

    daily = pd.DataFrame(index=sorted(set(df["day"])))
    daily["impressions"] = _per_day(df, MetricType.IMPRESSIONS, "sum")
    daily["engagement"] = _per_day(df, MetricType.ENGAGEMENT, "sum")
    daily["followers"] = _per_day(df, MetricType.FOLLOWERS, "last")
    daily = daily.fillna(0)

    return [
        _chart_point(
            pd.Timestamp(day),
            row["impressions"],
            row["engagement"],
            row["followers"],
        )
        for day, row in daily.iterrows()
    ]


def follower_growth(metrics: list[dict[str, Any]]) -> int:
    """Last daily follower count minus the first, over days with a snapshot."""
    snapshots = [m for m in metrics if m.get("metric_type") == MetricType.FOLLOWERS.value]
    if not snapshots:
        return 0

    df = pd.DataFrame(snapshots)
    df["recorded_at"] = pd.to_datetime(df["recorded_at"], utc=True, format="ISO8601")
    df["metric_value"] = pd.to_numeric(df["metric_value"], errors="coerce").fillna(0)
    daily = df.sort_values("recorded_at").groupby(df["recorded_at"].dt.date)["metric_value"].last()
    return int(daily.iloc[-1] - daily.iloc[0])


def build_top_posts(content_rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "id": str(row["id"]),
            "title": row.get("title") or "",
            "channel": row.get("channel") or "",
            "impressions": int(row.get("impressions") or 0),
            "engagement": int(row.get("engagement") or 0),
            "engagementRate": float(row.get("engagement_rate") or 0),
        }
        for row in content_rows[:TOP_POSTS_LIMIT]
    ]


class AnalyticsService:
    """Service for the analytics page and its CSV export."""

    @staticmethod
    def _fetch(
        table: str,
        user_id: UUID | str,
        start: date,
        end: date,
        channel: str | None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        query = (
            client.table(table)
            .select("*")
            .eq("user_id", normalize_uuid(user_id))
            .gte("recorded_at", f"{start.isoformat()}T00:00:00.000Z")
            .lte("recorded_at", f"{end.isoformat()}T23:59:59.999Z")
        )
        if channel and channel != "all":
            query = query.eq("channel", channel)
        if limit:
            query = query.order("recorded_at", desc=True).limit(limit)
        return query.execute().data or []

    @staticmethod
    def get_analytics(
        user_id: UUID | str,
        date_from: str | None = None,
        date_to: str | None = None,
        channel: str | None = None,
    ) -> dict[str, Any]:
        """
        Build {overview, chartData, topPosts} for the date range.

        Raises:
            InvalidRequestError: If the date range is invalid
        """
        start, end = resolve_date_range(date_from, date_to)

        try:
            metrics = AnalyticsService._fetch(METRICS_TABLE, user_id, start, end, channel)
            content = AnalyticsService._fetch(
                CONTENT_TABLE, user_id, start, end, channel, limit=MAX_CONTENT_ROWS
            )
        except Exception as e:
            logger.error(f"Failed to load analytics for user {user_id}: {e}")
            raise

        chart_data = build_chart_data(metrics, start, end)
        top_posts = build_top_posts(content)

        logger.debug(
            f"Analytics for user {user_id}: {len(metrics)} metrics, "
            f"{len(content)} content rows, {len(chart_data)} days"
        )

        return {
            "overview": {
                "impressions": sum(point["impressions"] for point in chart_data),
                "engagement": sum(point["engagement"] for point in chart_data),
                "topPostsCount": len(top_posts),
                "followerGrowth": follower_growth(metrics),
            },
            "chartData": chart_data,
            "topPosts": top_posts,
            "dateRange": {"from": start.isoformat(), "to": end.isoformat()},
        }

    @staticmethod
    def export_csv(analytics: dict[str, Any]) -> str:
        """Render analytics as a sectioned CSV report."""
        overview = analytics["overview"]
        date_range = analytics["dateRange"]

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")

        writer.writerow(["Workspace Analytics Report", ""])
        writer.writerow(["Date Range", f"{date_range['from']} to {date_range['to']}"])
        writer.writerow([])

        writer.writerow(["Overview", ""])
        writer.writerow(["Metric", "Value"])
        writer.writerow(["Impressions", overview["impressions"]])
        writer.writerow(["Engagement", overview["engagement"]])
        writer.writerow(["Top Posts Count", overview["topPostsCount"]])
        writer.writerow(["Follower Growth", overview["followerGrowth"]])
        writer.writerow([])

        writer.writerow(["Top Posts", ""])
        writer.writerow(["Title", "Channel", "Impressions", "Engagement", "Engagement Rate"])
        for post in analytics["topPosts"]:
            writer.writerow([
                post["title"],
                post["channel"],
                post["impressions"],
                post["engagement"],
                f"{post['engagementRate']:.1f}%",
            ])
        writer.writerow([])

        writer.writerow(["Daily Chart Data", ""])
        writer.writerow(["Date", "Day", "Impressions", "Engagement", "Followers"])
        for point in analytics["chartData"]:
            writer.writerow([
                point["date"],
                point["name"],
                point["impressions"],
                point["engagement"],
                point["followers"],
            ])

        return buffer.getvalue()

    @staticmethod
    def record_metrics(
        user_id: UUID | str,
        channel: str,
        values: dict[str, int],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Store one analytics_metrics row per metric type in values."""
        recorded_at = utc_now_iso()
        rows = [
            {
                "user_id": normalize_uuid(user_id),
                "channel": channel,
                "metric_type": metric_type,
                "metric_value": value,
                "metadata": metadata or {},
                "recorded_at": recorded_at,
            }
            for metric_type, value in values.items()
        ]
        if rows:
            SupabaseClient.get_client().table(METRICS_TABLE).insert(rows).execute()

    @staticmethod
    def record_content(user_id: UUID | str, channel: str, posts: list[dict[str, Any]]) -> None:
        """Store analytics_content rows ({title, impressions, engagement, engagement_rate})."""
        recorded_at = utc_now_iso()
        rows = [
            {
                "user_id": normalize_uuid(user_id),
                "channel": channel,
                "title": post.get("title") or "",
                "impressions": int(post.get("impressions") or 0),
                "engagement": int(post.get("engagement") or 0),
                "engagement_rate": float(post.get("engagement_rate") or 0),
                "recorded_at": post.get("recorded_at") or recorded_at,
            }
            for post in posts
        ]
        if rows:
            SupabaseClient.get_client().table(CONTENT_TABLE).insert(rows).execute()
