"""
Function metrics read through the monitoring meta role.

Every call assumes the meta role (15-minute session) and queries CloudWatch
``GetMetricData`` for the ``AWS/Lambda`` namespace, scoped to one function.
Nothing is cached between calls.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from infra.logging_config import StructuredLogger

_LOGGER = StructuredLogger(__name__)

SESSION_DURATION_SECONDS = 900

# (query id, metric name, statistic)
LAMBDA_METRICS: tuple[tuple[str, str, str], ...] = (
    ("invocations", "Invocations", "Sum"),
    ("errors", "Errors", "Sum"),
    ("throttles", "Throttles", "Sum"),
    ("duration_avg", "Duration", "Average"),
    ("duration_p95", "Duration", "p95"),
)


def utc(dt: datetime) -> datetime:
    """Return ``dt`` as timezone-aware UTC (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def period_for_range(range_start: datetime, range_end: datetime) -> int:
    """CloudWatch period (seconds) sized to the requested window."""
    span = utc(range_end) - utc(range_start)
    if span <= timedelta(hours=1):
        return 60
    if span <= timedelta(days=1):
        return 300
    if span <= timedelta(days=7):
        return 3600
    return 86400


def build_metric_queries(function_name: str, period: int) -> list[dict[str, Any]]:
    dimensions = [{"Name": "FunctionName", "Value": function_name}]
    return [
        {
            "Id": query_id,
            "MetricStat": {
                "Metric": {
                    "Namespace": "AWS/Lambda",
                    "MetricName": metric_name,
                    "Dimensions": dimensions,
                },
                "Period": period,
                "Stat": stat,
            },
            "ReturnData": True,
        }
        for query_id, metric_name, stat in LAMBDA_METRICS
    ]


def assume_meta_role(sts: Any, meta_role_arn: str) -> dict[str, str]:
    """Return temporary credentials for the meta role."""
    res = sts.assume_role(
        DurationSeconds=SESSION_DURATION_SECONDS,
        RoleArn=meta_role_arn,
        RoleSessionName=f"session{int(time.time() * 1000)}",
    )
    creds = res.get("Credentials") or {}
    return {
        "AccessKeyId": str(creds.get("AccessKeyId") or ""),
        "SecretAccessKey": str(creds.get("SecretAccessKey") or ""),
        "SessionToken": str(creds.get("SessionToken") or ""),
    }


def get_metrics(
    region: str,
    meta_role_arn: str,
    function_name: str,
    range_start: datetime,
    range_end: datetime,
    *,
    sts: Any,
    client_factory: Callable[[str, Mapping[str, str]], Any],
) -> dict[str, Any]:
    """Fetch aggregated Lambda metrics for ``function_name`` over the range.

    ``client_factory(region, credentials)`` must return a CloudWatch client
    signed with the given temporary credentials.
    """
    start = utc(range_start)
    end = utc(range_end)
    if end <= start:
        raise ValueError("range_end must be after range_start")

    credentials = assume_meta_role(sts, meta_role_arn)
    cloudwatch = client_factory(region, credentials)

    period = period_for_range(start, end)
    queries = build_metric_queries(function_name, period)
    by_id: dict[str, dict[str, Any]] = {
        query_id: {"name": metric_name, "stat": stat, "timestamps": [], "values": []}
        for query_id, metric_name, stat in LAMBDA_METRICS
    }

    next_token: str | None = None
    while True:
        request: dict[str, Any] = {
            "MetricDataQueries": queries,
            "StartTime": start,
            "EndTime": end,
            "ScanBy": "TimestampAscending",
        }
        if next_token:
            request["NextToken"] = next_token
        response = cloudwatch.get_metric_data(**request)

        for row in response.get("MetricDataResults", []) or []:
            series = by_id.get(str(row.get("Id") or ""))
            if series is None:
                continue
            for ts in row.get("Timestamps", []) or []:
                series["timestamps"].append(utc(ts).isoformat() if isinstance(ts, datetime) else str(ts))
            series["values"].extend(float(v) for v in row.get("Values", []) or [])

        next_token = response.get("NextToken")
        if not next_token:
            break

    _LOGGER.info("metrics_fetched", function_name=function_name, period=period)
    return {
        "rangeStart": start.isoformat(),
        "rangeEnd": end.isoformat(),
        "period": period,
        "metrics": [by_id[query_id] for query_id, _, _ in LAMBDA_METRICS],
    }
