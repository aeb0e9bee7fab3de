import math
from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, List, Sequence

from .models import DashboardStats, DispatchLog, HourlyBucket, IngestRequest, WebhookConfig

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
# 9999-12-31T23:59:59.999Z, the last instant datetime can represent
MAX_TIMESTAMP_MS = 253_402_300_799_999


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def aggregate(
    ingest_requests: Sequence[IngestRequest],
    dispatch_logs: Sequence[DispatchLog],
    webhook_configs: Iterable[WebhookConfig],
) -> DashboardStats:
    if dispatch_logs:
        avg = _round_half_up(
            sum(log.execution_time for log in dispatch_logs) / len(dispatch_logs)
        )
    else:
        avg = 0

    return DashboardStats(
        totalIngest=len(ingest_requests),
        totalDispatch=len(dispatch_logs),
        failedDispatch=sum(1 for log in dispatch_logs if log.status == "FAILED"),
        activeWebhooks=sum(1 for config in webhook_configs if config.is_active),
        avgExecutionTime=avg,
    )


def _hour_label(moment: datetime) -> str:
    return f"{moment.hour:02d}:00"


def _hour_start(timestamp_ms: int, tz: tzinfo) -> datetime:
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=tz)
    return moment.replace(minute=0, second=0, microsecond=0)


def hourly_histogram(
    ingest_requests: Iterable[IngestRequest],
    now: int,
    tz: tzinfo = timezone.utc,
) -> List[HourlyBucket]:
    """Ingest counts for the trailing 24 hours ending at ``now`` (epoch ms).

    Buckets are keyed by the start of each hour window and labelled by hour
    of day in ``tz``, oldest first. Across a DST change two buckets can share
    a label but are still counted separately. Requests at or beyond 24 hours
    old, or stamped after ``now``, are ignored.
    """
    labels: Dict[float, str] = {}
    for hours_back in range(23, -1, -1):
        start = _hour_start(now - hours_back * HOUR_MS, tz)
        labels[start.timestamp()] = _hour_label(start)
    counts: Dict[float, int] = dict.fromkeys(labels, 0)

    for request in ingest_requests:
        age = now - request.timestamp
        if 0 <= age < DAY_MS:
            key = _hour_start(request.timestamp, tz).timestamp()
            if key in counts:
                counts[key] += 1

    return [HourlyBucket(name=labels[key], requests=counts[key]) for key in labels]
