"""时间戳归一化 -- 存储与查询统一使用 UTC aware datetime"""

from datetime import UTC, datetime


def ensure_utc(value: datetime | None) -> datetime | None:
    """naive 时间按 UTC 解释，aware 时间换算到 UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
