"""Verbitto Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    PUBLISHING_EVENTS,
    TERMINAL_EVENTS,
    DeliverableVisibility,
    EventName,
    FinalStatus,
    final_status_for,
    is_terminal_event,
    publishes_deliverable,
)
from .event import RawEvent, make_event_id
from .historical_task import (
    BackfillResult,
    DeliverableDescription,
    HistoricalTask,
    HistoryPage,
    IndexerStats,
    TaskData,
    TaskDescription,
)

__all__ = [
    # 枚举
    "EventName",
    "FinalStatus",
    "DeliverableVisibility",
    "TERMINAL_EVENTS",
    "PUBLISHING_EVENTS",
    "is_terminal_event",
    "final_status_for",
    "publishes_deliverable",
    # Event
    "RawEvent",
    "make_event_id",
    # Projection
    "HistoricalTask",
    "HistoryPage",
    # Side data
    "TaskData",
    "TaskDescription",
    "DeliverableDescription",
    # 统计
    "IndexerStats",
    "BackfillResult",
]
