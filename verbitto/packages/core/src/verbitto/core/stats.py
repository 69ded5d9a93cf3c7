"""索引器统计 -- 对事件日志和历史任务表的只读聚合"""

from .models.enums import FinalStatus
from .models.historical_task import IndexerStats
from .store import StoreGroup


async def get_indexer_stats(store_group: StoreGroup) -> IndexerStats:
    """汇总事件总数、历史任务数、各终态数量与最新事件时间

    空库返回全零统计，last_event_time 为 None。
    """
    total_events = await store_group.event_store.count_events()
    last_event_time = await store_group.event_store.get_last_event_time()
    by_status = await store_group.historical_task_store.count_by_status()

    return IndexerStats(
        total_events=total_events,
        total_historical_tasks=sum(by_status.values()),
        by_status=by_status,
        last_event_time=last_event_time,
        approved_count=by_status.get(FinalStatus.APPROVED, 0),
        cancelled_count=by_status.get(FinalStatus.CANCELLED, 0),
        expired_count=by_status.get(FinalStatus.EXPIRED, 0),
        dispute_resolved_count=by_status.get(FinalStatus.DISPUTE_RESOLVED, 0),
    )
