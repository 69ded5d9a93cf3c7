"""索引器统计测试

测试内容：
1. 空库返回全零统计
2. 事件数、历史任务数、各终态计数、最新事件时间
"""

from verbitto.core.projection import rebuild_historical_tasks
from verbitto.core.stats import get_indexer_stats


class TestIndexerStats:
    """统计聚合"""

    async def test_empty_store(self, store_group):
        """空库：全零，last_event_time 为 None"""
        stats = await get_indexer_stats(store_group)

        assert stats.total_events == 0
        assert stats.total_historical_tasks == 0
        assert stats.by_status == {}
        assert stats.last_event_time is None
        assert stats.approved_count == 0
        assert stats.dispute_resolved_count == 0

    async def test_populated_store(self, store_group, make_event):
        await store_group.event_store.ingest_events(
            [
                make_event("TaskCreated", "a1", 100, task="T1", creator="C"),
                make_event("TaskSettled", "a2", 200, task="T1", agent="A"),
                make_event("TaskCreated", "b1", 110, task="T2", creator="C"),
                make_event("TaskCancelled", "b2", 210, task="T2", creator="C"),
                make_event("TaskCreated", "c1", 120, task="T3", creator="C"),
                make_event("TaskClaimed", "c2", 220, task="T3", agent="A"),
            ]
        )
        await rebuild_historical_tasks(store_group)

        stats = await get_indexer_stats(store_group)

        assert stats.total_events == 6
        assert stats.total_historical_tasks == 2
        assert stats.by_status == {"Approved": 1, "Cancelled": 1}
        assert stats.approved_count == 1
        assert stats.cancelled_count == 1
        assert stats.expired_count == 0
        assert stats.last_event_time == 220
