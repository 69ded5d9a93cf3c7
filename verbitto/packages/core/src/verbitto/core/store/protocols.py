"""Store Protocol 接口定义

定义 EventStore、TaskDataStore、HistoricalTaskStore、DeliverableStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.event import RawEvent
from ..models.historical_task import (
    DeliverableDescription,
    HistoricalTask,
    HistoryPage,
    TaskData,
    TaskDescription,
)


class EventStore(Protocol):
    """RawEvent 存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def ingest_events(self, events: list[RawEvent]) -> int:
        """按 id 去重写入，返回新插入的行数"""
        ...

    async def get_recent_events(self, limit: int) -> list[RawEvent]:
        """最近事件，倒序"""
        ...

    async def get_events_for_task(self, task_address: str) -> list[RawEvent]:
        """指定任务的完整事件轨迹，正序"""
        ...

    async def get_all_events(self) -> list[RawEvent]:
        """全部事件"""
        ...

    async def get_event(self, event_id: str) -> RawEvent | None:
        ...

    async def count_events(self) -> int:
        ...

    async def get_last_event_time(self) -> int | None:
        """最新事件的 block_time，空库为 None"""
        ...


class TaskDataStore(Protocol):
    """创建类指令数据 / 描述 side table 接口"""

    async def set_task_data(
        self,
        task_address: str,
        title: str,
        description_hash: str,
        template_address: str | None = None,
    ) -> None:
        """幂等写入标题、描述哈希和来源模板"""
        ...

    async def get_task_data(self) -> dict[str, TaskData]:
        """地址（任务或模板）-> 指令数据"""
        ...

    async def put_description(self, description: TaskDescription) -> None:
        """按哈希写入描述正文"""
        ...

    async def get_description(self, description_hash: str) -> TaskDescription | None:
        """按哈希查询描述"""
        ...


class HistoricalTaskStore(Protocol):
    """历史任务摘要接口"""

    async def upsert_tasks(self, tasks: list[HistoricalTask]) -> int:
        """整行替换写入摘要"""
        ...

    async def get_task(self, address: str) -> HistoricalTask | None:
        """按地址查询摘要"""
        ...

    async def query_tasks(
        self,
        status: str | None = None,
        creator: str | None = None,
        agent: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> HistoryPage:
        """筛选 + 分页查询"""
        ...

    async def count_tasks(self) -> int:
        ...

    async def count_by_status(self) -> dict[str, int]:
        """终态 -> 数量"""
        ...


class DeliverableStore(Protocol):
    """交付物说明接口"""

    async def put_deliverable(self, deliverable: DeliverableDescription) -> None:
        """按哈希写入，可见性不变"""
        ...

    async def get_deliverable(self, deliverable_hash: str) -> DeliverableDescription | None:
        ...

    async def publish_for_task(self, task_address: str) -> int:
        """公开任务名下的交付物，返回新公开的行数"""
        ...
