"""IngestService -- webhook 推送载荷的解析与入库

推送路径不触发 Projection 重建：重建由 backfill 或管理命令显式触发。
结算 / 争议裁决事件入库后，该任务名下的交付物说明随即公开。
"""

from typing import Any

import structlog
from verbitto.core.models import RawEvent, publishes_deliverable
from verbitto.core.parser import extract_titles_from_tx, parse_helius_payload
from verbitto.core.store import StoreGroup
from verbitto.core.store.protocols import DeliverableStore, TaskDataStore

log = structlog.get_logger()


async def store_task_data(
    task_data_store: TaskDataStore,
    tx: Any,
    program_id: str,
) -> int:
    """best-effort 提取并写入交易中创建类指令的标题、描述哈希与来源模板

    失败只记录日志，不影响事件摄入。

    Returns:
        成功写入的任务数
    """
    stored = 0
    try:
        for address, data in extract_titles_from_tx(tx, program_id=program_id).items():
            await task_data_store.set_task_data(
                address,
                data.title,
                data.description_hash,
                data.template_address,
            )
            stored += 1
    except Exception as e:
        log.warning(
            "task_data_extract_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
    return stored


async def publish_deliverables(
    deliverable_store: DeliverableStore,
    events: list[RawEvent],
) -> int:
    """任务结算或争议裁决后公开其交付物说明

    Returns:
        新公开的交付物数
    """
    published = 0
    addresses = {
        e.task_address for e in events if e.task_address and publishes_deliverable(e.event_name)
    }
    for address in sorted(addresses):
        count = await deliverable_store.publish_for_task(address)
        if count:
            await log.ainfo("deliverables_published", task_address=address, count=count)
        published += count
    return published


class IngestService:
    """webhook 摄入服务"""

    def __init__(self, store_group: StoreGroup, program_id: str) -> None:
        self._stores = store_group
        self._program_id = program_id

    async def ingest_payload(self, payload: Any) -> tuple[int, int]:
        """解析并入库一个 Helius 载荷（单笔或批量）

        Returns:
            (parsed, ingested)：解析出的事件数，新插入的事件数

        Raises:
            持久化失败时向上抛出
        """
        events = parse_helius_payload(payload, program_id=self._program_id)
        ingested = await self._stores.event_store.ingest_events(events)
        await publish_deliverables(self._stores.deliverable_store, events)

        items = payload if isinstance(payload, list) else [payload]
        for item in items:
            await store_task_data(self._stores.task_data_store, item, self._program_id)

        await log.ainfo(
            "webhook_ingested",
            tx_count=len(items),
            parsed=len(events),
            ingested=ingested,
        )
        return len(events), ingested
