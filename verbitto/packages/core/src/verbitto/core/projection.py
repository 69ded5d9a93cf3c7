"""Projection 重建模块

从 raw_events 表全量重建 historical_tasks 表（物化视图）。
事件到达顺序不可依赖（webhook 与 backfill 会交错），
因此每次都从完整事件轨迹重新计算，结果只取决于事件集合本身。
"""

import time
from collections import defaultdict
from collections.abc import Iterable

import structlog

from .models.enums import EventName, final_status_for, is_terminal_event
from .models.event import RawEvent
from .models.historical_task import HistoricalTask, TaskData
from .store import StoreGroup

log = structlog.get_logger()


def _latest(events: list[RawEvent], name: EventName) -> RawEvent | None:
    matched = [e for e in events if e.event_name == name]
    return max(matched, key=RawEvent.sort_key) if matched else None


def resolve_task_data(address: str, task_data: dict[str, TaskData]) -> TaskData:
    """任务的创建指令数据；基于模板创建的任务沿用模板的标题和描述哈希"""
    data = task_data.get(address) or TaskData()
    if not data.template_address:
        return data
    template = task_data.get(data.template_address) or TaskData()
    return TaskData(
        title=data.title or template.title,
        description_hash=data.description_hash or template.description_hash,
        template_address=data.template_address,
    )


def project_task(
    address: str,
    events: list[RawEvent],
    task_data: dict[str, TaskData] | None = None,
) -> HistoricalTask | None:
    """根据单个任务的事件轨迹计算摘要

    没有终态事件的任务仍处于开放状态，返回 None。
    多个终态事件时取 (block_time, slot, id) 最大者。

    Args:
        address: 任务地址
        events: 该地址的全部事件（顺序无关）
        task_data: 地址 -> 创建指令数据（side table，含模板行）
    """
    terminals = [e for e in events if is_terminal_event(e.event_name)]
    if not terminals:
        return None
    terminal = max(terminals, key=RawEvent.sort_key)
    final_status = final_status_for(terminal.event_name)
    if final_status is None:
        return None

    created_events = [e for e in events if e.event_name == EventName.TASK_CREATED]
    created = min(created_events, key=RawEvent.sort_key) if created_events else None
    claimed = _latest(events, EventName.TASK_CLAIMED)
    submitted = _latest(events, EventName.DELIVERABLE_SUBMITTED)

    created_data = created.data if created else {}
    terminal_data = terminal.data

    agent = (
        terminal_data.get("agent")
        or (claimed.data.get("agent") if claimed else None)
        or (submitted.data.get("agent") if submitted else None)
        or ""
    )

    side = resolve_task_data(address, task_data or {})

    return HistoricalTask(
        address=address,
        title=created_data.get("title") or side.title,
        description_hash=created_data.get("description_hash") or side.description_hash,
        deliverable_hash=submitted.data.get("deliverable_hash", "") if submitted else "",
        creator=created_data.get("creator") or terminal_data.get("creator", ""),
        task_index=created_data.get("task_index", ""),
        bounty_lamports=created_data.get("bounty_lamports", "0"),
        deadline=int(created_data.get("deadline", "0") or 0),
        final_status=final_status,
        agent=agent,
        payout_lamports=terminal_data.get("payout_lamports", "0"),
        fee_lamports=terminal_data.get("fee_lamports", "0"),
        refunded_lamports=terminal_data.get("refunded_lamports", "0"),
        created_at=created.block_time if created else terminal.block_time,
        closed_at=terminal.block_time,
    )


def build_projection(
    events: Iterable[RawEvent],
    task_data: dict[str, TaskData] | None = None,
) -> list[HistoricalTask]:
    """按任务地址分组并逐个计算摘要（纯函数）

    Returns:
        按地址排序的已关闭任务摘要
    """
    grouped: dict[str, list[RawEvent]] = defaultdict(list)
    for event in events:
        if event.task_address:
            grouped[event.task_address].append(event)

    tasks: list[HistoricalTask] = []
    for address in sorted(grouped):
        task = project_task(address, grouped[address], task_data)
        if task is not None:
            tasks.append(task)
    return tasks


async def rebuild_historical_tasks(store_group: StoreGroup) -> int:
    """从 raw_events 表全量重建 historical_tasks 表

    流程：
    1. 读取所有事件和 side table
    2. 在内存中计算全部摘要
    3. 单个事务内按 address 整行替换写入

    Args:
        store_group: Store 实例组

    Returns:
        写入的历史任务数
    """
    start_time = time.monotonic()

    # 1. 读取所有事件和 side data
    events = await store_group.event_store.get_all_events()
    task_data = await store_group.task_data_store.get_task_data()

    await log.ainfo(
        "projection_rebuild_started",
        event_count=len(events),
    )

    # 2. 在内存中计算
    tasks = build_projection(events, task_data)

    # 3. 写入
    await store_group.historical_task_store.upsert_tasks(tasks)

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "projection_rebuild_completed",
        event_count=len(events),
        task_count=len(tasks),
        elapsed_ms=elapsed_ms,
    )

    return len(tasks)
