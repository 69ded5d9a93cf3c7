"""交付物说明路由 -- 按 SHA-256 内容哈希寻址

POST /api/v1/deliverables: Agent 上传交付物说明（默认私有）。
GET /api/v1/deliverables/{hash}: 已公开时返回正文；私有时 403。

任务结算或争议裁决后，该任务名下的交付物自动公开。
"""

import hashlib

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from verbitto.core.models import (
    DeliverableDescription,
    DeliverableVisibility,
    publishes_deliverable,
)

from ..deps import get_store_group

log = structlog.get_logger()

router = APIRouter(prefix="/api/v1/deliverables")

# 正文长度上限（字符）
MAX_DELIVERABLE_LEN = 10_000


class DeliverableUpload(BaseModel):
    """交付物上传请求体，deliverable_hash 提供时必须与正文一致"""

    content: str = Field(min_length=1, max_length=MAX_DELIVERABLE_LEN)
    deliverable_hash: str | None = Field(
        default=None,
        pattern=r"^[0-9a-fA-F]{64}$",
        description="正文 SHA-256（hex）",
    )
    task_address: str | None = None
    agent: str | None = None


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


async def _task_completed(store_group, task_address: str) -> bool:
    events = await store_group.event_store.get_events_for_task(task_address)
    return any(publishes_deliverable(e.event_name) for e in events)


@router.post("")
async def upload_deliverable(
    body: DeliverableUpload,
    store_group=Depends(get_store_group),
):
    """写入交付物说明，返回存储后的记录"""
    computed = hashlib.sha256(body.content.encode("utf-8")).hexdigest()
    if body.deliverable_hash and body.deliverable_hash.lower() != computed:
        return _error(400, "HASH_MISMATCH", "deliverable_hash does not match sha256(content)")

    store = store_group.deliverable_store
    await store.put_deliverable(
        DeliverableDescription(
            deliverable_hash=computed,
            content=body.content,
            task_address=body.task_address,
            agent=body.agent,
        )
    )

    stored = await store.get_deliverable(computed)
    # 任务已先于上传完成时，立即公开
    if (
        stored.task_address
        and stored.visibility == DeliverableVisibility.PRIVATE
        and await _task_completed(store_group, stored.task_address)
    ):
        await store.publish_for_task(stored.task_address)
        stored = await store.get_deliverable(computed)

    await log.ainfo(
        "deliverable_stored",
        deliverable_hash=computed,
        task_address=stored.task_address,
        visibility=stored.visibility,
    )
    return stored.model_dump()


@router.get("/{deliverable_hash}")
async def get_deliverable(
    deliverable_hash: str,
    store_group=Depends(get_store_group),
):
    """按哈希读取交付物说明"""
    deliverable = await store_group.deliverable_store.get_deliverable(deliverable_hash.lower())
    if deliverable is None:
        return _error(
            404,
            "DELIVERABLE_NOT_FOUND",
            f"Deliverable {deliverable_hash} does not exist",
        )
    if deliverable.visibility != DeliverableVisibility.PUBLIC:
        return _error(
            403,
            "DELIVERABLE_PRIVATE",
            f"Deliverable {deliverable_hash} is not public until the task is settled",
        )
    return deliverable.model_dump()
