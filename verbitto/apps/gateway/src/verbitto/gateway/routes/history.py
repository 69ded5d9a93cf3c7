"""历史任务路由

GET /api/v1/history/tasks: 已关闭任务列表，支持 status / creator / agent 筛选与分页。
GET /api/v1/history/tasks/{address}: 单个历史任务 + 完整事件轨迹。
GET /api/v1/history/stats: 索引器统计。
POST /api/v1/history/backfill: 触发一次 RPC backfill。
"""

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from verbitto.core.config import HISTORY_DEFAULT_LIMIT, HISTORY_MAX_LIMIT
from verbitto.core.models import FinalStatus
from verbitto.core.stats import get_indexer_stats

from ..deps import get_backfill_service, get_store_group
from ..services.backfill_service import BackfillService

log = structlog.get_logger()

router = APIRouter(prefix="/api/v1/history")


class BackfillRequest(BaseModel):
    """backfill 请求体"""

    limit: int | None = Field(default=None, ge=1, description="最多扫描的签名数")
    before: str | None = Field(default=None, description="从该签名之前开始扫描")


@router.get("/tasks")
async def list_historical_tasks(
    status: FinalStatus | None = Query(default=None, description="按终态筛选"),
    creator: str | None = Query(default=None, description="按创建者筛选"),
    agent: str | None = Query(default=None, description="按 Agent 筛选"),
    limit: int = Query(default=HISTORY_DEFAULT_LIMIT, ge=1),
    offset: int = Query(default=0, ge=0),
    store_group=Depends(get_store_group),
):
    """查询历史任务，closed_at 倒序"""
    page = await store_group.historical_task_store.query_tasks(
        status=status.value if status else None,
        creator=creator,
        agent=agent,
        limit=min(limit, HISTORY_MAX_LIMIT),
        offset=offset,
    )
    return page.model_dump(exclude={"tasks": {"__all__": {"events"}}})


@router.get("/tasks/{address}")
async def get_historical_task(
    address: str,
    store_group=Depends(get_store_group),
):
    """查询单个历史任务，附带完整事件轨迹"""
    task = await store_group.historical_task_store.get_task(address)
    if task is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "TASK_NOT_FOUND",
                    "message": f"Historical task {address} does not exist",
                }
            },
        )

    events = await store_group.event_store.get_events_for_task(address)
    task = task.model_copy(update={"events": events})
    return {"task": task.model_dump()}


@router.get("/stats")
async def history_stats(store_group=Depends(get_store_group)):
    """索引器统计"""
    stats = await get_indexer_stats(store_group)
    return stats.model_dump()


@router.post("/backfill")
async def trigger_backfill(
    body: BackfillRequest | None = None,
    service: BackfillService | None = Depends(get_backfill_service),
):
    """执行 backfill，返回累计计数

    单个签名 / 交易失败只体现在 errors 计数中；持久化失败返回 500。
    """
    if service is None:
        return JSONResponse(
            status_code=503,
            content={
                "error": {
                    "code": "LEDGER_UNAVAILABLE",
                    "message": "Ledger client is not configured",
                }
            },
        )

    body = body or BackfillRequest()
    try:
        result = await service.backfill(limit=body.limit, before=body.before)
    except Exception as e:
        log.error(
            "backfill_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "BACKFILL_FAILED",
                    "message": str(e),
                }
            },
        )

    return {"ok": True, **result.model_dump()}
