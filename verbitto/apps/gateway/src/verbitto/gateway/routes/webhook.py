"""Helius webhook 路由

POST /api/v1/webhook/helius: 接收推送载荷，解析事件并入库。
GET /api/v1/webhook/status: 索引器统计。
GET /api/v1/webhook/events: 最近事件（调试用）。

鉴权：Authorization: Bearer <token> 或 ?token=<token>。
未配置 HELIUS_WEBHOOK_SECRET 时不做鉴权（dev 模式，由部署方负责）。
"""

import hmac
import json

import structlog
from fastapi import APIRouter, Depends, Query, Request
from starlette.responses import JSONResponse
from verbitto.core.config import RECENT_EVENTS_DEFAULT_LIMIT, RECENT_EVENTS_MAX_LIMIT
from verbitto.core.stats import get_indexer_stats

from ..deps import get_ingest_service, get_store_group, get_webhook_secret
from ..services.ingest_service import IngestService

log = structlog.get_logger()

router = APIRouter(prefix="/api/v1/webhook")


def _token_matches(candidate: str | None, secret: str) -> bool:
    if not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), secret.encode())


def is_authorized(request: Request, secret: str) -> bool:
    """校验 Bearer header 或 token 查询参数"""
    if not secret:
        return True

    auth_header = request.headers.get("authorization", "")
    if auth_header:
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() == "bearer" and _token_matches(token.strip(), secret):
            return True

    return _token_matches(request.query_params.get("token"), secret)


@router.post("/helius")
async def receive_helius(
    request: Request,
    secret: str = Depends(get_webhook_secret),
    service: IngestService = Depends(get_ingest_service),
):
    """接收 Helius 推送，返回解析数与新入库数"""
    if not is_authorized(request, secret):
        log.warning("webhook_unauthorized")
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    body = await request.body()
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    try:
        parsed, ingested = await service.ingest_payload(payload)
    except Exception as e:
        log.error(
            "webhook_ingest_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process webhook"},
        )

    return {"ok": True, "parsed": parsed, "ingested": ingested}


@router.get("/status")
async def webhook_status(
    store_group=Depends(get_store_group),
    secret: str = Depends(get_webhook_secret),
):
    """索引器统计 + webhook 是否配置了密钥"""
    stats = await get_indexer_stats(store_group)
    return {
        "ok": True,
        **stats.model_dump(),
        "webhook_configured": bool(secret),
    }


@router.get("/events")
async def recent_events(
    limit: int = Query(default=RECENT_EVENTS_DEFAULT_LIMIT, ge=1),
    store_group=Depends(get_store_group),
):
    """最近事件，倒序"""
    limit = min(limit, RECENT_EVENTS_MAX_LIMIT)
    events = await store_group.event_store.get_recent_events(limit)
    return {"events": [e.model_dump() for e in events]}
