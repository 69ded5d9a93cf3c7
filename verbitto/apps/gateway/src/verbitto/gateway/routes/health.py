"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性（WAL 模式）、磁盘空间，
         profile=ledger/full 时额外探测 Solana RPC。
"""

import shutil
from pathlib import Path

import structlog
from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse
from verbitto.core.config import get_db_path
from verbitto.core.store.sqlite_init import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()

# 需要探测 RPC 的 profile
_LEDGER_PROFILES = ("ledger", "full")


async def _check_sqlite(request: Request) -> str:
    try:
        conn = request.app.state.store_group.conn
        if not await verify_wal_mode(conn):
            return "error: journal_mode is not WAL"
    except Exception as e:
        return f"error: {e}"
    return "ok"


def _disk_space_mb() -> int | None:
    """数据库所在磁盘的剩余空间（MB），无法读取时返回 None"""
    db_dir = Path(get_db_path()).resolve().parent
    try:
        usage = shutil.disk_usage(db_dir if db_dir.exists() else "/")
    except OSError as e:
        log.warning("disk_usage_failed", path=str(db_dir), error=str(e))
        return None
    return usage.free // (1024 * 1024)


async def _check_ledger(request: Request) -> str:
    ledger_client = getattr(request.app.state, "ledger_client", None)
    if ledger_client is None:
        return "not_configured"
    return "ok" if await ledger_client.health_check() else "unreachable"


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="检查配置文件：core（默认）仅核心检查；ledger/full 包含 Solana RPC 健康检查",
    ),
):
    """Readiness 检查 -- 任一检查失败返回 503

    checks:
        sqlite: ok / error: ...
        disk_space_mb: 剩余空间，读取失败为 0
        ledger_rpc: ok / unreachable / not_configured，core profile 下为 skipped
    """
    effective_profile = profile or "core"

    sqlite_status = await _check_sqlite(request)
    disk_space_mb = _disk_space_mb()
    if effective_profile in _LEDGER_PROFILES:
        ledger_status = await _check_ledger(request)
    else:
        ledger_status = "skipped"

    all_ok = (
        sqlite_status == "ok"
        and disk_space_mb is not None
        and ledger_status in ("ok", "skipped")
    )

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "profile": effective_profile,
            "checks": {
                "sqlite": sqlite_status,
                "disk_space_mb": disk_space_mb or 0,
                "ledger_rpc": ledger_status,
            },
        },
    )
