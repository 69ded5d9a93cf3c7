"""依赖注入模块 -- 通过 FastAPI Depends 注入运行时组件

Store、ledger 客户端与服务实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from verbitto.core.store import StoreGroup
from verbitto.ledger import LedgerClient

from .services.backfill_service import BackfillService
from .services.ingest_service import IngestService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_ledger_client(request: Request) -> LedgerClient | None:
    """从 app.state 获取 ledger 客户端（未配置时为 None）"""
    return getattr(request.app.state, "ledger_client", None)


def get_program_id(request: Request) -> str:
    return request.app.state.program_id


def get_webhook_secret(request: Request) -> str:
    return request.app.state.webhook_secret


def get_ingest_service(request: Request) -> IngestService:
    return IngestService(request.app.state.store_group, request.app.state.program_id)


def get_backfill_service(request: Request) -> BackfillService | None:
    """ledger 客户端可用时构造 BackfillService"""
    ledger_client = get_ledger_client(request)
    if ledger_client is None:
        return None
    return BackfillService(
        request.app.state.store_group,
        ledger_client,
        request.app.state.program_id,
    )
