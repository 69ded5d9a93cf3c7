"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + ledger 客户端初始化 + 路由注册。
所有运行时组件显式构造后挂到 app.state，不使用模块级单例。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from verbitto.core.config import get_db_path, get_webhook_secret
from verbitto.core.store import create_store_group
from verbitto.ledger import SolanaRpcClient, load_ledger_config

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import deliverables, descriptions, health, history, webhook

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和 ledger 客户端，关闭时清理连接"""
    # 启动：初始化 Store
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    # ledger 配置与客户端
    ledger_config = load_ledger_config()
    app.state.ledger_config = ledger_config
    app.state.program_id = ledger_config.program_id
    app.state.ledger_client = SolanaRpcClient(ledger_config)

    webhook_secret = get_webhook_secret()
    app.state.webhook_secret = webhook_secret

    log.info(
        "indexer_initialized",
        program_id=ledger_config.program_id,
        rpc_url=ledger_config.rpc_url,
        timeout_s=ledger_config.timeout_s,
        webhook_configured=bool(webhook_secret),
    )
    if not webhook_secret:
        log.warning("webhook_auth_disabled", reason="HELIUS_WEBHOOK_SECRET not set")

    yield

    # 关闭：清理 HTTP 连接池和数据库连接
    if getattr(app.state, "ledger_client", None) is not None:
        await app.state.ledger_client.aclose()
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Verbitto Indexer",
        version="0.1.0",
        description="task-escrow 程序事件索引与历史任务 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    # 注册路由
    app.include_router(webhook.router, tags=["webhook"])
    app.include_router(history.router, tags=["history"])
    app.include_router(descriptions.router, tags=["descriptions"])
    app.include_router(deliverables.router, tags=["deliverables"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
