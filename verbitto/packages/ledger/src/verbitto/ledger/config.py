"""LedgerConfig -- Solana RPC 客户端配置加载

从环境变量加载配置，所有对象在启动时显式构造并注入，不使用模块级单例。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()

DEFAULT_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_PROGRAM_ID = "Coxgjx4UMQZPRdDZT9CAdrvt4TMTyUKH79ziJiNFHk8S"


class LedgerConfig(BaseModel):
    """Ledger 包配置 -- 从环境变量加载

    环境变量:
        SOLANA_RPC_URL: RPC 地址（默认 devnet 公共节点）
        SOLANA_PROGRAM_ID: 被索引的程序地址
        VERBITTO_RPC_TIMEOUT_S: 单次调用超时（秒，默认 30）
        VERBITTO_RPC_MAX_ATTEMPTS: 最大尝试次数（默认 4）
    """

    rpc_url: str = Field(default=DEFAULT_RPC_URL, description="Solana JSON-RPC 地址")
    program_id: str = Field(default=DEFAULT_PROGRAM_ID, description="被索引的程序地址")
    timeout_s: float = Field(default=30.0, gt=0, description="单次 RPC 调用超时（秒）")
    max_attempts: int = Field(default=4, ge=1, description="可重试失败的最大尝试次数")
    backoff_base_s: float = Field(default=0.5, ge=0, description="退避基数（秒）")
    backoff_cap_s: float = Field(default=8.0, ge=0, description="单次退避上限（秒）")
    commitment: Literal["processed", "confirmed", "finalized"] = Field(
        default="confirmed",
        description="查询使用的 commitment 级别",
    )


def _int_env(name: str, fallback: int) -> int | None:
    val = os.environ.get(name)
    if not val:
        return None
    try:
        return int(val)
    except ValueError:
        log.warning(
            "invalid_ledger_config",
            env_var=name,
            value=val,
            fallback=fallback,
        )
        # 使用默认值，不阻塞启动
        return None


def load_ledger_config() -> LedgerConfig:
    """从环境变量加载 Ledger 配置

    环境变量映射:
        SOLANA_RPC_URL -> rpc_url
        SOLANA_PROGRAM_ID -> program_id
        VERBITTO_RPC_TIMEOUT_S -> timeout_s (默认 30)
        VERBITTO_RPC_MAX_ATTEMPTS -> max_attempts (默认 4)

    Returns:
        LedgerConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("SOLANA_RPC_URL"):
        kwargs["rpc_url"] = val

    if val := os.environ.get("SOLANA_PROGRAM_ID"):
        kwargs["program_id"] = val

    if (timeout := _int_env("VERBITTO_RPC_TIMEOUT_S", 30)) is not None:
        kwargs["timeout_s"] = timeout

    if (attempts := _int_env("VERBITTO_RPC_MAX_ATTEMPTS", 4)) is not None:
        kwargs["max_attempts"] = attempts

    return LedgerConfig(**kwargs)
