"""Verbitto Ledger -- Solana RPC 读取抽象层

packages/ledger 的公开接口导出。
"""

# 核心组件
from .client import LedgerClient, SolanaRpcClient, backoff_delay

# 配置
from .config import LedgerConfig, load_ledger_config

# 异常
from .exceptions import LedgerError, LedgerRequestError, LedgerUnreachableError

# 数据模型
from .models import LedgerTransaction, SignatureInfo

__all__ = [
    "SignatureInfo",
    "LedgerTransaction",
    "LedgerClient",
    "SolanaRpcClient",
    "backoff_delay",
    "LedgerConfig",
    "load_ledger_config",
    "LedgerError",
    "LedgerUnreachableError",
    "LedgerRequestError",
]
