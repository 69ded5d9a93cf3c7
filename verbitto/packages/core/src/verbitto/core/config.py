"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、程序地址、webhook 密钥、backfill 批量参数等可配置常量。
"""

import os
from pathlib import Path

# 链上 task-escrow 程序地址（devnet 部署）
DEFAULT_PROGRAM_ID = "Coxgjx4UMQZPRdDZT9CAdrvt4TMTyUKH79ziJiNFHk8S"


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("VERBITTO_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "VERBITTO_DB_PATH",
        str(_get_base_dir() / "sqlite" / "verbitto-indexer.db"),
    )


def get_program_id() -> str:
    """获取被索引的程序地址"""
    return os.environ.get("SOLANA_PROGRAM_ID", DEFAULT_PROGRAM_ID)


def get_webhook_secret() -> str:
    """获取 Helius webhook 共享密钥

    为空表示 dev 模式：webhook 不做鉴权，由部署方负责。
    """
    return os.environ.get("HELIUS_WEBHOOK_SECRET", "")


# 每次 getSignaturesForAddress 最多拉取的签名数
SIGNATURE_BATCH_SIZE: int = 100

# 并发拉取交易体的批大小
TRANSACTION_BATCH_SIZE: int = int(
    os.environ.get("VERBITTO_BACKFILL_TX_BATCH", "20")
)

# 单次 backfill 默认 / 最大签名数
BACKFILL_DEFAULT_LIMIT: int = 500
BACKFILL_MAX_LIMIT: int = 2000

# 查询分页上限
RECENT_EVENTS_DEFAULT_LIMIT: int = 50
RECENT_EVENTS_MAX_LIMIT: int = 200
HISTORY_DEFAULT_LIMIT: int = 100
HISTORY_MAX_LIMIT: int = 500
