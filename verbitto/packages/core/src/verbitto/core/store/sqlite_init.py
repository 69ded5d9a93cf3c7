"""SQLite 数据库初始化

PRAGMA 配置 + 五张表 DDL + 索引创建 + 旧库补列。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# raw_events 表 DDL（append-only 事件日志）
_RAW_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS raw_events (
    id            TEXT PRIMARY KEY,
    signature     TEXT NOT NULL,
    slot          INTEGER NOT NULL,
    block_time    INTEGER NOT NULL,
    event_name    TEXT NOT NULL,
    data          TEXT NOT NULL DEFAULT '{}',
    task_address  TEXT
);
"""

_RAW_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_raw_events_task_address ON raw_events(task_address);",
    "CREATE INDEX IF NOT EXISTS idx_raw_events_event_name ON raw_events(event_name);",
    "CREATE INDEX IF NOT EXISTS idx_raw_events_block_time ON raw_events(block_time DESC);",
    "CREATE INDEX IF NOT EXISTS idx_raw_events_signature ON raw_events(signature);",
]

# historical_tasks 表 DDL（raw_events 的 projection）
_HISTORICAL_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS historical_tasks (
    address            TEXT PRIMARY KEY,
    title              TEXT NOT NULL DEFAULT '',
    description_hash   TEXT NOT NULL DEFAULT '',
    deliverable_hash   TEXT NOT NULL DEFAULT '',
    creator            TEXT NOT NULL DEFAULT '',
    task_index         TEXT NOT NULL DEFAULT '',
    bounty_lamports    TEXT NOT NULL DEFAULT '0',
    deadline           INTEGER NOT NULL DEFAULT 0,
    final_status       TEXT NOT NULL,
    agent              TEXT NOT NULL DEFAULT '',
    payout_lamports    TEXT NOT NULL DEFAULT '0',
    fee_lamports       TEXT NOT NULL DEFAULT '0',
    refunded_lamports  TEXT NOT NULL DEFAULT '0',
    created_at         INTEGER NOT NULL,
    closed_at          INTEGER NOT NULL
);
"""

_HISTORICAL_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_historical_tasks_creator ON historical_tasks(creator);",
    "CREATE INDEX IF NOT EXISTS idx_historical_tasks_agent ON historical_tasks(agent);",
    (
        "CREATE INDEX IF NOT EXISTS idx_historical_tasks_final_status "
        "ON historical_tasks(final_status);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_historical_tasks_closed_at "
        "ON historical_tasks(closed_at DESC);"
    ),
]

# task_titles side table（创建类指令数据：标题、描述哈希、来源模板）
# 模板自身也以模板地址为键记录一行
_TASK_TITLES_DDL = """
CREATE TABLE IF NOT EXISTS task_titles (
    task_address      TEXT PRIMARY KEY,
    title             TEXT NOT NULL DEFAULT '',
    description_hash  TEXT NOT NULL DEFAULT '',
    template_address  TEXT
);
"""

# 早期 task_titles 只有标题列
_TASK_TITLES_ADDED_COLUMNS = {
    "description_hash": "TEXT NOT NULL DEFAULT ''",
    "template_address": "TEXT",
}

# task_descriptions side table（按内容哈希寻址）
_TASK_DESCRIPTIONS_DDL = """
CREATE TABLE IF NOT EXISTS task_descriptions (
    description_hash  TEXT PRIMARY KEY,
    content           TEXT NOT NULL DEFAULT '',
    task_address      TEXT,
    creator           TEXT
);
"""

_TASK_DESCRIPTIONS_INDEXES = [
    (
        "CREATE INDEX IF NOT EXISTS idx_task_descriptions_task_address "
        "ON task_descriptions(task_address);"
    ),
]

# deliverable_descriptions side table（交付物说明，默认私有）
_DELIVERABLE_DESCRIPTIONS_DDL = """
CREATE TABLE IF NOT EXISTS deliverable_descriptions (
    deliverable_hash  TEXT PRIMARY KEY,
    content           TEXT NOT NULL,
    task_address      TEXT,
    agent             TEXT,
    visibility        TEXT NOT NULL DEFAULT 'private'
);
"""

_DELIVERABLE_DESCRIPTIONS_INDEXES = [
    (
        "CREATE INDEX IF NOT EXISTS idx_deliverable_descriptions_task_address "
        "ON deliverable_descriptions(task_address);"
    ),
]


async def _add_missing_columns(
    conn: aiosqlite.Connection,
    table: str,
    columns: dict[str, str],
) -> None:
    cursor = await conn.execute(f"PRAGMA table_info({table});")
    existing = {row[1] for row in await cursor.fetchall()}
    for name, decl in columns.items():
        if name not in existing:
            await conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl};")


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_RAW_EVENTS_DDL)
    await conn.execute(_HISTORICAL_TASKS_DDL)
    await conn.execute(_TASK_TITLES_DDL)
    await conn.execute(_TASK_DESCRIPTIONS_DDL)
    await conn.execute(_DELIVERABLE_DESCRIPTIONS_DDL)
    await _add_missing_columns(conn, "task_titles", _TASK_TITLES_ADDED_COLUMNS)

    # 创建索引
    for idx_sql in (
        _RAW_EVENTS_INDEXES
        + _HISTORICAL_TASKS_INDEXES
        + _TASK_DESCRIPTIONS_INDEXES
        + _DELIVERABLE_DESCRIPTIONS_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
