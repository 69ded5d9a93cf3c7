"""EventStore SQLite 实现

raw_events 表 append-only：只允许插入，不允许更新或删除。
以确定性的 id 去重，重复写入为空操作，webhook 与 backfill 可安全重叠摄入。
"""

import json

import aiosqlite

from ..models.event import RawEvent


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def ingest_events(self, events: list[RawEvent]) -> int:
        """按 id 去重写入事件，返回新插入的行数

        每条事件是独立的事务单元：单条失败时回滚该条并向上抛出，
        之前已提交的事件不受影响。
        """
        inserted = 0
        for event in events:
            try:
                cursor = await self._conn.execute(
                    """
                    INSERT INTO raw_events (id, signature, slot, block_time,
                                            event_name, data, task_address)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO NOTHING
                    """,
                    (
                        event.id,
                        event.signature,
                        event.slot,
                        event.block_time,
                        event.event_name,
                        json.dumps(event.data, ensure_ascii=False, sort_keys=True),
                        event.task_address,
                    ),
                )
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
            if cursor.rowcount > 0:
                inserted += 1
        return inserted

    async def get_recent_events(self, limit: int) -> list[RawEvent]:
        """最近事件，按 block_time / slot 倒序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM raw_events
            ORDER BY block_time DESC, slot DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_events_for_task(self, task_address: str) -> list[RawEvent]:
        """查询指定任务的完整事件轨迹，按时间正序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM raw_events
            WHERE task_address = ?
            ORDER BY block_time ASC, slot ASC, id ASC
            """,
            (task_address,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_all_events(self) -> list[RawEvent]:
        """查询所有事件（用于 Projection 重建）"""
        cursor = await self._conn.execute(
            "SELECT * FROM raw_events ORDER BY block_time ASC, slot ASC, id ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_event(self, event_id: str) -> RawEvent | None:
        """根据去重键查询单条事件"""
        cursor = await self._conn.execute(
            "SELECT * FROM raw_events WHERE id = ?",
            (event_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_event(row)

    async def count_events(self) -> int:
        cursor = await self._conn.execute("SELECT COUNT(*) FROM raw_events")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def get_last_event_time(self) -> int | None:
        """最新事件的 block_time，空表返回 None"""
        cursor = await self._conn.execute("SELECT MAX(block_time) FROM raw_events")
        row = await cursor.fetchone()
        return row[0] if row else None

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> RawEvent:
        """将数据库行转换为 RawEvent 模型"""
        return RawEvent(
            id=row["id"],
            signature=row["signature"],
            slot=row["slot"],
            block_time=row["block_time"],
            event_name=row["event_name"],
            data=json.loads(row["data"]) if row["data"] else {},
            task_address=row["task_address"],
        )
