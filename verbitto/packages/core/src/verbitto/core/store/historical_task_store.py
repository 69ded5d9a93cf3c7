"""HistoricalTaskStore SQLite 实现

historical_tasks 表是 raw_events 的物化视图，仅由 Projection 重建写入。
"""

import aiosqlite

from ..models.enums import FinalStatus
from ..models.historical_task import HistoricalTask, HistoryPage

_UPSERT_SQL = """
INSERT INTO historical_tasks (address, title, description_hash, deliverable_hash,
                              creator, task_index, bounty_lamports, deadline,
                              final_status, agent, payout_lamports, fee_lamports,
                              refunded_lamports, created_at, closed_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(address) DO UPDATE SET
    title = excluded.title,
    description_hash = excluded.description_hash,
    deliverable_hash = excluded.deliverable_hash,
    creator = excluded.creator,
    task_index = excluded.task_index,
    bounty_lamports = excluded.bounty_lamports,
    deadline = excluded.deadline,
    final_status = excluded.final_status,
    agent = excluded.agent,
    payout_lamports = excluded.payout_lamports,
    fee_lamports = excluded.fee_lamports,
    refunded_lamports = excluded.refunded_lamports,
    created_at = excluded.created_at,
    closed_at = excluded.closed_at
"""


class SqliteHistoricalTaskStore:
    """HistoricalTaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def upsert_task(self, task: HistoricalTask) -> None:
        """按 address 整行替换

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            _UPSERT_SQL,
            (
                task.address,
                task.title,
                task.description_hash,
                task.deliverable_hash,
                task.creator,
                task.task_index,
                task.bounty_lamports,
                task.deadline,
                task.final_status.value,
                task.agent,
                task.payout_lamports,
                task.fee_lamports,
                task.refunded_lamports,
                task.created_at,
                task.closed_at,
            ),
        )

    async def upsert_tasks(self, tasks: list[HistoricalTask]) -> int:
        """在单个事务内写入全部摘要，失败时整体回滚"""
        try:
            for task in tasks:
                await self.upsert_task(task)
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise
        return len(tasks)

    async def get_task(self, address: str) -> HistoricalTask | None:
        cursor = await self._conn.execute(
            "SELECT * FROM historical_tasks WHERE address = ?",
            (address,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def query_tasks(
        self,
        status: str | None = None,
        creator: str | None = None,
        agent: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> HistoryPage:
        """按终态 / 创建者 / Agent 筛选，closed_at 倒序分页"""
        conditions: list[str] = []
        params: list[str] = []
        if status:
            conditions.append("final_status = ?")
            params.append(status)
        if creator:
            conditions.append("creator = ?")
            params.append(creator)
        if agent:
            conditions.append("agent = ?")
            params.append(agent)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        cursor = await self._conn.execute(
            f"SELECT COUNT(*) FROM historical_tasks {where}",
            params,
        )
        row = await cursor.fetchone()
        total = row[0] if row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT * FROM historical_tasks {where}
            ORDER BY closed_at DESC, address ASC
            LIMIT ? OFFSET ?
            """,
            [*params, limit, offset],
        )
        rows = await cursor.fetchall()
        return HistoryPage(
            tasks=[self._row_to_task(r) for r in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def count_tasks(self) -> int:
        cursor = await self._conn.execute("SELECT COUNT(*) FROM historical_tasks")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def count_by_status(self) -> dict[str, int]:
        """终态 -> 数量，仅包含出现过的终态"""
        cursor = await self._conn.execute(
            """
            SELECT final_status, COUNT(*) AS n FROM historical_tasks
            GROUP BY final_status
            """
        )
        rows = await cursor.fetchall()
        return {row["final_status"]: row["n"] for row in rows}

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> HistoricalTask:
        """将数据库行转换为 HistoricalTask 模型"""
        return HistoricalTask(
            address=row["address"],
            title=row["title"],
            description_hash=row["description_hash"],
            deliverable_hash=row["deliverable_hash"],
            creator=row["creator"],
            task_index=row["task_index"],
            bounty_lamports=row["bounty_lamports"],
            deadline=row["deadline"],
            final_status=FinalStatus(row["final_status"]),
            agent=row["agent"],
            payout_lamports=row["payout_lamports"],
            fee_lamports=row["fee_lamports"],
            refunded_lamports=row["refunded_lamports"],
            created_at=row["created_at"],
            closed_at=row["closed_at"],
        )
