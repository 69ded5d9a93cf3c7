"""交付物说明存储 -- 按哈希寻址，任务成功结束后公开"""

import aiosqlite

from ..models.enums import DeliverableVisibility
from ..models.historical_task import DeliverableDescription


class SqliteDeliverableStore:
    """deliverable_descriptions 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def put_deliverable(self, deliverable: DeliverableDescription) -> None:
        """写入交付物说明（按哈希 upsert）

        重复上传只更新正文：已记录的任务地址和提交者不被改写，
        可见性只能由 publish_for_task 改变。
        """
        try:
            await self._conn.execute(
                """
                INSERT INTO deliverable_descriptions (deliverable_hash, content,
                                                      task_address, agent, visibility)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(deliverable_hash) DO UPDATE SET
                    content = excluded.content,
                    task_address = COALESCE(deliverable_descriptions.task_address,
                                            excluded.task_address),
                    agent = COALESCE(deliverable_descriptions.agent, excluded.agent)
                """,
                (
                    deliverable.deliverable_hash,
                    deliverable.content,
                    deliverable.task_address,
                    deliverable.agent,
                    DeliverableVisibility.PRIVATE.value,
                ),
            )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

    async def get_deliverable(self, deliverable_hash: str) -> DeliverableDescription | None:
        cursor = await self._conn.execute(
            "SELECT * FROM deliverable_descriptions WHERE deliverable_hash = ?",
            (deliverable_hash,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return DeliverableDescription(
            deliverable_hash=row["deliverable_hash"],
            content=row["content"],
            task_address=row["task_address"],
            agent=row["agent"],
            visibility=DeliverableVisibility(row["visibility"]),
        )

    async def publish_for_task(self, task_address: str) -> int:
        """公开某任务名下的全部交付物说明

        Returns:
            由私有变为公开的行数
        """
        try:
            cursor = await self._conn.execute(
                """
                UPDATE deliverable_descriptions SET visibility = ?
                WHERE task_address = ? AND visibility != ?
                """,
                (
                    DeliverableVisibility.PUBLIC.value,
                    task_address,
                    DeliverableVisibility.PUBLIC.value,
                ),
            )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise
        return cursor.rowcount
