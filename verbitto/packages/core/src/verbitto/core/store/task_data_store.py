"""Side table 存储 -- 创建类指令数据与按哈希寻址的描述

task_titles 只由指令解析写入，是 Projection 补全标题和描述哈希的唯一来源；
task_descriptions 保存描述正文，任何人都可上传，不参与 Projection。
"""

import aiosqlite

from ..models.historical_task import TaskData, TaskDescription


class SqliteTaskDataStore:
    """task_titles / task_descriptions 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def set_task_data(
        self,
        task_address: str,
        title: str,
        description_hash: str,
        template_address: str | None = None,
    ) -> None:
        """写入创建类指令数据（幂等）

        task_titles 按地址整行 upsert；描述哈希额外在 task_descriptions
        中以空内容占位，不会覆盖已上传的描述正文。
        """
        try:
            await self._conn.execute(
                """
                INSERT INTO task_titles (task_address, title, description_hash,
                                         template_address)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(task_address) DO UPDATE SET
                    title = excluded.title,
                    description_hash = excluded.description_hash,
                    template_address = excluded.template_address
                """,
                (task_address, title, description_hash, template_address),
            )
            if description_hash:
                await self._conn.execute(
                    """
                    INSERT INTO task_descriptions (description_hash, content, task_address)
                    VALUES (?, '', ?)
                    ON CONFLICT(description_hash) DO UPDATE SET
                        task_address = COALESCE(task_descriptions.task_address,
                                                excluded.task_address)
                    """,
                    (description_hash, task_address),
                )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

    async def get_task_data(self) -> dict[str, TaskData]:
        """地址（任务或模板）-> 指令数据"""
        cursor = await self._conn.execute(
            "SELECT task_address, title, description_hash, template_address FROM task_titles"
        )
        rows = await cursor.fetchall()
        return {
            row["task_address"]: TaskData(
                title=row["title"],
                description_hash=row["description_hash"],
                template_address=row["template_address"],
            )
            for row in rows
        }

    async def put_description(self, description: TaskDescription) -> None:
        """写入描述正文（按哈希 upsert）

        已有占位行时补上正文；已记录的任务地址和创建者保持不变，只补空值。
        """
        try:
            await self._conn.execute(
                """
                INSERT INTO task_descriptions (description_hash, content,
                                               task_address, creator)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(description_hash) DO UPDATE SET
                    content = excluded.content,
                    task_address = COALESCE(task_descriptions.task_address,
                                            excluded.task_address),
                    creator = COALESCE(task_descriptions.creator, excluded.creator)
                """,
                (
                    description.description_hash,
                    description.content,
                    description.task_address,
                    description.creator,
                ),
            )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

    async def get_description(self, description_hash: str) -> TaskDescription | None:
        cursor = await self._conn.execute(
            "SELECT * FROM task_descriptions WHERE description_hash = ?",
            (description_hash,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return TaskDescription(
            description_hash=row["description_hash"],
            content=row["content"],
            task_address=row["task_address"],
            creator=row["creator"],
        )
