"""CLI 测试 -- python -m verbitto.core

测试内容：
1. rebuild-history 从已有数据库重建历史任务
2. 未知命令 / 缺少命令时退出码为 1
"""

import sys

import pytest
from verbitto.core import __main__ as cli
from verbitto.core.models import RawEvent
from verbitto.core.store import create_store_group


def _event(signature: str, name: str, block_time: int, **data: str) -> RawEvent:
    return RawEvent(
        id=f"{signature}:{name}",
        signature=signature,
        slot=block_time,
        block_time=block_time,
        event_name=name,
        data={"task": "T1", **data},
        task_address="T1",
    )


class TestCli:
    """命令行入口"""

    async def test_rebuild_history(self, tmp_db_path, monkeypatch, capsys):
        monkeypatch.setenv("VERBITTO_DB_PATH", str(tmp_db_path))

        group = await create_store_group(str(tmp_db_path))
        await group.event_store.ingest_events(
            [
                _event("s1", "TaskCreated", 10, creator="C"),
                _event("s2", "TaskExpired", 20, creator="C", refunded_lamports="5"),
            ]
        )
        await group.conn.close()

        await cli.rebuild_history()

        assert "写入 1 个历史任务" in capsys.readouterr().out

        group = await create_store_group(str(tmp_db_path))
        try:
            task = await group.historical_task_store.get_task("T1")
        finally:
            await group.conn.close()
        assert task is not None
        assert task.final_status == "Expired"

    def test_missing_command(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["verbitto.core"])
        with pytest.raises(SystemExit) as exc:
            cli.main()
        assert exc.value.code == 1

    def test_unknown_command(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["verbitto.core", "bogus"])
        with pytest.raises(SystemExit) as exc:
            cli.main()
        assert exc.value.code == 1
        assert "未知命令" in capsys.readouterr().out
