"""apps/gateway 测试配置 -- 测试 app、httpx AsyncClient 与内存 ledger"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from verbitto.ledger import (
    LedgerTransaction,
    LedgerUnreachableError,
    SignatureInfo,
)


class FakeLedger:
    """内存 ledger：按写入顺序保存交易，签名按最新在前分页返回

    failing 中的签名在 get_transaction 时模拟超时（重试耗尽），
    failing_pages 中的游标在 list_program_signatures 时抛出不可达错误。
    """

    def __init__(self) -> None:
        self._history: list[SignatureInfo] = []
        self._txs: dict[str, LedgerTransaction] = {}
        self.failing: set[str] = set()
        self.failing_pages: set[str | None] = set()
        self.fetched: list[str] = []
        self.page_calls: list[str | None] = []
        self.healthy = True

    def add(self, raw: dict[str, Any], err: Any = None, fetchable: bool = True) -> str:
        """追加一笔交易（raw 为 getTransaction 格式）"""
        signature = raw["transaction"]["signatures"][0]
        self._history.append(
            SignatureInfo(
                signature=signature,
                slot=raw["slot"],
                block_time=raw.get("blockTime"),
                err=err,
            )
        )
        if fetchable:
            self._txs[signature] = LedgerTransaction.from_rpc(signature, raw)
        return signature

    async def list_program_signatures(
        self,
        program_id: str,
        limit: int,
        before: str | None = None,
    ) -> list[SignatureInfo]:
        self.page_calls.append(before)
        if before in self.failing_pages:
            raise LedgerUnreachableError("http://rpc.test", ConnectionError("refused"))

        newest_first = list(reversed(self._history))
        if before is not None:
            idx = next(i for i, s in enumerate(newest_first) if s.signature == before)
            newest_first = newest_first[idx + 1:]
        return newest_first[:limit]

    async def get_transaction(self, signature: str) -> LedgerTransaction | None:
        self.fetched.append(signature)
        if signature in self.failing:
            raise LedgerUnreachableError("http://rpc.test", TimeoutError("timed out"))
        return self._txs.get(signature)

    async def health_check(self) -> bool:
        return self.healthy

    async def aclose(self) -> None:
        pass


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, chain, fake_ledger: FakeLedger):
    """测试 app（手动初始化 app.state，绕过 lifespan）"""
    db_path = tmp_path / "sqlite" / "test.db"
    os.environ["VERBITTO_DB_PATH"] = str(db_path)
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from verbitto.core.store import create_store_group
    from verbitto.gateway.main import create_app

    app = create_app()

    store_group = await create_store_group(str(db_path))
    app.state.store_group = store_group
    app.state.program_id = chain.program_id
    app.state.webhook_secret = ""
    app.state.ledger_client = fake_ledger

    yield app

    await store_group.conn.close()
    os.environ.pop("VERBITTO_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
