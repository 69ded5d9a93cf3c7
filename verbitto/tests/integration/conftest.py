"""集成测试共享 fixture -- 模拟 Solana RPC 节点 + 真实 SolanaRpcClient"""

import json
import os
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from verbitto.core.store import create_store_group
from verbitto.ledger import LedgerConfig, SolanaRpcClient

RPC_URL = "http://rpc.test"


class RpcNode:
    """按 JSON-RPC 协议应答的内存节点

    支持 getSignaturesForAddress（before/limit 分页，最新在前）、
    getTransaction 与 getHealth。
    """

    def __init__(self) -> None:
        self.transactions: list[dict[str, Any]] = []
        self.calls: list[str] = []

    def add(self, *txs: dict[str, Any]) -> None:
        self.transactions.extend(txs)

    def _signatures(self, params: list[Any]) -> list[dict[str, Any]]:
        opts = params[1] if len(params) > 1 else {}
        newest_first = list(reversed(self.transactions))
        before = opts.get("before")
        if before:
            sigs = [tx["transaction"]["signatures"][0] for tx in newest_first]
            newest_first = newest_first[sigs.index(before) + 1:]
        return [
            {
                "signature": tx["transaction"]["signatures"][0],
                "slot": tx["slot"],
                "blockTime": tx["blockTime"],
                "err": tx["meta"]["err"],
            }
            for tx in newest_first[: opts.get("limit", 1000)]
        ]

    def _transaction(self, params: list[Any]) -> dict[str, Any] | None:
        for tx in self.transactions:
            if tx["transaction"]["signatures"][0] == params[0]:
                return tx
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        self.calls.append(method)
        if method == "getSignaturesForAddress":
            result: Any = self._signatures(body["params"])
        elif method == "getTransaction":
            result = self._transaction(body["params"])
        elif method == "getHealth":
            result = "ok"
        else:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "Method not found"}},
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


@pytest.fixture
def rpc_node() -> RpcNode:
    return RpcNode()


def build_app(store_group, rpc_node: RpcNode, program_id: str, secret: str = ""):
    """创建 app 并手动初始化 app.state（绕过 lifespan）"""
    from verbitto.gateway.main import create_app

    app = create_app()
    app.state.store_group = store_group
    app.state.program_id = program_id
    app.state.webhook_secret = secret
    app.state.ledger_client = SolanaRpcClient(
        LedgerConfig(rpc_url=RPC_URL, program_id=program_id, backoff_base_s=0),
        transport=httpx.MockTransport(rpc_node.handler),
    )
    return app


@pytest.fixture
def app_factory(rpc_node: RpcNode, chain):
    """重启场景：用同一 RPC 节点构造新的 app"""

    def _make(store_group, secret: str = ""):
        return build_app(store_group, rpc_node, chain.program_id, secret)

    return _make


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path, rpc_node: RpcNode, chain):
    """集成测试用 FastAPI app"""
    db_path = tmp_path / "test.db"
    os.environ["VERBITTO_DB_PATH"] = str(db_path)
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    store_group = await create_store_group(str(db_path))
    app = build_app(store_group, rpc_node, chain.program_id)

    yield app

    await app.state.ledger_client.aclose()
    await store_group.conn.close()
    os.environ.pop("VERBITTO_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def task_lifecycle(chain) -> list[dict[str, Any]]:
    """一个任务的完整生命周期：创建 -> 认领 -> 提交 -> 结算"""
    task, creator, agent = chain.pubkey(1), chain.pubkey(2), chain.pubkey(3)
    return [
        chain.create_task_tx(
            "sig-create",
            100,
            1_700_000_000,
            task=task,
            creator=creator,
            title="Translate whitepaper",
            description_hash=chain.hash_hex(0x42),
            bounty=2_000_000,
        ),
        chain.raw_tx(
            "sig-claim",
            110,
            1_700_000_100,
            chain.logs(chain.program_data("TaskClaimed", task=task, agent=agent, task_index=0)),
        ),
        chain.raw_tx(
            "sig-deliver",
            120,
            1_700_000_200,
            chain.logs(
                chain.program_data(
                    "DeliverableSubmitted",
                    task=task,
                    agent=agent,
                    deliverable_hash=chain.hash_hex(0x43),
                )
            ),
        ),
        chain.raw_tx(
            "sig-settle",
            130,
            1_700_000_300,
            chain.logs(
                chain.program_data(
                    "TaskSettled",
                    task=task,
                    agent=agent,
                    payout_lamports=1_900_000,
                    fee_lamports=100_000,
                )
            ),
        ),
    ]
