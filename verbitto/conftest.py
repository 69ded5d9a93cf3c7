"""全局 pytest 配置 -- 临时 SQLite Store fixture + 链上数据构造工具

ChainBuilder 独立于解析器实现 Borsh 编码，用于构造 `Program data:` 日志行、
RPC / Helius 交易体与创建类指令数据（create_task、create_template、
create_task_from_template）。
"""

import base64
import hashlib
import struct
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import base58
import pytest
import pytest_asyncio

PROGRAM_ID = "Coxgjx4UMQZPRdDZT9CAdrvt4TMTyUKH79ziJiNFHk8S"
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"


def _ix_discriminator(method: str) -> bytes:
    return hashlib.sha256(f"global:{method}".encode()).digest()[:8]

# 事件名 -> [(字段, 类型)]
_EVENT_LAYOUTS: dict[str, list[tuple[str, str]]] = {
    "PlatformInitialized": [("authority", "pubkey"), ("fee_bps", "u16"), ("treasury", "pubkey")],
    "TaskCreated": [
        ("task", "pubkey"),
        ("creator", "pubkey"),
        ("task_index", "u64"),
        ("bounty_lamports", "u64"),
        ("deadline", "i64"),
    ],
    "TaskClaimed": [("task", "pubkey"), ("agent", "pubkey"), ("task_index", "u64")],
    "DeliverableSubmitted": [("task", "pubkey"), ("agent", "pubkey"), ("deliverable_hash", "hash")],
    "TaskSettled": [
        ("task", "pubkey"),
        ("agent", "pubkey"),
        ("payout_lamports", "u64"),
        ("fee_lamports", "u64"),
    ],
    "SubmissionRejected": [("task", "pubkey"), ("agent", "pubkey"), ("reason_hash", "hash")],
    "TaskCancelled": [("task", "pubkey"), ("creator", "pubkey"), ("refunded_lamports", "u64")],
    "TaskExpired": [("task", "pubkey"), ("creator", "pubkey"), ("refunded_lamports", "u64")],
    "TemplateCreated": [
        ("template", "pubkey"),
        ("creator", "pubkey"),
        ("template_index", "u64"),
        ("category", "u8"),
    ],
    "DisputeOpened": [
        ("dispute", "pubkey"),
        ("task", "pubkey"),
        ("initiator", "pubkey"),
        ("reason", "u8"),
    ],
    "VoteCast": [("dispute", "pubkey"), ("voter", "pubkey"), ("ruling", "u8")],
    "DisputeResolved": [
        ("dispute", "pubkey"),
        ("task", "pubkey"),
        ("ruling", "u8"),
        ("total_votes", "u16"),
    ],
    "AgentRegistered": [("agent", "pubkey"), ("profile", "pubkey")],
    "AgentProfileUpdated": [
        ("agent", "pubkey"),
        ("reputation_score", "i64"),
        ("tasks_completed", "u64"),
    ],
}


def _encode_field(kind: str, value: Any) -> bytes:
    if kind == "pubkey":
        raw = base58.b58decode(value)
        assert len(raw) == 32
        return raw
    if kind == "hash":
        return bytes.fromhex(value)
    fmt = {"u64": "<Q", "i64": "<q", "u16": "<H", "u8": "<B"}[kind]
    return struct.pack(fmt, int(value))


class ChainBuilder:
    """构造测试用链上数据"""

    program_id = PROGRAM_ID

    @staticmethod
    def pubkey(n: int) -> str:
        """确定性的测试公钥（n 取 1..255）"""
        return base58.b58encode(bytes([n]) * 32).decode("ascii")

    @staticmethod
    def hash_hex(n: int) -> str:
        return (bytes([n]) * 32).hex()

    @staticmethod
    def event_payload(name: str, **fields: Any) -> bytes:
        disc = hashlib.sha256(f"event:{name}".encode()).digest()[:8]
        body = b"".join(
            _encode_field(kind, fields[field]) for field, kind in _EVENT_LAYOUTS[name]
        )
        return disc + body

    def program_data(self, name: str, **fields: Any) -> str:
        """一行 `Program data: <base64>` 日志"""
        payload = base64.b64encode(self.event_payload(name, **fields)).decode("ascii")
        return f"Program data: {payload}"

    def logs(self, *data_lines: str, program_id: str | None = None) -> list[str]:
        """把事件日志包进一次程序调用"""
        pid = program_id or self.program_id
        return [
            f"Program {pid} invoke [1]",
            "Program log: Instruction: Run",
            *data_lines,
            f"Program {pid} consumed 12345 of 200000 compute units",
            f"Program {pid} success",
        ]

    @staticmethod
    def create_task_ix_data(title: str, description_hash: str) -> bytes:
        title_bytes = title.encode("utf-8")
        return (
            _ix_discriminator("create_task")
            + struct.pack("<I", len(title_bytes))
            + title_bytes
            + bytes.fromhex(description_hash)
            + struct.pack("<Q", 1_000_000)
            + struct.pack("<q", 1_900_000_000)
        )

    @staticmethod
    def create_template_ix_data(title: str, description_hash: str, category: int = 0) -> bytes:
        title_bytes = title.encode("utf-8")
        return (
            _ix_discriminator("create_template")
            + struct.pack("<I", len(title_bytes))
            + title_bytes
            + bytes.fromhex(description_hash)
            + struct.pack("<Q", 500_000)
            + struct.pack("<B", category)
        )

    @staticmethod
    def create_task_from_template_ix_data(
        bounty: int,
        deadline: int,
        task_index: int,
        reputation_reward: int = 10,
    ) -> bytes:
        return (
            _ix_discriminator("create_task_from_template")
            + struct.pack("<Q", bounty)
            + struct.pack("<q", deadline)
            + struct.pack("<q", reputation_reward)
            + struct.pack("<Q", task_index)
        )

    def raw_tx(
        self,
        signature: str,
        slot: int,
        block_time: int | None,
        log_lines: list[str],
        err: Any = None,
        instructions: list[dict[str, Any]] | None = None,
        account_keys: list[str] | None = None,
    ) -> dict[str, Any]:
        """getTransaction / Helius raw 格式交易体"""
        return {
            "slot": slot,
            "blockTime": block_time,
            "meta": {"err": err, "logMessages": log_lines, "loadedAddresses": {}},
            "transaction": {
                "signatures": [signature],
                "message": {
                    "accountKeys": account_keys or [self.program_id],
                    "instructions": instructions or [],
                },
            },
        }

    def create_task_tx(
        self,
        signature: str,
        slot: int,
        block_time: int,
        task: str,
        creator: str,
        title: str,
        description_hash: str,
        task_index: int = 0,
        bounty: int = 1_000_000,
        deadline: int = 1_900_000_000,
    ) -> dict[str, Any]:
        """带 create_task 指令和 TaskCreated 事件的完整交易"""
        account_keys = [creator, task, self.program_id, SYSTEM_PROGRAM_ID]
        ix = {
            "programIdIndex": 2,
            "accounts": [1, 0, 3],
            "data": base58.b58encode(
                self.create_task_ix_data(title, description_hash)
            ).decode("ascii"),
        }
        log_lines = self.logs(
            self.program_data(
                "TaskCreated",
                task=task,
                creator=creator,
                task_index=task_index,
                bounty_lamports=bounty,
                deadline=deadline,
            )
        )
        return self.raw_tx(
            signature,
            slot,
            block_time,
            log_lines,
            instructions=[ix],
            account_keys=account_keys,
        )

    def create_template_tx(
        self,
        signature: str,
        slot: int,
        block_time: int,
        template: str,
        creator: str,
        title: str,
        description_hash: str,
        template_index: int = 0,
    ) -> dict[str, Any]:
        """带 create_template 指令和 TemplateCreated 事件的交易"""
        platform = self.pubkey(250)
        account_keys = [creator, template, self.program_id, platform, SYSTEM_PROGRAM_ID]
        ix = {
            "programIdIndex": 2,
            "accounts": [1, 3, 0, 4],
            "data": base58.b58encode(
                self.create_template_ix_data(title, description_hash)
            ).decode("ascii"),
        }
        log_lines = self.logs(
            self.program_data(
                "TemplateCreated",
                template=template,
                creator=creator,
                template_index=template_index,
                category=0,
            )
        )
        return self.raw_tx(
            signature,
            slot,
            block_time,
            log_lines,
            instructions=[ix],
            account_keys=account_keys,
        )

    def create_task_from_template_tx(
        self,
        signature: str,
        slot: int,
        block_time: int,
        task: str,
        creator: str,
        template: str,
        task_index: int = 0,
        bounty: int = 1_000_000,
        deadline: int = 1_900_000_000,
    ) -> dict[str, Any]:
        """带 create_task_from_template 指令和 TaskCreated 事件的交易"""
        counter, platform = self.pubkey(251), self.pubkey(250)
        account_keys = [
            creator,
            task,
            self.program_id,
            counter,
            template,
            platform,
            SYSTEM_PROGRAM_ID,
        ]
        ix = {
            "programIdIndex": 2,
            # task, creator_counter, template, platform, creator, system_program
            "accounts": [1, 3, 4, 5, 0, 6],
            "data": base58.b58encode(
                self.create_task_from_template_ix_data(bounty, deadline, task_index)
            ).decode("ascii"),
        }
        log_lines = self.logs(
            self.program_data(
                "TaskCreated",
                task=task,
                creator=creator,
                task_index=task_index,
                bounty_lamports=bounty,
                deadline=deadline,
            )
        )
        return self.raw_tx(
            signature,
            slot,
            block_time,
            log_lines,
            instructions=[ix],
            account_keys=account_keys,
        )


@pytest.fixture
def chain() -> ChainBuilder:
    """链上数据构造工具"""
    return ChainBuilder()


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator:
    """提供已初始化的临时 StoreGroup"""
    from verbitto.core.store import create_store_group

    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.conn.close()
