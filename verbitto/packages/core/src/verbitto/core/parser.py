"""事件解析模块 -- 从程序日志 / Helius 推送载荷中解码 Anchor 事件

Anchor 通过 `Program data: <base64>` 日志行发出事件，
载荷为 8 字节判别符（sha256("event:<Name>")[:8]）+ Borsh 序列化字段。

本模块全部为纯函数，不做 I/O：无法识别或解码失败的日志行被跳过，不会抛出异常。
"""

import base64
import binascii
import hashlib
import struct
import time
from collections.abc import Callable, Iterable
from typing import Any

import base58
import structlog

from .config import DEFAULT_PROGRAM_ID
from .models.enums import EventName
from .models.event import RawEvent, make_event_id
from .models.historical_task import TaskData

log = structlog.get_logger()

_PROGRAM_DATA_PREFIX = "Program data: "

# 字段类型 -> (字节长度, 解码函数)
_FieldReader = tuple[int, Callable[[bytes], str]]

_PUBKEY: _FieldReader = (32, lambda b: base58.b58encode(b).decode("ascii"))
_U64: _FieldReader = (8, lambda b: str(struct.unpack("<Q", b)[0]))
_I64: _FieldReader = (8, lambda b: str(struct.unpack("<q", b)[0]))
_U16: _FieldReader = (2, lambda b: str(struct.unpack("<H", b)[0]))
_U8: _FieldReader = (1, lambda b: str(b[0]))
_HASH32: _FieldReader = (32, lambda b: b.hex())

# 事件名 -> 有序字段表（顺序即 Borsh 布局）
EVENT_SCHEMAS: dict[EventName, list[tuple[str, _FieldReader]]] = {
    EventName.PLATFORM_INITIALIZED: [
        ("authority", _PUBKEY),
        ("fee_bps", _U16),
        ("treasury", _PUBKEY),
    ],
    EventName.TASK_CREATED: [
        ("task", _PUBKEY),
        ("creator", _PUBKEY),
        ("task_index", _U64),
        ("bounty_lamports", _U64),
        ("deadline", _I64),
    ],
    EventName.TASK_CLAIMED: [
        ("task", _PUBKEY),
        ("agent", _PUBKEY),
        ("task_index", _U64),
    ],
    EventName.DELIVERABLE_SUBMITTED: [
        ("task", _PUBKEY),
        ("agent", _PUBKEY),
        ("deliverable_hash", _HASH32),
    ],
    EventName.TASK_SETTLED: [
        ("task", _PUBKEY),
        ("agent", _PUBKEY),
        ("payout_lamports", _U64),
        ("fee_lamports", _U64),
    ],
    EventName.SUBMISSION_REJECTED: [
        ("task", _PUBKEY),
        ("agent", _PUBKEY),
        ("reason_hash", _HASH32),
    ],
    EventName.TASK_CANCELLED: [
        ("task", _PUBKEY),
        ("creator", _PUBKEY),
        ("refunded_lamports", _U64),
    ],
    EventName.TASK_EXPIRED: [
        ("task", _PUBKEY),
        ("creator", _PUBKEY),
        ("refunded_lamports", _U64),
    ],
    EventName.TEMPLATE_CREATED: [
        ("template", _PUBKEY),
        ("creator", _PUBKEY),
        ("template_index", _U64),
        ("category", _U8),
    ],
    EventName.DISPUTE_OPENED: [
        ("dispute", _PUBKEY),
        ("task", _PUBKEY),
        ("initiator", _PUBKEY),
        ("reason", _U8),
    ],
    EventName.VOTE_CAST: [
        ("dispute", _PUBKEY),
        ("voter", _PUBKEY),
        ("ruling", _U8),
    ],
    EventName.DISPUTE_RESOLVED: [
        ("dispute", _PUBKEY),
        ("task", _PUBKEY),
        ("ruling", _U8),
        ("total_votes", _U16),
    ],
    EventName.AGENT_REGISTERED: [
        ("agent", _PUBKEY),
        ("profile", _PUBKEY),
    ],
    EventName.AGENT_PROFILE_UPDATED: [
        ("agent", _PUBKEY),
        ("reputation_score", _I64),
        ("tasks_completed", _U64),
    ],
}


def event_discriminator(name: str) -> bytes:
    """Anchor 事件判别符 = sha256("event:<Name>")[:8]"""
    return hashlib.sha256(f"event:{name}".encode()).digest()[:8]


def instruction_discriminator(name: str) -> bytes:
    """Anchor 指令判别符 = sha256("global:<method>")[:8]"""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


_DISCRIMINATORS: dict[bytes, EventName] = {
    event_discriminator(name): name for name in EVENT_SCHEMAS
}

CREATE_TASK_DISCRIMINATOR = instruction_discriminator("create_task")
CREATE_TEMPLATE_DISCRIMINATOR = instruction_discriminator("create_template")
CREATE_TASK_FROM_TEMPLATE_DISCRIMINATOR = instruction_discriminator("create_task_from_template")

# 参数以 title(String) + description_hash([u8;32]) 开头的指令
_TITLED_INSTRUCTIONS = (CREATE_TASK_DISCRIMINATOR, CREATE_TEMPLATE_DISCRIMINATOR)

# create_task_from_template 账户顺序：task, creator_counter, template, ...
_FROM_TEMPLATE_TEMPLATE_ACCOUNT = 2

# 标题长度合法范围（create_task / create_template 参数约束）
_MAX_TITLE_LEN = 64


def decode_event_data(event_name: EventName, body: bytes) -> dict[str, str]:
    """按 schema 解码事件字段（不含判别符）

    Raises:
        ValueError: 载荷长度不足
    """
    data: dict[str, str] = {}
    offset = 0
    for field, (size, reader) in EVENT_SCHEMAS[event_name]:
        chunk = body[offset:offset + size]
        if len(chunk) != size:
            raise ValueError(
                f"{event_name} 载荷过短：字段 {field} 需要 {size} 字节，偏移 {offset}"
            )
        data[field] = reader(chunk)
        offset += size
    return data


def decode_program_data(b64: str) -> tuple[EventName, dict[str, str]] | None:
    """解码一条 Program data 载荷，无法识别时返回 None"""
    try:
        raw = base64.b64decode(b64.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None

    if len(raw) < 8:
        return None

    event_name = _DISCRIMINATORS.get(raw[:8])
    if event_name is None:
        return None

    try:
        return event_name, decode_event_data(event_name, raw[8:])
    except ValueError as e:
        log.warning("event_decode_failed", event_name=str(event_name), error=str(e))
        return None


def parse_events_from_logs(
    log_lines: Iterable[str],
    signature: str,
    slot: int,
    block_time: int,
    program_id: str = DEFAULT_PROGRAM_ID,
) -> list[RawEvent]:
    """从交易日志行中解析本程序发出的事件

    仅处理本程序位于调用栈上时输出的 `Program data:` 行，
    按 `Program <id> invoke [n]` / `Program <id> success|failed` 维护调用栈。

    Args:
        log_lines: 交易 logMessages
        signature: 交易签名
        slot: 交易所在 slot
        block_time: 区块 unix 时间（秒）
        program_id: 被索引的程序地址

    Returns:
        按日志顺序排列的 RawEvent 列表
    """
    events: list[RawEvent] = []
    stack: list[str] = []
    seen: dict[str, int] = {}

    for line in log_lines:
        if not isinstance(line, str):
            continue

        if line.startswith("Program ") and not line.startswith(_PROGRAM_DATA_PREFIX):
            parts = line.split(" ")
            if len(parts) >= 3:
                invoked, action = parts[1], parts[2]
                if action == "invoke":
                    stack.append(invoked)
                    continue
                if action.startswith(("success", "failed")):
                    if stack and stack[-1] == invoked:
                        stack.pop()
                    continue

        if program_id not in stack:
            continue
        if not line.startswith(_PROGRAM_DATA_PREFIX):
            continue

        decoded = decode_program_data(line[len(_PROGRAM_DATA_PREFIX):])
        if decoded is None:
            continue

        event_name, data = decoded
        occurrence = seen.get(event_name, 0)
        seen[event_name] = occurrence + 1

        events.append(
            RawEvent(
                id=make_event_id(signature, event_name, occurrence),
                signature=signature,
                slot=slot,
                block_time=block_time,
                event_name=event_name.value,
                data=data,
                task_address=data.get("task"),
            )
        )

    return events


def _tx_failed(tx: dict[str, Any]) -> bool:
    meta = tx.get("meta")
    if isinstance(meta, dict) and meta.get("err") is not None:
        return True
    inner = tx.get("transaction")
    if isinstance(inner, dict):
        inner_meta = inner.get("meta")
        if isinstance(inner_meta, dict) and inner_meta.get("err") is not None:
            return True
    return tx.get("transactionError") is not None


def _parse_one_transaction(
    tx: Any,
    program_id: str,
    now: int,
) -> list[RawEvent]:
    if not isinstance(tx, dict) or _tx_failed(tx):
        return []

    # raw 格式：meta.logMessages + transaction.signatures[0]
    meta = tx.get("meta")
    if isinstance(meta, dict):
        log_lines = meta.get("logMessages") or []
        signatures = (tx.get("transaction") or {}).get("signatures") or []
        signature = signatures[0] if signatures else ""
        if log_lines and signature:
            return parse_events_from_logs(
                log_lines,
                signature,
                int(tx.get("slot") or 0),
                int(tx.get("blockTime") or now),
                program_id=program_id,
            )

    # enhanced 格式：顶层 signature/timestamp + transaction.meta.logMessages
    signature = tx.get("signature")
    if isinstance(signature, str) and signature:
        inner_meta = (tx.get("transaction") or {}).get("meta") or {}
        log_lines = inner_meta.get("logMessages") or []
        if log_lines:
            return parse_events_from_logs(
                log_lines,
                signature,
                int(tx.get("slot") or 0),
                int(tx.get("timestamp") or now),
                program_id=program_id,
            )

    return []


def parse_helius_payload(
    payload: Any,
    program_id: str = DEFAULT_PROGRAM_ID,
    now: int | None = None,
) -> list[RawEvent]:
    """解析 Helius webhook 载荷（raw 或 enhanced 格式，单笔或批量）

    缺少区块时间时以 now（默认当前时间）代替；meta.err 非空的失败交易被跳过。
    """
    if now is None:
        now = int(time.time())

    if isinstance(payload, dict):
        items = [payload]
    elif isinstance(payload, list):
        items = payload
    else:
        log.warning("helius_payload_invalid", payload_type=type(payload).__name__)
        return []

    events: list[RawEvent] = []
    for item in items:
        try:
            events.extend(_parse_one_transaction(item, program_id, now))
        except (TypeError, ValueError, AttributeError) as e:
            log.warning("helius_tx_parse_failed", error=str(e))
    return events


def _account_keys(tx: dict[str, Any]) -> list[str]:
    """静态 accountKeys + meta.loadedAddresses（v0 交易的 lookup table 地址）"""
    message = (tx.get("transaction") or {}).get("message") or {}
    keys: list[str] = []
    for key in message.get("accountKeys") or []:
        # jsonParsed 编码下为 {"pubkey": ...}
        keys.append(key["pubkey"] if isinstance(key, dict) else key)

    loaded = (tx.get("meta") or {}).get("loadedAddresses") or {}
    keys.extend(loaded.get("writable") or [])
    keys.extend(loaded.get("readonly") or [])
    return keys


def decode_create_task_args(ix_data: bytes) -> TaskData | None:
    """解析 create_task / create_template 指令参数：title(String) + description_hash([u8;32])"""
    if len(ix_data) < 12 or ix_data[:8] not in _TITLED_INSTRUCTIONS:
        return None

    (title_len,) = struct.unpack("<I", ix_data[8:12])
    if title_len == 0 or title_len > _MAX_TITLE_LEN:
        return None

    title_end = 12 + title_len
    if len(ix_data) < title_end + 32:
        return None

    try:
        title = ix_data[12:title_end].decode("utf-8")
    except UnicodeDecodeError:
        return None

    return TaskData(
        title=title,
        description_hash=ix_data[title_end:title_end + 32].hex(),
    )


def _instruction_account(ix: dict[str, Any], keys: list[str], position: int) -> str | None:
    accounts = ix.get("accounts") or []
    if position >= len(accounts):
        return None
    idx = accounts[position]
    if not isinstance(idx, int) or idx >= len(keys):
        return None
    return keys[idx]


def extract_titles_from_tx(
    tx: dict[str, Any],
    program_id: str = DEFAULT_PROGRAM_ID,
) -> dict[str, TaskData]:
    """从交易的创建类指令数据中提取标题和描述哈希

    best-effort：结构不符的交易返回空结果，不抛出异常。
    - create_task：任务 PDA（第一个账户）-> 标题 + 描述哈希
    - create_template：模板 PDA（第一个账户）-> 模板标题 + 描述哈希
    - create_task_from_template：任务 PDA -> 来源模板地址，
      指令参数不含标题，由 Projection 经模板行补全

    Returns:
        地址 -> TaskData
    """
    results: dict[str, TaskData] = {}
    if not isinstance(tx, dict) or _tx_failed(tx):
        return results

    try:
        keys = _account_keys(tx)
        if program_id not in keys:
            return results
        message = (tx.get("transaction") or {}).get("message") or {}
        instructions = message.get("instructions") or []
    except (TypeError, AttributeError, KeyError):
        return results

    for ix in instructions:
        if not isinstance(ix, dict):
            continue
        idx = ix.get("programIdIndex")
        if not isinstance(idx, int) or idx >= len(keys) or keys[idx] != program_id:
            continue

        try:
            ix_data = base58.b58decode(ix.get("data") or "")
        except ValueError:
            continue

        target = _instruction_account(ix, keys, 0)
        if target is None:
            continue

        if ix_data[:8] == CREATE_TASK_FROM_TEMPLATE_DISCRIMINATOR:
            template = _instruction_account(ix, keys, _FROM_TEMPLATE_TEMPLATE_ACCOUNT)
            if template is not None:
                results[target] = TaskData(template_address=template)
            continue

        task_data = decode_create_task_args(ix_data)
        if task_data is not None:
            results[target] = task_data

    return results
