"""BackfillService -- 从 RPC 扫描程序交易历史并摄入事件

流程：
1. 用 before 游标分页拉取签名，直到达到 limit 或没有更多签名
2. 丢弃失败交易，反转为最旧在前
3. 按批并发拉取交易体；单个失败只计入 errors，不中断批次
4. 解析并入库事件，best-effort 写入标题 / 描述哈希
5. 全部批次完成后重建一次 Projection
"""

import asyncio
import time

import structlog
from verbitto.core.config import (
    BACKFILL_DEFAULT_LIMIT,
    BACKFILL_MAX_LIMIT,
    SIGNATURE_BATCH_SIZE,
    TRANSACTION_BATCH_SIZE,
)
from verbitto.core.models import BackfillResult
from verbitto.core.parser import parse_events_from_logs
from verbitto.core.projection import rebuild_historical_tasks
from verbitto.core.store import StoreGroup
from verbitto.ledger import LedgerClient, LedgerError, LedgerTransaction, SignatureInfo

from .ingest_service import publish_deliverables, store_task_data

log = structlog.get_logger()


class BackfillService:
    """RPC backfill 扫描器"""

    def __init__(
        self,
        store_group: StoreGroup,
        ledger_client: LedgerClient,
        program_id: str,
        signature_batch: int = SIGNATURE_BATCH_SIZE,
        tx_batch: int = TRANSACTION_BATCH_SIZE,
        max_limit: int = BACKFILL_MAX_LIMIT,
        default_limit: int = BACKFILL_DEFAULT_LIMIT,
    ) -> None:
        self._stores = store_group
        self._ledger = ledger_client
        self._program_id = program_id
        self._signature_batch = signature_batch
        self._tx_batch = tx_batch
        self._max_limit = max_limit
        self._default_limit = default_limit

    def resolve_limit(self, limit: int | None) -> int:
        """未指定时取默认值，超过上限时截断"""
        if limit is None:
            limit = self._default_limit
        return max(0, min(limit, self._max_limit))

    async def _collect_signatures(
        self,
        limit: int,
        before: str | None,
        result: BackfillResult,
    ) -> list[SignatureInfo]:
        """分页拉取签名（最新在前），每页游标依赖上一页最后一条"""
        signatures: list[SignatureInfo] = []
        cursor = before
        while len(signatures) < limit:
            page_size = min(self._signature_batch, limit - len(signatures))
            try:
                page = await self._ledger.list_program_signatures(
                    self._program_id,
                    page_size,
                    before=cursor,
                )
            except LedgerError as e:
                # 无法继续翻页，用已拿到的签名继续
                result.errors += 1
                log.warning(
                    "backfill_signature_page_failed",
                    before=cursor,
                    collected=len(signatures),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                break

            if not page:
                break
            signatures.extend(page[:limit - len(signatures)])
            cursor = page[-1].signature
        return signatures

    async def _process_transaction(
        self,
        sig: SignatureInfo,
        tx: LedgerTransaction | None,
        result: BackfillResult,
    ) -> None:
        if tx is None or not tx.log_lines:
            return

        result.transactions_fetched += 1

        block_time = tx.block_time if tx.block_time is not None else int(time.time())
        events = parse_events_from_logs(
            tx.log_lines,
            sig.signature,
            tx.slot,
            block_time,
            program_id=self._program_id,
        )
        if events:
            result.events_parsed += len(events)
            result.events_ingested += await self._stores.event_store.ingest_events(events)
            await publish_deliverables(self._stores.deliverable_store, events)

        await store_task_data(self._stores.task_data_store, tx.raw, self._program_id)

    async def backfill(
        self,
        limit: int | None = None,
        before: str | None = None,
    ) -> BackfillResult:
        """执行一次 backfill

        Args:
            limit: 最多扫描的签名数（默认 500，上限 2000）
            before: 从该签名之前开始扫描

        Returns:
            累计计数；单个签名 / 交易的失败只体现在 errors 中

        Raises:
            持久化失败时向上抛出
        """
        start_time = time.monotonic()
        limit = self.resolve_limit(limit)
        result = BackfillResult()

        await log.ainfo("backfill_started", limit=limit, before=before)

        # 1. 拉取签名
        signatures = await self._collect_signatures(limit, before, result)
        result.signatures_scanned = len(signatures)

        # 2. 丢弃失败交易，反转为最旧在前
        valid = [s for s in signatures if not s.failed]
        valid.reverse()

        # 3. 分批并发拉取交易体
        for i in range(0, len(valid), self._tx_batch):
            batch = valid[i:i + self._tx_batch]
            fetched = await asyncio.gather(
                *(self._ledger.get_transaction(s.signature) for s in batch),
                return_exceptions=True,
            )

            # 4. 按批内顺序解析入库
            for sig, tx in zip(batch, fetched, strict=True):
                if isinstance(tx, BaseException):
                    if not isinstance(tx, Exception):
                        raise tx
                    result.errors += 1
                    log.warning(
                        "backfill_transaction_failed",
                        signature=sig.signature,
                        error=str(tx),
                        error_type=type(tx).__name__,
                    )
                    continue
                await self._process_transaction(sig, tx, result)

        # 5. 重建一次 Projection
        task_count = await rebuild_historical_tasks(self._stores)

        result.duration_ms = int((time.monotonic() - start_time) * 1000)
        await log.ainfo(
            "backfill_completed",
            signatures_scanned=result.signatures_scanned,
            transactions_fetched=result.transactions_fetched,
            events_parsed=result.events_parsed,
            events_ingested=result.events_ingested,
            errors=result.errors,
            historical_tasks=task_count,
            duration_ms=result.duration_ms,
        )
        return result
