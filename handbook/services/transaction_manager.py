"""트랜잭션 오케스트레이터 — 다단계 트랜잭션, 배치 삽입, 안전 업데이트.

Transaction orchestrator.

``execute_complex_transaction`` runs an ordered list of named steps on one
connection inside one transaction. Each step is a ``(forward, backward)``
pair: when step *i* fails, the backward actions of steps ``i-1 .. 0`` run in
that order, each receiving the results accumulated up to and including its
own step, then the transaction is rolled back and a ``TransactionStepError``
naming the step is raised. A failing backward action is logged and the
remaining ones still run.

Deadlock / lock-timeout errors restart the whole step list (up to
``max_retries`` times, exponential backoff). The timeout is cooperative: it
is checked between steps and before commit; a running step is never
interrupted.

``execute_batch_insert`` commits per chunk, so partial success is a normal
outcome and is reported in ``BatchInsertOutcome``. ``execute_safe_update``
counts the target rows first and refuses before any mutation when the
count is over the cap.
"""

import asyncio
import inspect
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Literal

import structlog
from pydantic import BaseModel

from handbook.config import settings
from handbook.database import GatewayConnection, QueryGateway
from handbook.services.performance_tracker import PerformanceTracker
from handbook.utils.exceptions import (
    CapacityExceededError,
    DataAccessError,
    DeadlockRetryExhausted,
    TransactionStepError,
    TransactionTimeoutError,
    ValidationError,
)
from handbook.utils.pagination import extract_count, is_safe_identifier

logger = structlog.get_logger(__name__)

IsolationLevel = Literal["READ UNCOMMITTED", "READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"]

# 데드락/락 타임아웃 판별 코드 — Deadlock and lock-timeout error codes
_DEADLOCK_SQLSTATES: frozenset[str] = frozenset({"40P01", "40001", "55P03"})
_DEADLOCK_MYSQL_CODES: frozenset[int] = frozenset({1205, 1213})
_DEADLOCK_MESSAGES: tuple[str, ...] = ("deadlock", "lock wait timeout", "database is locked")


class TransactionStep(BaseModel):
    """트랜잭션 단계 — 정방향 작업과 선택적 보상 작업의 쌍.

    A named ``(forward, backward)`` pair.

    Attributes:
        name: 단계 이름 (Step name used in logs and errors)
        operation: ``(conn, prior_results) -> result`` 정방향 작업
        rollback: ``(conn, results_through_this_step) -> None`` 보상 작업 (optional)
    """

    name: str
    operation: Callable[..., Awaitable[Any]]
    rollback: Callable[..., Awaitable[Any]] | None = None


class TransactionOptions(BaseModel):
    """복합 트랜잭션 옵션."""

    timeout_ms: float = settings.TRANSACTION_TIMEOUT_MS
    retry_on_deadlock: bool = True
    max_retries: int = settings.DEADLOCK_MAX_RETRIES
    context: str | None = None
    isolation_level: IsolationLevel | None = None


class BatchError(BaseModel):
    """배치 삽입 실패 항목 — 검증 실패 레코드 또는 실패한 청크 범위."""

    reason: str
    record: Any | None = None
    batch_start: int | None = None
    batch_size: int | None = None


class BatchInsertOutcome(BaseModel):
    """배치 삽입 결과 — ``inserted + failed`` 는 항상 입력 레코드 수와 같음."""

    inserted: int = 0
    failed: int = 0
    errors: list[BatchError] = []


class BatchInsertOptions(BaseModel):
    """배치 삽입 옵션."""

    batch_size: int = settings.BATCH_INSERT_SIZE
    validate_record: Callable[[Any], Any] | None = None
    on_progress: Callable[[int, int], Any] | None = None
    context: str | None = None


class SafeUpdateOptions(BaseModel):
    """안전 업데이트 옵션."""

    create_backup: bool = True
    max_affected_rows: int = settings.SAFE_UPDATE_MAX_ROWS
    context: str | None = None


class SafeUpdatePlan(BaseModel):
    """안전 업데이트 계획 — 사전 COUNT 결과와 허용 한도."""

    expected_affected_rows: int
    max_affected_rows: int
    backup_table_name: str | None = None

    @property
    def within_limit(self) -> bool:
        return self.expected_affected_rows <= self.max_affected_rows


class SafeUpdateResult(BaseModel):
    """안전 업데이트 결과."""

    affected_rows: int
    expected_affected_rows: int
    backup_created: bool = False
    backup_table_name: str | None = None


class ActiveTransaction(BaseModel):
    """진행 중인 오케스트레이션 트랜잭션 정보."""

    id: str
    started_at: datetime
    step_names: list[str]
    context: str | None = None
    duration_ms: float = 0.0


class ActiveTransactionStats(BaseModel):
    count: int
    transactions: list[ActiveTransaction]


def is_deadlock_error(exc: BaseException) -> bool:
    """예외 체인에서 데드락/락 타임아웃 계열 오류를 찾습니다.

    Walk the exception, its driver ``orig`` and its ``__cause__`` chain
    looking for a deadlock or lock-timeout error.
    """
    pending: list[BaseException] = [exc]
    seen: set[int] = set()
    while pending:
        current: BaseException = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))

        # 자체 래퍼 예외는 원인만 따라감 — our own wrappers are only followed, never matched
        if not isinstance(current, DataAccessError):
            for attr in ("sqlstate", "pgcode"):
                if getattr(current, attr, None) in _DEADLOCK_SQLSTATES:
                    return True
            args: tuple[Any, ...] = getattr(current, "args", ())
            if args and isinstance(args[0], int) and args[0] in _DEADLOCK_MYSQL_CODES:
                return True
            message: str = str(current).lower()
            if any(m in message for m in _DEADLOCK_MESSAGES):
                return True

        for nxt in (getattr(current, "orig", None), current.__cause__):
            if isinstance(nxt, BaseException):
                pending.append(nxt)
    return False


class TransactionManager:
    """다단계 트랜잭션, 배치 삽입, 안전 업데이트를 수행하는 오케스트레이터.

    Orchestrates multi-step transactions, chunked batch inserts and guarded
    updates over a query gateway, and keeps a registry of open transactions
    for long-running detection.

    Attributes:
        gateway: 쿼리 실행 게이트웨이 (Query execution gateway)
        tracker: 완료된 트랜잭션 시간을 보고할 추적기 (Optional performance tracker)
    """

    def __init__(
        self,
        gateway: QueryGateway,
        tracker: PerformanceTracker | None = None,
        retry_base_delay: float = 0.1,
        retry_max_delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gateway: QueryGateway = gateway
        self.tracker: PerformanceTracker | None = tracker
        self.retry_base_delay: float = retry_base_delay
        self.retry_max_delay: float = retry_max_delay
        self._clock: Callable[[], float] = clock
        self._active: dict[str, tuple[ActiveTransaction, float]] = {}

    # ------------------------------------------------------------------
    # 복합 트랜잭션 — Multi-step transactions
    # ------------------------------------------------------------------

    async def execute_complex_transaction(
        self,
        steps: Sequence[TransactionStep],
        options: TransactionOptions | None = None,
    ) -> list[Any]:
        """단계 목록을 하나의 트랜잭션으로 실행합니다.

        Run ``steps`` in order inside one transaction on one connection.

        Args:
            steps: 실행할 단계 목록, 순서 유지 (Ordered steps)
            options: 타임아웃, 데드락 재시도, 컨텍스트 (Timeout, retry, context)

        Returns:
            list[Any]: 단계별 결과, 단계 순서대로 (Per-step results in order)

        Raises:
            TransactionStepError: 단계 실패 (A step failed; compensations ran)
            TransactionTimeoutError: 시간 초과 (Time limit exceeded between steps)
            DeadlockRetryExhausted: 재시도 후에도 데드락 (Deadlock after all retries)
            DataAccessError: 연결/커밋 실패 (Connection or commit failure)
        """
        opts: TransactionOptions = options or TransactionOptions()
        transaction_id: str = f"txn_{uuid.uuid4().hex[:12]}"
        started: float = self._clock()
        deadline: float = started + opts.timeout_ms / 1000.0

        self._active[transaction_id] = (
            ActiveTransaction(
                id=transaction_id,
                started_at=datetime.now(timezone.utc),
                step_names=[s.name for s in steps],
                context=opts.context,
            ),
            started,
        )
        logger.info(
            "Starting complex transaction",
            transaction_id=transaction_id,
            step_count=len(steps),
            context=opts.context,
        )

        retries: int = 0
        try:
            while True:
                try:
                    results: list[Any] = await self._run_steps(transaction_id, steps, opts, deadline)
                except Exception as exc:
                    if not (opts.retry_on_deadlock and is_deadlock_error(exc)):
                        raise
                    if retries >= opts.max_retries:
                        logger.error(
                            "Transaction deadlock persisted after retries",
                            transaction_id=transaction_id,
                            attempts=retries + 1,
                        )
                        raise DeadlockRetryExhausted(retries + 1, transaction_id) from exc
                    retries += 1
                    delay: float = min(self.retry_base_delay * (2 ** retries), self.retry_max_delay)
                    logger.warning(
                        "Transaction deadlock detected, retrying",
                        transaction_id=transaction_id,
                        retry=retries,
                        max_retries=opts.max_retries,
                        delay_s=delay,
                    )
                    await asyncio.sleep(delay)
                    continue

                elapsed_ms: float = (self._clock() - started) * 1000
                logger.info(
                    "Complex transaction committed",
                    transaction_id=transaction_id,
                    step_count=len(steps),
                    retries=retries,
                    elapsed_ms=round(elapsed_ms, 2),
                )
                if self.tracker is not None:
                    self.tracker.record_timing(
                        f"transaction:{','.join(s.name for s in steps)}", elapsed_ms
                    )
                return results
        finally:
            self._active.pop(transaction_id, None)

    async def _run_steps(
        self,
        transaction_id: str,
        steps: Sequence[TransactionStep],
        opts: TransactionOptions,
        deadline: float,
    ) -> list[Any]:
        """한 번의 시도 — 연결 획득, 단계 실행, 커밋 또는 롤백."""
        conn: GatewayConnection = await self._acquire(transaction_id)
        results: list[Any] = []
        try:
            if opts.isolation_level:
                await conn.set_isolation_level(opts.isolation_level)
            await conn.begin()

            for index, step in enumerate(steps):
                if self._clock() > deadline:
                    await self._compensate(conn, steps[:index], results, transaction_id)
                    raise TransactionTimeoutError(opts.timeout_ms, transaction_id)

                logger.debug(
                    "Executing transaction step",
                    transaction_id=transaction_id,
                    step=step.name,
                    step_index=index,
                )
                try:
                    result: Any = await step.operation(conn, tuple(results))
                except Exception as exc:
                    logger.error(
                        "Transaction step failed",
                        transaction_id=transaction_id,
                        step=step.name,
                        step_index=index,
                        error=str(exc),
                    )
                    await self._compensate(conn, steps[:index], results, transaction_id)
                    raise TransactionStepError(step.name, index, transaction_id, exc) from exc
                results.append(result)

            if self._clock() > deadline:
                await self._compensate(conn, steps, results, transaction_id)
                raise TransactionTimeoutError(opts.timeout_ms, transaction_id)

            try:
                await conn.commit()
            except Exception as exc:
                raise DataAccessError(
                    "Transaction commit failed",
                    context={"transaction_id": transaction_id},
                ) from exc
            return results
        except Exception:
            await self._rollback(conn, transaction_id)
            raise
        finally:
            await self._release(conn, transaction_id)

    async def _compensate(
        self,
        conn: GatewayConnection,
        completed: Sequence[TransactionStep],
        results: list[Any],
        transaction_id: str,
    ) -> None:
        """완료된 단계의 보상 작업을 역순으로 실행합니다 (실패는 기록 후 계속)."""
        logger.info(
            "Running compensating actions",
            transaction_id=transaction_id,
            completed_steps=len(completed),
        )
        for index in range(len(completed) - 1, -1, -1):
            step: TransactionStep = completed[index]
            if step.rollback is None:
                continue
            try:
                await step.rollback(conn, tuple(results[: index + 1]))
                logger.debug("Compensating action completed", transaction_id=transaction_id, step=step.name)
            except Exception as exc:
                logger.error(
                    "Compensating action failed",
                    transaction_id=transaction_id,
                    step=step.name,
                    step_index=index,
                    error=str(exc),
                )

    async def _acquire(self, transaction_id: str | None = None) -> GatewayConnection:
        try:
            return await self.gateway.acquire_connection()
        except Exception as exc:
            raise DataAccessError(
                "Could not acquire a database connection",
                context={"transaction_id": transaction_id},
            ) from exc

    async def _rollback(self, conn: GatewayConnection, transaction_id: str | None = None) -> None:
        try:
            await conn.rollback()
            logger.debug("Transaction rolled back", transaction_id=transaction_id)
        except Exception as exc:
            logger.error("Error during transaction rollback", transaction_id=transaction_id, error=str(exc))

    async def _release(self, conn: GatewayConnection, transaction_id: str | None = None) -> None:
        try:
            await conn.release()
        except Exception as exc:
            logger.error("Error releasing transaction connection", transaction_id=transaction_id, error=str(exc))

    # ------------------------------------------------------------------
    # 배치 삽입 — Chunked batch insert
    # ------------------------------------------------------------------

    async def execute_batch_insert(
        self,
        table: str,
        records: Sequence[Mapping[str, Any]],
        options: BatchInsertOptions | None = None,
    ) -> BatchInsertOutcome:
        """레코드를 청크 단위 트랜잭션으로 삽입합니다.

        Insert records in chunks, one transaction per chunk. Records rejected
        by ``validate_record`` are counted as failed and never sent to SQL;
        a failing chunk is recorded and the remaining chunks still run.

        Raises:
            ValidationError: 잘못된 테이블 이름 또는 batch_size (Bad table name or batch size)
        """
        opts: BatchInsertOptions = options or BatchInsertOptions()
        if not is_safe_identifier(table):
            raise ValidationError(f"Invalid table name '{table}'", field="table")
        if opts.batch_size < 1:
            raise ValidationError("batch_size must be >= 1", field="batch_size")

        outcome: BatchInsertOutcome = BatchInsertOutcome()
        if not records:
            return outcome

        valid: list[Mapping[str, Any]] = []
        for record in records:
            reason: str | None = None
            if opts.validate_record is not None:
                try:
                    if not opts.validate_record(record):
                        reason = "Validation failed"
                except Exception as exc:
                    reason = f"Validation failed: {exc}"
            if reason is not None:
                outcome.failed += 1
                outcome.errors.append(BatchError(record=dict(record), reason=reason))
                continue
            valid.append(record)

        logger.info(
            "Starting batch insert",
            table=table,
            total_records=len(records),
            valid_records=len(valid),
            batch_size=opts.batch_size,
            context=opts.context,
        )

        for start in range(0, len(valid), opts.batch_size):
            chunk: list[Mapping[str, Any]] = valid[start:start + opts.batch_size]
            try:
                await self._insert_chunk(table, chunk)
            except Exception as exc:
                logger.error(
                    "Batch insert chunk failed",
                    table=table,
                    batch_start=start,
                    batch_size=len(chunk),
                    error=str(exc),
                )
                outcome.failed += len(chunk)
                outcome.errors.append(
                    BatchError(batch_start=start, batch_size=len(chunk), reason=str(exc))
                )
                continue

            outcome.inserted += len(chunk)
            if opts.on_progress is not None:
                try:
                    progress = opts.on_progress(outcome.inserted, len(valid))
                    if inspect.isawaitable(progress):
                        await progress
                except Exception as exc:
                    # 콜백 오류는 기록만 — callback errors are logged, not raised
                    logger.error(
                        "Batch insert progress callback failed",
                        table=table,
                        inserted=outcome.inserted,
                        error=str(exc),
                    )

        logger.info(
            "Batch insert completed",
            table=table,
            inserted=outcome.inserted,
            failed=outcome.failed,
            error_count=len(outcome.errors),
            context=opts.context,
        )
        return outcome

    async def _insert_chunk(self, table: str, chunk: Sequence[Mapping[str, Any]]) -> None:
        # 컬럼 목록은 청크의 첫 레코드 기준 — columns come from the chunk's first record
        columns: list[str] = list(chunk[0].keys())
        unsafe: list[str] = [c for c in columns if not is_safe_identifier(c)]
        if not columns or unsafe:
            raise ValidationError(f"Invalid column names {unsafe or columns}", field="columns")

        params: dict[str, Any] = {}
        rows: list[str] = []
        for r, record in enumerate(chunk):
            names: list[str] = []
            for c, column in enumerate(columns):
                name: str = f"p{r}_{c}"
                params[name] = record.get(column)
                names.append(f":{name}")
            rows.append(f"({', '.join(names)})")
        sql: str = f"INSERT INTO {table} ({', '.join(columns)}) VALUES {', '.join(rows)}"

        conn: GatewayConnection = await self._acquire()
        try:
            await conn.begin()
            await conn.execute(sql, params)
            await conn.commit()
        except Exception:
            await self._rollback(conn)
            raise
        finally:
            await self._release(conn)

    # ------------------------------------------------------------------
    # 안전 업데이트 — Guarded update
    # ------------------------------------------------------------------

    async def execute_safe_update(
        self,
        table: str,
        set_clause: str,
        set_params: Mapping[str, Any] | None,
        where_clause: str,
        where_params: Mapping[str, Any] | None,
        options: SafeUpdateOptions | None = None,
    ) -> SafeUpdateResult:
        """영향 행 수를 먼저 확인한 뒤 업데이트합니다.

        Count the target rows, refuse when over the cap, optionally copy them
        into a timestamped backup table, then update. All of it runs in one
        transaction.

        Raises:
            ValidationError: 잘못된 테이블/빈 조건/파라미터 충돌 (Bad input, before I/O)
            CapacityExceededError: 행 수 초과, 변경 없음 (Over the cap, nothing mutated)
            DataAccessError: 실행 실패 (Execution failure)
        """
        opts: SafeUpdateOptions = options or SafeUpdateOptions()
        if not is_safe_identifier(table):
            raise ValidationError(f"Invalid table name '{table}'", field="table")
        if not set_clause.strip():
            raise ValidationError("set_clause must not be empty", field="set_clause")
        if not where_clause.strip():
            raise ValidationError("where_clause must not be empty", field="where_clause")

        set_values: dict[str, Any] = dict(set_params or {})
        where_values: dict[str, Any] = dict(where_params or {})
        clashes: list[str] = [k for k in set_values if k in where_values and set_values[k] != where_values[k]]
        if clashes:
            raise ValidationError(f"Conflicting parameter names {clashes}", field="params")

        conn: GatewayConnection = await self._acquire()
        try:
            await conn.begin()

            counted = await conn.execute(
                f"SELECT COUNT(*) AS count FROM {table} WHERE {where_clause}", where_values
            )
            plan: SafeUpdatePlan = SafeUpdatePlan(
                expected_affected_rows=extract_count(counted.rows),
                max_affected_rows=opts.max_affected_rows,
            )
            if not plan.within_limit:
                logger.warning(
                    "Safe update refused",
                    table=table,
                    affected_rows=plan.expected_affected_rows,
                    max_affected_rows=plan.max_affected_rows,
                    context=opts.context,
                )
                raise CapacityExceededError(table, plan.expected_affected_rows, plan.max_affected_rows)

            if opts.create_backup and plan.expected_affected_rows > 0:
                stamp: str = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
                plan.backup_table_name = f"{table}_backup_{stamp}"
                await conn.execute(
                    f"CREATE TABLE {plan.backup_table_name} AS SELECT * FROM {table} WHERE {where_clause}",
                    where_values,
                )
                logger.info(
                    "Backup table created for safe update",
                    table=table,
                    backup_table=plan.backup_table_name,
                    row_count=plan.expected_affected_rows,
                    context=opts.context,
                )

            updated = await conn.execute(
                f"UPDATE {table} SET {set_clause} WHERE {where_clause}",
                {**where_values, **set_values},
            )
            await conn.commit()
        except (CapacityExceededError, ValidationError):
            await self._rollback(conn)
            raise
        except Exception as exc:
            await self._rollback(conn)
            raise DataAccessError(
                "Safe update failed", context={"table": table, "context": opts.context}
            ) from exc
        finally:
            await self._release(conn)

        logger.info(
            "Safe update completed",
            table=table,
            expected_rows=plan.expected_affected_rows,
            affected_rows=updated.rowcount,
            backup_created=plan.backup_table_name is not None,
            context=opts.context,
        )
        return SafeUpdateResult(
            affected_rows=updated.rowcount,
            expected_affected_rows=plan.expected_affected_rows,
            backup_created=plan.backup_table_name is not None,
            backup_table_name=plan.backup_table_name,
        )

    # ------------------------------------------------------------------
    # 진행 중 트랜잭션 — Active transaction registry
    # ------------------------------------------------------------------

    def get_active_transaction_stats(self) -> ActiveTransactionStats:
        """진행 중인 트랜잭션 목록과 경과 시간."""
        now: float = self._clock()
        transactions: list[ActiveTransaction] = [
            info.model_copy(update={"duration_ms": round((now - started) * 1000, 2)})
            for info, started in list(self._active.values())
        ]
        return ActiveTransactionStats(count=len(transactions), transactions=transactions)

    def check_long_running_transactions(
        self, threshold_ms: float = settings.LONG_RUNNING_TRANSACTION_MS
    ) -> list[ActiveTransaction]:
        """기준 시간을 넘긴 트랜잭션을 경고로 기록합니다 (취소하지 않음)."""
        long_running: list[ActiveTransaction] = [
            t for t in self.get_active_transaction_stats().transactions if t.duration_ms > threshold_ms
        ]
        if long_running:
            logger.warning(
                "Long-running transactions detected",
                count=len(long_running),
                threshold_ms=threshold_ms,
                transactions=[t.model_dump(mode="json") for t in long_running],
            )
        return long_running

