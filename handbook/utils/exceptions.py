"""데이터 접근 계층 예외 클래스 모듈.

Data-access exception classes module.
Provides pre-configured HTTPException subclasses for the failure modes of
the query engine, the optimizer and the transaction orchestrator, so that
errors raised deep in a repository surface with a sensible status code
without any translation in the API layer.

Usage:
    from handbook.utils.exceptions import DataAccessError, ValidationError
    raise ValidationError("limit must be between 1 and 100", field="limit")
    raise DataAccessError("Failed to fetch paginated results")
"""

from typing import Any

from fastapi import HTTPException, status


class DataAccessError(HTTPException):
    """500 쿼리 실행 실패 예외.

    500 query execution failure.
    Raised when the gateway fails to run a statement. The original driver
    exception is chained via ``raise ... from exc``; this layer never retries it.

    Args:
        detail: 오류 메시지 (Error message, default: "Query failed")
        context: 쿼리 형태 등 추가 정보 (Extra diagnostic context, e.g. query shape)
    """

    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        detail: str = "Query failed",
        context: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail=detail,
        )
        self.context: dict[str, Any] = context or {}


class ValidationError(HTTPException):
    """400 잘못된 페이지네이션/검색 입력 예외.

    400 Bad pagination or search input.
    Always raised before any SQL is built or any I/O is attempted.

    Args:
        detail: 오류 메시지 (Error message)
        field: 문제가 된 입력 필드 이름 (Name of the offending input field)
    """

    def __init__(self, detail: str = "Invalid request", field: str | None = None) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
        self.field: str | None = field


class NotFoundError(HTTPException):
    """404 Not Found 예외 — 요청한 레코드를 찾을 수 없을 때 사용.

    404 Not Found exception.
    Raised when a requested record (character, swimsuit, document, etc.) does not exist.
    """

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class TransactionStepError(DataAccessError):
    """트랜잭션 단계 실패 예외 — 보상 롤백을 유발한 단계 정보를 담음.

    Failure of a named step inside an orchestrated transaction.
    Carries the step name and zero-based index; the original error is the
    ``__cause__``.
    """

    def __init__(
        self,
        step_name: str,
        step_index: int,
        transaction_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            detail=f"Transaction failed at step '{step_name}' (index {step_index})",
            context={
                "step_name": step_name,
                "step_index": step_index,
                "transaction_id": transaction_id,
                "cause": str(cause) if cause is not None else None,
            },
        )
        self.step_name: str = step_name
        self.step_index: int = step_index
        self.transaction_id: str | None = transaction_id


class TransactionTimeoutError(DataAccessError):
    """504 트랜잭션 타임아웃 예외 (협력적 타임아웃).

    Raised when an orchestrated transaction exceeds its wall-time limit.
    The check happens between steps; a running step is never interrupted.
    """

    status_code_default: int = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, timeout_ms: float, transaction_id: str | None = None) -> None:
        super().__init__(
            detail=f"Transaction exceeded timeout of {timeout_ms:g}ms",
            context={"timeout_ms": timeout_ms, "transaction_id": transaction_id},
        )
        self.timeout_ms: float = timeout_ms


class DeadlockRetryExhausted(DataAccessError):
    """503 데드락 재시도 소진 예외.

    Raised when a transaction kept hitting deadlock / lock-timeout errors
    after ``max_retries`` retries.
    """

    status_code_default: int = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, attempts: int, transaction_id: str | None = None) -> None:
        super().__init__(
            detail=f"Transaction deadlocked after {attempts} attempts",
            context={"attempts": attempts, "transaction_id": transaction_id},
        )
        self.attempts: int = attempts


class CapacityExceededError(HTTPException):
    """409 안전 업데이트 행 수 초과 예외.

    Raised when a safe update would touch more rows than allowed.
    No mutation has been issued when this is raised.
    """

    def __init__(self, table: str, affected_rows: int, max_affected_rows: int) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Update on {table} would affect {affected_rows} rows, "
                f"which exceeds the maximum of {max_affected_rows}"
            ),
        )
        self.table: str = table
        self.affected_rows: int = affected_rows
        self.max_affected_rows: int = max_affected_rows
