"""Typed success/failure result returned by application services.

Expected business failures travel back to the caller as data instead of
exceptions.  ``service_result`` is the boundary that does the translation:
it must wrap *outside* ``transaction.atomic`` so the rollback has already
happened when the failure is returned.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog

from shared.domain.exceptions import DomainError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    code: Optional[str] = None
    message: str = ""

    @classmethod
    def success(cls, value: T) -> ServiceResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, code: str, message: str) -> ServiceResult[T]:
        return cls(ok=False, code=code, message=message)

    def unwrap(self) -> T:
        """Return the value or raise ``ValueError`` for a failed result."""
        if not self.ok:
            raise ValueError(f"{self.code}: {self.message}")
        return self.value  # type: ignore[return-value]


def service_result(func: Callable[..., T]) -> Callable[..., ServiceResult[T]]:
    """Convert domain errors into failed results, log anything unexpected."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> ServiceResult[T]:
        try:
            return ServiceResult.success(func(*args, **kwargs))
        except DomainError as exc:
            logger.info(
                "service.business_failure",
                operation=func.__qualname__,
                code=exc.code,
                error=str(exc),
            )
            return ServiceResult.failure(exc.code, str(exc))
        except Exception:
            logger.exception(
                "service.unexpected_failure",
                operation=func.__qualname__,
                **_context_ids(kwargs),
            )
            return ServiceResult.failure(
                INTERNAL_ERROR, "An unexpected error occurred. Please try again."
            )

    return wrapper


def _context_ids(kwargs: dict[str, Any]) -> dict[str, str]:
    return {key: str(value) for key, value in kwargs.items() if key.endswith("_id")}
