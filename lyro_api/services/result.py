from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Failure codes used by the AI gateway.
TRANSIENT = "transient"
PERMANENT = "permanent"
EMPTY = "empty"


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 1

    @staticmethod
    def success(value: T, attempts: int = 1) -> "Result[T]":
        return Result(ok=True, value=value, attempts=attempts)

    @staticmethod
    def failure(error: str, code: str = PERMANENT, attempts: int = 1) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code, attempts=attempts)

    @property
    def retryable(self) -> bool:
        return not self.ok and self.error_code == TRANSIENT
