from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")

PARENT_NOT_FOUND = "parent_not_found"
NODE_NOT_FOUND = "node_not_found"
INVALID_MOVE = "invalid_move"
INVALID_SUBTEXT = "invalid_subtext"

_USER_SAFE_MESSAGES = {
    PARENT_NOT_FOUND: "The selected parent node was not found.",
    NODE_NOT_FOUND: "The selected node was not found.",
    INVALID_MOVE: "The requested move is not valid for this protocol node.",
    INVALID_SUBTEXT: "SubText value is required.",
}
_FALLBACK_USER_MESSAGE = "Unable to apply protocol change."


@dataclass(frozen=True)
class ProtocolResult(Generic[T]):
    """Success value or (error_code, error_message) from a protocol command or query."""

    is_success: bool
    _value: Any = None
    error_code: str = ""
    error_message: str = ""

    @classmethod
    def success(cls, value: T) -> "ProtocolResult[T]":
        return cls(is_success=True, _value=value)

    @classmethod
    def failure(cls, error_code: str, error_message: str) -> "ProtocolResult[T]":
        return cls(is_success=False, error_code=error_code or "", error_message=error_message or "")

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @property
    def value(self) -> T:
        if not self.is_success:
            raise RuntimeError("Cannot access value for a failed result.")
        return self._value

    def map(self, mapper: Callable[[T], U]) -> "ProtocolResult[U]":
        if self.is_failure:
            return ProtocolResult.failure(self.error_code, self.error_message)
        return ProtocolResult.success(mapper(self._value))

    def bind(self, binder: Callable[[T], "ProtocolResult[U]"]) -> "ProtocolResult[U]":
        if self.is_failure:
            return ProtocolResult.failure(self.error_code, self.error_message)
        return binder(self._value)

    def tap(self, action: Callable[[T], Any]) -> "ProtocolResult[T]":
        if self.is_success:
            action(self._value)
        return self


def to_user_safe_message(result: ProtocolResult[Any]) -> str:
    if result.is_success:
        return ""
    return _USER_SAFE_MESSAGES.get(result.error_code, _FALLBACK_USER_MESSAGE)
