"""Values scoped to a task or a call, kept in context variables."""

from __future__ import annotations

import contextvars
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")

_UNSET: Any = object()


class AccessError(LookupError):
    """The task-local value was read without being set."""

    def __init__(self, message: str = "task-local value not set") -> None:
        super().__init__(message)


class ScopeError(RuntimeError):
    """A task-local scope was entered while the value was being read."""

    def __init__(
        self,
        message: str = "cannot enter a task-local scope while the task-local storage is borrowed",
    ) -> None:
        super().__init__(message)


class LocalKey(Generic[T]):
    """A key for a value that is visible only inside a scope.

    The value is never created lazily: it exists only while a
    :meth:`scope` or :meth:`sync_scope` that sets it is running. Each
    thread and each asyncio task sees its own value.
    """

    def __init__(self, name: str = "task_local") -> None:
        self.name = name
        self._value: contextvars.ContextVar[Any] = contextvars.ContextVar(
            f"{name}.value", default=_UNSET
        )
        self._borrowed: contextvars.ContextVar[bool] = contextvars.ContextVar(
            f"{name}.borrowed", default=False
        )

    def __repr__(self) -> str:
        return f"LocalKey({self.name!r})"

    def _enter(self, value: T) -> contextvars.Token[Any]:
        if self._borrowed.get():
            raise ScopeError()
        return self._value.set(value)

    async def scope(self, value: T, awaitable: Awaitable[R]) -> R:
        """Await ``awaitable`` with ``value`` set; the value is removed afterwards.

        Raises :class:`ScopeError` if started inside :meth:`with_` or
        :meth:`try_with` on the same key.
        """
        token = self._enter(value)
        try:
            return await awaitable
        finally:
            self._value.reset(token)

    def sync_scope(self, value: T, f: Callable[[], R]) -> R:
        """Call ``f`` with ``value`` set; the previous value is restored afterwards.

        Raises :class:`ScopeError` if called inside :meth:`with_` or
        :meth:`try_with` on the same key.
        """
        token = self._enter(value)
        try:
            return f()
        finally:
            self._value.reset(token)

    def try_with(self, f: Callable[[T], R]) -> R:
        """Call ``f`` with the current value.

        Raises :class:`AccessError` if no value is set.
        """
        value = self._value.get()
        if value is _UNSET:
            raise AccessError()
        token = self._borrowed.set(True)
        try:
            return f(value)
        finally:
            self._borrowed.reset(token)

    def with_(self, f: Callable[[T], R]) -> R:
        """Call ``f`` with the current value.

        Raises :class:`RuntimeError` if no value is set.
        """
        try:
            return self.try_with(f)
        except AccessError as err:
            raise RuntimeError(
                "cannot access a task-local storage value without setting it first"
            ) from err

    def get(self) -> T:
        """Return the current value; raises :class:`RuntimeError` if none is set."""
        return self.with_(lambda value: value)