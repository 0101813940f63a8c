"""Observer hook sets and in-memory observer records."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from hostkit.core.errors import ObserveError

ObserverKind = Literal["function", "property", "file"]

HOOK_NAMES = ("before", "after", "error", "on_change")
_HOOK_SPELLINGS = {"onChange": "on_change"}


@dataclass(frozen=True)
class Hooks:
    """Capability set supplied to ``observe``.

    Functions need at least one of ``before``/``after``/``error``; properties
    and files need ``on_change``.
    """

    before: Callable[..., Any] | None = None
    after: Callable[..., Any] | None = None
    error: Callable[..., Any] | None = None
    on_change: Callable[..., Any] | None = None

    @classmethod
    def coerce(
        cls,
        hooks: Hooks | Mapping[str, Any] | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> Hooks:
        """Build a Hooks from a Hooks, a mapping and/or keyword hooks.

        ``onChange`` is accepted as a spelling of ``on_change``.

        Raises:
            ObserveError: If an unknown hook name is supplied.
        """
        merged: dict[str, Any] = {}
        if isinstance(hooks, Hooks):
            merged.update({name: getattr(hooks, name) for name in hooks.supplied()})
        elif hooks is not None:
            merged.update(hooks)
        merged.update(extra or {})

        normalized = {_HOOK_SPELLINGS.get(k, k): v for k, v in merged.items() if v is not None}
        unknown = [k for k in normalized if k not in HOOK_NAMES]
        if unknown:
            raise ObserveError.unknown_hook(unknown)
        return cls(**normalized)

    def supplied(self) -> list[str]:
        return [name for name in HOOK_NAMES if getattr(self, name) is not None]

    @property
    def has_call_hooks(self) -> bool:
        return any((self.before, self.after, self.error))


@dataclass
class ObserverRecord:
    """An active interception and what it takes to undo it."""

    path: str
    kind: ObserverKind
    hooks: Hooks
    restore_state: Any
    pattern: str | None = None
    task: asyncio.Task[None] | None = field(default=None, repr=False)


@dataclass(frozen=True)
class ObserverSummary:
    path: str
    kind: ObserverKind
    hooks: tuple[str, ...]
    pattern: str | None = None

    @classmethod
    def from_record(cls, record: ObserverRecord) -> ObserverSummary:
        return cls(
            path=record.path,
            kind=record.kind,
            hooks=tuple(record.hooks.supplied()),
            pattern=record.pattern,
        )
