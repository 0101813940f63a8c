"""Isolated materialization of persisted code units.

Each load produces a brand-new module object with its own globals, so units
never see the caller's state or each other's. The module is registered in
``sys.modules`` only while its body executes (dataclasses, typing and pickle
look their defining module up there) and is removed afterwards.
"""

from __future__ import annotations

import importlib.util
import itertools
import sys
from pathlib import Path
from types import ModuleType

import structlog

from hostkit.config.constants import UNIT_MODULE_PREFIX

logger = structlog.get_logger()

_load_counter = itertools.count(1)


def _module_name(key: str) -> str:
    safe = "".join(ch if ch.isalnum() else "_" for ch in key)
    return f"{UNIT_MODULE_PREFIX}{safe}_{next(_load_counter)}"


class UnitLoader:
    """Compiles and executes unit source in a fresh module."""

    def materialize(self, key: str, source: str, origin: Path) -> ModuleType:
        """Execute ``source`` as a new module and return it.

        Exceptions raised by compilation or by the unit's body propagate
        unchanged; callers wrap them.
        """
        module_name = _module_name(key)
        spec = importlib.util.spec_from_loader(module_name, loader=None, origin=str(origin))
        if spec is None:  # pragma: no cover - spec_from_loader always returns a spec here
            raise ImportError(f"cannot create module spec for {key!r}")
        module = importlib.util.module_from_spec(spec)
        module.__file__ = str(origin)

        code = compile(source, str(origin), "exec")
        sys.modules[module_name] = module
        try:
            exec(code, module.__dict__)  # noqa: S102
        finally:
            sys.modules.pop(module_name, None)

        logger.debug("unit_materialized", key=key, module=module_name)
        return module
