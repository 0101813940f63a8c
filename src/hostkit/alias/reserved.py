"""Names an alias may never take.

Aliases are installed straight into the interactive globals, so a colliding
name would shadow the namespace root, a language keyword, a built-in type or
one of the evaluation primitives the session itself depends on.
"""

from __future__ import annotations

import keyword
from collections.abc import Iterable

BUILTIN_TYPE_NAMES = frozenset(
    {
        "object",
        "type",
        "bool",
        "int",
        "float",
        "complex",
        "str",
        "bytes",
        "bytearray",
        "memoryview",
        "list",
        "tuple",
        "dict",
        "set",
        "frozenset",
        "range",
        "slice",
        "BaseException",
        "Exception",
    }
)

EVALUATION_NAMES = frozenset(
    {
        "eval",
        "exec",
        "compile",
        "globals",
        "locals",
        "vars",
        "print",
        "help",
        "__builtins__",
        "__import__",
        "__name__",
        "__doc__",
    }
)


def reserved_names(root_name: str, modules_mount: str, extra: Iterable[str] = ()) -> frozenset[str]:
    """The full denylist for a session with the given root and mount names."""
    return frozenset(
        {root_name, modules_mount}
        | set(keyword.kwlist)
        | set(keyword.softkwlist)
        | BUILTIN_TYPE_NAMES
        | EVALUATION_NAMES
        | set(extra)
    )
