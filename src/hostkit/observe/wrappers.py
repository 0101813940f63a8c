"""Call-intercepting wrappers for observed functions."""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable
from typing import Any

from hostkit.observe.hooks import Hooks


def _replace_args(replacement: Any, args: tuple[Any, ...]) -> tuple[Any, ...]:
    if replacement is None:
        return args
    if isinstance(replacement, tuple | list):
        return tuple(replacement)
    return (replacement,)


async def settle(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def wrap_function(original: Callable[..., Any], path: str, hooks: Hooks) -> Callable[..., Any]:
    """Wrap ``original`` so every call runs through ``hooks``.

    ``before(args, path)`` may return replacement positional arguments.
    ``after(result, args, path)`` runs on success; an exception from the call
    or from ``after`` is passed to ``error(exc, args, path)`` and re-raised.
    Coroutine functions get a coroutine wrapper that awaits hook results.
    """
    if inspect.iscoroutinefunction(original):

        @functools.wraps(original)
        async def async_observed(*args: Any, **kwargs: Any) -> Any:
            if hooks.before is not None:
                args = _replace_args(await settle(hooks.before(args, path)), args)
            try:
                result = await original(*args, **kwargs)
                if hooks.after is not None:
                    await settle(hooks.after(result, args, path))
            except Exception as e:
                if hooks.error is not None:
                    await settle(hooks.error(e, args, path))
                raise
            return result

        return async_observed

    @functools.wraps(original)
    def observed(*args: Any, **kwargs: Any) -> Any:
        if hooks.before is not None:
            args = _replace_args(hooks.before(args, path), args)
        try:
            result = original(*args, **kwargs)
            if hooks.after is not None:
                hooks.after(result, args, path)
        except Exception as e:
            if hooks.error is not None:
                hooks.error(e, args, path)
            raise
        return result

    return observed
