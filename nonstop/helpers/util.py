"""Various (server-only) tools and helpers."""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Any, Concatenate, ParamSpec, TypeVar

_T = TypeVar("_T")
_R = TypeVar("_R")
_P = ParamSpec("_P")
_SelfT = TypeVar("_SelfT")


def shuffled(items: Sequence[_T]) -> list[_T]:
    """Return a shuffled copy of the given items."""
    result = list(items)
    random.shuffle(result)
    return result


def random_tag(length: int = 6) -> str:
    """Return a short random lowercase alphanumeric tag."""
    return "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=length))


def overlaps(first: str, second: str) -> bool:
    """Return True if one (case-insensitive, non-empty) string contains the other."""
    first = first.strip().lower()
    second = second.strip().lower()
    if not first or not second:
        return False
    return first in second or second in first


async def get_package_version(pkg_name: str) -> str | None:
    """
    Return the version of an installed (python) package.

    Will return None if the package is not found.
    """
    try:
        return await asyncio.to_thread(pkg_version, pkg_name)
    except PackageNotFoundError:
        return None


def lock(
    func: Callable[Concatenate[_SelfT, _P], Awaitable[_R]],
) -> Callable[Concatenate[_SelfT, _P], Coroutine[Any, Any, _R]]:
    """Call async function using a per-instance lock."""

    @functools.wraps(func)
    async def wrapper(self: _SelfT, *args: _P.args, **kwargs: _P.kwargs) -> _R:
        """Call async function using the lock."""
        lock_attr_name = f"__{func.__name__}_lock"
        if not (func_lock := getattr(self, lock_attr_name, None)):
            func_lock = asyncio.Lock()
            setattr(self, lock_attr_name, func_lock)
        async with func_lock:
            return await func(self, *args, **kwargs)

    return wrapper
