"""Invoke helpers: call sync or async callables uniformly.

Route handlers, config factories, and user callbacks can be ``def`` or
``async def``. Anything that calls user code goes through ``invoke`` so
the sync/async check lives in exactly one place.
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
