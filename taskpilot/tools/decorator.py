"""
@tool decorator: turn a ``str -> str`` function into a :class:`Tool`.

Usage::

    from taskpilot.tools import tool

    @tool(tags=["code", "data"])
    async def calculator(expression: str) -> str:
        \"\"\"Evaluate an arithmetic expression.\"\"\"
        ...

    # calculator is now a Tool instance
    # calculator.name == "calculator"
    # calculator.capability_tags == frozenset({"code", "data"})
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Iterable, Optional

from .models import Tool


def _first_docstring_line(func: Callable) -> str:
    doc = inspect.getdoc(func) or ""
    return doc.strip().splitlines()[0] if doc.strip() else ""


def _check_signature(func: Callable) -> None:
    params = [
        p for p in inspect.signature(func).parameters.values()
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    if len(params) != 1:
        raise TypeError(
            f"@tool function '{func.__name__}' must take exactly one positional "
            f"input argument, got {len(params)}"
        )


def tool(
    func: Optional[Callable] = None,
    *,
    tags: Iterable[str] = (),
    name: Optional[str] = None,
    description: Optional[str] = None,
    provider_id: str = "builtin",
) -> Any:
    """Decorator that converts a single-input function into a :class:`Tool`.

    Supports both bare ``@tool`` and parameterised ``@tool(tags=[...])``
    usage. The decorated name is replaced by a ``Tool`` instance.
    """

    def decorator(fn: Callable) -> Tool:
        _check_signature(fn)
        return Tool(
            name=name or fn.__name__,
            executor=fn,
            capability_tags=frozenset(tags),
            description=description if description is not None else _first_docstring_line(fn),
            provider_id=provider_id,
        )

    if func is not None:
        return decorator(func)
    return decorator
