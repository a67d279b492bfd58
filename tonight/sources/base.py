"""
Shared helpers for fetchable sources.
"""

from __future__ import annotations

import importlib
import inspect
import re
from typing import Any, Awaitable, Callable, List, Optional

from ..interfaces import Source
from ..models import Event, make_event_id


FetchFn = Callable[[], Awaitable[List[Event]]]

_ISO_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


class CallableSource(Source):
    """Adapts a zero-argument coroutine function to the Source interface."""

    def __init__(self, fn: FetchFn, name: Optional[str] = None):
        if not callable(fn):
            raise TypeError(f"{fn!r} is not callable")
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "callable")

    @property
    def name(self) -> str:
        return self._name

    async def fetch(self) -> List[Event]:
        result = self._fn()
        if inspect.isawaitable(result):
            result = await result
        return list(result or [])

    @classmethod
    def from_target(cls, *, label: str, target: str, http: Any = None) -> "CallableSource":
        """Build from a ``package.module:function`` reference in config."""
        return cls(load_target(target), name=label)


def load_target(target: str) -> Callable[..., Any]:
    """Import ``package.module:attribute`` and return the attribute.

    Raises:
        TypeError: If the reference is malformed or does not resolve.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise TypeError(f"target must look like 'package.module:function', got '{target}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise TypeError(f"cannot import '{module_name}': {e}") from e
    fn = getattr(module, attr, None)
    if fn is None:
        raise TypeError(f"'{module_name}' has no attribute '{attr}'")
    return fn


def build_event(source_name: str, **attrs: Any) -> Event:
    """Create an Event with a stable id derived from name, venue and date.

    ``None`` attributes fall back to the model defaults. A missing
    ``date_local`` is taken from the leading date of ``start_time_local``.
    """
    attrs = {key: value for key, value in attrs.items() if value is not None}
    if "date_local" not in attrs:
        match = _ISO_DATE.match(str(attrs.get("start_time_local", "")))
        if match:
            attrs["date_local"] = match.group(1)
    attrs["venue_name"] = attrs.get("venue_name") or "TBA"
    event_id = make_event_id(attrs.get("name"), attrs["venue_name"], attrs.get("date_local"))
    return Event(id=event_id, source_name=source_name, **attrs)
