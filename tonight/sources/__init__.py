"""
Fetchable source variants and the closed table used to build them from config.
"""

from typing import Any, Callable, Dict, Optional

from ..errors import RegistryError
from ..infra.http import HttpClient
from ..interfaces import Source
from .base import CallableSource, build_event, load_target
from .html_page import HtmlPageSource, extract_ld_events
from .json_feed import JsonFeedSource


SOURCE_KINDS: Dict[str, Callable[..., Source]] = {
    "callable": CallableSource.from_target,
    "json_feed": JsonFeedSource,
    "html_page": HtmlPageSource,
}


def build_source(kind: str, *, label: str, http: Optional[HttpClient] = None, **kwargs: Any) -> Source:
    """Instantiate a configured source variant.

    Raises:
        RegistryError: If the kind is unknown or the arguments don't fit it.
    """
    if kind not in SOURCE_KINDS:
        raise RegistryError(f"{label}: unknown source kind '{kind}'. Available: {sorted(SOURCE_KINDS)}")
    try:
        return SOURCE_KINDS[kind](label=label, http=http, **kwargs)
    except TypeError as e:
        raise RegistryError(f"{label}: bad options for {kind}: {e}") from e


__all__ = [
    "SOURCE_KINDS",
    "CallableSource",
    "HtmlPageSource",
    "JsonFeedSource",
    "build_event",
    "build_source",
    "extract_ld_events",
    "load_target",
]
