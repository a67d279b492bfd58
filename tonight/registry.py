"""
Source descriptor registry.

Everything about a source (how to fetch it, how much to trust it, where to
probe it) is declared once here. Labels, endpoints and the merge order are
derived from the descriptor list, never maintained by hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .errors import RegistryError
from .infra.http import HttpClient
from .interfaces import Source
from .sources import CallableSource, build_source


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceDescriptor:
    label: str
    source: Union[Source, Any]
    weight: float
    merge_rank: int = 0
    endpoint: Optional[str] = None
    timeout: Optional[float] = None


def validate_descriptors(descriptors: Iterable[SourceDescriptor]) -> None:
    """Fail fast on a malformed registry."""
    labels = set()
    for d in descriptors:
        if not d.label:
            raise RegistryError("Source missing label")
        if d.label in labels:
            raise RegistryError(f"Duplicate source label: {d.label}")
        labels.add(d.label)
        if not isinstance(d.source, Source) and not callable(d.source):
            raise RegistryError(f"{d.label}: fetch must be a function")
        if isinstance(d.weight, bool) or not isinstance(d.weight, Real) or not 0 <= d.weight <= 1:
            raise RegistryError(f"{d.label}: weight must be 0-1")
        if isinstance(d.merge_rank, bool) or not isinstance(d.merge_rank, int):
            raise RegistryError(f"{d.label}: merge_rank must be an integer")


class SourceRegistry:
    """Validated, immutable table of sources."""

    def __init__(self, descriptors: Iterable[SourceDescriptor]):
        descriptors = list(descriptors)
        validate_descriptors(descriptors)

        self._descriptors: Dict[str, SourceDescriptor] = {d.label: d for d in descriptors}
        self._sources: Dict[str, Source] = {
            d.label: d.source if isinstance(d.source, Source) else CallableSource(d.source, name=d.label)
            for d in descriptors
        }
        self.labels: List[str] = [d.label for d in descriptors]
        self.endpoints: Dict[str, str] = {d.label: d.endpoint for d in descriptors if d.endpoint}
        self.merge_order: List[str] = [
            d.label for d in sorted(descriptors, key=lambda d: (-d.weight, d.merge_rank, d.label))
        ]

    @classmethod
    def from_config(cls, entries: List[Dict[str, Any]], http: Optional[HttpClient] = None) -> "SourceRegistry":
        """Build a registry from the ``sources:`` section of the config file."""
        descriptors = []
        for entry in entries:
            entry = dict(entry)
            try:
                label = entry.pop("label")
                kind = entry.pop("kind")
                weight = entry.pop("weight")
            except KeyError as e:
                raise RegistryError(f"Source entry {entry!r} is missing {e}") from e
            merge_rank = entry.pop("merge_rank", 0)
            endpoint = entry.pop("endpoint", None)
            timeout = entry.pop("timeout", None)
            source = build_source(kind, label=label, http=http, **entry.pop("options", {}))
            descriptors.append(SourceDescriptor(
                label=label,
                source=source,
                weight=weight,
                merge_rank=merge_rank,
                endpoint=endpoint,
                timeout=timeout,
            ))
        registry = cls(descriptors)
        logger.info(f"Registered {len(registry)} sources ({len(registry.endpoints)} with endpoints)")
        return registry

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[SourceDescriptor]:
        return (self._descriptors[label] for label in self.labels)

    def __getitem__(self, label: str) -> SourceDescriptor:
        return self._descriptors[label]

    def source(self, label: str) -> Source:
        return self._sources[label]
