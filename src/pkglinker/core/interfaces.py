"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

interfaces.py

Defines core interfaces (Protocols) used throughout the linking pipeline.
These protocols enforce structural typing using Python's `typing.Protocol` so that
stages can be swapped or faked in tests without inheriting from a base class.

Key Components:
---------------
- PackageScanner: walks one root and yields package manifests under node_modules.
- KeyExtractor: turns a manifest into a correlation key, or rejects it.
- PackageGrouper: accumulates keyed entries and flushes complete groups.
- GroupLinker: decides and performs the link action for one group.
"""

from typing import Protocol, Iterator, List, Optional, Callable
from pkglinker.core.models import (
    PackageEntry,
    PackageGroup,
    KeyedEntry,
    CorrelationKey,
    LinkOutcome,
)


class PackageScanner(Protocol):
    """Interface for discovering package manifests under one root directory."""
    def scan(self, stopped_flag: Optional[Callable[[], bool]] = None) -> Iterator[PackageEntry]:
        """
        Lazily yield manifests of installed packages.

        Args:
            stopped_flag: Function that returns True once no new directories may be opened.
        """
        ...


class KeyExtractor(Protocol):
    """Interface for reading a manifest and computing its correlation key."""
    def extract(self, entry: PackageEntry) -> Optional[KeyedEntry]:
        """Returns None when the manifest does not describe a package."""
        ...


class PackageGrouper(Protocol):
    """Interface for correlating an unordered keyed stream into groups."""
    def add(self, key: CorrelationKey, entry: PackageEntry) -> bool:
        ...

    def flush(self) -> List[PackageGroup]:
        ...


class GroupLinker(Protocol):
    """Interface for acting on one complete group."""
    def process(self, group: PackageGroup) -> LinkOutcome:
        """Returns what happened to the group and the bytes reclaimed (or reclaimable)."""
        ...
