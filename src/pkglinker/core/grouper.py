"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/grouper.py
Correlates the unordered keyed-entry stream into complete package groups.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from pkglinker.core.interfaces import PackageGrouper
from pkglinker.core.models import CorrelationKey, KeyedEntry, PackageEntry, PackageGroup

logger = logging.getLogger(__name__)


class StreamingGrouper(PackageGrouper):
    """
    Accumulates entries per correlation key while the scan is running.

    A key may reappear anywhere in the stream, so groups are only complete
    once the stream has ended; flush() hands them out at that point.
    Memory grows with the number of candidates, which is fine since manifests are small.
    """

    def __init__(self, stopped_flag: Optional[Callable[[], bool]] = None):
        self.stopped_flag = stopped_flag
        self._groups: Dict[CorrelationKey, List[PackageEntry]] = defaultdict(list)
        self._accepted = 0

    def add(self, key: CorrelationKey, entry: PackageEntry) -> bool:
        """Record one entry. Returns False once cancelled (entry discarded)."""
        if self._is_stopped():
            return False
        self._groups[key].append(entry)
        self._accepted += 1
        return True

    def consume(self, stream: Iterable[Optional[KeyedEntry]]) -> List[PackageGroup]:
        """Drain a keyed stream (None items are skipped) and flush at its end."""
        for keyed in stream:
            if keyed is None:
                continue
            if not self.add(keyed.key, keyed.entry):
                break
        return self.flush()

    def flush(self) -> List[PackageGroup]:
        """
        Return one group per distinct key, entries in arrival order.
        A cancelled run returns nothing rather than acting on partial groups.
        """
        if self._is_stopped():
            logger.debug(f"Grouping cancelled, discarding {len(self._groups)} partial groups")
            self._groups.clear()
            return []

        groups = []
        for key, entries in self._groups.items():
            group = PackageGroup(key=key)
            for entry in entries:
                group.add_entry(entry)
            groups.append(group)
        logger.debug(f"Grouped {self._accepted} packages into {len(groups)} keys")
        self._groups.clear()
        return groups

    def _is_stopped(self) -> bool:
        return bool(self.stopped_flag and self.stopped_flag())
