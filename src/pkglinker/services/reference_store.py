"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/reference_store.py
Persisted record of the links created by earlier runs.

File format (JSON):
    {"<dev>:<name>-<version>": [[package_dir, manifest_inode, manifest_mtime_seconds], ...]}
"""
import json
import os
import threading
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pkglinker.core.models import LinkRef, StoreError

logger = logging.getLogger(__name__)


class ReferenceStore:
    """
    In-memory mapping of correlation key string → link references.
    Loaded once, mutated by the executor or the pruner, saved once at the end
    and only if its content differs from what was loaded.
    """

    def __init__(self, refs: Optional[Dict[str, Iterable]] = None):
        self._lock = threading.Lock()
        self._refs: Dict[str, List[LinkRef]] = {}
        for key, tuples in (refs or {}).items():
            for raw in tuples:
                ref = self._coerce(raw)
                if ref is not None:
                    self._add_unlocked(key, ref)
        self._loaded = self.to_json()

    @classmethod
    def load(cls, path: str) -> "ReferenceStore":
        """Read a store file. Missing or unparseable files give an empty store."""
        if not os.path.exists(path):
            logger.debug(f"No reference store at {path}, starting empty")
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable reference store {path}: {e}")
            return cls()
        if not isinstance(data, dict):
            logger.warning(f"Ignoring reference store {path}: not a JSON object")
            return cls()
        return cls(data)

    @staticmethod
    def _coerce(raw) -> Optional[LinkRef]:
        if isinstance(raw, LinkRef):
            return raw
        if (isinstance(raw, (list, tuple)) and len(raw) == 3
                and isinstance(raw[0], str)
                and isinstance(raw[1], int) and isinstance(raw[2], int)):
            return LinkRef(raw[0], raw[1], raw[2])
        logger.debug(f"Skipping malformed reference: {raw!r}")
        return None

    def _add_unlocked(self, key: str, ref: LinkRef) -> bool:
        refs = self._refs.setdefault(key, [])
        if ref in refs:
            return False
        refs.append(ref)
        return True

    def add(self, key: str, ref: LinkRef) -> bool:
        """Record a reference. Returns False if it was already present."""
        with self._lock:
            return self._add_unlocked(key, ref)

    def items(self) -> Iterator[Tuple[str, List[LinkRef]]]:
        with self._lock:
            snapshot = [(key, list(refs)) for key, refs in self._refs.items()]
        return iter(snapshot)

    def replace(self, refs: Dict[str, List[LinkRef]]) -> None:
        """Swap in a new mapping (used by the pruner). Keys with no refs are dropped."""
        with self._lock:
            self._refs = {key: list(values) for key, values in refs.items() if values}

    def ref_count(self) -> int:
        with self._lock:
            return sum(len(refs) for refs in self._refs.values())

    def to_json(self) -> Dict[str, list]:
        """Sorted plain-JSON form, for deterministic diffs."""
        return {
            key: [ref.to_json() for ref in self._refs[key]]
            for key in sorted(self._refs)
        }

    def save(self, path: str) -> bool:
        """
        Write the store if it changed since loading. Returns True if written.
        Raises StoreError when the file cannot be written.
        """
        with self._lock:
            data = self.to_json()
            if data == self._loaded:
                logger.debug("Reference store unchanged, not writing")
                return False

            tmp_path = f"{path}.tmp"
            try:
                directory = os.path.dirname(os.path.abspath(path))
                os.makedirs(directory, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, sort_keys=True)
                os.replace(tmp_path, path)
            except OSError as e:
                logger.error(f"Failed to write reference store {path}: {e}")
                raise StoreError(f"Failed to write reference store {path}: {e}") from e

            self._loaded = data
            logger.info(f"Reference store written: {path}")
            return True
