"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/models.py
Data models shared by the scan → group → link/prune → persist pipeline.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

MANIFEST_NAME = "package.json"
NODE_MODULES = "node_modules"


# =============================
# Errors
# =============================

class PkgLinkError(RuntimeError):
    """Base class for run-level failures."""


class StoreError(PkgLinkError):
    """Reference store could not be written."""


class LinkError(PkgLinkError):
    """A filesystem link operation failed."""


# =============================
# Enums
# =============================

class LinkMode(Enum):
    """
    Kind of filesystem link used to replace duplicate package files.
    """
    HARDLINK = "hard"
    SYMLINK = "symbolic"

    @property
    def display_name(self) -> str:
        mapping = {
            LinkMode.HARDLINK: "Hard links",
            LinkMode.SYMLINK: "Symbolic links",
        }
        return mapping.get(self, self.value)

    @property
    def ln_flags(self) -> str:
        """Flags for the equivalent `ln` invocation."""
        return "-f" if self == LinkMode.HARDLINK else "-sf"


class ActionMode(Enum):
    """
    What the executor does with an eligible group.
    LINK mutates the filesystem and the reference store, the others only report.
    """
    LINK = "link"
    DRY_RUN = "dry-run"
    GENERATE_COMMANDS = "gen-ln-cmds"

    @property
    def mutates(self) -> bool:
        return self == ActionMode.LINK


# ======================
#  Core Data Models
# ======================

class CorrelationKey(NamedTuple):
    """
    Identity of interchangeable package copies.
    Copies on different devices never compare equal, hard links cannot cross devices.
    """
    device_id: int
    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.device_id}:{self.name}-{self.version}"


@dataclass(frozen=True)
class PackageEntry:
    """
    A package manifest found under a node_modules directory.
    Stat fields describe the manifest file itself.
    """
    absolute_path: str
    parent_dir_path: str
    device_id: int
    inode: int
    mod_time_epoch: int
    size_bytes: int

    def __repr__(self):
        return f"<PackageEntry path={self.parent_dir_path}, dev={self.device_id}>"


@dataclass(frozen=True)
class PackageManifest:
    """The fields of a manifest that identify a package."""
    name: str
    version: str


@dataclass(frozen=True)
class KeyedEntry:
    key: CorrelationKey
    entry: PackageEntry


class LinkRef(NamedTuple):
    """
    One reference-store record: package directory plus the inode and
    modification time (whole seconds) of its manifest when the link was made.
    """
    link_target_path: str
    inode: int
    mod_time_epoch: int

    def to_json(self) -> list:
        return [self.link_target_path, self.inode, self.mod_time_epoch]


@dataclass
class PackageGroup:
    """All entries sharing one correlation key, in arrival order."""
    key: CorrelationKey
    entries: List[PackageEntry] = field(default_factory=list)

    @property
    def duplicate_count(self) -> int:
        return len(self.entries)

    def add_entry(self, entry: PackageEntry) -> None:
        if entry.device_id != self.key.device_id:
            raise ValueError("Cannot add entry from a different device to a group.")
        self.entries.append(entry)

    def is_duplicate(self) -> bool:
        """True if this group contains at least two copies."""
        return self.duplicate_count >= 2

    def __repr__(self):
        return f"<PackageGroup key={self.key}, count={len(self.entries)}>"


@dataclass
class LinkPlan:
    """
    Files of one duplicate package that would be replaced by links
    to the canonical copy, as (canonical_file, duplicate_file, size) triples.
    """
    canonical: PackageEntry
    duplicate: PackageEntry
    files: List[Tuple[str, str, int]] = field(default_factory=list)
    reclaimable_bytes: int = 0


@dataclass
class LinkOutcome:
    """Result of processing one group."""
    status: str  # "skipped", "linked", "reported", "failed"
    bytes_saved: int = 0


@dataclass
class RuntimeContext:
    """
    Counters and flags shared by every stage of one invocation.
    Owned by the command, reset each run, never persisted.
    """
    concurrent_ops: int = 4
    min_size: int = 0
    tree_depth: int = 0
    saved_byte_count: int = 0
    package_count: int = 0
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        if self.concurrent_ops < 1:
            raise ValueError("Concurrent operations must be at least 1")
        if self.min_size < 0:
            raise ValueError("Minimum size cannot be negative")
        if self.tree_depth < 0:
            raise ValueError("Tree depth cannot be negative")

    def cancel(self) -> None:
        """Broadcast cancellation to every stage."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def is_cancelled(self) -> bool:
        """stopped_flag compatible check."""
        return self._cancel_event.is_set()

    def add_saved_bytes(self, count: int) -> int:
        with self._lock:
            self.saved_byte_count += count
            return self.saved_byte_count

    def increment_packages(self) -> int:
        with self._lock:
            self.package_count += 1
            return self.package_count


@dataclass
class RunSummary:
    """Outcome of one invocation, handed to the output layer."""
    bytes_saved: int = 0
    packages_scanned: int = 0
    groups_linked: int = 0
    groups_failed: int = 0
    refs_pruned: int = 0
    store_updated: bool = False
    cancelled: bool = False
    store_path: Optional[str] = None


@dataclass
class LinkParams:
    """
    Parameters for one invocation with built-in validation.
    Interface-agnostic: built by the CLI, consumed by the command.
    """
    root_dirs: List[str] = field(default_factory=list)
    refs_file: Optional[str] = None
    prune: bool = False
    action_mode: ActionMode = ActionMode.LINK
    link_mode: LinkMode = LinkMode.HARDLINK
    concurrent_ops: int = 4
    min_size: int = 0
    tree_depth: int = 0

    def __post_init__(self):
        """Validate parameters immediately after creation."""
        if not self.root_dirs and not self.prune:
            raise ValueError("Nothing to do: no directories to scan and pruning not requested")
        if self.concurrent_ops < 1:
            raise ValueError("Concurrent operations must be at least 1")
        if self.min_size < 0:
            raise ValueError("Minimum size cannot be negative")
        if self.tree_depth < 0:
            raise ValueError("Tree depth cannot be negative")
        if self.action_mode.mutates and not self.refs_file:
            raise ValueError("A reference store path is required to create links")
