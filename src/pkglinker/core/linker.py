"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/linker.py
Decides which package groups are worth linking and performs (or reports) the links.

PLANNING
--------
- A group qualifies when it holds 2+ copies and the canonical copy weighs at
  least `min_size` bytes (regular files, nested node_modules excluded).
- The canonical copy is the one with the lexicographically smallest package
  directory, so the choice does not depend on scan order.
- For every other copy, each file with the same relative path and size as a
  canonical file is replaced. The manifest stays per-copy: its inode and
  mtime are what the reference store records. Reported savings therefore
  never include package.json, so a 2 MB package saves 2 MB minus its manifest.

EXECUTION
---------
- ActionMode.LINK replaces files and records references.
- ActionMode.DRY_RUN / GENERATE_COMMANDS only emit text.
- All copies of a group are linked as one unit. A filesystem failure rolls
  the whole group back, is logged, and the run continues.
"""

import os
import threading
import logging
from typing import Callable, List, Optional

from pkglinker.core.interfaces import GroupLinker
from pkglinker.core.models import (
    ActionMode, LinkError, LinkMode, LinkOutcome, LinkPlan, LinkRef, PackageEntry, PackageGroup,
    RuntimeContext, MANIFEST_NAME,
)
from pkglinker.services.file_service import FileService
from pkglinker.services.reference_store import ReferenceStore

logger = logging.getLogger(__name__)


class LinkPlanner:
    def __init__(self, min_size: int = 0, link_mode: LinkMode = LinkMode.HARDLINK):
        if min_size < 0:
            raise ValueError("Minimum size cannot be negative")
        self.min_size = min_size
        self.link_mode = link_mode

    @staticmethod
    def select_canonical(group: PackageGroup) -> PackageEntry:
        return min(group.entries, key=lambda e: e.parent_dir_path)

    def plan(self, group: PackageGroup) -> List[LinkPlan]:
        """
        Build one LinkPlan per duplicate copy that has something to link.
        Returns an empty list when the group does not qualify.
        """
        if not group.is_duplicate():
            return []

        canonical = self.select_canonical(group)
        canonical_files = FileService.package_files(canonical.parent_dir_path)
        package_size = sum(st.st_size for st in canonical_files.values())
        if package_size < self.min_size:
            logger.debug(f"{group.key}: {package_size} bytes is below minimum size {self.min_size}")
            return []

        plans = []
        seen_dirs = {canonical.parent_dir_path}
        for entry in sorted(group.entries, key=lambda e: e.parent_dir_path):
            if entry.parent_dir_path in seen_dirs:
                continue
            seen_dirs.add(entry.parent_dir_path)
            plan = self._plan_copy(canonical, canonical_files, entry)
            if plan.files:
                plans.append(plan)
        return plans

    def _plan_copy(self, canonical: PackageEntry, canonical_files: dict, duplicate: PackageEntry) -> LinkPlan:
        plan = LinkPlan(canonical=canonical, duplicate=duplicate)
        for rel_path, dup_st in sorted(FileService.package_files(duplicate.parent_dir_path).items()):
            if rel_path == MANIFEST_NAME:
                continue
            src_st = canonical_files.get(rel_path)
            if src_st is None or src_st.st_size != dup_st.st_size:
                continue

            if self.link_mode == LinkMode.HARDLINK:
                if src_st.st_dev != dup_st.st_dev:
                    continue
                if src_st.st_ino == dup_st.st_ino:
                    continue  # already linked
                # only the last name of an inode frees space when replaced
                reclaimed = dup_st.st_size if dup_st.st_nlink == 1 else 0
            else:
                reclaimed = dup_st.st_size

            plan.files.append((
                os.path.join(canonical.parent_dir_path, rel_path),
                os.path.join(duplicate.parent_dir_path, rel_path),
                reclaimed,
            ))
            plan.reclaimable_bytes += reclaimed
        return plan


class LinkExecutor(GroupLinker):
    """
    Applies the planner's decision to one group according to the action mode.
    Safe to call from several worker threads at once.
    """

    def __init__(
            self,
            context: RuntimeContext,
            planner: LinkPlanner,
            store: Optional[ReferenceStore] = None,
            action_mode: ActionMode = ActionMode.LINK,
            output_callback: Optional[Callable[[str], None]] = None
    ):
        if action_mode.mutates and store is None:
            raise ValueError("A reference store is required to create links")
        self.context = context
        self.planner = planner
        self.store = store
        self.action_mode = action_mode
        self.output_callback = output_callback
        self._output_lock = threading.Lock()

    def process(self, group: PackageGroup) -> LinkOutcome:
        # queued groups that have not started yet are dropped on cancellation
        if self.context.is_cancelled():
            return LinkOutcome("skipped")

        try:
            plans = self.planner.plan(group)
        except OSError as e:
            logger.warning(f"Skipping {group.key}: cannot inspect packages: {e}")
            return LinkOutcome("failed")

        if not plans:
            return LinkOutcome("skipped")

        if self.action_mode == ActionMode.LINK:
            return self._link(group, plans)
        return self._report(plans)

    def _report(self, plans: List[LinkPlan]) -> LinkOutcome:
        lines = []
        for plan in plans:
            if self.action_mode == ActionMode.GENERATE_COMMANDS:
                lines.extend(
                    FileService.link_command(src, dst, self.planner.link_mode)
                    for src, dst, _ in plan.files
                )
            else:
                lines.append(
                    f"would link {plan.duplicate.parent_dir_path} -> {plan.canonical.parent_dir_path} "
                    f"({len(plan.files)} files, {plan.reclaimable_bytes} bytes)"
                )
        self._emit(lines)

        saved = sum(plan.reclaimable_bytes for plan in plans)
        self.context.add_saved_bytes(saved)
        return LinkOutcome("reported", saved)

    def _link(self, group: PackageGroup, plans: List[LinkPlan]) -> LinkOutcome:
        pairs = [(src, dst) for plan in plans for src, dst, _ in plan.files]
        try:
            FileService.replace_with_links(pairs, self.planner.link_mode)
        except LinkError as e:
            logger.warning(f"Skipping {group.key}, no copy was changed: {e}")
            return LinkOutcome("failed")

        linked_dirs = [plan.duplicate.parent_dir_path for plan in plans]
        saved = sum(plan.reclaimable_bytes for plan in plans)
        self._record(group, plans[0].canonical, linked_dirs)
        self.context.add_saved_bytes(saved)
        logger.info(f"Linked {len(linked_dirs)} copies of {group.key.name}@{group.key.version}")
        return LinkOutcome("linked", saved)

    def _record(self, group: PackageGroup, canonical: PackageEntry, linked_dirs: List[str]) -> None:
        if not linked_dirs:
            return
        key = str(group.key)
        for package_dir in [canonical.parent_dir_path] + linked_dirs:
            identity = FileService.manifest_identity(package_dir)
            if identity is None:
                logger.debug(f"Manifest vanished, not recording {package_dir}")
                continue
            self.store.add(key, LinkRef(package_dir, *identity))

    def _emit(self, lines: List[str]) -> None:
        if not self.output_callback:
            for line in lines:
                logger.info(line)
            return
        with self._output_lock:
            for line in lines:
                self.output_callback(line)
