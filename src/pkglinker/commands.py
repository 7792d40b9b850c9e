"""
Unified command orchestrator for package linking.
This is the SINGLE source of truth for business logic, the CLI only parses and prints.
"""
import os
import logging
from typing import Callable, List, Optional

from pkglinker.core.grouper import StreamingGrouper
from pkglinker.core.linker import LinkExecutor, LinkPlanner
from pkglinker.core.manifest import ManifestKeyExtractor
from pkglinker.core.models import LinkParams, PackageGroup, RunSummary, RuntimeContext
from pkglinker.core.pruner import Pruner
from pkglinker.core.scanner import PackageScannerImpl, scan_roots
from pkglinker.core.workers import bounded_map
from pkglinker.services.reference_store import ReferenceStore

logger = logging.getLogger(__name__)


class PkgLinkCommand:
    """
    Orchestrates one invocation:
    1. Load the reference store
    2. Optionally prune stale references
    3. Scan roots → extract keys → group → link (or report)
    4. Save the store if it changed (link mode only)

    Usage:
        params = LinkParams(root_dirs=["~/projects"], refs_file="~/.pkglink_refs")
        command = PkgLinkCommand()
        summary = command.execute(
            params,
            progress_callback=cli_progress_printer,
            output_callback=print
        )

        # from a signal handler:
        command.cancel()
    """

    def __init__(self):
        self.context: Optional[RuntimeContext] = None
        self.store: Optional[ReferenceStore] = None
        self._cancel_requested = False

    def cancel(self) -> None:
        """Stop opening directories and starting links; completed work is still saved."""
        self._cancel_requested = True
        if self.context:
            self.context.cancel()

    def execute(
            self,
            params: LinkParams,
            progress_callback: Optional[Callable[[str, int, object], None]] = None,
            output_callback: Optional[Callable[[str], None]] = None
    ) -> RunSummary:
        """
        Run the requested passes with the given parameters.

        Args:
            params: Validated parameters
            progress_callback: (stage: str, current: int, detail: object) -> None
            output_callback: receives dry-run descriptions and generated commands

        Returns:
            RunSummary with counters for the output layer

        Raises:
            RuntimeError: If a root cannot be scanned
            StoreError: If the reference store cannot be written
        """
        self.context = RuntimeContext(
            concurrent_ops=params.concurrent_ops,
            min_size=params.min_size,
            tree_depth=params.tree_depth,
        )
        if self._cancel_requested:
            self.context.cancel()

        self.store = ReferenceStore.load(params.refs_file) if params.refs_file else ReferenceStore()
        logger.info(f"Loaded {self.store.ref_count()} references from {params.refs_file}")
        summary = RunSummary(store_path=params.refs_file)

        try:
            if params.prune:
                summary.refs_pruned = self.prune(self.store, progress_callback)
            if params.root_dirs and not self.context.cancelled:
                self.scan_and_link(params, self.store, summary, progress_callback, output_callback)
        finally:
            summary.bytes_saved = self.context.saved_byte_count
            summary.packages_scanned = self.context.package_count
            summary.cancelled = self.context.cancelled
            if params.action_mode.mutates and params.refs_file:
                summary.store_updated = self.store.save(params.refs_file)

        return summary

    def prune(
            self,
            store: ReferenceStore,
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> int:
        """Drop stale references from the store. Returns how many were removed."""
        if self.context is None:
            self.context = RuntimeContext()
        logger.info("Pruning reference store")
        return Pruner(self.context, progress_callback).prune(store)

    def find_groups(
            self,
            root_dirs: List[str],
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[PackageGroup]:
        """Scan the roots and return every complete group (empty if cancelled)."""
        ctx = self.context
        scanners = [PackageScannerImpl(os.path.abspath(d), ctx.tree_depth) for d in root_dirs]
        extractor = ManifestKeyExtractor(ctx, progress_callback)

        candidates = scan_roots(scanners, ctx.concurrent_ops, ctx.is_cancelled)
        keyed = bounded_map(extractor.extract, candidates, ctx.concurrent_ops, ctx.is_cancelled)
        try:
            groups = StreamingGrouper(ctx.is_cancelled).consume(keyed)
        finally:
            keyed.close()
            candidates.close()

        return sorted(groups, key=lambda g: str(g.key))

    def scan_and_link(
            self,
            params: LinkParams,
            store: ReferenceStore,
            summary: RunSummary,
            progress_callback: Optional[Callable[[str, int, object], None]] = None,
            output_callback: Optional[Callable[[str], None]] = None
    ) -> None:
        ctx = self.context
        groups = self.find_groups(params.root_dirs, progress_callback)
        candidates = [g for g in groups if g.is_duplicate()]
        logger.info(f"Scanned {ctx.package_count} packages, {len(candidates)} with duplicates")
        if candidates:
            logger.info(f"{params.link_mode.display_name}, action: {params.action_mode.value}")

        planner = LinkPlanner(min_size=ctx.min_size, link_mode=params.link_mode)
        executor = LinkExecutor(ctx, planner, store, params.action_mode, output_callback)

        processed = 0
        for outcome in bounded_map(executor.process, candidates, ctx.concurrent_ops, ctx.is_cancelled):
            processed += 1
            if outcome.status in ("linked", "reported"):
                summary.groups_linked += 1
            elif outcome.status == "failed":
                summary.groups_failed += 1
            if progress_callback:
                progress_callback("linking", processed, len(candidates))
