"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/pruner.py
Revalidates reference-store records against the live filesystem.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from pkglinker.core.models import LinkRef, RuntimeContext
from pkglinker.core.workers import bounded_map
from pkglinker.services.file_service import FileService
from pkglinker.services.reference_store import ReferenceStore

logger = logging.getLogger(__name__)


class Pruner:
    """
    Drops every reference whose package manifest is gone or whose
    (inode, mtime) no longer matches what was recorded.
    Only the store changes; the filesystem is never touched.
    """

    def __init__(
            self,
            context: RuntimeContext,
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ):
        self.context = context
        self.progress_callback = progress_callback

    @staticmethod
    def is_valid(ref: LinkRef) -> bool:
        identity = FileService.manifest_identity(ref.link_target_path)
        return identity == (ref.inode, ref.mod_time_epoch)

    def prune(self, store: ReferenceStore) -> int:
        """
        Validate all records and compact the store in place.
        Returns the number of references removed. If cancelled midway,
        records that were not checked yet are kept as they are.
        """
        pairs: List[Tuple[str, LinkRef]] = [
            (key, ref) for key, refs in store.items() for ref in refs
        ]
        verdicts: Dict[Tuple[str, LinkRef], bool] = {}

        def check(pair: Tuple[str, LinkRef]) -> Tuple[Tuple[str, LinkRef], bool]:
            return pair, self.is_valid(pair[1])

        for pair, valid in bounded_map(check, pairs, self.context.concurrent_ops, self.context.is_cancelled):
            verdicts[pair] = valid
            if not valid:
                logger.debug(f"Stale reference {pair[0]}: {pair[1].link_target_path}")
            if self.progress_callback:
                self.progress_callback("pruning", len(verdicts), len(pairs))

        kept: Dict[str, List[LinkRef]] = {}
        removed = 0
        for key, ref in pairs:
            if verdicts.get((key, ref), True):
                kept.setdefault(key, []).append(ref)
            else:
                removed += 1

        store.replace(kept)
        logger.info(f"Pruned {removed} of {len(pairs)} references")
        return removed
