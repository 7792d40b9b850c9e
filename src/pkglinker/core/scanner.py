"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/scanner.py
Implements package discovery under node_modules hierarchies.
Features:
- Uses os.walk with in-place pruning so filtered directories are never opened
- node_modules-aware directory filter (stays at package roots once inside a tree)
- Optional depth limit per root
- Yields PackageEntry objects lazily; several roots are walked concurrently
"""

import os
import queue
import stat
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from pkglinker.core.models import PackageEntry, MANIFEST_NAME, NODE_MODULES
from pkglinker.core.interfaces import PackageScanner

logger = logging.getLogger(__name__)


class PackageScannerImpl(PackageScanner):
    """
    Walks one root directory and yields the manifests of installed packages.

    Attributes:
        root_dir: Root directory to scan
        tree_depth: Maximum number of directory levels below root to visit (0 = unlimited)
    """

    def __init__(self, root_dir: str, tree_depth: int = 0):
        if tree_depth < 0:
            raise ValueError("Tree depth cannot be negative")
        self.root_dir = root_dir
        self.tree_depth = tree_depth

    def scan(self, stopped_flag: Optional[Callable[[], bool]] = None) -> Iterator[PackageEntry]:
        """
        Lazily yield a PackageEntry for every package.json that sits directly
        inside node_modules/<package>/.
        Raises RuntimeError if the root is missing or not a directory.
        """
        root_path = Path(self.root_dir)

        if stopped_flag and stopped_flag():
            logger.debug("Scan cancelled before start")
            return

        if not root_path.exists():
            error_msg = f"Directory does not exist: {self.root_dir}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        if not root_path.is_dir():
            error_msg = f"Not a directory: {self.root_dir}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        if not os.access(root_path, os.R_OK | os.X_OK):
            error_msg = f"Directory is not accessible: {self.root_dir}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        root = str(root_path)
        logger.debug(f"Scanning directory: {root} (depth limit: {self.tree_depth or 'none'})")

        for dirpath, dirs, files in os.walk(root, onerror=self._on_walk_error):
            # os.walk opens each directory lazily, so checking here keeps new opens from happening
            if stopped_flag and stopped_flag():
                logger.debug("Scan interrupted")
                return

            depth = self._depth_below(root, dirpath)
            if self.tree_depth and depth >= self.tree_depth:
                dirs[:] = []
            else:
                dirs[:] = [d for d in dirs if self.accept_directory(dirpath, d)]

            if MANIFEST_NAME in files and self.is_package_root(dirpath):
                entry = self._process_manifest(os.path.join(dirpath, MANIFEST_NAME))
                if entry:
                    yield entry

    @staticmethod
    def accept_directory(parent_dir: str, name: str) -> bool:
        """
        Directory-descent filter applied before os.walk enters `parent_dir/name`.
        - no directories starting with '.'
        - always enter node_modules
        - once under a node_modules ancestor, only enter X when X's parent is node_modules
          (node_modules/<pkg> is visited, a package's own source tree is not)
        - otherwise keep walking, no node_modules found yet
        """
        if name.startswith("."):
            return False
        if name == NODE_MODULES:
            return True
        parent = Path(parent_dir)
        if NODE_MODULES in parent.parts:
            return parent.name == NODE_MODULES
        return True

    @staticmethod
    def is_package_root(package_dir: str) -> bool:
        """True if package_dir sits directly inside a node_modules directory."""
        return Path(package_dir).parent.name == NODE_MODULES

    @staticmethod
    def _depth_below(root: str, dirpath: str) -> int:
        rel = os.path.relpath(dirpath, root)
        if rel == os.curdir:
            return 0
        return len(Path(rel).parts)

    @staticmethod
    def _on_walk_error(error: OSError) -> None:
        logger.warning(f"Cannot read directory during scan: {error}")

    @staticmethod
    def _process_manifest(path: str) -> Optional[PackageEntry]:
        """
        Stat a manifest without following symlinks.
        Returns None for symlinks, non-regular files and unreadable entries.
        """
        try:
            st = os.lstat(path)
        except OSError as e:
            logger.debug(f"Could not stat {path}: {e}")
            return None

        if not stat.S_ISREG(st.st_mode):
            logger.debug(f"Skipping non-regular manifest: {path}")
            return None

        return PackageEntry(
            absolute_path=os.path.abspath(path),
            parent_dir_path=os.path.abspath(os.path.dirname(path)),
            device_id=st.st_dev,
            inode=st.st_ino,
            mod_time_epoch=int(st.st_mtime),
            size_bytes=st.st_size,
        )


_ROOT_DONE = object()


def scan_roots(
        scanners: Iterable[PackageScanner],
        limit: int,
        stopped_flag: Optional[Callable[[], bool]] = None
) -> Iterator[PackageEntry]:
    """
    Walk several roots concurrently (at most `limit` at a time) and merge
    their entries into one unordered stream.
    The first scanner failure is re-raised once every walk has ended.
    """
    scanners: List[PackageScanner] = list(scanners)
    if not scanners:
        return

    results: "queue.Queue" = queue.Queue()

    def run(scanner: PackageScanner) -> None:
        try:
            for entry in scanner.scan(stopped_flag=stopped_flag):
                results.put(entry)
        finally:
            results.put(_ROOT_DONE)

    with ThreadPoolExecutor(max_workers=max(1, limit)) as executor:
        futures = [executor.submit(run, scanner) for scanner in scanners]
        remaining = len(futures)
        while remaining:
            item = results.get()
            if item is _ROOT_DONE:
                remaining -= 1
                continue
            yield item

    for future in futures:
        future.result()
