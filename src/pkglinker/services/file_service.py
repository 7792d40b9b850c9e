"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/file_service.py
Filesystem operations used by the link executor and the pruner.
Links are created under a temporary name first and renamed over the
duplicate, with a backup of each original, so a group is linked
completely or left exactly as it was.
"""
import os
import shlex
import stat
import uuid
import logging
from typing import Dict, List, Optional, Tuple

from pkglinker.core.models import LinkError, LinkMode, MANIFEST_NAME, NODE_MODULES

logger = logging.getLogger(__name__)

TMP_SUFFIX = ".pkglink-tmp"
BACKUP_SUFFIX = ".pkglink-bak"


class FileService:
    """
    Link creation and package inspection helpers.
    Low-level OSError is translated into LinkError carrying both paths.
    """

    @staticmethod
    def package_files(package_dir: str) -> Dict[str, os.stat_result]:
        """
        Regular files of a package keyed by path relative to package_dir.
        The package's own node_modules subtree and symlinks are left out.
        """
        found = {}
        for dirpath, dirs, files in os.walk(package_dir):
            dirs[:] = [d for d in dirs if d != NODE_MODULES]
            for filename in files:
                full_path = os.path.join(dirpath, filename)
                try:
                    st = os.lstat(full_path)
                except OSError as e:
                    logger.debug(f"Could not stat {full_path}: {e}")
                    continue
                if stat.S_ISREG(st.st_mode):
                    found[os.path.relpath(full_path, package_dir)] = st
        return found

    @staticmethod
    def manifest_identity(package_dir: str) -> Optional[Tuple[int, int]]:
        """(inode, whole-second mtime) of the package manifest, or None if it is gone."""
        try:
            st = os.lstat(os.path.join(package_dir, MANIFEST_NAME))
        except OSError:
            return None
        return st.st_ino, int(st.st_mtime)

    @staticmethod
    def temp_path(path: str, suffix: str = TMP_SUFFIX) -> str:
        """Sibling name for `path` that is unique to this process and call."""
        return f"{path}.{os.getpid()}-{uuid.uuid4().hex[:8]}{suffix}"

    @staticmethod
    def create_temp_link(source: str, target: str, mode: LinkMode) -> str:
        """
        Create a link to `source` beside `target` without touching `target`.
        Returns the temporary path. An existing file is never overwritten.
        """
        tmp = FileService.temp_path(target)
        try:
            if mode == LinkMode.HARDLINK:
                os.link(source, tmp)
            else:
                os.symlink(source, tmp)
        except OSError as e:
            raise LinkError(f"Failed to link {target} -> {source}: {e}") from e
        return tmp

    @staticmethod
    def create_backup(target: str) -> str:
        """Keep the original inode of `target` reachable under a backup name."""
        backup = FileService.temp_path(target, BACKUP_SUFFIX)
        try:
            os.link(target, backup)
        except OSError as e:
            raise LinkError(f"Failed to back up {target}: {e}") from e
        return backup

    @staticmethod
    def discard_temp_links(paths: List[str]) -> None:
        """Remove temporary links and backups left behind by an aborted or finished group."""
        for path in paths:
            try:
                if os.path.lexists(path):
                    os.unlink(path)
            except OSError as e:
                logger.warning(f"Could not remove temporary file {path}: {e}")

    @staticmethod
    def restore_backups(committed: List[Tuple[str, str]]) -> List[str]:
        """
        Move backups back over already replaced targets, newest first.
        Returns the backups that could not be restored; they are left on disk.
        """
        stranded = []
        for target, backup in reversed(committed):
            try:
                os.replace(backup, target)
            except OSError as e:
                logger.error(f"Could not restore {target}, original kept at {backup}: {e}")
                stranded.append(backup)
        return stranded

    @classmethod
    def replace_with_links(cls, pairs: List[Tuple[str, str]], mode: LinkMode) -> None:
        """
        Replace every target with a link to its source, as one unit.

        Phase 1 prepares a temporary link and a hard-link backup for every
        target; if any of them fails everything prepared is discarded.
        Phase 2 renames the links over the targets; if a rename fails the
        targets already replaced get their backups back.
        Either every target is linked or none is.
        """
        prepared: List[Tuple[str, str, str]] = []
        try:
            for source, target in pairs:
                tmp = cls.create_temp_link(source, target, mode)
                try:
                    backup = cls.create_backup(target)
                except LinkError:
                    cls.discard_temp_links([tmp])
                    raise
                prepared.append((target, tmp, backup))
        except LinkError:
            cls.discard_temp_links([path for _, tmp, backup in prepared for path in (tmp, backup)])
            raise

        committed: List[Tuple[str, str]] = []
        for target, tmp, backup in prepared:
            try:
                os.replace(tmp, target)
            except OSError as e:
                stranded = cls.restore_backups(committed)
                leftovers = [t for _, t, _ in prepared] + [b for _, _, b in prepared if b not in stranded]
                cls.discard_temp_links(leftovers)
                raise LinkError(f"Failed to replace {target}, group rolled back: {e}") from e
            committed.append((target, backup))
            logger.debug(f"Linked {target}")

        cls.discard_temp_links([backup for _, _, backup in prepared])

    @staticmethod
    def link_command(source: str, target: str, mode: LinkMode) -> str:
        """Shell command equivalent to linking target to source."""
        return f"ln {mode.ln_flags} {shlex.quote(source)} {shlex.quote(target)}"
