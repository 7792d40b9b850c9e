"""
pkglinker: reclaim disk space taken by duplicate node_modules packages.

Core features:
- Finds every installed copy of a package version across many project trees
- Replaces duplicate files with hard links (or symbolic links) to one canonical copy
- Dry-run and ln-command generation modes that never touch the filesystem
- Persistent reference store of created links, revalidated with --prune
"""
import os

# Get version
try:
    from importlib.metadata import version as _version
    __version__ = _version("pkglinker")
except Exception:
    try:
        import tomllib  # Python 3.11+
    except ImportError:
        import tomli as tomllib  # Python < 3.11: pip install tomli

    _pyproject = os.path.join(os.path.dirname(__file__), "..", "..", "pyproject.toml")
    with open(_pyproject, "rb") as f:
        __version__ = tomllib.load(f)["project"]["version"]

# Public API: only what users should import directly
from pkglinker.commands import PkgLinkCommand
from pkglinker.config import LinkConfig, load_config
from pkglinker.core import (
    ActionMode, CorrelationKey, LinkMode, LinkParams, PackageGroup, RunSummary, PkgLinkError)
from pkglinker.utils.convert_utils import ConvertUtils
from pkglinker.services import ReferenceStore
from pkglinker.services.file_service import FileService

__all__ = [
    "PkgLinkCommand",
    "LinkConfig",
    "load_config",
    "ActionMode",
    "CorrelationKey",
    "LinkMode",
    "LinkParams",
    "PackageGroup",
    "RunSummary",
    "PkgLinkError",
    "ConvertUtils",
    "ReferenceStore",
    "FileService",
    "__version__",
]
