"""
Core linking engine: scanner, key extraction, grouper, linker and pruner.

This package contains the filesystem-facing foundation of pkglinker:
- PackageScannerImpl: node_modules traversal yielding package.json candidates
- ManifestKeyExtractor: reads name/version and builds the correlation key
- StreamingGrouper: collects packages sharing a key, discarded on cancellation
- LinkPlanner + LinkExecutor: choose a canonical copy and link or report the rest
- Pruner: drops stored references whose manifest no longer matches
- Models: PackageEntry, PackageGroup, LinkRef and run parameters

Nothing here prints; output goes through callbacks supplied by the caller.
"""

from .scanner import PackageScannerImpl, scan_roots
from .manifest import ManifestKeyExtractor, parse_manifest, correlation_key
from .grouper import StreamingGrouper
from .linker import LinkPlanner, LinkExecutor
from .pruner import Pruner
from .workers import bounded_map
from .models import (
    PackageEntry, PackageManifest, PackageGroup, KeyedEntry, CorrelationKey, LinkRef,
    LinkPlan, LinkOutcome, LinkMode, ActionMode, LinkParams, RuntimeContext, RunSummary,
    PkgLinkError, StoreError, LinkError)

__all__ = [
    "PackageScannerImpl",
    "scan_roots",
    "ManifestKeyExtractor",
    "parse_manifest",
    "correlation_key",
    "StreamingGrouper",
    "LinkPlanner",
    "LinkExecutor",
    "Pruner",
    "bounded_map",
    "PackageEntry",
    "PackageManifest",
    "PackageGroup",
    "KeyedEntry",
    "CorrelationKey",
    "LinkRef",
    "LinkPlan",
    "LinkOutcome",
    "LinkMode",
    "ActionMode",
    "LinkParams",
    "RuntimeContext",
    "RunSummary",
    "PkgLinkError",
    "StoreError",
    "LinkError",
]
