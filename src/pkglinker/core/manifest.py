"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/manifest.py
Reads package manifests and computes correlation keys.
Malformed or incomplete manifests are common in the wild and are dropped quietly.
"""

import json
import logging
from typing import Callable, Optional

from pkglinker.core.interfaces import KeyExtractor
from pkglinker.core.models import (
    CorrelationKey, KeyedEntry, PackageEntry, PackageManifest, RuntimeContext
)

logger = logging.getLogger(__name__)


def parse_manifest(path: str) -> Optional[PackageManifest]:
    """
    Parse a package.json into its identifying fields.
    Returns None ("not a package") if the file cannot be read or decoded
    (pathologically nested JSON included),
    is not a JSON object, or lacks a non-empty string name and version.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError, RecursionError) as e:
        logger.debug(f"Unreadable manifest {path}: {e}")
        return None

    if not isinstance(data, dict):
        return None

    name = data.get("name")
    version = data.get("version")
    if not isinstance(name, str) or not isinstance(version, str) or not name or not version:
        logger.debug(f"Manifest without name/version: {path}")
        return None

    return PackageManifest(name=name, version=version)


def correlation_key(device_id: int, manifest: PackageManifest) -> CorrelationKey:
    return CorrelationKey(device_id=device_id, name=manifest.name, version=manifest.version)


class ManifestKeyExtractor(KeyExtractor):
    """
    Turns scanned entries into keyed entries, counting every accepted package
    on the shared context and reporting scan progress.
    """

    def __init__(
            self,
            context: RuntimeContext,
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ):
        self.context = context
        self.progress_callback = progress_callback

    def extract(self, entry: PackageEntry) -> Optional[KeyedEntry]:
        manifest = parse_manifest(entry.absolute_path)
        if manifest is None:
            return None

        # device comes from the file's stat, never from the manifest
        key = correlation_key(entry.device_id, manifest)
        count = self.context.increment_packages()
        if self.progress_callback:
            self.progress_callback("scanning", count, key)
        return KeyedEntry(key=key, entry=entry)
