"""
Shared fixtures for pkglinker tests.
Creates isolated temporary directories holding controlled node_modules trees.
"""
import json
import os
import pytest
import tempfile
from pathlib import Path
from typing import Dict, Optional
import sys

# Add src/ to sys.path so 'pkglinker' is importable without installation
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from pkglinker.core.models import CorrelationKey, PackageGroup  # noqa: E402
from pkglinker.core.scanner import PackageScannerImpl  # noqa: E402

LODASH_FILES = {
    "index.js": b"module.exports = require('./lodash');\n",
    "lodash.js": b"L" * 4096,
    "lib/array.js": b"A" * 2048,
}


def make_package(
        root: Path,
        rel_dir: str,
        name: str,
        version: str,
        files: Optional[Dict[str, bytes]] = None
) -> Path:
    """
    Create a package directory at root/rel_dir with a package.json and the given files.
    Returns the package directory.
    """
    package_dir = root / rel_dir
    package_dir.mkdir(parents=True, exist_ok=True)
    (package_dir / "package.json").write_text(
        json.dumps({"name": name, "version": version}), encoding="utf-8"
    )
    for rel_path, content in (files or {}).items():
        file_path = package_dir / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(content)
    return package_dir


def make_group(*package_dirs: Path) -> PackageGroup:
    """Build a group from existing package directories, keyed by the first manifest."""
    entries = [
        PackageScannerImpl._process_manifest(os.path.join(str(d), "package.json"))
        for d in package_dirs
    ]
    with open(os.path.join(str(package_dirs[0]), "package.json"), encoding="utf-8") as f:
        manifest = json.load(f)
    key = CorrelationKey(entries[0].device_id, manifest["name"], manifest["version"])
    return PackageGroup(key=key, entries=entries)


@pytest.fixture
def temp_dir():
    """Creates isolated temporary directory, auto-cleanup after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def lodash_projects(temp_dir) -> Dict[str, Path]:
    """
    Two projects with identical copies of lodash@4.17.21 plus unrelated packages:
    - proj_a/node_modules/lodash   (canonical, smallest path)
    - proj_b/node_modules/lodash   (duplicate)
    - proj_a/node_modules/left-pad (unique)
    - proj_b/node_modules/chalk@5.0.0 and proj_a/node_modules/chalk@4.1.2 (same name, different version)
    """
    paths = {
        "lodash_a": make_package(temp_dir, "proj_a/node_modules/lodash", "lodash", "4.17.21", LODASH_FILES),
        "lodash_b": make_package(temp_dir, "proj_b/node_modules/lodash", "lodash", "4.17.21", LODASH_FILES),
        "left_pad": make_package(temp_dir, "proj_a/node_modules/left-pad", "left-pad", "1.3.0",
                                 {"index.js": b"P" * 100}),
        "chalk_a": make_package(temp_dir, "proj_a/node_modules/chalk", "chalk", "4.1.2",
                                {"index.js": b"C" * 300}),
        "chalk_b": make_package(temp_dir, "proj_b/node_modules/chalk", "chalk", "5.0.0",
                                {"index.js": b"C" * 300}),
    }
    paths["root"] = temp_dir
    return paths


@pytest.fixture
def refs_file(temp_dir) -> Path:
    """Path of a reference store inside the temp dir (not created)."""
    return temp_dir / "state" / "refs.json"
