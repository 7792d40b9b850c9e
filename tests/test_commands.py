"""
Integration tests for PkgLinkCommand: the orchestration layer between CLI and core.
Verifies scan → group → link/prune → persist wiring, cancellation and idempotence.
"""
import json
import os
import pytest

from pkglinker import PkgLinkCommand, LinkParams, ActionMode, CorrelationKey
from conftest import LODASH_FILES

LODASH_BYTES = sum(len(content) for content in LODASH_FILES.values())


def same_file(a, b) -> bool:
    return os.stat(a).st_ino == os.stat(b).st_ino


def lodash_key(projects) -> str:
    dev = os.lstat(projects["lodash_a"] / "package.json").st_dev
    return str(CorrelationKey(dev, "lodash", "4.17.21"))


class TestPkgLinkCommand:
    """Test command orchestration across the whole pipeline."""

    def test_links_duplicate_package(self, lodash_projects, refs_file):
        """
        Two identical lodash@4.17.21 copies: the duplicate's files become
        hard links to the canonical copy and both directories are recorded.
        """
        params = LinkParams(root_dirs=[str(lodash_projects["root"])], refs_file=str(refs_file))

        summary = PkgLinkCommand().execute(params)

        a, b = lodash_projects["lodash_a"], lodash_projects["lodash_b"]
        for rel_path in LODASH_FILES:
            assert same_file(a / rel_path, b / rel_path)
        assert summary.bytes_saved == LODASH_BYTES
        assert summary.packages_scanned == 5
        assert summary.groups_linked == 1
        assert summary.groups_failed == 0
        assert summary.store_updated

        stored = json.loads(refs_file.read_text())
        assert list(stored) == [lodash_key(lodash_projects)]
        assert sorted(r[0] for r in stored[lodash_key(lodash_projects)]) == [str(a), str(b)]

    def test_different_versions_are_not_linked(self, lodash_projects, refs_file):
        params = LinkParams(root_dirs=[str(lodash_projects["root"])], refs_file=str(refs_file))

        PkgLinkCommand().execute(params)

        assert not same_file(lodash_projects["chalk_a"] / "index.js", lodash_projects["chalk_b"] / "index.js")

    def test_second_run_is_idempotent(self, lodash_projects, refs_file):
        params = LinkParams(root_dirs=[str(lodash_projects["root"])], refs_file=str(refs_file))
        PkgLinkCommand().execute(params)
        written = refs_file.read_text()

        summary = PkgLinkCommand().execute(params)

        assert summary.bytes_saved == 0
        assert not summary.store_updated
        assert refs_file.read_text() == written

    def test_roots_given_separately(self, lodash_projects, refs_file):
        root = lodash_projects["root"]
        params = LinkParams(root_dirs=[str(root / "proj_a"), str(root / "proj_b")], refs_file=str(refs_file))

        summary = PkgLinkCommand().execute(params)

        assert summary.bytes_saved == LODASH_BYTES

    def test_dry_run_changes_nothing(self, lodash_projects, refs_file):
        """CRITICAL: dry run reports savings but leaves files and the store alone."""
        lines = []
        params = LinkParams(
            root_dirs=[str(lodash_projects["root"])],
            refs_file=str(refs_file),
            action_mode=ActionMode.DRY_RUN,
        )

        summary = PkgLinkCommand().execute(params, output_callback=lines.append)

        assert summary.bytes_saved == LODASH_BYTES
        assert len(lines) == 1 and lines[0].startswith("would link ")
        assert not same_file(lodash_projects["lodash_a"] / "lodash.js", lodash_projects["lodash_b"] / "lodash.js")
        assert not refs_file.exists()
        assert not summary.store_updated

    def test_generate_commands_without_refs_file(self, lodash_projects):
        lines = []
        params = LinkParams(root_dirs=[str(lodash_projects["root"])], action_mode=ActionMode.GENERATE_COMMANDS)

        PkgLinkCommand().execute(params, output_callback=lines.append)

        assert len(lines) == len(LODASH_FILES)
        assert all(line.startswith("ln -f ") for line in lines)

    def test_min_size_filters_small_packages(self, lodash_projects, refs_file):
        params = LinkParams(
            root_dirs=[str(lodash_projects["root"])],
            refs_file=str(refs_file),
            min_size=1024 * 1024,
        )

        summary = PkgLinkCommand().execute(params)

        assert summary.bytes_saved == 0
        assert not refs_file.exists()

    def test_progress_callback_receives_stages(self, lodash_projects, refs_file):
        events = []
        params = LinkParams(root_dirs=[str(lodash_projects["root"])], refs_file=str(refs_file))

        PkgLinkCommand().execute(params, progress_callback=lambda *e: events.append(e))

        stages = {e[0] for e in events}
        assert {"scanning", "linking"} <= stages
        assert max(e[1] for e in events if e[0] == "scanning") == 5
        assert ("linking", 1, 1) in events

    def test_pathological_manifest_does_not_abort_run(self, lodash_projects, refs_file):
        """One undecodable package.json is dropped; the other groups are still linked."""
        evil = lodash_projects["root"] / "z" / "node_modules" / "evil"
        evil.mkdir(parents=True)
        (evil / "package.json").write_text("[" * 200000 + "]" * 200000)
        params = LinkParams(root_dirs=[str(lodash_projects["root"])], refs_file=str(refs_file))

        summary = PkgLinkCommand().execute(params)

        assert summary.packages_scanned == 5
        assert summary.bytes_saved == LODASH_BYTES
        assert same_file(lodash_projects["lodash_a"] / "lodash.js", lodash_projects["lodash_b"] / "lodash.js")

    def test_missing_root_raises(self, temp_dir, refs_file):
        params = LinkParams(root_dirs=[str(temp_dir / "missing")], refs_file=str(refs_file))

        with pytest.raises(RuntimeError, match="Directory does not exist"):
            PkgLinkCommand().execute(params)


class TestPruneAndCancel:
    def test_prune_only_drops_stale_refs(self, lodash_projects, refs_file):
        a = lodash_projects["lodash_a"]
        st = os.lstat(a / "package.json")
        refs_file.parent.mkdir(parents=True)
        refs_file.write_text(json.dumps({
            "1:lodash-4.17.21": [
                [str(a), st.st_ino, int(st.st_mtime)],
                [str(lodash_projects["root"] / "gone"), 1, 2],
            ]
        }))

        summary = PkgLinkCommand().execute(LinkParams(prune=True, refs_file=str(refs_file)))

        assert summary.refs_pruned == 1
        assert summary.store_updated
        assert json.loads(refs_file.read_text()) == {
            "1:lodash-4.17.21": [[str(a), st.st_ino, int(st.st_mtime)]]
        }

    def test_prune_then_link_in_one_run(self, lodash_projects, refs_file):
        refs_file.parent.mkdir(parents=True)
        refs_file.write_text(json.dumps({"1:left-pad-1.3.0": [["/nowhere/node_modules/left-pad", 1, 2]]}))
        params = LinkParams(root_dirs=[str(lodash_projects["root"])], refs_file=str(refs_file), prune=True)

        summary = PkgLinkCommand().execute(params)

        assert summary.refs_pruned == 1
        assert list(json.loads(refs_file.read_text())) == [lodash_key(lodash_projects)]

    def test_cancelled_run_links_nothing(self, lodash_projects, refs_file):
        """Cancellation before grouping completes discards every group."""
        command = PkgLinkCommand()
        command.cancel()
        params = LinkParams(root_dirs=[str(lodash_projects["root"])], refs_file=str(refs_file))

        summary = command.execute(params)

        assert summary.cancelled
        assert summary.groups_linked == 0
        assert not same_file(lodash_projects["lodash_a"] / "lodash.js", lodash_projects["lodash_b"] / "lodash.js")

    def test_cancel_during_scan_discards_partial_groups(self, lodash_projects, refs_file):
        command = PkgLinkCommand()

        def cancel_on_first_package(stage, current, detail):
            if stage == "scanning":
                command.cancel()

        params = LinkParams(root_dirs=[str(lodash_projects["root"])], refs_file=str(refs_file))
        summary = command.execute(params, progress_callback=cancel_on_first_package)

        assert summary.cancelled
        assert summary.bytes_saved == 0
        assert not same_file(lodash_projects["lodash_a"] / "lodash.js", lodash_projects["lodash_b"] / "lodash.js")
