"""
Tests for StreamingGrouper and PackageGroup.
Groups are only complete at end of stream and are discarded on cancellation.
"""
import pytest

from pkglinker.core.grouper import StreamingGrouper
from pkglinker.core.models import CorrelationKey, KeyedEntry, PackageEntry, PackageGroup


def entry(path: str, device_id: int = 1) -> PackageEntry:
    return PackageEntry(
        absolute_path=f"{path}/package.json",
        parent_dir_path=path,
        device_id=device_id,
        inode=hash(path) & 0xFFFF,
        mod_time_epoch=1700000000,
        size_bytes=50,
    )


LODASH = CorrelationKey(1, "lodash", "4.17.21")
CHALK = CorrelationKey(1, "chalk", "5.0.0")


class TestStreamingGrouper:
    """Correlation of an unordered keyed stream."""

    def test_groups_interleaved_keys(self):
        grouper = StreamingGrouper()
        a, b, c = entry("/a/node_modules/lodash"), entry("/b/node_modules/chalk"), entry("/c/node_modules/lodash")

        grouper.add(LODASH, a)
        grouper.add(CHALK, b)
        grouper.add(LODASH, c)
        groups = {g.key: g for g in grouper.flush()}

        assert set(groups) == {LODASH, CHALK}
        assert groups[LODASH].entries == [a, c]  # arrival order
        assert groups[CHALK].entries == [b]
        assert groups[LODASH].is_duplicate()
        assert not groups[CHALK].is_duplicate()

    def test_consume_skips_rejected_entries(self):
        a, b = entry("/a/node_modules/lodash"), entry("/b/node_modules/lodash")
        stream = [KeyedEntry(LODASH, a), None, KeyedEntry(LODASH, b), None]

        groups = StreamingGrouper().consume(stream)

        assert len(groups) == 1
        assert groups[0].duplicate_count == 2

    def test_flush_clears_state(self):
        grouper = StreamingGrouper()
        grouper.add(LODASH, entry("/a/node_modules/lodash"))

        assert len(grouper.flush()) == 1
        assert grouper.flush() == []

    def test_cancelled_grouper_rejects_and_discards(self):
        """CRITICAL: a cancelled run must never act on partial groups."""
        stopped = {"value": False}
        grouper = StreamingGrouper(stopped_flag=lambda: stopped["value"])

        assert grouper.add(LODASH, entry("/a/node_modules/lodash"))
        stopped["value"] = True
        assert not grouper.add(LODASH, entry("/b/node_modules/lodash"))
        assert grouper.flush() == []

    def test_consume_stops_at_cancellation(self):
        pulled = []

        def stream():
            for i in range(10):
                pulled.append(i)
                yield KeyedEntry(LODASH, entry(f"/p{i}/node_modules/lodash"))

        grouper = StreamingGrouper(stopped_flag=lambda: len(pulled) >= 3)

        assert grouper.consume(stream()) == []
        assert len(pulled) == 3


class TestPackageGroup:
    def test_grouper_enforces_device_invariant(self):
        """Groups are built through add_entry, so an entry under a foreign key is refused."""
        grouper = StreamingGrouper()
        grouper.add(CorrelationKey(1, "lodash", "4.17.21"), entry("/b/node_modules/lodash", device_id=2))

        with pytest.raises(ValueError, match="different device"):
            grouper.flush()

    def test_rejects_entry_from_other_device(self):
        group = PackageGroup(key=LODASH)
        group.add_entry(entry("/a/node_modules/lodash", device_id=1))

        with pytest.raises(ValueError, match="different device"):
            group.add_entry(entry("/b/node_modules/lodash", device_id=2))

    def test_same_package_on_two_devices_gives_two_groups(self):
        grouper = StreamingGrouper()
        grouper.add(CorrelationKey(1, "lodash", "4.17.21"), entry("/a/node_modules/lodash", 1))
        grouper.add(CorrelationKey(2, "lodash", "4.17.21"), entry("/b/node_modules/lodash", 2))

        groups = grouper.flush()

        assert len(groups) == 2
        assert not any(g.is_duplicate() for g in groups)
