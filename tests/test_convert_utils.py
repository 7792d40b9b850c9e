"""
Tests for size conversion utilities: used by --size and the savings summary.
"""
import pytest
from pkglinker.utils.convert_utils import ConvertUtils


class TestHumanToBytes:
    """Conversion from human-readable sizes (e.g., "500KB") to bytes."""

    def test_bytes_without_suffix(self):
        """Plain numbers should be interpreted as bytes."""
        assert ConvertUtils.human_to_bytes("0") == 0
        assert ConvertUtils.human_to_bytes("1024") == 1024

    def test_bytes_with_b_suffix(self):
        assert ConvertUtils.human_to_bytes("1024B") == 1024

    def test_binary_multipliers(self):
        """Suffixes multiply by powers of 1024, with or without the trailing B."""
        assert ConvertUtils.human_to_bytes("1K") == 1024
        assert ConvertUtils.human_to_bytes("1.5KB") == 1536
        assert ConvertUtils.human_to_bytes("2MB") == 2 * 1024 ** 2
        assert ConvertUtils.human_to_bytes("1G") == 1024 ** 3

    def test_case_and_whitespace_insensitive(self):
        assert ConvertUtils.human_to_bytes(" 100 kb ") == 100 * 1024
        assert ConvertUtils.human_to_bytes("3m") == 3 * 1024 ** 2

    @pytest.mark.parametrize("value", ["", "abc", "-5", "10XB", "K", "1.2.3MB"])
    def test_invalid_input(self, value):
        with pytest.raises(ValueError, match="Invalid size format"):
            ConvertUtils.human_to_bytes(value)


class TestBytesToHuman:
    """Formatting for the saved-bytes summary."""

    def test_small_values(self):
        assert ConvertUtils.bytes_to_human(0) == "0B"
        assert ConvertUtils.bytes_to_human(512) == "512B"
        assert ConvertUtils.bytes_to_human(1023) == "1023B"

    def test_scaled_values(self):
        assert ConvertUtils.bytes_to_human(1536) == "1.50KB"
        assert ConvertUtils.bytes_to_human(2 * 1024 ** 2) == "2.00MB"
        assert ConvertUtils.bytes_to_human(5 * 1024 ** 4) == "5.00TB"

    def test_negative_is_zero(self):
        assert ConvertUtils.bytes_to_human(-10) == "0B"
