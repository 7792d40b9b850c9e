"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

utils/convert_utils.py
"""
import re

_UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]
_MULTIPLIERS = {unit[0]: 1024 ** power for power, unit in enumerate(_UNITS)}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([BKMGTP]?)B?\s*$", re.IGNORECASE)


class ConvertUtils:
    @staticmethod
    def bytes_to_human(size_bytes: int) -> str:
        """
        Convert a byte count to a short string: 0B, 512B, 1.50KB, 2.00MB.
        """
        if size_bytes <= 0:
            return "0B"
        value = float(size_bytes)
        for unit in _UNITS:
            if value < 1024 or unit == _UNITS[-1]:
                if unit == "B":
                    return f"{int(value)}B"
                return f"{value:.2f}{unit}"
            value /= 1024
        return f"{value:.2f}{_UNITS[-1]}"

    @staticmethod
    def human_to_bytes(size_str: str) -> int:
        """
        Parse '100', '100B', '1.5K', '2MB', '1g' into bytes.
        Raises ValueError for anything else, negative values included.
        """
        match = _SIZE_RE.match(str(size_str))
        if not match:
            raise ValueError(
                f"Invalid size format: '{size_str}'. "
                f"Supported formats: 1000, 500K, 2MB, 1.5G"
            )
        number, unit = match.groups()
        multiplier = _MULTIPLIERS[unit.upper()] if unit else 1
        return int(float(number) * multiplier)
