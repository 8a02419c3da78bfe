"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

utils/convert_utils.py
Byte-size and percentage formatting helpers for console output and CLI parsing.
"""

_UNITS = {
    'PB': 1024 ** 5, 'P': 1024 ** 5,
    'TB': 1024 ** 4, 'T': 1024 ** 4,
    'GB': 1024 ** 3, 'G': 1024 ** 3,
    'MB': 1024 ** 2, 'M': 1024 ** 2,
    'KB': 1024, 'K': 1024,
    'B': 1,
}


class ConvertUtils:
    @staticmethod
    def bytes_to_human(size_bytes: int, decimals: int = 2) -> str:
        """
        Format a byte count: 0 -> '0 B', 1536 -> '1.50 KB'.
        """
        if size_bytes <= 0:
            return "0 B"

        value = float(size_bytes)
        for unit in ("B", "KB", "MB", "GB", "TB"):
            if value < 1024:
                if unit == "B":
                    return f"{int(value)} B"
                return f"{value:.{decimals}f} {unit}"
            value /= 1024
        return f"{value:.{decimals}f} PB"

    @staticmethod
    def human_to_bytes(size_str: str) -> int:
        """
        Parse '1.5GB', '2048KB', '1000', '1K', '10 MB' into bytes.
        Raises ValueError for negative values or unknown formats.
        """
        text = str(size_str).strip().upper().replace(" ", "")
        if not text:
            raise ValueError("Empty size value")

        # Longest suffix first so 'KB' is not read as 'K' + 'B'
        for unit in sorted(_UNITS, key=len, reverse=True):
            if text.endswith(unit):
                number = text[:-len(unit)]
                try:
                    value = float(number)
                except ValueError:
                    raise ValueError(f"Invalid numeric value in size: '{size_str}'")
                break
        else:
            unit = 'B'
            try:
                value = float(text)
            except ValueError:
                raise ValueError(
                    f"Invalid size format: '{size_str}'. "
                    f"Supported formats: 1.5GB, 2048KB, 1000, 1K, 1M, etc."
                )

        if value < 0:
            raise ValueError(f"Negative size not allowed: '{size_str}'")
        return int(value * _UNITS[unit])

    @staticmethod
    def percent(part: int, whole: int) -> float:
        """Share of part in whole, in percent, 0.0 when whole is zero."""
        if whole <= 0:
            return 0.0
        return part * 100.0 / whole
