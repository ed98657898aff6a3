"""Human-readable formatting of byte counts, rates and durations."""

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB


def human_size(size_bytes: int | float | None) -> str:
    """Format a byte count using binary units.

    Args:
        size_bytes: Number of bytes (None is treated as zero).

    Returns:
        String such as '512 B', '4 KiB', '1.5 MiB' or '2.0 GiB'.
    """
    size = float(size_bytes or 0)
    if size >= GIB:
        return f"{size / GIB:.1f} GiB"
    if size >= MIB:
        return f"{size / MIB:.1f} MiB"
    if size >= KIB:
        return f"{size / KIB:.0f} KiB"
    return f"{int(size)} B"


def human_rate(bytes_per_second: float) -> str:
    """Format a throughput in bytes per second."""
    return f"{human_size(max(0.0, bytes_per_second))}/s"


def format_eta(seconds: float | None) -> str:
    """Format a remaining duration as M:SS or H:MM:SS ('--:--' if unknown)."""
    if seconds is None or seconds < 0:
        return "--:--"
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours:d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


__all__ = ["GIB", "KIB", "MIB", "format_eta", "human_rate", "human_size"]
