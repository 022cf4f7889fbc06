"""Utility functions for algo-did."""

MICROALGOS_PER_ALGO = 1_000_000


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    if size < 1024:
        return f"{int(size)} B"
    for unit in ["KB", "MB", "GB"]:
        size /= 1024
        if size < 1024:
            return f"{size:.1f} {unit}"
    return f"{size / 1024:.1f} TB"


def format_algos(microalgos: int) -> str:
    """Render a microAlgo amount as ALGO with full precision."""
    whole, frac = divmod(microalgos, MICROALGOS_PER_ALGO)
    return f"{whole}.{frac:06d} ALGO"
