"""Human-readable sizes and durations for console output."""
import math

_SIZES = ('Bytes', 'KB', 'MB', 'GB', 'TB')


def format_bytes(count: int, decimals: int = 2) -> str:
    if count <= 0:
        return '0 Bytes'
    k = 1024
    i = min(int(math.floor(math.log(count) / math.log(k))), len(_SIZES) - 1)
    value = round(count / math.pow(k, i), max(decimals, 0))
    return f"{value:g} {_SIZES[i]}"


def format_duration(seconds: float) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)
