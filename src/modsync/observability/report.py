"""Human-readable diagnostics on stderr.

Every line carries the ``[HMR]`` tag, local time and the process's peak
resident set size, so a long-running dev session can be watched for leaks
from the terminal alone.
"""

from __future__ import annotations

import resource
import sys
import time
from typing import TextIO

_SIZES = ("Bytes", "KB", "MB", "GB", "TB")


def bytes_to_size(n: int) -> str:
    """Format a byte count with a binary unit, e.g. ``1536 -> '2 KB'``."""
    if n <= 0:
        return "0 Bytes"
    i = min((n.bit_length() - 1) // 10, len(_SIZES) - 1)
    return f"{round(n / 1024**i)} {_SIZES[i]}"


def peak_rss_bytes() -> int:
    """Peak resident set size of this process in bytes."""
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS reports bytes.
    if sys.platform == "darwin":
        return usage
    return usage * 1024


def format_line(message: str) -> str:
    stamp = time.strftime("%H:%M:%S")
    return f"[HMR] {stamp} rss={bytes_to_size(peak_rss_bytes())}  {message}"


def report(message: str, *, stream: TextIO | None = None) -> None:
    """Print one diagnostic line to stderr (or *stream*)."""
    print(format_line(message), file=stream or sys.stderr, flush=True)
