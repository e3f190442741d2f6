"""
sbe_log.py - Minimal stderr logging for the SBE codec generator.
"""

import sys

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def log_info(msg: str) -> None:
    print(f"[INFO] {msg}", file=sys.stderr)


def log_warn(msg: str) -> None:
    print(f"[WARN] {msg}", file=sys.stderr)


def log_debug(msg: str) -> None:
    if _verbose:
        print(f"[DEBUG] {msg}", file=sys.stderr)
