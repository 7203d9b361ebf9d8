from __future__ import annotations

from .formatter import print_operation, print_snapshot, render_snapshot

__all__ = [
    "print_operation",
    "print_snapshot",
    "render_snapshot",
]
