from __future__ import annotations

from .base import PASSED, CheckResult
from .node_probe import NodeProbe

__all__ = ["PASSED", "CheckResult", "NodeProbe"]
