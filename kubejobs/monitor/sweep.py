from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass
class SweepResult:
    """Counters describing one run of a reconciliation task."""

    task: str
    examined: int = 0
    deleted: int = 0
    notified: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

