from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class HostConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    # Players who sit on a required move this long are removed. 0 disables.
    idle_timeout_ms: int = 120_000
    hello_timeout_s: float = 5.0
    seed: Optional[int] = None
