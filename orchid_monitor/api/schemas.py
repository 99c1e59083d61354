from __future__ import annotations
from pydantic import BaseModel
from typing import Any, Optional


class ReadingIn(BaseModel):
    # Loosely typed on purpose: missing/non-numeric values must produce a
    # 400 with our own message rather than FastAPI's 422
    temperature: Any = None
    humidity: Any = None


class SimulateRequest(BaseModel):
    enable: bool = False
    pattern: Any = "alternate"
    interval: Any = 5000


class PolicyIn(BaseModel):
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None
    min_humidity: Optional[float] = None
    max_humidity: Optional[float] = None
