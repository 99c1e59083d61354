from __future__ import annotations
from typing import Protocol, Optional, runtime_checkable
from .models import OptimalPolicy, Reading


@runtime_checkable
class Repository(Protocol):
    async def init(self) -> None:
        ...

    async def insert_reading(self, reading: Reading) -> Reading:
        ...

    async def recent_readings(self, limit: int) -> list[Reading]:
        ...

    async def get_policy(self) -> Optional[OptimalPolicy]:
        ...

    async def set_policy(self, policy: OptimalPolicy) -> None:
        ...
