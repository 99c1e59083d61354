from __future__ import annotations
import aiosqlite
from dataclasses import replace
from typing import List, Optional
from ..core.timeutil import parse_utc
from ..domain.models import OptimalPolicy, Reading, ReadingSource


# The policy table holds a single row; it is always replaced as a whole
_POLICY_ROW_ID = 1


class SQLiteRepository:
    def __init__(self, path: str) -> None:
        self._path = path
        self._ready = False

    async def init(self) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS readings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    temperature REAL NOT NULL,
                    humidity REAL NOT NULL,
                    created_at TEXT NOT NULL,
                    source TEXT NOT NULL
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS optimal_values (
                    id INTEGER PRIMARY KEY,
                    min_temp REAL,
                    max_temp REAL,
                    min_humidity REAL,
                    max_humidity REAL
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_readings_created ON readings(created_at)")
            await db.commit()
        self._ready = True

    async def _ensure_schema(self) -> None:
        # init() may have failed at boot while the volume was unavailable
        if not self._ready:
            await self.init()

    async def insert_reading(self, r: Reading) -> Reading:
        await self._ensure_schema()
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                "INSERT INTO readings(temperature,humidity,created_at,source) VALUES (?,?,?,?)",
                (float(r.temperature), float(r.humidity), r.observed_at.isoformat(timespec="microseconds"), r.source.value),
            )
            await db.commit()
            row_id = cur.lastrowid
        return replace(r, id=row_id)

    async def recent_readings(self, limit: int) -> List[Reading]:
        await self._ensure_schema()
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                """
                SELECT id,temperature,humidity,created_at,source
                FROM readings
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            )
            rows = await cur.fetchall()
        out: list[Reading] = []
        for rid, temp, hum, created, source in rows:
            out.append(
                Reading(
                    temperature=float(temp),
                    humidity=float(hum),
                    observed_at=parse_utc(created),
                    source=ReadingSource(source),
                    id=int(rid),
                )
            )
        return out

    async def get_policy(self) -> Optional[OptimalPolicy]:
        await self._ensure_schema()
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                "SELECT min_temp,max_temp,min_humidity,max_humidity FROM optimal_values WHERE id = ?",
                (_POLICY_ROW_ID,),
            )
            row = await cur.fetchone()
        if row is None:
            return None
        mn_t, mx_t, mn_h, mx_h = row
        return OptimalPolicy(min_temp=mn_t, max_temp=mx_t, min_humidity=mn_h, max_humidity=mx_h)

    async def set_policy(self, p: OptimalPolicy) -> None:
        await self._ensure_schema()
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                "INSERT INTO optimal_values(id,min_temp,max_temp,min_humidity,max_humidity) VALUES (?,?,?,?,?) "
                "ON CONFLICT(id) DO UPDATE SET min_temp=excluded.min_temp, max_temp=excluded.max_temp, "
                "min_humidity=excluded.min_humidity, max_humidity=excluded.max_humidity",
                (_POLICY_ROW_ID, p.min_temp, p.max_temp, p.min_humidity, p.max_humidity),
            )
            await db.commit()
