"""Weekly program models used by the scheduler"""

import re
from datetime import datetime
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from .state import MODE_NAMES

DAY_NAMES = ['Domingo', 'Lunes', 'Martes', 'Miércoles', 'Jueves', 'Viernes', 'Sábado']
DAY_NAMES_SHORT = ['Do', 'Lu', 'Ma', 'Mi', 'Ju', 'Vi', 'Sa']

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def weekday_of(moment: datetime) -> int:
    """Day index used by programs: 0 = Sunday .. 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def hhmm_of(moment: datetime) -> str:
    return moment.strftime("%H:%M")


class DaySchedule(BaseModel):
    mode: Optional[int] = None
    start: Optional[str] = None   # "HH:MM"
    stop: Optional[str] = None    # "HH:MM"

    @field_validator("mode")
    @classmethod
    def _check_mode(cls, v):
        if v is not None and v not in MODE_NAMES:
            raise ValueError(f"mode must be 1 or 2, got {v}")
        return v

    @field_validator("start", "stop")
    @classmethod
    def _check_time(cls, v):
        if v in (None, ""):
            return None
        if not _HHMM.match(v):
            raise ValueError(f"time must be HH:MM, got {v!r}")
        return v

    @property
    def is_complete(self) -> bool:
        return bool(self.mode and self.start and self.stop)

    def covers(self, hhmm: str) -> bool:
        """True when hhmm falls in [start, stop). Incomplete entries never match."""
        if not self.is_complete:
            return False
        return self.start <= hhmm < self.stop


def parse_entry(text: str) -> Tuple[int, DaySchedule]:
    """DAY,MODE,START,STOP -> (day, DaySchedule), e.g. 1,1,08:00,09:00"""
    parts = [part.strip() for part in text.split(",")]
    if len(parts) != 4:
        raise ValueError(f"entry must be DAY,MODE,START,STOP, got {text!r}")
    day, mode, start, stop = parts
    return int(day), DaySchedule(mode=int(mode), start=start, stop=stop)


class Program(BaseModel):
    name: str = Field(min_length=1)
    enabled: bool = True
    schedule: Dict[int, DaySchedule] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("program name must not be empty")
        return v

    @field_validator("schedule")
    @classmethod
    def _check_days(cls, v):
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"day must be 0-6, got {day}")
        return v

    def entry_for(self, day: int) -> Optional[DaySchedule]:
        return self.schedule.get(day)

    def matches(self, day: int, hhmm: str) -> bool:
        if not self.enabled:
            return False
        entry = self.entry_for(day)
        return entry is not None and entry.covers(hhmm)

    def summary(self) -> str:
        """One line description: days, modes and time windows."""
        days = ", ".join(DAY_NAMES_SHORT[d] for d in sorted(self.schedule))
        modes = sorted({s.mode for s in self.schedule.values() if s.mode})
        times = sorted({f"{s.start}-{s.stop}" for s in self.schedule.values() if s.is_complete})
        mode_str = ", ".join(MODE_NAMES[m] for m in modes)
        return f"Días: {days} | Modo: {mode_str} | Horario: {', '.join(times)}"


class ExecutionState(BaseModel):
    """The program currently asserting control."""
    slot: int
    day: int
    mode: int
    program_name: str

    @property
    def identity(self) -> Tuple[int, int, int]:
        return (self.slot, self.day, self.mode)


class ManualOverride(BaseModel):
    active: bool = False
    since: Optional[datetime] = None

    def expired_at(self, now: datetime) -> bool:
        """Day-grained: expires on any later calendar date."""
        return self.active and self.since is not None and now.date() > self.since.date()
