"""
Weekly program executor.

Runs on the control surface. Every evaluation picks the highest priority
matching program (lowest slot) and drives the controller through the same
pump/valve command channels a human uses. A manual command while a program
is executing pauses all programs until the next calendar day.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .. import config
from ..core.clock import Clock
from ..models.program import (
    DAY_NAMES,
    ExecutionState,
    ManualOverride,
    Program,
    hhmm_of,
    weekday_of,
)
from ..models.state import MODE_NAMES

logger = logging.getLogger(__name__)

# Command kinds passed to the emit callback
EMIT_VALVE = "valve"
EMIT_PUMP = "pump"


class SchedulerState(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    OVERRIDDEN = "overridden"


class ProgramScheduler:
    """
    Args:
        store: LocalDatabase holding programs and the manual override
        emit: callable(kind, payload) publishing a valve or pump command;
            returns False when the command could not be sent
        clock: wall clock used when evaluate() gets no explicit time
        on_conflict: callable(winner_name, [loser_names]) for the operator
        is_blocked: callable returning True while a manual timer runs
    """

    def __init__(self, store, emit: Callable[[str, str], bool], clock: Clock = None,
                 on_conflict: Callable[[str, List[str]], None] = None,
                 is_blocked: Callable[[], bool] = None):
        self.store = store
        self.emit = emit
        self.clock = clock or Clock()
        self.on_conflict = on_conflict
        self.is_blocked = is_blocked

        self.programs: Dict[int, Program] = store.load_programs()
        self.override = self._load_override()
        self.executing: Optional[ExecutionState] = None
        self.state = SchedulerState.OVERRIDDEN if self.override.active else SchedulerState.IDLE
        self._reported_conflict: Optional[Tuple] = None

        logger.info(f"Program scheduler initialized ({len(self.programs)} programs, "
                    f"state={self.state.value})")

    # =========================================================================
    # OVERRIDE PERSISTENCE
    # =========================================================================

    def _load_override(self) -> ManualOverride:
        raw = self.store.load_override_json()
        if not raw:
            return ManualOverride()
        try:
            return ManualOverride.model_validate_json(raw)
        except ValueError as e:
            logger.error(f"Discarding corrupt manual override record: {e}")
            return ManualOverride()

    def _save_override(self):
        self.store.save_override_json(self.override.model_dump_json() if self.override.active else None)

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def _matches(self, now: datetime) -> List[Tuple[int, Program]]:
        day = weekday_of(now)
        hhmm = hhmm_of(now)
        return [
            (slot, self.programs[slot])
            for slot in range(config.MAX_PROGRAMS)
            if slot in self.programs and self.programs[slot].matches(day, hhmm)
        ]

    def evaluate(self, now: datetime = None) -> List[str]:
        """Run one evaluation tick. Returns the names of conflicting programs."""
        now = now or self.clock.now()
        self.reload_programs()

        if self.state is SchedulerState.OVERRIDDEN:
            if not self.override.expired_at(now):
                return []
            logger.info("Programs resumed (new day)")
            self.override = ManualOverride()
            self._save_override()
            self.state = SchedulerState.IDLE

        matches = self._matches(now)
        if not matches:
            self._reported_conflict = None
            if self.state is SchedulerState.EXECUTING:
                self._stop_execution()
            return []

        day = weekday_of(now)
        slot, program = matches[0]
        entry = program.entry_for(day)
        conflicts = [p.name for _, p in matches[1:]]
        identity = (slot, day, entry.mode)

        if conflicts:
            logger.warning(f"Program conflict: '{program.name}' has priority over: {', '.join(conflicts)}")
            report = (identity, tuple(conflicts))
            if report != self._reported_conflict:
                self._reported_conflict = report
                if self.on_conflict:
                    self.on_conflict(program.name, conflicts)
        else:
            self._reported_conflict = None

        if self.state is SchedulerState.EXECUTING and self.executing.identity == identity:
            return conflicts

        if self.state is SchedulerState.IDLE and self.is_blocked and self.is_blocked():
            logger.info(f"Timer active, not starting program '{program.name}'")
            return conflicts

        logger.info(f"Executing program '{program.name}' - {DAY_NAMES[day]} - "
                    f"{MODE_NAMES[entry.mode]} ({entry.start} - {entry.stop})")
        if not (self.emit(EMIT_VALVE, str(entry.mode)) and self.emit(EMIT_PUMP, "ON")):
            logger.warning(f"Program '{program.name}' commands not sent - retrying on next evaluation")
            return conflicts
        self.executing = ExecutionState(slot=slot, day=day, mode=entry.mode, program_name=program.name)
        self.state = SchedulerState.EXECUTING
        return conflicts

    def _stop_execution(self):
        logger.info(f"Program '{self.executing.program_name}' finished")
        if not self.emit(EMIT_PUMP, "OFF"):
            logger.warning("Pump OFF not sent - retrying on next evaluation")
            return
        self.executing = None
        self.state = SchedulerState.IDLE

    def manual_override(self, now: datetime = None) -> bool:
        """Pause programs until tomorrow. Only acts while a program is executing."""
        if self.state is not SchedulerState.EXECUTING:
            return False
        now = now or self.clock.now()
        logger.warning(f"Manual control - program '{self.executing.program_name}' paused until tomorrow")
        self.emit(EMIT_PUMP, "OFF")
        self.executing = None
        self.state = SchedulerState.OVERRIDDEN
        self.override = ManualOverride(active=True, since=now)
        self._save_override()
        return True

    @property
    def is_executing(self) -> bool:
        return self.state is SchedulerState.EXECUTING

    def active_program_name(self, now: datetime = None) -> Optional[str]:
        """Name of the program whose window covers now, if any."""
        matches = self._matches(now or self.clock.now())
        return matches[0][1].name if matches else None

    # =========================================================================
    # PROGRAM CRUD
    # =========================================================================

    def reload_programs(self):
        """Re-read the slots; main.py programs edits them from another process."""
        self.programs = self.store.load_programs()

    def _check_slot(self, slot: int):
        if not 0 <= slot < config.MAX_PROGRAMS:
            raise ValueError(f"slot must be 0-{config.MAX_PROGRAMS - 1}, got {slot}")

    def _is_executing_slot(self, slot: int) -> bool:
        return self.executing is not None and self.executing.slot == slot

    def set_program(self, slot: int, program: Program):
        self._check_slot(slot)
        was_executing = self._is_executing_slot(slot)
        self.store.save_program(slot, program)
        self.programs[slot] = program
        logger.info(f"Program '{program.name}' saved in slot {slot}")
        if program.enabled or was_executing:
            self.evaluate()

    def delete_program(self, slot: int) -> bool:
        self._check_slot(slot)
        self.reload_programs()
        if slot not in self.programs:
            return False
        program = self.programs.pop(slot)
        self.store.delete_program(slot)
        logger.info(f"Program '{program.name}' deleted from slot {slot}")
        if self._is_executing_slot(slot):
            self.evaluate()
        return True

    def toggle_program(self, slot: int) -> bool:
        """Flip enabled on a slot. Returns the new enabled flag."""
        self._check_slot(slot)
        self.reload_programs()
        if slot not in self.programs:
            raise KeyError(f"slot {slot} is empty")
        program = self.programs[slot].model_copy(update={"enabled": not self.programs[slot].enabled})
        self.store.save_program(slot, program)
        self.programs[slot] = program
        logger.info(f"Program '{program.name}' {'enabled' if program.enabled else 'disabled'}")
        if program.enabled or self._is_executing_slot(slot):
            self.evaluate()
        return program.enabled
