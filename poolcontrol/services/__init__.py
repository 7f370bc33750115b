"""Surface-side services"""

from .scheduler import ProgramScheduler, SchedulerState
from .timer_mirror import LocalTimerMirror

__all__ = ['ProgramScheduler', 'SchedulerState', 'LocalTimerMirror']
