"""Line-oriented operator console for a control surface"""

from typing import List

from .. import config
from ..models.program import DAY_NAMES_SHORT, Program, parse_entry
from .surface import ControlSurface

HELP = [
    "pump [on|off]        toggle or set the pump",
    "valve 1|2            select Cascada (1) or Eyectores (2)",
    "timer MODE MINUTES   run the pump for MINUTES in valve MODE",
    "stop                 stop the running timer",
    "wifi-clear           erase the controller WiFi credentials",
    "status               show the mirrored device state",
    "programs             list the weekly programs",
    "programs set SLOT NAME DAY,MODE,HH:MM,HH:MM ...   store a program (day 0=Sunday)",
    "programs toggle SLOT enable/disable a program",
    "programs delete SLOT empty a slot",
    "quit                 leave the console",
]


class SurfaceConsole:
    """Parses operator lines and calls the matching ControlSurface operation."""

    def __init__(self, surface: ControlSurface):
        self.surface = surface

    def execute(self, line: str) -> List[str]:
        parts = line.strip().split()
        if not parts:
            return []
        command, args = parts[0].lower(), parts[1:]

        try:
            if command == "pump":
                return self._pump(args)
            if command == "valve":
                return self._valve(args)
            if command == "timer":
                return self._timer(args)
            if command == "stop":
                return self._result(self.surface.stop_timer(), "timer stop sent")
            if command == "wifi-clear":
                return self._result(self.surface.clear_wifi(), "wifi clear sent")
            if command == "status":
                return self.surface.status_lines()
            if command == "programs":
                return self._programs(args)
            if command in ("help", "?"):
                return list(HELP)
        except (ValueError, KeyError) as e:
            return [f"error: {e}"]

        return [f"unknown command: {command} (try 'help')"]

    def _result(self, ok: bool, message: str) -> List[str]:
        return [message] if ok else ["not connected to broker"]

    def _pump(self, args) -> List[str]:
        if not args:
            return self._result(self.surface.toggle_pump(), "pump toggle sent")
        verb = args[0].lower()
        if verb not in ("on", "off"):
            raise ValueError("use: pump [on|off]")
        return self._result(self.surface.set_pump(verb == "on"), f"pump {verb} sent")

    def _valve(self, args) -> List[str]:
        if len(args) != 1 or args[0] not in ("1", "2"):
            raise ValueError("use: valve 1|2")
        return self._result(self.surface.select_valve(int(args[0])), "valve command sent")

    def _timer(self, args) -> List[str]:
        if len(args) != 2:
            raise ValueError("use: timer MODE MINUTES")
        mode, minutes = int(args[0]), int(args[1])
        ok = self.surface.start_timer(mode, minutes * 60)
        return self._result(ok, f"timer started: {minutes} min in mode {mode}")

    def _programs(self, args) -> List[str]:
        scheduler = self.surface.scheduler
        if scheduler is None:
            return ["programs disabled"]
        if not args:
            return self._list_programs()

        action, rest = args[0].lower(), args[1:]
        if action == "set":
            if len(rest) < 2:
                raise ValueError("use: programs set SLOT NAME DAY,MODE,HH:MM,HH:MM ...")
            program = Program(name=rest[1], schedule=dict(parse_entry(e) for e in rest[2:]))
            scheduler.set_program(int(rest[0]), program)
            return [f"saved '{program.name}' in slot {rest[0]}"]
        if action in ("toggle", "delete"):
            if len(rest) != 1:
                raise ValueError(f"use: programs {action} SLOT")
            slot = int(rest[0])
            if action == "toggle":
                enabled = scheduler.toggle_program(slot)
                return [f"slot {slot} {'enabled' if enabled else 'disabled'}"]
            if not scheduler.delete_program(slot):
                return [f"slot {slot} is already empty"]
            return [f"slot {slot} emptied"]
        raise ValueError("use: programs [set|toggle|delete]")

    def _list_programs(self) -> List[str]:
        scheduler = self.surface.scheduler
        scheduler.reload_programs()
        lines = []
        for slot in range(config.MAX_PROGRAMS):
            program = scheduler.programs.get(slot)
            if program is None:
                lines.append(f"[{slot}] (empty)")
                continue
            flag = "on " if program.enabled else "off"
            lines.append(f"[{slot}] {flag} {program.name} - {program.summary()}")
            for day in sorted(program.schedule):
                entry = program.schedule[day]
                if entry.is_complete:
                    lines.append(f"      {DAY_NAMES_SHORT[day]} mode {entry.mode} {entry.start}-{entry.stop}")
        return lines
