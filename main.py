"""
Pool control - pump, electrovalves and temperature over MQTT

  python main.py controller          run on the device next to the relays
  python main.py surface             operator console mirroring the controller
  python main.py programs list       edit the weekly programs stored locally
  python main.py wifi show           show the network recorded for the controller
"""

import argparse
import asyncio
import logging
import os
import sys

from poolcontrol import config
from poolcontrol.core.server import ControllerServer, SurfaceServer, run_server
from poolcontrol.models.program import Program, parse_entry as parse_program_entry
from poolcontrol.storage.local_db import LocalDatabase
from poolcontrol.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def parse_entry(text: str):
    """argparse type for DAY,MODE,START,STOP"""
    try:
        return parse_program_entry(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid entry {text!r}: {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="poolcontrol", description="Pool pump and valve control over MQTT")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("controller", help="run the device controller")

    surface = sub.add_parser("surface", help="run an operator console")
    surface.add_argument("--no-console", action="store_true", help="mirror and run programs without stdin")

    programs = sub.add_parser(
        "programs", help="manage weekly programs",
        description="A running surface picks up these edits on its next program check; "
                    "its console applies them immediately.")
    prog_sub = programs.add_subparsers(dest="action", required=True)
    prog_sub.add_parser("list", help="show all slots")

    set_cmd = prog_sub.add_parser("set", help="store a program in a slot")
    set_cmd.add_argument("slot", type=int, choices=range(config.MAX_PROGRAMS))
    set_cmd.add_argument("name")
    set_cmd.add_argument("--entry", type=parse_entry, action="append", default=[],
                         help="DAY,MODE,START,STOP (day 0=Sunday); repeatable")
    set_cmd.add_argument("--disabled", action="store_true")

    toggle = prog_sub.add_parser("toggle", help="enable/disable a slot")
    toggle.add_argument("slot", type=int, choices=range(config.MAX_PROGRAMS))

    delete = prog_sub.add_parser("delete", help="empty a slot")
    delete.add_argument("slot", type=int, choices=range(config.MAX_PROGRAMS))

    wifi = sub.add_parser("wifi", help="record the network the controller is provisioned for")
    wifi_sub = wifi.add_subparsers(dest="action", required=True)
    wifi_sub.add_parser("show", help="show the recorded network")
    wifi_set = wifi_sub.add_parser("set", help="record SSID and password")
    wifi_set.add_argument("ssid")
    wifi_set.add_argument("password")
    return parser


def run_programs(args) -> int:
    database = LocalDatabase(config.DB_PATH)
    programs = database.load_programs()

    if args.action == "list":
        for slot in range(config.MAX_PROGRAMS):
            program = programs.get(slot)
            if program is None:
                print(f"[{slot}] (empty)")
            else:
                print(f"[{slot}] {'on ' if program.enabled else 'off'} {program.name} - {program.summary()}")
        return 0

    if args.action == "set":
        program = Program(name=args.name, enabled=not args.disabled, schedule=dict(args.entry))
        database.save_program(args.slot, program)
        print(f"Saved '{program.name}' in slot {args.slot}")
        return 0

    if args.slot not in programs:
        print(f"Slot {args.slot} is empty")
        return 1

    if args.action == "toggle":
        program = programs[args.slot]
        program.enabled = not program.enabled
        database.save_program(args.slot, program)
        print(f"'{program.name}' {'enabled' if program.enabled else 'disabled'}")
    elif args.action == "delete":
        database.delete_program(args.slot)
        print(f"Slot {args.slot} emptied")
    return 0


def run_wifi(args) -> int:
    database = LocalDatabase(config.DB_PATH)

    if args.action == "set":
        database.save_credentials(args.ssid, args.password)
        print(f"Recorded network '{args.ssid}'")
        return 0

    credentials = database.load_credentials()
    if credentials is None:
        print("No network recorded (cleared or never provisioned)")
        return 1
    print(f"SSID: {credentials[0]}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "programs":
        return run_programs(args)
    if args.command == "wifi":
        return run_wifi(args)

    if args.command == "controller":
        server = ControllerServer()
    else:
        server = SurfaceServer(interactive=not args.no_console)

    asyncio.run(run_server(server))

    if getattr(server, "reset_requested", False):
        logger.info("Restarting...")
        os.execv(sys.executable, [sys.executable] + sys.argv)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except Exception as e:
        logger.error(f"Crashed: {e}", exc_info=True)
        sys.exit(1)
