"""SQLite storage of programs, settings and credentials"""

from poolcontrol.models.program import DaySchedule, Program
from poolcontrol.storage.local_db import LocalDatabase


def test_program_round_trip(database):
    program = Program(name="Morning", enabled=False, schedule={
        0: DaySchedule(mode=2, start="07:00", stop="07:30"),
        1: DaySchedule(),
    })
    database.save_program(1, program)

    loaded = database.load_programs()

    assert list(loaded) == [1]
    assert loaded[1] == program
    assert loaded[1].schedule[0].mode == 2


def test_save_replaces_slot(database):
    database.save_program(0, Program(name="Old"))
    database.save_program(0, Program(name="New"))
    assert database.load_programs()[0].name == "New"


def test_delete_program(database):
    database.save_program(2, Program(name="Late"))
    assert database.delete_program(2) is True
    assert database.delete_program(2) is False
    assert database.load_programs() == {}


def test_settings(database):
    assert database.get_setting("x") is None
    database.set_setting("x", "1")
    database.set_setting("x", "2")
    assert database.get_setting("x") == "2"
    database.delete_setting("x")
    assert database.get_setting("x") is None


def test_override_record(database):
    database.save_override_json('{"active":true}')
    assert database.load_override_json() == '{"active":true}'
    database.save_override_json(None)
    assert database.load_override_json() is None


def test_credentials(database):
    assert database.load_credentials() is None
    database.save_credentials("Casa", "secret")
    database.save_credentials("Casa2", "secret2")
    assert database.load_credentials() == ("Casa2", "secret2")
    database.clear_credentials()
    assert database.load_credentials() is None


def test_data_survives_reopen(tmp_path):
    path = str(tmp_path / "nested" / "pool.db")
    LocalDatabase(path).save_program(0, Program(name="Kept"))
    assert LocalDatabase(path).load_programs()[0].name == "Kept"


def test_corrupt_program_rows_are_skipped(database):
    database.save_program(0, Program(name="Good"))
    database.save_program(1, Program(name="Broken"))
    database.save_program(2, Program(name="Invalid"))
    with database._get_connection() as conn:
        conn.execute("UPDATE programs SET schedule = '{not json' WHERE slot = 1")
        conn.execute("UPDATE programs SET name = '   ' WHERE slot = 2")

    assert list(database.load_programs()) == [0]
