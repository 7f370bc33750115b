"""DS18B20 decoding, simulated relays and WiFi introspection"""

from poolcontrol.controllers.hardware import PoolHardware, parse_w1_slave
from poolcontrol.controllers.network import NetworkMonitor, parse_proc_wireless
from poolcontrol.models.state import ValveMode, WifiState

GOOD = ["72 01 4b 46 7f ff 0e 10 57 : crc=57 YES", "72 01 4b 46 7f ff 0e 10 57 t=23125"]


def test_parse_w1_slave():
    assert parse_w1_slave(GOOD) == 23.125
    assert parse_w1_slave(["... crc=57 NO", GOOD[1]]) is None
    assert parse_w1_slave([GOOD[0], "50 05 4b 46 7f ff 0c 10 1c t=85000"]) is None
    assert parse_w1_slave([GOOD[0], "garbage"]) is None
    assert parse_w1_slave([]) is None


def test_reads_first_probe_on_bus(tmp_path):
    probe = tmp_path / "28-000005e2fdc3"
    probe.mkdir()
    (probe / "w1_slave").write_text("\n".join(GOOD) + "\n")

    hardware = PoolHardware(w1_dir=str(tmp_path), sensor_id="")

    assert hardware.read_temperature() == 23.125


def test_missing_bus_reads_none(tmp_path):
    hardware = PoolHardware(w1_dir=str(tmp_path / "absent"), sensor_id="")
    assert hardware.read_temperature() is None


def test_simulated_relays_accept_commands():
    hardware = PoolHardware()
    hardware.set_pump(True)
    hardware.set_valve(ValveMode.EJECTORS)
    hardware.cleanup()
    assert hardware.gpio is None


def test_parse_proc_wireless():
    lines = [
        "Inter-| sta-|   Quality        |   Discarded packets               | Missed | WE\n",
        " face | tus | link level noise |  nwid  crypt   frag  retry   misc | beacon | 22\n",
        "  wlan0: 0000   54.  -56.  -256        0      0      0      0     12        0\n",
    ]
    assert parse_proc_wireless(lines, "wlan0") == -56
    assert parse_proc_wireless(lines, "wlan1") is None


def test_network_without_ssid_is_disconnected(monkeypatch):
    monitor = NetworkMonitor(interface="wlan0")
    monkeypatch.setattr(monitor, "_get_ssid", lambda: None)
    assert monitor.read_wifi_state() == WifiState.disconnected()


def test_network_state(monkeypatch, tmp_path):
    proc = tmp_path / "wireless"
    proc.write_text("h1\nh2\n  wlan0: 0000   54.  -48.  -256   0 0 0 0 0 0\n")
    monitor = NetworkMonitor(interface="wlan0", proc_path=str(proc))
    monkeypatch.setattr(monitor, "_get_ssid", lambda: "Casa")
    monkeypatch.setattr(monitor, "_get_local_ip", lambda: "192.168.1.20")

    state = monitor.read_wifi_state()

    assert state == WifiState.connected("Casa", "192.168.1.20", -48)
    assert state.quality.value == "excellent"
