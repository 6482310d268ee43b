from syshealth.collectors.linux import storage
from syshealth.collectors.linux.storage import (
    get_io_stats,
    get_nvme_health,
    parse_smart_health,
    parse_smart_temperature,
)

SMART_H_PASSED = """\
smartctl 7.2 2020-12-30 r5155 [x86_64-linux-5.15.0] (local build)
=== START OF SMART DATA SECTION ===
SMART overall-health self-assessment test result: PASSED
"""

SMART_A = """\
=== START OF SMART DATA SECTION ===
SMART/Health Information (NVMe Log 0x02)
Critical Warning:                   0x00
Temperature:                        38 Celsius
Available Spare:                    100%
Percentage Used:                    3%
Media and Data Integrity Errors:    0
Error Information Log Entries:      12
Temperature Sensor 1:               41 Celsius
"""

IOSTAT = """\
Linux 6.5.0 (host)  01/01/2024  _x86_64_  (8 CPU)

Device            r/s     rkB/s   w/s     wkB/s  %util
loop0            0.01      0.10  0.00      0.00   0.00
nvme0n1          5.20    210.00  3.10     90.00   1.20
"""


def test_parse_health():
    assert parse_smart_health(SMART_H_PASSED) == "PASSED"
    assert parse_smart_health("SMART overall-health self-assessment test result: FAILED!") == "FAILED!"
    assert parse_smart_health("nothing useful") is None


def test_parse_temperature_prefers_composite():
    assert parse_smart_temperature(SMART_A) == 38.0
    assert parse_smart_temperature("Temperature Sensor 1:  44 Celsius") == 44.0
    assert parse_smart_temperature("") is None


def _smartctl(health_out, attrs_out):
    def run(cmd, timeout_s=10, env=None):
        return (0, health_out, "") if cmd[1] == "-H" else (0, attrs_out, "")
    return run


def test_no_device(tmp_path):
    result = get_nvme_health(str(tmp_path / "nvme9n1"))
    assert result["not_checked"]
    assert result["error"].startswith("No NVMe device")


def test_smartctl_missing(monkeypatch, tmp_path):
    dev = tmp_path / "nvme0n1"
    dev.write_text("")
    monkeypatch.setattr(storage, "has_cmd", lambda name: False)
    result = get_nvme_health(str(dev))
    assert result["not_checked"]
    assert result["remediation"] == "Install smartmontools."


def test_healthy_drive(monkeypatch, tmp_path):
    dev = tmp_path / "nvme0n1"
    dev.write_text("")
    monkeypatch.setattr(storage, "has_cmd", lambda name: True)
    monkeypatch.setattr(storage, "run_cmd", _smartctl(SMART_H_PASSED, SMART_A))
    result = get_nvme_health(str(dev))
    assert result["health"] == "PASSED"
    assert result["temp"] == 38.0
    assert result["error_details"] == []


def test_failing_drive_collects_error_details(monkeypatch, tmp_path):
    dev = tmp_path / "nvme0n1"
    dev.write_text("")
    monkeypatch.setattr(storage, "has_cmd", lambda name: True)
    monkeypatch.setattr(storage, "run_cmd", _smartctl(
        "SMART overall-health self-assessment test result: FAILED!", SMART_A,
    ))
    result = get_nvme_health(str(dev))
    assert result["health"] == "FAILED!"
    assert "Media and Data Integrity Errors:    0" in result["error_details"]


def test_unreadable_health_suggests_sudo(monkeypatch, tmp_path):
    dev = tmp_path / "nvme0n1"
    dev.write_text("")
    monkeypatch.setattr(storage, "has_cmd", lambda name: True)
    monkeypatch.setattr(storage, "run_cmd", _smartctl("Permission denied", ""))
    result = get_nvme_health(str(dev))
    assert result["not_checked"]
    assert result["remediation"] == "Try running with sudo."


def test_iostat_drops_loop_devices(monkeypatch):
    monkeypatch.setattr(storage, "has_cmd", lambda name: True)
    monkeypatch.setattr(storage, "run_cmd", lambda cmd, timeout_s=10, env=None: (0, IOSTAT, ""))
    result = get_io_stats()
    assert result["lines"][0].startswith("Device")
    assert len(result["lines"]) == 2
    assert not any(line.startswith("loop") for line in result["lines"])


def test_iostat_missing(monkeypatch):
    monkeypatch.setattr(storage, "has_cmd", lambda name: False)
    result = get_io_stats()
    assert result["not_checked"]
    assert "sysstat" in result["remediation"]
