import os
from dataclasses import replace

import pytest

from syshealth.collectors.linux import packages
from syshealth.collectors.linux.packages import (
    APT,
    DNF,
    MANAGERS,
    PACMAN,
    YUM,
    _held_lock_inodes,
    _parse_apt,
    _parse_apt_kept_back,
    _parse_pacman,
    _parse_rpm,
    count_held_back,
    detect_package_manager,
    get_lock_status,
    get_pending_updates,
    held_lock_files,
    manager_by_name,
    running_package_processes,
)

APT_LIST = """\
Listing... Done
bash/jammy-updates 5.1-6ubuntu1.1 amd64 [upgradable from: 5.1-6ubuntu1]
systemd/jammy-updates 249.11-0ubuntu3.12 amd64 [upgradable from: 249.11-0ubuntu3.11]
"""

DNF_LIST = """\
Last metadata expiration check: 0:10:01 ago on Mon 01 Jan 2024.

kernel.x86_64          6.6.9-200.fc39        updates
openssl.x86_64         1:3.1.1-4.fc39        updates
Obsoleting Packages
grub2-tools.x86_64     1:2.06-100.fc39       updates
"""

PACMAN_LIST = """\
linux 6.9.1.arch1-1 -> 6.9.2.arch1-1
glibc 2.39-1 -> 2.39-2
"""


def test_parse_apt_skips_listing_banner():
    assert len(_parse_apt(APT_LIST)) == 2
    assert _parse_apt("Listing... Done\n") == []


def test_parse_rpm_stops_at_obsoleting():
    lines = _parse_rpm(DNF_LIST)
    assert len(lines) == 2
    assert lines[0].startswith("kernel.x86_64")


def test_parse_pacman():
    assert len(_parse_pacman(PACMAN_LIST)) == 2


def test_detection_is_first_present_in_rank_order(monkeypatch):
    present = {"dnf", "pacman"}
    monkeypatch.setattr(packages, "has_cmd", lambda name: name in present)
    assert detect_package_manager() is DNF

    present.add("apt")
    assert detect_package_manager() is APT


def test_no_manager_detected(monkeypatch):
    monkeypatch.setattr(packages, "has_cmd", lambda name: False)
    assert detect_package_manager() is None


def test_rank_order():
    assert [pm.name for pm in MANAGERS] == ["apt", "dnf", "yum", "pacman"]


def test_manager_by_name():
    assert manager_by_name("yum") is YUM
    assert manager_by_name(None) is None
    assert manager_by_name("zypper") is None


def test_pending_updates_apt(monkeypatch):
    monkeypatch.setattr(packages, "run_cmd", lambda cmd, timeout_s=10, env=None: (0, APT_LIST, ""))
    result = get_pending_updates(APT)
    assert result["count"] == 2
    assert result["systemd"] is True
    assert not result["not_checked"]


def test_pending_updates_dnf_exit_100_is_success(monkeypatch):
    monkeypatch.setattr(packages, "run_cmd", lambda cmd, timeout_s=10, env=None: (100, DNF_LIST, ""))
    result = get_pending_updates(DNF)
    assert result["count"] == 2
    assert result["systemd"] is False


def test_pending_updates_pacman_nothing_to_do(monkeypatch):
    monkeypatch.setattr(packages, "run_cmd", lambda cmd, timeout_s=10, env=None: (1, "", ""))
    assert get_pending_updates(PACMAN)["count"] == 0


def test_pending_updates_failure_is_not_checked(monkeypatch):
    monkeypatch.setattr(packages, "run_cmd", lambda cmd, timeout_s=10, env=None: (100, "", "E: network"))
    result = get_pending_updates(APT)
    assert result["not_checked"]
    assert result["count"] is None
    assert result["error"] == "E: network"


def test_pending_updates_without_manager():
    result = get_pending_updates(None)
    assert result["not_checked"]
    assert result["manager"] is None


def test_proc_locks_parsing(tmp_path):
    proc_locks = tmp_path / "locks"
    proc_locks.write_text(
        "1: POSIX  ADVISORY  WRITE 1234 08:02:131074 0 EOF\n"
        "1: -> POSIX  ADVISORY  WRITE 5678 08:02:131074 0 EOF\n"
        "2: FLOCK  ADVISORY  WRITE 999 fd:01:42 0 EOF\n"
    )
    assert _held_lock_inodes(str(proc_locks)) == {(8, 2, 131074), (0xFD, 1, 42)}


def test_proc_locks_unreadable(tmp_path):
    assert _held_lock_inodes(str(tmp_path / "missing")) == set()


def test_fcntl_lock_present_but_not_held_is_free(tmp_path):
    lock = tmp_path / "lock-frontend"
    lock.write_text("")
    pm = replace(APT, lock_files=(str(lock),))
    proc_locks = tmp_path / "locks"
    proc_locks.write_text("")
    assert held_lock_files(pm, str(proc_locks)) == []


def test_fcntl_lock_held(tmp_path):
    lock = tmp_path / "lock-frontend"
    lock.write_text("")
    st = os.stat(lock)
    pm = replace(APT, lock_files=(str(lock),))
    proc_locks = tmp_path / "locks"
    proc_locks.write_text(
        f"1: POSIX  ADVISORY  WRITE 1234 {os.major(st.st_dev):02x}:{os.minor(st.st_dev):02x}:{st.st_ino} 0 EOF\n"
    )
    assert held_lock_files(pm, str(proc_locks)) == [str(lock)]


def test_exists_style_lock(tmp_path):
    lock = tmp_path / "db.lck"
    lock.write_text("")
    pm = replace(PACMAN, lock_files=(str(lock), str(tmp_path / "gone")))
    assert held_lock_files(pm) == [str(lock)]


@pytest.mark.parametrize("running, held, locked", [
    ([], [], False),
    ([{"pid": 1, "name": "dpkg"}], [], True),
    ([], ["/var/lib/dpkg/lock"], True),
])
def test_lock_status(monkeypatch, running, held, locked):
    monkeypatch.setattr(packages, "running_package_processes", lambda pm: running)
    monkeypatch.setattr(packages, "held_lock_files", lambda pm: held)
    assert get_lock_status(APT)["locked"] is locked


def test_lock_status_without_manager():
    status = get_lock_status(None)
    assert status["not_checked"]
    assert status["locked"] is None


APT_SIMULATED_UPGRADE = """\
NOTE: This is only a simulation!
      apt-get needs root privileges for real execution.
Reading package lists...
Building dependency tree...
Reading state information...
Calculating upgrade...
The following packages have been kept back:
  linux-generic linux-headers-generic
  linux-image-generic
The following upgrades have been deferred due to phasing:
  libsystemd0 systemd
The following packages will be upgraded:
  bash
1 upgraded, 0 newly installed, 0 to remove and 5 not upgraded.
Inst bash [5.1-6ubuntu1] (5.1-6ubuntu1.1 Ubuntu:22.04/jammy-updates [amd64])
Conf bash (5.1-6ubuntu1.1 Ubuntu:22.04/jammy-updates [amd64])
"""


def test_kept_back_ignores_phased_updates():
    assert _parse_apt_kept_back(APT_SIMULATED_UPGRADE) == [
        "linux-generic", "linux-headers-generic", "linux-image-generic",
    ]


def test_kept_back_only_phased():
    out = "Calculating upgrade...\nThe following upgrades have been deferred due to phasing:\n  systemd\n"
    assert _parse_apt_kept_back(out) == []


def test_count_held_back_apt_uses_simulation(monkeypatch):
    calls = []

    def run(cmd, timeout_s=10, env=None):
        calls.append((cmd, env))
        return 0, APT_SIMULATED_UPGRADE, ""

    monkeypatch.setattr(packages, "run_cmd", run)
    assert count_held_back(APT) == 3
    ((cmd, env),) = calls
    assert cmd == ["apt-get", "-s", "upgrade"]
    assert env["LC_ALL"] == "C"


def test_count_held_back_apt_failure_stops_escalation(monkeypatch):
    monkeypatch.setattr(packages, "run_cmd", lambda cmd, timeout_s=10, env=None: (100, "", "E: broken"))
    assert count_held_back(APT) == 0


def test_count_held_back_dnf_counts_upgradable(monkeypatch):
    monkeypatch.setattr(packages, "run_cmd", lambda cmd, timeout_s=10, env=None: (100, DNF_LIST, ""))
    assert count_held_back(DNF) == 2


class FakeProcess:
    def __init__(self, pid, name):
        self.info = {"pid": pid, "name": name}


def test_running_package_processes_matches_names(monkeypatch):
    procs = [
        FakeProcess(1, "systemd"),
        FakeProcess(812, "unattended-upgr"),
        FakeProcess(900, "dpkg"),
        FakeProcess(901, "apt-get"),
        FakeProcess(4242, "apt"),
    ]
    monkeypatch.setattr(packages.psutil, "process_iter", lambda attrs=None: iter(procs))
    found = running_package_processes(APT, own_pid=4242)
    assert found == [{"pid": 900, "name": "dpkg"}, {"pid": 901, "name": "apt-get"}]


def test_idle_upgrade_daemons_are_not_a_lock(monkeypatch):
    procs = [FakeProcess(812, "unattended-upgr"), FakeProcess(813, "packagekitd")]
    monkeypatch.setattr(packages.psutil, "process_iter", lambda attrs=None: iter(procs))
    monkeypatch.setattr(packages, "held_lock_files", lambda pm: [])
    assert get_lock_status(APT)["locked"] is False
    assert get_lock_status(DNF)["locked"] is False


def test_lock_file_removed_while_checking(monkeypatch, tmp_path):
    gone = tmp_path / "lock-frontend"
    pm = replace(APT, lock_files=(str(gone),))
    proc_locks = tmp_path / "locks"
    proc_locks.write_text("")
    # the file vanishes between the existence check and the stat
    monkeypatch.setattr(packages.os.path, "exists", lambda path: True)
    assert held_lock_files(pm, str(proc_locks)) == []
