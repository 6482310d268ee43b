import subprocess

from syshealth.helpers import unix
from syshealth.helpers.unix import RC_NOT_FOUND, RC_TIMEOUT, get_evidence, privileged, run_cmd


def test_missing_binary_returns_127():
    rc, stdout, stderr = run_cmd(["definitely-not-a-real-binary-xyz"])
    assert rc == RC_NOT_FOUND
    assert stdout == ""
    assert "command not found" in stderr


def test_timeout_returns_124_with_partial_output(monkeypatch):
    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"], output=b'{"engines": 1}\n', stderr=None)

    monkeypatch.setattr(unix.subprocess, "run", fake_run)
    rc, stdout, stderr = run_cmd(["intel_gpu_top", "-J"], timeout_s=0.5)
    assert rc == RC_TIMEOUT
    assert stdout == '{"engines": 1}'
    assert stderr == ""


def test_output_is_stripped(monkeypatch):
    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 0, stdout="  hello\n", stderr=None)

    monkeypatch.setattr(unix.subprocess, "run", fake_run)
    assert run_cmd(["echo"]) == (0, "hello", "")


def test_env_is_merged_over_os_environ(monkeypatch):
    seen = {}

    def fake_run(cmd, **kwargs):
        seen.update(kwargs["env"])
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setenv("PATH", "/usr/bin")
    monkeypatch.setattr(unix.subprocess, "run", fake_run)
    run_cmd(["apt", "list"], env={"DEBIAN_FRONTEND": "noninteractive"})
    assert seen["DEBIAN_FRONTEND"] == "noninteractive"
    assert seen["PATH"] == "/usr/bin"


def test_privileged_prefixes_sudo_only_when_needed(monkeypatch):
    monkeypatch.setattr(unix, "is_root", lambda: False)
    monkeypatch.setattr(unix, "has_cmd", lambda name: True)
    assert privileged(["apt-get", "update"]) == ["sudo", "apt-get", "update"]

    monkeypatch.setattr(unix, "is_root", lambda: True)
    assert privileged(["apt-get", "update"]) == ["apt-get", "update"]


def test_evidence_joins_command():
    ev = get_evidence(["smartctl", "-H", "/dev/nvme0n1"], 0, "ok", "")
    assert ev == {"cmd": "smartctl -H /dev/nvme0n1", "rc": 0, "stdout": "ok", "stderr": ""}
