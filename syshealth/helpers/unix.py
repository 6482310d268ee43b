import logging
import os
import shutil
import subprocess

logger = logging.getLogger(__name__)

# Return codes used when the command never produced a real exit status.
RC_TIMEOUT = 124
RC_NOT_FOUND = 127


def has_cmd(name: str) -> bool:
    """True if `name` resolves on PATH."""
    return shutil.which(name) is not None


def run_cmd(cmd: list[str], timeout_s: float = 10, env: dict[str, str] | None = None) -> tuple[int, str, str]:
    """
    Run a command and return:
      - return code (rc)
      - stdout (string)
      - stderr (string)

    Never raises for the two failures every probe has to tolerate:
      - binary not installed -> rc 127, message in stderr
      - timeout              -> rc 124, with whatever output arrived before the kill

    The timeout case matters for samplers (intel_gpu_top, etc.) that stream
    forever: we run them for at most `timeout_s` and parse what we got.
    """
    logger.debug("run: %s (timeout %ss)", " ".join(cmd), timeout_s)
    try:
        p = subprocess.run(
            cmd,
            text=True,              # decode output to str instead of bytes
            capture_output=True,    # capture stdout/stderr
            timeout=timeout_s,
            env=None if env is None else {**os.environ, **env},
        )
    except FileNotFoundError:
        logger.debug("not found: %s", cmd[0])
        return RC_NOT_FOUND, "", f"{cmd[0]}: command not found"
    except subprocess.TimeoutExpired as e:
        logger.debug("timed out after %ss: %s", timeout_s, cmd[0])
        return RC_TIMEOUT, _decode(e.stdout).strip(), _decode(e.stderr).strip()

    logger.debug("rc=%s: %s", p.returncode, cmd[0])
    # Normalise None → "" and strip whitespace
    return p.returncode, (p.stdout or "").strip(), (p.stderr or "").strip()


def _decode(data: bytes | str | None) -> str:
    # TimeoutExpired carries bytes even when text=True was requested
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def run_live(cmd: list[str], env: dict[str, str] | None = None) -> int:
    """
    Run a command with the terminal attached (no capture) and return its rc.

    Used for remediation steps: package upgrades can take minutes and the
    user should see the package manager's own progress output.
    """
    logger.debug("run (live): %s", " ".join(cmd))
    try:
        p = subprocess.run(cmd, env=None if env is None else {**os.environ, **env})
    except FileNotFoundError:
        logger.debug("not found: %s", cmd[0])
        return RC_NOT_FOUND
    logger.debug("rc=%s: %s", p.returncode, cmd[0])
    return p.returncode


def is_root() -> bool:
    return os.geteuid() == 0


def privileged(cmd: list[str]) -> list[str]:
    """Prefix `cmd` with sudo when we are not root and sudo exists."""
    if is_root() or not has_cmd("sudo"):
        return list(cmd)
    return ["sudo", *cmd]


def get_evidence(cmd, rc, stdout, stderr):

    return {
        "cmd": " ".join(cmd) if isinstance(cmd, list) else cmd,
        "rc": rc,
        "stdout": stdout,
        "stderr": stderr
    }
