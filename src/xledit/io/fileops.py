"""File operations: fingerprints, derived output names, locked atomic writes."""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
import time
from datetime import datetime, timezone
from io import TextIOWrapper
from pathlib import Path

import portalocker


def fingerprint(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def edited_path(source: str | Path, *, now: datetime | None = None) -> Path:
    """Sibling path for an edited copy: ``edited_<UTCSTAMP>_<name>``."""
    source = Path(source)
    ts = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    return source.parent / f"edited_{ts}_{source.name}"


def atomic_write(target: str | Path, data: bytes) -> None:
    """Write through a temp file in the target's directory, then rename."""
    target = Path(target)
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, suffix=target.suffix, prefix=".xledit_tmp_")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        shutil.move(tmp_path, target)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class OutputLock:
    """Exclusive ``<file>.xledit.lock`` sidecar held while an output is written.

    Two runs writing the same output path serialize on it; with the default
    timeout of 0 the second run fails at once with ``portalocker.LockException``.
    A stale sidecar left by a crashed run is unlocked and gets reused.
    """

    def __init__(self, path: str | Path, *, timeout: float = 0) -> None:
        target = Path(path).resolve()
        self.lock_path = target.parent / (target.name + ".xledit.lock")
        self.timeout = timeout
        self._file: TextIOWrapper | None = None

    def _acquire(self) -> None:
        flags = portalocker.LOCK_EX | portalocker.LOCK_NB
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                portalocker.lock(self._file, flags)
                return
            except portalocker.LockException:
                if time.monotonic() >= deadline:
                    raise
                time.sleep(0.05)

    def __enter__(self) -> "OutputLock":
        self._file = open(self.lock_path, "a+")  # noqa: SIM115
        try:
            self._acquire()
        except portalocker.LockException:
            self._file.close()
            self._file = None
            raise
        return self

    def __exit__(self, *args: object) -> None:
        if self._file is None:
            return
        try:
            portalocker.unlock(self._file)
        finally:
            self._file.close()
            self._file = None


def write_output(target: str | Path, data: bytes, *, timeout: float = 0) -> None:
    """Atomic write guarded by the output's sidecar lock."""
    with OutputLock(target, timeout=timeout):
        atomic_write(target, data)


def read_text_safe(path: str | Path) -> str:
    """Read UTF-8 text, dropping a leading BOM if present."""
    return Path(path).read_text(encoding="utf-8-sig")
