from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock

from importa import config as _config


def _lock_file(credit_application_id: str | int) -> Path:
    return _config.get_data_dir() / "locks" / f"credit-{credit_application_id}.lock"


@contextmanager
def credit_line_lock(credit_application_id: str | int, timeout: float = -1) -> Iterator[None]:
    """Serialize credit checks for one credit line.

    Two imports validated concurrently against the same stale snapshot could
    both pass; holding this lock across snapshot-read, validate and
    import-create prevents that. *timeout* follows FileLock (-1 waits forever).
    """
    lf = _lock_file(credit_application_id)
    lf.parent.mkdir(parents=True, exist_ok=True)
    with FileLock(lf, timeout=timeout):
        yield
