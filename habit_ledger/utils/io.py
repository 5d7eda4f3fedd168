"""
Safe I/O operations with atomic writes and cooperative file locking.

Writers go through a temporary file in the target directory followed by
``os.replace`` so readers never observe a half-written document. A companion
``<name>.lock`` file carries an advisory ``fcntl`` lock shared by every
process touching the same path.
"""

import errno
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Optional, TextIO

try:  # fcntl is only available on POSIX platforms
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - Windows has no advisory locks here
    fcntl = None  # type: ignore


DEFAULT_LOCK_TIMEOUT = 8.0  # seconds
LOCK_SLEEP_INTERVAL = 0.05  # seconds

logger = logging.getLogger(__name__)


class FileLock:
    """Advisory lock on ``<target>.lock``.

    Shared locks let readers overlap, a writer holds it exclusively. With a
    ``timeout`` of None the lock blocks until granted. Without fcntl the lock
    does nothing.
    """

    def __init__(self, target: Path, exclusive: bool = True,
                 timeout: Optional[float] = DEFAULT_LOCK_TIMEOUT):
        self.target = Path(target)
        self.lock_path = self.target.with_name(f"{self.target.name}.lock")
        self.exclusive = exclusive
        self.timeout = timeout
        self._handle: Optional[TextIO] = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def acquire(self) -> None:
        if fcntl is None or self._handle is not None:
            return

        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.lock_path, "a")
        mode = fcntl.LOCK_EX if self.exclusive else fcntl.LOCK_SH

        try:
            if self.timeout is None:
                fcntl.flock(handle.fileno(), mode)
            else:
                give_up_at = time.monotonic() + self.timeout
                while not self._try_lock(handle, mode):
                    if time.monotonic() >= give_up_at:
                        raise TimeoutError(f"Timed out waiting for lock on {self.target}")
                    time.sleep(LOCK_SLEEP_INTERVAL)
        except BaseException:
            handle.close()
            raise

        self._handle = handle

    @staticmethod
    def _try_lock(handle: TextIO, mode: int) -> bool:
        try:
            fcntl.flock(handle.fileno(), mode | fcntl.LOCK_NB)
        except OSError as exc:
            if exc.errno in (errno.EACCES, errno.EAGAIN):
                return False
            raise
        return True

    def release(self) -> None:
        if self._handle is None:
            return
        try:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def safe_read_json(file_path: str, default: Optional[Any] = None, *,
                   lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> Any:
    """
    Read a JSON document under a shared lock.

    Returns ``default`` (an empty dict when omitted) if the file is missing,
    unreadable, corrupt or stays locked past ``lock_timeout``.
    """
    if default is None:
        default = {}

    path_obj = Path(os.path.expanduser(file_path))
    if not path_obj.exists():
        return default

    try:
        with FileLock(path_obj, exclusive=False, timeout=lock_timeout):
            with path_obj.open('r', encoding='utf-8') as handle:
                return json.load(handle)
    except TimeoutError as exc:
        logger.warning("Timed out waiting to read %s: %s", path_obj, exc)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s: %s", path_obj, exc)
    return default


def _replace_atomically(path_obj: Path, writer: Callable[[TextIO], Any],
                        suffix: str, lock_timeout: float) -> bool:
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    staged: Optional[Path] = None

    try:
        with FileLock(path_obj, exclusive=True, timeout=lock_timeout):
            fd, name = tempfile.mkstemp(dir=str(path_obj.parent), prefix='.tmp_', suffix=suffix)
            staged = Path(name)
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                writer(handle)
            os.replace(staged, path_obj)
            staged = None
        return True
    except (OSError, TimeoutError, TypeError, ValueError) as exc:
        logger.error("Error writing to %s: %s", path_obj, exc)
        return False
    finally:
        if staged is not None and staged.exists():
            try:
                staged.unlink()
            except OSError:
                logger.debug("Could not remove temporary file %s", staged)


def safe_write_json(file_path: str, data: Any, indent: int = 2, *,
                    lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> bool:
    """Serialize ``data`` and atomically replace ``file_path``. False on failure."""
    def dump(handle: TextIO) -> None:
        json.dump(data, handle, indent=indent, ensure_ascii=False, sort_keys=True)

    return _replace_atomically(Path(os.path.expanduser(file_path)), dump, '.json', lock_timeout)


def atomic_write(file_path: str, content: str, *,
                 lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> bool:
    return _replace_atomically(Path(os.path.expanduser(file_path)),
                               lambda handle: handle.write(content), '', lock_timeout)
