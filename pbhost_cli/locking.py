"""Exclusive advisory lock around registry mutations"""

import logging
import os
import time
from pathlib import Path

from .errors import LockTimeout
from .platform import IS_WINDOWS

logger = logging.getLogger("pbhost.locking")

POLL_INTERVAL = 0.1


def _try_lock(fd: int) -> bool:
    if IS_WINDOWS:
        import msvcrt

        try:
            msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            return True
        except OSError:
            return False

    import fcntl

    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        return True
    except BlockingIOError:
        return False


def _unlock(fd: int) -> None:
    if IS_WINDOWS:
        import msvcrt

        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
        return

    import fcntl

    fcntl.flock(fd, fcntl.LOCK_UN)


class RegistryLock:
    """
    Context manager holding an exclusive lock on a lock file.

    Concurrent pbhost processes serialize here. Acquisition polls and gives
    up with LockTimeout after `timeout` seconds.

    Usage:
        with RegistryLock(config.lock_file, timeout=10):
            ...
    """

    def __init__(self, path: Path, timeout: float = 10.0):
        self.path = Path(path)
        self.timeout = timeout
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        deadline = time.monotonic() + self.timeout
        waited = False
        while not _try_lock(fd):
            if time.monotonic() >= deadline:
                os.close(fd)
                raise LockTimeout(
                    f"Another pbhost command holds {self.path}; gave up after {self.timeout:g}s. "
                    "Retry when it has finished."
                )
            if not waited:
                logger.info("Waiting for registry lock %s", self.path)
                waited = True
            time.sleep(POLL_INTERVAL)
        self._fd = fd
        logger.debug("Acquired registry lock %s", self.path)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            _unlock(self._fd)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("Released registry lock %s", self.path)

    def __enter__(self) -> "RegistryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
