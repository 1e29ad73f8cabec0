"""Staleness-driven scheduling of background cache refreshes.

A refresh is due when none was ever started or the last one started longer
ago than the staleness window. The start time is persisted before the refresh
runs, so a crashed refresh is retried only once the window elapses again.

Due refreshes run in a detached grandchild process (double fork) so the
foreground search never waits on the network. The daemon holds an exclusive
lock on a file next to the state file for the whole refresh, so at most one
refresh runs at a time even when the window elapses mid-refresh or two
invocations race on the state file.
"""

import fcntl
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from ..config import StateStore, SyncState
from ..utils.error_handling import DaemonError
from .fetcher import utc_now

logger = logging.getLogger(__name__)

STALENESS_WINDOW = timedelta(minutes=30)


class DaemonRole(Enum):
    """Which side of the fork the caller is on."""

    MAIN = "main"
    DAEMON = "daemon"


class RefreshDecision(Enum):
    """Outcome of the staleness check in the foreground process."""

    SKIPPED = "skipped"
    SPAWNED = "spawned"
    IN_PROGRESS = "in_progress"


def should_refresh(
    state: SyncState,
    now: Optional[datetime] = None,
    threshold: timedelta = STALENESS_WINDOW,
) -> bool:
    """Check whether the cache is due for a refresh.

    Args:
        state: Persisted sync state
        now: Current time (defaults to now, UTC)
        threshold: Staleness window

    Returns:
        True if no refresh was ever started or the last one is older than the window
    """
    if state.last_update_start_time is None:
        return True
    now = now or utc_now()
    return now - state.last_update_start_time > threshold


def mark_refresh_started(
    state: SyncState,
    store: StateStore,
    now: Optional[datetime] = None,
) -> SyncState:
    """Record that a refresh starts now and persist it before returning."""
    updated = state.model_copy(update={"last_update_start_time": now or utc_now()})
    store.save(updated)
    return updated


def mark_refresh_reset(state: SyncState, store: StateStore) -> SyncState:
    """Forget the last refresh start time and persist it."""
    updated = state.model_copy(update={"last_update_start_time": None})
    store.save(updated)
    return updated


def refresh_lock_path(store: StateStore) -> Path:
    """Lock file guarding the refresh, kept beside the state file."""
    return store.path.with_name(store.path.name + ".lock")


@contextmanager
def refresh_lock(path: Union[str, Path]) -> Iterator[bool]:
    """Try to take the exclusive refresh lock without blocking.

    Yields True while the lock is held, False if another process holds it.
    The lock is released when the block exits or the process dies.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        acquired = True
    except BlockingIOError:
        acquired = False
    except OSError:
        os.close(fd)
        raise

    try:
        yield acquired
    finally:
        if acquired:
            fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


def refresh_in_progress(path: Union[str, Path]) -> bool:
    """Check whether another process currently holds the refresh lock."""
    with refresh_lock(path) as acquired:
        return not acquired


def _redirect_stdio() -> None:
    """Point stdin/stdout/stderr at /dev/null."""
    devnull = os.open(os.devnull, os.O_RDWR)
    for fd in (0, 1, 2):
        os.dup2(devnull, fd)
    if devnull > 2:
        os.close(devnull)


def spawn_daemon() -> DaemonRole:
    """Detach a daemon by double forking the current process.

    The parent process waits for the intermediate child, so no zombie is
    left behind, and returns `DaemonRole.MAIN`. The grandchild runs in its own
    session without a controlling terminal and returns `DaemonRole.DAEMON`.

    Raises:
        DaemonError: If either fork or setsid fails
    """
    sys.stdout.flush()
    sys.stderr.flush()

    try:
        child = os.fork()
    except OSError as e:
        raise DaemonError("Failed to fork the refresh process") from e

    if child > 0:
        _, status = os.waitpid(child, 0)
        if os.waitstatus_to_exitcode(status) != 0:
            raise DaemonError("Failed to detach the refresh process")
        return DaemonRole.MAIN

    # First child: leave the invoking session so a SIGHUP/SIGTERM to the
    # foreground does not reach the refresh.
    try:
        os.setsid()
        grandchild = os.fork()
    except OSError:
        os._exit(1)

    if grandchild > 0:
        os._exit(0)

    _redirect_stdio()
    return DaemonRole.DAEMON


def _run_exclusive(refresh: Callable[[], object], lock_path: Path) -> int:
    """Run the refresh under the refresh lock and return the daemon exit code."""
    try:
        with refresh_lock(lock_path) as acquired:
            if not acquired:
                logger.info("Another cache refresh holds %s, exiting", lock_path)
                return 0
            refresh()
    except Exception:
        logger.exception("Background cache refresh failed")
        return 1
    return 0


def run_refresh_if_due(
    state: SyncState,
    store: StateStore,
    refresh: Callable[[], object],
    spawn: Callable[[], DaemonRole] = spawn_daemon,
    now: Optional[datetime] = None,
    threshold: timedelta = STALENESS_WINDOW,
    exit_process: Callable[[int], None] = os._exit,
    lock_path: Optional[Union[str, Path]] = None,
) -> RefreshDecision:
    """Start a detached refresh when the cache is stale.

    In the daemon process this function never returns: it runs `refresh` while
    holding the refresh lock and terminates the process. A daemon that finds
    the lock taken exits without refreshing.

    Args:
        state: Persisted sync state
        store: Where the state is persisted
        refresh: The refresh work, run only in the daemon
        spawn: Detaches the daemon
        now: Current time (defaults to now, UTC)
        threshold: Staleness window
        exit_process: Terminates the daemon process
        lock_path: Refresh lock file (defaults to one beside the state file)

    Returns:
        Whether a refresh was spawned (foreground only)
    """
    if not should_refresh(state, now, threshold):
        logger.info(
            "Cache up to date, last refresh started at %s",
            state.last_update_start_time,
        )
        return RefreshDecision.SKIPPED

    lock_path = Path(lock_path) if lock_path else refresh_lock_path(store)
    if refresh_in_progress(lock_path):
        logger.info("Cache outdated but a refresh is still running")
        return RefreshDecision.IN_PROGRESS

    logger.info("Cache outdated, starting refresh daemon")
    mark_refresh_started(state, store, now)

    if spawn() is DaemonRole.DAEMON:
        exit_process(_run_exclusive(refresh, lock_path))

    return RefreshDecision.SPAWNED
