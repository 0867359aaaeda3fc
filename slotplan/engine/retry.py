"""Bounded retry for storage contention.

The wrapper is backend-agnostic: what counts as "transient" is decided by a
predicate, `is_transient_contention` by default.
"""

import logging
import os
import time
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv
from sqlalchemy.exc import OperationalError

from slotplan.engine.errors import StorageContentionError
from slotplan.models.constants import DEFAULT_RETRY_COUNT, DEFAULT_RETRY_DELAY_MS

load_dotenv()

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_COUNT = int(os.getenv("SCHEDULE_RETRY_COUNT", str(DEFAULT_RETRY_COUNT)))
RETRY_DELAY_SECONDS = int(os.getenv("SCHEDULE_RETRY_DELAY_MS", str(DEFAULT_RETRY_DELAY_MS))) / 1000.0

_BUSY_MARKERS = (
    "database is locked",
    "database table is locked",
    "database is busy",
    "sqlite_busy",
    "could not obtain lock",
    "lock timeout",
)


def is_transient_contention(error: BaseException) -> bool:
    """Whether an error is a busy/locked signal worth retrying."""
    if isinstance(error, StorageContentionError):
        return True
    if isinstance(error, OperationalError):
        message = str(error.orig if error.orig is not None else error).lower()
        return any(marker in message for marker in _BUSY_MARKERS)
    return False


def with_contention_retry(
    operation: Callable[[], T],
    *,
    retries: Optional[int] = None,
    delay_seconds: Optional[float] = None,
    is_transient: Callable[[BaseException], bool] = is_transient_contention,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run `operation`, retrying on transient contention with linear backoff.

    Waits ``delay_seconds * attempt`` before retry number ``attempt``. Errors
    that are not transient propagate immediately. Once the budget is spent the
    last error is raised as StorageContentionError.
    """
    retries = RETRY_COUNT if retries is None else retries
    delay_seconds = RETRY_DELAY_SECONDS if delay_seconds is None else delay_seconds

    attempt = 0
    while True:
        try:
            return operation()
        except Exception as e:
            if not is_transient(e):
                raise
            if attempt >= retries:
                logger.error(f"Storage still busy after {retries} retries: {type(e).__name__}: {str(e)}")
                if isinstance(e, StorageContentionError):
                    raise
                raise StorageContentionError(f"Storage busy after {retries} retries") from e
            attempt += 1
            logger.warning(f"Storage busy, retry {attempt}/{retries}: {type(e).__name__}")
            sleep(delay_seconds * attempt)
