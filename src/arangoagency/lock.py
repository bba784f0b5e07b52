# Copyright 2025 Sushanth (https://github.com/sushanthpy)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Agency Lock

Exclusive lock stored as a key in the agency. The holder writes its ID with
a TTL and keeps rewriting it from a background thread; if the holder dies
the key expires and someone else can take the lock.

Example:
    lock = AgencyLock(client, ["locks", "upgrade"], ttl=30)
    with lock:
        do_upgrade()
"""

import logging
import secrets
import threading
from typing import List, Optional, Sequence

from .agency import AgencyClient
from .errors import AgencyError, AlreadyLockedError, NotLockedError, PreconditionFailedError

logger = logging.getLogger(__name__)

MIN_LOCK_TTL = 5.0

# Timeout for each lock, unlock and renewal request
LOCK_REQUEST_TIMEOUT = 10.0

# Renewal delay after a failed renewal
RENEW_RETRY_DELAY = 1.0


class AgencyLock:
    """
    Agency backed exclusive lock.

    Args:
        api: Client used for all agency writes.
        key: Key that holds the lock.
        lock_id: Value written while locked; a random ID when omitted.
        ttl: Seconds the key lives without renewal (at least MIN_LOCK_TTL).
        log: Logger for renewal failures (default: module logger).
    """

    def __init__(
        self,
        api: AgencyClient,
        key: Sequence[str],
        lock_id: Optional[str] = None,
        ttl: float = MIN_LOCK_TTL,
        log: Optional[logging.Logger] = None,
    ):
        self._mutex = threading.Lock()
        self._api = api
        self._key = list(key)
        self._id = lock_id or secrets.token_hex(16)
        self._ttl = max(ttl, MIN_LOCK_TTL)
        self._log = log or logger
        self._locked = False
        self._stop_renewal: Optional[threading.Event] = None

    @property
    def key(self) -> List[str]:
        return list(self._key)

    @property
    def lock_id(self) -> str:
        return self._id

    @property
    def ttl(self) -> float:
        return self._ttl

    def lock(self) -> None:
        """
        Claim the lock and start renewing it.

        Raises:
            AlreadyLockedError: If the lock is held, by us or anyone else.
        """
        with self._mutex:
            if self._locked:
                raise AlreadyLockedError()
            try:
                self._api.write_key_if_empty(
                    self._key, self._id, ttl=self._ttl, timeout=LOCK_REQUEST_TIMEOUT
                )
            except PreconditionFailedError as e:
                raise AlreadyLockedError() from e

            self._locked = True
            stop = threading.Event()
            self._stop_renewal = stop
            threading.Thread(
                target=self._renew_loop,
                args=(stop,),
                name=f"agency-lock-renew:{'/'.join(self._key)}",
                daemon=True,
            ).start()

    def unlock(self) -> None:
        """
        Release the lock.

        Raises:
            NotLockedError: If we do not hold the lock.
        """
        with self._mutex:
            if not self._locked:
                raise NotLockedError()
            self._api.remove_key_if_equal_to(self._key, self._id, timeout=LOCK_REQUEST_TIMEOUT)
            self._locked = False
            self._cancel_renewal()

    def is_locked(self) -> bool:
        """Return True if the lock is held by us."""
        with self._mutex:
            return self._locked

    def __enter__(self):
        self.lock()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unlock()

    def _cancel_renewal(self) -> None:
        if self._stop_renewal is not None:
            self._stop_renewal.set()
            self._stop_renewal = None

    def _renew_once(self, stop: threading.Event) -> bool:
        """Rewrite the lock key once. Returns True when renewal must stop."""
        with self._mutex:
            if not self._locked or stop.is_set():
                return True
            try:
                self._api.write_key_if_equal_to(
                    self._key, self._id, self._id, ttl=self._ttl, timeout=LOCK_REQUEST_TIMEOUT
                )
            except PreconditionFailedError:
                # Someone else owns the key now
                self._log.warning("Lock %s lost: key no longer holds our ID", self._key)
                self._locked = False
                self._cancel_renewal()
                return True
            return False

    def _renew_loop(self, stop: threading.Event) -> None:
        # lock() has just written the key
        delay = self._ttl / 2
        while not stop.wait(delay):
            delay = self._ttl / 2
            try:
                if self._renew_once(stop):
                    return
            except AgencyError as e:
                if stop.is_set():
                    return
                self._log.error("Failed to renew lock %s: %s", self._key, e)
                delay = RENEW_RETRY_DELAY
