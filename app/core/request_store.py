"""
app/core/request_store.py — In-memory lifecycle store for edit requests
Authoritative map of request id → EditRequest with TTL expiry.
Each operation is a single critical section under one lock; nothing
awaits inside it, so check-then-set cannot interleave.
"""
from __future__ import annotations

import secrets
import threading
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger

from app.core.errors import RequestNotFoundError
from app.models import Action, EditRequest, LookupStatus, StoreStats
from app.utils.timezone import Clock, utc_now

DEFAULT_TTL = timedelta(hours=24)


class RequestStore:
    """
    Thread-safe store of pending and submitted edit requests.

    Lifecycle per entry:
        PENDING --finalize (first call)--> SUBMITTED
        PENDING | SUBMITTED --TTL elapsed--> removed by sweep()

    Entries past their TTL are invisible to get()/finalize() even before
    the sweep removes them. Callers always receive detached copies.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock = utc_now,
        id_bytes: int = 8,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._id_bytes = id_bytes
        self._entries: dict[str, EditRequest] = {}
        self._lock = threading.Lock()

    def _new_id(self) -> str:
        # Caller holds the lock
        while True:
            request_id = secrets.token_hex(self._id_bytes)
            if request_id not in self._entries:
                return request_id

    def _is_expired(self, entry: EditRequest, now: datetime) -> bool:
        return now - entry.created_at > self.ttl

    def _live_entry(self, request_id: str, now: datetime) -> Optional[EditRequest]:
        entry = self._entries.get(request_id)
        if entry is None or self._is_expired(entry, now):
            return None
        return entry

    # ──────────────────────────────────────────────────────────────────────────
    # Operations
    # ──────────────────────────────────────────────────────────────────────────

    def create(self, contact_email: str = "", subject: str = "", body: str = "") -> str:
        """Insert a new pending entry and return its unguessable id."""
        with self._lock:
            request_id = self._new_id()
            self._entries[request_id] = EditRequest(
                id=request_id,
                contact_email=contact_email,
                subject=subject,
                body=body,
                created_at=self._clock(),
            )
        logger.debug(f"Created edit request {request_id}")
        return request_id

    def get(self, request_id: str) -> Optional[EditRequest]:
        """Copy of the live entry, or None when unknown or expired."""
        with self._lock:
            entry = self._live_entry(request_id, self._clock())
            return entry.model_copy() if entry is not None else None

    def lookup(self, request_id: str) -> tuple[LookupStatus, Optional[EditRequest]]:
        """Like get(), but tells an expired-not-yet-swept entry apart from an unknown id."""
        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None:
                return LookupStatus.NOT_FOUND, None
            if self._is_expired(entry, self._clock()):
                return LookupStatus.EXPIRED, None
            return LookupStatus.LOADED, entry.model_copy()

    def finalize(
        self,
        request_id: str,
        subject: str,
        body: str,
        action: Action,
    ) -> bool:
        """
        One-time transition to SUBMITTED.
        Returns True when this call performed the transition, False when the
        entry was already submitted (stored text and submitted_at untouched).
        Raises RequestNotFoundError for unknown or expired ids.
        """
        with self._lock:
            now = self._clock()
            entry = self._live_entry(request_id, now)
            if entry is None:
                raise RequestNotFoundError(request_id)
            if entry.submitted:
                return False
            entry.subject = subject
            entry.body = body
            entry.action = action
            entry.submitted = True
            entry.submitted_at = now
            return True

    def sweep(self) -> int:
        """Remove every entry older than the TTL, submitted or not."""
        with self._lock:
            now = self._clock()
            expired = [rid for rid, e in self._entries.items() if self._is_expired(e, now)]
            for rid in expired:
                del self._entries[rid]
            return len(expired)

    def stats(self) -> StoreStats:
        with self._lock:
            submitted = sum(1 for e in self._entries.values() if e.submitted)
            return StoreStats(
                live=len(self._entries),
                pending=len(self._entries) - submitted,
                submitted=submitted,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._entries
