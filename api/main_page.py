"""
Main page working set and its refresh timer.

``MainPageState`` holds the in-memory copy of every main page configuration
(one default plus the scheduled ones, newest first) and the configuration
currently displayed.  It is re-fetched from the store on startup and on
demand, never per tick, and is never treated as authoritative.

``start_refresh()`` re-runs the selection on a fixed cadence so the landing
page follows the wall clock without a reload.  It returns an async disposer
that the owner (the app lifespan) awaits on teardown.

Fetch ordering: every load takes a sequence token before it reads the
store.  A result is only applied if no newer load has already been applied,
so a slow fetch can never overwrite a fresher working set.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from datetime import datetime

from fastapi import Depends, Request
from pydantic import ValidationError

from api.backend import BackendClient, get_backend
from api.errors import BackendError
from api.models import Configuration
from utils.config import (
    DEFAULT_CONFIGURATION_ID,
    FALLBACK_BACKGROUND_IMAGE,
    FALLBACK_SUBTITLE,
    MAIN_PAGE_TABLE,
)
from utils.schedule import select_active_configuration, utc_now

logger = logging.getLogger("crg_admin.main_page")


def fallback_default_configuration(now: datetime | None = None) -> Configuration:
    """The built-in default, used when the store has none or is unreachable."""
    stamp = (now or utc_now()).isoformat()
    return Configuration(
        id=DEFAULT_CONFIGURATION_ID,
        subtitle=FALLBACK_SUBTITLE,
        background_image_url=FALLBACK_BACKGROUND_IMAGE,
        is_default=True,
        created_at=stamp,
        updated_at=stamp,
    )


class MainPageState:
    """Thread-safe working set of main page configurations.

    Request handlers run in the server's worker threads while the refresh
    timer runs on the event loop, so every read-modify-write of the working
    set happens under one lock.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self.clock = clock
        self._lock = threading.RLock()
        self._default = fallback_default_configuration(clock())
        self._scheduled: list[Configuration] = []
        self._active = self._default
        self._issued_token = 0
        self._applied_token = 0
        self.loaded = False
        self.load_error: str | None = None

    # ── Reads ─────────────────────────────────────────────────────────────────

    @property
    def default(self) -> Configuration:
        with self._lock:
            return self._default

    @property
    def scheduled(self) -> list[Configuration]:
        with self._lock:
            return list(self._scheduled)

    @property
    def active(self) -> Configuration:
        with self._lock:
            return self._active

    def get(self, config_id: str) -> Configuration | None:
        with self._lock:
            if config_id == self._default.id:
                return self._default
            return next((c for c in self._scheduled if c.id == config_id), None)

    # ── Fetch application ─────────────────────────────────────────────────────

    def begin_fetch(self) -> int:
        """Issue a sequence token for a load that is about to start."""
        with self._lock:
            self._issued_token += 1
            return self._issued_token

    def apply_fetch(self, token: int, default: Configuration,
                    scheduled: list[Configuration],
                    error: str | None = None) -> bool:
        """Install a fetched working set unless a newer one is already applied.

        Returns:
            True if applied, False if the result was stale and discarded.
        """
        with self._lock:
            if token <= self._applied_token:
                logger.info("main_page stale_fetch token=%d applied=%d",
                            token, self._applied_token)
                return False
            self._applied_token = token
            self._default = default
            self._scheduled = list(scheduled)
            self.load_error = error
            self.loaded = True
            self._reselect(self.clock())
            return True

    # ── Selection ─────────────────────────────────────────────────────────────

    def _reselect(self, now: datetime, force: bool = True) -> None:
        chosen = select_active_configuration(now, self._default, self._scheduled)
        if force or chosen.id != self._active.id:
            self._active = chosen

    def refresh(self, now: datetime | None = None) -> bool:
        """Re-run selection against the working set.

        Returns:
            True if the displayed configuration changed (compared by id).
        """
        with self._lock:
            previous_id = self._active.id
            self._reselect(now or self.clock(), force=False)
            current_id = self._active.id
        changed = current_id != previous_id
        if changed:
            logger.info("main_page active_changed from=%s to=%s",
                        previous_id, current_id)
        return changed

    # ── Local mutations after successful writes ───────────────────────────────

    def upsert(self, config: Configuration) -> None:
        """Insert or replace a configuration, then re-select.

        New scheduled configurations go to the front, matching the store's
        newest-first order.  Loads already in flight become stale.
        """
        with self._lock:
            self._applied_token = self._issued_token
            if config.is_default:
                self._default = config
            else:
                for i, existing in enumerate(self._scheduled):
                    if existing.id == config.id:
                        self._scheduled[i] = config
                        break
                else:
                    self._scheduled.insert(0, config)
            self._reselect(self.clock())

    def remove(self, config_id: str) -> Configuration | None:
        with self._lock:
            self._applied_token = self._issued_token
            for i, existing in enumerate(self._scheduled):
                if existing.id == config_id:
                    removed = self._scheduled.pop(i)
                    self._reselect(self.clock())
                    return removed
            return None


def load_working_set(backend: BackendClient, state: MainPageState) -> bool:
    """Fetch all configurations and install them in *state*.

    The default is created in the store on demand when none exists.  If the
    store cannot be read (or the default cannot be created) the built-in
    default is installed alone and the failure is exposed as
    ``state.load_error``.

    Returns:
        True if the result was applied (False if a newer load won).
    """
    token = state.begin_fetch()
    try:
        rows = backend.list_documents(MAIN_PAGE_TABLE, order_by="created_at", descending=True)
        default: Configuration | None = None
        scheduled: list[Configuration] = []
        for row in rows:
            try:
                config = Configuration.model_validate(row)
            except ValidationError as exc:
                logger.warning("main_page skipped_row id=%s error=%s",
                               row.get("id"), exc.errors()[0]["msg"])
                continue
            if config.is_default:
                if default is None:
                    default = config
                else:
                    logger.warning("main_page extra_default ignored id=%s", config.id)
            else:
                scheduled.append(config)
        if default is None:
            default = fallback_default_configuration(state.clock())
            backend.set_document(MAIN_PAGE_TABLE, default.id,
                                 default.model_dump(exclude={"id"}))
            logger.info("main_page default_created id=%s", default.id)
    except BackendError as exc:
        logger.error("main_page load_failed error=%s", exc)
        return state.apply_fetch(token, fallback_default_configuration(state.clock()), [],
                                 error="Failed to load main page data; showing the built-in default.")
    return state.apply_fetch(token, default, scheduled)


def start_refresh(state: MainPageState, interval_seconds: float,
                  now: Callable[[], datetime] | None = None,
                  ) -> Callable[[], Awaitable[None]]:
    """Re-select the displayed configuration every *interval_seconds*.

    Must be called from a running event loop.  A tick that raises is logged
    and the loop carries on with the next tick.

    Returns:
        An async disposer that cancels the loop and waits for it to finish.
    """
    clock = now or state.clock

    async def _loop() -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                state.refresh(clock())
            except Exception:
                logger.exception("main_page refresh_tick_failed")

    task = asyncio.get_running_loop().create_task(_loop(), name="main-page-refresh")

    async def dispose() -> None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    return dispose


# ── FastAPI dependencies ──────────────────────────────────────────────────────

def get_main_page(request: Request,
                  backend: BackendClient = Depends(get_backend)) -> MainPageState:
    """FastAPI dependency: the app's working set, loaded on first use."""
    state: MainPageState = request.app.state.main_page
    if not state.loaded:
        load_working_set(backend, state)
    return state
