from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum
from typing import Any, Callable, Coroutine, Protocol

from .comic import (
    FIRST_COMIC_ID,
    Comic,
    absolute_link,
    is_comic_id,
    random_comic_id,
    selector_url,
    url_by_id,
)
from .config import SessionConfig, Sequence
from .convert.comic_html import parse_comic
from .http_client import FetchError
from .store import NullStore, PersistenceStore

LOGGER = logging.getLogger("ff_dilbert.session")

UPDATE_COMIC = "UPDATE_COMIC"
ERROR = "ERROR"

SendFn = Callable[[str, dict[str, Any]], None]


class ComicFetcher(Protocol):
    def fetch_text(self, url: str) -> str: ...


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class ComicSession:
    """Navigation and auto-advance state for one display instance.

    All methods run on the event loop thread. Fetches run in the default
    executor and are never cancelled: when two overlap, whichever completes
    last decides the current comic. The auto-advance timer is single-shot
    and at most one is armed at any time.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        http: ComicFetcher,
        send: SendFn,
        store: PersistenceStore | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self._http = http
        self._send = send
        self._store: PersistenceStore = store or NullStore()
        self._rng = rng or random.Random()

        self.comic: Comic | None = None
        self.state = SessionState.UNINITIALIZED
        self.hidden = False
        self.advance_pending = False

        self._timer: asyncio.TimerHandle | None = None
        self._initial_in_flight = False
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def module_id(self) -> str:
        return self.config.module_id

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    # Timer

    def _start_timer(self) -> None:
        self._stop_timer()
        self.advance_pending = False

        interval = self.config.update_interval_s
        if interval is None:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(interval, self._interval_elapsed)

    def _stop_timer(self) -> None:
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None

    def _interval_elapsed(self) -> None:
        self._stop_timer()
        policy = self.config.update_on_suspension
        if policy is None or policy == self.hidden:
            self._advance()
        else:
            LOGGER.debug(
                "%s: interval elapsed while hidden=%s; advance deferred",
                self.module_id,
                self.hidden,
            )
            self.advance_pending = True

    def _advance(self) -> None:
        self._stop_timer()

        if self.comic is None or not self.comic.loaded:
            return

        sequence = self.config.sequence
        if sequence is Sequence.RANDOM:
            self._spawn(self.get_random_comic())
        elif sequence is Sequence.REVERSE:
            self._spawn(self.get_previous_comic())
        elif sequence is Sequence.LATEST:
            self._spawn(self.get_latest_comic())
        else:
            self._spawn(self.get_next_comic())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def close(self) -> None:
        self._stop_timer()

    # Visibility

    def suspend(self) -> None:
        self.hidden = True
        if self.comic is None:
            return
        policy = self.config.update_on_suspension
        if self.advance_pending and policy is True:
            self._advance()
        elif not self.timer_armed and policy is not True:
            self._start_timer()

    def resume(self) -> None:
        self.hidden = False
        if self.comic is None:
            return
        if self.advance_pending and self.config.update_on_suspension is False:
            self._advance()
        elif not self.timer_armed:
            self._start_timer()

    # Navigation

    async def get_initial_comic(self) -> Comic | None:
        self._stop_timer()

        if self.comic is not None and self.comic.loaded:
            self._update(self.comic)
            return self.comic
        if self._initial_in_flight:
            return None

        selector = self._initial_selector()
        url = selector_url(selector, base_url=self.config.base_url, rng=self._rng)
        if url is None:
            LOGGER.warning(
                "%s: unknown initialComic %r; nothing loaded", self.module_id, selector
            )
            return None

        self._initial_in_flight = True
        try:
            return await self.get_comic(url)
        finally:
            self._initial_in_flight = False

    def _initial_selector(self) -> str | None:
        selector = self.config.initial_comic
        # An explicit date-id from the user wins over the persisted position.
        if is_comic_id(selector):
            return selector

        record = self._store.read()
        persisted = record.get("id") if record else None
        if is_comic_id(persisted):
            LOGGER.info("%s: resuming at persisted comic %s", self.module_id, persisted)
            return persisted
        return selector

    async def get_first_comic(self) -> Comic | None:
        return await self.get_comic(
            url_by_id(FIRST_COMIC_ID, base_url=self.config.base_url)
        )

    async def get_latest_comic(self) -> Comic | None:
        return await self.get_comic(self.config.base_url)

    async def get_random_comic(self) -> Comic | None:
        comic_id = random_comic_id(rng=self._rng)
        return await self.get_comic(url_by_id(comic_id, base_url=self.config.base_url))

    async def get_previous_comic(self) -> Comic | None:
        if self.comic is not None and self.comic.previous:
            return await self.get_comic(self.comic.previous)
        return await self.get_latest_comic()

    async def get_next_comic(self) -> Comic | None:
        if self.comic is not None and self.comic.next:
            return await self.get_comic(self.comic.next)
        return await self.get_first_comic()

    async def get_comic(self, url: str) -> Comic | None:
        """Fetch and parse one comic page; ``url`` may be site-relative."""

        self._stop_timer()
        url = absolute_link(url, base_url=self.config.base_url)
        self.state = SessionState.LOADING
        LOGGER.debug("%s: fetching %s", self.module_id, url)

        try:
            body = await asyncio.to_thread(self._http.fetch_text, url)
        except FetchError as e:
            self._fail(e.to_dict())
            return None

        comic = parse_comic(body)
        if not comic.loaded:
            self._fail(
                {"url": url, "statusCode": None, "message": "comic id missing from page"}
            )
            return None

        self._update(comic)
        return comic

    # Outcomes

    def _update(self, comic: Comic) -> None:
        self.comic = comic
        self.state = SessionState.LOADED
        LOGGER.info("%s: comic %s loaded", self.module_id, comic.id)

        config = self.config.to_dict()
        config["comic"] = comic.to_dict()
        self._send(UPDATE_COMIC, {"config": config})
        self._store.write({"id": comic.id})
        self._start_timer()

    def _fail(self, detail: dict[str, Any]) -> None:
        self.state = SessionState.ERROR
        LOGGER.warning("%s: %s", self.module_id, detail.get("message"))
        self._send(
            ERROR,
            {"config": {"moduleId": self.module_id}, "error": detail},
        )
