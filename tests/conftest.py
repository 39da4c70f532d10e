from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Callable

import pytest

from ff_dilbert.http_client import FetchError

BASE_URL = "https://dilbert.com"


def comic_page(
    comic_id: str,
    *,
    title: str = "Dogbert Consults",
    previous: str | None = None,
    next_: str | None = None,
    second_item: str | None = None,
) -> str:
    """A trimmed copy of the strip page markup."""

    older = (
        f'<a class="nav-comic nav-left js-load-comic-older" href="{previous}">'
        "Older</a>"
        if previous
        else ""
    )
    newer = (
        f'<a class="nav-comic nav-right js-load-comic-newer" href="{next_}">'
        "Newer</a>"
        if next_
        else ""
    )
    extra = (
        f'<div class="comic-item-container js-comic" data-id="x" '
        f'data-url="{second_item}"></div>'
        if second_item
        else ""
    )
    return f"""<!DOCTYPE html>
<html><head><title>Dilbert Comic Strip on {comic_id}</title></head>
<body>
<section class="comic-item-container js-comic js-comic-container-{comic_id}"
  data-id="{comic_id}" data-url="{BASE_URL}/strip/{comic_id}">
  <div class="meta-info-container">
    <span class="comic-title-name">{title}</span>
  </div>
  <div class="img-comic-container">
    <img class="img-responsive img-comic" width="900" height="280"
      alt="{title} - Dilbert by Scott Adams"
      src="https://assets.amuniversal.com/{comic_id}">
  </div>
  <div class="nav-comic-container">{older}{newer}</div>
</section>
{extra}
</body></html>
"""


class FakeHttp:
    """Stands in for ``HttpClient``; maps URLs to bodies or exceptions."""

    def __init__(self, pages: dict[str, str | Exception] | None = None) -> None:
        self.pages: dict[str, str | Exception] = dict(pages or {})
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def fetch_text(self, url: str) -> str:
        with self._lock:
            self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, status_code=404)
        if isinstance(page, Exception):
            raise page
        return page


class Outbox:
    def __init__(self) -> None:
        self.messages: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, notification: str, payload: dict[str, Any]) -> None:
        self.messages.append((notification, payload))

    def of(self, notification: str) -> list[dict[str, Any]]:
        return [p for n, p in self.messages if n == notification]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def site() -> FakeHttp:
    """Three consecutive strips starting at the first comic, plus latest."""

    first = comic_page("1989-04-16", next_="/strip/1989-04-17")
    second = comic_page(
        "1989-04-17", previous="/strip/1989-04-16", next_="/strip/1989-04-18"
    )
    latest = comic_page("2023-03-12", title="Latest", previous="/strip/2023-03-11")
    return FakeHttp(
        {
            f"{BASE_URL}/strip/1989-04-16": first,
            f"{BASE_URL}/strip/1989-04-17": second,
            f"{BASE_URL}/strip/1989-04-18": comic_page(
                "1989-04-18", previous="/strip/1989-04-17"
            ),
            BASE_URL: latest,
            f"{BASE_URL}/strip/2023-03-11": comic_page(
                "2023-03-11", next_="/strip/2023-03-12"
            ),
        }
    )
