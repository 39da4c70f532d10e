from __future__ import annotations

import random
import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any, Final
from urllib.parse import urljoin

DEFAULT_BASE_URL: Final = "https://dilbert.com"
FIRST_COMIC_ID: Final = "1989-04-16"
FIRST_COMIC_DATE: Final = datetime(1989, 4, 16, tzinfo=timezone.utc)

_COMIC_ID_RE: Final = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class Comic:
    id: str | None = None
    url: str | None = None
    title: str = ""
    alt: str | None = None
    img: str | None = None
    previous: str | None = None
    next: str | None = None

    @property
    def loaded(self) -> bool:
        return bool(self.id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_comic_id(value: object) -> bool:
    """True for date-id strings such as ``1989-04-16``."""

    return isinstance(value, str) and _COMIC_ID_RE.fullmatch(value) is not None


def date_to_id(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d")


def url_by_id(comic_id: str, *, base_url: str = DEFAULT_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/strip/{comic_id}"


def absolute_link(link: str, *, base_url: str = DEFAULT_BASE_URL) -> str:
    """Resolve a site-relative navigation link (``/strip/...``)."""

    if link.startswith(("http://", "https://")):
        return link
    return urljoin(base_url.rstrip("/") + "/", link.lstrip("/"))


def random_comic_id(
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str:
    """Pick a uniformly random date-id in ``[FIRST_COMIC_DATE, now]``."""

    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()
    low = FIRST_COMIC_DATE.timestamp()
    high = max(low, now.timestamp())
    picked = datetime.fromtimestamp(rng.uniform(low, high), tz=timezone.utc)
    return date_to_id(picked)


def selector_url(
    selector: str | None,
    *,
    base_url: str = DEFAULT_BASE_URL,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str | None:
    """Resolve an initial-comic selector to the page URL to fetch.

    Accepts a date-id, ``first``, ``random`` or ``latest``; anything else
    resolves to ``None``.
    """

    if is_comic_id(selector):
        return url_by_id(str(selector), base_url=base_url)
    if selector == "first":
        return url_by_id(FIRST_COMIC_ID, base_url=base_url)
    if selector == "random":
        return url_by_id(random_comic_id(now=now, rng=rng), base_url=base_url)
    if selector == "latest":
        return base_url
    return None
