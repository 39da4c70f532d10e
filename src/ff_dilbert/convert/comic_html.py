from __future__ import annotations

from bs4 import BeautifulSoup
from bs4.element import Tag

from ..comic import Comic


def _attr(node: Tag | None, name: str) -> str | None:
    if node is None:
        return None
    value = node.get(name)
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_comic(html: str) -> Comic:
    """Extract a comic record from a strip page.

    Every field is looked up on its own; a missing element yields ``None``
    (or ``""`` for the title) instead of failing the whole parse.

    Some pages render two comic items, current first and previous second.
    When the "older" navigation link is absent, ``previous`` falls back to
    the second item's ``data-url``.
    """

    soup = BeautifulSoup(html or "", "html.parser")

    containers = soup.select(".comic-item-container")
    current = containers[0] if containers else None

    title_node = soup.select_one(".comic-title-name")
    title = title_node.get_text(" ", strip=True) if title_node else ""

    image = soup.select_one(".img-comic")

    previous = _attr(soup.select_one(".js-load-comic-older"), "href")
    if previous is None and len(containers) > 1:
        previous = _attr(containers[1], "data-url")

    return Comic(
        id=_attr(current, "data-id"),
        url=_attr(current, "data-url"),
        title=title,
        alt=_attr(image, "alt"),
        img=_attr(image, "src"),
        previous=previous,
        next=_attr(soup.select_one(".js-load-comic-newer"), "href"),
    )
