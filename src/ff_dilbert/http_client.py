from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests
from requests import exceptions as req_exc


class FetchError(RuntimeError):
    """Upstream fetch failed: non-2xx status or transport error."""

    def __init__(
        self,
        url: str,
        *,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.cause = cause
        if status_code is not None:
            message = f"HTTP {status_code} for {url}"
        else:
            message = f"Failed to fetch {url}: {cause}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "statusCode": self.status_code,
            "message": str(self),
        }


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    headers: dict[str, str]
    fetched_at: float
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        # The header charset is ignored; requests guesses ISO-8859-1 without one.
        return self.body.decode("utf-8", errors="replace")


class HttpClient:
    def __init__(
        self,
        session: requests.Session,
        *,
        timeout_s: int = 45,
    ) -> None:
        self._session = session
        self._timeout_s = timeout_s

    def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        try:
            resp = self._session.get(url, timeout=self._timeout_s, headers=headers)
        except req_exc.RequestException as e:
            raise FetchError(url, cause=e) from e

        return FetchResult(
            url=url,
            final_url=str(resp.url),
            status_code=int(resp.status_code),
            headers={k: str(v) for k, v in resp.headers.items()},
            fetched_at=time.time(),
            body=resp.content,
        )

    def fetch_text(self, url: str) -> str:
        """Return the body of a 2xx response, else raise ``FetchError``."""

        result = self.get(url)
        if not result.ok:
            raise FetchError(url, status_code=result.status_code)
        return result.text


def load_json(path: Path) -> dict | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None
