from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from .comic import DEFAULT_BASE_URL
from .store import PersistenceMode, resolve_persistence_mode

DEFAULT_INITIAL_COMIC = "latest"
DEFAULT_UPDATE_INTERVAL_S = 60 * 60.0
DEFAULT_PERSISTENCE_DIRNAME = ".store"


class Sequence(str, Enum):
    RANDOM = "random"
    REVERSE = "reverse"
    LATEST = "latest"
    DEFAULT = "default"


def _interval_from_ms(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"updateInterval must be milliseconds or null: {value!r}")
    try:
        ms = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(
            f"updateInterval must be milliseconds or null: {value!r}"
        ) from e
    return ms / 1000.0


def _optional_bool(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    raise ValueError(f"updateOnSuspension must be true, false or null: {value!r}")


@dataclass
class SessionConfig:
    """Per-instance settings, as sent by the display client.

    ``update_interval_s`` is ``None`` when auto-advance is disabled.
    ``update_on_suspension``: ``True`` advances only while hidden, ``False``
    only while visible, ``None`` regardless of visibility.
    """

    module_id: str
    initial_comic: str | None = DEFAULT_INITIAL_COMIC
    sequence: Sequence = Sequence.RANDOM
    update_on_suspension: bool | None = None
    update_interval_s: float | None = DEFAULT_UPDATE_INTERVAL_S
    persistence: PersistenceMode = PersistenceMode.OFF
    persistence_id: str | None = None
    persistence_path: Path | None = None
    user_agent: str | None = None
    base_url: str = DEFAULT_BASE_URL
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.persistence_id is None:
            self.persistence_id = self.module_id

    @property
    def effective_persistence(self) -> PersistenceMode:
        return resolve_persistence_mode(self.persistence, user_agent=self.user_agent)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        default_persistence_path: Path | None = None,
        default_user_agent: str | None = None,
    ) -> "SessionConfig":
        known = {
            "moduleId",
            "initialComic",
            "sequence",
            "updateOnSuspension",
            "updateInterval",
            "persistence",
            "persistenceId",
            "persistencePath",
            "userAgent",
            "baseUrl",
            "comic",
        }
        module_id = data.get("moduleId")
        if not module_id:
            raise ValueError("config.moduleId is required")

        sequence_raw = data.get("sequence") or Sequence.RANDOM.value
        try:
            sequence = Sequence(sequence_raw)
        except ValueError as e:
            raise ValueError(f"Unknown sequence: {sequence_raw!r}") from e

        raw_path = data.get("persistencePath")
        if raw_path:
            persistence_path: Path | None = Path(raw_path)
        elif default_persistence_path is not None:
            persistence_path = default_persistence_path
        else:
            persistence_path = Path.cwd() / DEFAULT_PERSISTENCE_DIRNAME

        persistence_raw = data.get("persistence")
        try:
            persistence = (
                PersistenceMode(persistence_raw)
                if persistence_raw
                else PersistenceMode.OFF
            )
        except ValueError:
            persistence = PersistenceMode.OFF

        return cls(
            module_id=str(module_id),
            initial_comic=data.get("initialComic", DEFAULT_INITIAL_COMIC),
            sequence=sequence,
            update_on_suspension=_optional_bool(data.get("updateOnSuspension")),
            update_interval_s=_interval_from_ms(
                data.get("updateInterval", DEFAULT_UPDATE_INTERVAL_S * 1000)
            ),
            persistence=persistence,
            persistence_id=(
                str(data["persistenceId"]) if data.get("persistenceId") else None
            ),
            persistence_path=persistence_path,
            user_agent=data.get("userAgent") or default_user_agent,
            base_url=str(data.get("baseUrl") or DEFAULT_BASE_URL),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire shape echoed back to the display client."""

        out = dict(self.extra)
        out.update(
            {
                "moduleId": self.module_id,
                "initialComic": self.initial_comic,
                "sequence": self.sequence.value,
                "updateOnSuspension": self.update_on_suspension,
                "updateInterval": (
                    None
                    if self.update_interval_s is None
                    else int(self.update_interval_s * 1000)
                ),
                "persistence": (
                    None
                    if self.persistence is PersistenceMode.OFF
                    else self.persistence.value
                ),
                "persistenceId": self.persistence_id,
                "persistencePath": (
                    None if self.persistence_path is None else str(self.persistence_path)
                ),
                "userAgent": self.user_agent,
                "baseUrl": self.base_url,
            }
        )
        return out
