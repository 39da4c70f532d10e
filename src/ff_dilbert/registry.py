from __future__ import annotations

import logging
import random
from collections.abc import MutableMapping
from enum import Enum
from pathlib import Path
from typing import Any

from .config import SessionConfig
from .session import ERROR, ComicFetcher, ComicSession, SendFn
from .store import (
    FileStore,
    KeyValueStore,
    NullStore,
    PersistenceMode,
    PersistenceStore,
)

LOGGER = logging.getLogger("ff_dilbert.registry")


class Command(str, Enum):
    GET_INITIAL_COMIC = "GET_INITIAL_COMIC"
    GET_FIRST_COMIC = "GET_FIRST_COMIC"
    GET_PREVIOUS_COMIC = "GET_PREVIOUS_COMIC"
    GET_NEXT_COMIC = "GET_NEXT_COMIC"
    GET_LATEST_COMIC = "GET_LATEST_COMIC"
    GET_RANDOM_COMIC = "GET_RANDOM_COMIC"
    GET_COMIC = "GET_COMIC"
    SUSPEND = "SUSPEND"
    RESUME = "RESUME"


def build_store(
    config: SessionConfig,
    *,
    client_storage: MutableMapping[str, str] | None = None,
) -> PersistenceStore:
    mode = config.effective_persistence
    persistence_id = config.persistence_id or config.module_id

    if mode is PersistenceMode.SERVER and config.persistence_path is not None:
        store = FileStore(config.persistence_path, persistence_id)
        store.prepare()
        return store
    if mode is PersistenceMode.CLIENT:
        if client_storage is None:
            LOGGER.warning(
                "%s: client persistence requested without a client storage area",
                config.module_id,
            )
            return NullStore()
        return KeyValueStore(client_storage, persistence_id)
    return NullStore()


class SessionRegistry:
    """Owns one ``ComicSession`` per instance identifier (``moduleId``).

    Commands arrive as ``(notification, payload)`` pairs where
    ``payload["config"]["moduleId"]`` scopes the message. Results leave
    through ``send`` with the same scoping.
    """

    def __init__(
        self,
        send: SendFn,
        *,
        http: ComicFetcher,
        client_storage: MutableMapping[str, str] | None = None,
        default_persistence_path: Path | None = None,
        default_user_agent: str | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._send = send
        self._http = http
        self._client_storage = client_storage
        self._default_persistence_path = default_persistence_path
        self._default_user_agent = default_user_agent
        self._rng = rng
        self._sessions: dict[str, ComicSession] = {}

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, module_id: str) -> ComicSession | None:
        return self._sessions.get(module_id)

    def close(self) -> None:
        for session in self._sessions.values():
            session.close()

    def _create(
        self, module_id: str, config_data: dict[str, Any]
    ) -> ComicSession | None:
        try:
            config = SessionConfig.from_dict(
                {**config_data, "moduleId": module_id},
                default_persistence_path=self._default_persistence_path,
                default_user_agent=self._default_user_agent,
            )
        except ValueError as e:
            LOGGER.warning("%s: invalid config: %s", module_id, e)
            self._send(
                ERROR,
                {
                    "config": {"moduleId": module_id},
                    "error": {"url": None, "statusCode": None, "message": str(e)},
                },
            )
            return None

        session = ComicSession(
            config,
            http=self._http,
            send=self._send,
            store=build_store(config, client_storage=self._client_storage),
            rng=self._rng,
        )
        self._sessions[module_id] = session
        LOGGER.info("%s: session created", module_id)
        return session

    async def dispatch(self, notification: str, payload: dict[str, Any] | None) -> None:
        payload = payload or {}
        config_data = payload.get("config") or {}
        raw_id = config_data.get("moduleId")
        if raw_id is None or raw_id == "":
            LOGGER.warning("Dropping %s without config.moduleId", notification)
            return
        # JSON clients may send numeric ids; sessions are keyed by the string form.
        module_id = str(raw_id)

        try:
            command = Command(notification)
        except ValueError:
            LOGGER.debug("%s: ignoring notification %s", module_id, notification)
            return

        session = self._sessions.get(module_id)
        if command is Command.GET_INITIAL_COMIC:
            if session is None:
                session = self._create(module_id, config_data)
                if session is None:
                    return
            await session.get_initial_comic()
            return

        if session is None:
            LOGGER.warning(
                "%s: %s before GET_INITIAL_COMIC; ignored", module_id, command.value
            )
            return

        if command is Command.GET_FIRST_COMIC:
            await session.get_first_comic()
        elif command is Command.GET_PREVIOUS_COMIC:
            await session.get_previous_comic()
        elif command is Command.GET_NEXT_COMIC:
            await session.get_next_comic()
        elif command is Command.GET_LATEST_COMIC:
            await session.get_latest_comic()
        elif command is Command.GET_RANDOM_COMIC:
            await session.get_random_comic()
        elif command is Command.GET_COMIC:
            url = payload.get("url")
            if not url:
                LOGGER.warning("%s: GET_COMIC without url; ignored", module_id)
                return
            await session.get_comic(str(url))
        elif command is Command.SUSPEND:
            session.suspend()
        elif command is Command.RESUME:
            session.resume()
