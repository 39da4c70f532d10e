from __future__ import annotations

from pathlib import Path

import pytest

from ff_dilbert.config import SessionConfig, Sequence
from ff_dilbert.store import PersistenceMode


def test_defaults_follow_module_defaults(tmp_path):
    config = SessionConfig.from_dict(
        {"moduleId": "module_3_MMM-Ff-Dilbert"}, default_persistence_path=tmp_path
    )
    assert config.initial_comic == "latest"
    assert config.sequence is Sequence.RANDOM
    assert config.update_on_suspension is None
    assert config.update_interval_s == 3600.0
    assert config.persistence is PersistenceMode.OFF
    assert config.persistence_id == "module_3_MMM-Ff-Dilbert"
    assert config.persistence_path == tmp_path
    assert config.base_url == "https://dilbert.com"


def test_from_dict_reads_wire_keys():
    config = SessionConfig.from_dict(
        {
            "moduleId": "m1",
            "initialComic": "first",
            "sequence": "reverse",
            "updateOnSuspension": False,
            "updateInterval": 1500,
            "persistence": "server",
            "persistenceId": "shared",
            "persistencePath": "/srv/comics",
            "header": "Dilbert",
        }
    )
    assert config.initial_comic == "first"
    assert config.sequence is Sequence.REVERSE
    assert config.update_on_suspension is False
    assert config.update_interval_s == 1.5
    assert config.persistence is PersistenceMode.SERVER
    assert config.persistence_id == "shared"
    assert config.persistence_path == Path("/srv/comics")
    assert config.extra == {"header": "Dilbert"}


def test_null_interval_disables_auto_advance():
    config = SessionConfig.from_dict({"moduleId": "m1", "updateInterval": None})
    assert config.update_interval_s is None
    assert config.to_dict()["updateInterval"] is None


def test_to_dict_echoes_wire_shape():
    data = {
        "moduleId": "m1",
        "initialComic": "random",
        "sequence": "latest",
        "updateOnSuspension": True,
        "updateInterval": 60000,
        "persistence": "client",
        "persistenceId": "p",
        "persistencePath": "/tmp/x",
        "header": "Dilbert",
        "comic": {"id": "stale"},
    }
    echoed = SessionConfig.from_dict(data).to_dict()
    assert echoed["moduleId"] == "m1"
    assert echoed["sequence"] == "latest"
    assert echoed["updateOnSuspension"] is True
    assert echoed["updateInterval"] == 60000
    assert echoed["persistence"] == "client"
    assert echoed["header"] == "Dilbert"
    assert "comic" not in echoed


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"moduleId": "m1", "sequence": "sideways"},
        {"moduleId": "m1", "updateInterval": "soon"},
        {"moduleId": "m1", "updateInterval": True},
        {"moduleId": "m1", "updateOnSuspension": "yes"},
    ],
)
def test_invalid_config_raises_value_error(data):
    with pytest.raises(ValueError):
        SessionConfig.from_dict(data)


def test_effective_persistence_uses_user_agent():
    config = SessionConfig(
        module_id="m1",
        persistence=PersistenceMode.ELECTRON,
        user_agent="Mozilla/5.0 (X11; Linux) Electron/26.2.1",
    )
    assert config.effective_persistence is PersistenceMode.CLIENT


def test_user_agent_is_echoed_and_defaulted():
    sent = SessionConfig.from_dict(
        {"moduleId": "m1", "userAgent": "Mozilla/5.0 Firefox/118.0"},
        default_user_agent="Mozilla/5.0 Electron/27.1.0",
    )
    assert sent.to_dict()["userAgent"] == "Mozilla/5.0 Firefox/118.0"

    defaulted = SessionConfig.from_dict(
        {"moduleId": "m1", "persistence": "electron"},
        default_user_agent="Mozilla/5.0 Electron/27.1.0",
    )
    assert defaulted.to_dict()["userAgent"] == "Mozilla/5.0 Electron/27.1.0"
    assert defaulted.effective_persistence is PersistenceMode.CLIENT

    assert SessionConfig.from_dict({"moduleId": "m1"}).to_dict()["userAgent"] is None
