from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeHttp, FakeRunner, FakeUser, InMemoryFs
from pyforge.app_context import AppContext
from pyforge.config.models import CoreConfig
from pyforge.mode import OperationMode
from pyforge.tools.builtin import Infrastructure
from pyforge.undo.ledger import UndoLedger

ROOT = Path("/work")


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Keep user-level config and event logs out of the real home directory."""
    monkeypatch.setattr("pyforge.config.loader.user_config_dir", lambda app: str(tmp_path / "config"))
    monkeypatch.setattr("pyforge.events.store.user_data_dir", lambda app: str(tmp_path / "data"))


@pytest.fixture
def root() -> Path:
    return ROOT


@pytest.fixture
def fs(root) -> InMemoryFs:
    return InMemoryFs(root)


@pytest.fixture
def ledger(fs) -> UndoLedger:
    return UndoLedger(fs)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def user() -> FakeUser:
    return FakeUser()


@pytest.fixture
def config() -> CoreConfig:
    return CoreConfig()


@pytest.fixture
def infra(fs, runner, http, user) -> Infrastructure:
    return Infrastructure(fs=fs, runner=runner, http=http, user=user)


@pytest.fixture
def make_ctx(root, infra, tmp_path):
    contexts: list[AppContext] = []

    def make(mode: OperationMode = OperationMode.RESTRICTED) -> AppContext:
        ctx = AppContext.from_env(cwd=root, mode=mode, infra=infra, events_dir=tmp_path / "events")
        contexts.append(ctx)
        return ctx

    yield make
    for ctx in contexts:
        ctx.close()


@pytest.fixture
def ctx(make_ctx) -> AppContext:
    return make_ctx()
