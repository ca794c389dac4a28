from __future__ import annotations

import pytest

from retencoes.models.settings import DEFAULT_SETTINGS
from retencoes.tui.app import RetencoesApp


@pytest.fixture
def mock_config(data_dir, config_dir, no_api_key):
    """Point config and data at tmp dirs so the TUI can launch without real files."""
    yield


@pytest.fixture
def make_app(mock_config):
    def make(settings=DEFAULT_SETTINGS) -> RetencoesApp:
        return RetencoesApp(settings=settings)

    return make
