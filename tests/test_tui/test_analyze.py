from __future__ import annotations

from pathlib import Path

import pytest
from textual.widgets import Button, Input, Label

from retencoes.services.exceptions import AuthenticationError
from retencoes.tui.screens.analyze import AnalyzeScreen, split_paths
from retencoes.utils.history import list_history


def test_split_paths():
    assert split_paths(" a.pdf ; ;b.xml;") == [Path("a.pdf"), Path("b.xml")]
    assert split_paths("") == []
    assert split_paths("~/nf.pdf")[0] == Path.home() / "nf.pdf"


@pytest.fixture
def outcomes(monkeypatch, extracted_dict):
    """Per-file extraction results; files not listed get the default dict."""
    results: dict = {}

    class FakeExtractor:
        async def extract(self, document):
            outcome = results.get(document.name, {**extracted_dict, "numeroNF": document.name})
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

    monkeypatch.setattr("retencoes.services.extraction.DocumentExtractor", FakeExtractor)
    return results


@pytest.fixture
def pdfs(tmp_path):
    paths = []
    for name in ("a.pdf", "b.pdf", "c.pdf"):
        path = tmp_path / name
        path.write_bytes(b"%PDF-1.4")
        paths.append(str(path))
    return paths


async def _open(app, pilot) -> AnalyzeScreen:
    await pilot.press("a")
    await pilot.pause()
    assert isinstance(app.screen, AnalyzeScreen)
    return app.screen


async def _process(app, pilot, screen, text: str) -> None:
    screen.query_one("#paths", Input).value = text
    screen.query_one("#btn-processar", Button).press()
    await pilot.pause()
    await app.workers.wait_for_complete()
    await pilot.pause()


@pytest.mark.asyncio
async def test_batch_opens_last_result(make_app, outcomes, pdfs):
    from retencoes.tui.screens.result import ResultScreen

    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        await _process(app, pilot, screen, "; ".join(pdfs))

        assert isinstance(app.screen, ResultScreen)
        assert app.controller.active.facts.numero_nf == "c.pdf"
        assert [r.facts.numero_nf for r in list_history()] == ["c.pdf", "b.pdf", "a.pdf"]


@pytest.mark.asyncio
async def test_abort_keeps_committed_and_shows_error(make_app, outcomes, pdfs):
    outcomes["b.pdf"] = AuthenticationError("API key not valid")
    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        await _process(app, pilot, screen, ";".join(pdfs))

        assert app.screen is screen
        error = screen.query_one("#error-label", Label).render().plain
        assert "Documento 2 de 3" in error
        assert "retencoes init" in error
        assert [r.facts.numero_nf for r in list_history()] == ["a.pdf"]
        assert not screen.query_one("#btn-processar", Button).disabled


@pytest.mark.asyncio
async def test_no_paths(make_app, outcomes):
    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        await _process(app, pilot, screen, "  ")
        assert "ao menos um arquivo" in screen.query_one("#error-label", Label).render().plain


@pytest.mark.asyncio
async def test_unreadable_file(make_app, outcomes, tmp_path):
    app = make_app()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot)
        await _process(app, pilot, screen, str(tmp_path / "nada.pdf"))
        assert "nada.pdf" in screen.query_one("#error-label", Label).render().plain
        assert list_history() == []


@pytest.mark.asyncio
async def test_escape_closes(make_app):
    from retencoes.tui.screens.dashboard import DashboardScreen

    app = make_app()
    async with app.run_test() as pilot:
        await _open(app, pilot)
        await pilot.press("escape")
        assert isinstance(app.screen, DashboardScreen)
