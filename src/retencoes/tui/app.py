from __future__ import annotations

from textual.app import App
from textual.binding import Binding

from retencoes.models.record import CalculatedRecord
from retencoes.models.settings import RuleSettings
from retencoes.services.recalculation import RecalculationController


class RetencoesApp(App):
    """Retenções na Fonte TUI application."""

    CSS_PATH = "app.tcss"
    TITLE = "Retenções na Fonte"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("q", "quit", "Sair"),
    ]

    def __init__(self, settings: RuleSettings | None = None):
        super().__init__()
        if settings is None:
            from retencoes.config import load_settings

            settings = RuleSettings.from_dict(load_settings())
        self.settings = settings
        self.controller: RecalculationController | None = None

    def activate(self, record: CalculatedRecord) -> RecalculationController:
        """Make *record* the one shown and edited in the result screen."""
        if self.controller is None:
            self.controller = RecalculationController(record, self.settings)
        else:
            self.controller.restore(record)
        return self.controller

    def on_mount(self) -> None:
        from retencoes.tui.screens.dashboard import DashboardScreen
        from retencoes.utils.history import start_session

        start_session()
        self.push_screen(DashboardScreen())
