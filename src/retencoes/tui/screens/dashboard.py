from __future__ import annotations

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.screen import Screen
from textual.widgets import Button, DataTable, Footer, Label, Static

from retencoes.config import MAX_HISTORY
from retencoes.models.record import CalculatedRecord
from retencoes.utils.formatters import format_brl


class DashboardScreen(Screen):
    """Main dashboard: session history and entry points."""

    BINDINGS = [
        # List actions, hidden from footer (buttons above table)
        Binding("a", "analyze", "Analisar", show=False),
        Binding("m", "manual_entry", "Entrada manual", show=False),
        Binding("x", "clear_history", "Limpar", show=False),
        # Generic actions, shown in footer
        Binding("h", "help", "Ajuda"),
        Binding("q", "quit", "Sair"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._records: list[CalculatedRecord] = []

    def compose(self) -> ComposeResult:
        settings = self.app.settings  # type: ignore[attr-defined]

        with Horizontal(id="top-bar"):
            yield Static("Retenções na Fonte", id="app-title")
            yield Static(f"Sede: {settings.municipio_sede}", id="sede-badge")

        with Horizontal(id="info-bar"):
            with Vertical(id="card-key", classes="info-card"):
                yield Label("Chave Gemini", classes="card-title")
                yield Label("…", id="key-info", classes="card-value")
            with Vertical(id="card-csrf", classes="info-card"):
                yield Label("CSRF (4,65%)", classes="card-title")
                csrf = "habilitada" if settings.csrf_habilitada else "desabilitada"
                yield Label(csrf, id="csrf-info", classes="card-value")
            with Vertical(id="card-history", classes="info-card"):
                yield Label("Histórico da sessão", classes="card-title")
                yield Label(f"0 de {MAX_HISTORY}", id="history-info", classes="card-value")

        with Horizontal(id="action-bar"):
            yield Button(
                "▶ Analisar documentos",
                id="btn-analyze",
                variant="primary",
                tooltip="Extrair e calcular notas em PDF, imagem ou XML (a)",
            )
            yield Button(
                "+ Entrada manual",
                id="btn-manual",
                tooltip="Calcular a partir de valores digitados (m)",
            )
            yield Button(
                "✕ Limpar histórico",
                id="btn-clear",
                variant="error",
                tooltip="Apagar todos os cálculos da sessão (x)",
            )

        yield Static("Cálculos recentes", id="section-title")
        yield DataTable(id="history-table", cursor_type="row")
        yield Static(
            "Nenhum cálculo nesta sessão.\n"
            "Pressione [bold]a[/bold] para analisar documentos "
            "ou [bold]m[/bold] para entrada manual.",
            id="empty-state",
        )

        yield Footer()

    def on_mount(self) -> None:
        self._load_key_status()
        self.refresh_history()
        self.query_one("#history-table", DataTable).focus()

    def on_screen_resume(self) -> None:
        self.refresh_history()

    def on_key(self, event: Key) -> None:
        table = self.query_one("#history-table", DataTable)
        match event.key:
            case "j":
                table.action_cursor_down()
            case "k":
                table.action_cursor_up()
            case "enter":
                self._open_selected()
            case _:
                return
        event.prevent_default()
        event.stop()

    @work(thread=True)
    def _load_key_status(self) -> None:
        from retencoes.config import has_api_key

        text = "[green]configurada[/green]" if has_api_key() else "[yellow]não configurada[/yellow]"
        self.app.call_from_thread(self._update_label, "key-info", text)

    def refresh_history(self) -> None:
        from retencoes.utils.history import list_history

        try:
            self._records = list_history()
        except OSError as e:
            self._records = []
            self.notify(f"Erro ao ler o histórico: {e}", severity="error", timeout=5)
        self._populate_table(self._records)

    def _populate_table(self, records: list[CalculatedRecord]) -> None:
        table = self.query_one("#history-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Data", "Fornecedor", "NF", "Bruto", "Retido", "Líquido")

        for record in records:
            facts = record.facts
            table.add_row(
                record.created_at.strftime("%d/%m %H:%M:%S"),
                facts.razao_social,
                facts.numero_nf,
                format_brl(facts.valor_bruto),
                format_brl(record.result.total_retido),
                format_brl(record.valor_liquido),
                key=str(record.id),
            )

        has_rows = table.row_count > 0
        table.display = has_rows
        self.query_one("#empty-state", Static).display = not has_rows
        self._update_label("history-info", f"{len(records)} de {MAX_HISTORY}")

    def _selected_record(self) -> CalculatedRecord | None:
        table = self.query_one("#history-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return next((r for r in self._records if str(r.id) == row_key.value), None)

    def _open_selected(self) -> None:
        record = self._selected_record()
        if record is None:
            return
        from retencoes.tui.screens.result import ResultScreen

        self.app.push_screen(ResultScreen(record))

    def _update_label(self, label_id: str, text: str) -> None:
        try:
            self.query_one(f"#{label_id}", Label).update(text)
        except NoMatches:
            pass  # screen already dismissed

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-analyze":
                self.action_analyze()
            case "btn-manual":
                self.action_manual_entry()
            case "btn-clear":
                self.action_clear_history()

    # --- Actions ---

    def action_analyze(self) -> None:
        from retencoes.tui.screens.analyze import AnalyzeScreen

        self.app.push_screen(AnalyzeScreen())

    def action_manual_entry(self) -> None:
        from retencoes.tui.screens.manual_entry import ManualEntryScreen

        self.app.push_screen(ManualEntryScreen())

    def action_clear_history(self) -> None:
        if not self._records:
            self.notify("O histórico já está vazio", timeout=2)
            return
        from retencoes.tui.screens.confirm import ConfirmScreen

        self.app.push_screen(
            ConfirmScreen(
                "Apagar todos os cálculos desta sessão?\n\n"
                "Esta ação não pode ser desfeita."
            ),
            callback=self._on_clear_confirmed,
        )

    def _on_clear_confirmed(self, confirmed: bool | None) -> None:
        if not confirmed:
            return
        from retencoes.utils.history import clear_history

        try:
            clear_history()
        except OSError as e:
            self.notify(f"Erro ao limpar o histórico: {e}", severity="error", timeout=5)
            return
        self.notify("Histórico apagado", timeout=2)
        self.refresh_history()

    def action_help(self) -> None:
        from retencoes.tui.screens.help import HelpScreen

        self.app.push_screen(HelpScreen())

    def action_quit(self) -> None:
        self.app.exit()
