from __future__ import annotations

from pathlib import Path

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from retencoes.models.record import CalculatedRecord
from retencoes.services.exceptions import BatchAbortedError, ExtractionError


def split_paths(text: str) -> list[Path]:
    """Paths separated by ';', blank entries ignored, order preserved."""
    return [Path(part.strip()).expanduser() for part in text.split(";") if part.strip()]


class AnalyzeScreen(ModalScreen):
    """Batch analysis of invoice files: PDF, image or NFS-e XML."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._processing = False

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Analisar documentos", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Label("Arquivos (separe vários com ';')", classes="form-label")
            yield Input(placeholder="~/notas/nf-123.pdf; ~/notas/nfse-456.xml", id="paths")
            yield Label("", id="progress-label")
            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")
                yield Button("▶ Processar", id="btn-processar", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#paths", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-processar":
                self._do_process()
            case "btn-voltar" | "btn-modal-close":
                self.action_go_back()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._do_process()

    def _do_process(self) -> None:
        if self._processing:
            return
        from retencoes.services.extraction import load_document

        error_label = self.query_one("#error-label", Label)
        error_label.update("")

        paths = split_paths(self.query_one("#paths", Input).value)
        if not paths:
            error_label.update("Informe ao menos um arquivo")
            return
        try:
            documents = [load_document(p) for p in paths]
        except ExtractionError as e:
            error_label.update(str(e))
            return

        self._processing = True
        self.query_one("#btn-processar", Button).disabled = True
        self._run_batch(documents)

    @work(exclusive=True)
    async def _run_batch(self, documents: list) -> None:
        from retencoes.services.batch import BatchPipeline
        from retencoes.services.extraction import DocumentExtractor

        pipeline = BatchPipeline(
            DocumentExtractor(),
            settings=self.app.settings,  # type: ignore[attr-defined]
            on_progress=self._show_progress,
        )
        try:
            records = await pipeline.run(documents)
        except BatchAbortedError as e:
            self._on_aborted(e)
            return
        self._on_done(records)

    def _show_progress(self, index: int, total: int) -> None:
        self.query_one("#progress-label", Label).update(f"Processando {index} de {total}…")

    def _on_done(self, records: list[CalculatedRecord]) -> None:
        from retencoes.tui.screens.result import ResultScreen

        self.notify(f"{len(records)} documento(s) processado(s)", timeout=3)
        self.app.pop_screen()
        self.app.push_screen(ResultScreen(records[-1]))

    def _on_aborted(self, error: BatchAbortedError) -> None:
        message = f"Processamento interrompido. {error}"
        if error.is_authentication:
            message += "\nConfigure a chave com 'retencoes init' ou GEMINI_API_KEY."
        if error.committed:
            self.notify(
                f"{len(error.committed)} documento(s) anterior(es) salvo(s) no histórico",
                timeout=4,
            )
        self._set_error(message)

    def _set_error(self, msg: str) -> None:
        self._processing = False
        self.query_one("#progress-label", Label).update("")
        self.query_one("#error-label", Label).update(msg)
        self.query_one("#btn-processar", Button).disabled = False

    def action_go_back(self) -> None:
        if self._processing:
            self.notify("Aguarde o término do processamento", severity="warning", timeout=3)
            return
        self.app.pop_screen()
