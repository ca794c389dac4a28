from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select, Static, Switch

from retencoes.services.exceptions import InvalidInputError


class ManualEntryScreen(ModalScreen):
    """Calculate from values typed by the operator instead of a document."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def compose(self) -> ComposeResult:
        from retencoes.tui.options import DOCUMENTO_TIPO_OPTIONS, IRRF_OPTIONS

        sede = self.app.settings.municipio_sede  # type: ignore[attr-defined]

        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Entrada manual", id="header-bar")
                yield Button("✕", id="btn-modal-close")

            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Valor bruto (R$)", classes="form-label")
                    yield Input(placeholder="Ex: 1500,00", id="valor-bruto")
                with Vertical():
                    yield Label("Tipo de documento", classes="form-label")
                    yield Select(
                        DOCUMENTO_TIPO_OPTIONS, value="SERVICO", allow_blank=False, id="documento-tipo"
                    )

            with Horizontal(classes="switch-row"):
                yield Label("Optante pelo Simples")
                yield Switch(value=False, id="sw-simples")
                yield Label("MEI")
                yield Switch(value=False, id="sw-mei")

            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Alíquota IR", classes="form-label")
                    yield Select(IRRF_OPTIONS, value="0.00", allow_blank=False, id="aliquota-ir")
                with Vertical():
                    yield Label("Alíquota ISS (%)", classes="form-label")
                    yield Input(value="5", placeholder="Ex: 5,00", id="aliquota-iss")

            yield Label("Município de incidência do ISS", classes="form-label")
            yield Input(value=sede, id="municipio")

            yield Label("Valor INSS (R$)", classes="form-label")
            yield Input(placeholder="Deixe em branco se não houver", id="valor-inss")

            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")
                yield Button("▶ Calcular retenções", id="btn-calcular", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#valor-bruto", Input).focus()

    def collect(self) -> dict:
        """Form values in the extraction contract shape."""
        simples = self.query_one("#sw-simples", Switch).value
        mei = self.query_one("#sw-mei", Switch).value
        aliquota_ir = str(self.query_one("#aliquota-ir", Select).value)
        return {
            "razaoSocial": "Cálculo Manual",
            "cnpj": "N/A",
            "numeroNF": "N/A",
            "valorBruto": self.query_one("#valor-bruto", Input).value,
            "optanteSimples": "SIM" if simples else "NÃO",
            "isMei": "SIM" if mei else "NÃO",
            "documentoTipo": str(self.query_one("#documento-tipo", Select).value),
            "aliquotaIR": "0" if simples or mei else aliquota_ir,
            "aliquotaISS": self.query_one("#aliquota-iss", Input).value,
            "localServico": "N/A",
            "municipioIncidencia": self.query_one("#municipio", Input).value,
            "valorINSS": self.query_one("#valor-inss", Input).value,
        }

    def _do_calculate(self) -> None:
        from retencoes.services.batch import build_record
        from retencoes.tui.screens.result import ResultScreen
        from retencoes.utils.history import add_record

        error_label = self.query_one("#error-label", Label)
        try:
            record = build_record(self.collect(), self.app.settings)  # type: ignore[attr-defined]
        except InvalidInputError as e:
            error_label.update(str(e))
            return
        error_label.update("")
        try:
            add_record(record)
        except OSError as e:
            self.notify(f"Erro ao salvar no histórico: {e}", severity="error", timeout=5)
        self.app.pop_screen()
        self.app.push_screen(ResultScreen(record))

    def on_switch_changed(self, event: Switch.Changed) -> None:
        simples = self.query_one("#sw-simples", Switch).value
        mei = self.query_one("#sw-mei", Switch).value
        self.query_one("#aliquota-ir", Select).disabled = simples or mei

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._do_calculate()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-calcular":
                self._do_calculate()
            case "btn-voltar" | "btn-modal-close":
                self.action_go_back()

    def action_go_back(self) -> None:
        self.app.pop_screen()
