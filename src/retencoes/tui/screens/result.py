from __future__ import annotations

import webbrowser
from decimal import Decimal
from pathlib import Path

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Input, Label, Select, Static, Switch

from retencoes.models.record import CalculatedRecord
from retencoes.services.exceptions import InvalidInputError
from retencoes.services.recalculation import RecalculationController
from retencoes.utils.formatters import format_brl, format_cnpj, format_percent

TAX_LABELS = {"irrf": "IRRF", "csrf": "CSRF", "iss": "ISS", "inss": "INSS"}

# Simples Nacional opt-in lookup (CNPJ is pasted by the operator)
RECEITA_CONSULTA_URL = "https://consopt.www8.receita.fazenda.gov.br/consultaoptantes"

# input id -> editable field
_INPUT_FIELDS = {
    "aliquota-iss": "aliquota_iss",
    "base-inss": "base_calculo_inss",
    "aliquota-inss": "aliquota_inss",
}

# widget id -> editable field
_SWITCH_FIELDS = {"sw-simples": "optante_simples", "sw-mei": "is_mei"}
_SELECT_FIELDS = {"aliquota-ir": "aliquota_ir", "codigo-reinf": "codigo_reinf"}


def _plain(value) -> str:
    return "" if value is None else f"{value:.2f}"


class ResultScreen(ModalScreen):
    """Calculated record with live recalculation on every edit."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
        Binding("ctrl+s", "toggle_simples", "Simples", show=False),
        Binding("ctrl+e", "toggle_mei", "MEI", show=False),
        Binding("ctrl+r", "split", "Ratear", show=False),
        Binding("ctrl+o", "export", "Exportar", show=False),
        Binding("ctrl+b", "check_receita", "Receita", show=False),
    ]

    def __init__(self, record: CalculatedRecord) -> None:
        super().__init__()
        self._initial = record

    @property
    def controller(self) -> RecalculationController:
        return self.app.controller  # type: ignore[attr-defined]

    @property
    def record(self) -> CalculatedRecord:
        return self.controller.active

    def compose(self) -> ComposeResult:
        from retencoes.tui.options import irrf_options_for, natureza_options

        record = self._initial
        facts = record.facts
        inss = record.inss

        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Resultado do cálculo", id="header-bar")
                yield Button("✕", id="btn-modal-close")

            yield Static("", id="supplier-info")

            with Horizontal(classes="switch-row"):
                yield Label("Optante pelo Simples")
                yield Switch(value=facts.optante_simples, id="sw-simples")
                yield Label("MEI")
                yield Switch(value=facts.is_mei, id="sw-mei")

            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Alíquota IR", classes="form-label")
                    rate = f"{record.irrf.rate:.2f}"
                    yield Select(
                        irrf_options_for(rate), value=rate, allow_blank=False, id="aliquota-ir"
                    )
                with Vertical():
                    yield Label("Natureza do rendimento (REINF)", classes="form-label")
                    yield Select(
                        natureza_options(facts.codigo_reinf),
                        value=facts.codigo_reinf,
                        allow_blank=False,
                        id="codigo-reinf",
                    )

            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Alíquota ISS (%)", classes="form-label")
                    yield Input(value=_plain(record.iss.rate), id="aliquota-iss")
                with Vertical():
                    yield Label("Base INSS (R$)", classes="form-label")
                    yield Input(value=_plain(inss.base), id="base-inss")
                with Vertical():
                    yield Label("Alíquota INSS (%)", classes="form-label")
                    yield Input(value=_plain(inss.rate), id="aliquota-inss")

            yield Label("", id="error-label")
            yield DataTable(id="result-table", cursor_type="none")
            yield Static("", id="observacoes", classes="observacao")
            yield Label("", id="net-label")

            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")
                yield Button("⌕ Verificar na Receita", id="btn-receita")
                yield Button("⇓ Exportar JSON", id="btn-export")
                yield Button("÷ Ratear empenhos", id="btn-split", variant="primary")

    def on_mount(self) -> None:
        self.app.activate(self._initial)  # type: ignore[attr-defined]
        self._render_record()

    # --- Rendering ---

    def _render_record(self) -> None:
        record = self.record
        facts = record.facts

        self.query_one("#supplier-info", Static).update(
            f"[bold]{facts.razao_social}[/bold]  CNPJ {format_cnpj(facts.cnpj)}\n"
            f"NF {facts.numero_nf} · {facts.documento_tipo.value} · "
            f"Local: {facts.local_servico} · Incidência ISS: {record.result.municipio_incidencia}\n"
            f"Valor bruto: [bold]{format_brl(facts.valor_bruto)}[/bold]"
        )

        table = self.query_one("#result-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Tributo", "Alíquota", "Base", "Valor retido")
        notes: list[str] = []
        for kind, line in record.result.lines().items():
            base = format_brl(line.base) if line.base is not None else ""
            table.add_row(
                TAX_LABELS[kind], format_percent(line.rate), base, format_brl(line.value), key=kind
            )
            if line.observacao:
                notes.append(f"{TAX_LABELS[kind]}: {line.observacao}")
        self.query_one("#observacoes", Static).update("\n".join(notes))

        self.query_one("#net-label", Label).update(
            f"Total retido: {format_brl(record.result.total_retido)}   "
            f"Valor líquido: {format_brl(record.valor_liquido)}"
        )

        # inputs follow the record (MEI zeroes the INSS fields)
        with self.prevent(Input.Changed):
            self.query_one("#base-inss", Input).value = _plain(record.inss.base)
            self.query_one("#aliquota-inss", Input).value = _plain(record.inss.rate)

    # --- Edits ---

    def _apply(self, field: str, value: object) -> None:
        error_label = self.query_one("#error-label", Label)
        previous_inss = self.record.inss.value
        try:
            self.controller.edit(field, value)
        except InvalidInputError as e:
            error_label.update(str(e))
            return
        error_label.update("")
        self._render_record()
        self._warn_inss_dropped(previous_inss)

    def _warn_inss_dropped(self, previous: Decimal) -> None:
        # MEI zeroes INSS for good; switching it off again does not bring it back
        if self.record.facts.is_mei and previous:
            self.notify(
                f"INSS de {format_brl(previous)} zerado pelo MEI. "
                "Desmarcar MEI não restaura o valor; informe base e alíquota novamente.",
                severity="warning",
                timeout=6,
            )

    def on_switch_changed(self, event: Switch.Changed) -> None:
        field = _SWITCH_FIELDS.get(event.switch.id or "")
        if field is None or getattr(self.record.facts, field) == event.value:
            return
        self._apply(field, event.value)

    def on_select_changed(self, event: Select.Changed) -> None:
        field = _SELECT_FIELDS.get(event.select.id or "")
        if field is None or event.value is Select.BLANK:
            return
        value = str(event.value)
        facts = self.record.facts
        current = facts.codigo_reinf if field == "codigo_reinf" else f"{facts.aliquota_ir:.2f}"
        if current == value:
            return
        self._apply(field, value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        field = _INPUT_FIELDS.get(event.input.id or "")
        if field is None:
            return
        self._apply(field, event.value.strip() or "0")

    def _toggle(self, flag: str, switch_id: str) -> None:
        previous_inss = self.record.inss.value
        self.controller.toggle(flag)
        with self.prevent(Switch.Changed):
            self.query_one(f"#{switch_id}", Switch).value = getattr(self.record.facts, flag)
        self._render_record()
        self._warn_inss_dropped(previous_inss)

    def action_toggle_simples(self) -> None:
        self._toggle("optante_simples", "sw-simples")

    def action_toggle_mei(self) -> None:
        self._toggle("is_mei", "sw-mei")

    # --- Buttons ---

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-split":
                self.action_split()
            case "btn-export":
                self.action_export()
            case "btn-receita":
                self.action_check_receita()
            case "btn-voltar" | "btn-modal-close":
                self.action_go_back()

    def action_split(self) -> None:
        from retencoes.tui.screens.split import SplitScreen

        self.app.push_screen(SplitScreen(self.record))

    def action_check_receita(self) -> None:
        """Copy the CNPJ digits and open the Simples Nacional lookup."""
        digits = "".join(c for c in self.record.facts.cnpj if c.isdigit())
        if not digits:
            self.notify("CNPJ do fornecedor não informado", severity="warning", timeout=3)
            return
        self.app.copy_to_clipboard(digits)
        webbrowser.open(RECEITA_CONSULTA_URL)
        self.notify(f"CNPJ {digits} copiado. Cole-o na consulta da Receita.", timeout=4)

    def action_export(self) -> None:
        self._run_export(self.record)

    @work(thread=True)
    def _run_export(self, record: CalculatedRecord) -> None:
        try:
            path = save_export(record)
            self.app.call_from_thread(self.notify, f"Exportado: {path}", timeout=4)
        except OSError as e:
            self.app.call_from_thread(
                self.notify, f"Erro ao exportar: {e}", severity="error", timeout=5
            )

    def action_go_back(self) -> None:
        self.app.pop_screen()


def save_export(record: CalculatedRecord) -> Path:
    """Write the record's structured export under the data dir's exports/."""
    from retencoes.config import get_exports_dir
    from retencoes.models.record import export_json

    exports = get_exports_dir()
    exports.mkdir(parents=True, exist_ok=True)
    numero = "".join(c for c in record.facts.numero_nf if c.isalnum()) or "sem-numero"
    path = exports / f"retencoes-{numero}-{record.id}.json"
    path.write_text(export_json(record) + "\n", encoding="utf-8")
    return path
