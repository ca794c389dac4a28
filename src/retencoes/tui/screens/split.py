from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Input, Label, Static

from retencoes.models.record import CalculatedRecord
from retencoes.models.split import CommitmentItem
from retencoes.services.apportionment import residual_to_apportion, split_withholdings
from retencoes.services.exceptions import InvalidInputError
from retencoes.utils.formatters import format_brl


class SplitScreen(ModalScreen):
    """Apportion a record's withholdings across budget commitments (empenhos)."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self, record: CalculatedRecord) -> None:
        super().__init__()
        self._record = record
        self._items: list[CommitmentItem] = []

    @property
    def items(self) -> list[CommitmentItem]:
        return list(self._items)

    def compose(self) -> ComposeResult:
        facts = self._record.facts
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Rateio por empenho", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Static(
                f"{facts.razao_social} · NF {facts.numero_nf} · "
                f"Valor bruto {format_brl(facts.valor_bruto)}",
                id="supplier-info",
            )
            with Horizontal(classes="form-row"):
                with Vertical():
                    yield Label("Empenho", classes="form-label")
                    yield Input(placeholder="2025NE000123", id="empenho-label")
                with Vertical():
                    yield Label("Valor bruto do empenho (R$)", classes="form-label")
                    yield Input(placeholder="1.000,00", id="empenho-valor")
            yield Label("", id="error-label")
            yield DataTable(id="split-table", cursor_type="row")
            yield Label("", id="residual-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")
                yield Button("− Remover último", id="btn-remove")
                yield Button("+ Adicionar", id="btn-add", variant="primary")

    def on_mount(self) -> None:
        self._refresh()
        self.query_one("#empenho-label", Input).focus()

    def add_item(self, label: str, gross_share: object) -> None:
        """Append a commitment; raises InvalidInputError on a bad share."""
        label = label.strip() or f"Empenho {len(self._items) + 1}"
        self._items.append(CommitmentItem.parse(label, gross_share))
        self._refresh()

    def _refresh(self) -> None:
        table = self.query_one("#split-table", DataTable)
        table.clear(columns=True)
        result = self._record.result
        columns = ["Empenho", "Bruto", "IRRF"]
        if result.csrf is not None:
            columns.append("CSRF")
        columns += ["ISS", "INSS", "Líquido"]
        table.add_columns(*columns)

        for i, item in enumerate(split_withholdings(result, self._items)):
            row = [item.label, format_brl(item.gross_share), format_brl(item.irrf)]
            if item.csrf is not None:
                row.append(format_brl(item.csrf))
            row += [format_brl(item.iss), format_brl(item.inss), format_brl(item.valor_liquido)]
            table.add_row(*row, key=str(i))

        residual = residual_to_apportion(self._record.facts.valor_bruto, self._items)
        if not self._items:
            text = "Adicione os empenhos que cobrem esta nota."
        elif residual == 0:
            text = "[green]Valor bruto totalmente rateado.[/green]"
        elif residual > 0:
            text = f"[yellow]Falta ratear: {format_brl(residual)}[/yellow]"
        else:
            text = f"[yellow]Rateio excede o valor bruto em {format_brl(-residual)}[/yellow]"
        self.query_one("#residual-label", Label).update(text)

    def _do_add(self) -> None:
        error_label = self.query_one("#error-label", Label)
        label_input = self.query_one("#empenho-label", Input)
        valor_input = self.query_one("#empenho-valor", Input)
        try:
            self.add_item(label_input.value, valor_input.value)
        except InvalidInputError as e:
            error_label.update(str(e))
            return
        error_label.update("")
        label_input.value = ""
        valor_input.value = ""
        label_input.focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "empenho-valor":
            self._do_add()
        else:
            self.query_one("#empenho-valor", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-add":
                self._do_add()
            case "btn-remove":
                if self._items:
                    self._items.pop()
                    self._refresh()
            case "btn-voltar" | "btn-modal-close":
                self.action_go_back()

    def action_go_back(self) -> None:
        self.app.pop_screen()
