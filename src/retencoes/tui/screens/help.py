from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, RichLog, Static


class HelpScreen(ModalScreen):
    """Keyboard shortcuts, withholding rules summary and disclaimer."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Ajuda", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield RichLog(id="help-content", wrap=True, markup=True)
            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")

    def on_mount(self) -> None:
        sede = self.app.settings.municipio_sede  # type: ignore[attr-defined]
        log = self.query_one("#help-content", RichLog)

        log.write("[bold]Retenções na Fonte[/bold]")
        log.write("")
        log.write(
            "Calcula IRRF, CSRF, ISS e INSS a reter na fonte sobre notas fiscais de "
            f"fornecedores pagos pela Prefeitura de {sede}."
        )
        log.write("")

        log.write("[bold]Atalhos de teclado[/bold]")
        log.write("")
        log.write("  [bold cyan]a[/bold cyan]       Analisar        PDFs, imagens ou XML de NFS-e")
        log.write("  [bold cyan]m[/bold cyan]       Manual          Digitar os valores da nota")
        log.write("  [bold cyan]x[/bold cyan]       Limpar          Apagar o histórico da sessão")
        log.write("  [bold cyan]h[/bold cyan]       Ajuda           Esta tela")
        log.write("  [bold cyan]q[/bold cyan]       Sair            Encerrar aplicação")
        log.write("")
        log.write("[bold]Tela de resultado[/bold]")
        log.write("")
        log.write("  [bold cyan]ctrl+s[/bold cyan]  Alternar Optante pelo Simples")
        log.write("  [bold cyan]ctrl+e[/bold cyan]  Alternar MEI")
        log.write("  [bold cyan]ctrl+r[/bold cyan]  Ratear por empenho")
        log.write("  [bold cyan]ctrl+o[/bold cyan]  Exportar JSON")
        log.write("  [bold cyan]ctrl+b[/bold cyan]  Verificar na Receita (copia o CNPJ)")
        log.write("  [bold cyan]enter[/bold cyan]   Recalcular após editar alíquota ou base")
        log.write("")

        log.write("[bold]Regras aplicadas[/bold]")
        log.write("")
        log.write("  • Simples Nacional e MEI: sem retenção de IRRF e CSRF.")
        log.write("  • IRRF/CSRF abaixo de R$ 10,00: dispensa de retenção.")
        log.write(f"  • ISS: retido apenas quando incide em {sede}; DANFE/produto não retém.")
        log.write("  • MEI: nenhuma retenção, inclusive INSS.")
        log.write("  • Rateio: o último empenho absorve a diferença de arredondamento.")
        log.write("")

        log.write("[bold yellow]Aviso[/bold yellow]")
        log.write("")
        log.write(
            "Este software é fornecido \"como está\", sem garantias de qualquer tipo. "
            "Dados extraídos por IA podem conter erros: confira cada valor com o "
            "documento original antes de liquidar o pagamento."
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id in ("btn-voltar", "btn-modal-close"):
            self.app.pop_screen()

    def action_go_back(self) -> None:
        self.app.pop_screen()
