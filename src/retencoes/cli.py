from __future__ import annotations

import asyncio
import getpass
import logging
import os
import stat
import sys
from importlib.resources import files
from pathlib import Path


def _check_keyring_available() -> bool:
    """Check if keyring is installed with a usable backend."""
    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring

        return not isinstance(keyring.get_keyring(), FailKeyring)
    except Exception:
        return False


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Set or update a key=value pair in a .env file, creating it if needed.

    Uses dotenv.set_key for proper quoting (handles #, spaces, etc.).
    """
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    if not env_file.exists():
        env_file.touch()
    set_key(str(env_file), key, value)


def _remove_env_var(env_file: Path, key: str) -> None:
    """Remove a key from a .env file if present."""
    from dotenv import unset_key

    if env_file.exists():
        unset_key(str(env_file), key)


def _warn_open_permissions(env_file: Path) -> None:
    """Warn if .env file has group/other read permissions (Unix only)."""
    try:
        mode = env_file.stat().st_mode
        if mode & (stat.S_IRGRP | stat.S_IROTH):
            print(f"\n  AVISO: {env_file} tem permissões abertas.")
            print("  Recomendação: chmod 600", env_file)
    except OSError:
        pass


def _setup_api_key(config_dir: Path) -> bool:
    """Interactive Gemini API key setup. Returns True if a key was stored."""
    print()
    print("Chave da API do Google Gemini")
    print("─────────────────────────────")
    print("Usada apenas para extrair dados de PDFs e imagens (XML é lido localmente).")
    print()

    api_key = getpass.getpass("Chave da API (vazio para pular): ").strip()
    if not api_key:
        print("  Configuração da chave pulada.")
        return False

    env_file = config_dir / ".env"

    print()
    print("Onde deseja armazenar a chave?")

    keyring_ok = _check_keyring_available()
    options: list[tuple[str, str]] = []
    if keyring_ok:
        options.append(("1", "Keychain do sistema (recomendado)"))
    options.append(("2", "Arquivo .env no diretório de configuração"))

    for num, label in options:
        print(f"  {num}. {label}")

    if not keyring_ok:
        print()
        print("  Nota: keychain do sistema indisponível (sem backend configurado).")

    print()
    valid_choices = {num for num, _ in options}
    choice = ""
    while choice not in valid_choices:
        choice = input(f"Escolha [{'/'.join(sorted(valid_choices))}]: ").strip()

    from retencoes.config import _delete_keyring_api_key, _set_keyring_api_key

    if choice == "1":
        if _set_keyring_api_key(api_key):
            print("  Chave armazenada no keychain do sistema.")
            # Remove from .env to avoid stale secret on disk
            _remove_env_var(env_file, "GEMINI_API_KEY")
            return True
        print("  ERRO: Falha ao armazenar no keychain. Salvando no .env como alternativa.")

    _upsert_env_var(env_file, "GEMINI_API_KEY", api_key)
    print(f"  Chave salva em {env_file}")
    _warn_open_permissions(env_file)
    if choice == "2":
        _delete_keyring_api_key()
    return True


def _init_config() -> None:
    """Copy bundled config templates to the user's config/data directories."""
    from retencoes.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    templates = files("retencoes") / "templates"

    config_dir.mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    for src_name, dest_name in [
        ("retencoes.yaml.example", "retencoes.yaml"),
        ("naturezas.yaml", "naturezas.yaml"),
        ("env.example", ".env.example"),
    ]:
        dest = config_dir / dest_name
        if dest.exists():
            print(f"  já existe: {dest}")
            continue
        src = templates / src_name
        with src.open("rb") as f:
            dest.write_bytes(f.read())
        print(f"  criado: {dest}")
        copied += 1

    print()
    print(f"Configuração: {config_dir}")
    print(f"Dados:   {data_dir}")

    print()
    key_configured = False
    try:
        answer = input("Deseja configurar a chave da API do Gemini agora? [S/n]: ").strip().lower()
        if answer in ("", "s", "sim", "y", "yes"):
            key_configured = _setup_api_key(config_dir)
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    if copied:
        print("Próximos passos:")
        print(f"  1. Revise {config_dir / 'retencoes.yaml'} (município sede, CSRF)")
        if not key_configured:
            print("  2. Defina GEMINI_API_KEY no .env para processar PDFs e imagens")
            print("  3. Execute: retencoes")
        else:
            print("  2. Execute: retencoes")
    else:
        print("Nenhum arquivo novo criado (todos já existiam).")


def _preflight() -> bool:
    """Verify the environment before launching the TUI.

    Auto-creates the data directory. Returns False with a helpful message
    when retencoes.yaml exists but cannot be read. A missing API key is only
    a notice: XML and manual entry work without it.
    """
    import yaml

    from retencoes.config import get_config_dir, get_data_dir, has_api_key, load_settings

    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)

    try:
        settings = load_settings()
    except (OSError, yaml.YAMLError) as e:
        print(f"Erro: retencoes.yaml inválido em {get_config_dir()}: {e}")
        print("Corrija o arquivo ou execute 'retencoes init' para recriá-lo.")
        return False
    if not isinstance(settings, dict):
        print(f"Erro: retencoes.yaml em {get_config_dir()} deve conter um mapeamento")
        return False

    if not has_api_key():
        print("Aviso: GEMINI_API_KEY não configurada; PDFs e imagens não serão processados.")
        print("Execute 'retencoes init' para configurar a chave.")
    return True


def _configure_logging() -> None:
    level = os.environ.get("RETENCOES_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _process_files(paths: list[str]) -> int:
    """Headless batch: print the export JSON of each committed record.

    Returns the process exit code (1 when the batch is aborted).
    """
    from retencoes.config import get_data_dir, load_settings
    from retencoes.models.record import export_json
    from retencoes.models.settings import RuleSettings
    from retencoes.services.batch import BatchPipeline
    from retencoes.services.exceptions import BatchAbortedError, ExtractionError
    from retencoes.services.extraction import DocumentExtractor, load_document

    if not paths:
        print("Uso: retencoes processar <arquivo> [<arquivo> ...]", file=sys.stderr)
        return 2

    _configure_logging()
    get_data_dir().mkdir(parents=True, exist_ok=True)

    try:
        documents = [load_document(p) for p in paths]
    except ExtractionError as e:
        print(f"Erro: {e}", file=sys.stderr)
        return 1

    def report(index: int, total: int) -> None:
        print(f"Processando {index} de {total}…", file=sys.stderr)

    pipeline = BatchPipeline(
        DocumentExtractor(),
        settings=RuleSettings.from_dict(load_settings()),
        on_progress=report,
    )
    try:
        records = asyncio.run(pipeline.run(documents))
    except BatchAbortedError as e:
        for record in e.committed:
            print(export_json(record))
        print(f"Erro: {e}", file=sys.stderr)
        if e.is_authentication:
            print("Verifique a chave da API (retencoes init).", file=sys.stderr)
        return 1

    for record in records:
        print(export_json(record))
    return 0


def main() -> None:
    """Entry point for the Retenções na Fonte CLI/TUI."""
    if len(sys.argv) > 1 and sys.argv[1] == "init":
        _init_config()
        return

    if len(sys.argv) > 1 and sys.argv[1] == "processar":
        sys.exit(_process_files(sys.argv[2:]))

    if not _preflight():
        sys.exit(1)

    from retencoes.tui.app import RetencoesApp

    app = RetencoesApp()
    app.run()


if __name__ == "__main__":
    main()
