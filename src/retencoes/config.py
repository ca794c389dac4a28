from __future__ import annotations

import os
from datetime import timedelta, timezone
from importlib.resources import files
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "retencoes-fonte"
KEYRING_SERVICE = APP_NAME
KEYRING_USERNAME = "gemini-api-key"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Uses the same 3-tier resolution as _resolve_dir but only checks sources
    available before .env is loaded (env var set in shell, dev layout).
    Returns None if only platformdirs would resolve and the dir does not exist.
    """
    from_env = os.environ.get("RETENCOES_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default.

    Priority: 1) env var, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/retencoes/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("RETENCOES_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("RETENCOES_DATA_DIR", "data", kind="data")


BRT = timezone(timedelta(hours=-3))

MAX_HISTORY = 10

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GEMINI_DEFAULT_MODEL = "gemini-2.5-flash"
GEMINI_TIMEOUT = 120

NFSE_NS = "http://www.sped.fazenda.gov.br/nfse"

# Aliquotas de IR da IN RFB 1.234/2012 oferecidas no formulário
IRRF_RATES: tuple[str, ...] = ("1.20", "2.40", "4.80", "0.24")


def get_gemini_model() -> str:
    return os.environ.get("GEMINI_MODEL") or GEMINI_DEFAULT_MODEL


def get_gemini_timeout() -> int:
    try:
        return int(os.environ.get("GEMINI_TIMEOUT", GEMINI_TIMEOUT))
    except ValueError:
        return GEMINI_TIMEOUT


# --- Keyring helpers ---


def _get_keyring_api_key() -> str | None:
    """Try to get the Gemini API key from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


def _set_keyring_api_key(api_key: str) -> bool:
    """Store the Gemini API key in the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, api_key)
        return True
    except Exception:
        return False


def _delete_keyring_api_key() -> bool:
    """Remove the Gemini API key from the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.delete_password(KEYRING_SERVICE, KEYRING_USERNAME)
        return True
    except Exception:
        return False


def get_api_key() -> str:
    """Return the Gemini API key.

    Priority: 1) GEMINI_API_KEY env var, 2) OS keyring.
    Raises KeyError if neither source has the key.
    """
    key = os.environ.get("GEMINI_API_KEY")
    if key:
        return key
    key = _get_keyring_api_key()
    if key:
        return key
    raise KeyError("GEMINI_API_KEY")


def has_api_key() -> bool:
    try:
        get_api_key()
    except KeyError:
        return False
    return True


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def load_settings() -> dict:
    """Load rule settings from config/retencoes.yaml ({} when absent)."""
    path = get_config_dir() / "retencoes.yaml"
    if not path.is_file():
        return {}
    return load_yaml(path)


def load_naturezas() -> list[tuple[str, str]]:
    """Return (code, description) pairs of the natureza de rendimento catalog.

    A naturezas.yaml in the config dir replaces the bundled catalog.
    """
    custom = get_config_dir() / "naturezas.yaml"
    if custom.is_file():
        data = load_yaml(custom)
    else:
        bundled = files("retencoes") / "templates" / "naturezas.yaml"
        data = yaml.safe_load(bundled.read_text(encoding="utf-8")) or {}
    return [(str(item["codigo"]).zfill(5), item["descricao"]) for item in data.get("naturezas", [])]


def get_exports_dir() -> Path:
    return get_data_dir() / "exports"
