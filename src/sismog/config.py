from __future__ import annotations

import os
from datetime import timedelta, timezone
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "sismog"
KEYRING_SERVICE = "sismog-backoffice"
KEYRING_USERNAME = "store-api-key"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Uses the same 3-tier resolution as _resolve_dir but only checks sources
    available before .env is loaded (env var set in shell, dev layout).
    Returns None if only platformdirs would resolve (since the dir may not exist yet).
    """
    from_env = os.environ.get("SISMOG_CONFIG_DIR")
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
    # Development layout: src/sismog/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("SISMOG_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("SISMOG_DATA_DIR", "data", kind="data")


BRT = timezone(timedelta(hours=-3))

STORE_BACKENDS = ("local", "rest")

STORE_TIMEOUT = 30


# --- Keyring helpers ---


def _get_keyring_password() -> str | None:
    """Try to get the store API key from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


def _set_keyring_password(password: str) -> bool:
    """Store the API key in the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, password)
        return True
    except Exception:
        return False


def _delete_keyring_password() -> bool:
    """Remove the API key from the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.delete_password(KEYRING_SERVICE, KEYRING_USERNAME)
        return True
    except Exception:
        return False


# --- Remote store access ---


def get_store_url() -> str:
    """Return the REST store base URL from SISMOG_STORE_URL or settings.yaml.

    Raises KeyError if neither source defines it.
    """
    url = os.environ.get("SISMOG_STORE_URL")
    if url:
        return url.rstrip("/")
    url = load_settings().get("store", {}).get("url")
    if url:
        return str(url).rstrip("/")
    raise KeyError("SISMOG_STORE_URL")


def get_api_key() -> str:
    """Return the REST store API key.

    Priority: 1) SISMOG_API_KEY env var, 2) OS keyring.
    Raises KeyError if neither source has the key.
    """
    key = os.environ.get("SISMOG_API_KEY")
    if key is not None:
        return key
    key = _get_keyring_password()
    if key is not None:
        return key
    raise KeyError("SISMOG_API_KEY")


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text()) or {}


def load_settings() -> dict:
    """Load config/settings.yaml, or an empty dict when it does not exist."""
    path = get_config_dir() / "settings.yaml"
    if not path.exists():
        return {}
    return load_yaml(path)


def save_settings(data: dict) -> Path:
    """Write config/settings.yaml (atomic write)."""
    cfg = get_config_dir()
    cfg.mkdir(parents=True, exist_ok=True)
    path = cfg / "settings.yaml"
    tmp = path.with_suffix(".tmp")
    tmp.write_text(yaml.dump(data, default_flow_style=False, allow_unicode=True))
    os.replace(tmp, path)
    return path


def get_store_backend() -> str:
    """Return the configured store backend name ("local" or "rest")."""
    backend = os.environ.get("SISMOG_STORE") or load_settings().get("store", {}).get(
        "backend", "local"
    )
    if backend not in STORE_BACKENDS:
        raise ValueError(f"Backend de armazenamento desconhecido: '{backend}'")
    return backend


def get_rate_overrides() -> dict[str, str]:
    """Return statutory withholding rate overrides from settings.yaml (``aliquotas:``)."""
    rates = load_settings().get("aliquotas") or {}
    return {str(k): str(v) for k, v in rates.items()}


def get_store_path() -> Path:
    """Return the local JSON store file path."""
    return get_data_dir() / "store.json"
