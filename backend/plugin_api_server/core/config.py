from pathlib import Path
from pydantic import BaseModel
import os
from plugin_api_server import __version__
# Optionally load a repo-level config.env file for local development so users
# can keep the bearer token out of shell history and process listings.
try:
    from dotenv import load_dotenv
    # Allow explicit override of config file path
    cfg_override = os.getenv('PLUGIN_API_CONFIG_FILE')
    candidates = []
    if cfg_override:
        candidates.append(Path(cfg_override))

    # Prefer the working directory (where the user runs the process)
    candidates.append(Path.cwd() / 'config.env')
    candidates.append(Path.cwd() / 'backend' / 'config.env')

    for p in candidates:
        try:
            if p and p.exists():
                load_dotenv(str(p))
                break
        except Exception:
            continue
except Exception:
    # If python-dotenv isn't available or load fails, fall back to env vars
    pass

"""Central configuration.

Env vars:
  PLUGIN_API_PLUGINS_DIR         - directory scanned for plugin modules
  PLUGIN_API_TOKEN (or TOKEN)    - shared bearer token for authenticated plugins
  PLUGIN_API_HOT_RELOAD          - watch the plugins directory and reload on change
  PLUGIN_API_RELOAD_DEBOUNCE_MS  - quiet period before a changed file is reloaded
  PLUGIN_API_DEFAULT_TIMEOUT_MS  - exec timeout for plugins that do not set one
  PLUGIN_API_LOG_LEVEL           - DEBUG, INFO, WARNING, ERROR, CRITICAL
  PLUGIN_API_VERSION             - override reported version
"""

_diagnostics: list[str] = []


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        _diagnostics.append(f"invalid_int {name}={value!r} using_default={default}")
        return default


def _env_token() -> str | None:
    for name in ('PLUGIN_API_TOKEN', 'TOKEN'):
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return None


env_plugins_dir = os.getenv('PLUGIN_API_PLUGINS_DIR')
if env_plugins_dir:
    plugins_dir = Path(env_plugins_dir)
    _diagnostics.append(f"plugins_dir={plugins_dir} (env)")
else:
    plugins_dir = Path.cwd() / 'plugins'
    _diagnostics.append(f"plugins_dir={plugins_dir} (cwd)")


class Settings(BaseModel):
    app_name: str = 'Plugin API Server'
    api_v1_prefix: str = '/api/v1'
    version: str = os.getenv('PLUGIN_API_VERSION', __version__)
    plugins_dir: Path = plugins_dir
    # Shared secret compared against `Authorization: Bearer <token>`.
    auth_token: str | None = _env_token()
    hot_reload: bool = _env_flag('PLUGIN_API_HOT_RELOAD', True)
    reload_debounce_ms: int = _env_int('PLUGIN_API_RELOAD_DEBOUNCE_MS', 1000)
    default_timeout_ms: int = _env_int('PLUGIN_API_DEFAULT_TIMEOUT_MS', 30000)
    # Logging level for the backend (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = os.getenv('PLUGIN_API_LOG_LEVEL', 'INFO')
    host: str = os.getenv('PLUGIN_API_HOST', '0.0.0.0')
    port: int = _env_int('PLUGIN_API_PORT', 3000)
    diagnostics: list[str] | None = _diagnostics

settings = Settings()
