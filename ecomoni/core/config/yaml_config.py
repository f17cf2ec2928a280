from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from ecomoni.domain.errors import MalformedMeasurement
from ecomoni.domain.models import Severity, StandardEntry
from ecomoni.domain.parsing import parse_measurement_type, parse_severity

CONFIG_ENV_VAR = "ECOMONI_CONFIG"


@dataclass(frozen=True)
class LoggingConfig:
    """Root logger level and output format."""
    level: str = "INFO"
    json: bool = False


@dataclass(frozen=True)
class GithubConfigData:
    """Coordinates of the measurement file; the token is read from the environment."""
    owner: str
    repo: str
    path: str = "data/measurements.json"
    branch: str = "main"
    token: Optional[str] = None
    timeout_s: float = 10.0


@dataclass(frozen=True)
class StoreConfig:
    """Persistence settings. Without ``github`` measurements live in memory only."""
    github: Optional[GithubConfigData] = None
    cache_path: Optional[str] = None
    require_remote: bool = True
    sync_interval_s: float = 60.0


@dataclass(frozen=True)
class AlertsConfig:
    """Alert notification policy."""
    notify_min_severity: Severity = Severity.WARNING


@dataclass(frozen=True)
class WebhookConfigData:
    """Webhook notifier configuration (URL + auth)."""
    url: str
    auth_header: Optional[str] = None
    timeout_s: float = 3.0
    verify_tls: bool = True


@dataclass(frozen=True)
class ServerConfig:
    """Records HTTP server bind address and API token."""
    host: str = "127.0.0.1"
    port: int = 5000
    api_token: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    """
    Root application configuration loaded from YAML.

    ``standards`` is None when the config does not override the built-in
    regulatory table.
    """
    logging: LoggingConfig
    store: StoreConfig
    alerts: AlertsConfig
    server: ServerConfig
    webhook: Optional[WebhookConfigData] = None
    standards: Optional[List[StandardEntry]] = None


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must contain a YAML mapping at the root")
    return data


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"config section {name!r} must be a mapping")
    return value


def _resolve_default_config_path() -> Path:
    """
    Resolve config.yaml location.

    Priority:
    1) ECOMONI_CONFIG env var if provided
    2) ./config.yaml in current working directory
    """
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser().resolve()
    return Path("config.yaml").resolve()


def _env_secret(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return os.getenv(str(name)) or None


def parse_standards(items: Any) -> List[StandardEntry]:
    """
    Convert the ``standards:`` list into catalog entries.

    Each item is ``{parameter, unit, type, thresholds: {source: limit}}``.

    Raises
    ------
    ValueError
        If an item is incomplete or a limit is not a number.
    """
    if not isinstance(items, list):
        raise ValueError("standards must be a list")

    entries: List[StandardEntry] = []
    for i, item in enumerate(items):
        try:
            thresholds = {str(src): float(limit) for src, limit in dict(item["thresholds"]).items()}
            entries.append(
                StandardEntry(
                    parameter=str(item["parameter"]),
                    unit=str(item["unit"]),
                    measurement_type=parse_measurement_type(item["type"]),
                    thresholds=thresholds,
                )
            )
        except MalformedMeasurement as e:
            raise ValueError(f"standards[{i}]: {e.reason}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"standards[{i}] is invalid: {e!r}") from e
    return entries


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from YAML and convert into typed config objects.

    A ``.env`` file next to the config is loaded first, so the secrets named
    by ``store.github.token_env`` and ``server.token_env`` can live there.

    Parameters
    ----------
    path
        Explicit path to config.yaml. If None, uses default resolution.

    Returns
    -------
    AppConfig
        Parsed and validated configuration.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If required fields are missing or invalid.
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    load_dotenv(cfg_path.parent / ".env")
    raw = _read_yaml(cfg_path)

    # ---- logging ----
    lg = _section(raw, "logging")
    logging_cfg = LoggingConfig(
        level=str(lg.get("level", "INFO")).upper(),
        json=bool(lg.get("json", False)),
    )

    # ---- store ----
    s = _section(raw, "store")
    github: Optional[GithubConfigData] = None
    if s.get("github"):
        g = s["github"]
        try:
            github = GithubConfigData(
                owner=str(g["owner"]),
                repo=str(g["repo"]),
                path=str(g.get("path", "data/measurements.json")),
                branch=str(g.get("branch", "main")),
                token=_env_secret(g.get("token_env", "GITHUB_TOKEN")),
                timeout_s=float(g.get("timeout_s", 10.0)),
            )
        except KeyError as e:
            raise ValueError(f"store.github is missing {e.args[0]!r}") from e

    sync_interval_s = float(s.get("sync_interval_s", 60.0))
    if sync_interval_s < 0:
        raise ValueError("store.sync_interval_s must be >= 0")

    store = StoreConfig(
        github=github,
        cache_path=str(s["cache_path"]) if s.get("cache_path") else None,
        require_remote=bool(s.get("require_remote", True)),
        sync_interval_s=sync_interval_s,
    )

    # ---- alerts ----
    a = _section(raw, "alerts")
    alerts = AlertsConfig(
        notify_min_severity=parse_severity(a.get("notify_min_severity", Severity.WARNING.value)),
    )

    # ---- server ----
    sv = _section(raw, "server")
    server = ServerConfig(
        host=str(sv.get("host", "127.0.0.1")),
        port=int(sv.get("port", 5000)),
        api_token=_env_secret(sv.get("token_env", "ECOMONI_API_TOKEN")),
    )

    # ---- webhook ----
    webhook: Optional[WebhookConfigData] = None
    w = _section(raw, "webhook")
    if w.get("url"):
        webhook = WebhookConfigData(
            url=str(w["url"]),
            auth_header=w.get("auth_header"),
            timeout_s=float(w.get("timeout_s", 3.0)),
            verify_tls=bool(w.get("verify_tls", True)),
        )

    # ---- standards ----
    standards: Optional[List[StandardEntry]] = None
    if raw.get("standards") is not None:
        standards = parse_standards(raw["standards"])

    return AppConfig(
        logging=logging_cfg,
        store=store,
        alerts=alerts,
        server=server,
        webhook=webhook,
        standards=standards,
    )
