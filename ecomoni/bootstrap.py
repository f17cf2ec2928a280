from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ecomoni.core.alerts.alert_deriver import AlertDeriver
from ecomoni.core.config.yaml_config import AppConfig, load_app_config
from ecomoni.core.standards.catalog import StandardsCatalog
from ecomoni.core.standards.defaults import default_catalog
from ecomoni.core.state_store import MonitoringStore
from ecomoni.domain.errors import StoreError
from ecomoni.logging_setup import configure_logging
from ecomoni.notification.notification_thread import AlertNotificationWorker
from ecomoni.notification.webhook_notifier import WebhookConfig, WebhookNotifier
from ecomoni.runtime.app_runtime import AppRuntime, AppRuntimeConfig
from ecomoni.runtime.event_bus import EventBus
from ecomoni.services.controller import MonitoringController
from ecomoni.storage.github_store import GithubFileStore, GithubStoreConfig
from ecomoni.storage.local_cache import LocalCache
from ecomoni.storage.repository import MeasurementRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppWiring:
    """Everything the server layer needs to run the system."""
    config: AppConfig
    catalog: StandardsCatalog
    store: MonitoringStore
    controller: MonitoringController
    runtime: AppRuntime


def build_catalog(cfg: AppConfig) -> StandardsCatalog:
    if cfg.standards is None:
        return default_catalog()
    logger.info("Using %d standard entries from config", len(cfg.standards))
    return StandardsCatalog(cfg.standards)


def build_repository(cfg: AppConfig, catalog: StandardsCatalog) -> Optional[MeasurementRepository]:
    """
    Build persistence from the ``store`` section.

    Without a GitHub section the local cache becomes the only store, so the
    remote requirement is lifted. Without either, measurements are kept in
    memory only.
    """
    s = cfg.store
    cache = LocalCache(s.cache_path) if s.cache_path else None

    if s.github is None:
        if cache is None:
            logger.info("No store configured, measurements are kept in memory only")
            return None
        logger.info("No remote store configured, using local file %s", cache.path)
        return MeasurementRepository(remote=None, cache=cache, catalog=catalog, require_remote=False)

    g = s.github
    if g.token is None:
        logger.warning("No GitHub token found; remote writes will be rejected")
    remote = GithubFileStore(
        GithubStoreConfig(
            owner=g.owner,
            repo=g.repo,
            path=g.path,
            branch=g.branch,
            token=g.token,
            timeout_s=g.timeout_s,
        )
    )
    return MeasurementRepository(remote=remote, cache=cache, catalog=catalog, require_remote=s.require_remote)


def build_notifier(cfg: AppConfig) -> Optional[AlertNotificationWorker]:
    if cfg.webhook is None:
        return None

    auth_header = cfg.webhook.auth_header
    if auth_header and not auth_header.startswith("Bearer "):
        auth_header = f"Bearer {auth_header}"

    return AlertNotificationWorker(
        notifiers=[
            WebhookNotifier(
                WebhookConfig(
                    url=cfg.webhook.url,
                    auth_header=auth_header,
                    timeout_s=cfg.webhook.timeout_s,
                    verify_tls=cfg.webhook.verify_tls,
                )
            )
        ]
    )


def build_app_system(config_path: Optional[str] = None, cfg: Optional[AppConfig] = None) -> AppWiring:
    """
    Load config and wire every component. Threads are not started.

    The initial load from the repository is attempted once; if it fails the
    system starts empty and the sync thread retries later.
    """
    cfg = cfg or load_app_config(config_path)
    configure_logging(cfg.logging.level, cfg.logging.json)

    # --- STANDARDS / ALERTS ---
    catalog = build_catalog(cfg)
    deriver = AlertDeriver.from_catalog(catalog)

    # --- STATE ---
    store = MonitoringStore()
    repository = build_repository(cfg, catalog)

    # --- EVENT BUS ---
    bus = EventBus()

    # --- CONTROLLER ---
    controller = MonitoringController(store=store, deriver=deriver, repository=repository, bus=bus)
    try:
        count = controller.refresh()
        logger.info("Loaded %d measurements", count)
    except StoreError as e:
        logger.error("Initial load failed, starting empty: %s", e)

    # --- RUNTIME ---
    runtime = AppRuntime(
        cfg=AppRuntimeConfig(
            sync_interval_s=cfg.store.sync_interval_s,
            notify_min_severity=cfg.alerts.notify_min_severity,
        ),
        controller=controller,
        bus=bus,
        store=store,
        deriver=deriver,
        notifier=build_notifier(cfg),
    )

    return AppWiring(config=cfg, catalog=catalog, store=store, controller=controller, runtime=runtime)
