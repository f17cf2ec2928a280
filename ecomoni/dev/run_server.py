from __future__ import annotations

import logging
import sys

from ecomoni.bootstrap import build_app_system
from records_server.server import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    """
    Start the background runtime and serve the records API.

    Notes
    -----
    - Loads configuration from `config.yaml` (or ``$ECOMONI_CONFIG``) by default.
    - Optional CLI usage:
        python -m ecomoni.dev.run_server --config path/to/config.yaml
    """
    config_path = None
    if "--config" in sys.argv:
        i = sys.argv.index("--config")
        if i + 1 < len(sys.argv):
            config_path = sys.argv[i + 1]

    wiring = build_app_system(config_path=config_path)
    server_cfg = wiring.config.server
    if server_cfg.api_token is None:
        logger.warning("No API token configured, POST /api/github-db is open")

    app = create_app(wiring.controller, api_token=server_cfg.api_token)

    wiring.runtime.start()
    try:
        # do NOT use debug=True in production
        app.run(host=server_cfg.host, port=server_cfg.port, debug=False)
    finally:
        wiring.runtime.stop()


if __name__ == "__main__":
    main()
