from __future__ import annotations

import logging
import sys
from typing import List, Optional

from ecomoni.bootstrap import build_app_system
from ecomoni.transport.records import read_records_file

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Import a JSON, NDJSON or CSV file of measurements into the configured store.

    Usage:
        python -m ecomoni.dev.import_file [--config path/to/config.yaml] measurements.csv

    Returns the process exit code: 0 when every record was added.
    """
    args = list(sys.argv[1:] if argv is None else argv)

    config_path = None
    if "--config" in args:
        i = args.index("--config")
        if i + 1 < len(args):
            config_path = args[i + 1]
            del args[i:i + 2]

    if len(args) != 1:
        print(main.__doc__)
        return 2

    wiring = build_app_system(config_path=config_path)
    records = read_records_file(args[0])
    report = wiring.controller.import_records(records)

    for err in report.errors:
        logger.warning("Rejected %s", err)
    logger.info("Imported %d/%d records from %s", report.added, report.total, args[0])
    return 0 if report.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
