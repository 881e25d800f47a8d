# price_engine/config/logging_config.py

"""Logging setup shared by every ``price_engine`` command.

One file per launch, ``logs/run_YYYYmmdd_HHMMSS.log``, records the
whole ``price_engine`` hierarchy at DEBUG:

* ``price_engine.extractor``: one line per strategy attempt with its
  label and outcome (DEBUG, or INFO when the attempt found the price).
* ``price_engine.fetcher`` / ``price_engine.rendered``: transport
  retries, challenge pages, browser launches and teardown.
* ``price_engine.poller``: per-target refreshes, store write failures
  and the succeeded/failed tally closing each cycle.
* ``price_engine.store``: schema setup and rejected writes.

Fetches and renders run in worker threads under the poller, so file
lines carry the thread name.  stderr only gets WARNING and up, except
for ``poll`` which lowers it to INFO to show the cycle tallies.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from price_engine.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(threadName)-12s | %(name)s | "
    "%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(console_level: int = logging.WARNING) -> Path:
    """Attach the run-log and stderr handlers to ``price_engine``.

    Args:
        console_level: Minimum level echoed to stderr.

    Returns:
        Path of this run's log file.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    package_logger = logging.getLogger("price_engine")
    package_logger.setLevel(logging.DEBUG)

    # Already configured in this process
    if package_logger.handlers:
        return log_file

    run_log = logging.FileHandler(log_file, encoding="utf-8")
    run_log.setLevel(logging.DEBUG)
    run_log.setFormatter(logging.Formatter(_FILE_FORMAT, _DATE_FORMAT))
    package_logger.addHandler(run_log)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT, _DATE_FORMAT))
    package_logger.addHandler(console)

    package_logger.info(
        "Run log %s (console level %s)",
        log_file,
        logging.getLevelName(console_level),
    )
    return log_file
