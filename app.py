from __future__ import annotations

import argparse
import json
import signal
import sys
import threading

from kubejobs.core.config.manager import ConfigFsPaths, ConfigManager
from kubejobs.core.errors import KubeJobsError
from kubejobs.core.events import EventLogger
from kubejobs.core.logger import setup_logging
from kubejobs.monitor import MonitorComponent


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Kubernetes job monitor (reaper, lost jobs, long-running jobs)")
    ap.add_argument("--root", default=".", help="Directory containing config/.")
    ap.add_argument("--once", action="store_true", help="Run each enabled sweep once and exit.")
    args = ap.parse_args(argv)

    try:
        cfg = ConfigManager(fs=ConfigFsPaths(args.root)).load_all()
    except KubeJobsError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 2

    logger = setup_logging(cfg.logging.log_dir, cfg.logging.level)
    component = MonitorComponent(cfg, event_logger=EventLogger(cfg.logging.events_path))

    if args.once:
        results = component.run_once()
        logger.info(f"Single run finished: {results}")
        print(json.dumps(results, indent=2, sort_keys=True))
        return 0

    stop = threading.Event()

    def _on_signal(signum, _frame) -> None:  # noqa: ANN001
        logger.info(f"Received signal {signum}, shutting down.")
        stop.set()

    signal.signal(signal.SIGTERM, _on_signal)
    signal.signal(signal.SIGINT, _on_signal)

    try:
        component.start()
    except KubeJobsError as e:
        logger.error(f"Monitor could not start: {e}")
        return 2
    stop.wait()
    component.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
