"""
Command-line entry point: crash diagnostics, then one ingest run.
"""

import faulthandler
import sys
import threading
import traceback
from datetime import datetime
from pathlib import Path

from config import AppConfig
from ingest.orchestrator import main as run_ingest


def _enable_crash_diagnostics(logs_dir: Path) -> Path:
    """Route faulthandler dumps and unhandled exceptions to a dated crash log."""
    logs_dir.mkdir(parents=True, exist_ok=True)
    crash_log = logs_dir / f"crash_traceback_{datetime.now().strftime('%Y%m%d')}.log"
    crash_stream = crash_log.open("a", encoding="utf-8")
    faulthandler.enable(file=crash_stream, all_threads=True)

    def _hook(exc_type, exc, tb):
        with crash_log.open("a", encoding="utf-8") as handle:
            handle.write(f"\n{datetime.now().isoformat()} Unhandled {exc_type.__name__} during ingest\n")
            traceback.print_exception(exc_type, exc, tb, file=handle)
        sys.__excepthook__(exc_type, exc, tb)

    sys.excepthook = _hook
    threading.excepthook = lambda args: _hook(args.exc_type, args.exc_value, args.exc_traceback)
    return crash_log


def main() -> None:
    config = AppConfig.load(Path(sys.argv[1]) if len(sys.argv) > 1 else None)
    _enable_crash_diagnostics(config.resolve_path("paths", "logs", default="logs"))
    run_ingest(config)


if __name__ == "__main__":
    main()
