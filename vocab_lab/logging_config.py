"""Logging setup: brief console output plus a detailed per-run log file"""
import glob
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

KEEP_LOG_FILES = 5


def setup_logging(
    log_file: str = "logs/vocab-lab.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Configure root logging with two handlers.

    - Console: levelname + message at console_level
    - File: timestamp, logger and line at file_level, one file per run
      (<stem>_<YYYYmmdd_HHMMSS>.log), rotated at 10MB

    Only the newest KEEP_LOG_FILES run logs are kept.

    Args:
        log_file: Base log path; the run timestamp is appended to its stem
        console_level: Console threshold
        file_level: File threshold

    Returns:
        Path of this run's log file
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Make room for this run's file
    existing_logs = sorted(glob.glob(str(log_path.parent / f"{log_path.stem}_*.log")), reverse=True)
    for old_log in existing_logs[KEEP_LOG_FILES - 1:]:
        try:
            Path(old_log).unlink()
        except OSError as e:
            print(f"WARNING: could not remove old log {old_log}: {e}", file=sys.stderr)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_log = log_path.parent / f"{log_path.stem}_{timestamp}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers do the filtering
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))

    file_handler = RotatingFileHandler(
        run_log,
        mode='a',
        maxBytes=10 * 1024 * 1024,
        backupCount=KEEP_LOG_FILES,
        encoding='utf-8',
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    ))

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # Server access logs stay in the file only
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.info(
        f"Logging configured: console={logging.getLevelName(console_level)}, "
        f"file={run_log} ({logging.getLevelName(file_level)})"
    )
    return run_log
