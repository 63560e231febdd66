import asyncio
import logging
from typing import Callable, Optional

# Configure logging with better format
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger("near_number")

# Optional mirror of log lines into the Airtable audit table: (event_type, message, details)
_audit_sink: Optional[Callable[[str, str, str], None]] = None


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Applies the configured level and adds a file sink if one is configured."""
    logger.setLevel(level.upper())
    if log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        handler = logging.FileHandler(log_file)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter('%(asctime)s | %(levelname)-8s | %(message)s'))
        logger.addHandler(handler)


def set_audit_sink(sink: Optional[Callable[[str, str, str], None]]):
    global _audit_sink
    _audit_sink = sink


def _send_to_sink(sink: Callable[[str, str, str], None], event_type: str, message: str, details: str):
    try:
        sink(event_type, message, details)
    except Exception as e:
        logger.error(f"Failed to log to Airtable: {e}")


def _mirror(event_type: str, message: str, details: str):
    """Mirrors a log line to the audit sink; inside an event loop the write runs in the default executor."""
    sink = _audit_sink
    if sink is None:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        _send_to_sink(sink, event_type, message, details)
        return
    loop.run_in_executor(None, _send_to_sink, sink, event_type, message, details)


def log_info(message: str, details: str = ""):
    full_message = f"{message}" + (f" → {details}" if details else "")
    logger.info(full_message)


def log_error(message: str, details: str = ""):
    full_message = f"❌ {message}" + (f" → {details}" if details else "")
    logger.error(full_message)
    _mirror("ERROR", message, details)


def log_success(message: str, details: str = ""):
    """Log successful operations with a success indicator."""
    full_message = f"✅ {message}" + (f" → {details}" if details else "")
    logger.info(full_message)
    _mirror("SUCCESS", message, details)
