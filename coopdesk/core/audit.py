import logging
from datetime import datetime
from coopdesk.core.config import LOGS_DIR

logger = logging.getLogger(__name__)


def write_audit_log(actor: str, role: str, action: str, period: str = "", details: str = "") -> None:
    """Append one line to this month's audit file: time | role | actor | action | period | details."""
    try:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        log_file = LOGS_DIR / f"audit_{datetime.now():%Y_%m}.log"
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(f"{datetime.now():%Y-%m-%d %H:%M:%S} | {role} | {actor} | {action} | {period} | {details}\n")
    except OSError:
        logger.exception("Could not write audit log entry for %s %s", action, period)
