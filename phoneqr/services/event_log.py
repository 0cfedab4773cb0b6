import csv
import os
import threading
import time

from phoneqr.core.config import settings

HEADER = ["timestamp", "event_type", "session_id", "outcome", "latency_ms"]

_lock = threading.Lock()


def log_event(event_type: str, session_id: str, outcome: str, latency_ms: int = 0):
    log_file = settings.EVENT_LOG_FILE
    if not log_file:
        return

    with _lock:
        # Initialize CSV with headers if it doesn't exist
        new_file = not os.path.exists(log_file)
        with open(log_file, "a", newline="") as f:
            writer = csv.writer(f)
            if new_file:
                writer.writerow(HEADER)
            writer.writerow([time.time(), event_type, session_id, outcome, latency_ms])
