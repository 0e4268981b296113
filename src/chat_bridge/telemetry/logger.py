"""Structured JSONL event logging for controller runs."""
import json
import logging
import os
import time

log = logging.getLogger(__name__)


class ExchangeEventLogger:
    """Writes one JSON line per event to a per-run JSONL file.

    All logging is best-effort — methods never raise exceptions.
    Supports context-manager protocol for automatic close.
    Prompt and answer text are never written, only their lengths.
    """

    def __init__(self, run_id: str, log_dir: str = "data/logs/exchanges", site: str = ""):
        self._run_id = run_id
        self._site = site
        self._f = None
        try:
            os.makedirs(log_dir, exist_ok=True)
            prefix = f"{site}_" if site else ""
            path = os.path.join(log_dir, f"{prefix}{run_id}.jsonl")
            self._f = open(path, "a", encoding="utf-8")
        except Exception as e:
            log.warning(f"ExchangeEventLogger: failed to open log file: {e}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _write(self, event: dict):
        if self._f is None:
            return
        try:
            event["ts"] = time.time()
            event["run_id"] = self._run_id
            if self._site:
                event["site"] = self._site
            self._f.write(json.dumps(event, ensure_ascii=False) + "\n")
            self._f.flush()
        except Exception as e:
            log.warning(f"ExchangeEventLogger: write failed: {e}")

    def log_exchange_start(self, prompt_chars: int, request_count: int):
        self._write({
            "event": "exchange_start",
            "prompt_chars": prompt_chars,
            "request_count": request_count,
        })

    def log_attempt_failed(self, attempt: int, reason: str, message: str,
                           elapsed: float, bundle_path: str = ""):
        self._write({
            "event": "attempt_failed",
            "attempt": attempt,
            "reason": reason,
            "message": message,
            "elapsed": elapsed,
            "bundle_path": bundle_path,
        })

    def log_exchange_end(self, status: str, attempts: int, answer_chars: int,
                         duration: float, health_score: float):
        """Log the outcome of one ask().

        Valid ``status`` values:
        - ``ok``: an answer was returned
        - ``exhausted``: every attempt failed
        - ``login_required``: identity unusable, not retried
        """
        self._write({
            "event": "exchange_end",
            "status": status,
            "attempts": attempts,
            "answer_chars": answer_chars,
            "duration": duration,
            "health_score": health_score,
        })

    def log_recycle(self, reason: str, request_count: int):
        self._write({
            "event": "recycle",
            "reason": reason,
            "request_count": request_count,
        })

    def log_sync(self, pushed: bool):
        self._write({"event": "sync", "pushed": pushed})

    def close(self):
        if self._f is not None:
            try:
                self._f.flush()
                self._f.close()
            except Exception:
                pass
            self._f = None
