import json
import os
import time


class AuditLog:
    """Append-only JSONL record of job lifecycle events."""

    def __init__(self, path: str, bot_id: str, enabled: bool = True):
        self.path = path
        self.bot_id = bot_id
        self.enabled = enabled

    def __call__(self, event: str, payload: dict):
        if not self.enabled:
            return
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        record = {
            "ts": time.time(),
            "bot_id": self.bot_id,
            "event": event,
            "payload": payload,
        }
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
