import json
import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()  # .env from cwd

ENV_PREFIX = "PRINTBOT_"
DEFAULT_CONFIG_PATH = "./config.json"

# config.json keeps the original nested layout: section -> camelCase key
CONFIG_FILE_KEYS = {
    ("printSettings", "allowedFormats"): "allowed_formats",
    ("printSettings", "maxFileSize"): "max_file_size",
    ("printSettings", "printerName"): "printer_name",
    ("printSettings", "defaultCopies"): "default_copies",
    ("printSettings", "allowedUsers"): "allowed_users",
    ("printSettings", "autoCleanup"): "auto_cleanup",
    ("printSettings", "cleanupInterval"): "job_sweep_interval_ms",
    ("bot", "adminNumbers"): "admin_numbers",
    ("bot", "enableLogging"): "enable_logging",
    ("security", "enableRateLimit"): "enable_rate_limit",
    ("security", "maxRequestsPerHour"): "max_requests_per_hour",
    ("security", "enableFileValidation"): "enable_file_validation",
}


class Settings(BaseModel):
    bot_id: str = "printbot"
    bot_name: str = "Chat Print Server"

    # print settings
    printer_name: str = "default"
    allowed_formats: List[str] = Field(
        default_factory=lambda: [".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png", ".txt"]
    )
    max_file_size: int = 10 * 1024 * 1024
    default_copies: int = Field(default=1, ge=1, le=10)
    allowed_users: List[str] = Field(default_factory=list)
    auto_cleanup: bool = True

    # bot
    admin_numbers: List[str] = Field(default_factory=list)
    enable_logging: bool = True

    # security
    enable_rate_limit: bool = True
    max_requests_per_hour: int = 50
    enable_file_validation: bool = True

    # pricing (currency units per page)
    bw_cost_per_page: int = 500
    color_cost_per_page: int = 2000

    # execution
    print_max_attempts: int = 3
    print_retry_delay_seconds: float = 2.0
    print_timeout_seconds: float = 30.0
    job_grace_seconds: float = 300.0

    # reclamation
    job_max_age_seconds: float = 3600.0
    session_idle_timeout_seconds: float = 900.0
    session_sweep_interval_seconds: float = 300.0
    job_sweep_interval_ms: int = 1_800_000
    printer_check_interval_seconds: float = 600.0
    stats_save_interval_seconds: float = 3600.0

    # history / broadcast
    history_live_cap: int = 100
    history_persist_cap: int = 1000
    broadcast_window_days: float = 7.0
    broadcast_delay_seconds: float = 1.0

    # storage
    temp_dir: str = "./temp"
    log_dir: str = "./logs"
    log_level: str = "INFO"
    log_retention_days: int = 30
    audit_log_path: str = "./logs/audit.jsonl"
    database_url: str = "sqlite:///./data/printbot.db"

    # http surface
    api_token: str = ""
    gateway_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 9001

    @property
    def job_sweep_interval_seconds(self) -> float:
        return self.job_sweep_interval_ms / 1000.0

    def is_admin(self, sender_id: str) -> bool:
        return sender_id in self.admin_numbers


def _read_config_file(path: str) -> Dict[str, Any]:
    if not path or not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    values: Dict[str, Any] = {}
    for (section, key), field_name in CONFIG_FILE_KEYS.items():
        block = raw.get(section) or {}
        if key in block:
            values[field_name] = block[key]
    return values


def _read_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        if field.annotation == List[str]:
            values[name] = [item.strip() for item in raw.split(",") if item.strip()]
        else:
            values[name] = raw
    return values


def load_settings(config_path: Optional[str] = None, **overrides: Any) -> Settings:
    """Build settings from defaults, config.json, PRINTBOT_* env vars and overrides."""
    path = config_path or os.getenv("PRINTBOT_CONFIG", DEFAULT_CONFIG_PATH)
    values = _read_config_file(path)
    values.update(_read_env())
    values.update(overrides)
    return Settings(**values)


def default_config_document(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Nested config.json document written by the setup wizard."""
    s = settings or Settings()
    doc: Dict[str, Any] = {}
    for (section, key), field_name in CONFIG_FILE_KEYS.items():
        doc.setdefault(section, {})[key] = getattr(s, field_name)
    return doc
