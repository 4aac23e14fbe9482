import json

from printbot.env import default_config_document, load_settings


def test_config_file_then_env_then_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "printSettings": {"printerName": "office", "defaultCopies": 2, "cleanupInterval": 600000},
        "bot": {"adminNumbers": ["62811"]},
        "security": {"maxRequestsPerHour": 20},
    }))
    monkeypatch.setenv("PRINTBOT_MAX_REQUESTS_PER_HOUR", "30")
    monkeypatch.setenv("PRINTBOT_ALLOWED_USERS", "a, b")

    settings = load_settings(str(path), default_copies=3)

    assert settings.printer_name == "office"
    assert settings.admin_numbers == ["62811"]
    assert settings.max_requests_per_hour == 30
    assert settings.allowed_users == ["a", "b"]
    assert settings.default_copies == 3
    assert settings.job_sweep_interval_seconds == 600
    assert settings.is_admin("62811")


def test_missing_config_file_uses_defaults(tmp_path):
    settings = load_settings(str(tmp_path / "absent.json"))
    assert settings.bw_cost_per_page == 500
    assert settings.color_cost_per_page == 2000
    assert settings.print_max_attempts == 3


def test_default_config_document_layout():
    doc = default_config_document()
    assert doc["printSettings"]["maxFileSize"] == 10 * 1024 * 1024
    assert doc["security"]["maxRequestsPerHour"] == 50
    assert doc["bot"]["adminNumbers"] == []
