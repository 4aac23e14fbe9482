import json

from printbot import wizard


def test_wizard_creates_dirs_and_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(wizard, "detect_printers", lambda settings: ["office"])
    config = tmp_path / "config.json"

    assert wizard.main(["--config", str(config)]) == 0
    assert (tmp_path / "temp").is_dir()
    assert (tmp_path / "logs").is_dir()
    assert json.loads(config.read_text())["printSettings"]["printerName"] == "default"


def test_existing_config_is_kept_without_force(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(wizard, "detect_printers", lambda settings: [])
    config = tmp_path / "config.json"
    config.write_text("{}")

    wizard.main(["--config", str(config)])
    assert config.read_text() == "{}"

    wizard.main(["--config", str(config), "--force"])
    assert "printSettings" in json.loads(config.read_text())
