# test_config.py
from pathlib import Path

from config import Settings, default_seed_path


def test_defaults():
    s = Settings()
    assert s.starting_balance == 1000
    assert s.round_seconds == 60
    assert s.seed_path.name == "seed_items.json"
    assert s.seed_path.exists()


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("AUCTION_STARTING_BALANCE", "500")
    monkeypatch.setenv("AUCTION_DATA_PATH", str(tmp_path / "l.json"))
    monkeypatch.setenv("AUCTION_LOG_LEVEL", "debug")
    monkeypatch.setenv("AUCTION_PORT", "9000")
    s = Settings.from_env()
    assert s.starting_balance == 500
    assert s.data_path == Path(tmp_path / "l.json")
    assert s.log_level == "DEBUG"
    assert s.port == 9000
    assert s.log_file is None


def test_seed_path_falls_back_to_installed_data(tmp_path):
    here = tmp_path / "site-packages"
    here.mkdir()
    assert default_seed_path(here, tmp_path) == tmp_path / "share" / "multi-item-auction" / "seed_items.json"

    (here / "seed_items.json").write_text("[]", encoding="utf-8")
    assert default_seed_path(here, tmp_path) == here / "seed_items.json"
