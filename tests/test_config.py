from __future__ import annotations

from pathlib import Path

import pytest

from sppctl.core.config import config_path, load_settings
from sppctl.core.errors import ConfigError
from sppctl.core.model import ChannelInfo, Settings


def _write_config(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("SPPCTL_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))


def test_defaults_without_config_file() -> None:
    settings = load_settings()
    assert settings == Settings()
    assert settings.scan_window_s == 10.0
    assert settings.poll_interval_s == 1.0
    assert settings.poll_attempts == 10
    assert settings.ble_match_rule == "service"


def test_xdg_config_is_loaded(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "cfg" / "sppctl" / "config.yaml",
        """
backend: ble
scan_window_s: 4
poll_interval_s: 0.5
ble:
  match_rule: characteristic
  write_with_response: false
  connect_timeout_s: 20
rfcomm:
  channels:
    - channel: 1
      name: Serial Port
    - channel: 6
  timeout_s: 2.5
""",
    )

    settings = load_settings()
    assert settings.backend == "ble"
    assert settings.scan_window_s == 4.0
    assert settings.poll_attempts == 8
    assert settings.ble_match_rule == "characteristic"
    assert settings.ble_write_with_response is False
    assert settings.ble_connect_timeout_s == 20.0
    assert settings.rfcomm_channels == (
        ChannelInfo(channel="1", name="Serial Port"),
        ChannelInfo(channel="6", name="SPP"),
    )
    assert settings.rfcomm_timeout_s == 2.5


def test_env_override_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = _write_config(tmp_path / "elsewhere.yaml", "backend: rfcomm\n")
    monkeypatch.setenv("SPPCTL_CONFIG", str(path))

    assert config_path() == path
    assert load_settings().backend == "rfcomm"


def test_empty_file_means_defaults(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "empty.yaml", "")
    assert load_settings(path) == Settings()


def test_explicit_missing_path_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "missing.yaml")


def test_unknown_backend_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "bad.yaml", "backend: usb\n")
    with pytest.raises(ConfigError) as exc:
        load_settings(path)
    assert "(backend)" in str(exc.value)


def test_non_positive_window_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "bad.yaml", "scan_window_s: 0\n")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_out_of_range_rfcomm_channel_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "bad.yaml", "rfcomm:\n  channels:\n    - channel: 31\n")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_duplicate_keys_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "dup.yaml", "backend: ble\nbackend: rfcomm\n")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_non_mapping_root_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "list.yaml", "- ble\n- rfcomm\n")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_invalid_boolean_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "bool.yaml", "ble:\n  write_with_response: maybe\n")
    with pytest.raises(ConfigError):
        load_settings(path)
