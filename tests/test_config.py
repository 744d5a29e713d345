from __future__ import annotations

from pathlib import Path

import pytest

from tablewire.config import (
    CodecConfig,
    PlanningConfig,
    WireConfig,
    discover_config,
    load_config,
)
from tablewire.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Config dataclass defaults
# ---------------------------------------------------------------------------


class TestCodecConfig:
    def test_defaults(self) -> None:
        assert CodecConfig().body_format == "json"

    def test_custom(self) -> None:
        assert CodecConfig(body_format="msgpack").body_format == "msgpack"

    def test_invalid_format(self) -> None:
        with pytest.raises(ConfigurationError, match="body format"):
            CodecConfig(body_format="yaml")  # type: ignore[arg-type]

    def test_frozen(self) -> None:
        cfg = CodecConfig()
        with pytest.raises(AttributeError):
            cfg.body_format = "msgpack"  # type: ignore[misc]


class TestPlanningConfig:
    def test_defaults(self) -> None:
        cfg = PlanningConfig()
        assert cfg.sync_timeout == 0.05
        assert cfg.retention_seconds == 300.0
        assert cfg.plan_id_prefix == "plan-"

    def test_negative_timeout(self) -> None:
        with pytest.raises(ConfigurationError, match="sync_timeout"):
            PlanningConfig(sync_timeout=-1)

    def test_negative_retention(self) -> None:
        with pytest.raises(ConfigurationError, match="retention_seconds"):
            PlanningConfig(retention_seconds=-0.5)

    def test_zero_timeout_allowed(self) -> None:
        assert PlanningConfig(sync_timeout=0).sync_timeout == 0


class TestWireConfig:
    def test_defaults(self) -> None:
        cfg = WireConfig()
        assert cfg.codec == CodecConfig()
        assert cfg.planning == PlanningConfig()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_full_file(self, tmp_path: Path) -> None:
        path = tmp_path / "tablewire.toml"
        path.write_text(
            '[codec]\nbody_format = "msgpack"\n\n'
            '[planning]\nsync_timeout = 0.5\nretention_seconds = 60\nplan_id_prefix = "scan-"\n'
        )
        cfg = load_config(path)
        assert cfg.codec.body_format == "msgpack"
        assert cfg.planning.sync_timeout == 0.5
        assert cfg.planning.retention_seconds == 60
        assert cfg.planning.plan_id_prefix == "scan-"

    def test_partial_file_keeps_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "tablewire.toml"
        path.write_text("[planning]\nsync_timeout = 1.0\n")
        cfg = load_config(path)
        assert cfg.codec == CodecConfig()
        assert cfg.planning.sync_timeout == 1.0
        assert cfg.planning.retention_seconds == 300.0

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "tablewire.toml"
        path.write_text("")
        assert load_config(path) == WireConfig()

    def test_explicit_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="nope.toml"):
            load_config(tmp_path / "nope.toml")

    def test_explicit_directory_path(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = tmp_path / "tablewire.toml"
        path.write_text("[planning]\nsync_timeot = 1.0\n")
        with pytest.raises(ConfigurationError, match=r"\[planning\]"):
            load_config(path)

    def test_invalid_value(self, tmp_path: Path) -> None:
        path = tmp_path / "tablewire.toml"
        path.write_text('[codec]\nbody_format = "cbor"\n')
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_discovers_from_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "tablewire.toml").write_text('[codec]\nbody_format = "msgpack"\n')
        monkeypatch.chdir(tmp_path)
        assert load_config().codec.body_format == "msgpack"

    def test_defaults_when_nothing_found(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("tablewire.config.discover_config", lambda start=None: None)
        assert load_config() == WireConfig()


class TestDiscoverConfig:
    def test_walks_up(self, tmp_path: Path) -> None:
        (tmp_path / "tablewire.toml").write_text("")
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)
        assert discover_config(nested) == (tmp_path / "tablewire.toml").resolve()

    def test_nearest_wins(self, tmp_path: Path) -> None:
        (tmp_path / "tablewire.toml").write_text("")
        inner = tmp_path / "inner"
        inner.mkdir()
        (inner / "tablewire.toml").write_text("")
        assert discover_config(inner) == (inner / "tablewire.toml").resolve()

    def test_directory_named_like_config_is_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "tablewire.toml").mkdir()
        found = discover_config(tmp_path)
        assert found != (tmp_path / "tablewire.toml").resolve()
