"""Tests for strata.config: HostConfig frozen dataclass."""

from dataclasses import replace
from pathlib import Path

import pytest

from strata.config import HostConfig


class TestHostConfig:
    def test_defaults(self) -> None:
        cfg = HostConfig()
        assert cfg.content_root == "."
        assert cfg.web_root == "wwwroot"
        assert cfg.log_level == "info"
        assert cfg.logging_configurators == ()
        assert cfg.iis_integration is False
        assert cfg.lifespan == "auto"
        assert cfg.ssl_certfile is None

    def test_frozen(self) -> None:
        cfg = HostConfig()
        with pytest.raises(AttributeError):
            cfg.debug = True  # type: ignore[misc]

    def test_fragment_is_a_replace(self) -> None:
        cfg = replace(HostConfig(), log_level="debug")
        assert cfg.log_level == "debug"
        assert cfg.web_root == "wwwroot"

    def test_web_root_relative_to_content_root(self) -> None:
        cfg = HostConfig(content_root="/srv/site", web_root="public")
        assert cfg.web_root_path == Path("/srv/site/public")

    def test_absolute_web_root(self, tmp_path: Path) -> None:
        cfg = HostConfig(content_root="/elsewhere", web_root=tmp_path)
        assert cfg.web_root_path == tmp_path
