"""Tests for relbot.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from relbot.core.config import (
    Config,
    ConfigError,
    ReleaseConfig,
    load_config,
    load_config_or_default,
)
from relbot.core.result import Err, Ok


class TestDefaults:
    def test_config_defaults(self) -> None:
        config = Config()
        assert config.release == ReleaseConfig()
        assert config.recipes.targets == ()
        assert config.changelog.enabled is True
        assert config.changelog.output == "CHANGELOG.md"
        assert config.changelog.use_prs is False
        assert config.github.repo is None

    def test_frozen(self) -> None:
        config = Config()
        with pytest.raises(AttributeError):
            config.release = ReleaseConfig(remote="x")  # type: ignore[misc]


class TestFromDict:
    def test_full_document(self) -> None:
        config = Config.from_dict(
            {
                "release": {
                    "remote": "upstream",
                    "branch": "main",
                    "package": "demo",
                    "image": "acme/demo",
                    "ci_timeout": 600,
                    "artifact_interval": 2.5,
                },
                "recipes": {"targets": ["lint", "test"], "working_dir": "tools"},
                "changelog": {"enabled": False, "output": "docs/CHANGES.md", "use_prs": True},
                "github": {"repo": "acme/demo"},
            }
        )
        assert config.release.remote == "upstream"
        assert config.release.branch == "main"
        assert config.release.package == "demo"
        assert config.release.image == "acme/demo"
        assert config.release.ci_timeout == 600.0
        assert config.release.ci_interval is None
        assert config.release.artifact_interval == 2.5
        assert config.recipes.targets == ("lint", "test")
        assert config.recipes.working_dir == "tools"
        assert config.changelog.enabled is False
        assert config.changelog.output == "docs/CHANGES.md"
        assert config.changelog.use_prs is True
        assert config.github.repo == "acme/demo"

    def test_empty_strings_are_unset(self) -> None:
        config = Config.from_dict({"release": {"package": "  "}})
        assert config.release.package is None

    def test_table_must_be_table(self) -> None:
        with pytest.raises(ValueError, match=r"\[release\] must be a table"):
            Config.from_dict({"release": "origin"})

    def test_targets_must_be_list(self) -> None:
        with pytest.raises(ValueError, match="recipes.targets"):
            Config.from_dict({"recipes": {"targets": "lint"}})

    def test_targets_reject_non_strings(self) -> None:
        with pytest.raises(ValueError, match="recipes.targets"):
            Config.from_dict({"recipes": {"targets": [1, 2]}})
        with pytest.raises(ValueError, match="recipes.targets"):
            Config.from_dict({"recipes": {"targets": ["lint", 2]}})

    @pytest.mark.parametrize(
        ("section", "key"),
        [
            ("release", "remote"),
            ("release", "branch"),
            ("release", "package"),
            ("release", "image"),
            ("recipes", "working_dir"),
            ("changelog", "output"),
            ("changelog", "previous_release_tag"),
            ("github", "repo"),
        ],
    )
    def test_string_fields_reject_other_types(self, section: str, key: str) -> None:
        with pytest.raises(ValueError, match=rf"{section}\.{key} must be a string"):
            Config.from_dict({section: {key: 5}})

    def test_bool_fields_reject_strings(self) -> None:
        with pytest.raises(ValueError, match="changelog.use_prs"):
            Config.from_dict({"changelog": {"use_prs": "yes"}})

    def test_timeouts_must_be_positive_numbers(self) -> None:
        with pytest.raises(ValueError, match="release.ci_timeout"):
            Config.from_dict({"release": {"ci_timeout": 0}})
        with pytest.raises(ValueError, match="release.ci_timeout"):
            Config.from_dict({"release": {"ci_timeout": True}})


class TestLoadConfig:
    def test_load_valid(self, tmp_path: Path) -> None:
        path = tmp_path / ".releasebot.toml"
        path.write_text('[release]\npackage = "demo"\n\n[recipes]\ntargets = ["build"]\n', encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Ok)
        assert result.value.release.package == "demo"
        assert result.value.recipes.targets == ("build",)

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "nope.toml")
        assert isinstance(result, Err)
        assert isinstance(result.error, ConfigError)
        assert "not found" in result.error.message

    def test_invalid_syntax(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("[release\n", encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message
        assert result.error.path == path

    def test_wrong_type_reported(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("[changelog]\nenabled = 1\n", encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Err)
        assert result.error.message.startswith("Invalid config:")

    def test_numeric_package_name_reported(self, tmp_path: Path) -> None:
        path = tmp_path / ".releasebot.toml"
        path.write_text("[release]\npackage = 5\n", encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Err)
        assert "release.package must be a string" in result.error.message

    def test_or_default_missing_file(self, tmp_path: Path) -> None:
        result = load_config_or_default(tmp_path / ".releasebot.toml")
        assert result == Ok(Config())

    def test_or_default_still_reports_errors(self, tmp_path: Path) -> None:
        path = tmp_path / ".releasebot.toml"
        path.write_text("not = [valid", encoding="utf-8")
        assert isinstance(load_config_or_default(path), Err)
