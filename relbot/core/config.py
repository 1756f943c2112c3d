"""Typed configuration loading.

The optional ``.releasebot.toml`` file at the repository root describes what
a release involves for that repository::

    [release]
    remote = "origin"
    package = "my-package"          # wait for PyPI when set
    image = "myorg/my-image"        # wait for Docker Hub when set
    ci_timeout = 1800

    [recipes]
    targets = ["lint", "test"]

    [changelog]
    output = "CHANGELOG.md"
    use_prs = true

    [github]
    repo = "myorg/my-package"

Missing keys fall back to defaults; timeouts left unset are resolved by the
release service. Values of the wrong type are reported as ``ConfigError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_list, get_str, get_str_list, get_table

__all__ = [
    "CONFIG_FILENAME",
    "ChangelogConfig",
    "Config",
    "ConfigError",
    "GithubConfig",
    "RecipesConfig",
    "ReleaseConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = ".releasebot.toml"
DEFAULT_CHANGELOG = "CHANGELOG.md"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Where to push and what to wait for after pushing."""

    remote: str | None = None
    branch: str | None = None
    package: str | None = None
    image: str | None = None
    ci_timeout: float | None = None
    ci_interval: float | None = None
    artifact_timeout: float | None = None
    artifact_interval: float | None = None


@dataclass(frozen=True, slots=True)
class RecipesConfig:
    """Build recipes (``just`` targets) run before the changelog."""

    targets: tuple[str, ...] = ()
    working_dir: str | None = None


@dataclass(frozen=True, slots=True)
class ChangelogConfig:
    enabled: bool = True
    output: str = DEFAULT_CHANGELOG
    previous_release_tag: str | None = None
    use_prs: bool = False


@dataclass(frozen=True, slots=True)
class GithubConfig:
    # owner/name; parsed from the remote URL when unset
    repo: str | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    recipes: RecipesConfig = field(default_factory=RecipesConfig)
    changelog: ChangelogConfig = field(default_factory=ChangelogConfig)
    github: GithubConfig = field(default_factory=GithubConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: A known key holds a value of the wrong type.
        """
        release: StrDict = _table(data, "release")
        recipes: StrDict = _table(data, "recipes")
        changelog: StrDict = _table(data, "changelog")
        github: StrDict = _table(data, "github")

        enabled = get_bool(changelog, "enabled")
        use_prs = get_bool(changelog, "use_prs")
        for key, parsed in (("enabled", enabled), ("use_prs", use_prs)):
            if key in changelog and parsed is None:
                raise ValueError(f"changelog.{key} must be a boolean")

        return cls(
            release=ReleaseConfig(
                remote=_str(release, "release", "remote"),
                branch=_str(release, "release", "branch"),
                package=_str(release, "release", "package"),
                image=_str(release, "release", "image"),
                ci_timeout=_seconds(release, "ci_timeout"),
                ci_interval=_seconds(release, "ci_interval"),
                artifact_timeout=_seconds(release, "artifact_timeout"),
                artifact_interval=_seconds(release, "artifact_interval"),
            ),
            recipes=RecipesConfig(
                targets=_targets(recipes),
                working_dir=_str(recipes, "recipes", "working_dir"),
            ),
            changelog=ChangelogConfig(
                enabled=True if enabled is None else enabled,
                output=_str(changelog, "changelog", "output") or DEFAULT_CHANGELOG,
                previous_release_tag=_str(changelog, "changelog", "previous_release_tag"),
                use_prs=bool(use_prs),
            ),
            github=GithubConfig(repo=_str(github, "github", "repo")),
        )


def _table(data: Mapping[str, object], key: str) -> StrDict:
    if key not in data:
        return {}
    table = get_table(data, key)
    if table is None:
        raise ValueError(f"[{key}] must be a table")
    return table


def _str(table: Mapping[str, object], section: str, key: str) -> str | None:
    """A string key; blank means unset, any other type is an error."""
    if key in table and not isinstance(table[key], str):
        raise ValueError(f"{section}.{key} must be a string")
    return get_str(table, key)


def _targets(recipes: Mapping[str, object]) -> tuple[str, ...]:
    if "targets" not in recipes:
        return ()
    items = get_list(recipes, "targets")
    if items is None or not all(isinstance(item, str) for item in items):
        raise ValueError("recipes.targets must be a list of strings")
    return tuple(get_str_list(recipes, "targets") or ())


def _seconds(table: Mapping[str, object], key: str) -> float | None:
    value = table.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"release.{key} must be a number of seconds")
    if value <= 0:
        raise ValueError(f"release.{key} must be positive")
    return float(value)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except ValueError as e:
        return Err(ConfigError(f"Invalid config: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like load_config, but a missing file yields the default config."""
    if not path.exists():
        return Ok(Config())
    return load_config(path)
