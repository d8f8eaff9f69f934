"""Publisher configuration — layered, env-driven, validated at startup.

Settings are read by pydantic-settings from ``STORYBOOKS_*`` environment
variables and a ``.storybook-publisher-env`` dotenv file.  A handful of
variables set by CI or by older deployments (``CIRCLE_BRANCH``,
``CIRCLE_PULL_REQUEST``, ``DEBUG``, ``STORYBOOKS_GCP_MAX_AGE`` in milliseconds,
``STORYBOOKS_PROJECT_REPO``, ...) are honoured as
lower-priority aliases.

``load_config()`` layers the sources, highest priority first::

    command-line flags > environment > --config JSON file >
        package.json "storybookPublisher" section > defaults

and reports every violation at once as a single ``ConfigError``.

Examples
--------
Override via environment::

    export STORYBOOKS_BUCKET=my-storybooks
    export STORYBOOKS_UPLOAD_CONCURRENCY=32
    export STORYBOOKS_SKIP_STATUS=true
"""

from __future__ import annotations

import json
import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

ENV_FILE = ".storybook-publisher-env"
PACKAGE_JSON_SECTION = "storybookPublisher"

# Variables outside the STORYBOOKS_ prefix, or named differently by older
# deployments.  Prefixed variables always win over these.
ENV_ALIASES: dict[str, str] = {
    "LOG_LEVEL": "log_level",
    "DEBUG": "debug",
    "CIRCLE_BRANCH": "ci_branch",
    "CIRCLE_PULL_REQUEST": "ci_pull_request",
    "STORYBOOKS_PROJECT_REPO": "github_repo",
    "STORYBOOKS_PROJECT_MAIN_BRANCH": "main_branch",
    "STORYBOOKS_SKIP_GITHUB_STATUS": "skip_status",
    "STORYBOOKS_GCP_BUCKET": "bucket",
    "STORYBOOKS_GCP_MAX_AGE": "site_max_age_days",
    "STORYBOOKS_COMMIT_SUMMARY_FILE": "commit_summary_file",
    "STORYBOOKS_COMMIT_DESCRIPTION_FILE": "commit_description_file",
}

# camelCase and nested keys accepted in the package.json section, keyed by
# their dotted path.  Field names are accepted as-is.
PACKAGE_JSON_KEYS: dict[str, str] = {
    "logLevel": "log_level",
    "projectName": "project_name",
    "numLatestItems": "num_latest_items",
    "useYarnWorkspaces": "use_yarn_workspaces",
    "packagesRoot": "packages_root",
    "packagesDepth": "packages_depth",
    "commit.versionJson": "version_json",
    "commit.commitBranch": "commit_branch",
    "commit.commitSummary": "commit_summary_file",
    "commit.commitDescription": "commit_description_file",
    "skip.build": "skip_build",
    "skip.publish": "skip_publish",
    "skip.status": "skip_status",
    "ci.branch": "ci_branch",
    "ci.pullRequest": "ci_pull_request",
    "github.repo": "github_repo",
    "github.mainBranch": "main_branch",
    "github.token": "github_token",
    "gcp.publicUrl": "public_base_url",
    "gcp.bucket": "bucket",
    "gcp.maxAge": "site_max_age_days",
    "gcp.uploadConcurrency": "upload_concurrency",
}

# Google Cloud credentials have no meaning for an S3 store.
IGNORED_PACKAGE_JSON_KEYS = ("gcp.projectId", "gcp.clientEmail", "gcp.privateKey")

MILLISECONDS_PER_DAY = 24 * 60 * 60 * 1000

_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")

LOG_LEVEL_ALIASES: dict[str, str] = {
    "ALL": "DEBUG",
    "TRACE": "DEBUG",
    "VERBOSE": "DEBUG",
    "WARN": "WARNING",
    "FATAL": "CRITICAL",
    "OFF": "CRITICAL",
}
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

SENSITIVE_FIELDS = ("github_token",)


class ConfigError(ValueError):
    """Raised when configuration is missing or malformed.

    Carries every violation found, not just the first one.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__(
            "Invalid configuration:\n" + "\n".join(f"  - {p}" for p in self.problems)
        )


def _milliseconds_to_days(value: Any) -> Any:
    """Convert a max-age in milliseconds to days.

    Unparseable values are passed through so field validation reports them.
    """
    try:
        return float(value) / MILLISECONDS_PER_DAY
    except (TypeError, ValueError):
        return value


def _debug_flag(value: str) -> bool | None:
    # DEBUG is shared with other tools (e.g. DEBUG=express:*); only
    # boolean-looking values switch debug mode.
    word = value.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    logger.debug("Ignoring non-boolean DEBUG=%r", value)
    return None


_ENV_CONVERTERS = {
    "DEBUG": _debug_flag,
    "STORYBOOKS_GCP_MAX_AGE": _milliseconds_to_days,
}
_PACKAGE_JSON_CONVERTERS = {
    "gcp.maxAge": _milliseconds_to_days,
}


class _EnvironmentAliasSource(PydanticBaseSettingsSource):
    """Settings source mapping ``ENV_ALIASES`` variables onto fields."""

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        for env_name, target in ENV_ALIASES.items():
            if target != field_name or not os.environ.get(env_name):
                continue
            value: Any = os.environ[env_name]
            convert = _ENV_CONVERTERS.get(env_name)
            if convert is not None:
                value = convert(value)
            if value is not None:
                return value, field_name, False
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for field_name, field in self.settings_cls.model_fields.items():
            value, key, _ = self.get_field_value(field, field_name)
            if value is not None:
                data[key] = value
        return data


class PublisherConfig(BaseSettings):
    """Resolved configuration for one publishing run.

    All settings can be overridden via ``STORYBOOKS_*`` environment
    variables, the ``.storybook-publisher-env`` file, a JSON config file
    or command-line flags (see ``load_config``).
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_prefix="STORYBOOKS_",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    # Project
    project_name: str = ""
    main_branch: str = "main"

    # Discovery and build
    packages_root: Path = Path(".")
    packages_depth: int = Field(default=3, ge=1)
    config_marker: str = ".storybook"
    build_marker: str = "storybook-static"
    excluded_dir: str = "node_modules"
    build_command: str = "yarn run build-storybook"
    use_yarn_workspaces: bool = True
    workspace_focus_command: str = "yarn workspaces focus {package}"

    # Phase switches
    skip_build: bool = False
    skip_publish: bool = False
    skip_status: bool = False

    # Object store
    bucket: str = ""
    s3_region: str | None = None
    s3_endpoint_url: str | None = None
    local_store_path: Path | None = None
    public_base_url: str = ""
    upload_concurrency: int = Field(default=16, ge=1, le=256)

    # Site index
    site_max_age_days: float = Field(default=30.0, gt=0)
    num_latest_items: int = Field(default=25, ge=1)
    main_branch_items: int = Field(default=3, ge=0)

    # GitHub status check
    github_repo: str = ""
    github_token: SecretStr | None = None
    github_api_url: str = "https://api.github.com"
    status_context: str = "storybooks: pull request"

    # Commit metadata sources
    version_json: Path | None = None
    commit_branch: str = ""
    commit_summary_file: Path | None = None
    commit_description_file: Path | None = None
    ci_branch: str = ""
    ci_pull_request: str = ""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _EnvironmentAliasSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        level = LOG_LEVEL_ALIASES.get(level, level)
        if level not in LOG_LEVELS:
            raise ValueError(
                f"unknown log level {value!r}; expected one of {', '.join(LOG_LEVELS)}"
            )
        return level

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def site_max_age(self) -> timedelta:
        return timedelta(days=self.site_max_age_days)

    @property
    def public_url(self) -> str:
        """Public base URL of the published site, without a trailing slash."""
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        if self.local_store_path is not None:
            return self.local_store_path.resolve().as_uri()
        if self.s3_endpoint_url:
            return f"{self.s3_endpoint_url.rstrip('/')}/{self.bucket}"
        return f"https://{self.bucket}.s3.amazonaws.com"

    @property
    def verbose(self) -> bool:
        """Whether external build output should be streamed to the console."""
        return self.debug or self.log_level == "DEBUG"

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level

    def problems(self) -> list[str]:
        """Cross-field violations that field validation cannot catch."""
        found: list[str] = []
        if not self.skip_publish and not self.bucket and self.local_store_path is None:
            found.append(
                "bucket: required for publishing "
                "(set STORYBOOKS_BUCKET, --bucket, or --local-store)"
            )
        if self.github_token is not None and not self.skip_status and not self.github_repo:
            found.append(
                "github_repo: required to post status checks "
                "(set STORYBOOKS_GITHUB_REPO or package.json repository)"
            )
        if self.github_repo and self.github_repo.count("/") != 1:
            found.append(
                f"github_repo: expected 'owner/name', got {self.github_repo!r}"
            )
        return found

    def dump(self, *, sensitive: bool = False) -> dict[str, Any]:
        """JSON-ready settings; secrets are masked unless *sensitive*."""
        data = self.model_dump(mode="json")
        if sensitive:
            for name in SENSITIVE_FIELDS:
                secret = getattr(self, name)
                data[name] = secret.get_secret_value() if secret else None
        return data


# ----------------------------------------------------------------------
# Layered loading
# ----------------------------------------------------------------------


def _read_json_object(path: Path, problems: list[str]) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        problems.append(f"config file not found: {path}")
        return {}
    except json.JSONDecodeError as exc:
        problems.append(f"config file {path} is not valid JSON: {exc}")
        return {}
    if not isinstance(data, dict):
        problems.append(f"config file {path} must contain a JSON object")
        return {}
    return data


def _unknown_keys(values: dict[str, Any], source: str) -> list[str]:
    known = PublisherConfig.model_fields
    return [f"{source}: unknown setting {key!r}" for key in values if key not in known]


def _flatten(values: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in values.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{path}."))
        else:
            flat[path] = value
    return flat


def _package_section_values(section: dict[str, Any]) -> dict[str, Any]:
    """Translate a ``storybookPublisher`` section into field values.

    Nested groups are flattened to dotted paths (``github.repo``) and mapped
    through ``PACKAGE_JSON_KEYS``; keys that are already field names pass
    through unchanged.
    """
    values: dict[str, Any] = {}
    for path, value in _flatten(section).items():
        if path in IGNORED_PACKAGE_JSON_KEYS:
            logger.warning(
                "Ignoring package.json %s setting %r", PACKAGE_JSON_SECTION, path
            )
            continue
        convert = _PACKAGE_JSON_CONVERTERS.get(path)
        values[PACKAGE_JSON_KEYS.get(path, path)] = (
            convert(value) if convert is not None else value
        )
    return values


def read_package_json(project_dir: Path) -> dict[str, Any]:
    """Return the project's ``package.json`` contents, or ``{}`` if absent."""
    path = project_dir / "package.json"
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (FileNotFoundError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _repo_from_package_json(package_meta: dict[str, Any]) -> str:
    repository = package_meta.get("repository")
    if not isinstance(repository, dict) or repository.get("type") != "git":
        return ""
    url = str(repository.get("url", "")).removesuffix(".git")
    parts = [p for p in url.replace(":", "/").split("/") if p]
    return "/".join(parts[-2:]) if len(parts) >= 2 else ""


def load_config(
    config_file: Path | None = None,
    overrides: dict[str, Any] | None = None,
    *,
    project_dir: Path | None = None,
) -> PublisherConfig:
    """Resolve the configuration for a run.

    Parameters
    ----------
    config_file:
        Optional JSON file whose keys are ``PublisherConfig`` field names.
    overrides:
        Command-line values; ``None`` entries are ignored.
    project_dir:
        Directory holding ``package.json``.  Defaults to the current directory.

    Raises
    ------
    ConfigError
        Listing every missing or malformed value.
    """
    problems: list[str] = []
    package_meta = read_package_json(project_dir or Path.cwd())

    package_section = package_meta.get(PACKAGE_JSON_SECTION, {})
    if not isinstance(package_section, dict):
        problems.append(f"package.json {PACKAGE_JSON_SECTION} must be an object")
        package_section = {}
    package_section = _package_section_values(package_section)
    problems.extend(_unknown_keys(package_section, f"package.json {PACKAGE_JSON_SECTION}"))

    file_values: dict[str, Any] = {}
    if config_file is not None:
        file_values = _read_json_object(Path(config_file), problems)
        problems.extend(_unknown_keys(file_values, str(config_file)))

    flag_values = {k: v for k, v in (overrides or {}).items() if v is not None}

    try:
        # Only the fields the environment actually set may shadow the files.
        environment = PublisherConfig()
        env_values = {
            name: getattr(environment, name) for name in environment.model_fields_set
        }
        merged = {**package_section, **file_values, **env_values, **flag_values}
        merged = {k: v for k, v in merged.items() if k in PublisherConfig.model_fields}
        config = PublisherConfig(**merged)
    except ValidationError as exc:
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "config"
            problems.append(f"{location}: {error['msg']}")
        raise ConfigError(problems) from exc

    derived: dict[str, Any] = {}
    if not config.project_name:
        name = package_meta.get("description") or package_meta.get("name")
        if name:
            derived["project_name"] = str(name)
    if not config.github_repo:
        repo = _repo_from_package_json(package_meta)
        if repo:
            derived["github_repo"] = repo
    if derived:
        config = config.model_copy(update=derived)

    problems.extend(config.problems())
    if problems:
        raise ConfigError(problems)

    logger.debug("Loaded configuration: %s", config.dump())
    return config
