"""Tests for publisher configuration — layering, aliases, validation."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest

from storybook_publisher.config import (
    ConfigError,
    PublisherConfig,
    load_config,
    read_package_json,
)


def _write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data))
    return path


class TestPublisherConfig:
    def test_defaults(self):
        config = PublisherConfig()
        assert config.log_level == "INFO"
        assert config.main_branch == "main"
        assert config.packages_depth == 3
        assert config.upload_concurrency == 16
        assert config.num_latest_items == 25
        assert config.main_branch_items == 3
        assert config.site_max_age == timedelta(days=30)
        assert config.skip_build is False

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("STORYBOOKS_BUCKET", "my-storybooks")
        monkeypatch.setenv("STORYBOOKS_UPLOAD_CONCURRENCY", "32")
        monkeypatch.setenv("STORYBOOKS_SKIP_STATUS", "true")
        config = PublisherConfig()
        assert config.bucket == "my-storybooks"
        assert config.upload_concurrency == 32
        assert config.skip_status is True

    def test_ci_aliases(self, monkeypatch):
        monkeypatch.setenv("CIRCLE_BRANCH", "feature/x")
        monkeypatch.setenv("CIRCLE_PULL_REQUEST", "https://github.com/o/r/pull/9")
        monkeypatch.setenv("STORYBOOKS_PROJECT_REPO", "o/r")
        config = PublisherConfig()
        assert config.ci_branch == "feature/x"
        assert config.ci_pull_request == "https://github.com/o/r/pull/9"
        assert config.github_repo == "o/r"

    def test_prefixed_env_beats_alias(self, monkeypatch):
        monkeypatch.setenv("STORYBOOKS_GCP_BUCKET", "legacy")
        monkeypatch.setenv("STORYBOOKS_BUCKET", "current")
        assert PublisherConfig().bucket == "current"

    def test_init_beats_alias(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert PublisherConfig(log_level="debug").log_level == "DEBUG"

    def test_dotenv_file(self, isolated_environment):
        (isolated_environment / ".storybook-publisher-env").write_text(
            "STORYBOOKS_BUCKET=from-dotenv\n"
        )
        assert PublisherConfig().bucket == "from-dotenv"

    def test_log_level_aliases(self):
        assert PublisherConfig(log_level="warn").log_level == "WARNING"
        assert PublisherConfig(log_level="all").log_level == "DEBUG"
        assert PublisherConfig(log_level="debug").verbose is True

    def test_debug_forces_verbose(self):
        config = PublisherConfig(debug=True, log_level="error")
        assert config.verbose is True
        assert config.effective_log_level == "DEBUG"
        assert PublisherConfig().effective_log_level == "INFO"

    def test_debug_alias(self, monkeypatch):
        monkeypatch.setenv("DEBUG", "true")
        assert PublisherConfig().debug is True
        monkeypatch.setenv("DEBUG", "0")
        assert PublisherConfig().debug is False

    def test_non_boolean_debug_ignored(self, monkeypatch):
        monkeypatch.setenv("DEBUG", "express:*")
        assert PublisherConfig().debug is False

    def test_max_age_alias_in_milliseconds(self, monkeypatch):
        monkeypatch.setenv("STORYBOOKS_GCP_MAX_AGE", str(7 * 24 * 60 * 60 * 1000))
        config = PublisherConfig()
        assert config.site_max_age_days == 7
        assert config.site_max_age == timedelta(days=7)

    def test_invalid_max_age_alias_rejected(self, monkeypatch):
        monkeypatch.setenv("STORYBOOKS_GCP_MAX_AGE", "forever")
        with pytest.raises(ValueError):
            PublisherConfig()

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValueError):
            PublisherConfig(log_level="loud")

    def test_public_url_defaults_to_bucket(self):
        assert PublisherConfig(bucket="b").public_url == "https://b.s3.amazonaws.com"

    def test_public_url_explicit(self):
        config = PublisherConfig(bucket="b", public_base_url="https://cdn.example.com/")
        assert config.public_url == "https://cdn.example.com"

    def test_public_url_endpoint(self):
        config = PublisherConfig(bucket="b", s3_endpoint_url="http://localhost:9000/")
        assert config.public_url == "http://localhost:9000/b"

    def test_public_url_local_store(self, tmp_dir):
        config = PublisherConfig(local_store_path=tmp_dir / "site")
        assert config.public_url.startswith("file://")

    def test_dump_masks_token(self):
        config = PublisherConfig(github_token="s3cret")
        assert config.dump()["github_token"] != "s3cret"
        assert config.dump(sensitive=True)["github_token"] == "s3cret"


class TestLoadConfig:
    def test_flags_beat_file_beat_package_json(self, tmp_dir):
        project = tmp_dir / "project"
        project.mkdir()
        _write_json(project / "package.json", {
            "name": "demo",
            "storybookPublisher": {"bucket": "pkg", "main_branch": "trunk", "packages_depth": 2},
        })
        config_file = _write_json(tmp_dir / "config.json", {"bucket": "file", "main_branch": "develop"})

        config = load_config(config_file, {"bucket": "flag", "main_branch": None}, project_dir=project)

        assert config.bucket == "flag"
        assert config.main_branch == "develop"
        assert config.packages_depth == 2

    def test_package_json_nested_camel_case_keys(self, tmp_dir):
        _write_json(tmp_dir / "package.json", {
            "storybookPublisher": {
                "packagesRoot": "packages",
                "useYarnWorkspaces": False,
                "github": {"repo": "acme/ui", "mainBranch": "trunk"},
                "skip": {"status": True},
                "gcp": {
                    "bucket": "acme-storybooks",
                    "uploadConcurrency": 8,
                    "maxAge": 2 * 24 * 60 * 60 * 1000,
                },
            },
        })

        config = load_config(project_dir=tmp_dir)

        assert config.packages_root == Path("packages")
        assert config.use_yarn_workspaces is False
        assert config.github_repo == "acme/ui"
        assert config.main_branch == "trunk"
        assert config.skip_status is True
        assert config.bucket == "acme-storybooks"
        assert config.upload_concurrency == 8
        assert config.site_max_age_days == 2

    def test_package_json_gcp_credentials_ignored(self, tmp_dir):
        _write_json(tmp_dir / "package.json", {
            "storybookPublisher": {
                "gcp": {"bucket": "b", "projectId": "p", "privateKey": "k"},
            },
        })
        assert load_config(project_dir=tmp_dir).bucket == "b"

    def test_package_json_unknown_nested_key_reported(self, tmp_dir):
        _write_json(tmp_dir / "package.json", {
            "storybookPublisher": {"skip": {"everything": True}},
        })
        with pytest.raises(ConfigError) as excinfo:
            load_config(overrides={"skip_publish": True}, project_dir=tmp_dir)
        assert "skip.everything" in str(excinfo.value)

    def test_env_beats_files(self, tmp_dir, monkeypatch):
        monkeypatch.setenv("STORYBOOKS_BUCKET", "env")
        monkeypatch.setenv("STORYBOOKS_UPLOAD_CONCURRENCY", "8")
        _write_json(tmp_dir / "package.json", {
            "storybookPublisher": {"bucket": "pkg", "num_latest_items": 10},
        })
        config_file = _write_json(tmp_dir / "config.json", {"upload_concurrency": 4})

        config = load_config(config_file, project_dir=tmp_dir)

        assert config.bucket == "env"
        assert config.upload_concurrency == 8
        assert config.num_latest_items == 10

    def test_flags_beat_env(self, monkeypatch):
        monkeypatch.setenv("STORYBOOKS_BUCKET", "env")
        assert load_config(overrides={"bucket": "flag"}).bucket == "flag"

    def test_invalid_env_value_reported(self, monkeypatch):
        monkeypatch.setenv("STORYBOOKS_UPLOAD_CONCURRENCY", "lots")
        with pytest.raises(ConfigError) as excinfo:
            load_config(overrides={"skip_publish": True})
        assert "upload_concurrency" in str(excinfo.value)

    def test_env_used_when_nothing_else(self, monkeypatch):
        monkeypatch.setenv("STORYBOOKS_BUCKET", "env")
        assert load_config().bucket == "env"

    def test_project_name_and_repo_from_package_json(self, tmp_dir):
        _write_json(tmp_dir / "package.json", {
            "name": "@acme/ui",
            "description": "Acme UI kit",
            "repository": {"type": "git", "url": "git+https://github.com/acme/ui.git"},
        })
        config = load_config(overrides={"skip_publish": True}, project_dir=tmp_dir)
        assert config.project_name == "Acme UI kit"
        assert config.github_repo == "acme/ui"

    def test_explicit_repo_not_overridden(self, tmp_dir):
        _write_json(tmp_dir / "package.json", {
            "repository": {"type": "git", "url": "git@github.com:acme/ui.git"},
        })
        config = load_config(
            overrides={"skip_publish": True, "github_repo": "other/repo"}, project_dir=tmp_dir
        )
        assert config.github_repo == "other/repo"

    def test_missing_bucket_is_error(self):
        with pytest.raises(ConfigError) as excinfo:
            load_config()
        assert any(p.startswith("bucket") for p in excinfo.value.problems)

    def test_skip_publish_needs_no_bucket(self):
        assert load_config(overrides={"skip_publish": True}).bucket == ""

    def test_local_store_satisfies_bucket(self, tmp_dir):
        config = load_config(overrides={"local_store_path": tmp_dir / "site"})
        assert config.local_store_path == tmp_dir / "site"

    def test_reports_every_problem(self, tmp_dir):
        config_file = _write_json(tmp_dir / "config.json", {
            "github_token": "t",
            "unknown_option": 1,
        })
        with pytest.raises(ConfigError) as excinfo:
            load_config(config_file)
        problems = excinfo.value.problems
        assert len(problems) == 3
        assert any("unknown_option" in p for p in problems)
        assert any(p.startswith("bucket") for p in problems)
        assert any(p.startswith("github_repo") for p in problems)
        assert "unknown_option" in str(excinfo.value)

    def test_field_validation_errors_collected(self, tmp_dir):
        config_file = _write_json(tmp_dir / "config.json", {
            "upload_concurrency": 0,
            "packages_depth": 0,
        })
        with pytest.raises(ConfigError) as excinfo:
            load_config(config_file)
        locations = " ".join(excinfo.value.problems)
        assert "upload_concurrency" in locations
        assert "packages_depth" in locations

    def test_malformed_repo(self):
        with pytest.raises(ConfigError) as excinfo:
            load_config(overrides={"skip_publish": True, "github_repo": "no-slash"})
        assert "owner/name" in str(excinfo.value)

    def test_missing_config_file(self, tmp_dir):
        with pytest.raises(ConfigError) as excinfo:
            load_config(tmp_dir / "absent.json", {"skip_publish": True})
        assert "not found" in str(excinfo.value)

    def test_config_file_must_be_object(self, tmp_dir):
        config_file = _write_json(tmp_dir / "config.json", ["bucket"])
        with pytest.raises(ConfigError):
            load_config(config_file, {"skip_publish": True})


class TestReadPackageJson:
    def test_absent(self, tmp_dir):
        assert read_package_json(tmp_dir) == {}

    def test_invalid(self, tmp_dir):
        (tmp_dir / "package.json").write_text("{")
        assert read_package_json(tmp_dir) == {}

    def test_reads_object(self, tmp_dir):
        _write_json(tmp_dir / "package.json", {"name": "x"})
        assert read_package_json(tmp_dir) == {"name": "x"}
