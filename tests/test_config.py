"""Tests for configuration loading."""

import dataclasses
from pathlib import Path

import pytest

from testtaker_notify.config import Config
from testtaker_notify.models import Email, EmailAddress

ENV_VARS = [
    "API_AUTH_EMAIL",
    "API_AUTH_PASSWORD",
    "API_AUTH_ENDPOINT",
    "API_TEST_TAKERS_ENDPOINT",
    "DB_PATH",
    "FETCH_INTERVAL_SECONDS",
    "PAGE_SIZE",
    "ELIGIBILITY_THRESHOLD",
    "REQUEST_TIMEOUT",
    "MAIL_FROM",
    "MAIL_FROM_EMAIL",
    "MAIL_SUBJECT",
    "MAIL_BODY",
    "MAILER",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "SMTP_USE_TLS",
    "DEBUG",
    "DRY_RUN",
]


@pytest.fixture
def env(monkeypatch, tmp_path):
    """Clean environment with the required variables set."""
    for name in ENV_VARS:
        # setenv first so teardown also undoes values load_dotenv writes
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("API_AUTH_EMAIL", "ops@example.com")
    monkeypatch.setenv("API_AUTH_PASSWORD", "secret")
    monkeypatch.setenv("API_AUTH_ENDPOINT", "https://api.example.com/auth")
    monkeypatch.setenv("API_TEST_TAKERS_ENDPOINT", "https://api.example.com/test_takers")
    return monkeypatch


@pytest.fixture
def no_env_file(tmp_path):
    return tmp_path / "missing.env"


class TestFromEnv:
    def test_defaults(self, env, no_env_file):
        """Should fall back to documented defaults."""
        config = Config.from_env(no_env_file)

        assert config.page_size == 10
        assert config.eligibility_threshold == 80
        assert config.fetch_interval == 10.0
        assert config.request_timeout == 30.0
        assert config.mailer == "log"
        assert config.db_path == Path(".testtaker-notify") / "state.json"
        assert config.debug is False
        assert config.dry_run is False

    def test_reads_all_options(self, env, no_env_file, tmp_path):
        env.setenv("DB_PATH", str(tmp_path / "db.json"))
        env.setenv("FETCH_INTERVAL_SECONDS", "60")
        env.setenv("PAGE_SIZE", "25")
        env.setenv("ELIGIBILITY_THRESHOLD", "90")
        env.setenv("MAIL_FROM", "Hiring Team")
        env.setenv("MAIL_FROM_EMAIL", "hiring@example.com")
        env.setenv("MAIL_SUBJECT", "Thanks")
        env.setenv("MAIL_BODY", "Thanks for taking the test")
        env.setenv("MAILER", "SMTP")
        env.setenv("SMTP_HOST", "smtp.example.com")
        env.setenv("SMTP_PORT", "2525")
        env.setenv("SMTP_USE_TLS", "false")
        env.setenv("DEBUG", "true")

        config = Config.from_env(no_env_file)

        assert config.db_path == tmp_path / "db.json"
        assert config.fetch_interval == 60.0
        assert config.page_size == 25
        assert config.eligibility_threshold == 90
        assert config.mail_from == EmailAddress(name="Hiring Team", address="hiring@example.com")
        assert config.mail == Email(subject="Thanks", body="Thanks for taking the test")
        assert config.mailer == "smtp"
        assert config.smtp.host == "smtp.example.com"
        assert config.smtp.port == 2525
        assert config.smtp.use_tls is False
        assert config.debug is True

    def test_loads_env_file(self, env, tmp_path):
        """Should read variables from the given .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("PAGE_SIZE=5\nMAIL_SUBJECT=From file\n")

        config = Config.from_env(env_file)

        assert config.page_size == 5
        assert config.mail.subject == "From file"

    @pytest.mark.parametrize(
        "missing",
        ["API_AUTH_EMAIL", "API_AUTH_PASSWORD", "API_AUTH_ENDPOINT", "API_TEST_TAKERS_ENDPOINT"],
    )
    def test_missing_required(self, env, no_env_file, missing):
        env.delenv(missing)

        with pytest.raises(ValueError, match=missing):
            Config.from_env(no_env_file)

    def test_non_integer_page_size(self, env, no_env_file):
        env.setenv("PAGE_SIZE", "ten")

        with pytest.raises(ValueError, match="PAGE_SIZE"):
            Config.from_env(no_env_file)


class TestValidation:
    def test_is_immutable(self, config):
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.page_size = 5

    def test_replace_builds_new_config(self, config):
        updated = dataclasses.replace(config, dry_run=True)

        assert updated.dry_run is True
        assert config.dry_run is False

    @pytest.mark.parametrize(
        "overrides",
        [
            {"page_size": 0},
            {"eligibility_threshold": 101},
            {"eligibility_threshold": -1},
            {"fetch_interval": -5},
            {"mailer": "carrier-pigeon"},
            {"mailer": "smtp"},
        ],
    )
    def test_rejects_invalid_values(self, config, overrides):
        with pytest.raises(ValueError):
            dataclasses.replace(config, **overrides)

    def test_string_db_path_is_converted(self, config):
        updated = dataclasses.replace(config, db_path="state.json")

        assert updated.db_path == Path("state.json")
