"""
Configuration management for the test taker notification sync.

Loads settings from environment variables (and an optional .env file)
into a single immutable Config that is passed to every component.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from testtaker_notify.eligibility import DEFAULT_THRESHOLD
from testtaker_notify.models import Email, EmailAddress

MAILER_BACKENDS = ("log", "smtp")


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _require(name: str, hint: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"{name} environment variable is required.\n{hint}")
    return value


@dataclass(frozen=True)
class SmtpSettings:
    """Connection settings for the SMTP mailer."""

    host: str = ""
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True


@dataclass(frozen=True)
class Config:
    """
    Central configuration for the sync system.

    Built once at startup and never mutated; CLI overrides produce a new
    instance with dataclasses.replace. All secrets come from env vars.
    """

    # API settings
    api_auth_email: str
    api_auth_password: str
    api_auth_endpoint: str
    api_test_takers_endpoint: str
    request_timeout: float = 30.0

    # Store
    db_path: Path = field(default_factory=lambda: Path(".testtaker-notify") / "state.json")

    # Sync behavior
    fetch_interval: float = 10.0
    page_size: int = 10
    eligibility_threshold: int = DEFAULT_THRESHOLD
    debug: bool = False
    dry_run: bool = False

    # Notification
    mail_from: EmailAddress = EmailAddress(name="", address="")
    mail: Email = Email(subject="", body="")
    mailer: str = "log"
    smtp: SmtpSettings = SmtpSettings()

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.db_path, str):
            object.__setattr__(self, "db_path", Path(self.db_path))

        if self.page_size < 1:
            raise ValueError(f"PAGE_SIZE must be at least 1, got {self.page_size}")
        if not 0 <= self.eligibility_threshold <= 100:
            raise ValueError(
                f"ELIGIBILITY_THRESHOLD must be between 0 and 100, got {self.eligibility_threshold}"
            )
        if self.fetch_interval < 0:
            raise ValueError(f"FETCH_INTERVAL_SECONDS cannot be negative, got {self.fetch_interval}")
        if self.mailer not in MAILER_BACKENDS:
            raise ValueError(
                f"MAILER must be one of {', '.join(MAILER_BACKENDS)}, got {self.mailer!r}"
            )
        if self.mailer == "smtp" and not self.smtp.host:
            raise ValueError("SMTP_HOST environment variable is required when MAILER=smtp.")

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Config":
        """
        Load configuration from environment variables.

        Args:
            env_file: Optional path to .env file. If not provided,
                     looks for .env in current directory.

        Returns:
            Configured Config instance.

        Raises:
            ValueError: If required environment variables are missing
                        or a value is out of range.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        api_auth_email = _require(
            "API_AUTH_EMAIL",
            "Set this to the account email used to log in to the assessment API.",
        )
        api_auth_password = _require(
            "API_AUTH_PASSWORD",
            "Set this to the account password used to log in to the assessment API.",
        )
        api_auth_endpoint = _require(
            "API_AUTH_ENDPOINT",
            "This should be the URL of the API's access token endpoint.",
        )
        api_test_takers_endpoint = _require(
            "API_TEST_TAKERS_ENDPOINT",
            "This should be the URL of the API's test takers listing endpoint.",
        )

        db_path_str = os.getenv("DB_PATH")
        db_path = Path(db_path_str) if db_path_str else Path(".testtaker-notify") / "state.json"

        smtp = SmtpSettings(
            host=os.getenv("SMTP_HOST", ""),
            port=_env_int("SMTP_PORT", 587),
            username=os.getenv("SMTP_USERNAME") or None,
            password=os.getenv("SMTP_PASSWORD") or None,
            use_tls=_env_bool("SMTP_USE_TLS", True),
        )

        return cls(
            api_auth_email=api_auth_email,
            api_auth_password=api_auth_password,
            api_auth_endpoint=api_auth_endpoint,
            api_test_takers_endpoint=api_test_takers_endpoint,
            request_timeout=_env_float("REQUEST_TIMEOUT", 30.0),
            db_path=db_path,
            fetch_interval=_env_float("FETCH_INTERVAL_SECONDS", 10.0),
            page_size=_env_int("PAGE_SIZE", 10),
            eligibility_threshold=_env_int("ELIGIBILITY_THRESHOLD", DEFAULT_THRESHOLD),
            debug=_env_bool("DEBUG"),
            dry_run=_env_bool("DRY_RUN"),
            mail_from=EmailAddress(
                name=os.getenv("MAIL_FROM", ""),
                address=os.getenv("MAIL_FROM_EMAIL", ""),
            ),
            mail=Email(
                subject=os.getenv("MAIL_SUBJECT", ""),
                body=os.getenv("MAIL_BODY", ""),
            ),
            mailer=os.getenv("MAILER", "log").lower(),
            smtp=smtp,
        )
