"""Shared fixtures for the sync tests."""

from unittest.mock import MagicMock

import pytest

from testtaker_notify.config import Config
from testtaker_notify.models import Email, EmailAddress
from tests.fakes import InMemoryStore, build_test_taker


@pytest.fixture
def make_test_taker():
    """Factory for test takers with eligible defaults."""
    return build_test_taker


@pytest.fixture
def config(tmp_path):
    """Configuration with small pages and no real endpoints."""
    return Config(
        api_auth_email="ops@example.com",
        api_auth_password="secret",
        api_auth_endpoint="https://api.example.com/auth",
        api_test_takers_endpoint="https://api.example.com/test_takers",
        db_path=tmp_path / "state.json",
        fetch_interval=0,
        page_size=10,
        mail_from=EmailAddress(name="Hiring", address="hiring@example.com"),
        mail=Email(subject="Thanks", body="Thanks for taking the test"),
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifier():
    return MagicMock()
