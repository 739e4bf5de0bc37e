"""
Capabilities the sync engine depends on.

Any object with matching methods can be plugged in: a different API
shape, a different durable store, a different delivery channel.
"""

from typing import Optional, Protocol

from testtaker_notify.models import Email, EmailAddress, TestTakerPage


class RecordSource(Protocol):
    """Paginated, newest-first listing of finished test takers."""

    def authenticate(self) -> str:
        """Acquire an access token. Raises AuthenticationError."""
        ...

    def list_page(self, access_token: str, limit: int, offset: int) -> TestTakerPage:
        """Fetch one page. Raises ApiError."""
        ...


class WatermarkStore(Protocol):
    def get_watermark(self) -> Optional[int]:
        """Return the stored watermark, or None when never set."""
        ...

    def set_watermark(self, timestamp: int) -> None:
        ...


class Ledger(Protocol):
    """Write-once record of notification outcomes per test taker."""

    def has_outcome(self, test_taker_id: int) -> bool:
        ...

    def record_sent(self, test_taker_id: int, email: str) -> None:
        ...

    def record_failed(self, test_taker_id: int, email: str) -> None:
        ...


class Notifier(Protocol):
    def send(self, to: EmailAddress, sender: EmailAddress, email: Email) -> None:
        """Deliver one message. Raises NotificationError on failure."""
        ...
