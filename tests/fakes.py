"""In-memory collaborators for exercising the sync engine."""

from typing import Optional

from testtaker_notify.exceptions import ApiError, AuthenticationError
from testtaker_notify.models import TestTaker, TestTakerPage


class FakeSource:
    """In-memory newest-first listing that records every page request."""

    def __init__(self, test_takers=None, fail_offsets=(), fail_auth=False):
        self.test_takers = sorted(test_takers or [], key=lambda t: t.finished_at, reverse=True)
        self.fail_offsets = set(fail_offsets)
        self.fail_auth = fail_auth
        self.offsets: list[int] = []

    def authenticate(self) -> str:
        if self.fail_auth:
            raise AuthenticationError("invalid credentials")
        return "token"

    def list_page(self, access_token: str, limit: int, offset: int) -> TestTakerPage:
        self.offsets.append(offset)
        if offset in self.fail_offsets:
            raise ApiError(f"boom at {offset}")
        return TestTakerPage(
            test_takers=self.test_takers[offset:offset + limit],
            total=len(self.test_takers),
        )


class InMemoryStore:
    """Watermark store and write-once ledger kept in dicts."""

    def __init__(self, watermark: Optional[int] = None):
        self.watermark = watermark
        self.watermark_writes: list[int] = []
        self.sent: dict[int, str] = {}
        self.failed: dict[int, str] = {}

    def get_watermark(self) -> Optional[int]:
        return self.watermark

    def set_watermark(self, timestamp: int) -> None:
        self.watermark = timestamp
        self.watermark_writes.append(timestamp)

    def has_outcome(self, test_taker_id: int) -> bool:
        return test_taker_id in self.sent or test_taker_id in self.failed

    def record_sent(self, test_taker_id: int, email: str) -> None:
        if not self.has_outcome(test_taker_id):
            self.sent[test_taker_id] = email

    def record_failed(self, test_taker_id: int, email: str) -> None:
        if not self.has_outcome(test_taker_id):
            self.failed[test_taker_id] = email

    @property
    def ledger_writes(self) -> int:
        return len(self.sent) + len(self.failed)


def build_test_taker(id: int, finished_at: int, percent: int = 90, is_demo: bool = False, email: Optional[str] = None):
    return TestTaker(
        id=id,
        name=f"Taker {id}",
        email=email if email is not None else f"taker{id}@example.com",
        is_demo=is_demo,
        percent=percent,
        finished_at=finished_at,
    )
