"""
Data models shared by the sync components.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class EmailAddress:
    """A named mailbox."""

    name: str
    address: str


@dataclass(frozen=True)
class Email:
    """Notification content. Opaque to the sync engine."""

    subject: str
    body: str


@dataclass(frozen=True)
class TestTaker:
    """A finished test attempt as reported by the API."""

    __test__ = False  # not a pytest test class

    id: int
    name: str
    email: str
    is_demo: bool
    percent: int
    finished_at: int

    @classmethod
    def from_api_response(cls, data: dict) -> "TestTaker":
        """
        Create a TestTaker from an API list item.

        The contact info block, when filled in, overrides the account
        name and email.
        """
        contact_info = data.get("contact_info")
        if not isinstance(contact_info, dict):
            contact_info = {}

        name = contact_info.get("full_name") or data.get("name", "")
        email = contact_info.get("contact_email") or data.get("email", "")

        return cls(
            id=int(data["id"]),
            name=name,
            email=email,
            is_demo=bool(data.get("is_demo", False)),
            percent=int(data.get("percent") or 0),
            finished_at=int(data.get("finished_at") or 0),
        )

    @property
    def recipient(self) -> EmailAddress:
        return EmailAddress(name=self.name, address=self.email)


@dataclass(frozen=True)
class TestTakerEmail:
    """Ledger entry: which address a test taker was (or failed to be) notified at."""

    __test__ = False

    test_taker_id: int
    email: str

    def to_dict(self) -> dict:
        return {"test_taker_id": self.test_taker_id, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict) -> "TestTakerEmail":
        return cls(test_taker_id=int(data["test_taker_id"]), email=data["email"])


@dataclass
class TestTakerPage:
    """One page of the test takers listing."""

    __test__ = False

    test_takers: list[TestTaker] = field(default_factory=list)
    total: int = 0
