"""
Eligibility rules for sending a notification.
"""

import re

from testtaker_notify.models import TestTaker

DEFAULT_THRESHOLD = 80

# Local part per RFC 5322 atext, domain as dot-separated DNS labels.
EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)


def is_valid_email(email: str) -> bool:
    """Check that an address is syntactically valid. Deliverability is not checked."""
    if not email:
        return False
    return EMAIL_PATTERN.fullmatch(email) is not None


def is_eligible(test_taker: TestTaker, threshold: int = DEFAULT_THRESHOLD) -> bool:
    """
    Decide whether a test taker should receive a notification.

    Args:
        test_taker: The record to check.
        threshold: Minimum completion percentage (inclusive).

    Returns:
        True when the score reaches the threshold, the attempt is not a
        demo and the contact email is valid.
    """
    return (
        test_taker.percent >= threshold
        and not test_taker.is_demo
        and is_valid_email(test_taker.email)
    )
