"""
Test Taker Notification Sync

Periodically pulls finished test takers from the assessment API and sends
each eligible one a single notification, remembering what was processed.
"""

__version__ = "1.0.0"
