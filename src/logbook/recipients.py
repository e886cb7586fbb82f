"""
Report email recipients.

Recipients live in storage so they can be changed while the logbook runs.
Addresses from EMAIL_RECIPIENTS are added at startup; removing one of those
through the API lasts until the next restart.
"""

import logging
import re
from typing import List, Sequence

from .errors import InvalidRecipient

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(email) -> str:
    """
    Trimmed address, if it looks like one.

    Raises:
        InvalidRecipient: Not a string, empty, or not name@domain.tld
    """
    if not isinstance(email, str):
        raise InvalidRecipient("Email must be a string")
    trimmed = email.strip()
    if not trimmed:
        raise InvalidRecipient("Email cannot be empty")
    if not _EMAIL_RE.match(trimmed):
        raise InvalidRecipient("Invalid email format")
    return trimmed


class RecipientBook:
    """Recipient list backed by storage."""

    def __init__(self, storage, seed: Sequence[str] = ()):
        self.storage = storage
        self.seed = [s for s in seed if s and s.strip()]

    def load_seed(self) -> int:
        """Add configured recipients that are not stored yet."""
        added = 0
        for email in self.seed:
            try:
                address = validate_email(email)
            except InvalidRecipient as e:
                logger.warning(f"Ignoring configured recipient {email!r}: {e.reason}")
                continue
            if self.storage.add_recipient(address):
                added += 1
        if added:
            logger.info(f"Added {added} configured email recipient(s)")
        return added

    def recipients(self) -> List[str]:
        return self.storage.list_recipients()

    def add(self, email) -> List[str]:
        address = validate_email(email)
        if not self.storage.add_recipient(address):
            raise InvalidRecipient("Email already exists in recipient list")
        logger.info(f"Email recipient added: {address}")
        return self.recipients()

    def remove(self, email: str) -> List[str]:
        if not self.storage.remove_recipient(email):
            raise InvalidRecipient("Email not found in recipient list", not_found=True)
        logger.info(f"Email recipient removed: {email}")
        return self.recipients()
