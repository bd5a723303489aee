"""Small shared helpers."""

import re

_EMAIL_PATTERN = re.compile(
    r'^(([^<>()\[\]\\.,;:\s@"]+(\.[^<>()\[\]\\.,;:\s@"]+)*)|(".+"))'
    r"@(([0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3})"
    r"|(([a-zA-Z\-0-9]+\.)+[a-zA-Z]{2,}))$"
)


def validate_email(email: str | None) -> bool:
    """Return True if ``email`` has a plausible address shape.

    Accepts quoted local parts, IPv4 domains and modern TLDs such as
    ``.lawyer``; rejects addresses without a dotted domain.
    """
    if not email:
        return False
    return _EMAIL_PATTERN.match(email) is not None
