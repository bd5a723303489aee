"""Unit tests for email shape validation."""

import pytest

from billing_processor.utils import validate_email


@pytest.mark.parametrize(
    "email",
    [
        "user@domain.tld",
        "first.last@sub.domain.com",
        "someone@firm.lawyer",
        '"quoted name"@domain.com',
        "user@127.0.0.1",
    ],
)
def test_valid_emails(email):
    assert validate_email(email) is True


@pytest.mark.parametrize(
    "email",
    ["wrong@domain", "no-at-sign.com", "two@@domain.com", "spaces in@domain.com", "", None],
)
def test_invalid_emails(email):
    assert validate_email(email) is False
