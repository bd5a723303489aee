"""Identity model as seen by the billing service."""

from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """An account owner returned by the user service."""

    id: str
    email: str | None = None
