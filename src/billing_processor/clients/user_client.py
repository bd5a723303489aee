"""User service client for owner lookups."""

import uuid
from typing import Protocol
from urllib.parse import quote

import httpx
import structlog

from billing_processor.models import IdentityLookupError, User

logger = structlog.get_logger(__name__)


class UserDirectory(Protocol):
    """Read-only view of the identity store used by the billing service."""

    async def get_user(self, owner: str) -> User | None:
        ...


class UserServiceClient:
    """
    Client for the user service's internal lookup endpoint.

    The billing service only reads identity data: it checks that an owner
    exists and fetches their email before registering a processor.
    """

    def __init__(
        self,
        base_url: str,
        service_auth_token: str,
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the user service client.

        Args:
            base_url: Base URL of the user service (e.g., "http://localhost:8100")
            service_auth_token: Shared secret sent as X-Service-Auth
            timeout_seconds: Per-request timeout
            http_client: Optional pre-configured client (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.service_auth_token = service_auth_token
        self.timeout_seconds = timeout_seconds
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

        logger.info(
            "user_service_client_initialized",
            base_url=base_url,
            timeout_seconds=timeout_seconds,
        )

    async def close(self) -> None:
        """Release the underlying httpx connection pool."""
        await self.http_client.aclose()

    async def get_user(self, owner: str) -> User | None:
        """
        Look up an owner by identifier.

        Returns:
            The User, or None when the user service answers 404

        Raises:
            IdentityLookupError: 5xx, unexpected status, malformed body or timeout
        """
        request_id = str(uuid.uuid4())
        url = f"{self.base_url}/internal/v1/users/{quote(owner, safe='')}"

        try:
            response = await self.http_client.get(
                url,
                headers={
                    "Accept": "application/json",
                    "X-Service-Auth": self.service_auth_token,
                    "X-Request-ID": request_id,
                },
            )
        except httpx.TimeoutException as e:
            logger.error(
                "user_service_timeout",
                owner=owner,
                request_id=request_id,
                error=str(e),
            )
            raise IdentityLookupError("User service timeout") from e
        except httpx.RequestError as e:
            logger.error(
                "user_service_request_error",
                owner=owner,
                request_id=request_id,
                error=str(e),
            )
            raise IdentityLookupError(f"User service request error: {e}") from e

        if response.status_code == 404:
            logger.info("user_not_found", owner=owner, request_id=request_id)
            return None

        if response.status_code != 200:
            logger.error(
                "user_service_error",
                owner=owner,
                status_code=response.status_code,
                request_id=request_id,
            )
            raise IdentityLookupError(
                f"User service unavailable (status: {response.status_code})"
            )

        try:
            body = response.json()
            user = User(id=str(body.get("id") or owner), email=body.get("email"))
        except (ValueError, AttributeError) as e:
            logger.error(
                "user_service_malformed_response",
                owner=owner,
                request_id=request_id,
            )
            raise IdentityLookupError("User service returned a malformed body") from e

        return user

    async def __aenter__(self) -> "UserServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
