"""
Identity Provider Directory Client

Read-only lookups of accounts held by the external identity provider, used by
the cross-store audit to confirm that every stored authId has a provider
account and that the account label follows the employee code.

Uses the provider's account lookup contract:
- POST {base_url}/v1/projects/{project_id}/accounts:lookup
- body {"localId": ["<uid>"]}
- response {"users": [{"localId", "email", "displayName", "disabled"}]}
  ("users" is absent when the account does not exist)
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, Protocol

import httpx

from .errors import ProviderUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderAccount:
    """Account as seen by the identity provider."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    disabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "display_name": self.display_name,
            "disabled": self.disabled,
        }


class ProviderDirectory(Protocol):
    async def get_account(self, uid: str) -> Optional[ProviderAccount]: ...


def expected_label(employee_code: str, domain: str) -> str:
    """Email label the provider account should carry for an employee code."""
    return f"{employee_code}@{domain}"


class HttpProviderDirectory:
    """
    ProviderDirectory over the provider's REST account API.

    One AsyncClient is reused for the lifetime of the directory; close it with
    aclose() (or use the directory as an async context manager).
    """

    def __init__(
        self,
        base_url: str,
        project_id: str,
        token: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.project_id = project_id
        self.token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings) -> "HttpProviderDirectory":
        return cls(
            base_url=settings.AUTH_PROVIDER_BASE_URL,
            project_id=settings.AUTH_PROVIDER_PROJECT_ID,
            token=settings.AUTH_PROVIDER_TOKEN,
            timeout=settings.AUTH_PROVIDER_TIMEOUT_SECONDS,
        )

    async def __aenter__(self) -> "HttpProviderDirectory":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_account(self, uid: str) -> Optional[ProviderAccount]:
        """
        Look up one provider account.

        Returns:
            ProviderAccount, or None when the provider has no such account

        Raises:
            ProviderUnavailable: transport failure, unexpected status or malformed body
        """
        url = f"{self.base_url}/v1/projects/{self.project_id}/accounts:lookup"
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self._client.post(url, headers=headers, json={"localId": [uid]})
        except httpx.TimeoutException as e:
            logger.error(f"Provider lookup timed out for {uid}")
            raise ProviderUnavailable("Identity provider lookup timed out", {"uid": uid}) from e
        except httpx.RequestError as e:
            logger.error(f"Provider lookup request error for {uid}: {e}")
            raise ProviderUnavailable("Identity provider unreachable", {"uid": uid}) from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error(f"Provider returned {response.status_code} for {uid}: {response.text[:200]}")
            raise ProviderUnavailable(
                f"Identity provider returned {response.status_code}",
                {"uid": uid, "status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Provider returned a non-JSON body for {uid}: {response.text[:200]}")
            raise ProviderUnavailable("Identity provider returned an unreadable response", {"uid": uid}) from e

        users = (body.get("users") or []) if isinstance(body, dict) else None
        if not isinstance(users, list) or not all(isinstance(u, dict) for u in users):
            logger.error(f"Provider returned an unexpected body for {uid}: {response.text[:200]}")
            raise ProviderUnavailable("Identity provider returned an unexpected response", {"uid": uid})
        if not users:
            return None

        user = users[0]
        return ProviderAccount(
            uid=user.get("localId", uid),
            email=user.get("email"),
            display_name=user.get("displayName"),
            disabled=bool(user.get("disabled", False)),
        )
