"""Cloudflare API client wrapper."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from .errors import RemoteAuthError, TokenMintFailedError
from .models import AUTH_API_KEY, AUTH_API_TOKEN, PermissionGroup, Policy

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_TIMEOUT = 30


def format_timestamp(moment: datetime) -> str:
    """RFC 3339 UTC with second precision, as the token API expects."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class CloudflareClient:
    """Thin client for the handful of user/token endpoints cf-vault needs."""

    def __init__(self, auth_type: str, secret: str, email: str = "",
                 base_url: str = API_BASE_URL, timeout: int = DEFAULT_TIMEOUT):
        if auth_type not in (AUTH_API_KEY, AUTH_API_TOKEN):
            raise RemoteAuthError(f"unsupported authentication type: {auth_type}")
        if auth_type == AUTH_API_KEY and not email:
            raise RemoteAuthError("API key authentication requires an email address")

        self.auth_type = auth_type
        self._secret = secret
        self._email = email
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[requests.Session] = None

    @classmethod
    def for_profile(cls, profile, secret: str) -> "CloudflareClient":
        return cls(profile.auth_type, secret, email=profile.email)

    @property
    def session(self) -> requests.Session:
        """Lazy-initialize the HTTP session with auth headers."""
        if self._session is None:
            session = requests.Session()
            session.headers["Content-Type"] = "application/json"
            if self.auth_type == AUTH_API_TOKEN:
                session.headers["Authorization"] = f"Bearer {self._secret}"
            else:
                session.headers["X-Auth-Key"] = self._secret
                session.headers["X-Auth-Email"] = self._email
            self._session = session
        return self._session

    def _request(self, method: str, path: str, error_cls=RemoteAuthError, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise error_cls(f"request to {path} failed: {e}")

        try:
            payload = response.json()
        except ValueError:
            raise error_cls(f"request to {path} failed with HTTP {response.status_code}: invalid JSON response")

        if not isinstance(payload, dict):
            raise error_cls(f"request to {path} failed with HTTP {response.status_code}: unexpected response body")

        if not response.ok or not payload.get("success", False):
            messages = "; ".join(
                f"{err.get('code')}: {err.get('message')}" for err in payload.get("errors") or []
            ) or "no error details returned"
            raise error_cls(f"request to {path} failed with HTTP {response.status_code}: {messages}")

        return payload.get("result")

    def get_user_id(self) -> str:
        """ID of the user the credentials belong to."""
        result = self._request("GET", "/user")
        if not isinstance(result, dict) or not result.get("id"):
            raise RemoteAuthError("user details response did not include an ID")
        return result["id"]

    def list_permission_groups(self) -> List[PermissionGroup]:
        """Every permission group the current user may grant, in API order."""
        result = self._request("GET", "/user/tokens/permission_groups") or []
        return [PermissionGroup.from_dict(item) for item in result]

    def create_token(self, name: str, not_before: datetime, expires_on: datetime,
                     policies: List[Policy]) -> str:
        """
        Create an API token and return its secret value.

        Raises:
            TokenMintFailedError: If the API rejects the request
        """
        body: Dict[str, Any] = {
            "name": name,
            "not_before": format_timestamp(not_before),
            "expires_on": format_timestamp(expires_on),
            "policies": [policy.to_dict() for policy in policies],
        }
        result = self._request("POST", "/user/tokens", error_cls=TokenMintFailedError, json=body)
        if not result or not result.get("value"):
            raise TokenMintFailedError("token creation response did not include a token value")
        logger.debug(f"Created token {name} expiring {body['expires_on']}")
        return result["value"]
