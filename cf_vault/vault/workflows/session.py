"""Turn a profile and its stored secret into session environment variables."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from ..domains.cloudflare_client import CloudflareClient
from ..domains.config_loader import PROJECT_NAME
from ..domains.duration import parse_duration
from ..domains.errors import (
    ConfigurationError,
    ProfileNotConfiguredError,
    RemoteAuthError,
    SecretNotFoundError,
    TokenMintFailedError,
)
from ..domains.models import AUTH_API_KEY, AUTH_API_TOKEN, Profile, secret_key_for

logger = logging.getLogger(__name__)

SESSION_MARKER = "CLOUDFLARE_VAULT_SESSION"
SESSION_EXPIRY = "CLOUDFLARE_SESSION_EXPIRY"

# Long and short variable prefixes, for tools following either convention.
ENV_PREFIXES = ("CLOUDFLARE", "CF")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def static_environment(profile: Profile, secret: str) -> Dict[str, str]:
    """Export the stored secret itself, plus the email for API key auth."""
    env = {}
    if profile.auth_type == AUTH_API_KEY:
        for prefix in ENV_PREFIXES:
            env[f"{prefix}_EMAIL"] = profile.email
            env[f"{prefix}_API_KEY"] = secret
    elif profile.auth_type == AUTH_API_TOKEN:
        for prefix in ENV_PREFIXES:
            env[f"{prefix}_API_TOKEN"] = secret
    else:
        raise ConfigurationError(f"unsupported auth_type '{profile.auth_type}'")
    return env


def token_name(expires_on: datetime) -> str:
    """Deterministic token name so minted tokens can be traced back to cf-vault."""
    return f"{PROJECT_NAME}-{int(expires_on.timestamp())}"


class SessionMaterializer:
    """
    Builds the environment for "being logged in as" a profile.

    Profiles without a session_duration export the stored secret as is.
    Profiles with one get a freshly minted token scoped to the profile's
    policies and expiring after session_duration.
    """

    def __init__(self, secret_store,
                 client_factory: Callable[[Profile, str], CloudflareClient] = CloudflareClient.for_profile,
                 clock: Optional[Callable[[], datetime]] = None):
        self.secret_store = secret_store
        self.client_factory = client_factory
        self.clock = clock or _utcnow

    def materialize(self, profile_name: str, profile: Profile) -> Dict[str, str]:
        """
        Produce the session environment for a profile.

        Raises:
            InvalidDurationError: If session_duration is malformed
            ProfileNotConfiguredError: If no secret is stored for the profile
            TokenMintFailedError: If a short lived token can't be created
        """
        # Validate before touching the secret store or the network.
        duration = parse_duration(profile.session_duration) if profile.session_duration else None
        if duration is not None and not profile.policies:
            raise ConfigurationError(
                f"profile '{profile_name}' sets session_duration but has no policies, "
                f"re-add it with --profile-template"
            )

        secret = self._read_secret(profile_name, profile)

        if duration is None:
            logger.debug("using long lived credentials")
            env = static_environment(profile, secret)
        else:
            logger.debug(f"using short lived token valid for {profile.session_duration}")
            env = self._mint_environment(profile, secret, duration)

        env[SESSION_MARKER] = profile_name
        return env

    def _read_secret(self, profile_name: str, profile: Profile) -> str:
        key = secret_key_for(profile_name, profile.auth_type)
        try:
            return self.secret_store.get(key)
        except SecretNotFoundError as e:
            raise ProfileNotConfiguredError(profile_name) from e

    def _mint_environment(self, profile: Profile, secret: str, duration: timedelta) -> Dict[str, str]:
        now = self.clock().replace(microsecond=0)
        expires_on = now + duration
        name = token_name(expires_on)

        try:
            client = self.client_factory(profile, secret)
            token = client.create_token(name, not_before=now, expires_on=expires_on,
                                        policies=profile.policies)
        except TokenMintFailedError:
            raise
        except RemoteAuthError as e:
            raise TokenMintFailedError(f"failed to create API token: {e}") from e

        expiry = str(int(expires_on.timestamp()))
        env = {f"{prefix}_API_TOKEN": token for prefix in ENV_PREFIXES}
        env[SESSION_EXPIRY] = expiry
        return env
