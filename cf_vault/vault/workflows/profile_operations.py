"""Workflows behind the add, exec and list commands."""
import os
import re
import logging
from typing import Callable, List, Mapping, NoReturn, Optional, Tuple

from ..domains.cloudflare_client import CloudflareClient
from ..domains.config_loader import ProfileStore
from ..domains.duration import parse_duration
from ..domains.errors import ConfigurationError, InvalidCredentialError, UnknownTemplateError
from ..domains.models import AUTH_API_KEY, AUTH_API_TOKEN, Profile, secret_key_for
from .launcher import ensure_not_nested, launch
from .policy_templates import TEMPLATES, build_template_policies
from .session import SessionMaterializer

logger = logging.getLogger(__name__)

_API_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]{40}")
_API_KEY_PATTERN = re.compile(r"[0-9a-f]{37}")


def detect_auth_type(value: str) -> str:
    """
    Work out whether a credential is an API token or a global API key.

    Raises:
        InvalidCredentialError: If it looks like neither
    """
    if _API_TOKEN_PATTERN.fullmatch(value):
        logger.debug("API token detected")
        return AUTH_API_TOKEN
    if _API_KEY_PATTERN.fullmatch(value):
        logger.debug("API key detected")
        return AUTH_API_KEY
    raise InvalidCredentialError("invalid API token or API key format")


def add_profile(profile_name: str, email: str, auth_value: str,
                profile_store: ProfileStore, secret_store,
                session_duration: Optional[str] = None,
                template: Optional[str] = None,
                client_factory: Callable[[Profile, str], CloudflareClient] = CloudflareClient.for_profile) -> Profile:
    """
    Create or replace a profile and store its secret.

    Everything that can be validated locally is checked before any network
    call; the profile document is only written once the secret is stored.

    Returns:
        The saved Profile
    """
    profile_name = profile_name.strip()
    email = (email or "").strip()
    auth_value = auth_value.strip()

    if not profile_name:
        raise ConfigurationError("profile name cannot be empty")

    auth_type = detect_auth_type(auth_value)
    if auth_type == AUTH_API_KEY and not email:
        raise ConfigurationError("an email address is required when using an API key")

    if session_duration:
        parse_duration(session_duration)
        if not template:
            raise ConfigurationError("--session-duration requires --profile-template to scope the short lived tokens")
    else:
        logger.debug("session-duration was not set, not using short lived tokens")

    if template and template not in TEMPLATES:
        raise UnknownTemplateError(template, TEMPLATES)

    profile = Profile(
        email=email,
        auth_type=auth_type,
        session_duration=session_duration or None,
    )

    if template:
        client = client_factory(profile, auth_value)
        profile.policies = build_template_policies(template, client)

    profiles = profile_store.load()
    existing = profiles.get(profile_name)
    if existing is not None:
        logger.debug(f"Replacing existing profile '{profile_name}'")
        profile.extra = dict(existing.extra)

    secret_store.set(secret_key_for(profile_name, auth_type), auth_value)

    profiles[profile_name] = profile
    profile_store.save(profiles)
    logger.debug(f"new profile '{profile_name}': auth_type={auth_type}, policies={len(profile.policies)}")
    return profile


def exec_profile(profile_name: str, command: Optional[List[str]],
                 profile_store: ProfileStore, materializer: SessionMaterializer,
                 ambient: Optional[Mapping[str, str]] = None,
                 execve=os.execve) -> NoReturn:
    """
    Run `command` (or a shell) with the profile's credentials.

    Never returns on success.
    """
    ambient = os.environ if ambient is None else ambient
    # Checked before any profile or secret is read.
    ensure_not_nested(ambient)

    logger.debug(f"using profile: {profile_name}")
    profile = profile_store.get(profile_name)
    session_env = materializer.materialize(profile_name, profile)
    logger.debug("environment is populated with credentials")
    launch(session_env, command, ambient=ambient, execve=execve)


def list_profiles(profile_store: ProfileStore) -> List[Tuple[str, str, str]]:
    """
    Summaries of all profiles as (name, auth_type, email), sorted by name.

    The email is only shown for API key profiles, where it is actually used.
    """
    rows = []
    for name, profile in sorted(profile_store.load().items()):
        email = profile.email if profile.auth_type == AUTH_API_KEY else ""
        rows.append((name, profile.auth_type, email))
    return rows
