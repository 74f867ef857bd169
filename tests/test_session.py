"""Test suite for session materialization and duration parsing."""
from datetime import datetime, timedelta, timezone

import pytest

from cf_vault.vault.domains.duration import parse_duration
from cf_vault.vault.domains.errors import (
    ConfigurationError,
    InvalidDurationError,
    ProfileNotConfiguredError,
    RemoteAuthError,
    TokenMintFailedError,
)
from cf_vault.vault.domains.models import PermissionGroup, Policy, Profile
from cf_vault.vault.workflows.session import SessionMaterializer, token_name

from conftest import API_KEY, API_TOKEN, FakeCloudflareClient, FakeSecretStore

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _policies():
    return [Policy(resources={"com.cloudflare.api.account.*": "*"},
                   permission_groups=[PermissionGroup(id="g1")])]


class _ClientFactory:
    """Records how many clients were built and hands out one fake."""

    def __init__(self, client=None):
        self.client = client or FakeCloudflareClient()
        self.created = []

    def __call__(self, profile, secret):
        self.created.append((profile, secret))
        return self.client


class TestParseDuration:
    """Test suite for parse_duration."""

    @pytest.mark.parametrize("value,expected", [
        ("1h", timedelta(hours=1)),
        ("15m", timedelta(minutes=15)),
        ("90s", timedelta(seconds=90)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(minutes=90)),
        ("500ms", timedelta(milliseconds=500)),
        ("2h45m30s", timedelta(hours=2, minutes=45, seconds=30)),
    ])
    def test_valid_durations(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["1x", "", "   ", "h", "10", "-1h", "1h 30m", "0s", "1d"])
    def test_invalid_durations(self, value):
        with pytest.raises(InvalidDurationError):
            parse_duration(value)


class TestStaticSession:
    """Test suite for profiles without a session duration."""

    def test_api_token_exported_verbatim(self):
        """Test that the stored token is exported under both prefixes."""
        store = FakeSecretStore({"dev-api_token": API_TOKEN})
        factory = _ClientFactory()
        env = SessionMaterializer(store, client_factory=factory).materialize(
            "dev", Profile(auth_type="api_token"))

        assert env == {
            "CLOUDFLARE_API_TOKEN": API_TOKEN,
            "CF_API_TOKEN": API_TOKEN,
            "CLOUDFLARE_VAULT_SESSION": "dev",
        }
        assert factory.created == []

    def test_api_key_exports_email(self):
        """Test that API key sessions also export the email."""
        store = FakeSecretStore({"dev-api_key": API_KEY})
        factory = _ClientFactory()
        env = SessionMaterializer(store, client_factory=factory).materialize(
            "dev", Profile(auth_type="api_key", email="a@b.com"))

        assert env["CLOUDFLARE_API_KEY"] == API_KEY
        assert env["CF_API_KEY"] == API_KEY
        assert env["CLOUDFLARE_EMAIL"] == "a@b.com"
        assert env["CF_EMAIL"] == "a@b.com"
        assert env["CLOUDFLARE_VAULT_SESSION"] == "dev"
        assert "CLOUDFLARE_SESSION_EXPIRY" not in env
        assert factory.created == []

    def test_missing_secret(self):
        """Test that a profile without a stored secret is reported as not configured."""
        with pytest.raises(ProfileNotConfiguredError) as exc_info:
            SessionMaterializer(FakeSecretStore()).materialize("dev", Profile(auth_type="api_token"))
        assert "cf-vault add dev" in str(exc_info.value)

    def test_unknown_auth_type(self):
        store = FakeSecretStore({"dev-oauth": "x"})
        with pytest.raises(ConfigurationError):
            SessionMaterializer(store).materialize("dev", Profile(auth_type="oauth"))


class TestDynamicSession:
    """Test suite for profiles that mint short lived tokens."""

    def _profile(self, duration="1h", auth_type="api_token", email=""):
        return Profile(auth_type=auth_type, email=email, session_duration=duration, policies=_policies())

    def test_mints_scoped_expiring_token(self):
        """Test the token request and the exported variables."""
        store = FakeSecretStore({"prod-api_token": API_TOKEN})
        factory = _ClientFactory()
        profile = self._profile()

        env = SessionMaterializer(store, client_factory=factory, clock=lambda: NOW).materialize("prod", profile)

        expires = NOW + timedelta(seconds=3600)
        assert factory.created == [(profile, API_TOKEN)]
        _, name, not_before, expires_on, policies = factory.client.calls[0]
        assert not_before == NOW
        assert expires_on == expires
        assert policies == profile.policies
        assert name == f"cf-vault-{int(expires.timestamp())}"

        assert env == {
            "CLOUDFLARE_API_TOKEN": "minted-token-value",
            "CF_API_TOKEN": "minted-token-value",
            "CLOUDFLARE_SESSION_EXPIRY": str(int(expires.timestamp())),
            "CLOUDFLARE_VAULT_SESSION": "prod",
        }
        assert API_TOKEN not in env.values()

    def test_api_key_profile_mints_token(self):
        """Test that API key profiles authenticate with key + email and export only the token."""
        store = FakeSecretStore({"prod-api_key": API_KEY})
        factory = _ClientFactory()
        env = SessionMaterializer(store, client_factory=factory, clock=lambda: NOW).materialize(
            "prod", self._profile(auth_type="api_key", email="a@b.com"))

        assert env["CLOUDFLARE_API_TOKEN"] == "minted-token-value"
        assert "CLOUDFLARE_API_KEY" not in env
        assert "CLOUDFLARE_EMAIL" not in env

    def test_invalid_duration_makes_no_calls(self):
        """Test that a malformed duration fails before the secret store or network."""
        store = FakeSecretStore({"prod-api_token": API_TOKEN})
        factory = _ClientFactory()

        with pytest.raises(InvalidDurationError):
            SessionMaterializer(store, client_factory=factory).materialize("prod", self._profile("1x"))

        assert store.reads == []
        assert factory.created == []

    def test_missing_policies(self):
        """Test that a duration without policies is a configuration error."""
        store = FakeSecretStore({"prod-api_token": API_TOKEN})
        profile = Profile(auth_type="api_token", session_duration="1h")
        with pytest.raises(ConfigurationError):
            SessionMaterializer(store).materialize("prod", profile)
        assert store.reads == []

    def test_mint_failure_is_fatal(self):
        """Test that a mint failure propagates once, without retry."""
        store = FakeSecretStore({"prod-api_token": API_TOKEN})
        client = FakeCloudflareClient(error=TokenMintFailedError("10000: Authentication error"))
        factory = _ClientFactory(client)

        with pytest.raises(TokenMintFailedError):
            SessionMaterializer(store, client_factory=factory, clock=lambda: NOW).materialize(
                "prod", self._profile())

        assert len(client.calls) == 1
        assert store.secrets == {"prod-api_token": API_TOKEN}

    def test_client_setup_failure_reported_as_mint_failure(self):
        """Test that other remote auth errors surface as TokenMintFailedError."""
        store = FakeSecretStore({"prod-api_key": API_KEY})

        def factory(profile, secret):
            raise RemoteAuthError("API key authentication requires an email address")

        with pytest.raises(TokenMintFailedError):
            SessionMaterializer(store, client_factory=factory, clock=lambda: NOW).materialize(
                "prod", self._profile(auth_type="api_key"))

    def test_token_name(self):
        assert token_name(NOW) == f"cf-vault-{int(NOW.timestamp())}"
