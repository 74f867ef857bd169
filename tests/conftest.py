"""Shared fixtures: fake collaborators for the secret store and Cloudflare API."""
from pathlib import Path

import pytest

from cf_vault.vault.domains.errors import SecretNotFoundError
from cf_vault.vault.domains.models import PermissionGroup

API_TOKEN = "AbCdEfGhIjKlMnOpQrStUvWxYz0123456789_-Ab"
API_KEY = "0123456789abcdef0123456789abcdef01234"


class FakeSecretStore:
    """In-memory secret store that records every read."""

    def __init__(self, secrets=None):
        self.secrets = dict(secrets or {})
        self.reads = []

    def set(self, key, secret):
        self.secrets[key] = secret

    def get(self, key):
        self.reads.append(key)
        if key not in self.secrets:
            raise SecretNotFoundError(key)
        return self.secrets[key]


class FakeCloudflareClient:
    """Stand-in for CloudflareClient that records calls instead of using the network."""

    def __init__(self, user_id="user-123", groups=None, token="minted-token-value", error=None):
        self.user_id = user_id
        self.groups = list(groups or [])
        self.token = token
        self.error = error
        self.calls = []

    def get_user_id(self):
        self.calls.append(("get_user_id",))
        if self.error:
            raise self.error
        return self.user_id

    def list_permission_groups(self):
        self.calls.append(("list_permission_groups",))
        return list(self.groups)

    def create_token(self, name, not_before, expires_on, policies):
        self.calls.append(("create_token", name, not_before, expires_on, policies))
        if self.error:
            raise self.error
        return self.token


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Fixture to create a temporary home directory for testing."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)
    monkeypatch.delenv("CF_VAULT_CONFIG", raising=False)
    monkeypatch.delenv("CLOUDFLARE_VAULT_SESSION", raising=False)
    return fake_home


@pytest.fixture
def secret_store():
    return FakeSecretStore()


@pytest.fixture
def sample_catalog():
    """A small permission group catalog shaped like the live API response."""
    return [
        PermissionGroup(id="g-dns-read", name="DNS Read",
                        scopes=["com.cloudflare.api.account.zone"]),
        PermissionGroup(id="g-dns-write", name="DNS Write",
                        scopes=["com.cloudflare.api.account.zone"]),
        PermissionGroup(id="g-workers-read", name="Workers Scripts Read",
                        scopes=["com.cloudflare.api.account"]),
        PermissionGroup(id="g-workers-write", name="Workers Scripts Write",
                        scopes=["com.cloudflare.api.account"]),
        PermissionGroup(id="g-logs-read", name="Logs Read",
                        scopes=["com.cloudflare.api.account", "com.cloudflare.api.account.zone"]),
        PermissionGroup(id="g-tokens-read", name="API Tokens Read",
                        scopes=["com.cloudflare.api.user"]),
        PermissionGroup(id="g-tokens-write", name="API Tokens Write",
                        scopes=["com.cloudflare.api.user"]),
        PermissionGroup(id="g-user-write", name="User Details Write",
                        scopes=["com.cloudflare.api.user"]),
        PermissionGroup(id="g-cache-purge", name="Cache Purge",
                        scopes=["com.cloudflare.api.account.zone"]),
    ]
