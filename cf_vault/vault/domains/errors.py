"""Exception hierarchy for cf-vault.

Every error is fatal to the invoking command: nothing here is retried and
nothing falls back to a weaker alternative.
"""


class VaultError(Exception):
    """Base class for all cf-vault errors."""
    pass


class ConfigurationError(VaultError):
    """Missing or malformed profile or config file."""
    pass


class ProfileNotFoundError(ConfigurationError):
    """No profile with the requested name exists."""

    def __init__(self, profile_name: str, config_path: str):
        self.profile_name = profile_name
        super().__init__(
            f"no profile matching '{profile_name}' found in the configuration file at {config_path}"
        )


class ProfileNotConfiguredError(ConfigurationError):
    """The profile exists but its secret was never stored."""

    def __init__(self, profile_name: str):
        self.profile_name = profile_name
        super().__init__(
            f"no credentials stored for profile '{profile_name}', run 'cf-vault add {profile_name}' again"
        )


class InvalidDurationError(ConfigurationError):
    """Session duration could not be parsed."""

    def __init__(self, value: str, reason: str = "invalid duration"):
        self.value = value
        super().__init__(f"{reason}: '{value}' (examples: 15m, 1h, 1h30m)")


class InvalidCredentialError(ConfigurationError):
    """Credential value matches neither an API token nor an API key."""
    pass


class SecretStoreError(VaultError):
    """Secret store backend failure."""
    pass


class SecretNotFoundError(SecretStoreError):
    """No secret stored under the key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"no secret stored under '{key}'")


class BackendUnavailableError(SecretStoreError):
    """Secret store backend could not be opened or reached."""
    pass


class WriteDeniedError(SecretStoreError):
    """Secret store refused to persist the secret."""
    pass


class DecryptionFailedError(SecretStoreError):
    """Stored secret could not be decrypted, usually a wrong passphrase."""
    pass


class RemoteAuthError(VaultError):
    """Remote API rejected the credentials or could not be reached."""
    pass


class TokenMintFailedError(RemoteAuthError):
    """Creating a short lived token failed."""
    pass


class PolicyError(VaultError):
    """Policy synthesis failure."""
    pass


class UnknownTemplateError(PolicyError):
    """Template name is not one of the known templates."""

    def __init__(self, template: str, valid):
        self.template = template
        super().__init__(
            f"unable to generate policy for '{template}', valid policy names: [{', '.join(valid)}]"
        )


class SessionGuardError(VaultError):
    """Session safety check failed."""
    pass


class NestedSessionError(SessionGuardError):
    """A vault session is already active in this environment."""

    def __init__(self, marker: str, active_profile: str):
        self.active_profile = active_profile
        super().__init__(
            f"cf-vault sessions shouldn't be nested (profile '{active_profile}' is active), "
            f"unset {marker} to continue or open a new shell session"
        )


class LaunchError(VaultError):
    """Target process could not be launched."""
    pass


class ExecutableNotFoundError(LaunchError):
    """Requested command is not on the executable search path."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"couldn't find the executable '{command}'")
