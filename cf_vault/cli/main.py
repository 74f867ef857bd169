"""CLI entrypoint for cf-vault."""
import sys
import getpass
import argparse
import logging

from .validators import validate_auth_value, validate_profile_name

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _set_verbosity(args):
    if getattr(args, "verbose", False):
        logging.getLogger().setLevel(logging.DEBUG)


def cmd_version(args):
    """Show version information."""
    print(f"cf-vault {VERSION}")


def cmd_add(args):
    """Add a new profile to the configuration and keychain."""
    from cf_vault.vault.domains.config_loader import ProfileStore
    from cf_vault.vault.domains.keyring_store import KeyringSecretStore
    from cf_vault.vault.workflows.profile_operations import add_profile

    validate_profile_name(args.profile)

    email = input("Email address: ").strip()
    auth_value = getpass.getpass("Authentication value (API key or API token): ")
    validate_auth_value(auth_value)

    add_profile(
        args.profile,
        email,
        auth_value,
        profile_store=ProfileStore(),
        secret_store=KeyringSecretStore(),
        session_duration=args.session_duration,
        template=args.profile_template,
    )
    print("\nSuccess! Credentials have been set and are now ready for use!")


def cmd_exec(args):
    """Execute a command with Cloudflare credentials populated."""
    from cf_vault.vault.domains.config_loader import ProfileStore
    from cf_vault.vault.domains.keyring_store import KeyringSecretStore
    from cf_vault.vault.workflows.profile_operations import exec_profile
    from cf_vault.vault.workflows.session import SessionMaterializer

    command = list(args.command or [])
    # argparse passes the '--' separator through with REMAINDER
    if command and command[0] == "--":
        command = command[1:]

    exec_profile(
        args.profile,
        command,
        profile_store=ProfileStore(),
        materializer=SessionMaterializer(KeyringSecretStore()),
    )


def cmd_list(args):
    """List all available profiles."""
    from cf_vault.vault.domains.config_loader import ProfileStore
    from cf_vault.vault.workflows.profile_operations import list_profiles

    store = ProfileStore()
    rows = list_profiles(store)
    if not rows:
        print(f"no profiles found at {store.path}")
        return

    print("PROFILE NAME\tAUTHENTICATION TYPE\tEMAIL")
    for name, auth_type, email in rows:
        print(f"{name}\t{auth_type}\t{email}")


def build_parser():
    verbose_parent = argparse.ArgumentParser(add_help=False)
    verbose_parent.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Increase the verbosity of the output"
    )

    parser = argparse.ArgumentParser(
        prog="cf-vault",
        description="Manage your Cloudflare credentials, securely.",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (keyring, configuration, API, launch failures)
  2 - Usage error (invalid arguments, invalid profile name, etc.)

Environment variables:
  CF_VAULT_CONFIG          - Path to the profile configuration file
  CF_VAULT_FILE_PASSPHRASE - Passphrase for the encrypted file keyring
  CF_VAULT_BACKEND         - Set to 'file' to force the encrypted file keyring

Configuration:
  Default location: ~/.cf-vault/config.yml
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Increase the verbosity of the output"
    )

    subparsers = parser.add_subparsers(dest="command_name", help="Available commands")

    subparsers.add_parser(
        "version",
        parents=[verbose_parent],
        help="Print the version string of cf-vault",
    )

    add_parser = subparsers.add_parser(
        "add",
        parents=[verbose_parent],
        help="Add a new profile to your configuration and keychain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Add a new profile (you will be prompted for credentials).

  $ cf-vault add example-profile
  $ cf-vault add staging --profile-template read-only --session-duration 1h

With --session-duration every exec mints a short lived token scoped by the
policies of --profile-template instead of exporting the stored credential.
        """
    )
    add_parser.add_argument("profile", help="Name of the profile")
    add_parser.add_argument(
        "--profile-template",
        help="Create profile with a predefined permissions and resources template (read-only, write-everything)"
    )
    add_parser.add_argument(
        "--session-duration",
        help="TTL of short lived tokens requests (e.g. 15m, 1h, 1h30m)"
    )

    exec_parser = subparsers.add_parser(
        "exec",
        parents=[verbose_parent],
        help="Execute a command with Cloudflare credentials populated",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Execute a command with the credentials of a profile in its environment.
Without a command a new shell ($SHELL) is started instead.

  $ cf-vault exec staging -- terraform plan
  $ cf-vault exec staging
        """
    )
    exec_parser.add_argument("profile", help="Name of the profile")
    exec_parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command to run, followed by its arguments"
    )

    subparsers.add_parser(
        "list",
        parents=[verbose_parent],
        help="List all available profiles",
    )

    return parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (keyring, configuration, API, launch failures)
        2 - Usage errors (invalid arguments, invalid profile name, etc.)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # If no command provided, show help and exit with usage error code
    if not args.command_name:
        parser.print_help()
        sys.exit(2)

    _set_verbosity(args)

    # Route to command handlers
    try:
        if args.command_name == "version":
            cmd_version(args)
        elif args.command_name == "add":
            cmd_add(args)
        elif args.command_name == "exec":
            cmd_exec(args)
        elif args.command_name == "list":
            cmd_list(args)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.debug("command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
