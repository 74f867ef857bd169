"""Input validation for CLI arguments."""
import re
import sys


def validate_profile_name(name: str) -> None:
    """
    Validate a profile name.

    Profile names become part of keyring keys, so only [a-zA-Z0-9_.-] is allowed.

    Args:
        name: Profile name to validate

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not name or not name.strip():
        print("Error: Profile name cannot be empty", file=sys.stderr)
        sys.exit(2)

    if not re.match(r'^[a-zA-Z0-9_.-]+$', name.strip()):
        print(f"Error: Invalid profile name '{name}'", file=sys.stderr)
        print("\nAllowed characters: letters, numbers, dots (.), underscores (_), hyphens (-)", file=sys.stderr)
        print("\nExamples of valid names:", file=sys.stderr)
        print("  ✓ staging", file=sys.stderr)
        print("  ✓ prod-readonly", file=sys.stderr)
        print("  ✓ example.com", file=sys.stderr)
        sys.exit(2)


def validate_auth_value(value: str) -> None:
    """
    Validate the credential entered at the prompt is not empty.

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not value or value.strip() == "":
        print("Error: Authentication value cannot be empty", file=sys.stderr)
        print("\nPaste either an API token or your global API key.", file=sys.stderr)
        sys.exit(2)
