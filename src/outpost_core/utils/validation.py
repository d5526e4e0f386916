"""Input validation utilities."""

import re

# Characters allowed in a DNS label
_DNS_UNSAFE_RE = re.compile(r"[^a-z0-9-]")

# Safe identifier pattern: alphanumeric, underscores, hyphens
SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]*$")


def sanitize_dns_label(name: str) -> str:
    """Turn a display name into a DNS-safe label.

    Lowercases the name and replaces every character outside ``[a-z0-9-]``
    with ``-``.

    Args:
        name: Display name

    Returns:
        Sanitized label

    Raises:
        ValueError: If the name is empty
    """
    if not name:
        raise ValueError("name cannot be empty")
    return _DNS_UNSAFE_RE.sub("-", name.lower())


def validate_identifier(value: str, name: str = "identifier", max_length: int = 128) -> str:
    """Validate a safe identifier (tenant_id, resource name).

    Args:
        value: The identifier to validate
        name: Name of the field for error messages
        max_length: Maximum allowed length

    Returns:
        The validated identifier

    Raises:
        ValueError: If the identifier is invalid
    """
    if not value:
        raise ValueError(f"{name} cannot be empty")

    if len(value) > max_length:
        raise ValueError(f"{name} exceeds maximum length of {max_length}")

    if not SAFE_IDENTIFIER_RE.match(value):
        raise ValueError(
            f"Invalid {name}: must start with alphanumeric and contain only "
            "alphanumeric characters, underscores, and hyphens"
        )

    return value


def sql_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SQL string."""
    return value.replace("'", "''")
