"""
Boundary validators for chat requests and registry edits.

Everything a client sends (messages, session ids, agent definitions,
attachment URLs) passes through these checks before the orchestrator or
the registry sees it. A failed check raises ValidationError, which the
HTTP layer maps to 400 and the CLI to exit code 1. No stream is opened
for a request that fails here.
"""

import ipaddress
import logging
import re
from collections.abc import Collection, Sized
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ATTACHMENT_URL_SCHEMES = frozenset({"http", "https"})
BLOCKED_HOSTS = frozenset({"localhost", "localhost.localdomain", "metadata.google.internal"})
INTERNAL_HOST_SUFFIXES = (".internal", ".local", ".localhost")

# Session ids become file names in the session store.
MAX_IDENTIFIER_LENGTH = 128
_IDENTIFIER_RE = re.compile(r"[A-Za-z][A-Za-z0-9_-]*")


class ValidationError(ValueError):
    """A client-supplied value was rejected. The message is safe to return."""


def validate_not_empty(value: str | None, field_name: str = "input") -> str:
    """Return value stripped; reject None, "" and whitespace."""
    stripped = (value or "").strip()
    if not stripped:
        raise ValidationError(f"{field_name} cannot be empty")
    return stripped


def validate_length(
    value: str,
    field_name: str = "input",
    min_length: int = 0,
    max_length: int = 100_000,
) -> str:
    size = len(value)
    if size < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")
    if size > max_length:
        raise ValidationError(
            f"{field_name} is too long ({size} characters, limit {max_length})"
        )
    return value


def validate_identifier(value: str, field_name: str = "identifier") -> str:
    """
    Ids that end up in file paths: a letter first, then letters, digits,
    "_" or "-". Rejects anything that could escape a directory ("../x").
    """
    if not value or len(value) > MAX_IDENTIFIER_LENGTH or not _IDENTIFIER_RE.fullmatch(value):
        raise ValidationError(
            f"{field_name} must start with a letter, use only letters, digits, "
            f"'_' or '-', and be at most {MAX_IDENTIFIER_LENGTH} characters"
        )
    return value


def validate_in_choices(value: str, choices: Collection[str], field_name: str = "value") -> str:
    if value not in choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(sorted(choices))}")
    return value


def validate_list_size(items: Sized, field_name: str = "list", max_items: int = 100) -> Sized:
    if len(items) > max_items:
        raise ValidationError(
            f"{field_name} allows at most {max_items} entries (got {len(items)})"
        )
    return items


def _is_non_public_address(hostname: str) -> bool:
    """True for IP literals that do not route to the public internet."""
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return not address.is_global or address.is_multicast


def validate_url(url: str, field_name: str = "url", allow_private: bool = False) -> str:
    """
    Check an attachment URL before the server fetches it.

    Only http(s) is allowed. Loopback, private, link-local and reserved
    addresses, metadata hosts and internal-looking names are refused unless
    allow_private is set (local development against a file server).

    Returns the stripped URL.
    """
    candidate = (url or "").strip()
    if not candidate:
        raise ValidationError(f"{field_name} cannot be empty")

    parsed = urlparse(candidate)
    if parsed.scheme not in ATTACHMENT_URL_SCHEMES:
        raise ValidationError(f"{field_name} must be http or https, not '{parsed.scheme}'")

    host = (parsed.hostname or "").lower()
    if not host:
        raise ValidationError(f"{field_name} has no host")
    if host in BLOCKED_HOSTS:
        raise ValidationError(f"{field_name} cannot point to {host}")

    if not allow_private:
        if _is_non_public_address(host):
            raise ValidationError(f"{field_name} cannot point to a private or reserved address")
        if host.endswith(INTERNAL_HOST_SUFFIXES):
            raise ValidationError(f"{field_name} cannot point to an internal host")

    logger.debug(f"[Validators] Attachment URL accepted: {parsed.scheme}://{host}")
    return candidate
