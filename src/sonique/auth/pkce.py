"""PKCE ``code_verifier`` / ``code_challenge`` generation (:rfc:`7636`).

The verifier is drawn from the unreserved character set with
:mod:`secrets`, and the challenge is the S256 transform: SHA-256 over the
UTF-8 verifier, URL-safe base64 encoded with the ``=`` padding stripped.

Example::

    pair = create_pair()
    assert derive_challenge(pair.verifier) == pair.challenge
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from sonique.models import PkcePair

UNRESERVED_ALPHABET = string.ascii_letters + string.digits + "-._~"
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64


def generate_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """Generate a random ``code_verifier``.

    Each character is chosen independently and uniformly from
    :data:`UNRESERVED_ALPHABET` using a cryptographically secure source.

    Args:
        length: Number of characters, between 43 and 128 inclusive.

    Returns:
        The verifier string.

    Raises:
        ValueError: If *length* is outside the range the protocol allows.
    """
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"code_verifier length must be between {MIN_VERIFIER_LENGTH} and "
            f"{MAX_VERIFIER_LENGTH}, got {length}"
        )
    return "".join(secrets.choice(UNRESERVED_ALPHABET) for _ in range(length))


def derive_challenge(verifier: str) -> str:
    """Return the S256 ``code_challenge`` for *verifier*."""
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def create_pair(length: int = DEFAULT_VERIFIER_LENGTH) -> PkcePair:
    """Generate a fresh verifier and its matching challenge."""
    verifier = generate_verifier(length)
    return PkcePair(verifier=verifier, challenge=derive_challenge(verifier))
