# ABOUTME: Secret and credential generation for deployment bootstrap
# ABOUTME: JWT signing secret reuse/generation and per-run database passwords

"""Deployment secrets: stable JWT signing key, fresh bootstrap passwords."""

from __future__ import annotations

import base64
import secrets
import string

import structlog

logger = structlog.get_logger(__name__)

DB_PASSWORD_ALPHABET = string.ascii_lowercase + string.digits


def ensure_jwt_secret(stored: str | None, nbytes: int = 64) -> str:
    """Return the stored JWT secret verbatim, or generate a new base64 secret.

    Already-deployed services validate tokens with the stored key, so an
    existing value is never regenerated.

    Args:
        stored: jwtSecretKey from the Configuration Store, if any
        nbytes: Random bytes behind a new secret
    """
    if stored:
        logger.debug("Reusing stored JWT secret")
        return stored
    logger.info("Generating new JWT secret", nbytes=nbytes)
    return base64.b64encode(secrets.token_bytes(nbytes)).decode()


def generate_db_password(length: int = 8) -> str:
    """Short alphanumeric database root password, new on every run."""
    return "".join(secrets.choice(DB_PASSWORD_ALPHABET) for _ in range(length))


def encode_admin_password(password: str) -> str:
    """Base64 form of the registry admin password, as Kubernetes secrets expect."""
    return base64.b64encode(password.encode()).decode()
