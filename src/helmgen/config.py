# ABOUTME: Configuration management for the helmgen generator
# ABOUTME: Handles environment variables, file names, and generation defaults

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module holds the settings that control HOW helmgen runs, as opposed to
WHAT it deploys. Deployment answers (namespace, service type, ...) live in
the Configuration Store; this module covers things like:

1. WHERE the store and per-application build files are found
2. WHICH defaults are offered to the user (push command, ingress domain)
3. HOW LOUD logging is, and whether an audit trail is written

=============================================================================
ENVIRONMENT VARIABLE MAPPING
=============================================================================

All settings use the HELMGEN_ prefix:

    HELMGEN_LOG_LEVEL              -> DEBUG, INFO, WARNING, ERROR, CRITICAL
    HELMGEN_JSON_LOGS              -> Emit JSON log lines instead of console text
    HELMGEN_STORE_FILE             -> Store file name in the destination directory
    HELMGEN_STORE_SECTION          -> Section of the store file we own
    HELMGEN_APP_CONFIG_FILE        -> Per-application build metadata file name
    HELMGEN_SKIP_CHECKS            -> Do not probe the local helm client
    HELMGEN_HELM_BINARY            -> helm executable name or path
    HELMGEN_PROBE_TIMEOUT          -> Seconds to wait for `helm version`
    HELMGEN_JWT_SECRET_BYTES       -> Entropy for a newly generated JWT secret
    HELMGEN_DB_PASSWORD_LENGTH     -> Length of the bootstrap database password
    HELMGEN_DEFAULT_PUSH_COMMAND   -> Offered Docker push command
    HELMGEN_DEFAULT_INGRESS_DOMAIN -> Offered ingress root domain
    HELMGEN_AUDIT_LOG              -> JSON-lines audit file (stderr when unset)

An optional .env file can be pointed at with HELMGEN_ENV_FILE.
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeneratorSettings(BaseSettings):
    """
    Generator configuration.

    USAGE:
    ------
        settings = load_settings()
        print(settings.store_file)        # ".yo-rc.json"
        print(settings.jwt_secret_bytes)  # 64

    The store and the application build files share a name by default: both
    are .yo-rc.json files, one in the deployment directory and one in every
    application folder.
    """

    model_config = SettingsConfigDict(
        env_prefix="HELMGEN_",
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="WARNING",
        description="Logging level",
    )
    # WARNING by default: this is an interactive tool and stage chatter would
    # drown the questions. Use INFO or DEBUG to trace the pipeline.

    json_logs: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )

    audit_log: Path | None = Field(
        default=None,
        description="Path to the generation audit log file",
    )
    # Each line is a JSON object: timestamp, run_id, stage, target, result.

    # -------------------------------------------------------------------------
    # FILE LAYOUT
    # -------------------------------------------------------------------------

    store_file: str = Field(
        default=".yo-rc.json",
        description="Configuration store file name inside the destination directory",
    )

    store_section: str = Field(
        default="generator-jhipster",
        description="Top-level section of the store file owned by helmgen",
    )
    # Other sections in the same file belong to other tools and are preserved
    # verbatim on commit.

    app_config_file: str = Field(
        default=".yo-rc.json",
        description="Build metadata file name inside each application folder",
    )

    # -------------------------------------------------------------------------
    # TOOL PROBE
    # -------------------------------------------------------------------------

    skip_checks: bool = Field(
        default=False,
        description="Skip the local helm client check",
    )

    helm_binary: str = Field(
        default="helm",
        description="helm executable used by the client check",
    )

    probe_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for the helm client check",
    )

    # -------------------------------------------------------------------------
    # SECRETS
    # -------------------------------------------------------------------------

    jwt_secret_bytes: int = Field(
        default=64,
        ge=32,
        description="Random bytes behind a newly generated JWT secret",
    )
    # Only used when the store has no jwtSecretKey yet. Once stored, the
    # secret is reused verbatim so deployed services keep accepting tokens.

    db_password_length: int = Field(
        default=8,
        ge=6,
        description="Length of the bootstrap database root password",
    )

    # -------------------------------------------------------------------------
    # QUESTION DEFAULTS
    # -------------------------------------------------------------------------

    default_push_command: str = Field(
        default="docker push",
        description="Docker push command offered when none is stored",
    )

    default_ingress_domain: str = Field(
        default="192.168.99.100.nip.io",
        description="Ingress root domain offered when none is stored",
    )

    @field_validator("default_push_command")
    @classmethod
    def validate_push_command(cls, v: str) -> str:
        """Collapse surrounding whitespace; an empty command is never useful."""
        v = " ".join(v.split())
        if not v:
            raise ValueError("default_push_command must not be empty")
        return v


def load_settings() -> GeneratorSettings:
    """
    Load settings from environment with validation.

    If HELMGEN_ENV_FILE is set, additional variables are read from that file.

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return GeneratorSettings(
        _env_file=os.environ.get("HELMGEN_ENV_FILE"),
    )
