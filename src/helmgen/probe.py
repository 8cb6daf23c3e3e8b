# ABOUTME: Advisory check for the locally installed helm client
# ABOUTME: Injected capability so the pipeline can run with a stub in tests

"""Local orchestration client probe. Never fatal, never retried."""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from helmgen.errors import AdvisoryWarning

logger = structlog.get_logger(__name__)

PROBE_SOURCE = "helm-client"
INSTALL_HINT = "Make sure you have helm 3 or later installed. Read https://helm.sh/docs/intro/install/"


class ToolProbe(Protocol):
    async def check_installed(self) -> AdvisoryWarning | None: ...


class NullProbe:
    """Probe that always passes; used with --skip-checks."""

    async def check_installed(self) -> AdvisoryWarning | None:
        return None


class HelmClientProbe:
    """Runs `helm version --client` and turns any problem into an AdvisoryWarning."""

    def __init__(self, binary: str = "helm", timeout: float = 10.0) -> None:
        self._binary = binary
        self._timeout = timeout

    def _warning(self, reason: str) -> AdvisoryWarning:
        logger.warning("helm client check failed", binary=self._binary, reason=reason)
        return AdvisoryWarning(
            source=PROBE_SOURCE,
            message=f"helm client is not usable ({reason})",
            hint=INSTALL_HINT,
        )

    async def check_installed(self) -> AdvisoryWarning | None:
        try:
            process = await asyncio.create_subprocess_exec(
                self._binary,
                "version",
                "--client",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError):
            return self._warning("not installed")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self._timeout)
        except TimeoutError:
            process.kill()
            await process.wait()
            return self._warning(f"no answer within {self._timeout:g}s")

        if process.returncode != 0 or stderr.strip():
            detail = stderr.decode(errors="replace").strip() or f"exit code {process.returncode}"
            return self._warning(detail.splitlines()[0])

        logger.info("helm client found", version=stdout.decode(errors="replace").strip())
        return None
