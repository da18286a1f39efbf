"""Serverless Framework deployer.

Runs ``serverless deploy --stage <stage>`` inside a module directory and turns
the tool's output into a DeployOutcome.
"""

from __future__ import annotations

import asyncio
import os
import re
import time
from collections.abc import Mapping
from datetime import datetime, timezone

from shipyard.deploy.deployers.base import BaseDeployer
from shipyard.deploy.failures import categorize_error, enhance_error_message
from shipyard.deploy.policy import Fingerprinter
from shipyard.deploy.revision import RevisionResolver
from shipyard.lib.logging_config import get_logger
from shipyard.models.deployment import DeployOutcome, Module, StageConfig

logger = get_logger(__name__)

OUTPUT_EXCERPT_LIMIT = 1000

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD", "ANY")
EXECUTE_API_URL_PATTERN = re.compile(
    r"https://[a-zA-Z0-9.-]+\.execute-api\.[a-zA-Z0-9.-]+\.amazonaws\.com[^\s]*"
)
SERVICE_INFO_PATTERN = re.compile(
    r"Service Information.*?(?=\n\n|\nStack Outputs|\nfunctions:|\Z)", re.DOTALL
)
HTTPS_URL_PATTERN = re.compile(r"https://[^\s]+")


def _is_endpoint_line(stripped: str) -> bool:
    if stripped.startswith("- "):
        return True
    return any(stripped.startswith(f"{method} ") for method in HTTP_METHODS)


def extract_endpoints(output: str | None) -> list[str]:
    """Extract reachable endpoints from deploy output.

    Three shapes are recognized, in order: lines of an ``endpoints:``
    section, API Gateway ``execute-api`` URLs anywhere in the output, and
    URLs inside the ``Service Information`` banner. A URL already contained
    in an earlier entry is not repeated.

    Args:
        output: Raw tool output

    Returns:
        Endpoints in discovery order, without duplicates
    """
    endpoints: list[str] = []
    if not output:
        return endpoints

    def _add_url(url: str) -> None:
        if not any(url in endpoint for endpoint in endpoints):
            endpoints.append(url)

    in_section = False
    for line in output.splitlines():
        stripped = line.strip()
        if "endpoints:" in line:
            in_section = True
            continue
        if not in_section:
            continue
        if _is_endpoint_line(stripped):
            if stripped not in endpoints:
                endpoints.append(stripped)
        elif not stripped or "functions:" in line or "layers:" in line:
            break

    for url in EXECUTE_API_URL_PATTERN.findall(output):
        _add_url(url)

    service_info = SERVICE_INFO_PATTERN.search(output)
    if service_info:
        for url in HTTPS_URL_PATTERN.findall(service_info.group(0)):
            _add_url(url)

    return [endpoint for endpoint in endpoints if endpoint]


class ServerlessDeployer(BaseDeployer):
    """Deploy modules with the Serverless Framework CLI."""

    def __init__(
        self,
        stage: str,
        stage_config: StageConfig,
        revision_resolver: RevisionResolver,
        fingerprinter: Fingerprinter,
        command: str = "serverless",
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the deployer.

        Args:
            stage: Target stage passed to ``--stage``
            stage_config: Policy of the target stage
            revision_resolver: Resolver recording the deployed revision
            fingerprinter: Fingerprinter recording the deployed content
            command: Deployment tool executable
            env: Environment for the tool process (defaults to the current one)
        """
        self._stage = stage
        self.stage_config = stage_config
        self.revision_resolver = revision_resolver
        self.fingerprinter = fingerprinter
        self.command = command
        self.env = dict(env) if env is not None else None

    @property
    def environment(self) -> str:
        """Stage this deployer targets."""
        return self._stage

    async def _run(self, module: Module) -> tuple[int, str, str]:
        process = await asyncio.create_subprocess_exec(
            self.command,
            "deploy",
            "--stage",
            self._stage,
            cwd=str(module.path),
            env=self.env if self.env is not None else os.environ.copy(),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return (
            process.returncode if process.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    def _failure(
        self, module: Module, started: float, error: str, raw_output: str
    ) -> DeployOutcome:
        logger.error(f"{module.name} deployment failed")
        return DeployOutcome(
            module_name=module.name,
            success=False,
            duration_ms=int((time.monotonic() - started) * 1000),
            environment=self._stage,
            error_message=enhance_error_message(error, self.stage_config),
            failure_category=categorize_error(error),
            output_excerpt=raw_output[:OUTPUT_EXCERPT_LIMIT],
        )

    async def deploy(self, module: Module) -> DeployOutcome:
        """Deploy one module and describe the result."""
        started = time.monotonic()
        logger.info(f"Deploying {module.name} to {self._stage}")
        if module.has_env_file:
            logger.debug(f"Found .env file for {module.name}")

        try:
            returncode, stdout, stderr = await self._run(module)
        except Exception as e:
            return self._failure(module, started, str(e) or type(e).__name__, str(e))

        if returncode != 0:
            error = stderr.strip() or stdout.strip() or (
                f"{self.command} exited with code {returncode}"
            )
            return self._failure(module, started, error, stderr or stdout)

        duration_ms = int((time.monotonic() - started) * 1000)
        revision = await asyncio.to_thread(self.revision_resolver.current_revision)
        fingerprint = await asyncio.to_thread(self.fingerprinter, module.path)
        endpoints = extract_endpoints(stdout)
        logger.info(f"{module.name} deployed successfully ({duration_ms}ms)")

        return DeployOutcome(
            module_name=module.name,
            success=True,
            duration_ms=duration_ms,
            environment=self._stage,
            endpoints=endpoints,
            source_revision=revision,
            content_fingerprint=fingerprint.digest,
            deployed_at=datetime.now(timezone.utc),
            output_excerpt=stdout[:OUTPUT_EXCERPT_LIMIT],
        )
