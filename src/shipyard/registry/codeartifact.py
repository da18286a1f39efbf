"""AWS CodeArtifact provisioning and credential issuance."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shipyard.lib.errors import RegistryError
from shipyard.lib.logging_config import get_logger

logger = get_logger(__name__)

ALREADY_EXISTS_CODES = frozenset({"ResourceAlreadyExistsException", "ConflictException"})
NOT_FOUND_CODE = "ResourceNotFoundException"


@dataclass(frozen=True)
class EnsureResult:
    """Outcome of an idempotent ensure-* call."""

    name: str
    created: bool


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class CodeArtifactClient:
    """Thin wrapper over the boto3 CodeArtifact client.

    Every ``ensure_*`` call is idempotent: a resource that already exists
    is reported with ``created=False`` instead of raising.
    """

    def __init__(
        self,
        region: str | None = None,
        domain_owner: str | None = None,
        client: Any | None = None,
    ) -> None:
        """Initialize the wrapper.

        Args:
            region: AWS region (defaults to the boto3 session region)
            domain_owner: Account id owning the domain, for cross-account use
            client: Pre-built boto3 client (used by tests)
        """
        self.domain_owner = domain_owner
        self._client = client or boto3.client("codeartifact", region_name=region)

    def _owner_kwargs(self) -> dict[str, str]:
        return {"domainOwner": self.domain_owner} if self.domain_owner else {}

    def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        # ClientError propagates so callers can inspect its error code
        try:
            response: dict[str, Any] = getattr(self._client, operation)(**kwargs)
            return response
        except BotoCoreError as e:
            raise RegistryError(operation=operation, message=str(e)) from e

    def _ensure(self, name: str, operation: str, **kwargs: Any) -> EnsureResult:
        try:
            self._call(operation, **kwargs)
        except ClientError as e:
            if _error_code(e) in ALREADY_EXISTS_CODES:
                logger.info(f"{name} already exists")
                return EnsureResult(name=name, created=False)
            raise RegistryError(operation=operation, message=str(e)) from e
        logger.info(f"Created {name}")
        return EnsureResult(name=name, created=True)

    def ensure_domain(self, domain: str) -> EnsureResult:
        """Create the domain unless it already exists."""
        return self._ensure(f"domain '{domain}'", "create_domain", domain=domain)

    def ensure_repository(
        self,
        domain: str,
        repository: str,
        upstreams: list[str] | None = None,
    ) -> EnsureResult:
        """Create a repository in the domain unless it already exists.

        Args:
            domain: CodeArtifact domain
            repository: Repository name
            upstreams: Repositories consulted when a package is not found
        """
        kwargs: dict[str, Any] = {
            "domain": domain,
            "repository": repository,
            "description": f"Repository for {repository}",
            **self._owner_kwargs(),
        }
        if upstreams:
            kwargs["upstreams"] = [{"repositoryName": name} for name in upstreams]
        return self._ensure(f"repository '{repository}'", "create_repository", **kwargs)

    def ensure_external_connection(
        self, domain: str, repository: str, connection: str = "public:npmjs"
    ) -> EnsureResult:
        """Associate a public external connection with a repository."""
        return self._ensure(
            f"external connection '{connection}' on '{repository}'",
            "associate_external_connection",
            domain=domain,
            repository=repository,
            externalConnection=connection,
            **self._owner_kwargs(),
        )

    def get_authorization_token(
        self, domain: str, ttl_seconds: int = 43200
    ) -> tuple[str, datetime | None]:
        """Mint a registry authorization token.

        Returns:
            (token, expiration)

        Raises:
            RegistryError: If the token cannot be issued
        """
        try:
            response = self._call(
                "get_authorization_token",
                domain=domain,
                durationSeconds=ttl_seconds,
                **self._owner_kwargs(),
            )
        except ClientError as e:
            raise RegistryError(
                operation="get_authorization_token", message=str(e)
            ) from e

        token = response.get("authorizationToken")
        if not token:
            raise RegistryError(
                operation="get_authorization_token",
                message="Response did not include an authorization token",
            )
        return token, response.get("expiration")

    def get_registry_endpoint(
        self, domain: str, repository: str, package_format: str = "npm"
    ) -> str:
        """Return the repository endpoint URL for a package format."""
        try:
            response = self._call(
                "get_repository_endpoint",
                domain=domain,
                repository=repository,
                format=package_format,
                **self._owner_kwargs(),
            )
        except ClientError as e:
            if _error_code(e) == NOT_FOUND_CODE:
                message = f"Repository '{repository}' not found in domain '{domain}'"
            else:
                message = str(e)
            raise RegistryError(
                operation="get_repository_endpoint", message=message
            ) from e
        return str(response["repositoryEndpoint"])
