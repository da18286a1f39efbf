"""Private npm registry provisioning, credentials and publishing."""

from shipyard.registry.codeartifact import CodeArtifactClient, EnsureResult
from shipyard.registry.npmrc import format_npmrc_content, write_registry_config
from shipyard.registry.packages import PackageInfo, order_packages, scan_library
from shipyard.registry.publisher import PublishResult, publish_package

__all__ = [
    "CodeArtifactClient",
    "EnsureResult",
    "PackageInfo",
    "PublishResult",
    "format_npmrc_content",
    "order_packages",
    "publish_package",
    "scan_library",
    "write_registry_config",
]
