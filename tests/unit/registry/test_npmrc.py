"""Unit tests for .npmrc generation."""

from __future__ import annotations

import os
import stat
import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from shipyard.lib.errors import RegistryError
from shipyard.registry.npmrc import (
    backup_existing_npmrc,
    format_npmrc_content,
    registry_host,
    write_registry_config,
)

REGISTRY_URL = "https://myorg-123.d.codeartifact.eu-west-1.amazonaws.com/npm/npm-store/"


class TestFormatNpmrcContent:
    """Tests for the file content."""

    def test_content(self) -> None:
        """Scope routing and auth lines are written."""
        content = format_npmrc_content(
            REGISTRY_URL,
            "tok",
            "myorg",
            generated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        host = "myorg-123.d.codeartifact.eu-west-1.amazonaws.com/npm/npm-store"

        assert content.splitlines() == [
            "# AWS CodeArtifact Registry Configuration",
            "# Generated: 2024-01-01T00:00:00+00:00",
            "",
            "# Registry URL for scoped packages",
            f"@myorg:registry={REGISTRY_URL}",
            "",
            "# Authentication token",
            f"//{host}/:always-auth=true",
            f"//{host}/:_authToken=tok",
        ]
        assert content.endswith("\n")

    def test_registry_host(self) -> None:
        """Scheme and trailing slash are stripped."""
        assert registry_host("http://example.com/npm/") == "example.com/npm"


class TestWriteRegistryConfig:
    """Tests for writing the file."""

    def test_writes_file(self, tmp_path: Path) -> None:
        """The file is written into the target directory."""
        path = write_registry_config(tmp_path, REGISTRY_URL, "tok", "@myorg")

        assert path == tmp_path / ".npmrc"
        assert "_authToken=tok" in path.read_text(encoding="utf-8")

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_owner_only_permissions(self, tmp_path: Path) -> None:
        """The credential file is readable by its owner only."""
        path = write_registry_config(tmp_path, REGISTRY_URL, "tok", "@myorg")

        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_token_never_written_with_open_permissions(self, tmp_path: Path) -> None:
        """New and existing files are restricted before the token is written."""
        existing = tmp_path / "existing"
        existing.mkdir()
        (existing / ".npmrc").write_text("old", encoding="utf-8")
        (existing / ".npmrc").chmod(0o644)
        seen: list[tuple[int, str]] = []
        real_chmod = os.chmod

        def _recording_chmod(path, mode, *args, **kwargs):
            if Path(path).name == ".npmrc":
                seen.append(
                    (
                        stat.S_IMODE(Path(path).stat().st_mode),
                        Path(path).read_text(encoding="utf-8"),
                    )
                )
            return real_chmod(path, mode, *args, **kwargs)

        with patch("shipyard.registry.npmrc.os.chmod", side_effect=_recording_chmod):
            write_registry_config(tmp_path, REGISTRY_URL, "tok", "@myorg")
            path = write_registry_config(existing, REGISTRY_URL, "tok", "@myorg")

        new_mode, new_content = seen[0]
        assert new_mode == 0o600
        assert new_content == ""
        assert seen[1][1] == ""
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert "_authToken=tok" in path.read_text(encoding="utf-8")

    def test_backs_up_existing_file(self, tmp_path: Path) -> None:
        """A previous .npmrc is kept as a timestamped backup."""
        (tmp_path / ".npmrc").write_text("old", encoding="utf-8")

        write_registry_config(tmp_path, REGISTRY_URL, "tok", "@myorg")

        backups = list(tmp_path.glob(".npmrc.backup.*"))
        assert len(backups) == 1
        assert backups[0].read_text(encoding="utf-8") == "old"
        assert ":" not in backups[0].name

    def test_no_backup_without_existing_file(self, tmp_path: Path) -> None:
        """Nothing is backed up when there is no file."""
        assert backup_existing_npmrc(tmp_path) is None

    def test_missing_directory(self, tmp_path: Path) -> None:
        """The target directory must exist."""
        with pytest.raises(RegistryError, match="does not exist"):
            write_registry_config(tmp_path / "missing", REGISTRY_URL, "tok", "@myorg")
