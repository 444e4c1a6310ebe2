"""Workspace fingerprints derived from version-control remotes.

Remote URLs are never sent anywhere. Each remote found in the folder's
``.git/config`` is normalized to ``host/path`` and hashed with SHA-1; only the
hashes are compared against the remote popularity index.
"""

import asyncio
import hashlib
import re
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import structlog

from ..host.interfaces import WorkspaceFolder

logger = structlog.get_logger(__name__)

REMOTE_MATCHER = re.compile(r"^\s*url\s*=\s*(.+\S)\s*$", re.MULTILINE)
SSH_URL_MATCHER = re.compile(r"^([^@:]+@)?([^:]+):(.+)$")


def _normalize_remote(host: str, path: str, strip_ending_dot_git: bool) -> Optional[str]:
    if not host or not path:
        return None
    if strip_ending_dot_git and path.endswith(".git"):
        path = path[: -len(".git")]
    return f"{host}{path}" if path.startswith("/") else f"{host}/{path}"


def extract_remote(url: str, strip_ending_dot_git: bool = False) -> Optional[str]:
    """Normalize one remote URL to ``host/path``; None if it has no host."""
    if "://" not in url:
        match = SSH_URL_MATCHER.match(url)
        if match:
            return _normalize_remote(match.group(2), match.group(3), strip_ending_dot_git)

    parsed = urlparse(url)
    if parsed.netloc:
        return _normalize_remote(parsed.netloc, parsed.path, strip_ending_dot_git)
    return None


def get_remotes(config_text: str, strip_ending_dot_git: bool = False) -> List[str]:
    """All normalized remotes of a git config file, in file order."""
    remotes = []
    for match in REMOTE_MATCHER.finditer(config_text):
        remote = extract_remote(match.group(1), strip_ending_dot_git)
        if remote:
            remotes.append(remote)
    return remotes


def get_hashed_remotes_from_config(config_text: str, strip_ending_dot_git: bool = False) -> List[str]:
    return [
        hashlib.sha1(remote.encode("utf-8")).hexdigest()
        for remote in get_remotes(config_text, strip_ending_dot_git)
    ]


class GitWorkspaceTagsService:
    """Computes remote fingerprints for local workspace folders."""

    def __init__(self) -> None:
        self.logger = structlog.get_logger(self.__class__.__name__)

    async def get_hashed_remotes_from_uri(
        self, uri: str, strip_ending_dot_git: bool = False
    ) -> List[str]:
        folder = WorkspaceFolder(uri=uri, name="")
        config_path = folder.path / ".git" / "config"

        config_text = await asyncio.to_thread(self._read_config, config_path)
        if config_text is None:
            return []

        hashes = get_hashed_remotes_from_config(config_text, strip_ending_dot_git)
        self.logger.debug(
            "Computed workspace fingerprints",
            count=len(hashes),
            strip_ending_dot_git=strip_ending_dot_git,
        )
        return hashes

    def _read_config(self, config_path: Path) -> Optional[str]:
        try:
            return config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            self.logger.warning("Cannot read git config", path=str(config_path), error=str(e))
            return None
