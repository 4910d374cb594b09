"""
ShipLabel Backend - Barcode Artifact Store
============================================

What:  Scratch storage for the barcode image of each in-flight label.
How:   Abstract ArtifactStore contract with two implementations:
       - FileArtifactStore:     <scratch_dir>/<delivery-id>.png on disk (aiofiles)
       - InMemoryArtifactStore: dict-backed, for tests and ephemeral runs
Who:   Injected into LabelService; cleared by the application lifespan.
When:  write → read → delete within one request; clear_all at startup.

Concurrency:
    Every request uses its own identifier-named artifact, so two requests
    never touch the same file. The only shared state is the existence of
    the directory itself. No locks are taken.

Artifact lifecycle:
    1. LabelService writes the rendered PNG (write_artifact)
    2. LabelService reads it back for the composer (read_artifact)
    3. ArtifactCleanup deletes it exactly once after the stream ends
    4. Anything left over after a crash is removed by clear_all() on startup
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import aiofiles
import aiofiles.os

from shiplabel.exceptions import CleanupError, FileStorageError

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".png"


def _check_artifact_id(artifact_id: str) -> str:
    """Reject identifiers that could name anything outside the scratch root."""
    if not artifact_id or artifact_id in {".", ".."}:
        raise ValueError("artifact id must be a non-empty file name")
    if "/" in artifact_id or "\\" in artifact_id or "\x00" in artifact_id:
        raise ValueError(f"artifact id {artifact_id!r} contains a path separator")
    return artifact_id


class ArtifactStore(ABC):
    """
    Contract for transient, identifier-keyed barcode storage.

    Implementations must make write_artifact durable before it returns:
    the composer reads the artifact back immediately afterwards.
    """

    @abstractmethod
    async def write_artifact(self, artifact_id: str, data: bytes) -> None:
        """Store `data` under `artifact_id`. Raises FileStorageError on I/O failure."""

    @abstractmethod
    async def read_artifact(self, artifact_id: str) -> Optional[bytes]:
        """Return the stored bytes, or None if the artifact does not exist."""

    @abstractmethod
    async def delete_artifact(self, artifact_id: str) -> bool:
        """
        Delete the artifact.

        Returns:
            True if something was deleted, False if it was already gone.

        Raises:
            CleanupError: the artifact exists but could not be removed.
        """

    @abstractmethod
    async def clear_all(self) -> int:
        """Remove every artifact and return how many were removed."""

    def describe(self) -> str:
        """Human-readable location, used in startup logs and health checks."""
        return self.__class__.__name__


class FileArtifactStore(ArtifactStore):
    """
    Filesystem-backed artifact store.

    Directory Structure:
        scratch/barcodes/
        ├── 0b7c...-e2f1.png
        └── 9a41...-77d0.png
    """

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("FileArtifactStore initialized with root=%s", self.root)

    def path_for(self, artifact_id: str) -> Path:
        return self.root / f"{_check_artifact_id(artifact_id)}{ARTIFACT_SUFFIX}"

    def describe(self) -> str:
        return str(self.root)

    def is_writable(self) -> bool:
        return self.root.is_dir() and os.access(self.root, os.W_OK)

    async def write_artifact(self, artifact_id: str, data: bytes) -> None:
        path = self.path_for(artifact_id)
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
                await f.flush()
        except OSError as e:
            logger.error("[%s] stage=store failed to write %s: %s", artifact_id, path, e)
            raise FileStorageError(
                message="Failed to store barcode image",
                delivery_id=artifact_id,
                context={"path": str(path), "os_error": str(e)},
            ) from e
        logger.debug("[%s] stored barcode artifact (%d bytes)", artifact_id, len(data))

    async def read_artifact(self, artifact_id: str) -> Optional[bytes]:
        path = self.path_for(artifact_id)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FileStorageError(
                message="Failed to read barcode image",
                delivery_id=artifact_id,
                context={"path": str(path), "os_error": str(e)},
            ) from e

    async def delete_artifact(self, artifact_id: str) -> bool:
        path = self.path_for(artifact_id)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CleanupError(
                delivery_id=artifact_id,
                context={"path": str(path), "os_error": str(e)},
            ) from e
        return True

    async def clear_all(self) -> int:
        """
        Remove every regular file in the scratch root.

        Subdirectories are left alone; the store never creates any.
        Files that vanish mid-scan are ignored. Other failures propagate:
        a scratch directory that cannot be emptied should stop startup.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        removed = 0
        for entry in self.root.iterdir():
            if not entry.is_file():
                continue
            try:
                await aiofiles.os.remove(entry)
            except FileNotFoundError:
                continue
            removed += 1
        return removed


class InMemoryArtifactStore(ArtifactStore):
    """Dict-backed store with the same contract as FileArtifactStore."""

    def __init__(self) -> None:
        self._artifacts: Dict[str, bytes] = {}

    def __contains__(self, artifact_id: str) -> bool:
        return artifact_id in self._artifacts

    def __len__(self) -> int:
        return len(self._artifacts)

    def describe(self) -> str:
        return "memory"

    async def write_artifact(self, artifact_id: str, data: bytes) -> None:
        self._artifacts[_check_artifact_id(artifact_id)] = bytes(data)

    async def read_artifact(self, artifact_id: str) -> Optional[bytes]:
        return self._artifacts.get(_check_artifact_id(artifact_id))

    async def delete_artifact(self, artifact_id: str) -> bool:
        return self._artifacts.pop(_check_artifact_id(artifact_id), None) is not None

    async def clear_all(self) -> int:
        removed = len(self._artifacts)
        self._artifacts.clear()
        return removed
