"""Local filesystem adapters: file operations, copying and tool lookup."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Set

from ..application.domain import Filesystem, LocalCopier, PackagePresence
from ..application.exceptions import (
    CopyError,
    FilesystemError,
    ToolUnavailableError,
)


class LocalFilesystem(Filesystem):
    """An adapter that implements the Filesystem port with pathlib.

    OSErrors are raised as FilesystemError.
    """

    def exists(self, path: Path) -> bool:
        return path.exists()

    def read(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise FilesystemError(f"Failed to read {path}: {e}") from e

    def write(self, path: Path, data: bytes):
        part_path = path.with_name(path.name + ".part")
        try:
            part_path.write_bytes(data)
            part_path.replace(path)
        except OSError as e:
            raise FilesystemError(f"Failed to write {path}: {e}") from e

    def remove(self, path: Path):
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to remove {path}: {e}") from e

    def make_dirs(self, path: Path):
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to create directory {path}: {e}") from e


class ShutilCopier(LocalCopier):
    """An adapter that copies local-copy sources with shutil."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def _blocking_copy(source: Path, destination: Path):
        part_path = destination.with_name(destination.name + ".part")
        try:
            shutil.copy2(source, part_path)
            part_path.replace(destination)
        finally:
            part_path.unlink(missing_ok=True)

    async def copy(self, source: Path, destination: Path):
        """
        Copy a single file, leaving no partial destination on failure.

        Raises:
            CopyError: If the source is missing, is not a regular file, or
                cannot be copied.
        """

        if not source.is_file():
            raise CopyError(f"Local source {source} is not a regular file")

        try:
            await asyncio.to_thread(self._blocking_copy, source, destination)
        except OSError as e:
            raise CopyError(f"Failed to copy {source} to {destination}: {e}") from e

        self.logger.info(f"Copied {source.name} to {destination}")


class WhichPackagePresence(PackagePresence):
    """
    Checks executables on PATH, once per tool name.

    Installing missing tools is left to the host's package manager; this
    adapter only fails early and clearly when one is absent.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._present: Set[str] = set()

    def ensure_present(self, tool_name: str):
        if tool_name in self._present:
            return

        location = shutil.which(tool_name)
        if location is None:
            raise ToolUnavailableError(
                f"Required tool '{tool_name}' was not found on PATH"
            )

        self.logger.debug(f"Found {tool_name} at {location}")
        self._present.add(tool_name)
