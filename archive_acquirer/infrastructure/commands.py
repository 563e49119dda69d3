"""
Infrastructure adapters running the `{type}sum -c` checksum command.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Tuple

from ..application.domain import ChecksumCommand, CommandRunner
from ..application.exceptions import ToolUnavailableError
from ..application.registry import DigestTypeRegistry


class SubprocessCommandRunner(CommandRunner):
    """Runs the checksum command with the coreutils binary."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    async def run(self, command: ChecksumCommand, cwd: Path) -> int:
        try:
            process = await asyncio.create_subprocess_exec(
                *command.argv,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise ToolUnavailableError(
                f"{command.executable} is not installed"
            ) from e

        output, _ = await process.communicate()
        for line in output.decode(errors="replace").splitlines():
            self.logger.debug(f"{command.executable}: {line}")
        return process.returncode


class HashlibCommandRunner(CommandRunner):
    """
    Interprets the checksum command in-process with hashlib.

    Follows the `{type}sum -c` contract: every well-formed line of the
    record names a file (optionally prefixed with '*' for binary mode) and
    its expected hex digest; the exit code is 0 only if there is at least
    one such line and every named file exists and matches.
    """

    requires_executable = False

    def __init__(self, chunk_size: int = 65536):
        """Initializes the runner."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.chunk_size = chunk_size

    @staticmethod
    def _parse_record(text: str) -> List[Tuple[str, str]]:
        """Returns (expected digest, file name) pairs from a record."""
        entries = []
        for line in text.splitlines():
            parts = line.strip().split(maxsplit=1)
            if len(parts) != 2:
                continue
            expected, file_name = parts
            entries.append((expected.lower(), file_name.lstrip("*")))
        return entries

    def _calculate_digest(self, digest_type: str, file_path: Path) -> str:
        """Perform the blocking I/O work of hashing a file."""
        hasher = DigestTypeRegistry.new_hash(digest_type)
        with open(file_path, "rb") as f:
            while chunk := f.read(self.chunk_size):
                hasher.update(chunk)
        return hasher.hexdigest()

    def _blocking_check(self, command: ChecksumCommand, cwd: Path) -> int:
        record_path = cwd / command.record_name
        try:
            entries = self._parse_record(
                record_path.read_text(encoding="utf-8", errors="replace")
            )
        except OSError as e:
            self.logger.warning(f"Cannot read {record_path}: {e}")
            return 1

        if not entries:
            self.logger.warning(f"No properly formatted lines in {record_path.name}")
            return 1

        failures = 0
        for expected, file_name in entries:
            file_path = cwd / file_name
            if not file_path.is_file():
                self.logger.warning(f"{file_name}: FAILED open or read")
                failures += 1
                continue
            actual = self._calculate_digest(command.digest_type, file_path)
            if actual != expected:
                self.logger.warning(
                    f"{file_name}: FAILED (expected {expected}, got {actual})"
                )
                failures += 1
            else:
                self.logger.debug(f"{file_name}: OK")

        return 1 if failures else 0

    async def run(self, command: ChecksumCommand, cwd: Path) -> int:
        return await asyncio.to_thread(self._blocking_check, command, cwd)
