import hashlib
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

from archive_acquirer.application.acquirer import ArtifactAcquirer
from archive_acquirer.application.digest import DigestResolver
from archive_acquirer.application.domain import (
    ChecksumCommand,
    CommandRunner,
    DownloadSpec,
    FetchOptions,
    PackagePresence,
    Transport,
)
from archive_acquirer.application.exceptions import TransportError
from archive_acquirer.application.service import StateReconciler
from archive_acquirer.application.verification import VerificationGate
from archive_acquirer.infrastructure.commands import HashlibCommandRunner
from archive_acquirer.infrastructure.filesystem import (
    LocalFilesystem,
    ShutilCopier,
)

ARCHIVE_BYTES = b"not really a tarball\n"
ARCHIVE_MD5 = hashlib.md5(ARCHIVE_BYTES).hexdigest()


class FakeTransport(Transport):
    """Serves canned bodies; unknown URLs fail like a 404."""

    def __init__(self, bodies: Optional[Dict[str, Union[bytes, Exception]]] = None):
        self.bodies = dict(bodies or {})
        self.calls: List[str] = []
        self.options: List[FetchOptions] = []

    async def fetch(self, url: str, destination: Path, options: FetchOptions):
        self.calls.append(url)
        self.options.append(options)
        body = self.bodies.get(url)
        if body is None:
            raise TransportError(f"404 for {url}")
        if isinstance(body, Exception):
            raise body
        destination.write_bytes(body)


class RecordingPresence(PackagePresence):
    def __init__(self):
        self.tools: List[str] = []

    def ensure_present(self, tool_name: str):
        self.tools.append(tool_name)


class CountingRunner(CommandRunner):
    """Delegates to the hashlib runner and counts invocations."""

    def __init__(self):
        self.inner = HashlibCommandRunner()
        self.commands: List[str] = []

    async def run(self, command: ChecksumCommand, cwd: Path) -> int:
        self.commands.append(str(command))
        return await self.inner.run(command, cwd)


class Harness:
    """A reconciler wired to fakes over a real temporary directory."""

    def __init__(self, target_dir: Path, transport: FakeTransport):
        self.target_dir = target_dir
        self.transport = transport
        self.presence = RecordingPresence()
        self.runner = CountingRunner()
        self.filesystem = LocalFilesystem()
        self.resolver = DigestResolver(transport, self.filesystem, self.presence)
        self.acquirer = ArtifactAcquirer(
            transport, ShutilCopier(), self.filesystem, self.presence
        )
        self.gate = VerificationGate(
            self.runner, self.presence, self.acquirer, self.resolver
        )
        self.reconciler = StateReconciler(
            self.resolver, self.acquirer, self.gate, transport
        )

    def spec(self, **kwargs) -> DownloadSpec:
        kwargs.setdefault("name", "a.tar.gz")
        kwargs.setdefault("url", "http://x/a.tar.gz")
        kwargs.setdefault("target_dir", self.target_dir)
        return DownloadSpec(**kwargs)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport({"http://x/a.tar.gz": ARCHIVE_BYTES})


@pytest.fixture
def harness(tmp_path: Path, transport: FakeTransport) -> Harness:
    return Harness(tmp_path / "src", transport)


@pytest.fixture
def archive_bytes() -> bytes:
    return ARCHIVE_BYTES


@pytest.fixture
def archive_md5() -> str:
    return ARCHIVE_MD5
