"""
This module defines the core domain models for the application.

These classes represent the pure, technology-agnostic entities and data
structures that the reconciliation logic operates on, together with the
ports (interfaces) of the external collaborators it drives.
"""

import dataclasses
import enum
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from .exceptions import (
    ConfigurationError,
    InvalidStateError,
    MissingDigestError,
    UnsupportedDigestError,
    UnsupportedSchemeError,
)

REMOTE_SCHEMES = ("http", "https", "ftp")
LOCAL_SCHEMES = ("file",)
DIGEST_TYPES = ("md5", "sha1", "sha224", "sha256", "sha384", "sha512")

DEFAULT_TIMEOUT = 120
DEFAULT_TARGET_DIR = "/usr/src"
DEFAULT_DIGEST_TYPE = "md5"


# --- Domain Models ---

class Ensure(str, enum.Enum):
    """The desired end-state of an artifact."""

    PRESENT = "present"
    ABSENT = "absent"

    @classmethod
    def parse(cls, value: Union["Ensure", str]) -> "Ensure":
        """Maps a raw ensure value to a member, rejecting anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidStateError(
                f"Invalid ensure value {value!r}; expected 'present' or 'absent'"
            ) from None


class DigestStatus(str, enum.Enum):
    CREATED = "created"
    ALREADY_PRESENT = "already_present"
    SKIPPED = "skipped"


class AcquireStatus(str, enum.Enum):
    FETCHED = "fetched"
    ALREADY_PRESENT = "already_present"


class VerifyResult(str, enum.Enum):
    OK = "ok"
    FAILED = "failed"


def url_scheme(url: str) -> str:
    """Returns the lowercased scheme of a URL; bare paths count as 'file'."""
    scheme = urlsplit(url).scheme.lower()
    if not scheme and url.startswith("/"):
        return "file"
    return scheme


@dataclasses.dataclass(frozen=True)
class DownloadSpec:
    """
    The immutable input of one invocation.

    Constructed once from external configuration and never mutated. Values
    are normalized on construction (digest type lowercased, target directory
    coerced to a Path) but not validated; see `validate`.
    """

    name: str
    url: str
    ensure: Union[Ensure, str] = Ensure.PRESENT
    digest_url: str = ""
    digest_string: str = ""
    digest_type: str = DEFAULT_DIGEST_TYPE
    timeout: int = DEFAULT_TIMEOUT
    target_dir: Path = Path(DEFAULT_TARGET_DIR)
    allow_insecure: bool = False
    follow_redirects: bool = False
    checksum_enabled: bool = True

    def __post_init__(self):
        object.__setattr__(
            self, "digest_type", (self.digest_type or "").strip().lower()
        )
        object.__setattr__(self, "digest_url", self.digest_url or "")
        object.__setattr__(self, "digest_string", self.digest_string or "")
        object.__setattr__(self, "target_dir", Path(self.target_dir))
        if isinstance(self.ensure, str) and not isinstance(self.ensure, Ensure):
            try:
                object.__setattr__(self, "ensure", Ensure.parse(self.ensure))
            except InvalidStateError:
                # Left raw; validate() reports it before any side effect.
                pass

    @property
    def artifact_path(self) -> Path:
        return self.target_dir / self.name

    @property
    def digest_path(self) -> Path:
        return self.target_dir / f"{self.name}.{self.digest_type}"

    @property
    def scheme(self) -> str:
        return url_scheme(self.url)

    @property
    def is_local(self) -> bool:
        return self.scheme in LOCAL_SCHEMES

    @property
    def is_remote(self) -> bool:
        return self.scheme in REMOTE_SCHEMES

    @property
    def source_path(self) -> Path:
        """The filesystem path behind a local-copy URL."""
        if not self.is_local:
            raise UnsupportedSchemeError(
                f"{self.url} is not a local-copy source"
            )
        parts = urlsplit(self.url)
        path = unquote(parts.path) if parts.scheme else self.url
        return Path(path)

    @property
    def digest_source(self) -> str:
        """The URL the digest record is fetched from when none is inline."""
        return self.digest_url or f"{self.url}.{self.digest_type}"

    @property
    def inline_digest_line(self) -> str:
        return f"{self.digest_string} *{self.name}"

    def validate(self):
        """
        Checks the configuration shape of the spec.

        Raises:
            InvalidStateError: If `ensure` is neither present nor absent.
            UnsupportedDigestError: If `digest_type` has no checksum command.
            UnsupportedSchemeError: If `url` has no supported transport.
            MissingDigestError: If a verified local-copy source lacks an
                inline digest.
            ConfigurationError: If the name is not a plain file name.
        """
        ensure = Ensure.parse(self.ensure)

        if self.digest_type not in DIGEST_TYPES:
            raise UnsupportedDigestError(
                f"Unsupported digest type {self.digest_type!r}; expected one "
                f"of {', '.join(DIGEST_TYPES)}"
            )

        if (
            self.name in ("", ".", "..")
            or PurePosixPath(self.name).name != self.name
        ):
            raise ConfigurationError(
                f"Name {self.name!r} must be a plain file name"
            )

        if not (self.is_local or self.is_remote):
            raise UnsupportedSchemeError(
                f"Unsupported scheme {self.scheme!r} in {self.url}"
            )

        if (
            ensure is Ensure.PRESENT
            and self.checksum_enabled
            and not self.digest_string
            and self.digest_url
            and url_scheme(self.digest_url) not in REMOTE_SCHEMES
        ):
            raise UnsupportedSchemeError(
                f"Unsupported scheme {url_scheme(self.digest_url)!r} "
                f"in digest URL {self.digest_url}"
            )

        if (
            ensure is Ensure.PRESENT
            and self.checksum_enabled
            and self.is_local
            and not self.digest_string
        ):
            raise MissingDigestError(
                f"{self.url} is a local-copy source; an inline digest "
                f"(digest_string) is required to verify it"
            )


@dataclasses.dataclass(frozen=True)
class FetchOptions:
    """Per-fetch transport flags derived from a spec."""

    insecure: bool = False
    follow_redirects: bool = False
    timeout_seconds: float = DEFAULT_TIMEOUT

    @classmethod
    def from_spec(cls, spec: DownloadSpec) -> "FetchOptions":
        return cls(
            insecure=spec.allow_insecure,
            follow_redirects=spec.follow_redirects,
            timeout_seconds=spec.timeout,
        )


@dataclasses.dataclass(frozen=True)
class ChecksumCommand:
    """The `{type}sum -c {name}.{type}` command for one artifact."""

    digest_type: str
    name: str

    @property
    def executable(self) -> str:
        return f"{self.digest_type}sum"

    @property
    def record_name(self) -> str:
        return f"{self.name}.{self.digest_type}"

    @property
    def argv(self) -> List[str]:
        return [self.executable, "-c", self.record_name]

    def __str__(self) -> str:
        return " ".join(self.argv)


@dataclasses.dataclass(frozen=True)
class DigestRecord:
    """The on-disk digest file for an artifact."""

    path: Path
    status: DigestStatus


@dataclasses.dataclass(frozen=True)
class Artifact:
    """The on-disk artifact managed by a spec."""

    path: Path
    status: AcquireStatus


@dataclasses.dataclass(frozen=True)
class ReconcileOutcome:
    """What a single reconciliation did."""

    name: str
    ensure: Ensure
    digest: Optional[DigestStatus] = None
    acquire: Optional[AcquireStatus] = None
    verify: Optional[VerifyResult] = None
    removed: bool = False

    @property
    def changed(self) -> bool:
        return (
            self.removed
            or self.digest is DigestStatus.CREATED
            or self.acquire is AcquireStatus.FETCHED
        )


# --- Ports (Interfaces) ---

class Transport(ABC):
    """A port for fetching a remote URL to a local file."""

    # Executable the transport shells out to, if any.
    tool_name: Optional[str] = None
    schemes = REMOTE_SCHEMES

    @abstractmethod
    async def fetch(self, url: str, destination: Path, options: FetchOptions):
        """
        Fetches `url` into `destination`.

        Must create `destination` only on success, must not leave a partial
        file behind on failure, and must abort after the options' timeout.
        Raises TransportError or TransportTimeoutError.
        """
        pass

    async def aclose(self):
        """Releases any resources held by the transport."""
        pass


class LocalCopier(ABC):
    """A port for copying local-copy sources."""

    @abstractmethod
    async def copy(self, source: Path, destination: Path):
        """Copies `source` to `destination`. Raises CopyError."""
        pass


class CommandRunner(ABC):
    """A port for running a checksum command."""

    # Whether the runner needs the command's executable on PATH.
    requires_executable: bool = True

    @abstractmethod
    async def run(self, command: ChecksumCommand, cwd: Path) -> int:
        """Runs the command in `cwd` and returns its exit code."""
        pass


class Filesystem(ABC):
    """A port for the few synchronous filesystem operations needed.

    Failures other than a missing path raise FilesystemError.
    """

    @abstractmethod
    def exists(self, path: Path) -> bool:
        pass

    @abstractmethod
    def read(self, path: Path) -> bytes:
        pass

    @abstractmethod
    def write(self, path: Path, data: bytes):
        pass

    @abstractmethod
    def remove(self, path: Path):
        """Removes `path`; a missing path is not an error."""
        pass

    @abstractmethod
    def make_dirs(self, path: Path):
        pass


class PackagePresence(ABC):
    """A port ensuring a tool binary is available."""

    @abstractmethod
    def ensure_present(self, tool_name: str):
        """Raises ToolUnavailableError if the tool cannot be found."""
        pass
