"""Base class for transports that write atomically under a hard timeout."""

import asyncio
import contextlib
import logging
from abc import abstractmethod
from pathlib import Path
from typing import Generator

from ..application.domain import FetchOptions, Transport, url_scheme
from ..application.exceptions import (
    TransportError,
    TransportTimeoutError,
    UnsupportedSchemeError,
)


class BaseTransport(Transport):
    """
    A transport that downloads into a '.part' file and renames it on success.

    Subclasses implement `_download_to`; this class owns the scheme check,
    the atomic target and the timeout bounding every attempt together.
    """

    def __init__(self):
        """Initializes the transport's logger."""
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextlib.contextmanager
    def _atomic_target(self, destination: Path) -> Generator[Path, None, None]:
        """Provides a temporary '.part' path and ensures cleanup."""
        part_path = destination.with_name(destination.name + ".part")
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            yield part_path
        finally:
            part_path.unlink(missing_ok=True)

    @abstractmethod
    async def _download_to(self, url: str, target: Path, options: FetchOptions):
        """Writes the body of `url` to `target`, raising on any failure."""
        pass

    async def _execute_atomic_download(
        self, url: str, destination: Path, options: FetchOptions
    ):
        with self._atomic_target(destination) as part_path:
            await self._download_to(url, part_path, options)
            part_path.rename(destination)

    async def fetch(self, url: str, destination: Path, options: FetchOptions):
        """
        Fetch `url` into `destination` atomically.

        Args:
            url: The remote URL.
            destination: The final path; created only on success.
            options: Transport flags and the timeout in seconds.

        Raises:
            UnsupportedSchemeError: If this transport cannot fetch the URL.
            TransportTimeoutError: If the fetch, retries included, does not
                finish within the timeout.
            TransportError: For any other failure.
        """

        if url_scheme(url) not in self.schemes:
            raise UnsupportedSchemeError(
                f"{self.__class__.__name__} cannot fetch {url}"
            )

        try:
            await asyncio.wait_for(
                self._execute_atomic_download(url, destination, options),
                timeout=options.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise TransportTimeoutError(
                f"Fetching {url} timed out after {options.timeout_seconds}s"
            ) from None
        except TransportError:
            raise
        except OSError as e:
            raise TransportError(f"Failed to write {destination}: {e}") from e
