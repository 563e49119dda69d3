"""Materializes the digest record an artifact is verified against."""

import logging

from .domain import (
    DigestRecord,
    DigestStatus,
    DownloadSpec,
    FetchOptions,
    Filesystem,
    PackagePresence,
    Transport,
)
from .exceptions import (
    DigestFetchError,
    MissingDigestError,
    TransportError,
    TransportTimeoutError,
)


class DigestResolver:
    """Ensures a digest record exists on disk, from the cheapest source."""

    def __init__(
        self,
        transport: Transport,
        filesystem: Filesystem,
        presence: PackagePresence,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.transport = transport
        self.filesystem = filesystem
        self.presence = presence

    def _write_inline(self, spec: DownloadSpec) -> DigestRecord:
        """Synthesizes the record from the inline digest string."""
        path = spec.digest_path
        content = f"{spec.inline_digest_line}\n".encode()

        if self.filesystem.exists(path) and self.filesystem.read(path) == content:
            self.logger.info(f"Digest record {path.name} is up to date.")
            return DigestRecord(path=path, status=DigestStatus.ALREADY_PRESENT)

        self.filesystem.make_dirs(spec.target_dir)
        self.filesystem.write(path, content)
        self.logger.info(f"Wrote inline digest record {path.name}")
        return DigestRecord(path=path, status=DigestStatus.CREATED)

    async def _fetch(self, spec: DownloadSpec) -> DigestRecord:
        """Fetches the record, using its existence as the completion marker."""
        path = spec.digest_path

        if self.filesystem.exists(path):
            self.logger.info(
                f"Digest record {path.name} already exists. Skipping fetch."
            )
            return DigestRecord(path=path, status=DigestStatus.ALREADY_PRESENT)

        if self.transport.tool_name:
            self.presence.ensure_present(self.transport.tool_name)

        source = spec.digest_source
        self.logger.info(f"Fetching digest record {path.name} from {source}")
        self.filesystem.make_dirs(spec.target_dir)
        try:
            await self.transport.fetch(source, path, FetchOptions.from_spec(spec))
        except TransportTimeoutError:
            raise
        except TransportError as e:
            raise DigestFetchError(
                f"Failed to fetch digest for {spec.name} from {source}: {e}"
            ) from e

        return DigestRecord(path=path, status=DigestStatus.CREATED)

    async def ensure_digest(self, spec: DownloadSpec) -> DigestRecord:
        """
        Guarantee the digest record exists, doing only the work required.

        An inline `digest_string` always wins over `digest_url` and the
        derived `{url}.{digest_type}` source; exactly one source is used.

        Args:
            spec: The download being reconciled.

        Returns:
            A DigestRecord whose status says whether work was performed.

        Raises:
            MissingDigestError: If a local-copy source carries no inline
                digest, since there is nothing to fetch it from.
            DigestFetchError: If fetching the digest file fails.
            TransportTimeoutError: If fetching the digest file times out.
        """

        if not spec.checksum_enabled:
            self.logger.info(
                f"Checksum verification is disabled for {spec.name}; "
                f"the artifact will not be verified."
            )
            return DigestRecord(path=spec.digest_path, status=DigestStatus.SKIPPED)

        if spec.digest_string:
            return self._write_inline(spec)

        if spec.is_local:
            raise MissingDigestError(
                f"No digest can be fetched for local-copy source {spec.url}; "
                f"supply digest_string instead."
            )

        return await self._fetch(spec)

    def remove_digest(self, spec: DownloadSpec) -> bool:
        """Deletes the digest record; a missing record is not an error."""
        existed = self.filesystem.exists(spec.digest_path)
        self.filesystem.remove(spec.digest_path)
        if existed:
            self.logger.debug(f"Removed digest record {spec.digest_path}")
        return existed
