"""Fetches or copies the artifact itself, choosing transport by URL scheme."""

import logging

from .domain import (
    AcquireStatus,
    Artifact,
    DownloadSpec,
    FetchOptions,
    Filesystem,
    LocalCopier,
    PackagePresence,
    Transport,
)
from .exceptions import MissingDigestError, UnsupportedSchemeError


class ArtifactAcquirer:
    """Ensures the artifact exists, skipping all work if it already does."""

    def __init__(
        self,
        transport: Transport,
        copier: LocalCopier,
        filesystem: Filesystem,
        presence: PackagePresence,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.transport = transport
        self.copier = copier
        self.filesystem = filesystem
        self.presence = presence

    def _require_digest_record(self, spec: DownloadSpec):
        """The digest record is a prerequisite of a verified acquisition."""
        if spec.checksum_enabled and not self.filesystem.exists(spec.digest_path):
            raise MissingDigestError(
                f"Digest record {spec.digest_path} must exist before "
                f"{spec.name} is acquired."
            )

    async def _copy(self, spec: DownloadSpec):
        source = spec.source_path
        self.logger.info(f"Copying {source} to {spec.artifact_path}")
        await self.copier.copy(source, spec.artifact_path)

    async def _download(self, spec: DownloadSpec):
        if self.transport.tool_name:
            self.presence.ensure_present(self.transport.tool_name)

        self.logger.info(f"Downloading {spec.name} from {spec.url}")
        await self.transport.fetch(
            spec.url, spec.artifact_path, FetchOptions.from_spec(spec)
        )
        self.logger.info(f"Finished downloading {spec.name}")

    async def acquire(self, spec: DownloadSpec) -> Artifact:
        """
        Guarantee the artifact exists, acquiring it only if necessary.

        The existence check comes first: an artifact already on disk was
        verified by the invocation that created it, so it is reported as
        ALREADY_PRESENT and must not be verified again.

        Args:
            spec: The download being reconciled.

        Returns:
            An Artifact whose status is FETCHED only if bytes were written.

        Raises:
            UnsupportedSchemeError: If the URL has no transport.
            MissingDigestError: If checksums are enabled and the digest
                record has not been created yet.
            TransportError: If the remote fetch fails.
            CopyError: If the local copy fails.
        """

        path = spec.artifact_path

        if self.filesystem.exists(path):
            self.logger.info(f"Artifact {path.name} already exists. Skipping.")
            return Artifact(path=path, status=AcquireStatus.ALREADY_PRESENT)

        if spec.is_local:
            self._require_digest_record(spec)
            self.filesystem.make_dirs(spec.target_dir)
            await self._copy(spec)
        elif spec.is_remote:
            self._require_digest_record(spec)
            self.filesystem.make_dirs(spec.target_dir)
            await self._download(spec)
        else:
            raise UnsupportedSchemeError(
                f"Unsupported scheme {spec.scheme!r} in {spec.url}"
            )

        return Artifact(path=path, status=AcquireStatus.FETCHED)

    def remove(self, spec: DownloadSpec) -> bool:
        """Deletes the artifact; a missing artifact is not an error.

        Returns whether there was an artifact to delete.
        """
        existed = self.filesystem.exists(spec.artifact_path)
        self.filesystem.remove(spec.artifact_path)
        if existed:
            self.logger.debug(f"Removed artifact {spec.artifact_path}")
        return existed
