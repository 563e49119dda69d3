"""Checks a freshly acquired artifact against its digest record."""

import logging

from .acquirer import ArtifactAcquirer
from .digest import DigestResolver
from .domain import CommandRunner, DownloadSpec, PackagePresence, VerifyResult
from .exceptions import VerificationFailedError
from .registry import DigestTypeRegistry


class VerificationGate:
    """Runs the checksum command and rolls back both files on mismatch."""

    def __init__(
        self,
        runner: CommandRunner,
        presence: PackagePresence,
        acquirer: ArtifactAcquirer,
        resolver: DigestResolver,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.runner = runner
        self.presence = presence
        self.acquirer = acquirer
        self.resolver = resolver

    async def check(self, spec: DownloadSpec) -> VerifyResult:
        """Runs the checksum command without any side effect."""
        command = DigestTypeRegistry.command_for(spec.digest_type, spec.name)
        if self.runner.requires_executable:
            self.presence.ensure_present(command.executable)

        self.logger.info(f"Verifying {spec.name} with '{command}'")
        exit_code = await self.runner.run(command, spec.target_dir)
        if exit_code != 0:
            self.logger.debug(f"'{command}' exited with status {exit_code}")
            return VerifyResult.FAILED
        return VerifyResult.OK

    def rollback(self, spec: DownloadSpec):
        """Returns the spec's files to a clean absent state."""
        self.acquirer.remove(spec)
        self.resolver.remove_digest(spec)
        self.logger.warning(
            f"Removed {spec.artifact_path.name} and {spec.digest_path.name} "
            f"after failed verification."
        )

    async def verify(self, spec: DownloadSpec) -> VerifyResult:
        """
        Confirm a freshly acquired artifact matches its digest record.

        Only called for FETCHED artifacts with checksums enabled. If the
        check fails, or cannot be carried out at all, both the artifact
        and its digest record are deleted before the error surfaces, so an
        unverified artifact is never left on disk.

        Args:
            spec: The download being reconciled.

        Returns:
            VerifyResult.OK if the artifact matches.

        Raises:
            VerificationFailedError: On checksum mismatch. Not retried.
        """

        try:
            result = await self.check(spec)
        except Exception:
            self.rollback(spec)
            raise

        if result is VerifyResult.FAILED:
            self.rollback(spec)
            raise VerificationFailedError(
                f"Checksum mismatch for {spec.name} "
                f"({spec.digest_type} record {spec.digest_path.name})"
            )

        self.logger.info(f"Checksum for {spec.name} verified successfully.")
        return result
