"""
The core application service and state machine, containing pure business
logic.

This module defines the reconciler (StateReconciler) that drives a single
DownloadSpec to its desired end-state, and the orchestrator
(AcquisitionService) that reconciles a batch of independent specs.
"""

import asyncio
import logging
from collections import Counter
from typing import Dict, List, Sequence

from tqdm.contrib.logging import logging_redirect_tqdm
from tqdm.asyncio import tqdm_asyncio

from .acquirer import ArtifactAcquirer
from .digest import DigestResolver
from .domain import (
    AcquireStatus,
    DownloadSpec,
    Ensure,
    ReconcileOutcome,
    Transport,
    url_scheme,
)
from .exceptions import (
    AcquirerError,
    BatchError,
    DuplicateTargetError,
    UnsupportedSchemeError,
)
from .verification import VerificationGate

logger = logging.getLogger(__name__)


class StateReconciler:
    """Implements the present/absent state machine for one spec.

    No state is persisted: the existence of the artifact and its digest
    record on disk is the state.
    """

    def __init__(
        self,
        resolver: DigestResolver,
        acquirer: ArtifactAcquirer,
        gate: VerificationGate,
        transport: Transport,
    ):
        """Initializes the reconciler with its collaborators."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.resolver = resolver
        self.acquirer = acquirer
        self.gate = gate
        self.transport = transport

    def _check_transport(self, spec: DownloadSpec):
        """Rejects remote URLs the configured transport cannot fetch."""
        urls = [spec.url] if spec.is_remote else []
        if spec.checksum_enabled and not spec.digest_string and spec.is_remote:
            urls.append(spec.digest_source)

        for url in urls:
            if url_scheme(url) not in self.transport.schemes:
                raise UnsupportedSchemeError(
                    f"{self.transport.__class__.__name__} cannot fetch "
                    f"{url_scheme(url)!r} URLs ({url})"
                )

    async def _ensure_present(self, spec: DownloadSpec) -> ReconcileOutcome:
        # Step 1: Digest record before the artifact it verifies
        digest = await self.resolver.ensure_digest(spec)

        # Step 2: Acquire (skipped entirely if the artifact exists)
        artifact = await self.acquirer.acquire(spec)

        # Step 3: Verify only what was freshly acquired
        verify = None
        if artifact.status is AcquireStatus.FETCHED and spec.checksum_enabled:
            verify = await self.gate.verify(spec)

        return ReconcileOutcome(
            name=spec.name,
            ensure=Ensure.PRESENT,
            digest=digest.status,
            acquire=artifact.status,
            verify=verify,
        )

    def _ensure_absent(self, spec: DownloadSpec) -> ReconcileOutcome:
        removed_artifact = self.acquirer.remove(spec)
        removed_digest = self.resolver.remove_digest(spec)
        self.logger.info(f"Ensured {spec.name} is absent from {spec.target_dir}")
        return ReconcileOutcome(
            name=spec.name,
            ensure=Ensure.ABSENT,
            removed=removed_artifact or removed_digest,
        )

    async def reconcile(self, spec: DownloadSpec) -> ReconcileOutcome:
        """
        Drive the spec's files to the desired end-state.

        For 'present' the digest record is ensured first, then the artifact;
        verification runs only when the artifact was freshly acquired and
        checksums are enabled. For 'absent' both files are deleted
        unconditionally. Configuration errors surface before any file is
        touched.

        Args:
            spec: The download to reconcile.

        Returns:
            A ReconcileOutcome describing the work performed.

        Raises:
            ConfigurationError: If the spec is malformed (invalid ensure
                value, unsupported digest type or scheme, missing digest).
            DigestFetchError: If the digest could not be fetched; the
                artifact is then never fetched.
            TransportError: If the artifact fetch fails.
            FilesystemError: If the target directory or its files cannot be
                created or removed.
            VerificationFailedError: If the fresh artifact does not match;
                both files have been removed.
        """

        spec.validate()
        ensure = Ensure.parse(spec.ensure)

        if ensure is Ensure.ABSENT:
            return self._ensure_absent(spec)

        self._check_transport(spec)
        outcome = await self._ensure_present(spec)
        if outcome.changed:
            self.logger.info(f"{spec.name} is present in {spec.target_dir}")
        else:
            self.logger.info(f"{spec.name} already up to date. Nothing to do.")
        return outcome


class AcquisitionService:
    """Reconciles a batch of independent specs concurrently."""

    def __init__(self, reconciler: StateReconciler, concurrent_downloads: int):
        """Initializes the service with a shared reconciler."""
        self.reconciler = reconciler
        self.concurrent_downloads = concurrent_downloads

    @staticmethod
    def _check_disjoint(specs: Sequence[DownloadSpec]):
        """Two specs managing one file, artifact or digest, would race."""
        counts = Counter(
            path
            for spec in specs
            for path in (spec.artifact_path, spec.digest_path)
        )
        duplicates = sorted(str(path) for path, n in counts.items() if n > 1)
        if duplicates:
            raise DuplicateTargetError(
                f"Multiple downloads target the same path: {', '.join(duplicates)}"
            )

    async def _reconcile_with_semaphore(
        self, spec: DownloadSpec, semaphore: asyncio.Semaphore
    ):
        """Wrapper to acquire a semaphore and capture the spec's failure."""
        async with semaphore:
            try:
                return await self.reconciler.reconcile(spec)
            except AcquirerError as e:
                logger.error(f"{spec.name}: {e}")
                return e

    async def run(self, specs: Sequence[DownloadSpec]) -> List[ReconcileOutcome]:
        """Reconciles every spec, then reports all failures together.

        Raises:
            DuplicateTargetError: Before any work, if two specs share a file.
            BatchError: If any spec failed; its `errors` maps names to errors.
        """

        if not specs:
            logger.info("No downloads to reconcile.")
            return []

        self._check_disjoint(specs)

        semaphore = asyncio.Semaphore(self.concurrent_downloads)
        tasks = [
            asyncio.create_task(self._reconcile_with_semaphore(spec, semaphore))
            for spec in specs
        ]

        logger.info(
            f"Reconciling {len(tasks)} downloads with a concurrency "
            f"limit of {self.concurrent_downloads}..."
        )

        with logging_redirect_tqdm():
            results = await tqdm_asyncio.gather(
                *tasks, desc="Overall Progress", unit="download"
            )

        errors: Dict[str, AcquirerError] = {
            spec.name: result
            for spec, result in zip(specs, results)
            if isinstance(result, AcquirerError)
        }
        if errors:
            raise BatchError(
                f"{len(errors)} of {len(specs)} downloads failed: "
                f"{', '.join(errors)}",
                errors=errors,
            )

        logger.info("All downloads reconciled.")
        return list(results)
