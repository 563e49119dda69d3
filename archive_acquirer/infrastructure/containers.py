"""
Dependency Injection container for the archive_acquirer component.

This container uses the `dependency-injector` library to wire together all
the components of the application, such as the reconciler and infrastructure
adapters, based on the application's configuration.
"""

from dependency_injector import containers, providers
import httpx

from ..application.acquirer import ArtifactAcquirer
from ..application.digest import DigestResolver
from ..application.service import AcquisitionService, StateReconciler
from ..application.verification import VerificationGate
from ..settings import settings

from .commands import HashlibCommandRunner, SubprocessCommandRunner
from .filesystem import LocalFilesystem, ShutilCopier, WhichPackagePresence
from .transport import CurlTransport, HttpTransport


class Container(containers.DeclarativeContainer):
    """DI container for wiring the application components."""

    config = providers.Object(settings)

    http_client = providers.Singleton(httpx.AsyncClient)

    insecure_http_client = providers.Singleton(httpx.AsyncClient, verify=False)

    transport = providers.Selector(
        config.provided["transport"]["backend"],
        httpx=providers.Singleton(
            HttpTransport,
            client=http_client,
            insecure_client=insecure_http_client,
            chunk_size=config.provided["transport"]["chunk_size"],
            show_progress=config.provided["transport"]["show_progress"],
        ),
        curl=providers.Singleton(CurlTransport),
    )

    command_runner = providers.Selector(
        config.provided["checksum"]["runner"],
        subprocess=providers.Singleton(SubprocessCommandRunner),
        hashlib=providers.Singleton(
            HashlibCommandRunner,
            chunk_size=config.provided["checksum"]["chunk_size"],
        ),
    )

    filesystem = providers.Singleton(LocalFilesystem)

    copier = providers.Singleton(ShutilCopier)

    presence = providers.Singleton(WhichPackagePresence)

    resolver = providers.Factory(
        DigestResolver,
        transport=transport,
        filesystem=filesystem,
        presence=presence,
    )

    acquirer = providers.Factory(
        ArtifactAcquirer,
        transport=transport,
        copier=copier,
        filesystem=filesystem,
        presence=presence,
    )

    gate = providers.Factory(
        VerificationGate,
        runner=command_runner,
        presence=presence,
        acquirer=acquirer,
        resolver=resolver,
    )

    reconciler = providers.Factory(
        StateReconciler,
        resolver=resolver,
        acquirer=acquirer,
        gate=gate,
        transport=transport,
    )

    acquisition_service = providers.Factory(
        AcquisitionService,
        reconciler=reconciler,
        concurrent_downloads=config.provided["service"]["concurrent_downloads"],
    )
