"""Tests covering the present/absent state machine and batch runs."""

import pytest

from archive_acquirer.application.domain import (
    AcquireStatus,
    DigestStatus,
    Ensure,
    VerifyResult,
)
from archive_acquirer.application.exceptions import (
    BatchError,
    ConfigurationError,
    DigestFetchError,
    DuplicateTargetError,
    FilesystemError,
    InvalidStateError,
    UnsupportedDigestError,
    UnsupportedSchemeError,
    VerificationFailedError,
)
from archive_acquirer.application.service import AcquisitionService


@pytest.mark.asyncio
async def test_inline_digest_fetch_and_verify(harness, archive_md5) -> None:
    spec = harness.spec(digest_string=archive_md5)

    outcome = await harness.reconciler.reconcile(spec)

    assert spec.digest_path.read_text() == f"{archive_md5} *a.tar.gz\n"
    assert harness.transport.calls == ["http://x/a.tar.gz"]
    assert outcome.digest is DigestStatus.CREATED
    assert outcome.acquire is AcquireStatus.FETCHED
    assert outcome.verify is VerifyResult.OK
    assert spec.artifact_path.exists()
    assert spec.digest_path.exists()


@pytest.mark.asyncio
async def test_second_run_is_a_no_op(harness, archive_md5) -> None:
    spec = harness.spec(digest_string=archive_md5)
    await harness.reconciler.reconcile(spec)

    outcome = await harness.reconciler.reconcile(spec)

    assert harness.transport.calls == ["http://x/a.tar.gz"]
    assert harness.runner.commands == ["md5sum -c a.tar.gz.md5"]
    assert outcome.acquire is AcquireStatus.ALREADY_PRESENT
    assert outcome.verify is None
    assert not outcome.changed


@pytest.mark.asyncio
async def test_digest_fetched_from_derived_url(harness, archive_md5) -> None:
    harness.transport.bodies["http://x/a.tar.gz.md5"] = (
        f"{archive_md5}  a.tar.gz\n".encode()
    )
    spec = harness.spec()

    outcome = await harness.reconciler.reconcile(spec)

    assert harness.transport.calls == ["http://x/a.tar.gz.md5", "http://x/a.tar.gz"]
    assert outcome.verify is VerifyResult.OK


@pytest.mark.asyncio
async def test_digest_fetch_failure_prevents_artifact_fetch(harness) -> None:
    spec = harness.spec()

    with pytest.raises(DigestFetchError):
        await harness.reconciler.reconcile(spec)

    assert harness.transport.calls == ["http://x/a.tar.gz.md5"]
    assert not spec.artifact_path.exists()


@pytest.mark.asyncio
async def test_inline_digest_never_fetches_digest(harness, archive_md5) -> None:
    spec = harness.spec(digest_string=archive_md5, digest_url="http://x/SUMS")

    await harness.reconciler.reconcile(spec)

    assert harness.transport.calls == ["http://x/a.tar.gz"]


@pytest.mark.asyncio
async def test_checksum_disabled_never_verifies(harness, caplog) -> None:
    caplog.set_level("INFO")
    spec = harness.spec(checksum_enabled=False)

    outcome = await harness.reconciler.reconcile(spec)

    assert spec.artifact_path.exists()
    assert not spec.digest_path.exists()
    assert harness.runner.commands == []
    assert outcome.digest is DigestStatus.SKIPPED
    assert outcome.verify is None
    assert "Checksum verification is disabled" in caplog.text


@pytest.mark.asyncio
async def test_mismatch_on_fresh_fetch_removes_both_files(harness) -> None:
    spec = harness.spec(digest_string="0" * 32)

    with pytest.raises(VerificationFailedError):
        await harness.reconciler.reconcile(spec)

    assert not spec.artifact_path.exists()
    assert not spec.digest_path.exists()


@pytest.mark.asyncio
async def test_mismatch_on_local_copy_removes_both_files(
    harness, tmp_path, archive_bytes
) -> None:
    source = tmp_path / "upstream.tar.gz"
    source.write_bytes(archive_bytes)
    spec = harness.spec(url=f"file://{source}", digest_string="0" * 32)

    with pytest.raises(VerificationFailedError):
        await harness.reconciler.reconcile(spec)

    assert not spec.artifact_path.exists()
    assert not spec.digest_path.exists()
    assert source.exists()


@pytest.mark.asyncio
async def test_local_copy_with_matching_digest(
    harness, tmp_path, archive_bytes, archive_md5
) -> None:
    source = tmp_path / "upstream.tar.gz"
    source.write_bytes(archive_bytes)
    spec = harness.spec(url=f"file://{source}", digest_string=archive_md5)

    outcome = await harness.reconciler.reconcile(spec)

    assert outcome.verify is VerifyResult.OK
    assert spec.artifact_path.read_bytes() == archive_bytes


@pytest.mark.asyncio
async def test_absent_removes_both_files(harness) -> None:
    spec = harness.spec(ensure="absent")
    spec.target_dir.mkdir(parents=True)
    spec.artifact_path.write_bytes(b"archive")
    spec.digest_path.write_text("abc *a.tar.gz\n")

    outcome = await harness.reconciler.reconcile(spec)

    assert outcome.ensure is Ensure.ABSENT
    assert outcome.removed
    assert not spec.artifact_path.exists()
    assert not spec.digest_path.exists()
    assert harness.transport.calls == []


@pytest.mark.asyncio
async def test_absent_on_missing_files_succeeds(harness) -> None:
    outcome = await harness.reconciler.reconcile(harness.spec(ensure="absent"))

    assert outcome.ensure is Ensure.ABSENT
    assert not outcome.removed
    assert not outcome.changed


@pytest.mark.asyncio
async def test_unsupported_digest_type_touches_nothing(harness) -> None:
    spec = harness.spec(digest_type="crc32")

    with pytest.raises(UnsupportedDigestError):
        await harness.reconciler.reconcile(spec)

    assert not spec.target_dir.exists()
    assert harness.transport.calls == []


@pytest.mark.asyncio
async def test_invalid_ensure_touches_nothing(harness) -> None:
    spec = harness.spec(ensure="latest", digest_string="abc")

    with pytest.raises(InvalidStateError):
        await harness.reconciler.reconcile(spec)

    assert not spec.target_dir.exists()


@pytest.mark.asyncio
async def test_scheme_the_transport_cannot_fetch_touches_nothing(harness) -> None:
    harness.transport.schemes = ("http", "https")
    spec = harness.spec(url="ftp://x/a.tar.gz", digest_string="abc")

    with pytest.raises(UnsupportedSchemeError):
        await harness.reconciler.reconcile(spec)

    assert not spec.target_dir.exists()


@pytest.mark.asyncio
async def test_batch_reconciles_every_spec(harness, archive_bytes, archive_md5) -> None:
    harness.transport.bodies["http://x/b.tar.gz"] = archive_bytes
    specs = [
        harness.spec(digest_string=archive_md5),
        harness.spec(
            name="b.tar.gz", url="http://x/b.tar.gz", digest_string=archive_md5
        ),
    ]
    service = AcquisitionService(harness.reconciler, concurrent_downloads=2)

    outcomes = await service.run(specs)

    assert [outcome.name for outcome in outcomes] == ["a.tar.gz", "b.tar.gz"]
    assert all(spec.artifact_path.exists() for spec in specs)


@pytest.mark.asyncio
async def test_batch_collects_failures(harness, archive_md5) -> None:
    specs = [
        harness.spec(digest_string=archive_md5),
        harness.spec(name="b.tar.gz", url="http://x/b.tar.gz"),
    ]
    service = AcquisitionService(harness.reconciler, concurrent_downloads=2)

    with pytest.raises(BatchError) as excinfo:
        await service.run(specs)

    assert list(excinfo.value.errors) == ["b.tar.gz"]
    assert isinstance(excinfo.value.errors["b.tar.gz"], DigestFetchError)
    assert specs[0].artifact_path.exists()


@pytest.mark.asyncio
async def test_batch_rejects_duplicate_targets(harness) -> None:
    specs = [harness.spec(digest_string="abc"), harness.spec(digest_string="def")]
    service = AcquisitionService(harness.reconciler, concurrent_downloads=2)

    with pytest.raises(DuplicateTargetError):
        await service.run(specs)

    assert harness.transport.calls == []


@pytest.mark.asyncio
async def test_empty_batch(harness) -> None:
    service = AcquisitionService(harness.reconciler, concurrent_downloads=2)
    assert await service.run([]) == []


@pytest.mark.asyncio
async def test_unusable_target_dir_raises_filesystem_error(
    harness, tmp_path, archive_md5
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    spec = harness.spec(target_dir=blocker / "sub", digest_string=archive_md5)

    with pytest.raises(FilesystemError):
        await harness.reconciler.reconcile(spec)

    assert harness.transport.calls == []


@pytest.mark.asyncio
async def test_batch_collects_filesystem_errors(
    harness, tmp_path, archive_bytes, archive_md5
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    harness.transport.bodies["http://x/b.tar.gz"] = archive_bytes
    specs = [
        harness.spec(target_dir=blocker / "sub", digest_string=archive_md5),
        harness.spec(
            name="b.tar.gz", url="http://x/b.tar.gz", digest_string=archive_md5
        ),
    ]
    service = AcquisitionService(harness.reconciler, concurrent_downloads=2)

    with pytest.raises(BatchError) as excinfo:
        await service.run(specs)

    assert list(excinfo.value.errors) == ["a.tar.gz"]
    assert isinstance(excinfo.value.errors["a.tar.gz"], FilesystemError)
    assert specs[1].artifact_path.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("ensure", ["present", "absent"])
async def test_parent_directory_name_is_rejected(
    harness, archive_md5, ensure
) -> None:
    harness.target_dir.mkdir()
    spec = harness.spec(name="..", ensure=ensure, digest_string=archive_md5)

    with pytest.raises(ConfigurationError):
        await harness.reconciler.reconcile(spec)

    assert harness.target_dir.parent.is_dir()
    assert harness.transport.calls == []


@pytest.mark.asyncio
async def test_batch_rejects_artifact_named_like_a_digest_record(harness) -> None:
    specs = [
        harness.spec(digest_string="abc"),
        harness.spec(
            name="a.tar.gz.md5", url="http://x/a.tar.gz.md5", digest_string="def"
        ),
    ]
    service = AcquisitionService(harness.reconciler, concurrent_downloads=2)

    with pytest.raises(DuplicateTargetError):
        await service.run(specs)

    assert harness.transport.calls == []
    assert not harness.target_dir.exists()
