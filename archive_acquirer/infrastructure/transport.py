"""HTTP and curl implementations of the Transport port."""

import asyncio
from pathlib import Path
from typing import AsyncGenerator, List

import httpx
from tqdm import tqdm

from ..application.domain import FetchOptions, REMOTE_SCHEMES
from ..application.exceptions import TransportError, TransportTimeoutError

from .base_transport import BaseTransport
from .decorators import TransientTransportError, retry_on_network_error


class HttpTransport(BaseTransport):
    """A transport that streams http(s) URLs in-process with httpx."""

    schemes = ("http", "https")

    def __init__(
        self,
        client: httpx.AsyncClient,
        insecure_client: httpx.AsyncClient,
        chunk_size: int = 65536,
        show_progress: bool = True,
    ):
        """
        Initializes the transport adapter.

        Args:
            client: A client that verifies TLS certificates.
            insecure_client: A client with certificate checks disabled, used
                only for specs that allow insecure transfers.
            chunk_size: The streaming chunk size in bytes.
            show_progress: Whether to render a progress bar per transfer.
        """
        super().__init__()
        self.client = client
        self.insecure_client = insecure_client
        self.chunk_size = chunk_size
        self.show_progress = show_progress

    async def _stream_chunks(
        self, response: httpx.Response, target_file: Path
    ) -> AsyncGenerator[int, None]:
        """Write a response body to a file, yielding raw bytes received."""
        received = response.num_bytes_downloaded
        with open(target_file, "wb") as f:
            async for chunk in response.aiter_bytes(self.chunk_size):
                await asyncio.to_thread(f.write, chunk)
                yield response.num_bytes_downloaded - received
                received = response.num_bytes_downloaded

    async def _consume_stream_with_progress(
        self,
        stream: AsyncGenerator[int, None],
        total_size: int,
        desc: str,
    ):
        """Consume the byte stream to update a TQDM progress bar."""

        # A disabled bar does not count, so the total is tracked here.
        received = 0
        with tqdm(
            total=total_size or None,
            unit="B",
            unit_scale=True,
            desc=desc,
            disable=not self.show_progress,
        ) as progress_bar:
            async for progress in stream:
                received += progress
                progress_bar.update(progress)

        if total_size != 0 and received != total_size:
            raise TransientTransportError(
                f"Size mismatch: {received} != {total_size}"
            )

    @retry_on_network_error
    async def _stream_from_network(
        self, url: str, target_file: Path, options: FetchOptions
    ):
        """Manage the network request and the streaming process."""
        client = self.insecure_client if options.insecure else self.client
        async with client.stream(
            "GET",
            url,
            timeout=options.timeout_seconds,
            follow_redirects=options.follow_redirects,
        ) as response:
            response.raise_for_status()
            total_size = int(response.headers.get("Content-Length", 0))
            stream = self._stream_chunks(response, target_file)
            await self._consume_stream_with_progress(
                stream, total_size, target_file.name
            )

    async def _download_to(self, url: str, target: Path, options: FetchOptions):
        try:
            await self._stream_from_network(url, target, options)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"Fetching {url} timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Fetching {url} failed with HTTP "
                f"{e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Fetching {url} failed: {e}") from e

    async def aclose(self):
        await self.client.aclose()
        await self.insecure_client.aclose()


# curl exit codes worth retrying: could not connect, SSL connect error,
# empty reply, failure receiving data.
_CURL_TRANSIENT_EXIT_CODES = {7, 35, 52, 56}
_CURL_TIMEOUT_EXIT_CODE = 28


class CurlTransport(BaseTransport):
    """A transport that shells out to the curl binary."""

    tool_name = "curl"
    schemes = REMOTE_SCHEMES

    def __init__(self, executable: str = "curl"):
        super().__init__()
        self.executable = executable

    def _command(self, url: str, target: Path, options: FetchOptions) -> List[str]:
        command = [
            self.executable,
            "--fail",
            "--silent",
            "--show-error",
            "--max-time",
            str(options.timeout_seconds),
            "--output",
            str(target),
        ]
        if options.insecure:
            command.append("-k")
        if options.follow_redirects:
            command.append("-L")
        command.append(url)
        return command

    @retry_on_network_error
    async def _run_curl(self, url: str, target: Path, options: FetchOptions):
        command = self._command(url, target, options)
        self.logger.debug(f"Running {' '.join(command)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise TransportError(f"{self.executable} is not installed") from e

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        message = stderr.decode(errors="replace").strip()
        if process.returncode == 0:
            return
        if process.returncode == _CURL_TIMEOUT_EXIT_CODE:
            raise TransportTimeoutError(f"Fetching {url} timed out: {message}")
        if process.returncode in _CURL_TRANSIENT_EXIT_CODES:
            raise TransientTransportError(f"Fetching {url} failed: {message}")
        raise TransportError(
            f"Fetching {url} failed (curl exit {process.returncode}): {message}"
        )

    async def _download_to(self, url: str, target: Path, options: FetchOptions):
        await self._run_curl(url, target, options)
