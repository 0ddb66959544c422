"""
Download and validate a remote PDF.

Guards: overall timeout, size cap checked against Content-Length before the
body is read and again while streaming, non-empty body, at least one page.
Each failure raises a ``PdfFetchError`` carrying a short reason.
"""

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import httpx
from PyPDF2 import PdfReader

from app.core.config import settings


class PdfFetchError(Exception):
    """A single PDF could not be used"""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


@dataclass
class FetchedPdf:
    url: str
    reader: PdfReader
    size_bytes: int

    @property
    def page_count(self) -> int:
        return len(self.reader.pages)


class PdfFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = settings.BOOKLET_FETCH_TIMEOUT,
        max_bytes: int = settings.BOOKLET_MAX_STUDENT_PDF_BYTES,
        user_agent: str = settings.BOOKLET_USER_AGENT,
    ):
        self.client = client
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.user_agent = user_agent

    async def fetch(self, url: str) -> FetchedPdf:
        try:
            data = await asyncio.wait_for(self._download(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise PdfFetchError(url, f"timed out after {self.timeout:g}s")
        except httpx.TimeoutException:
            raise PdfFetchError(url, f"timed out after {self.timeout:g}s")
        except httpx.HTTPError as e:
            raise PdfFetchError(url, f"network error ({type(e).__name__})")
        except (httpx.InvalidURL, ValueError):
            raise PdfFetchError(url, "invalid URL")

        if not data:
            raise PdfFetchError(url, "empty file")

        reader = self._parse(url, data)
        return FetchedPdf(url=url, reader=reader, size_bytes=len(data))

    async def _download(self, url: str) -> bytes:
        async with self.client.stream(
            "GET",
            url,
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
            follow_redirects=True,
        ) as response:
            if response.status_code != 200:
                raise PdfFetchError(url, f"HTTP {response.status_code}")

            declared = _content_length(response)
            if declared is not None and declared > self.max_bytes:
                raise PdfFetchError(url, f"too large ({declared} bytes)")

            buffer = bytearray()
            async for chunk in response.aiter_bytes():
                buffer.extend(chunk)
                if len(buffer) > self.max_bytes:
                    raise PdfFetchError(url, f"too large (over {self.max_bytes} bytes)")
            return bytes(buffer)

    def _parse(self, url: str, data: bytes) -> PdfReader:
        try:
            reader = PdfReader(BytesIO(data))
            if reader.is_encrypted:
                reader.decrypt("")
            page_count = len(reader.pages)
        except Exception as e:
            raise PdfFetchError(url, f"unreadable PDF ({type(e).__name__})")
        if page_count == 0:
            raise PdfFetchError(url, "no pages")
        return reader


def _content_length(response: httpx.Response) -> Optional[int]:
    raw = response.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None
