"""
Graduation Booklets - Test Configuration and Fixtures
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone
from io import BytesIO
from typing import AsyncGenerator, Callable, Dict, Optional, Tuple

import httpx
import pytest
from faker import Faker
from httpx import AsyncClient, ASGITransport
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

# Set testing environment before the app reads its settings
_TEST_ROOT = tempfile.mkdtemp(prefix="booklets-tests-")
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DEBUG'] = 'false'
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{_TEST_ROOT}/app.db"
os.environ['STORAGE_MODE'] = 'local'
os.environ['LOCAL_STORAGE_DIR'] = f"{_TEST_ROOT}/assets"
os.environ['LOCAL_ASSET_BASE_URL'] = 'http://assets.test/assets'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['REDIS_URL'] = ''
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_LEVEL'] = 'WARNING'

from app.main import app
from app.services.asset_store import LocalAssetStore
from app.services.document_store import SQLDocumentStore, create_document_store
from app.services.graduation_repository import GraduationRepository

fake = Faker()

ASSET_BASE_URL = "http://assets.test/assets"
PDF_HOST = "https://files.example.com"


class FakeClock:
    """Controllable UTC clock"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_pdf(pages: int = 1, label: str = "page") -> bytes:
    """Small real PDF with ``pages`` pages"""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    for i in range(pages):
        c.drawString(72, 720, f"{label} {i + 1}")
        c.showPage()
    c.save()
    return buffer.getvalue()


class PdfServer:
    """Routes for httpx.MockTransport: url -> (status, body)"""

    def __init__(self):
        self.routes: Dict[str, Tuple[int, bytes]] = {}
        self.requests = []

    def add(self, name: str, body: bytes, status: int = 200) -> str:
        url = f"{PDF_HOST}/{name}"
        self.routes[url] = (status, body)
        return url

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get(str(request.url), (404, b"not found"))
        return httpx.Response(status, content=body)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def store(tmp_path, clock) -> AsyncGenerator[SQLDocumentStore, None]:
    """Fresh sqlite-backed document store per test"""
    doc_store = await create_document_store(
        url=f"sqlite+aiosqlite:///{tmp_path}/documents.db",
        clock=clock,
        poll_seconds=0,
    )
    yield doc_store
    await doc_store.close()


@pytest.fixture
def assets(tmp_path) -> LocalAssetStore:
    return LocalAssetStore(tmp_path / "assets", ASSET_BASE_URL)


@pytest.fixture
def pdf_server() -> PdfServer:
    return PdfServer()


@pytest.fixture
async def http_client(pdf_server) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(pdf_server.handler)) as client:
        yield client


@pytest.fixture
def graduations(store) -> GraduationRepository:
    return GraduationRepository(store)


@pytest.fixture
def create_graduation(graduations) -> Callable:
    async def _create(created_by: str = "teacher-1", **fields) -> str:
        data = {
            "schoolName": fields.pop("schoolName", f"{fake.last_name()} High School"),
            "graduationYear": fields.pop("graduationYear", "2025"),
            "config": fields.pop("config", {}),
        }
        data.update(fields)
        return await graduations.create(data, created_by=created_by)
    return _create


@pytest.fixture
async def client(store, assets, http_client) -> AsyncGenerator[AsyncClient, None]:
    """API client wired to the per-test stores"""
    app.state.store = store
    app.state.assets = assets
    app.state.http_client = http_client

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


@pytest.fixture
def pdf_bytes() -> Callable[..., bytes]:
    return make_pdf
