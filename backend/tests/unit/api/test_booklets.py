"""
Unit Tests for Booklet API Endpoints
"""
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from app.core.dependencies import get_assembler
from app.main import app
from app.modules.booklet import BookletAssembler
from app.services.student_repository import StudentRepository

GENERATE_URL = '/api/v1/booklets/generate'


@pytest.fixture
def override_assembler():
    """Swap the assembler dependency for the duration of a test"""
    def _override(factory):
        app.dependency_overrides[get_assembler] = factory
    yield _override
    app.dependency_overrides.pop(get_assembler, None)


async def _graduation_with_pdf(create_graduation, store, pdf_server, pdf_bytes, **fields):
    gid = await create_graduation(**fields)
    url = pdf_server.add(f"{gid}.pdf", pdf_bytes(pages=2))
    await StudentRepository(store).create(gid, {"name": "Ann", "profilePdfUrl": url})
    return gid


class TestGenerateBooklet:
    """POST /booklets/generate"""

    @pytest.mark.asyncio
    async def test_generate_success(self, client: AsyncClient, store, create_graduation, pdf_server, pdf_bytes):
        """Booklet is generated and its URL returned"""
        gid = await _graduation_with_pdf(create_graduation, store, pdf_server, pdf_bytes)

        response = await client.post(GENERATE_URL, json={'graduationId': gid})

        assert response.status_code == 200
        data = response.json()
        assert data['success'] is True
        assert data['pageCount'] == 3
        assert data['processedStudents'] == 1
        assert data['skippedStudents'] == []
        assert data['bookletUrl'].startswith('http://assets.test/assets/graduation-booklets/')
        assert data['message'] == 'Successfully generated booklet with 1/1 student profiles'

    @pytest.mark.asyncio
    async def test_generate_with_page_order(self, client: AsyncClient, store, create_graduation, pdf_server, pdf_bytes):
        """Request page order is honoured"""
        gid = await _graduation_with_pdf(create_graduation, store, pdf_server, pdf_bytes)

        response = await client.post(GENERATE_URL, json={'graduationId': gid, 'pageOrder': ['messages']})

        assert response.status_code == 200
        assert response.json()['pageCount'] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize('body', [
        {},
        {'graduationId': ''},
        {'graduationId': 'bad id!'},
        {'graduationId': 'abc', 'pageOrder': ['photos']},
        {'graduationId': 'abc', 'pageOrder': ['students', 'students']},
    ])
    async def test_generate_invalid_request(self, client: AsyncClient, body):
        """Malformed requests are rejected with 400"""
        response = await client.post(GENERATE_URL, json=body)

        assert response.status_code == 400
        data = response.json()
        assert data['success'] is False
        assert data['error'] == 'VALIDATION_ERROR'
        assert data['userMessage']

    @pytest.mark.asyncio
    async def test_generate_unknown_graduation(self, client: AsyncClient):
        """Unknown graduation gives 404"""
        response = await client.post(GENERATE_URL, json={'graduationId': 'missing-grad'})

        assert response.status_code == 404
        assert response.json()['error'] == 'GRADUATION_NOT_FOUND'

    @pytest.mark.asyncio
    async def test_generate_without_pdfs(self, client: AsyncClient, store, create_graduation):
        """No uploaded PDFs gives 400 with a friendly message"""
        gid = await create_graduation()
        await StudentRepository(store).create(gid, {"name": "Ann"})

        response = await client.post(GENERATE_URL, json={'graduationId': gid})

        assert response.status_code == 400
        data = response.json()
        assert data['error'] == 'NO_STUDENT_PDFS'
        assert 'upload' in data['userMessage'].lower()

    @pytest.mark.asyncio
    async def test_generate_too_large(
        self, client: AsyncClient, store, assets, http_client, create_graduation, pdf_server, pdf_bytes, override_assembler
    ):
        """Oversized booklet gives 413"""
        gid = await _graduation_with_pdf(create_graduation, store, pdf_server, pdf_bytes)
        override_assembler(lambda: BookletAssembler(store, assets, http_client, max_output_bytes=100))

        response = await client.post(GENERATE_URL, json={'graduationId': gid})

        assert response.status_code == 413
        assert response.json()['error'] == 'BOOKLET_TOO_LARGE'

    @pytest.mark.asyncio
    async def test_generate_upload_failure(
        self, client: AsyncClient, store, assets, create_graduation, pdf_server, pdf_bytes, monkeypatch
    ):
        """Storage failures give 500"""
        gid = await _graduation_with_pdf(create_graduation, store, pdf_server, pdf_bytes)

        async def broken_put(key, data, content_type):
            raise OSError("disk full")

        monkeypatch.setattr(assets, '_put', broken_put)
        response = await client.post(GENERATE_URL, json={'graduationId': gid})

        assert response.status_code == 500
        assert response.json()['error'] == 'UPLOAD_FAILED'

    @pytest.mark.asyncio
    async def test_generate_unexpected_error(self, client: AsyncClient, override_assembler):
        """Unhandled exceptions give a generic 500"""
        class Exploding:
            async def generate(self, *args, **kwargs):
                raise RuntimeError("boom")

        override_assembler(lambda: Exploding())
        response = await client.post(GENERATE_URL, json={'graduationId': 'abc'})

        assert response.status_code == 500
        data = response.json()
        assert data['success'] is False
        assert data['error'] == 'INTERNAL_ERROR'


class TestDownloadBooklet:
    """GET /booklets/{id}/download"""

    @pytest.mark.asyncio
    async def test_download_available(self, client: AsyncClient, create_graduation):
        gid = await create_graduation(
            schoolName='Lincoln High',
            generatedBookletUrl='http://assets.test/assets/graduation-booklets/x.pdf?v=1',
        )

        response = await client.get(f'/api/v1/booklets/{gid}/download')

        assert response.status_code == 200
        data = response.json()
        assert data['downloadUrl'].endswith('x.pdf?v=1')
        assert data['filename'] == 'Lincoln High-2025-Booklet.pdf'

    @pytest.mark.asyncio
    async def test_download_scheduled(self, client: AsyncClient, create_graduation):
        """Scheduled downloads give 403 with the availability time"""
        gid = await create_graduation(
            generatedBookletUrl='http://assets.test/assets/graduation-booklets/x.pdf?v=1',
            config={
                'enableDownloadScheduling': True,
                'downloadableAfterDate': datetime(2999, 1, 1, tzinfo=timezone.utc),
                'downloadMessage': 'After the ceremony',
            },
        )

        response = await client.get(f'/api/v1/booklets/{gid}/download')

        assert response.status_code == 403
        data = response.json()
        assert data['error'] == 'DOWNLOAD_NOT_AVAILABLE'
        assert data['message'] == 'After the ceremony'
        assert data['details']['availableAt'] == '2999-01-01T00:00:00Z'
        assert data['details']['remainingMilliseconds'] > 0

    @pytest.mark.asyncio
    async def test_download_not_generated(self, client: AsyncClient, create_graduation):
        gid = await create_graduation()

        response = await client.get(f'/api/v1/booklets/{gid}/download')

        assert response.status_code == 404
        assert response.json()['error'] == 'BOOKLET_NOT_GENERATED'

    @pytest.mark.asyncio
    async def test_download_unknown_graduation(self, client: AsyncClient):
        response = await client.get('/api/v1/booklets/nope/download')

        assert response.status_code == 404
        assert response.json()['error'] == 'GRADUATION_NOT_FOUND'
