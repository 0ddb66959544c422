"""
Unit Tests for Student and Site Password Endpoints
"""
import pytest
from httpx import AsyncClient


class TestStudentEndpoints:
    """/graduations/{id}/students"""

    @pytest.mark.asyncio
    async def test_create_public_student(self, client: AsyncClient, create_graduation):
        gid = await create_graduation()

        response = await client.post(f'/api/v1/graduations/{gid}/students', json={'studentName': 'Ann Lee'})

        assert response.status_code == 201
        data = response.json()
        assert data['success'] is True
        assert data['studentId']
        assert data['generatedPassword'] is None

    @pytest.mark.asyncio
    async def test_create_invalid_name(self, client: AsyncClient, create_graduation):
        gid = await create_graduation()

        response = await client.post(f'/api/v1/graduations/{gid}/students', json={'studentName': 'Ann <3'})

        assert response.status_code == 400
        assert response.json()['details']['field'] == 'studentName'

    @pytest.mark.asyncio
    async def test_password_student_flow(self, client: AsyncClient, create_graduation):
        """Create a password student, then verify good and bad passwords"""
        gid = await create_graduation()
        created = await client.post(
            f'/api/v1/graduations/{gid}/students',
            json={'studentName': 'Ann', 'accessType': 'password', 'password': 'tulip'},
        )
        sid = created.json()['studentId']
        url = f'/api/v1/graduations/{gid}/students/{sid}/verify-password'

        good = await client.post(url, json={'password': 'tulip'})
        bad = await client.post(url, json={'password': 'daisy'})

        assert good.json() == {'success': True, 'valid': True}
        assert bad.json() == {'success': True, 'valid': False}

    @pytest.mark.asyncio
    async def test_delete_student(self, client: AsyncClient, create_graduation):
        gid = await create_graduation()
        created = await client.post(f'/api/v1/graduations/{gid}/students', json={'studentName': 'Ann'})
        sid = created.json()['studentId']

        first = await client.delete(f'/api/v1/graduations/{gid}/students/{sid}')
        second = await client.delete(f'/api/v1/graduations/{gid}/students/{sid}')

        assert first.status_code == 200
        assert second.status_code == 404
        assert second.json()['error'] == 'STUDENT_NOT_FOUND'


class TestSitePassword:
    """/graduations/{id}/site-password"""

    @pytest.mark.asyncio
    async def test_set_and_verify(self, client: AsyncClient, create_graduation):
        gid = await create_graduation()

        set_response = await client.put(f'/api/v1/graduations/{gid}/site-password', json={'password': 'open-sesame'})
        good = await client.post(f'/api/v1/graduations/{gid}/site-password/verify', json={'password': 'open-sesame'})
        bad = await client.post(f'/api/v1/graduations/{gid}/site-password/verify', json={'password': 'nope-nope'})

        assert set_response.status_code == 200
        assert good.json()['valid'] is True
        assert bad.json()['valid'] is False

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, client: AsyncClient, create_graduation):
        gid = await create_graduation()

        response = await client.put(f'/api/v1/graduations/{gid}/site-password', json={'password': '12345'})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_verify_without_password_set(self, client: AsyncClient, create_graduation):
        gid = await create_graduation()

        response = await client.post(f'/api/v1/graduations/{gid}/site-password/verify', json={'password': 'anything'})

        assert response.status_code == 400
        assert response.json()['message'] == 'No site password is set'
