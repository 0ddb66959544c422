"""
Unit Tests for Editor Management Endpoints
"""
import pytest
from httpx import AsyncClient

from app.services.editor_service import USERS


@pytest.fixture
async def graduation_id(store, create_graduation):
    await store.set(f"{USERS}/alice", {"email": "alice@school.edu"})
    await store.set(f"{USERS}/bob", {"email": "bob@school.edu"})
    return await create_graduation(created_by="alice")


class TestEditorEndpoints:

    @pytest.mark.asyncio
    async def test_requires_editor_header(self, client: AsyncClient, graduation_id):
        response = await client.get(f'/api/v1/graduations/{graduation_id}/editors')

        assert response.status_code == 400
        assert response.json()['details']['field'] == 'X-Editor-Id'

    @pytest.mark.asyncio
    async def test_invite_list_remove(self, client: AsyncClient, graduation_id):
        """Full editor lifecycle"""
        url = f'/api/v1/graduations/{graduation_id}/editors'
        headers = {'X-Editor-Id': 'alice'}

        invited = await client.post(url, json={'email': 'bob@school.edu'}, headers=headers)
        assert invited.status_code == 200
        assert invited.json()['inviteeUid'] == 'bob'

        listed = await client.get(url, headers=headers)
        assert [e['uid'] for e in listed.json()['editors']] == ['alice', 'bob']

        removed = await client.delete(f'{url}/alice', headers={'X-Editor-Id': 'bob'})
        assert removed.status_code == 200

        last = await client.delete(f'{url}/bob', headers={'X-Editor-Id': 'bob'})
        assert last.status_code == 400
        assert last.json()['error'] == 'LAST_EDITOR'

    @pytest.mark.asyncio
    async def test_non_editor_forbidden(self, client: AsyncClient, graduation_id):
        response = await client.get(
            f'/api/v1/graduations/{graduation_id}/editors',
            headers={'X-Editor-Id': 'mallory'},
        )

        assert response.status_code == 403
        assert response.json()['error'] == 'NOT_AN_EDITOR'

    @pytest.mark.asyncio
    async def test_invite_unknown_user(self, client: AsyncClient, graduation_id):
        response = await client.post(
            f'/api/v1/graduations/{graduation_id}/editors',
            json={'email': 'stranger@school.edu'},
            headers={'X-Editor-Id': 'alice'},
        )

        assert response.status_code == 404
        assert response.json()['error'] == 'USER_NOT_FOUND'
