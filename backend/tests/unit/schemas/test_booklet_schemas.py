"""
Unit Tests for request/response schemas
"""
import pytest
from pydantic import ValidationError

from app.schemas import (
    CreateStudentRequest,
    DownloadResponse,
    GenerateBookletRequest,
    InviteEditorRequest,
)


class TestGenerateBookletRequest:
    def test_aliases(self):
        request = GenerateBookletRequest(**{
            'graduationId': 'g1',
            'customCoverUrl': 'https://files.example.com/cover.pdf',
            'pageOrder': ['speeches', 'students'],
        })

        assert request.graduation_id == 'g1'
        assert request.custom_cover_url == 'https://files.example.com/cover.pdf'
        assert request.page_order == ['speeches', 'students']

    def test_field_names_accepted(self):
        assert GenerateBookletRequest(graduation_id='g1').page_order is None

    @pytest.mark.parametrize('page_order', [['photos'], ['messages', 'messages']])
    def test_bad_page_order(self, page_order):
        with pytest.raises(ValidationError):
            GenerateBookletRequest(graduationId='g1', pageOrder=page_order)

    def test_missing_id(self):
        with pytest.raises(ValidationError):
            GenerateBookletRequest()


def test_download_year_is_text():
    response = DownloadResponse(downloadUrl='u', filename='f.pdf', graduationYear=2025)
    assert response.graduationYear == '2025'


def test_create_student_defaults():
    request = CreateStudentRequest(studentName='Ann')
    assert request.access_type == 'public'
    assert request.password is None


def test_invite_requires_email():
    with pytest.raises(ValidationError):
        InviteEditorRequest(email='')
