import pytest

from demand_drafter.utils.file_parser import UploadedFile, allowed_file, file_hash, parse_pdf_bytes


@pytest.mark.parametrize('name,expected', [
    ('report.pdf', True),
    ('SCAN.PDF', True),
    ('notes.txt', False),
    ('pdf', False),
    ('', False),
])
def test_allowed_file(name, expected):
    assert allowed_file(name) is expected


def test_file_hash_is_stable_and_short():
    first = file_hash('a.pdf', 1024, '1700000000000')

    assert first == file_hash('a.pdf', 1024, '1700000000000')
    assert len(first) == 16
    assert first != file_hash('a.pdf', 1025, '1700000000000')
    assert file_hash('a.pdf', 1024) == file_hash('a.pdf', 1024, None)


def test_uploaded_file_size():
    assert UploadedFile('a.pdf', b'12345').size == 5


def test_unreadable_pdf_yields_no_text():
    assert parse_pdf_bytes(b'this is not a pdf') == ''
