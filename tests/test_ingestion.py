import json

import pytest

from demand_drafter.errors import InputError
from demand_drafter.processors.ingestion import (
    parse_bool,
    parse_existing_exhibits,
    parse_keep_files,
    plan_ingestion,
)


class TestPlanIngestion:
    """Which exhibits are kept and which uploads are extracted."""

    def test_keep_files_filters_existing(self, existing_exhibits):
        plan = plan_ingestion([], existing_exhibits, keep_files=['a.pdf'])

        assert [e.file_name for e in plan.retained] == ['a.pdf']
        assert plan.new_files == []

    def test_missing_keep_files_keeps_everything(self, existing_exhibits):
        plan = plan_ingestion([], existing_exhibits, keep_files=None)

        assert [e.file_name for e in plan.retained] == ['a.pdf', 'b.pdf']

    def test_upload_matching_retained_exhibit_is_skipped(self, existing_exhibits, make_upload):
        plan = plan_ingestion([make_upload('a.pdf'), make_upload('c.pdf')], existing_exhibits)

        assert [u.file_name for u in plan.new_files] == ['c.pdf']
        assert plan.skipped_files == ['a.pdf']

    def test_upload_matching_dropped_exhibit_is_processed(self, existing_exhibits, make_upload):
        plan = plan_ingestion([make_upload('b.pdf')], existing_exhibits, keep_files=['a.pdf'])

        assert [u.file_name for u in plan.new_files] == ['b.pdf']
        assert plan.skipped_files == []

    def test_same_name_twice_in_one_request(self, make_upload):
        plan = plan_ingestion([make_upload('x.pdf', b'one'), make_upload('x.pdf', b'two')], [])

        assert len(plan.new_files) == 1
        assert plan.new_files[0].data == b'one'
        assert plan.skipped_files == ['x.pdf']

    def test_reprocess_all_ignores_uploads_and_keep_files(self, existing_exhibits, make_upload):
        plan = plan_ingestion([make_upload('c.pdf')], existing_exhibits, keep_files=[], reprocess_all=True)

        assert plan.reprocess_all
        assert plan.new_files == []
        assert [e.file_name for e in plan.retained] == ['a.pdf', 'b.pdf']
        assert all(e.reprocessed and e.reprocessed_at for e in plan.retained)
        assert not existing_exhibits[0].reprocessed

    def test_nothing_to_do(self):
        with pytest.raises(InputError):
            plan_ingestion([], [])

    def test_everything_removed(self, existing_exhibits):
        with pytest.raises(InputError):
            plan_ingestion([], existing_exhibits, keep_files=[])

    def test_reprocess_without_exhibits(self):
        with pytest.raises(InputError):
            plan_ingestion([], [], reprocess_all=True)

    def test_rejects_non_pdf(self, make_upload):
        with pytest.raises(InputError) as exc_info:
            plan_ingestion([make_upload('notes.docx')], [])
        assert exc_info.value.status_code == 400


class TestFormParsing:

    def test_existing_exhibits_round_trip(self, existing_exhibits):
        raw = json.dumps([e.to_dict() for e in existing_exhibits])

        parsed = parse_existing_exhibits(raw)

        assert parsed == existing_exhibits

    def test_existing_exhibits_skips_entries_without_name(self):
        raw = json.dumps([{'heading': 'orphan'}, {'fileName': 'a.pdf', 'expenses': '12.50'}])

        parsed = parse_existing_exhibits(raw)

        assert [e.file_name for e in parsed] == ['a.pdf']
        assert parsed[0].expenses == 12.5

    @pytest.mark.parametrize('raw', ['{not json', '{"fileName": "a.pdf"}'])
    def test_existing_exhibits_invalid(self, raw):
        with pytest.raises(InputError):
            parse_existing_exhibits(raw)

    def test_empty_fields(self):
        assert parse_existing_exhibits(None) == []
        assert parse_existing_exhibits('') == []
        assert parse_keep_files(None) is None
        assert parse_keep_files('') == []

    def test_keep_files(self):
        assert parse_keep_files('["a.pdf", 3, "b.pdf"]') == ['a.pdf', 'b.pdf']
        with pytest.raises(InputError):
            parse_keep_files('"a.pdf"')

    @pytest.mark.parametrize('value,expected', [
        ('true', True), ('True', True), ('1', True),
        ('false', False), ('', False), (None, False),
    ])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected

    def test_existing_exhibit_text_is_kept_verbatim(self):
        raw = json.dumps([{'fileName': 'a.pdf', 'heading': ' Exhibit 1: ER ', 'summary': 'ER visit.\n'}])

        exhibit = parse_existing_exhibits(raw)[0]

        assert exhibit.heading == ' Exhibit 1: ER '
        assert exhibit.summary == 'ER visit.\n'
