"""
Record Model Tests
"""
from pdf2text.models import ConvertedDocument, parse_utc_iso


class TestConvertedDocument:
    """Test ConvertedDocument serialization"""

    def test_file_size_is_utf8_bytes(self):
        record = ConvertedDocument(original_filename='a.pdf', converted_text='naïve')
        assert record.file_size == 6

    def test_to_dict_camel_case(self):
        record = ConvertedDocument(
            id='1-abc', base_id='1-abc', original_filename='a.pdf', converted_text='x',
            keywords=['k'], summary='s', converted_at='2026-01-01T00:00:00+00:00', revision=1,
            pdf_path='pdfs/1_a.pdf', pdf_size=10,
        )
        data = record.to_dict()
        assert data['baseId'] == '1-abc'
        assert data['originalFilename'] == 'a.pdf'
        assert data['pdfPath'] == 'pdfs/1_a.pdf'
        assert data['pdfSize'] == 10

    def test_optional_pdf_fields_omitted(self):
        data = ConvertedDocument(original_filename='a.pdf', converted_text='x').to_dict()
        assert 'pdfPath' not in data
        assert 'pdfSize' not in data

    def test_round_trip(self):
        record = ConvertedDocument(
            id='1-abc', base_id='0-base', original_filename='a.pdf', converted_text='body',
            keywords=['one', 'two'], summary='sum', converted_at='2026-01-01T00:00:00+00:00', revision=4,
        )
        assert ConvertedDocument.from_dict(record.to_dict()) == record

    def test_summary_flags(self):
        entry = ConvertedDocument(original_filename='a.pdf', converted_text='x', pdf_path='pdfs/x.pdf').summary_dict()
        assert entry['hasKeywords'] is False
        assert entry['hasSummary'] is False
        assert entry['hasPdf'] is True
        assert set(entry) == {
            'id', 'baseId', 'originalFilename', 'convertedAt', 'fileSize',
            'revision', 'hasKeywords', 'hasSummary', 'hasPdf',
        }

    def test_from_dict_tolerates_bad_keywords(self):
        record = ConvertedDocument.from_dict({'originalFilename': 'a.pdf', 'convertedText': 'x', 'keywords': 'oops'})
        assert record.keywords == []


class TestParseUtcIso:
    """Timestamp parsing"""

    def test_z_suffix(self):
        assert parse_utc_iso('2026-10-19T12:00:00Z').hour == 12

    def test_invalid(self):
        assert parse_utc_iso('yesterday') is None
        assert parse_utc_iso('') is None
