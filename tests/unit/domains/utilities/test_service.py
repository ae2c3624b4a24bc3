"""
Tests for the content utilities.
"""

import pytest

from cbcloud.domains.clipboard.models import EntryType
from cbcloud.domains.utilities import service
from cbcloud.domains.utilities.models import BatchEntry, BatchOperation, FormatOptions


class TestValidateContent:
    def test_long_text_is_invalid(self):
        result = service.validate_content("x" * 10001, EntryType.TEXT)

        assert result.validation.is_valid is False
        assert result.content.estimated_size == 10001

    def test_url_in_text_suggests_link(self):
        result = service.validate_content("https://example.com", EntryType.TEXT)

        assert result.validation.is_valid is True
        assert any("link" in s for s in result.validation.suggestions)

    @pytest.mark.parametrize(
        "content,valid,warned",
        [
            ("https://example.com", True, False),
            ("http://example.com", True, True),
            ("not a url", False, False),
        ],
    )
    def test_links(self, content, valid, warned):
        result = service.validate_content(content, EntryType.LINK)

        assert result.validation.is_valid is valid
        assert bool(result.validation.warnings) is warned

    def test_oversized_data_url(self):
        content = "data:image/png;base64," + "A" * (15 * 1024 * 1024)

        result = service.validate_content(content, EntryType.IMAGE)

        assert result.validation.is_valid is False


class TestFormatContent:
    def test_text_whitespace_and_capitalisation(self):
        result = service.format_content(
            "hello   world.\r\nthis is it",
            EntryType.TEXT,
            FormatOptions(capitalize_sentences=True),
        )

        assert result.formatted_content == "Hello world. This is it"
        assert "Removed extra whitespace" in result.changes

    def test_link_gets_https_and_loses_trailing_slash(self):
        result = service.format_content("example.com/path//", EntryType.LINK, FormatOptions())

        assert result.formatted_content == "https://example.com/path"
        assert result.changes == ["Added HTTPS protocol", "Removed trailing slashes"]


class TestAnalyzeContent:
    def test_text_insights(self):
        result = service.analyze_content(
            "Server 10.0.0.1 was down on 2024-01-02 and the password changed", EntryType.TEXT
        )

        assert result.metadata["word_count"] == 10
        assert result.metadata["likely_language"] == "English"
        assert "Contains IP address" in result.insights
        assert "Contains date format" in result.insights
        assert result.suggestions == ["Consider marking this as sensitive content"]

    def test_link_metadata(self):
        result = service.analyze_content("http://example.com/a", EntryType.LINK)

        assert result.metadata == {"domain": "example.com", "protocol": "http:", "path": "/a"}
        assert result.suggestions == ["Consider using HTTPS for security"]


class TestBatchProcess:
    def test_applies_operations_in_order(self):
        results = service.batch_process(
            [BatchEntry(id="1", content="  Hello   World  ")],
            [
                BatchOperation(type=name)
                for name in ("trim", "removeExtraSpaces", "lowercase", "explode")
            ],
        )

        assert results[0].processed == "hello world"
        assert results[0].operations == [
            "trimmed",
            "removed extra spaces",
            "converted to lowercase",
        ]
        assert results[0].errors == ["Unknown operation: explode"]


class TestSupportedFormats:
    def test_public_endpoint(self, client):
        response = client.get("/api/v1/utilities/supported-formats")

        assert response.status_code == 200
        assert set(response.json()["formats"]) == {"text", "image", "file", "link"}
