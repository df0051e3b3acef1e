"""
Unit tests for attachment preparation.
"""
import base64

import pytest

from chat_gateway.core.errors import AttachmentError
from chat_gateway.models.attachments import (
    MAX_FILE_SIZE,
    prepare_attachment,
    prepare_attachments,
    resolve_format,
    sanitize_filename,
)


class TestSanitizeFilename:
    """Test file name reduction."""

    def test_strips_extension_and_disallowed_chars(self):
        """Test punctuation is removed and spaces collapsed."""
        assert sanitize_filename("Q3 report_final (v2)!.pdf") == "Q3 reportfinal (v2)"

    def test_empty_result_falls_back(self):
        """Test a name with nothing usable becomes 'document'."""
        assert sanitize_filename("___.txt") == "document"

    def test_length_is_capped(self):
        """Test names are truncated to 200 characters."""
        assert len(sanitize_filename("a" * 300 + ".txt")) == 200


class TestPrepareAttachment:
    """Test encoding and policy checks."""

    def test_encodes_document(self):
        """Test bytes are base64-encoded and the format resolved from MIME type."""
        attachment = prepare_attachment("notes.bin", b"hello", mime_type="text/plain")
        assert attachment.format == "txt"
        assert attachment.name == "notes"
        assert base64.b64decode(attachment.base64_bytes) == b"hello"

    def test_format_from_extension(self):
        """Test the extension is used when the MIME type is unknown."""
        assert resolve_format("photo.JPG") == "jpeg"
        assert resolve_format("data.csv", "application/octet-stream") == "csv"
        assert resolve_format("archive.zip") is None

    def test_rejects_large_file(self):
        """Test files over 4.5 MB are refused."""
        with pytest.raises(AttachmentError):
            prepare_attachment("big.pdf", b"x" * (MAX_FILE_SIZE + 1))

    def test_rejects_unsupported_format(self):
        """Test unknown formats are refused."""
        with pytest.raises(AttachmentError):
            prepare_attachment("tool.exe", b"MZ")

    def test_rejects_too_many_files(self):
        """Test at most five files per request."""
        files = [(f"f{i}.txt", b"x") for i in range(6)]
        with pytest.raises(AttachmentError):
            prepare_attachments(files)
        assert len(prepare_attachments(files[:5])) == 5
