"""
StudyHub Backend - Drive Link Canonicalizer Tests
=================================================

What we test:
    ✅ File id extraction with and without trailing path/query
    ✅ Canonical direct-view URL construction
    ✅ Rejection of non-drive hosts, folder links and non-string input
"""

import pytest

from studyhub.exceptions import InvalidAssetLinkError, ValidationError
from studyhub.services.drive_links import canonicalize_thumbnail, extract_file_id


class TestExtractFileId:

    @pytest.mark.parametrize(
        "url",
        [
            "https://drive.google.com/file/d/ABC123",
            "https://drive.google.com/file/d/ABC123/view",
            "https://drive.google.com/file/d/ABC123/view?usp=sharing",
            "  https://drive.google.com/file/d/ABC123/view  ",
        ],
    )
    def test_extracts_id(self, url):
        assert extract_file_id(url) == "ABC123"

    def test_id_keeps_dash_and_underscore(self):
        assert extract_file_id("https://drive.google.com/file/d/1a-B_c9/view") == "1a-B_c9"

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/not-drive",
            "http://drive.google.com/file/d/ABC123/view",
            "https://drive.google.com/drive/folders/ABC123",
            "https://drive.google.com/file/d/",
            "",
        ],
    )
    def test_rejects_non_file_links(self, url):
        with pytest.raises(InvalidAssetLinkError) as exc_info:
            extract_file_id(url)
        assert exc_info.value.message == "Invalid Google Drive URL format"

    @pytest.mark.parametrize("value", [None, 42, ["https://drive.google.com/file/d/A/view"]])
    def test_rejects_non_strings(self, value):
        with pytest.raises(InvalidAssetLinkError):
            extract_file_id(value)


class TestCanonicalizeThumbnail:

    def test_builds_direct_view_url(self):
        assert (
            canonicalize_thumbnail("https://drive.google.com/file/d/ABC123/view")
            == "https://drive.google.com/uc?export=view&id=ABC123"
        )

    def test_discards_share_suffix(self):
        assert (
            canonicalize_thumbnail("https://drive.google.com/file/d/XyZ_9-0/view?usp=drive_link")
            == "https://drive.google.com/uc?export=view&id=XyZ_9-0"
        )

    def test_failure_is_a_validation_error(self):
        """Callers that handle ValidationError also handle bad asset links."""
        with pytest.raises(ValidationError) as exc_info:
            canonicalize_thumbnail("https://example.com/not-drive")
        assert exc_info.value.error_code == "invalid_asset_link"
        assert exc_info.value.field == "thumbnail"
