"""Unit tests for publish request and outcome models."""

import pytest
from pydantic import ValidationError

from app.core.exceptions import ErrorKind
from app.models.publish import AttemptSummary, PublishRequest, PublishState, UploadOutcome


class TestPublishRequest:
    """Tests for PublishRequest validation."""

    def test_minimal_request(self):
        """Test defaults for optional fields."""
        request = PublishRequest(
            page_id="123", access_token="tok", video_reference="https://a.com/v.mp4"
        )
        assert request.caption == ""
        assert request.custom_labels == []
        assert request.language is None

    def test_empty_page_id_rejected(self):
        """Test page_id must be non-empty."""
        with pytest.raises(ValidationError):
            PublishRequest(page_id="", access_token="tok", video_reference="https://a.com")

    def test_token_hidden_from_repr(self):
        """Test the access token never appears in repr."""
        request = PublishRequest(
            page_id="123", access_token="secret-token", video_reference="https://a.com"
        )
        assert "secret-token" not in repr(request)


class TestUploadOutcome:
    """Tests for UploadOutcome serialization."""

    def test_json_dump_uses_enum_values(self):
        """Test the outcome crosses the task queue as plain JSON."""
        outcome = UploadOutcome(
            success=False,
            method="direct",
            error="rejected",
            error_kind=ErrorKind.PLATFORM_MEDIA_REJECTED,
            attempts=[AttemptSummary(stage="upload", strategy="direct", success=False)],
            states=[PublishState.FETCHING, PublishState.FAILED],
        )
        data = outcome.model_dump(mode="json")
        assert data["error_kind"] == "platform_media_rejected"
        assert data["states"] == ["fetching", "failed"]
        assert data["attempts"][0]["strategy"] == "direct"
        assert data["degraded"] is False

    def test_round_trip_from_dict(self):
        """Test validation from a JSON payload."""
        outcome = UploadOutcome.model_validate(
            {"success": True, "method": "facebook_compatible", "degraded": True, "post_id": "9"}
        )
        assert outcome.degraded is True
        assert outcome.post_id == "9"
