"""Tests for the shared HTTP helpers and logging utilities."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from distresolve.common.http_client import download_file, get_text, safe_get
from distresolve.common.logging_utils import extra_context, redact, safe_url
from distresolve.constants import Constants
from distresolve.exceptions import NetworkError, RepositoryUnreachable


class TestSafeGet:
    @patch("distresolve.common.http_client.requests.get")
    def test_uses_default_timeout(self, mock_get):
        """The configured default timeout is applied."""
        mock_get.return_value = MagicMock(status_code=200)
        safe_get("https://repo.example.org/x", context="test")
        assert mock_get.call_args.kwargs["timeout"] == Constants.REQUEST_TIMEOUT

    @patch("distresolve.common.http_client.requests.get")
    def test_timeout_becomes_repository_unreachable(self, mock_get):
        """Timeouts surface as network errors, not process exits."""
        mock_get.side_effect = requests.Timeout("slow")
        with pytest.raises(RepositoryUnreachable) as exc_info:
            safe_get("https://user:pw@repo.example.org/x?token=1", context="test")
        assert isinstance(exc_info.value, NetworkError)
        assert "pw" not in exc_info.value.url
        assert "token" not in exc_info.value.url

    @patch("distresolve.common.http_client.requests.get")
    def test_connection_error(self, mock_get):
        """Connection errors surface as RepositoryUnreachable."""
        mock_get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(RepositoryUnreachable):
            safe_get("https://repo.example.org/x", context="test")

    @patch("distresolve.common.http_client.requests.get")
    def test_connection_error_text_is_redacted(self, mock_get, caplog):
        """Credentials echoed in transport errors reach neither logs nor the exception."""
        mock_get.side_effect = requests.ConnectionError(
            "Max retries exceeded with url: /x?token=hunter2 (password=s3cret)"
        )
        with pytest.raises(RepositoryUnreachable) as exc_info:
            safe_get("https://repo.example.org/x", context="test")
        assert "hunter2" not in str(exc_info.value)
        assert "s3cret" not in str(exc_info.value)
        assert "hunter2" not in caplog.text
        assert "token=***" in caplog.text


class TestGetText:
    @patch("distresolve.common.http_client.safe_get")
    def test_returns_status_and_body(self, mock_safe_get):
        """Client errors are returned to the caller."""
        mock_safe_get.return_value = MagicMock(status_code=404, text="missing")
        assert get_text("https://repo.example.org/x", context="test") == (404, "missing")

    @patch("distresolve.common.http_client.safe_get")
    def test_server_error_raises(self, mock_safe_get):
        """5xx means the repository could not answer."""
        mock_safe_get.return_value = MagicMock(status_code=503, text="")
        with pytest.raises(RepositoryUnreachable):
            get_text("https://repo.example.org/x", context="test")


class TestDownloadFile:
    @patch("distresolve.common.http_client.safe_get")
    def test_streams_body_to_file(self, mock_safe_get, tmp_path):
        """Chunks are written to the destination, creating parents."""
        response = MagicMock(status_code=200)
        response.iter_content.return_value = [b"abc", b"", b"def"]
        mock_safe_get.return_value = response
        target = download_file("https://repo.example.org/a.tar.gz", tmp_path / "x" / "a.tar.gz", context="test")
        assert target.read_bytes() == b"abcdef"
        response.close.assert_called_once()

    @patch("distresolve.common.http_client.safe_get")
    def test_non_200_raises(self, mock_safe_get, tmp_path):
        """Any other status is a failed download and nothing is written."""
        mock_safe_get.return_value = MagicMock(status_code=404)
        with pytest.raises(RepositoryUnreachable):
            download_file("https://repo.example.org/a.tar.gz", tmp_path / "a.tar.gz", context="test")
        assert not (tmp_path / "a.tar.gz").exists()


class TestLoggingUtils:
    def test_safe_url_strips_credentials_and_query(self):
        assert safe_url("https://u:p@host.example.org:8443/path?q=1#f") == "https://host.example.org:8443/path"

    def test_redact(self):
        assert redact("token=abc123 other") == "token=*** other"

    def test_extra_context_drops_none(self):
        assert extra_context(a=1, b=None) == {"a": 1}
