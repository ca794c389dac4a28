from __future__ import annotations

import base64
import json
from unittest.mock import MagicMock, patch

import pytest
import requests.exceptions

from retencoes.services.exceptions import AuthenticationError, ExtractionError
from retencoes.services.gemini_client import (
    build_request,
    extract_invoice_data,
    parse_response,
)
from retencoes.services.http_retry import retry_call


def _mock_response(ok: bool = True, status_code: int = 200, json_data=None, text: str = ""):
    resp = MagicMock()
    resp.ok = ok
    resp.status_code = status_code
    resp.json.return_value = json_data or {}
    resp.text = text
    return resp


def _candidate(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.delenv("GEMINI_MODEL", raising=False)
    monkeypatch.delenv("GEMINI_TIMEOUT", raising=False)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    def fast_retry(func, policy):
        return retry_call(func, policy, sleep=lambda _: None)

    monkeypatch.setattr("retencoes.services.gemini_client.retry_call", fast_retry)


class TestBuildRequest:
    def test_inline_document(self):
        body = build_request(b"%PDF", "application/pdf")
        parts = body["contents"][0]["parts"]
        assert "razaoSocial" in parts[0]["text"]
        assert parts[1]["inline_data"]["mime_type"] == "application/pdf"
        assert base64.b64decode(parts[1]["inline_data"]["data"]) == b"%PDF"
        assert body["generationConfig"]["responseMimeType"] == "application/json"


class TestParseResponse:
    def test_object(self):
        assert parse_response(_candidate('{"numeroNF": "12"}')) == {"numeroNF": "12"}

    def test_text_split_across_parts(self):
        data = {"candidates": [{"content": {"parts": [{"text": '{"a":'}, {"text": " 1}"}]}}]}
        assert parse_response(data) == {"a": 1}

    def test_single_element_list_unwrapped(self):
        assert parse_response(_candidate('[{"numeroNF": "12"}]')) == {"numeroNF": "12"}

    @pytest.mark.parametrize("data", [{}, {"candidates": []}, _candidate("   ")])
    def test_empty(self, data):
        with pytest.raises(ExtractionError, match="resposta válida"):
            parse_response(data)

    def test_not_json(self):
        with pytest.raises(ExtractionError, match="não-JSON"):
            parse_response(_candidate("Desculpe, não consegui ler o documento."))

    def test_not_object(self):
        with pytest.raises(ExtractionError, match="não é um objeto"):
            parse_response(_candidate("[1, 2]"))


class TestExtractInvoiceData:
    @patch("retencoes.services.gemini_client.post")
    def test_success(self, mock_post, api_key):
        mock_post.return_value = _mock_response(
            json_data=_candidate(json.dumps({"numeroNF": "1234", "valorBruto": 1000.0}))
        )

        result = extract_invoice_data(b"%PDF", "application/pdf")

        assert result == {"numeroNF": "1234", "valorBruto": 1000.0}
        _, kwargs = mock_post.call_args
        assert kwargs["headers"] == {"x-goog-api-key": "test-key"}
        assert kwargs["timeout"] == 120
        assert "gemini-2.5-flash:generateContent" in mock_post.call_args.args[0]

    @patch("retencoes.services.gemini_client.post")
    def test_model_from_env(self, mock_post, api_key, monkeypatch):
        monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-pro")
        mock_post.return_value = _mock_response(json_data=_candidate("{}"))
        extract_invoice_data(b"%PDF", "application/pdf")
        assert "gemini-2.5-pro:generateContent" in mock_post.call_args.args[0]

    @patch("retencoes.services.gemini_client.post")
    def test_missing_key(self, mock_post, no_api_key):
        with pytest.raises(AuthenticationError, match="GEMINI_API_KEY"):
            extract_invoice_data(b"%PDF", "application/pdf")
        mock_post.assert_not_called()

    @patch("retencoes.services.gemini_client.post")
    def test_rejected_key_not_retried(self, mock_post, api_key):
        mock_post.return_value = _mock_response(
            ok=False, status_code=400, text="API key not valid. Please pass a valid API key."
        )
        with pytest.raises(AuthenticationError, match="chave da API"):
            extract_invoice_data(b"%PDF", "application/pdf")
        assert mock_post.call_count == 1

    @patch("retencoes.services.gemini_client.post")
    def test_retries_then_succeeds(self, mock_post, api_key):
        mock_post.side_effect = [
            _mock_response(ok=False, status_code=503, text="overloaded"),
            _mock_response(json_data=_candidate('{"numeroNF": "9"}')),
        ]
        assert extract_invoice_data(b"%PDF", "application/pdf") == {"numeroNF": "9"}
        assert mock_post.call_count == 2

    @patch("retencoes.services.gemini_client.post")
    def test_retries_exhausted(self, mock_post, api_key):
        mock_post.return_value = _mock_response(ok=False, status_code=503, text="overloaded")
        with pytest.raises(ExtractionError, match="Falha de comunicação"):
            extract_invoice_data(b"%PDF", "application/pdf")
        assert mock_post.call_count == 3

    @patch("retencoes.services.gemini_client.post")
    def test_connection_error_wrapped(self, mock_post, api_key):
        mock_post.side_effect = requests.exceptions.ConnectionError("no route")
        with pytest.raises(ExtractionError) as exc_info:
            extract_invoice_data(b"%PDF", "application/pdf")
        assert not isinstance(exc_info.value, AuthenticationError)
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)
