"""Tests for the content parsing and text utilities."""

import fitz
import pytest

import agent_helpers
from agent_errors import SearchProviderError
from agent_helpers import (clean_html, extract_json_from_response,
                           firecrawl_search, searx_search,
                           normalize_query, parse_pdf_bytes, trim_text)


def make_pdf(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.mark.anyio
async def test_parse_pdf_bytes_extracts_text():
    text = await parse_pdf_bytes(make_pdf("Blueberries prefer acidic soil."))

    assert "Blueberries prefer acidic soil." in text


@pytest.mark.anyio
async def test_parse_pdf_bytes_returns_empty_for_garbage():
    assert await parse_pdf_bytes(b"not a pdf") == ""


def test_clean_html_drops_boilerplate():
    html = "<html><head><style>p{}</style></head><body><nav>Menu</nav><p>Soil   pH\nmatters.</p><script>x()</script><footer>(c)</footer></body></html>"

    assert clean_html(html) == "Soil pH matters."


class TestExtractJson:
    def test_markdown_block(self):
        assert extract_json_from_response('Here:\n```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_raw_json(self):
        assert extract_json_from_response('  {"a": [1, 2]}  ') == '{"a": [1, 2]}'

    def test_raw_json_with_fence_inside_string(self):
        raw = '{"report_markdown": "# R\\n\\n```python\\nprint(1)\\n```\\n"}'

        assert extract_json_from_response(raw) == raw

    def test_embedded_object(self):
        assert extract_json_from_response('Sure! {"a": {"b": 2}} Hope it helps.') == '{"a": {"b": 2}}'

    def test_no_json(self):
        assert extract_json_from_response("no json here") is None


class TestTrimText:
    def test_short_text_untouched(self):
        assert trim_text("short", 100) == "short"
        assert trim_text("", 100) == ""

    def test_prefers_sentence_boundary(self):
        text = "a" * 90 + ". " + "b" * 50

        assert trim_text(text, 100) == "a" * 90 + "."

    def test_hard_cut_without_boundary(self):
        assert trim_text("x" * 150, 100) == "x" * 100


def test_normalize_query():
    assert normalize_query("  Soil\tpH   Blueberry ") == "soil ph blueberry"


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def raise_for_status(self):
        pass

    async def json(self):
        return self.payload


class FakeSession:
    """Stands in for aiohttp.ClientSession, answering every request with one payload."""

    def __init__(self, payload):
        self.payload = payload

    def __call__(self, *args, **kwargs):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def get(self, url, **kwargs):
        return FakeResponse(self.payload)

    def post(self, url, **kwargs):
        return FakeResponse(self.payload)


class TestSearchPayloadShape:
    @pytest.mark.anyio
    @pytest.mark.parametrize("payload", [["not-a-dict"], None, {"data": "nope"}])
    async def test_firecrawl_rejects_bad_payload(self, monkeypatch, payload):
        monkeypatch.setattr(agent_helpers.aiohttp, "ClientSession", FakeSession(payload))

        with pytest.raises(SearchProviderError):
            await firecrawl_search("query", "fc-key")

    @pytest.mark.anyio
    async def test_firecrawl_drops_non_dict_items(self, monkeypatch):
        monkeypatch.setattr(agent_helpers.aiohttp, "ClientSession", FakeSession({"data": ["junk", {"url": "https://a.example"}]}))

        assert await firecrawl_search("query", "fc-key") == [{"url": "https://a.example"}]

    @pytest.mark.anyio
    @pytest.mark.parametrize("payload", [[], None, {"results": {"url": "x"}}])
    async def test_searx_rejects_bad_payload(self, monkeypatch, payload):
        monkeypatch.setattr(agent_helpers.aiohttp, "ClientSession", FakeSession(payload))

        with pytest.raises(SearchProviderError):
            await searx_search("query")

    @pytest.mark.anyio
    async def test_searx_drops_non_dict_hits(self, monkeypatch):
        monkeypatch.setattr(agent_helpers.aiohttp, "ClientSession", FakeSession({"results": ["junk", {"url": "https://a.example", "title": "A", "content": "c"}]}))

        assert await searx_search("query") == [{"title": "A", "url": "https://a.example", "snippet": "c"}]
