"""
Tests for the content API client.

The HTTP session is mocked; tests assert request shape, payload parsing,
error mapping and retry behaviour.
"""

from unittest.mock import Mock

import pytest
import requests

from core.content.client import ContentFetchError, QuranContentClient, RetryConfig


VERSE_PAYLOAD = {
    "verse": {
        "id": 262,
        "verse_key": "2:255",
        "text_uthmani": "ٱللَّهُ لَآ إِلَٰهَ إِلَّا هُوَ",
        "translations": [{"resource_id": 20, "text": "Allah - there is no deity except Him"}],
        "words": [],
    }
}


def make_response(payload=None, error=None):
    response = Mock()
    response.json.return_value = payload
    if error is not None:
        response.raise_for_status.side_effect = error
    return response


class TestQuranContentClient:
    """Test QuranContentClient"""

    def setup_method(self):
        self.session = Mock()
        self.client = QuranContentClient(
            base_url="https://example.test/api/v4/",
            retry_config=RetryConfig(max_attempts=2, initial_delay=0, jitter=False),
            session=self.session,
        )

    @pytest.mark.asyncio
    async def test_fetch_verse_by_key(self):
        self.session.get.return_value = make_response(VERSE_PAYLOAD)

        verse = await self.client.fetch_verse_by_key("2:255", [20, 131], "ur")

        self.session.get.assert_called_once_with(
            "https://example.test/api/v4/verses/by_key/2:255",
            params={'translations': '20,131', 'fields': 'text_uthmani', 'word_lang': 'ur'},
            timeout=10.0,
        )
        assert verse.id == 262
        assert verse.chapter_id == 2
        assert verse.first_translation.startswith("Allah")

    @pytest.mark.asyncio
    async def test_fetch_verse_by_id(self):
        self.session.get.return_value = make_response(VERSE_PAYLOAD)

        verse = await self.client.fetch_verse_by_id(262)

        url = self.session.get.call_args[0][0]
        assert url == "https://example.test/api/v4/verses/262"
        assert verse.verse_key == "2:255"

    @pytest.mark.asyncio
    async def test_fetch_chapter_index(self):
        self.session.get.return_value = make_response({
            "chapters": [
                {"id": 1, "verses_count": 7, "name_simple": "Al-Fatihah"},
                {"id": 2, "verses_count": 286, "name_simple": "Al-Baqarah"},
            ]
        })

        chapters = await self.client.fetch_chapter_index()

        assert [c.display_name for c in chapters] == ["Al-Fatihah", "Al-Baqarah"]
        assert self.session.get.call_args[1]['params'] == {'language': 'en'}

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self):
        self.session.get.return_value = make_response(error=requests.HTTPError("404 Not Found"))

        with pytest.raises(ContentFetchError, match="404"):
            await self.client.fetch_verse_by_key("999:1")

        assert self.session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_is_retried(self):
        self.session.get.side_effect = [
            requests.ConnectionError("reset"),
            make_response(VERSE_PAYLOAD),
        ]

        verse = await self.client.fetch_verse_by_key("2:255")

        assert verse.id == 262
        assert self.session.get.call_count == 2
        assert self.client.get_stats()['failed_requests'] == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        self.session.get.side_effect = requests.Timeout("slow")

        with pytest.raises(ContentFetchError, match="after 2 attempts"):
            await self.client.fetch_verse_by_key("2:255")

        assert self.session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_missing_verse_in_payload(self):
        self.session.get.return_value = make_response({"verses": []})

        with pytest.raises(ContentFetchError, match="not found"):
            await self.client.fetch_verse_by_key("2:255")

    @pytest.mark.asyncio
    async def test_non_object_payload(self):
        self.session.get.return_value = make_response(["not", "an", "object"])

        with pytest.raises(ContentFetchError):
            await self.client.fetch_chapter_index()

    def test_close_closes_session(self):
        self.client.close()

        self.session.close.assert_called_once()


class TestRetryConfig:
    """Test RetryConfig"""

    def test_exponential_delay_is_capped(self):
        config = RetryConfig(initial_delay=1.0, max_delay=3.0, backoff_factor=2.0, jitter=False)

        assert [config.get_delay(i) for i in range(4)] == [1.0, 2.0, 3.0, 3.0]

    def test_jitter_adds_at_most_twenty_percent(self):
        config = RetryConfig(initial_delay=1.0, jitter=True)

        for _ in range(20):
            assert 1.0 <= config.get_delay(0) <= 1.2
