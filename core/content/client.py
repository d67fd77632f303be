"""
Remote content client for the Quran content API.

Fetches verse text, translations and the chapter index. Blocking HTTP
calls run in a worker thread so the event loop stays responsive.
"""

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..models.content import Chapter, Verse
from ..models.settings import DEFAULT_TRANSLATION_ID

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.quran.com/api/v4"


class ContentFetchError(Exception):
    """Content API request failed or returned an unexpected payload"""
    pass


class RetryConfig:
    """Retry configuration for transient network failures"""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 0.5,
        max_delay: float = 5.0,
        backoff_factor: float = 2.0,
        jitter: bool = True
    ):
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt number"""
        delay = min(self.initial_delay * (self.backoff_factor ** attempt), self.max_delay)
        if self.jitter:
            delay += delay * 0.2 * random.random()
        return delay


class ContentSource(ABC):
    """Contract for anything that can resolve verses and the chapter index"""

    @abstractmethod
    async def fetch_verse_by_key(
        self,
        verse_key: str,
        translation_ids: Sequence[int] = (DEFAULT_TRANSLATION_ID,),
        word_lang: str = "en"
    ) -> Verse:
        """Fetch a verse by its "chapter:verse" key"""

    @abstractmethod
    async def fetch_verse_by_id(
        self,
        verse_id: int,
        translation_ids: Sequence[int] = (DEFAULT_TRANSLATION_ID,),
        word_lang: str = "en"
    ) -> Verse:
        """Fetch a verse by its absolute sequential id"""

    @abstractmethod
    async def fetch_chapter_index(self) -> List[Chapter]:
        """Fetch every chapter with its verse count and display name"""


class QuranContentClient(ContentSource):
    """
    HTTP client for the content API.

    Features:
    - Shared ``requests.Session`` for connection reuse
    - Retries with exponential backoff on connection errors and timeouts
    - Payload validation through the content models
    - Request metrics
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self._session = session or requests.Session()

        # Performance metrics
        self._request_count = 0
        self._failed_requests = 0
        self._total_request_time = 0.0

        logger.info(f"Initialized QuranContentClient for {self.base_url}")

    async def fetch_verse_by_key(
        self,
        verse_key: str,
        translation_ids: Sequence[int] = (DEFAULT_TRANSLATION_ID,),
        word_lang: str = "en"
    ) -> Verse:
        payload = await self._get(
            f"verses/by_key/{verse_key}", self._verse_params(translation_ids, word_lang)
        )
        return self._parse_verse(payload, verse_key)

    async def fetch_verse_by_id(
        self,
        verse_id: int,
        translation_ids: Sequence[int] = (DEFAULT_TRANSLATION_ID,),
        word_lang: str = "en"
    ) -> Verse:
        payload = await self._get(
            f"verses/{int(verse_id)}", self._verse_params(translation_ids, word_lang)
        )
        return self._parse_verse(payload, str(verse_id))

    async def fetch_chapter_index(self) -> List[Chapter]:
        payload = await self._get("chapters", {'language': 'en'})
        chapters = payload.get('chapters')
        if not isinstance(chapters, list):
            raise ContentFetchError("Chapter index response has no chapters list")
        try:
            return [Chapter.model_validate(raw) for raw in chapters]
        except ValueError as e:
            raise ContentFetchError(f"Invalid chapter index payload: {e}") from e

    def close(self) -> None:
        self._session.close()

    def get_stats(self) -> Dict[str, Any]:
        """Get request statistics"""
        avg_time = self._total_request_time / self._request_count if self._request_count else 0.0
        return {
            'base_url': self.base_url,
            'request_count': self._request_count,
            'failed_requests': self._failed_requests,
            'avg_request_time_ms': avg_time * 1000,
        }

    @staticmethod
    def _verse_params(translation_ids: Sequence[int], word_lang: str) -> Dict[str, Any]:
        return {
            'translations': ','.join(str(t) for t in translation_ids),
            'fields': 'text_uthmani',
            'word_lang': word_lang,
        }

    @staticmethod
    def _parse_verse(payload: Dict[str, Any], ref: str) -> Verse:
        raw = payload.get('verse')
        if not isinstance(raw, dict):
            raise ContentFetchError(f"Verse {ref} not found in response")
        try:
            return Verse.model_validate(raw)
        except ValueError as e:
            raise ContentFetchError(f"Invalid verse payload for {ref}: {e}") from e

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET ``path`` with retries; returns the decoded JSON object"""
        url = f"{self.base_url}/{path}"
        last_error: Optional[Exception] = None

        for attempt in range(self.retry_config.max_attempts):
            start_time = time.time()
            self._request_count += 1
            try:
                response = await asyncio.to_thread(
                    self._session.get, url, params=params, timeout=self.timeout
                )
                response.raise_for_status()
                data = response.json()
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = e
                self._failed_requests += 1
                if attempt + 1 < self.retry_config.max_attempts:
                    delay = self.retry_config.get_delay(attempt)
                    logger.debug(f"GET {url} failed ({e}), retrying in {delay:.2f}s")
                    await asyncio.sleep(delay)
                continue
            except requests.RequestException as e:
                self._failed_requests += 1
                raise ContentFetchError(f"GET {url} failed: {e}") from e
            except ValueError as e:
                self._failed_requests += 1
                raise ContentFetchError(f"GET {url} returned invalid JSON: {e}") from e
            finally:
                self._total_request_time += time.time() - start_time

            if not isinstance(data, dict):
                raise ContentFetchError(f"GET {url} returned {type(data).__name__}, expected object")
            return data

        raise ContentFetchError(
            f"GET {url} failed after {self.retry_config.max_attempts} attempts: {last_error}"
        )
