# src/structaudit/services/content_fetcher_service.py
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Union

import aiohttp

from ..exceptions import ContentFetchError
from ..managers.config_manager import config_manager

logger = logging.getLogger(__name__)

FetchCallable = Callable[[str], Awaitable[str]]


class HttpContentFetcher:
    """
    Default fetch capability: a GET through a shared aiohttp session.

    Usable as an async context manager; the session is also created lazily on
    the first call. Transport errors and non-2xx responses are raised as
    ContentFetchError.
    """

    def __init__(self, timeout: Optional[float] = None, headers: Optional[Dict[str, str]] = None):
        self.timeout = float(timeout if timeout is not None else config_manager.get_nested('fetch.timeout', 30))
        self.headers = dict(headers if headers is not None else config_manager.get_nested('fetch.headers', {}))
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        if not self.session or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self.headers
            )
            logger.debug("HTTP fetcher initialized (timeout=%ss)", self.timeout)

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()

    async def __call__(self, url: str) -> str:
        if not self.session or self.session.closed:
            await self.initialize()

        try:
            async with self.session.get(url) as response:
                if response.status >= 400:
                    raise ContentFetchError(url, f"HTTP status {response.status}", status=response.status)
                try:
                    return await response.text()
                except UnicodeDecodeError:
                    content_bytes = await response.read()
                    return content_bytes.decode('utf-8', errors='replace')
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ContentFetchError(url, str(e) or type(e).__name__) from e


class ContentCache:
    """
    Fetches page markup at most once per URL.

    While a fetch is running, every caller for the same URL awaits the same
    task; afterwards the body is served from memory until ``clear_cache``.
    A failed fetch is evicted so the next call retries. Callers are shielded
    from each other: cancelling one waiting caller does not cancel the fetch.
    """

    def __init__(self, fetch: FetchCallable):
        self._fetch = fetch
        self._cache: Dict[str, Union[str, "asyncio.Task[str]"]] = {}

    def __contains__(self, url: str) -> bool:
        return url in self._cache

    def is_pending(self, url: str) -> bool:
        return isinstance(self._cache.get(url), asyncio.Task)

    async def fetch_content(self, url: str) -> str:
        if not url or not isinstance(url, str):
            raise ValueError("Invalid URL provided to ContentCache.fetch_content")

        cached = self._cache.get(url)
        if isinstance(cached, str):
            logger.debug("Cache hit for %s", url)
            return cached

        if cached is None:
            task = asyncio.ensure_future(self._load(url))
            task.add_done_callback(self._log_outcome)
            self._cache[url] = task
        else:
            logger.debug("Joining in-flight fetch for %s", url)
            task = cached

        return await asyncio.shield(task)

    async def _load(self, url: str) -> str:
        this_task = asyncio.current_task()
        try:
            html = await self._fetch(url)
            if not html or not isinstance(html, str):
                raise ContentFetchError(url, "Invalid response received")
        except ContentFetchError:
            self._evict(url, this_task)
            raise
        except asyncio.CancelledError:
            self._evict(url, this_task)
            raise
        except Exception as e:
            self._evict(url, this_task)
            raise ContentFetchError(url, str(e) or type(e).__name__) from e

        # Only replace our own entry; the URL may have been cleared meanwhile
        if self._cache.get(url) is this_task:
            self._cache[url] = html
        return html

    def _evict(self, url: str, task: Optional[asyncio.Task]) -> None:
        if self._cache.get(url) is task:
            del self._cache[url]

    @staticmethod
    def _log_outcome(task: asyncio.Task) -> None:
        # Retrieving the exception keeps asyncio from reporting it as unhandled
        # when every waiting caller was cancelled. Callers report the failure.
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug("Fetch task finished with error: %s", error)

    def clear_cache(self, url: str) -> None:
        """Forgets the body (or pending fetch) of ``url``; the next call fetches again."""
        self._cache.pop(url, None)

    def clear_all(self) -> None:
        self._cache.clear()
