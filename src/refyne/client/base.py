"""Pipeline pieces shared by the synchronous and asynchronous clients.

:class:`BaseClient` owns everything about a request that does not involve
waiting: configuration, standard headers, the cache key and cache lookups,
retry decisions, the one-shot API version check, error classification, and
storing cacheable responses. :class:`~refyne.client.sync_client.Client`
and :class:`~refyne.client.async_client.AsyncClient` add only the transport
call and the sleep between attempts.
"""

from __future__ import annotations

import copy
import hashlib
import platform
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from refyne import __version__
from refyne.cache import Cache, MemoryCache, create_cache_entry, generate_cache_key
from refyne.client.response import decode_result, error_from_response, extract_response_data
from refyne.logger import Logger, NullLogger
from refyne.models import (
    AnalyzeRequest,
    AnalyzeResponse,
    ClientConfig,
    CrawlJobCreated,
    CrawlOptions,
    CrawlRequest,
    ExtractRequest,
    ExtractResponse,
    LLMConfig,
    UsageResponse,
)
from refyne.retry import backoff, parse_retry_after
from refyne.services import JobsService, KeysService, LLMService, SchemasService, SitesService
from refyne.version import API_VERSION_HEADER, VersionCheckState, check_api_version_compatibility

_MISS = object()


def build_user_agent(suffix: Optional[str] = None) -> str:
    """Return ``Refyne-SDK-Python/<sdk> (Python/<py>; <os>/<arch>)[ suffix]``."""
    ua = (
        f"Refyne-SDK-Python/{__version__} "
        f"(Python/{platform.python_version()}; "
        f"{platform.system().lower()}/{platform.machine().lower()})"
    )
    if suffix:
        ua = f"{ua} {suffix}"
    return ua


def hash_api_key(api_key: str) -> str:
    """Return a short, stable fingerprint of *api_key* for cache keys."""
    if not api_key:
        return ""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]


class BaseClient(ABC):
    """Configuration and non-blocking pipeline steps for a Refyne client.

    Args:
        api_key: Bearer token. Overrides ``config.api_key`` when given.
        config: Base settings; individual keyword arguments override it.
        base_url: API root, default ``https://api.refyne.uk``.
        timeout: Per-attempt timeout in seconds.
        max_retries: Retries after the first attempt.
        cache: Response store. Defaults to a
            :class:`~refyne.cache.MemoryCache` sized by
            ``config.cache_max_entries``.
        cache_enabled: Set ``False`` to bypass caching entirely.
        close_cache: Close *cache* when the client is closed.
        logger: Receives retry, cache and version diagnostics. Defaults
            to :class:`~refyne.logger.NullLogger`.
        user_agent_suffix: Appended to the ``User-Agent`` header.
        min_api_version: Oldest server API version accepted.
        max_known_api_version: Newest major version this SDK was built
            against; newer majors only log a warning.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        config: Optional[ClientConfig] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        cache: Optional[Cache] = None,
        cache_enabled: Optional[bool] = None,
        close_cache: bool = False,
        logger: Optional[Logger] = None,
        user_agent_suffix: Optional[str] = None,
        min_api_version: Optional[str] = None,
        max_known_api_version: Optional[str] = None,
    ) -> None:
        overrides = {
            "api_key": api_key,
            "base_url": base_url,
            "timeout": timeout,
            "max_retries": max_retries,
            "cache_enabled": cache_enabled,
            "user_agent_suffix": user_agent_suffix,
            "min_api_version": min_api_version,
            "max_known_api_version": max_known_api_version,
        }
        data = config.model_dump() if config is not None else {}
        data.update({k: v for k, v in overrides.items() if v is not None})
        self._config = ClientConfig.model_validate(data)

        self._logger: Logger = logger or NullLogger()
        self._cache: Cache = cache if cache is not None else MemoryCache(
            self._config.cache_max_entries
        )
        self._close_cache = close_cache
        self._user_agent = build_user_agent(self._config.user_agent_suffix)
        self._auth_hash = hash_api_key(self._config.api_key)
        self._version_state = VersionCheckState()

        if not self._config.base_url.startswith("https://"):
            self._logger.warning(
                "API base URL is not using HTTPS. This is insecure.",
                {"base_url": self._config.base_url},
            )

        self.jobs = JobsService(self)
        self.schemas = SchemasService(self)
        self.sites = SitesService(self)
        self.keys = KeysService(self)
        self.llm = LLMService(self)

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def cache(self) -> Cache:
        return self._cache

    @property
    def logger(self) -> Logger:
        return self._logger

    @property
    def user_agent(self) -> str:
        return self._user_agent

    # ------------------------------------------------------------------ #
    # Endpoints
    #
    # Each returns whatever ``request`` returns: the parsed model for
    # Client, an awaitable of it for AsyncClient.
    # ------------------------------------------------------------------ #

    @abstractmethod
    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        result_type: Optional[type[BaseModel]] = None,
        skip_cache: bool = False,
    ) -> Any:
        """Run *method* *path* through the pipeline and decode the result."""

    def extract(
        self,
        url: str,
        schema: dict[str, Any],
        *,
        fetch_mode: Optional[str] = None,
        llm_config: Optional[LLMConfig] = None,
    ) -> Any:
        """Extract structured data from a single page (``POST /api/v1/extract``)."""
        payload = ExtractRequest(
            url=url, schema=schema, fetch_mode=fetch_mode, llm_config=llm_config
        )
        return self.request("POST", "/api/v1/extract", payload, result_type=ExtractResponse)

    def crawl(
        self,
        url: str,
        schema: dict[str, Any],
        *,
        options: Optional[CrawlOptions] = None,
        webhook_url: Optional[str] = None,
        llm_config: Optional[LLMConfig] = None,
    ) -> Any:
        """Start an asynchronous crawl job (``POST /api/v1/crawl``)."""
        payload = CrawlRequest(
            url=url,
            schema=schema,
            options=options,
            webhook_url=webhook_url,
            llm_config=llm_config,
        )
        return self.request("POST", "/api/v1/crawl", payload, result_type=CrawlJobCreated)

    def analyze(self, url: str, *, depth: Optional[int] = None) -> Any:
        """Detect page structure and suggest a schema (``POST /api/v1/analyze``)."""
        payload = AnalyzeRequest(url=url, depth=depth)
        return self.request("POST", "/api/v1/analyze", payload, result_type=AnalyzeResponse)

    def get_usage(self) -> Any:
        """Return usage for the current billing period (``GET /api/v1/usage``)."""
        return self.request("GET", "/api/v1/usage", result_type=UsageResponse)

    # ------------------------------------------------------------------ #
    # Pipeline steps
    # ------------------------------------------------------------------ #

    def _url(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    def _cache_key(self, method: str, url: str) -> str:
        return generate_cache_key(method, url, self._auth_hash)

    def _uses_cache(self, method: str) -> bool:
        return method.upper() == "GET" and self._config.cache_enabled

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self._user_agent,
        }

    def _build_request(self, method: str, url: str, body: Any) -> httpx.Request:
        """Build one attempt's request, bound to the per-attempt timeout."""
        if isinstance(body, BaseModel):
            body = body.model_dump(by_alias=True, exclude_none=True, mode="json")
        return httpx.Request(
            method.upper(),
            url,
            headers=self._headers(),
            json=body,
            extensions={"timeout": httpx.Timeout(self._config.timeout).as_dict()},
        )

    def _cached_result(
        self,
        method: str,
        key: str,
        result_type: Optional[type[BaseModel]],
        skip_cache: bool,
    ) -> Any:
        """Return the decoded cached result for *key*, or ``_MISS``.

        Store or decode failures are logged and reported as a miss so the
        caller falls through to the network.
        """
        if skip_cache or not self._uses_cache(method):
            return _MISS
        try:
            entry = self._cache.get(key)
            if entry is None:
                return _MISS
            result = decode_result(copy.deepcopy(entry.value), result_type)
        except Exception as exc:
            self._logger.warning("Cache read failed, fetching from API", {"error": str(exc)})
            return _MISS
        self._logger.debug("Cache hit", {"key": key})
        return result

    def _retry_delay(
        self,
        attempt: int,
        *,
        response: Optional[httpx.Response] = None,
        error: Optional[Exception] = None,
    ) -> Optional[float]:
        """Decide whether attempt *attempt* should be retried.

        Returns:
            Seconds to wait before the next attempt, or ``None`` when the
            outcome is final (success, non-retryable status, or retries
            exhausted).
        """
        max_retries = self._config.max_retries
        if attempt > max_retries:
            return None

        if error is not None:
            delay = backoff(attempt)
            self._logger.warning(
                "Network error. Retrying",
                {
                    "error": str(error),
                    "attempt": attempt,
                    "max_retries": max_retries,
                    "backoff": delay,
                },
            )
            return delay

        if response is None:
            return None
        status = response.status_code
        if status == 429:
            delay = parse_retry_after(response.headers.get("Retry-After"))
            self._logger.warning(
                "Rate limited. Retrying",
                {"retry_after": delay, "attempt": attempt, "max_retries": max_retries},
            )
            return max(delay, 0)
        if status >= 500:
            delay = backoff(attempt)
            self._logger.warning(
                "Server error. Retrying",
                {
                    "status": status,
                    "attempt": attempt,
                    "max_retries": max_retries,
                    "backoff": delay,
                },
            )
            return delay
        return None

    def _check_api_version(self, response: httpx.Response) -> None:
        api_version = response.headers.get(API_VERSION_HEADER)
        if not api_version:
            self._logger.warning(f"API did not return {API_VERSION_HEADER} header")
            return
        check_api_version_compatibility(
            api_version,
            self._logger,
            min_version=self._config.min_api_version,
            max_known_version=self._config.max_known_api_version,
        )

    def _finish(
        self,
        method: str,
        key: str,
        response: httpx.Response,
        result_type: Optional[type[BaseModel]],
    ) -> Any:
        """Turn the final response of the retry loop into a result or exception."""
        self._version_state.run_once(lambda: self._check_api_version(response))

        if response.status_code >= 400:
            raise error_from_response(response)

        data = extract_response_data(response)
        result = decode_result(data, result_type)

        if self._uses_cache(method):
            entry = create_cache_entry(data, response.headers.get("Cache-Control"))
            if entry is not None:
                try:
                    self._cache.set(key, entry)
                except Exception as exc:
                    self._logger.warning("Cache write failed", {"error": str(exc)})

        return result
