import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fanout.models.config import HttpProviderConfig
from fanout.services.providers.base import SearchProvider
from fanout.utils.exceptions import RateLimitError, UpstreamError

logger = structlog.get_logger()

DEFAULT_MAX_RESULTS = 20


class HttpJsonProvider(SearchProvider):
    """Search provider backed by a JSON HTTP endpoint

    The endpoint is described by an HttpProviderConfig: URL and params may
    contain {query} and {max_results} placeholders, `results_path` points
    at the result list inside the response, and `field_map` renames
    response keys to SearchItem fields.
    """

    def __init__(self, config: HttpProviderConfig, request_timeout: float = 30.0):
        self.config = config
        self.request_timeout = request_timeout

    @property
    def provider_id(self) -> str:
        return self.config.provider_id

    @staticmethod
    def _substitute(template: str, query: str, max_results: int, encode: bool) -> str:
        value = quote(query) if encode else query
        return template.replace("{query}", value).replace(
            "{max_results}", str(max_results)
        )

    def _build_request(self, query: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Resolve URL, query params and headers for one call"""
        max_results = int(params.get("max_results") or DEFAULT_MAX_RESULTS)

        url = self._substitute(self.config.url, query, max_results, encode=True)
        request_params = {
            key: self._substitute(value, query, max_results, encode=False)
            for key, value in self.config.params.items()
        }

        request: Dict[str, Any] = {
            "method": self.config.method,
            "url": url,
            "headers": dict(self.config.headers),
        }
        if self.config.method == "GET":
            request["params"] = request_params
        else:
            request["json"] = request_params
        return request

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type((aiohttp.ClientError, RateLimitError)),
        reraise=True,
    )
    async def _fetch(self, request: Dict[str, Any]) -> Any:
        async with aiohttp.ClientSession() as session:
            async with session.request(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
                **request,
            ) as response:

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        f"{self.provider_id} rate limit exceeded",
                        retry_after=float(retry_after)
                        if retry_after and retry_after.isdigit()
                        else None,
                    )

                if response.status >= 500:
                    raise aiohttp.ClientError(f"Server error: {response.status}")

                if response.status < 200 or response.status >= 300:
                    text = await response.text()
                    logger.error(
                        "provider_http_error",
                        provider=self.provider_id,
                        status=response.status,
                        body=text[:500],
                    )
                    raise UpstreamError(
                        f"{self.provider_id} returned HTTP {response.status}",
                        status=response.status,
                    )

                return await response.json(content_type=None)

    async def execute(self, query: str, params: Dict[str, Any]) -> Any:
        request = self._build_request(query, params)

        try:
            data = await self._fetch(request)
        except (UpstreamError, asyncio.CancelledError):
            raise
        except asyncio.TimeoutError:
            raise UpstreamError(f"{self.provider_id} request timed out")
        except aiohttp.ClientError as e:
            raise UpstreamError(f"{self.provider_id} request failed: {e}")
        except ValueError as e:
            raise UpstreamError(f"{self.provider_id} returned invalid JSON: {e}")

        return self._extract(data)

    def _extract(self, data: Any) -> Any:
        """Apply results_path and field_map to the decoded response"""
        if self.config.results_path:
            data = self._resolve_path(data, self.config.results_path)
            if data is None:
                logger.warning(
                    "provider_results_path_missing",
                    provider=self.provider_id,
                    results_path=self.config.results_path,
                )
                return []

        if self.config.field_map and isinstance(data, list):
            return [self._remap(item) for item in data]
        return data

    @staticmethod
    def _resolve_path(data: Any, path: str) -> Optional[Any]:
        current = data
        for part in path.split("."):
            if isinstance(current, dict):
                current = current.get(part)
            elif isinstance(current, list) and part.isdigit():
                index = int(part)
                current = current[index] if index < len(current) else None
            else:
                return None
            if current is None:
                return None
        return current

    def _remap(self, item: Any) -> Any:
        if not isinstance(item, dict):
            return item
        mapped = dict(item)
        for field, key in self.config.field_map.items():
            value = self._resolve_path(item, key)
            if value is not None:
                mapped[field] = value
        return mapped


def build_http_providers(configs: List[HttpProviderConfig]) -> Dict[str, SearchProvider]:
    """Instantiate one HttpJsonProvider per configured endpoint"""
    return {config.provider_id: HttpJsonProvider(config) for config in configs}
