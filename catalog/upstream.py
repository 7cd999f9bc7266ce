"""
Upstream JSON fetcher
Wraps requests in a worker thread so fetches suspend instead of blocking the loop
"""
import asyncio
import logging
from typing import Any, Optional, Sequence, Tuple, Union, Mapping

import requests

from catalog.errors import UpstreamUnavailable
from catalog.throttle import RequestThrottle

logger = logging.getLogger("upstream")

Params = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]


class UpstreamClient:
    """
    Fetches JSON documents from one upstream.

    Any non-2xx status, transport failure or undecodable body is reported
    uniformly as UpstreamUnavailable. When a throttle is supplied, every call
    waits for a grant before it is issued.
    """

    def __init__(
        self,
        name: str,
        timeout: float = 30.0,
        throttle: Optional[RequestThrottle] = None,
        session: Optional[requests.Session] = None,
    ):
        self.name = name
        self.timeout = timeout
        self.throttle = throttle
        self._session = session or requests.Session()

    async def fetch_json(self, url: str, params: Optional[Params] = None) -> Any:
        """
        Fetch and decode a JSON document.

        Args:
            url: Absolute URL
            params: Query parameters (a list of pairs allows repeated keys)

        Returns:
            Decoded JSON document

        Raises:
            UpstreamUnavailable: On any failure
        """
        if self.throttle is not None:
            await self.throttle.acquire()

        logger.info(f"[{self.name}] Fetching from API: {url}")
        return await asyncio.to_thread(self._get, url, params)

    def _get(self, url: str, params: Optional[Params]) -> Any:
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"[{self.name}] Transport error for {url}: {e}")
            raise UpstreamUnavailable(self.name, str(e)) from e

        if not response.ok:
            reason = f"HTTP error! status: {response.status_code}"
            detail = _error_detail(response)
            if detail:
                reason += f" - {detail}"
            logger.warning(f"[{self.name}] API error response for {url}: {reason}")
            raise UpstreamUnavailable(self.name, reason, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(self.name, f"invalid JSON: {e}") from e


def _error_detail(response: requests.Response) -> Optional[str]:
    """Best-effort 'error' field from a JSON error body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None
