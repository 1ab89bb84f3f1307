import logging
from typing import Optional, Dict, Any

import httpx

from config import API_URL
from search.fields import SearchContext
from search.parser import parse_search_query
from search.serializer import filters_to_query_params

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Listing endpoint per search context
ENDPOINTS: Dict[SearchContext, str] = {
    SearchContext.MEDIA: "/api/media",
    SearchContext.CHARACTER: "/api/characters",
    SearchContext.LIBRARY: "/api/library",
}


class ApiError(Exception):
    """Non-2xx response from the media tracker API."""

    def __init__(self, message: str, status: int, data: Optional[Any] = None):
        super().__init__(message)
        self.status = status
        self.data = data


class SearchClient:
    """Runs search strings against the listing endpoints.

    Owns its ``httpx.AsyncClient``; use it as an async context manager or
    call ``aclose()``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or API_URL).rstrip('/')
        cookies = {'session_token': session_token} if session_token else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            cookies=cookies,
            transport=transport,
        )

    async def __aenter__(self) -> "SearchClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code >= 400:
            try:
                data = response.json()
            except ValueError:
                data = {'detail': 'An error occurred'}
            message = (
                data.get('detail') or data.get('error')
                if isinstance(data, dict) else None
            ) or f"Request failed with status {response.status_code}"
            logger.error(f"API error: {method} {path} -> {response.status_code} {message}")
            raise ApiError(str(message), response.status_code, data)
        return response

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """Log in; the session cookie is kept on the client."""
        response = await self._request(
            'POST', '/api/auth/login', json={'username': username, 'password': password}
        )
        return response.json()

    async def search(
        self,
        query: str,
        context: SearchContext = SearchContext.MEDIA,
        page: int = 1,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Parse ``query``, send it as query params and return the page."""
        context = SearchContext(context)
        filters = parse_search_query(query, context)
        params = filters_to_query_params(filters, sort=sort, order=order)
        params['page'] = str(page)

        logger.debug(f"Searching {ENDPOINTS[context]} with params={params}")
        response = await self._request('GET', ENDPOINTS[context], params=params)
        return response.json()

    async def search_media(self, query: str, **kwargs) -> Dict[str, Any]:
        return await self.search(query, SearchContext.MEDIA, **kwargs)

    async def search_characters(self, query: str, **kwargs) -> Dict[str, Any]:
        return await self.search(query, SearchContext.CHARACTER, **kwargs)

    async def search_library(self, query: str, **kwargs) -> Dict[str, Any]:
        return await self.search(query, SearchContext.LIBRARY, **kwargs)
