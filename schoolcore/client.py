import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends

from schoolcore.config import settings
from schoolcore.exceptions import RemoteRejection, TransportFailure
from schoolcore.middleware.authentication import ApiCredentials, get_api_credentials

logger = logging.getLogger(__name__)


def _unwrap(body: Any) -> Any:
    # The API answers either with the payload itself or with {"data": payload}
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _error_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("message") or body.get("details") or body.get("title")
    if isinstance(body, str) and body.strip():
        return body.strip()
    return None


class RemoteApiClient:
    """
    Thin async wrapper around the remote school API.

    Every request carries the caller's bearer token and the school-scope
    header. Successful responses are unwrapped; refusals raise
    `RemoteRejection` with the server's message, network problems raise
    `TransportFailure`.
    """

    def __init__(
        self,
        credentials: Optional[ApiCredentials] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if credentials and credentials.token:
            headers["Authorization"] = f"Bearer {credentials.token}"
            if credentials.school_id:
                headers[settings.SCHOOL_ID_HEADER] = credentials.school_id

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            headers=headers,
            timeout=timeout or settings.API_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "RemoteApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            logger.error(f"School API request failed: {method} {path} [error: {str(e)}]")
            raise TransportFailure()

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = response.text

        if response.is_success:
            return _unwrap(body)

        message = _error_message(body)
        logger.error(
            f"School API rejected request: {method} {path} "
            f"[status: {response.status_code}] [message: {message}]"
        )
        raise RemoteRejection(message, status_code=response.status_code)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)


# Dependency to get an API client scoped to the caller
async def get_api_client(credentials: ApiCredentials = Depends(get_api_credentials)):
    async with RemoteApiClient(credentials) as client:
        yield client
