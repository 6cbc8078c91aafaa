from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import TypeAdapter

from .errors import DeserializationError, HTTPError, NetworkError, NotFoundError
from .models import LinkDraft, LinkItem, LinkPatch, now_ms

_LINKS = TypeAdapter(List[LinkItem])


def _detail(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or None
    if isinstance(body, dict):
        return body.get("detail") or body.get("message")
    return None


class RemoteLinkBackend:
    """Talks to the /api/links REST surface; one request per operation."""

    def __init__(
        self,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.clock = clock

    async def _request(
        self, method: str, path: str, link_id: Optional[str] = None, **kwargs
    ) -> Any:
        try:
            resp = await self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"{method} {path} failed: {e!r}") from e

        if resp.status_code == 404 and link_id is not None:
            raise NotFoundError(link_id)
        if not resp.is_success:
            raise HTTPError(resp.status_code, _detail(resp))
        try:
            return resp.json()
        except ValueError as e:
            raise DeserializationError(f"{method} {path} returned invalid JSON") from e

    def _link(self, data: Any) -> LinkItem:
        try:
            return LinkItem.model_validate(data)
        except ValueError as e:
            raise DeserializationError(f"Unexpected link payload: {e}") from e

    async def load_all(self) -> List[LinkItem]:
        data = await self._request("GET", "/api/links")
        try:
            return _LINKS.validate_python(data)
        except ValueError as e:
            raise DeserializationError(f"Unexpected links payload: {e}") from e

    async def create(self, draft: LinkDraft) -> LinkItem:
        # the server keeps this timestamp unless it decides otherwise
        body = {**draft.draft_data(), "createdAt": self.clock()}
        return self._link(await self._request("POST", "/api/links", json=body))

    async def replace(self, link_id: str, patch: LinkPatch) -> LinkItem:
        data = await self._request(
            "PUT", f"/api/links/{link_id}", link_id=link_id, json=patch.changes()
        )
        return self._link(data)

    async def remove(self, link_id: str) -> bool:
        data = await self._request("DELETE", f"/api/links/{link_id}", link_id=link_id)
        return bool(data.get("success")) if isinstance(data, dict) else False

    async def setup_database(self) -> Dict[str, Any]:
        return await self._request("POST", "/api/setup-db")

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/health")

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
