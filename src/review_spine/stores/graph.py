"""
Microsoft Graph collaborators.

``GraphDocumentStore`` drives a SharePoint document library and
``GraphWorkbookTableStore`` drives Excel workbook tables, both through a
shared :class:`GraphClient`.  Authentication is the caller's concern: the
client is handed a bearer token (or a callable returning one).

Error mapping:
    ::

        HTTP 404                      → NotFoundError
        HTTP 409 / 412                → ConflictError   (retryable)
        HTTP 429 / 5xx                → TransportError  (retryable)
        other HTTP >= 400             → TransportError  (not retryable)
        httpx timeout / network error → TransportError  (retryable)

Every request carries the client's bounded timeout.

Tags:
    microsoft-graph, sharepoint, excel, httpx, review-spine
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import httpx

from review_spine.core.errors import ConflictError, NotFoundError, ReviewSpineError, TransportError
from review_spine.core.logging import get_logger
from review_spine.core.protocols import CopyOperation, DriveItem, FileMetadata

logger = get_logger(__name__)

TokenProvider = Callable[[], str]

_ITEM_SELECT = "id,name,webUrl,createdDateTime,createdBy,size,folder,file,parentReference"


def _odata_quote(value: str) -> str:
    """Escape a string literal for an OData ``$filter`` expression."""
    return "'" + value.replace("'", "''") + "'"


def _drive_item(raw: dict[str, Any]) -> DriveItem:
    created_by = (raw.get("createdBy") or {}).get("user") or {}
    return DriveItem(
        id=raw["id"],
        name=raw.get("name", ""),
        parent_id=(raw.get("parentReference") or {}).get("id"),
        url=raw.get("webUrl", ""),
        is_folder="folder" in raw,
        created_at=raw.get("createdDateTime", ""),
        uploader=created_by.get("displayName") or created_by.get("email") or "",
        size=int(raw.get("size") or 0),
    )


class GraphClient:
    """Thin httpx wrapper for the Graph REST API.

    Args:
        site: Hostname-qualified site path
            (``contoso.sharepoint.com:/sites/Review``).
        token: Bearer token, or a callable returning a fresh one.
        base_url: Graph API root.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        site: str,
        token: str | TokenProvider | None = None,
        *,
        base_url: str = "https://graph.microsoft.com/v1.0",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.site = site
        self._token = token
        self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)
        self._site_id: str | None = None
        self._path_ids: dict[str, str] = {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GraphClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._token() if callable(self._token) else self._token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request, mapping failures onto the review-spine taxonomy."""
        try:
            response = self._client.request(method, url, json=json, params=params, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} {url} timed out", cause=exc).with_context(url=url) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}", cause=exc).with_context(url=url) from exc

        if response.status_code < 400:
            return response

        message = f"{method} {url} returned HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = None
        detail = (body.get("error") or {}).get("message") if isinstance(body, dict) else None
        if detail:
            message += f": {detail}"

        error: ReviewSpineError
        if response.status_code == 404:
            error = NotFoundError(message)
        elif response.status_code in (409, 412):
            error = ConflictError(message)
        else:
            retryable = response.status_code == 429 or response.status_code >= 500
            error = TransportError(message, retryable=retryable)
        raise error.with_context(url=url, http_status=response.status_code)

    def get_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.request("GET", url, params=params).json()

    def get_collection(self, url: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """All ``value`` entries of a collection, following ``@odata.nextLink``."""
        items: list[dict[str, Any]] = []
        page = self.get_json(url, params)
        items.extend(page.get("value", []))
        while page.get("@odata.nextLink"):
            page = self.get_json(page["@odata.nextLink"])
            items.extend(page.get("value", []))
        return items

    @property
    def site_id(self) -> str:
        if self._site_id is None:
            self._site_id = self.get_json(f"/sites/{self.site}")["id"]
        return self._site_id

    def drive_url(self, suffix: str) -> str:
        return f"/sites/{self.site_id}/drive{suffix}"

    def item_id_for_path(self, path: str) -> str:
        """Resolve a drive-relative path to an item id (cached)."""
        key = path.strip("/")
        if key not in self._path_ids:
            self._path_ids[key] = self.get_json(self.drive_url(f"/root:/{key}"))["id"]
        return self._path_ids[key]


class GraphDocumentStore:
    """Document store over a SharePoint document library."""

    def __init__(self, client: GraphClient):
        self.client = client

    def resolve_path(self, path: str) -> str:
        return self.client.item_id_for_path(path)

    def list_children(self, folder_id: str) -> list[DriveItem]:
        raw = self.client.get_collection(
            self.client.drive_url(f"/items/{folder_id}/children"),
            params={"$select": _ITEM_SELECT},
        )
        return [_drive_item(item) for item in raw]

    def get_metadata(self, file_id: str) -> FileMetadata:
        try:
            raw = self.client.get_json(
                self.client.drive_url(f"/items/{file_id}"),
                params={"$select": "id,name,webUrl,createdDateTime,createdBy,size"},
            )
        except NotFoundError as exc:
            raise exc.with_context(file_id=file_id)
        item = _drive_item(raw)
        return FileMetadata(
            file_id=item.id,
            name=item.name,
            url=item.url,
            created_at=item.created_at,
            uploader=item.uploader,
            size=item.size,
        )

    def exists(self, file_id: str) -> bool:
        try:
            self.client.request("GET", self.client.drive_url(f"/items/{file_id}"), params={"$select": "id"})
        except NotFoundError:
            return False
        return True

    def move(self, file_id: str, new_parent_id: str) -> None:
        self.client.request(
            "PATCH",
            self.client.drive_url(f"/items/{file_id}"),
            json={"parentReference": {"id": new_parent_id}},
        )
        logger.info("file_moved", file_id=file_id, folder_id=new_parent_id)

    def copy_async(self, file_id: str, dest_parent_id: str, dest_name: str) -> CopyOperation:
        response = self.client.request(
            "POST",
            self.client.drive_url(f"/items/{file_id}/copy"),
            json={"parentReference": {"id": dest_parent_id}, "name": dest_name},
        )
        return CopyOperation(
            source_id=file_id,
            dest_parent_id=dest_parent_id,
            dest_name=dest_name,
            monitor_url=response.headers.get("Location"),
        )

    def create_folder(self, parent_id: str, name: str, on_conflict: str = "rename") -> str:
        response = self.client.request(
            "POST",
            self.client.drive_url(f"/items/{parent_id}/children"),
            json={"name": name, "folder": {}, "@microsoft.graph.conflictBehavior": on_conflict},
        )
        return response.json()["id"]

    def find_child_by_name(self, parent_id: str, name: str) -> DriveItem | None:
        raw = self.client.get_collection(
            self.client.drive_url(f"/items/{parent_id}/children"),
            params={"$filter": f"name eq {_odata_quote(name)}", "$select": _ITEM_SELECT},
        )
        for item in raw:
            if item.get("name") == name:
                return _drive_item(item)
        return None


class GraphWorkbookTableStore:
    """Table store over Excel workbook tables.

    Args:
        client: Shared Graph client.
        workbooks: Workbook drive path for each table id.
    """

    def __init__(self, client: GraphClient, workbooks: Mapping[str, str]):
        self.client = client
        self.workbooks = dict(workbooks)

    def _table_url(self, table_id: str, suffix: str = "") -> str:
        try:
            path = self.workbooks[table_id]
        except KeyError:
            raise NotFoundError(f"No workbook configured for table {table_id}").with_context(table=table_id) from None
        workbook_id = self.client.item_id_for_path(path)
        return self.client.drive_url(f"/items/{workbook_id}/workbook/tables/{table_id}{suffix}")

    def list_rows(self, table_id: str) -> list[list[Any]]:
        raw = self.client.get_collection(self._table_url(table_id, "/rows"))
        return [list((row.get("values") or [[]])[0]) for row in raw]

    def append_row(self, table_id: str, values: list[Any]) -> None:
        self.client.request("POST", self._table_url(table_id, "/rows"), json={"values": [list(values)]})

    def update_row_at(self, table_id: str, index: int, partial: dict[int, Any]) -> None:
        url = self._table_url(table_id, f"/rows/itemAt(index={index})")
        current = list((self.client.get_json(url).get("values") or [[]])[0])
        for col, value in partial.items():
            while len(current) <= col:
                current.append("")
            current[col] = value
        self.client.request("PATCH", url, json={"values": [current]})

    def delete_row_at(self, table_id: str, index: int) -> None:
        self.client.request("DELETE", self._table_url(table_id, f"/rows/itemAt(index={index})"))

    def get_columns(self, table_id: str) -> list[str]:
        return [col["name"] for col in self.client.get_collection(self._table_url(table_id, "/columns"))]


__all__ = ["GraphClient", "GraphDocumentStore", "GraphWorkbookTableStore", "TokenProvider"]
