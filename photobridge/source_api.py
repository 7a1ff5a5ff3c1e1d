"""
Client for the source photo catalog (organizations -> sales -> groups -> events).
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import structlog

from photobridge.config import SOURCE_API_URL, SOURCE_SESSION_COOKIE, SOURCE_SITE_URL
from photobridge.credentials import CredentialCache
from photobridge.errors import RemoteRejection
from photobridge.pagination import Page, fetch_all_over
from photobridge.transport import RetryingTransport, raise_for_status

log = structlog.stdlib.get_logger()


@dataclass(frozen=True)
class Item:
    id: int
    source_url: str
    content_type: Optional[str] = None

    @classmethod
    def from_json(cls, picture: dict) -> "Item":
        return cls(
            id=picture["id"],
            source_url=picture["thumbnail_big_url"],
            content_type=picture.get("content_type"),
        )


class SourceCatalogClient:
    def __init__(
        self,
        organization_id: int,
        credentials: CredentialCache,
        transport: RetryingTransport = None,
        base_url: str = SOURCE_API_URL,
    ):
        self.organization_id = organization_id
        self.credentials = credentials
        self.transport = transport or RetryingTransport()
        self.base_url = base_url.rstrip("/")

    def _sales_url(self, sales_id: int) -> str:
        return f"{self.base_url}/organizations/{self.organization_id}/sales_managements/{sales_id}"

    def _headers(self) -> dict:
        credential = self.credentials.get_credential()
        return {"cookie": f"{SOURCE_SESSION_COOKIE}={credential.token}"}

    def fetch_page(self, sales_id: int, group_id: int, event_id: Optional[int], page: int) -> Page:
        """
        One page of sales items. The response carries the total page count.
        """
        params = {"group_id": group_id, "page": page}
        if event_id is not None:
            params["event_id"] = event_id

        resp = self.transport.send(
            "GET",
            f"{self._sales_url(sales_id)}/sales_items",
            headers=self._headers(),
            params=params,
        )
        raise_for_status(resp, "fetch photos")

        data = resp.json()
        items = [Item.from_json(entry["picture"]) for entry in data.get("sales_items", [])]
        total_pages = data.get("meta", {}).get("pagination", {}).get("all_pages", 1)
        return Page(items=items, total_pages=total_pages)

    def fetch_photos_for_events(self, sales_id: int, group_id: int, event_ids: Iterable[Optional[int]]) -> List[Item]:
        """
        Fetch every photo of the group once per event filter and concatenate.
        An empty event list fetches nothing.
        """
        def make_fetch_page(event_id):
            return lambda page, _cursor: self.fetch_page(sales_id, group_id, event_id, page)

        return fetch_all_over(event_ids, make_fetch_page, what=f"sales items (group {group_id})")

    def download(self, item: Item) -> Tuple[bytes, str]:
        """
        Fetch the raw bytes of an item. Returns (data, content type).
        """
        resp = self.transport.send("GET", item.source_url)
        raise_for_status(resp, f"fetch image {item.id}")

        content_type = resp.headers.get("content-type") or item.content_type
        if not content_type:
            raise RemoteRejection(f"Failed to determine content type of image {item.id}", status_code=resp.status_code)
        return resp.content, content_type

    def add_cart(self, sales_id: int, photo_id: int) -> dict:
        """
        Put one photo (count 1) into the cart of a sale.
        """
        resp = self.transport.send(
            "PUT",
            f"{self._sales_url(sales_id)}/cart/pictures",
            headers={
                **self._headers(),
                "content-type": "application/json",
                # the cart endpoint answers 403 without the sales page as referer
                "referer": f"{SOURCE_SITE_URL}/organizations/{self.organization_id}/sales_managements/{sales_id}",
            },
            json={"cart_picture": {"id": photo_id, "count": 1}},
        )
        raise_for_status(resp, f"add photo {photo_id} to cart")
        return resp.json()
