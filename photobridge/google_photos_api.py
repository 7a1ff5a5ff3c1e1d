from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

import structlog

from photobridge.batch import BatchDispatcher
from photobridge.config import ALBUM_PAGE_SIZE, MEDIA_PAGE_SIZE, PHOTOS_API_URL
from photobridge.credentials import CredentialCache
from photobridge.errors import AlbumNotFoundError, RemoteRejection
from photobridge.pagination import Page, PaginatedFetcher
from photobridge.transport import RetryingTransport, raise_for_status

log = structlog.stdlib.get_logger()


@dataclass(frozen=True)
class Album:
    id: str
    title: str


class GooglePhotosClient:
    """
    The parts of the Google Photos Library API that photobridge uses:
    album listing and creation, album member search, raw uploads,
    batchCreate and batchAddMediaItems.
    """

    def __init__(
        self,
        credentials: CredentialCache,
        transport: RetryingTransport = None,
        dispatcher: BatchDispatcher = None,
        base_url: str = PHOTOS_API_URL,
    ):
        self.credentials = credentials
        self.transport = transport or RetryingTransport()
        self.dispatcher = dispatcher or BatchDispatcher()
        self.base_url = base_url.rstrip("/")

    def get_headers(self, content_type: str = "application/json") -> dict:
        """
        Return headers for authorized requests to Google Photos.
        """
        credential = self.credentials.get_credential()
        return {
            "Authorization": f"Bearer {credential.token}",
            "Content-Type": content_type,
        }

    # -----------------------------
    # 1) ALBUMS
    # -----------------------------

    def _albums_page(self, _page_number: int, page_token: str) -> Page:
        params = {"pageSize": ALBUM_PAGE_SIZE}
        if page_token:
            params["pageToken"] = page_token

        resp = self.transport.send("GET", f"{self.base_url}/albums", headers=self.get_headers(), params=params)
        raise_for_status(resp, "list albums")

        data = resp.json()
        albums = [Album(id=a["id"], title=a.get("title", "")) for a in data.get("albums", [])]
        return Page(items=albums, next_cursor=data.get("nextPageToken"))

    def list_albums(self) -> List[Album]:
        """
        List all albums (paginated).
        """
        return PaginatedFetcher(self._albums_page, what="albums").fetch_all()

    def find_album_id_by_title(self, title: str) -> str:
        """
        Return the id of the first album with exactly this title.
        """
        for album in self.list_albums():
            if album.title == title:
                return album.id
        raise AlbumNotFoundError(title)

    def create_album(self, title: str) -> Album:
        resp = self.transport.send(
            "POST",
            f"{self.base_url}/albums",
            headers=self.get_headers(),
            json={"album": {"title": title}},
        )
        raise_for_status(resp, f"create album '{title}'")

        data = resp.json()
        album = Album(id=data["id"], title=data.get("title", title))
        log.info("album_created", album_id=album.id, title=album.title)
        return album

    # -----------------------------
    # 2) ALBUM MEMBERS
    # -----------------------------

    def fetch_all_media_ids(self, album_id: str) -> List[str]:
        """
        Ids of every media item in the album, in the order the API returns them.
        """
        def fetch_page(_page_number, page_token):
            body = {"albumId": album_id, "pageSize": MEDIA_PAGE_SIZE}
            if page_token:
                body["pageToken"] = page_token

            resp = self.transport.send(
                "POST",
                f"{self.base_url}/mediaItems:search",
                headers=self.get_headers(),
                json=body,
            )
            raise_for_status(resp, f"search media items of album {album_id}")

            data = resp.json()
            ids = [item["id"] for item in data.get("mediaItems", [])]
            return Page(items=ids, next_cursor=data.get("nextPageToken"))

        return PaginatedFetcher(fetch_page, what=f"album {album_id}").fetch_all()

    def batch_add_media_items(self, media_ids: Sequence[str], album_id: str) -> None:
        """
        Add existing media items to an album, 50 per call.
        """
        def submit(chunk):
            resp = self.transport.send(
                "POST",
                f"{self.base_url}/albums/{album_id}:batchAddMediaItems",
                headers=self.get_headers(),
                json={"mediaItemIds": chunk},
            )
            raise_for_status(resp, f"add {len(chunk)} media items to album {album_id}")

        self.dispatcher.dispatch(media_ids, submit)

    # -----------------------------
    # 3) UPLOADS
    # -----------------------------

    def upload_bytes(self, data: bytes, content_type: str) -> str:
        """
        Upload raw bytes and return the upload token for batchCreate.
        """
        headers = self.get_headers("application/octet-stream")
        headers["X-Goog-Upload-Content-Type"] = content_type
        headers["X-Goog-Upload-Protocol"] = "raw"

        resp = self.transport.send("POST", f"{self.base_url}/uploads", headers=headers, data=data)
        raise_for_status(resp, "upload image")
        return resp.text

    def batch_create(self, items: Sequence, upload_tokens: Sequence[str], album_id: str) -> List[dict]:
        """
        Commit uploaded bytes as media items in the album. Token i belongs to item i;
        the item's source id becomes the description.
        """
        body = {
            "newMediaItems": [
                {
                    "description": str(item.id),
                    "simpleMediaItem": {"uploadToken": token},
                }
                for item, token in zip(items, upload_tokens)
            ],
            "albumId": album_id,
        }
        resp = self.transport.send(
            "POST",
            f"{self.base_url}/mediaItems:batchCreate",
            headers=self.get_headers(),
            json=body,
        )
        raise_for_status(resp, "create media items")

        # batchCreate answers 200 even when single items fail
        results = resp.json().get("newMediaItemResults", [])
        expected = len(body["newMediaItems"])
        failed = []
        for result in results:
            status = result.get("status", {})
            if status.get("code", -1) != 0:
                failed.append(status.get("message", "Unknown"))
        failed.extend(["No result returned"] * (expected - len(results)))

        if failed:
            raise RemoteRejection(
                f"Failed to create {len(failed)} of {expected} media items: " + "; ".join(failed),
                status_code=resp.status_code,
                body=resp.text,
            )
        return results

    def batch_create_all(
        self,
        items: Sequence,
        album_id: str,
        fetch_bytes: Callable[[object], Tuple[bytes, str]],
    ) -> List[dict]:
        """
        Copy items into the album 50 at a time. Within a chunk every item is
        downloaded and uploaded concurrently before the chunk is committed.
        Returns the newMediaItemResults of all chunks.
        """
        def upload_item(item):
            data, content_type = fetch_bytes(item)
            return self.upload_bytes(data, content_type)

        def commit(chunk, tokens):
            results = self.batch_create(chunk, tokens, album_id)
            log.info("batch_uploaded", album_id=album_id, photos=len(results))
            return results

        per_chunk = self.dispatcher.dispatch_uploads(items, upload_item, commit)
        return [result for results in per_chunk for result in results]
