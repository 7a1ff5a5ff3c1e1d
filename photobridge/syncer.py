import datetime
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Union

import structlog

from photobridge.batch import BatchDispatcher
from photobridge.config import SyncConfig
from photobridge.errors import ValidationError
from photobridge.google_photos_api import GooglePhotosClient
from photobridge.reconcile import diff
from photobridge.source_api import SourceCatalogClient

log = structlog.stdlib.get_logger()


@dataclass
class SeedResult:
    album_name: str
    album_id: str
    total_fetched: int
    total_dispatched: int


@dataclass
class DiffResult:
    source_title: str
    exclude_title: str
    output_title: str
    source_count: int
    exclude_count: int
    added_count: int


@dataclass
class CartResult:
    sales_id: int
    photo_ids: List[int]
    added_count: int
    results: List[dict] = field(default_factory=list)


def previous_month(now: datetime.datetime) -> str:
    """
    YYYYMM of the calendar month before `now`.
    """
    year, month = now.year, now.month - 1
    if month == 0:
        year, month = year - 1, 12
    return f"{year}{month:02d}"


def diff_album_title(source_title: str, now: datetime.datetime) -> str:
    return f"{source_title} - diff ({now.year}-{now.month}-{now.day} {now:%H-%M})"


class PhotoBridge:
    """
    Main class orchestrating the bridge workflows:
     - seed a new album from the source catalog
     - seed one album per group, continuing past failed groups
     - build a difference album from two existing albums
     - add source photos to the cart
    """

    def __init__(
        self,
        config: SyncConfig,
        source: Optional[SourceCatalogClient],
        photos: Optional[GooglePhotosClient],
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ):
        self.config = config
        self.source = source
        self.photos = photos
        self.clock = clock

    # -----------------------------
    # 1) SOURCE -> NEW ALBUM
    # -----------------------------

    def seed_album(
        self,
        sales_id: int,
        group_id: int,
        event_ids: Optional[Sequence[Optional[int]]] = None,
        upload_count: Optional[int] = None,
    ) -> SeedResult:
        """
        Fetch every photo of a group (optionally once per event filter),
        create "<prefix>-<last month>-<group>" and upload the photos into it.
        event_ids=None means no event filter; an empty list fetches nothing.
        """
        if not sales_id or not group_id:
            raise ValidationError("sales_id and group_id are required")
        if upload_count is not None and upload_count < 0:
            raise ValidationError(f"upload_count must not be negative, got {upload_count}")

        if event_ids is None:
            event_ids = [None]

        photos = self.source.fetch_photos_for_events(sales_id, group_id, event_ids)
        log.info("photos_found", group_id=group_id, photos=len(photos))

        album_name = f"{self.config.album_prefix}-{previous_month(self.clock())}-{group_id}"
        album = self.photos.create_album(album_name)

        targets = photos if upload_count is None else photos[:upload_count]
        self.photos.batch_create_all(targets, album.id, self.source.download)

        log.info("album_seeded", album=album_name, fetched=len(photos), uploaded=len(targets))
        return SeedResult(
            album_name=album_name,
            album_id=album.id,
            total_fetched=len(photos),
            total_dispatched=len(targets),
        )

    def seed_albums(
        self,
        sales_id: int,
        group_ids: Sequence[int],
        event_ids: Optional[Sequence[Optional[int]]] = None,
        upload_count: Optional[int] = None,
    ) -> Dict[int, Union[SeedResult, Exception]]:
        """
        Run seed_album for every group. A failed group is logged and skipped;
        its entry in the returned dict is the exception.
        """
        if not sales_id or not group_ids:
            raise ValidationError("sales_id and at least one group_id are required")

        outcomes = {}
        for group_id in group_ids:
            log.info("group_started", group_id=group_id)
            try:
                outcomes[group_id] = self.seed_album(sales_id, group_id, event_ids, upload_count)
            except Exception as e:
                log.exception("group_failed", group_id=group_id, error=str(e))
                outcomes[group_id] = e
            else:
                log.info("group_completed", group_id=group_id)

        failed = [g for g, outcome in outcomes.items() if isinstance(outcome, Exception)]
        log.info("groups_completed", total=len(outcomes), failed=len(failed))
        return outcomes

    # -----------------------------
    # 2) ALBUM A - ALBUM B -> NEW ALBUM
    # -----------------------------

    def make_diff_album(self, source_title: str, exclude_title: Optional[str] = None) -> DiffResult:
        """
        Create a new album with the items of source_title that are not in
        exclude_title. When the difference is empty no album is created.
        """
        if not source_title or not source_title.strip():
            raise ValidationError("Album A title is required")

        from_config = not exclude_title or not exclude_title.strip()
        final_exclude = self.config.default_exclude_album if from_config else exclude_title
        if not final_exclude or not final_exclude.strip():
            raise ValidationError(
                "Album B title is required. Either provide it as an argument "
                "or set the DEFAULT_EXCLUDE_ALBUM environment variable."
            )

        output_title = diff_album_title(source_title, self.clock())
        log.info(
            "diff_album_started",
            source=source_title,
            exclude=final_exclude,
            exclude_from_config=from_config,
            output=output_title,
        )

        source_album_id = self.photos.find_album_id_by_title(source_title)
        exclude_album_id = self.photos.find_album_id_by_title(final_exclude)

        source_ids = self.photos.fetch_all_media_ids(source_album_id)
        exclude_ids = self.photos.fetch_all_media_ids(exclude_album_id)
        add_ids = diff(source_ids, exclude_ids)
        log.info(
            "diff_computed",
            source_count=len(source_ids),
            exclude_count=len(exclude_ids),
            difference=len(add_ids),
        )

        result = DiffResult(
            source_title=source_title,
            exclude_title=final_exclude,
            output_title=output_title,
            source_count=len(source_ids),
            exclude_count=len(exclude_ids),
            added_count=0,
        )
        if not add_ids:
            log.info("diff_album_skipped", reason="all items of the source album are in the exclude album")
            return result

        album = self.photos.create_album(output_title)
        self.photos.batch_add_media_items(add_ids, album.id)

        result.added_count = len(add_ids)
        log.info("diff_album_completed", output=output_title, added=result.added_count)
        return result

    # -----------------------------
    # 3) CART
    # -----------------------------

    def add_to_cart(self, photo_ids: Sequence[int], sales_id: Optional[int] = None) -> CartResult:
        """
        Add each photo to the cart. Requests run concurrently and the first
        failure is raised. sales_id defaults to the one tied to the session.
        """
        if not self.config.organization_id or not photo_ids:
            raise ValidationError("organization_id and photo_ids are required")

        if not sales_id:
            sales_id = self.source.credentials.get_credential().account_id
            if not sales_id:
                raise ValidationError("sales_id could not be determined")

        results = BatchDispatcher.run_concurrently(
            list(photo_ids),
            lambda photo_id: self.source.add_cart(sales_id, photo_id),
        )
        log.info("cart_updated", sales_id=sales_id, added=len(results))
        return CartResult(
            sales_id=sales_id,
            photo_ids=list(photo_ids),
            added_count=len(results),
            results=results,
        )
