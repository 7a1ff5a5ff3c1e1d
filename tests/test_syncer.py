import datetime
from unittest.mock import MagicMock, Mock

import pytest

from photobridge.config import SyncConfig
from photobridge.credentials import Credential, CredentialCache
from photobridge.errors import AlbumNotFoundError, FetchError, RemoteRejection, ValidationError
from photobridge.google_photos_api import Album
from photobridge.source_api import Item
from photobridge.syncer import PhotoBridge, diff_album_title, previous_month

NOW = datetime.datetime(2026, 3, 5, 9, 7)


def photos_with_albums(members):
    """
    Fake Google Photos client whose albums are given as {title: [ids]}.
    """
    photos = MagicMock()
    photos.find_album_id_by_title.side_effect = lambda title: f"id-{title}"
    photos.fetch_all_media_ids.side_effect = lambda album_id: list(members[album_id[3:]])
    photos.create_album.side_effect = lambda title: Album("new-album", title)
    return photos


@pytest.fixture
def source():
    source = MagicMock()
    source.fetch_photos_for_events.return_value = [Item(i, f"https://img/{i}.jpg") for i in (1, 2, 3)]
    source.credentials = CredentialCache(credential=Credential("tok", 555))
    return source


@pytest.fixture
def config():
    return SyncConfig(organization_id=12)


def test_previous_month_wraps_year():
    assert previous_month(datetime.datetime(2026, 1, 15)) == "202512"
    assert previous_month(datetime.datetime(2026, 11, 1)) == "202610"


def test_diff_album_title_format():
    assert diff_album_title("Kids", NOW) == "Kids - diff (2026-3-5 09-07)"


# -----------------------------
# make_diff_album
# -----------------------------

def test_diff_album_adds_difference(config):
    photos = photos_with_albums({"A": ["photo1", "photo2", "photo3"], "B": ["photo2"]})
    bridge = PhotoBridge(config, None, photos, clock=lambda: NOW)

    result = bridge.make_diff_album("A", "B")

    photos.create_album.assert_called_once_with("A - diff (2026-3-5 09-07)")
    photos.batch_add_media_items.assert_called_once_with(["photo1", "photo3"], "new-album")
    assert result.source_title == "A"
    assert result.exclude_title == "B"
    assert result.output_title == "A - diff (2026-3-5 09-07)"
    assert (result.source_count, result.exclude_count, result.added_count) == (3, 1, 2)


def test_diff_album_with_identical_albums_creates_nothing(config):
    photos = photos_with_albums({"A": ["photo1", "photo2"], "B": ["photo1", "photo2"]})
    bridge = PhotoBridge(config, None, photos, clock=lambda: NOW)

    result = bridge.make_diff_album("A", "B")

    assert result.added_count == 0
    photos.create_album.assert_not_called()
    photos.batch_add_media_items.assert_not_called()


@pytest.mark.parametrize("exclude_title", [None, "", "   "])
def test_diff_album_uses_default_exclude_album(exclude_title):
    config = SyncConfig(default_exclude_album="Printed")
    photos = photos_with_albums({"A": ["p1", "p2"], "Printed": ["p1"]})

    result = PhotoBridge(config, None, photos, clock=lambda: NOW).make_diff_album("A", exclude_title)

    assert result.exclude_title == "Printed"
    photos.batch_add_media_items.assert_called_once_with(["p2"], "new-album")


@pytest.mark.parametrize("source_title, exclude_title", [("", "B"), ("  ", "B"), ("A", None), ("A", ""), ("A", "   ")])
def test_diff_album_requires_titles_before_network(config, source_title, exclude_title):
    photos = MagicMock()

    with pytest.raises(ValidationError):
        PhotoBridge(config, None, photos).make_diff_album(source_title, exclude_title)

    assert photos.mock_calls == []


def test_diff_album_propagates_lookup_failure(config):
    photos = MagicMock()
    photos.find_album_id_by_title.side_effect = AlbumNotFoundError("A")

    with pytest.raises(AlbumNotFoundError):
        PhotoBridge(config, None, photos).make_diff_album("A", "B")
    photos.create_album.assert_not_called()


# -----------------------------
# seed_album / seed_albums
# -----------------------------

def test_seed_album_uploads_everything(config, source):
    photos = MagicMock()
    photos.create_album.return_value = Album("album-1", "x")
    bridge = PhotoBridge(config, source, photos, clock=lambda: NOW)

    result = bridge.seed_album(173128, 67890, [1, 2])

    source.fetch_photos_for_events.assert_called_once_with(173128, 67890, [1, 2])
    photos.create_album.assert_called_once_with("lookmee-202602-67890")
    items, album_id, fetch_bytes = photos.batch_create_all.call_args.args
    assert [i.id for i in items] == [1, 2, 3]
    assert album_id == "album-1"
    assert fetch_bytes == source.download
    assert result.album_name == "lookmee-202602-67890"
    assert result.album_id == "album-1"
    assert (result.total_fetched, result.total_dispatched) == (3, 3)


def test_seed_album_without_events_uses_no_filter(config, source):
    bridge = PhotoBridge(config, source, MagicMock(), clock=lambda: NOW)

    bridge.seed_album(173128, 67890)

    source.fetch_photos_for_events.assert_called_once_with(173128, 67890, [None])


@pytest.mark.parametrize("count, expected", [(2, 2), (0, 0), (10, 3)])
def test_seed_album_truncates_to_upload_count(config, source, count, expected):
    photos = MagicMock()
    bridge = PhotoBridge(config, source, photos, clock=lambda: NOW)

    result = bridge.seed_album(173128, 67890, [1], upload_count=count)

    assert result.total_fetched == 3
    assert result.total_dispatched == expected
    assert len(photos.batch_create_all.call_args.args[0]) == expected


def test_seed_album_with_no_events_uploads_nothing(config, source):
    source.fetch_photos_for_events.return_value = []
    photos = MagicMock()

    result = PhotoBridge(config, source, photos, clock=lambda: NOW).seed_album(173128, 67890, [])

    assert (result.total_fetched, result.total_dispatched) == (0, 0)
    assert photos.batch_create_all.call_args.args[0] == []


@pytest.mark.parametrize("sales_id, group_id", [(0, 67890), (173128, 0), (None, 1)])
def test_seed_album_requires_ids(config, source, sales_id, group_id):
    with pytest.raises(ValidationError):
        PhotoBridge(config, source, MagicMock()).seed_album(sales_id, group_id)
    source.fetch_photos_for_events.assert_not_called()


def test_seed_album_propagates_errors(config, source):
    photos = MagicMock()
    photos.batch_create_all.side_effect = RemoteRejection("Google Photo API error", status_code=400)

    with pytest.raises(RemoteRejection):
        PhotoBridge(config, source, photos, clock=lambda: NOW).seed_album(173128, 67890)


def test_seed_albums_continues_after_failed_group(config, source):
    def fetch(sales_id, group_id, event_ids):
        if group_id == 2:
            raise FetchError("group 2 unavailable")
        return [Item(group_id, "https://img")]

    source.fetch_photos_for_events.side_effect = fetch
    photos = MagicMock()
    photos.create_album.side_effect = lambda title: Album(title, title)

    outcomes = PhotoBridge(config, source, photos, clock=lambda: NOW).seed_albums(173128, [1, 2, 3])

    assert outcomes[1].album_name == "lookmee-202602-1"
    assert isinstance(outcomes[2], FetchError)
    assert outcomes[3].album_name == "lookmee-202602-3"
    assert photos.create_album.call_count == 2


def test_seed_albums_requires_groups(config, source):
    with pytest.raises(ValidationError):
        PhotoBridge(config, source, MagicMock()).seed_albums(173128, [])


# -----------------------------
# add_to_cart
# -----------------------------

def test_add_to_cart(config, source):
    source.add_cart.side_effect = lambda sales_id, photo_id: {"id": photo_id}

    result = PhotoBridge(config, source, None).add_to_cart([1, 2, 3], sales_id=67890)

    assert result.sales_id == 67890
    assert result.photo_ids == [1, 2, 3]
    assert result.added_count == 3
    assert result.results == [{"id": 1}, {"id": 2}, {"id": 3}]
    assert sorted(c.args for c in source.add_cart.call_args_list) == [(67890, 1), (67890, 2), (67890, 3)]


def test_add_to_cart_defaults_to_session_sales_id(config, source):
    source.add_cart.return_value = {}

    result = PhotoBridge(config, source, None).add_to_cart([1])

    assert result.sales_id == 555
    source.add_cart.assert_called_once_with(555, 1)


def test_add_to_cart_without_sales_id(config, source):
    source.credentials = CredentialCache(credential=Credential("tok"))

    with pytest.raises(ValidationError, match="salesId|sales_id"):
        PhotoBridge(config, source, None).add_to_cart([1])


@pytest.mark.parametrize("cfg, photo_ids", [(SyncConfig(), [1]), (SyncConfig(organization_id=12), [])])
def test_add_to_cart_validates_inputs(source, cfg, photo_ids):
    with pytest.raises(ValidationError):
        PhotoBridge(cfg, source, None).add_to_cart(photo_ids, sales_id=1)
    source.add_cart.assert_not_called()


def test_add_to_cart_raises_first_failure(config, source):
    def add_cart(sales_id, photo_id):
        if photo_id == 2:
            raise RemoteRejection("Photo not found", status_code=404)
        return {"id": photo_id}

    source.add_cart = Mock(side_effect=add_cart)

    with pytest.raises(RemoteRejection, match="Photo not found"):
        PhotoBridge(config, source, None).add_to_cart([1, 2, 3], sales_id=1)
