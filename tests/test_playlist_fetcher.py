"""Tests for the paginated YouTube playlist fetcher."""

from __future__ import annotations

from datetime import datetime, timezone

import httplib2
import pytest

from app.playlist_podcast.errors import UpstreamError
from app.playlist_podcast.playlist_fetcher import (
    PAGE_SIZE,
    PlaylistFetcher,
    member_item_from_resource,
)
from conftest import FakeYouTubeService, make_resource, paged_resources


def _fetcher(service: FakeYouTubeService) -> PlaylistFetcher:
    return PlaylistFetcher("test-key", service_factory=lambda api_key: service)


def test_follows_pagination_to_completion() -> None:
    service = FakeYouTubeService(paged_resources([50, 50, 12]))

    items = _fetcher(service).fetch_all("PL123")

    assert len(items) == 112
    assert len({item.video_id for item in items}) == 112
    assert [item.video_id for item in items[:2]] == ["vid0000", "vid0001"]
    assert items[-1].video_id == "vid0111"


def test_passes_page_tokens_in_sequence() -> None:
    service = FakeYouTubeService(paged_resources([50, 50, 12]))

    _fetcher(service).fetch_all("PL123")

    assert [call["pageToken"] for call in service.calls] == [None, "token-1", "token-2"]
    for call in service.calls:
        assert call["playlistId"] == "PL123"
        assert call["part"] == "snippet"
        assert call["maxResults"] == PAGE_SIZE


def test_single_page() -> None:
    service = FakeYouTubeService(paged_resources([3]))
    assert len(_fetcher(service).fetch_all("PL1")) == 3
    assert len(service.calls) == 1


def test_empty_playlist() -> None:
    service = FakeYouTubeService([{"items": []}])
    assert _fetcher(service).fetch_all("PLempty") == []


def test_mid_pagination_failure_discards_partial_results() -> None:
    service = FakeYouTubeService(paged_resources([50, 50, 12]), fail_on_page=1)

    with pytest.raises(UpstreamError) as excinfo:
        _fetcher(service).fetch_all("PL123")

    assert isinstance(excinfo.value.__cause__, TimeoutError)
    assert len(service.calls) == 2


def test_transport_errors_become_upstream_errors() -> None:
    service = FakeYouTubeService(
        paged_resources([1]),
        fail_on_page=0,
        error=httplib2.ServerNotFoundError("Unable to find the server"),
    )
    with pytest.raises(UpstreamError):
        _fetcher(service).fetch_all("PL123")


def test_service_factory_failure_is_upstream_error() -> None:
    def broken_factory(api_key: str):
        raise ConnectionError("no route to host")

    fetcher = PlaylistFetcher("test-key", service_factory=broken_factory)
    with pytest.raises(UpstreamError):
        fetcher.fetch_all("PL123")


def test_entries_without_video_id_are_skipped() -> None:
    page = {
        "items": [
            make_resource("abc", title="Kept"),
            make_resource(None, title="No id"),
            make_resource("def", title="Also kept"),
        ]
    }
    items = _fetcher(FakeYouTubeService([page])).fetch_all("PL1")
    assert [item.title for item in items] == ["Kept", "Also kept"]


def test_member_item_from_resource() -> None:
    resource = make_resource(
        "vid123", title="Pilot", publishedAt="2024-03-01T12:30:00Z"
    )

    item = member_item_from_resource(resource)

    assert item is not None
    assert item.video_id == "vid123"
    assert item.title == "Pilot"
    assert item.description == "Description of Pilot"
    assert item.link == "https://www.youtube.com/watch?v=vid123"
    assert item.published_at == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


def test_member_item_bad_timestamp_is_ignored() -> None:
    item = member_item_from_resource(make_resource("v", title="t", publishedAt="soon"))
    assert item is not None
    assert item.published_at is None


def test_timestamp_without_offset_is_utc() -> None:
    item = member_item_from_resource(
        make_resource("v", title="t", publishedAt="2024-01-01T00:00:00")
    )
    assert item is not None
    assert item.published_at == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_missing_title_defaults_to_empty() -> None:
    resource = make_resource("v1", title="")
    resource["snippet"].pop("title")
    resource["snippet"]["description"] = ""

    item = member_item_from_resource(resource)

    assert item is not None
    assert item.title == ""
