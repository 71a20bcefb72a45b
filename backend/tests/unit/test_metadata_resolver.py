"""
Unit tests for MetadataResolver severity handling.

Every provider client is a Mock; only the TMDB id lookup may abort a run.
"""

import zipfile
from unittest.mock import Mock

import pytest
import requests

from seedtools.schemas.config import GeneralSettings, PathSettings
from seedtools.services.classifier import ContentType, ReleaseInfo
from seedtools.services.exceptions import MetadataLookupFailure, NetworkRetryableError
from seedtools.services.igdb_client import IGDB_FALLBACK_ID
from seedtools.services.metadata_resolver import (
    ExternalIds,
    MetadataResolver,
    Severity,
    tmdb_media_type,
)
from seedtools.services.openlibrary_client import BookMatch


MOVIE = ReleaseInfo(ContentType.MOVIE, "The Matrix", "The.Matrix.1999.1080p.mkv", year="1999")
TV = ReleaseInfo(ContentType.TV, "Show", "Show.S01E02.mkv", season=1, episode=2)
GAME = ReleaseInfo(ContentType.GAME, "Some Game", "Some.Game.v1.0-GRP.nsp")


@pytest.fixture
def tmdb():
    client = Mock()
    client.search_id.return_value = 603
    client.external_ids.return_value = ("0133093", None)
    return client


def make_resolver(tmdb=None, youtube=None, igdb=None, openlibrary=None):
    return MetadataResolver(
        GeneralSettings(),
        PathSettings(),
        tmdb=tmdb or Mock(),
        youtube=youtube,
        igdb=igdb,
        openlibrary=openlibrary or Mock(),
    )


class TestVideo:

    def test_resolves_ids_and_trailer(self, tmdb, tmp_path):
        youtube = Mock()
        youtube.find_trailer.return_value = "https://www.youtube.com/watch?v=abc"

        resolved = make_resolver(tmdb, youtube).resolve(MOVIE, tmp_path)

        assert resolved.ids == ExternalIds(tmdb=603, imdb="0133093")
        assert resolved.trailer_url == "https://www.youtube.com/watch?v=abc"
        assert resolved.degraded == []
        tmdb.search_id.assert_called_once_with("The Matrix", "1999", "movie")

    def test_tv_lookup_type(self, tmdb, tmp_path):
        make_resolver(tmdb).resolve(TV, tmp_path)
        assert tmdb.search_id.call_args[0][2] == "tv"

    @pytest.mark.parametrize("error", [
        MetadataLookupFailure("HTTP 500"),
        NetworkRetryableError("timeout"),
    ])
    def test_tmdb_failure_is_fatal(self, tmdb, tmp_path, error):
        tmdb.search_id.side_effect = error

        with pytest.raises(MetadataLookupFailure, match="TMDB lookup failed"):
            make_resolver(tmdb).resolve(MOVIE, tmp_path)

    def test_zero_tmdb_id_is_not_fatal(self, tmdb, tmp_path):
        tmdb.search_id.return_value = 0
        tmdb.external_ids.return_value = (None, None)

        resolved = make_resolver(tmdb).resolve(MOVIE, tmp_path)

        assert resolved.ids.tmdb == 0
        assert resolved.ids.form_fields() == {"tmdb": "0", "imdb": "0", "tvdb": "0", "igdb": "0"}

    def test_external_ids_failure_degrades(self, tmdb, tmp_path):
        tmdb.external_ids.side_effect = MetadataLookupFailure("boom")

        resolved = make_resolver(tmdb).resolve(MOVIE, tmp_path)

        assert resolved.ids == ExternalIds(tmdb=603)
        assert resolved.degraded == ["external ids"]

    def test_trailer_failure_degrades(self, tmdb, tmp_path):
        youtube = Mock()
        youtube.find_trailer.side_effect = requests.exceptions.HTTPError("403 quota")

        resolved = make_resolver(tmdb, youtube).resolve(MOVIE, tmp_path)

        assert resolved.trailer_url is None
        assert "trailer" in resolved.degraded

    def test_no_youtube_key_is_not_degraded(self, tmdb, tmp_path):
        resolver = make_resolver(tmdb)
        assert resolver.youtube is None
        assert resolver.resolve_trailer(MOVIE).severity is Severity.OK


class TestGames:

    def test_lookup_and_screenshots(self, tmp_path):
        igdb = Mock()
        igdb.lookup_id.return_value = 1942
        igdb.screenshot_urls.return_value = ["https://images.igdb.com/a.jpg"]

        resolved = make_resolver(igdb=igdb).resolve(GAME, tmp_path)

        assert resolved.ids.igdb == 1942
        assert resolved.game_screenshot_urls == ["https://images.igdb.com/a.jpg"]
        igdb.lookup_id.assert_called_once_with("Some Game")

    def test_fallback_id_gets_no_screenshots(self, tmp_path):
        igdb = Mock()
        igdb.lookup_id.return_value = IGDB_FALLBACK_ID

        resolved = make_resolver(igdb=igdb).resolve(GAME, tmp_path)

        assert resolved.ids.igdb == IGDB_FALLBACK_ID
        assert resolved.game_screenshot_urls == []
        igdb.screenshot_urls.assert_not_called()

    def test_failure_degrades_to_fallback(self, tmp_path):
        igdb = Mock()
        igdb.lookup_id.side_effect = MetadataLookupFailure("401", provider="igdb")

        resolved = make_resolver(igdb=igdb).resolve(GAME, tmp_path)

        assert resolved.ids.igdb == IGDB_FALLBACK_ID
        assert resolved.degraded == ["igdb"]

    def test_unconfigured_igdb(self, tmp_path):
        resolved = make_resolver().resolve(GAME, tmp_path)
        assert resolved.ids.igdb == IGDB_FALLBACK_ID


def write_epub(path, title="Dune", creator="Frank Herbert", date="1965-08-01"):
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(
            "META-INF/container.xml",
            '<?xml version="1.0"?>'
            '<container xmlns="urn:oasis:names:tc:opendocument:xmlns:container" version="1.0">'
            '<rootfiles><rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>'
            '</rootfiles></container>',
        )
        zf.writestr(
            "OEBPS/content.opf",
            '<?xml version="1.0"?>'
            '<package xmlns="http://www.idpf.org/2007/opf" version="3.0">'
            '<metadata xmlns:dc="http://purl.org/dc/elements/1.1/">'
            f'<dc:title>{title}</dc:title><dc:creator>{creator}</dc:creator><dc:date>{date}</dc:date>'
            '</metadata><manifest/></package>',
        )
    return path


class TestBooks:

    def test_open_library_match(self, tmp_path):
        epub = write_epub(tmp_path / "Dune.epub")
        openlibrary = Mock()
        openlibrary.search.return_value = BookMatch(work_key="OL893415W", title="Dune", author_key="OL79034A")
        release = ReleaseInfo(ContentType.EBOOK, "Dune", "Dune.epub")

        resolved = make_resolver(openlibrary=openlibrary).resolve(release, epub)

        openlibrary.search.assert_called_once_with("Dune", "Frank Herbert")
        assert resolved.book.year == "1965"
        assert resolved.ids.openlibrary_work == "OL893415W"
        assert resolved.ids.openlibrary_author == "OL79034A"

    def test_no_embedded_author_skips_search(self, tmp_path):
        epub = write_epub(tmp_path / "Dune.epub", creator="")
        openlibrary = Mock()
        release = ReleaseInfo(ContentType.EBOOK, "Dune", "Dune.epub")

        resolved = make_resolver(openlibrary=openlibrary).resolve(release, epub)

        openlibrary.search.assert_not_called()
        assert resolved.book_match is None

    def test_search_failure_degrades(self, tmp_path):
        epub = write_epub(tmp_path / "Dune.epub")
        openlibrary = Mock()
        openlibrary.search.side_effect = MetadataLookupFailure("down", provider="openlibrary")
        release = ReleaseInfo(ContentType.EBOOK, "Dune", "Dune.epub")

        resolved = make_resolver(openlibrary=openlibrary).resolve(release, epub)

        assert resolved.book.title == "Dune"
        assert resolved.degraded == ["open library"]


def test_unknown_content_needs_no_lookups(tmp_path):
    tmdb = Mock()
    release = ReleaseInfo(ContentType.UNKNOWN, "thing", "thing.bin")

    resolved = make_resolver(tmdb).resolve(release, tmp_path)

    assert resolved.ids == ExternalIds()
    tmdb.search_id.assert_not_called()


@pytest.mark.parametrize("content_type, expected", [
    (ContentType.MOVIE, "movie"),
    (ContentType.TV, "tv"),
    (ContentType.BOXSET, "tv"),
])
def test_tmdb_media_type(content_type, expected):
    assert tmdb_media_type(content_type) == expected
