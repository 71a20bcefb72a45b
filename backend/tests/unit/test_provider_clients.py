"""
Unit tests for the IGDB, Open Library and YouTube clients.
"""

from unittest.mock import Mock

import pytest
import requests

from seedtools.services.exceptions import MetadataLookupFailure
from seedtools.services.igdb_client import IGDB_FALLBACK_ID, IGDBClient
from seedtools.services.openlibrary_client import OpenLibraryClient
from seedtools.services.youtube_client import YouTubeClient


def response(payload, content=b""):
    resp = Mock()
    resp.json.return_value = payload
    resp.content = content
    resp.raise_for_status.return_value = None
    return resp


def http_error(status_code):
    resp = Mock()
    resp.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
    return resp


class TestIGDBClient:

    def make(self, *responses):
        session = Mock(spec=requests.Session)
        session.post.side_effect = list(responses)
        return IGDBClient("client-id", "token", session=session), session

    def test_best_match_by_name(self):
        client, session = self.make(
            response([{"game": 5}, {"game": 7}]),
            response([{"id": 5, "name": "Some Game: Remastered"}, {"id": 7, "name": "Some Game"}]),
        )

        assert client.lookup_id("Some Game") == 7

        search_call, games_call = session.post.call_args_list
        assert search_call[0][0] == "https://api.igdb.com/v4/search"
        assert search_call[1]["data"] == 'fields game; search "Some Game"; limit 10;'
        assert search_call[1]["headers"]["Client-ID"] == "client-id"
        assert search_call[1]["headers"]["Authorization"] == "Bearer token"
        assert "where id = (5,7)" in games_call[1]["data"]

    def test_title_shortened_until_found(self):
        client, session = self.make(
            response([]),
            response([{"game": 11}]),
            response([{"id": 11, "name": "Other", "slug": "some-game"}]),
        )

        assert client.lookup_id("Some Game Deluxe") == 11
        assert 'search "Some Game"' in session.post.call_args_list[1][1]["data"]

    def test_alternative_name_match(self):
        client, _ = self.make(
            response([{"game": 1}, {"game": 2}]),
            response([
                {"id": 1, "name": "Unrelated"},
                {"id": 2, "name": "Jeu", "alternative_names": [{"name": "Some Game"}]},
            ]),
        )
        assert client.lookup_id("Some Game") == 2

    def test_first_result_when_nothing_matches(self):
        client, _ = self.make(response([{"game": 3}]), response([{"id": 3, "name": "Else"}]))
        assert client.lookup_id("Some Game") == 3

    def test_fallback_id(self):
        client, session = self.make(response([]), response([]))

        assert client.lookup_id("Some Game") == IGDB_FALLBACK_ID
        assert session.post.call_count == 2

    def test_transport_error(self):
        client, _ = self.make(http_error(401))
        with pytest.raises(MetadataLookupFailure) as exc_info:
            client.lookup_id("Some Game")
        assert exc_info.value.provider == "igdb"

    def test_screenshot_urls(self):
        client, _ = self.make(
            response([{"id": 7, "screenshots": [100, 101]}]),
            response([{"id": 100, "image_id": "abc"}, {"id": 101}]),
        )

        assert client.screenshot_urls(7) == [
            "https://images.igdb.com/igdb/image/upload/t_screenshot_big/abc.jpg",
        ]

    def test_no_screenshots(self):
        client, session = self.make(response([{"id": 7}]))
        assert client.screenshot_urls(7) == []
        assert session.post.call_count == 1

    def test_download(self, tmp_path):
        client, session = self.make()
        session.get.return_value = response(None, content=b"jpeg")

        path = client.download("https://images.igdb.com/x.jpg", str(tmp_path / "x.jpg"))

        assert open(path, "rb").read() == b"jpeg"


class TestOpenLibraryClient:

    def make(self, resp):
        session = Mock(spec=requests.Session)
        session.get.return_value = resp
        return OpenLibraryClient(session=session), session

    def test_match(self):
        client, session = self.make(response({"docs": [{
            "key": "/works/OL27448W",
            "title": "The Hobbit",
            "author_key": ["OL26320A"],
            "author_name": ["J.R.R. Tolkien"],
            "first_publish_year": 1937,
            "cover_i": 14627509,
        }]}))

        match = client.search("The Hobbit", "Tolkien")

        assert match.work_key == "OL27448W"
        assert match.work_url == "https://openlibrary.org/works/OL27448W"
        assert match.cover_url == "https://covers.openlibrary.org/b/id/14627509-L.jpg"
        assert match.author_name == "J.R.R. Tolkien"
        params = session.get.call_args[1]["params"]
        assert (params["title"], params["author"], params["limit"]) == ("The Hobbit", "Tolkien", 1)

    def test_no_docs(self):
        client, _ = self.make(response({"docs": []}))
        assert client.search("Nothing", "Nobody") is None

    def test_no_cover(self):
        client, _ = self.make(response({"docs": [{"key": "/works/OL1W", "title": "T"}]}))
        assert client.search("T", "A").cover_url is None

    def test_http_error(self):
        client, _ = self.make(http_error(503))
        with pytest.raises(MetadataLookupFailure):
            client.search("T", "A")


class TestYouTubeClient:

    def test_trailer_url(self):
        session = Mock(spec=requests.Session)
        session.get.return_value = response({"items": [{"id": {"videoId": "dQw4w9WgXcQ"}}]})

        url = YouTubeClient("yt-key", session=session).find_trailer("The Matrix", "1999")

        assert url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert session.get.call_args[1]["params"]["q"] == "The Matrix 1999 trailer"

    def test_no_items(self):
        session = Mock(spec=requests.Session)
        session.get.return_value = response({"items": []})
        assert YouTubeClient("yt-key", session=session).find_trailer("Nothing") is None
