"""
Integration tests for the UploadPipeline.

Real classifier, real tracker adapters and a real (in-memory) upload ledger; the
HTTP clients, metadata resolver, client injector and artifact builder are replaced:

    - Seedpool / TorrentLeech adapters talk to a mocked httpx.Client
    - ArtifactBuilder is a fake that writes the .torrent and returns fixed text
    - ClientInjector is a Mock returning a successful InjectionReport

Scenarios:
    - Episode, season pack and movie mapping reach the upload form
    - Duplicate on the tracker: existing torrent seeded, nothing built or uploaded
    - Ledger hit on a re-run
    - Custom category mode
    - Dupe-check mode exit codes
    - Per-tracker failure isolation, including unexpected errors
    - One .torrent per tracker
"""

from pathlib import Path
from unittest.mock import Mock

import httpx
import pytest

from seedtools.adapters.seedpool_adapter import SeedpoolAdapter
from seedtools.adapters.torrentleech_adapter import TorrentLeechAdapter
from seedtools.models.upload_record import UploadRecord, UploadStatus
from seedtools.processors.pipeline import EXIT_DUPLICATE, EXIT_FAILURE, EXIT_OK, UploadPipeline
from seedtools.services.artifact_builder import UploadArtifact
from seedtools.services.bbcode_generator import CUSTOM_UPLOAD_DESCRIPTION
from seedtools.services.client_injector import InjectionReport
from seedtools.services.metadata_resolver import ExternalIds, ResolvedMetadata
from seedtools.utils.release_naming import generate_release_name

pytestmark = pytest.mark.integration


SEARCH_URL = "https://seedpool.org/api/torrents/filter"
DOWNLOAD_LINK = "https://seedpool.org/torrent/download/42.abc"


# ============================================================================
# Fakes
# ============================================================================

class FakeBuilder:
    """Writes <torrent_dir>/<tracker>/<release>.torrent and returns a fixed artifact."""

    def __init__(self, torrent_dir):
        self.torrent_dir = Path(torrent_dir)
        self.slug = None
        self.built = []
        self.custom = []

    def for_tracker(self, settings):
        self.slug = settings.slug
        return self

    def _torrent(self, input_path):
        directory = self.torrent_dir / self.slug
        directory.mkdir(parents=True, exist_ok=True)
        torrent = directory / f"{generate_release_name(input_path.name)}.torrent"
        torrent.write_bytes(self.slug.encode())
        return str(torrent)

    def build(self, input_path, release, metadata):
        self.built.append((input_path, release, metadata))
        return UploadArtifact(
            torrent_path=self._torrent(input_path),
            description="[center]description[/center]",
            mediainfo="General\nComplete name : release.mkv",
        )

    def build_custom(self, input_path):
        self.custom.append(input_path)
        return UploadArtifact(torrent_path=self._torrent(input_path), description=CUSTOM_UPLOAD_DESCRIPTION)


class StubFactory:
    def __init__(self, adapters):
        self.adapters = adapters
        self.closed = False

    def get_adapter(self, slug):
        return self.adapters[slug]

    def close(self):
        self.closed = True


def search_response(rows):
    return httpx.Response(200, json={"data": rows}, request=httpx.Request("GET", SEARCH_URL))


def search_hit(name):
    return search_response([{"attributes": {"name": name, "download_link": DOWNLOAD_LINK}}])


def upload_ok():
    return httpx.Response(200, json={"success": True, "data": "https://seedpool.org/torrents/1"})


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def seedpool_http():
    http = Mock(spec=httpx.Client)
    http.get.return_value = search_response([])
    http.post.return_value = upload_ok()
    return http


@pytest.fixture
def torrentleech_http():
    http = Mock(spec=httpx.Client)
    http.post.return_value = httpx.Response(200, text="12345")
    return http


@pytest.fixture
def resolver():
    resolver = Mock()
    resolver.resolve.return_value = ResolvedMetadata(ids=ExternalIds(tmdb=1399, imdb="0944947", tvdb=121361))
    return resolver


@pytest.fixture
def injector():
    injector = Mock()
    injector.inject.return_value = InjectionReport(succeeded=["qbittorrent:http://qb:8080"])
    return injector


@pytest.fixture
def builder(run_context):
    return FakeBuilder(run_context.paths.torrent_dir)


@pytest.fixture
def pipeline(run_context, seedpool_settings, torrentleech_settings, seedpool_http, torrentleech_http,
             resolver, injector, builder, session_factory):
    factory = StubFactory({
        "seedpool": SeedpoolAdapter(seedpool_settings, http_client=seedpool_http),
        "torrentleech": TorrentLeechAdapter(torrentleech_settings, http_client=torrentleech_http),
    })
    return UploadPipeline(
        run_context,
        factory=factory,
        resolver=resolver,
        injector=injector,
        builder_factory=builder.for_tracker,
        session_factory=session_factory,
    )


@pytest.fixture
def media(tmp_path):
    directory = tmp_path / "media"
    directory.mkdir()
    return directory


def make_file(directory, name):
    path = directory / name
    path.write_bytes(b"video")
    return path


def upload_form(http):
    return http.post.call_args[1]["data"]


# ============================================================================
# Standard uploads
# ============================================================================

class TestStandardUpload:

    def test_episode(self, pipeline, media, seedpool_http, injector, session_factory):
        episode = make_file(media, "Show.Name.S01E02.1080p.WEB-GRP.mkv")

        summary = pipeline.run(str(episode), ["seedpool"])

        assert summary.exit_code == EXIT_OK
        outcome = summary.outcomes[0]
        assert outcome.status is UploadStatus.UPLOADED
        assert outcome.message == "uploaded"

        form = upload_form(seedpool_http)
        assert (form["category_id"], form["type_id"], form["resolution_id"]) == ("2", "24", "3")
        assert (form["season_number"], form["episode_number"]) == ("1", "2")
        assert form["name"] == "Show.Name.S01E02.1080p.WEB-GRP"
        assert form["tmdb"] == "1399"
        assert seedpool_http.post.call_args[1]["headers"]["Authorization"] == "Bearer sp-token"

        search_params = seedpool_http.get.call_args[1]["params"]
        assert (search_params["seasonNumber"], search_params["episodeNumber"]) == (1, 2)

        injector.inject.assert_called_once_with(outcome.torrent_path, str(episode.resolve()))
        with session_factory() as db:
            assert UploadRecord.find_uploaded(db, str(episode.resolve()), "seedpool") is not None

    def test_season_pack_goes_up_as_boxset(self, pipeline, media, seedpool_http):
        pack = media / "Show.S02.Complete.2020.720p.WEB-GRP"
        pack.mkdir()
        make_file(pack, "Show.S02E01.720p.WEB-GRP.mkv")

        summary = pipeline.run(str(pack), ["seedpool"])

        assert summary.exit_code == EXIT_OK
        form = upload_form(seedpool_http)
        assert (form["category_id"], form["type_id"]) == ("13", "26")
        assert (form["season_number"], form["episode_number"]) == ("2", "0")
        assert form["resolution_id"] == "5"

    def test_movie(self, pipeline, media, seedpool_http, builder):
        movie = make_file(media, "Movie.Title.2019.2160p.WEB-GRP.mkv")

        pipeline.run(str(movie), ["seedpool"])

        form = upload_form(seedpool_http)
        assert (form["category_id"], form["type_id"], form["resolution_id"]) == ("1", "22", "2")
        assert "season_number" not in form
        _, release, metadata = builder.built[0]
        assert release.title == "Movie Title"
        assert metadata.ids.tmdb == 1399

    def test_unknown_resolution(self, pipeline, media, seedpool_http):
        movie = make_file(media, "Movie.Title.2019.XYZp.WEB-GRP.mkv")

        pipeline.run(str(movie), ["seedpool"])

        assert upload_form(seedpool_http)["resolution_id"] == "10"

    def test_metadata_resolved_once_for_all_trackers(self, pipeline, media, resolver, torrentleech_http):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")

        summary = pipeline.run(str(movie), ["seedpool", "torrentleech"])

        assert [o.status for o in summary.outcomes] == [UploadStatus.UPLOADED, UploadStatus.UPLOADED]
        resolver.resolve.assert_called_once()
        form = upload_form(torrentleech_http)
        assert form == {"announcekey": "tl-key", "category": "37"}


# ============================================================================
# Duplicates and the ledger
# ============================================================================

class TestDuplicates:

    def test_duplicate_seeds_existing_torrent(self, pipeline, media, seedpool_http, injector, builder, run_context):
        episode = make_file(media, "Show.Name.S01E02.1080p.WEB-GRP.mkv")
        seedpool_http.get.side_effect = [
            search_hit("Show Name S01E02 1080p WEB-GRP"),
            httpx.Response(200, content=b"d4:infod4:name3:oldee"),
        ]

        summary = pipeline.run(str(episode), ["seedpool"])

        outcome = summary.outcomes[0]
        expected = Path(run_context.paths.torrent_dir) / "seedpool" / "Show.Name.S01E02.1080p.WEB-GRP.mkv.torrent"
        assert outcome.status is UploadStatus.DUPLICATE
        assert summary.exit_code == EXIT_OK
        assert outcome.torrent_path == str(expected)
        assert expected.read_bytes() == b"d4:infod4:name3:oldee"
        assert seedpool_http.get.call_args_list[1][0][0] == DOWNLOAD_LINK
        seedpool_http.post.assert_not_called()
        assert builder.built == []
        injector.inject.assert_called_once_with(str(expected), str(episode.resolve()))

    def test_other_episode_is_not_a_duplicate(self, pipeline, media, seedpool_http):
        episode = make_file(media, "Show.Name.S01E02.1080p.WEB-GRP.mkv")
        seedpool_http.get.return_value = search_hit("Show.Name.S01E03.1080p.WEB-GRP")

        summary = pipeline.run(str(episode), ["seedpool"])

        assert summary.outcomes[0].status is UploadStatus.UPLOADED
        seedpool_http.post.assert_called_once()

    def test_rerun_uses_ledger(self, pipeline, media, seedpool_http, injector):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        first = pipeline.run(str(movie), ["seedpool"])
        seedpool_http.reset_mock()
        injector.reset_mock()

        second = pipeline.run(str(movie), ["seedpool"])

        outcome = second.outcomes[0]
        assert outcome.status is UploadStatus.DUPLICATE
        assert outcome.message == "already uploaded (ledger)"
        assert outcome.torrent_path == first.outcomes[0].torrent_path
        seedpool_http.get.assert_not_called()
        seedpool_http.post.assert_not_called()
        injector.inject.assert_called_once()

    def test_each_tracker_keeps_its_own_torrent(self, pipeline, media, injector):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        pipeline.run(str(movie), ["seedpool", "torrentleech"])
        injector.reset_mock()

        rerun = pipeline.run(str(movie), ["seedpool", "torrentleech"])

        sp, tl = rerun.outcomes
        assert sp.torrent_path != tl.torrent_path
        assert Path(sp.torrent_path).read_bytes() == b"seedpool"
        assert Path(tl.torrent_path).read_bytes() == b"torrentleech"
        assert [c[0][0] for c in injector.inject.call_args_list] == [sp.torrent_path, tl.torrent_path]

    def test_ledger_ignored_when_torrent_is_gone(self, pipeline, media, seedpool_http):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        first = pipeline.run(str(movie), ["seedpool"])
        Path(first.outcomes[0].torrent_path).unlink()

        second = pipeline.run(str(movie), ["seedpool"])

        assert second.outcomes[0].status is UploadStatus.UPLOADED
        assert seedpool_http.post.call_count == 2


# ============================================================================
# Failures
# ============================================================================

class TestFailures:

    def test_missing_input_fails_every_tracker(self, pipeline, tmp_path):
        summary = pipeline.run(str(tmp_path / "missing"), ["seedpool", "torrentleech"])

        assert summary.exit_code == EXIT_FAILURE
        assert [o.status for o in summary.outcomes] == [UploadStatus.FAILED, UploadStatus.FAILED]

    def test_one_tracker_failing_does_not_stop_the_next(self, pipeline, media, torrentleech_http, seedpool_http,
                                                        session_factory):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        torrentleech_http.post.return_value = httpx.Response(200, text="Duplicate torrent")

        summary = pipeline.run(str(movie), ["torrentleech", "seedpool"])

        tl, sp = summary.outcomes
        assert tl.status is UploadStatus.FAILED
        assert tl.message.startswith("upload:")
        assert sp.status is UploadStatus.UPLOADED
        assert summary.exit_code == EXIT_FAILURE
        with session_factory() as db:
            statuses = {r.tracker: r.status for r in UploadRecord.recent(db)}
        assert statuses == {"torrentleech": UploadStatus.FAILED, "seedpool": UploadStatus.UPLOADED}

    def test_search_error_fails_tracker_before_build(self, pipeline, media, seedpool_http, builder):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        seedpool_http.get.return_value = httpx.Response(500, text="oops")

        summary = pipeline.run(str(movie), ["seedpool"])

        assert summary.outcomes[0].status is UploadStatus.FAILED
        assert summary.outcomes[0].message.startswith("dedupe:")
        assert builder.built == []

    def test_rejected_upload(self, pipeline, media, seedpool_http, injector):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        seedpool_http.post.return_value = httpx.Response(422, json={"message": "Invalid tmdb id"})

        summary = pipeline.run(str(movie), ["seedpool"])

        assert summary.outcomes[0].status is UploadStatus.FAILED
        assert seedpool_http.post.call_count == 1
        injector.inject.assert_not_called()

    def test_injection_failure_keeps_upload(self, pipeline, media, injector):
        from seedtools.services.exceptions import ClientInjectionFailure

        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        injector.inject.return_value = InjectionReport(
            failures=[ClientInjectionFailure("refused", client="qbittorrent", instance="http://qb:8080")],
        )

        summary = pipeline.run(str(movie), ["seedpool"])

        outcome = summary.outcomes[0]
        assert outcome.status is UploadStatus.UPLOADED
        assert "1 client(s) failed" in outcome.message
        assert summary.exit_code == EXIT_OK

    def test_unmapped_torrentleech_category_fails_before_build(self, pipeline, media, torrentleech_http, builder):
        book = make_file(media, "Author.Name.Some.Book.2020.epub")

        summary = pipeline.run(str(book), ["torrentleech", "seedpool"])

        tl, sp = summary.outcomes
        assert tl.status is UploadStatus.FAILED
        assert tl.message.startswith("mapping:")
        torrentleech_http.post.assert_not_called()
        assert sp.status is UploadStatus.UPLOADED
        assert len(builder.built) == 1

    def test_unwritable_torrent_dir_fails_each_tracker_alone(self, pipeline, media, seedpool_http, run_context,
                                                            session_factory):
        Path(run_context.paths.torrent_dir).write_text("not a directory")
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        seedpool_http.get.side_effect = [
            search_hit("Movie.Title.2019.1080p.WEB-GRP"),
            httpx.Response(200, content=b"d4:infod4:name3:oldee"),
        ]

        summary = pipeline.run(str(movie), ["seedpool", "torrentleech"])

        sp, tl = summary.outcomes
        assert sp.status is UploadStatus.FAILED
        assert sp.message.startswith("dedupe:")
        assert tl.status is UploadStatus.FAILED
        assert tl.message.startswith("artifacts:")
        assert summary.exit_code == EXIT_FAILURE
        with session_factory() as db:
            assert {r.tracker for r in UploadRecord.recent(db)} == {"seedpool", "torrentleech"}

    def test_unexpected_error_is_contained(self, pipeline, media, injector, torrentleech_http):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        injector.inject.side_effect = [RuntimeError("client exploded"), InjectionReport()]

        summary = pipeline.run(str(movie), ["seedpool", "torrentleech"])

        sp, tl = summary.outcomes
        assert sp.status is UploadStatus.FAILED
        assert sp.message == "inject: RuntimeError: client exploded"
        assert tl.status is UploadStatus.UPLOADED
        torrentleech_http.post.assert_called_once()

    def test_unknown_tracker(self, run_context, session_factory, media, injector):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        pipeline = UploadPipeline(run_context, injector=injector, session_factory=session_factory)

        summary = pipeline.run(str(movie), ["nowhere"])

        assert summary.outcomes[0].status is UploadStatus.FAILED
        assert summary.outcomes[0].message.startswith("setup:")


# ============================================================================
# Custom mode
# ============================================================================

def test_custom_category(pipeline, media, seedpool_http, resolver, builder):
    release = media / "Some Random Stuff"
    release.mkdir()
    make_file(release, "file.bin")

    summary = pipeline.run(str(release), ["seedpool"], custom_category=(5, 7))

    assert summary.outcomes[0].status is UploadStatus.UPLOADED
    form = upload_form(seedpool_http)
    assert (form["category_id"], form["type_id"]) == ("5", "7")
    assert form["name"] == "Some Random Stuff"
    assert form["description"] == CUSTOM_UPLOAD_DESCRIPTION
    assert (form["tmdb"], form["imdb"], form["tvdb"], form["igdb"]) == ("0", "0", "0", "0")
    resolver.resolve.assert_not_called()
    assert builder.custom == [release.resolve()]
    assert builder.built == []


# ============================================================================
# Dupe-check mode
# ============================================================================

class TestDupeCheck:

    def test_no_duplicate(self, pipeline, media, seedpool_http, injector):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")

        assert pipeline.check_duplicates(str(movie), ["seedpool"]) == EXIT_OK
        seedpool_http.post.assert_not_called()
        injector.inject.assert_not_called()

    def test_duplicate(self, pipeline, media, seedpool_http, capsys):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        seedpool_http.get.return_value = search_hit("Movie.Title.2019.1080p.WEB-GRP")

        assert pipeline.check_duplicates(str(movie), ["seedpool", "torrentleech"]) == EXIT_DUPLICATE
        out = capsys.readouterr().out
        assert "seedpool: duplicate found" in out
        assert "torrentleech: no duplicate" in out

    def test_query_error(self, pipeline, media, seedpool_http):
        movie = make_file(media, "Movie.Title.2019.1080p.WEB-GRP.mkv")
        seedpool_http.get.return_value = httpx.Response(403, text="Forbidden")

        assert pipeline.check_duplicates(str(movie), ["seedpool"]) == EXIT_FAILURE


def test_close_releases_adapters(pipeline):
    pipeline.close()
    assert pipeline.factory.closed
