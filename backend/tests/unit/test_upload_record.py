"""
Unit tests for the upload history ledger model.
"""

from seedtools.models.upload_record import UploadRecord, UploadStatus


def test_record_and_find_uploaded(session_factory):
    with session_factory() as db:
        UploadRecord.record(db, "/data/Movie", "seedpool", "Movie", UploadStatus.FAILED, message="upload: 500")
        UploadRecord.record(db, "/data/Movie", "seedpool", "Movie", UploadStatus.UPLOADED, "/t/Movie.torrent")
        UploadRecord.record(db, "/data/Movie", "torrentleech", "Movie", UploadStatus.DUPLICATE)

    with session_factory() as db:
        found = UploadRecord.find_uploaded(db, "/data/Movie", "seedpool")
        assert found.torrent_path == "/t/Movie.torrent"
        assert UploadRecord.find_uploaded(db, "/data/Movie", "torrentleech") is None
        assert UploadRecord.find_uploaded(db, "/data/Other", "seedpool") is None


def test_latest_upload_wins(session_factory):
    with session_factory() as db:
        UploadRecord.record(db, "/data/Movie", "seedpool", "Movie", UploadStatus.UPLOADED, "/t/old.torrent")
        UploadRecord.record(db, "/data/Movie", "seedpool", "Movie", UploadStatus.UPLOADED, "/t/new.torrent")

        assert UploadRecord.find_uploaded(db, "/data/Movie", "seedpool").torrent_path == "/t/new.torrent"


def test_recent_newest_first(session_factory):
    with session_factory() as db:
        for i in range(5):
            UploadRecord.record(db, f"/data/{i}", "seedpool", f"R{i}", UploadStatus.UPLOADED)

        recent = UploadRecord.recent(db, limit=3)

    assert [r.release_name for r in recent] == ["R4", "R3", "R2"]


def test_to_dict(session_factory):
    with session_factory() as db:
        entry = UploadRecord.record(db, "/data/Movie", "seedpool", "Movie", UploadStatus.DUPLICATE, message="dupe")
        data = entry.to_dict()

    assert data["status"] == "duplicate"
    assert data["tracker"] == "seedpool"
    assert data["message"] == "dupe"
    assert data["created_at"]
