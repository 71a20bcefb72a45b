"""
Unit tests for the seed-tools command line.

The pipeline, configuration loading and logging setup are patched; these tests
cover argument handling and exit codes only.
"""

from unittest.mock import Mock, patch

import pytest

from seedtools import main as cli
from seedtools.schemas.config import RunContext
from seedtools.services.exceptions import ConfigValidationError


@pytest.fixture
def patched_cli():
    pipeline = Mock()
    pipeline.check_duplicates.return_value = 2
    pipeline.run.return_value.exit_code = 0
    pipeline.run.return_value.lines.return_value = ["seedpool: uploaded"]

    with patch.object(cli, "setup_logging"), \
            patch.object(cli, "load_context", return_value=RunContext()) as load_context, \
            patch.object(cli, "UploadPipeline", return_value=pipeline) as pipeline_cls:
        yield pipeline, pipeline_cls, load_context


class TestArguments:

    def test_custom_category_split(self):
        custom, remaining = cli.split_custom_category(["/data/x", "-SP", "-0224"])
        assert custom == (2, 24)
        assert remaining == ["/data/x", "-SP"]

    def test_only_first_custom_category(self):
        custom, remaining = cli.split_custom_category(["-0101", "-0202"])
        assert custom == (1, 1)
        assert remaining == ["-0202"]

    def test_not_a_custom_category(self):
        assert cli.split_custom_category(["-022", "-SP"]) == (None, ["-022", "-SP"])

    def test_tracker_flags(self):
        args = cli.build_parser().parse_args(["/data/x", "-TL", "-SP"])
        assert cli.selected_trackers(args) == ["seedpool", "torrentleech"]

    def test_mode_flags(self):
        args = cli.build_parser().parse_args(["-sync", "--history", "--dupe-check"])
        assert args.sync and args.history and args.dupe_check
        assert args.input is None


class TestMain:

    def test_upload_run(self, patched_cli, capsys):
        pipeline, _, _ = patched_cli

        assert cli.main(["/data/Movie.2019", "-SP", "-0224"]) == 0

        pipeline.run.assert_called_once_with("/data/Movie.2019", ["seedpool"], (2, 24))
        pipeline.close.assert_called_once()
        assert "seedpool: uploaded" in capsys.readouterr().out

    def test_failed_tracker_exit_code(self, patched_cli):
        pipeline, _, _ = patched_cli
        pipeline.run.return_value.exit_code = 1

        assert cli.main(["/data/Movie.2019", "-SP", "-TL"]) == 1

    def test_dupe_check(self, patched_cli):
        pipeline, _, _ = patched_cli

        assert cli.main(["/data/Movie.2019", "-TL", "--dupe-check"]) == 2

        pipeline.check_duplicates.assert_called_once_with("/data/Movie.2019", ["torrentleech"])
        pipeline.run.assert_not_called()

    def test_tracker_required(self, patched_cli):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["/data/Movie.2019"])
        assert exc_info.value.code == 2

    def test_input_required(self, patched_cli):
        with pytest.raises(SystemExit):
            cli.main(["-SP"])

    def test_config_error(self, patched_cli):
        _, pipeline_cls, load_context = patched_cli
        load_context.side_effect = ConfigValidationError("Invalid tracker configuration", errors=["seedpool: upload_url"])

        assert cli.main(["/data/Movie.2019", "-SP"]) == 1
        pipeline_cls.assert_not_called()

    def test_sync(self, patched_cli):
        with patch.object(cli, "run_sync", return_value=0) as run_sync:
            assert cli.main(["-sync"]) == 0
        run_sync.assert_called_once()

    def test_history(self, patched_cli):
        _, _, load_context = patched_cli
        with patch.object(cli, "show_history", return_value=0) as show_history:
            assert cli.main(["--history"]) == 0
        show_history.assert_called_once()
        load_context.assert_not_called()


def test_sync_requires_search_url(seedpool_settings):
    tracker = seedpool_settings.model_copy(update={"search_url": None})
    with pytest.raises(ConfigValidationError, match="search_url"):
        cli.run_sync(RunContext(trackers={"seedpool": tracker}))


def test_sync_without_seedpool():
    with pytest.raises(ConfigValidationError, match="not configured"):
        cli.run_sync(RunContext())
