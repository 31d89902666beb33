import json
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from klinefetch import cli
from klinefetch.config import Settings
from klinefetch.downloader import DownloadRequest, DownloadResult
from klinefetch.exchanges import Exchange
from klinefetch.granularity import Granularity


@pytest.fixture(autouse=True)
def isolated_settings(mocker: MockerFixture) -> None:
    """Keeps the CLI away from the user's configuration and global log sinks."""
    mocker.patch.object(Settings, "get_instance", side_effect=Settings)
    mocker.patch("klinefetch.cli.setup_logging")


def test_reversed_dates_exit_with_input_error(mocker: MockerFixture) -> None:
    """Tests that an invalid range is rejected before any download starts."""
    client = mocker.patch("klinefetch.downloader.httpx.AsyncClient")

    exit_code = cli.main(
        [
            "-s", "BTCUSDT",
            "-i", "1h",
            "-f", "2019-03-01T00:00:00Z",
            "-t", "2019-01-01T00:00:00Z",
        ]
    )  # fmt: skip

    assert exit_code == cli.EXIT_INPUT_ERROR
    client.assert_not_called()


def test_unparsable_date_exits_with_input_error() -> None:
    """Tests that a malformed date is an input error, not a crash."""
    assert cli.main(["-s", "BTCUSDT", "-i", "1h", "-f", "soon"]) == cli.EXIT_INPUT_ERROR


@pytest.mark.parametrize(
    "content",
    [
        "[fetch]\nconcurrency_limit = -5\n",
        '[fetch]\nconcurrency_limit = "ten"\n',
        "fetch = 3\n",
    ],
)
def test_invalid_config_exits_with_input_error(tmp_path: Path, content: str) -> None:
    """Tests that out-of-range or mistyped settings abort the run."""
    config = tmp_path / "config.toml"
    config.write_text(content, encoding="utf-8")

    exit_code = cli.main(["-s", "BTCUSDT", "-i", "1h", "--config", str(config)])

    assert exit_code == cli.EXIT_INPUT_ERROR


def test_arguments_are_forwarded_to_download(
    mocker: MockerFixture, tmp_path: Path
) -> None:
    """Tests argument parsing, overrides and the success exit code."""
    download = mocker.patch(
        "klinefetch.cli.download",
        new=mocker.AsyncMock(return_value=DownloadResult(records=[])),
    )
    output = tmp_path / "out.json"

    exit_code = cli.main(
        [
            "-m", "gate",
            "-s", "BTC_USDT",
            "-i", "1d",
            "-f", "2020-01-01",
            "-o", str(output),
            "-r", "5",
            "-c", "7",
            "--retry-pause", "0.25",
        ]
    )  # fmt: skip

    assert exit_code == cli.EXIT_OK
    request: DownloadRequest = download.await_args.args[0]
    assert request.exchange is Exchange.GATE
    assert request.granularity is Granularity.D1
    assert request.end is None
    assert request.output_path == output
    settings = download.await_args.kwargs["settings"]
    assert (settings.retry_limit, settings.concurrency_limit) == (5, 7)
    assert settings.retry_pause_s == 0.25


def test_without_output_file_records_are_printed(
    mocker: MockerFixture, capsys: pytest.CaptureFixture[str]
) -> None:
    """Tests that klines go to stdout as JSON when no file is given."""
    mocker.patch(
        "klinefetch.cli.download",
        new=mocker.AsyncMock(return_value=DownloadResult(records=[])),
    )

    assert cli.main(["-s", "BTCUSDT", "-i", "1m"]) == cli.EXIT_OK
    assert json.loads(capsys.readouterr().out) == []
