"""Tests for the tourgate console entry points."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tourgate import cli
from tourgate.core.errors import UpstreamResultError
from tourgate.core.types import ListingItem, ListingResult, RegionDescriptor


def _gateway() -> MagicMock:
    gateway = MagicMock()
    gateway.aclose = AsyncMock()
    gateway.list_regions = AsyncMock(return_value=[RegionDescriptor("1", "서울", 1)])
    gateway.search_by_keyword = AsyncMock(return_value=ListingResult(
        [ListingItem("126508", "12", title="경복궁", address="서울 종로구")], 1,
    ))
    gateway.list_by_area = AsyncMock(return_value=ListingResult([], 0))
    return gateway


def _run_cli(monkeypatch, *argv, gateway=None):
    gateway = gateway or _gateway()
    monkeypatch.setattr("sys.argv", ["tourgate", *argv])
    with patch("tourgate.cli.TourApiGateway.from_settings", return_value=gateway):
        cli.main()
    return gateway


class TestMain:
    def test_no_args_prints_usage(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["tourgate"])
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
        assert exc_info.value.code == 1
        assert "Usage: tourgate" in capsys.readouterr().out

    def test_regions(self, monkeypatch, capsys):
        _run_cli(monkeypatch, "regions")
        assert "서울" in capsys.readouterr().out

    def test_search_joins_words(self, monkeypatch, capsys):
        gateway = _run_cli(monkeypatch, "search", "경복궁", "야간")
        gateway.search_by_keyword.assert_awaited_once()
        assert gateway.search_by_keyword.await_args.args[0] == "경복궁 야간"
        assert "[126508] 경복궁 (관광지)" in capsys.readouterr().out
        gateway.aclose.assert_awaited_once()

    def test_quality(self, monkeypatch, capsys):
        _run_cli(monkeypatch, "quality", "39")
        assert "Data quality score: 100/100" in capsys.readouterr().out

    def test_upstream_error_exits_1(self, monkeypatch, capsys):
        gateway = _gateway()
        gateway.list_regions.side_effect = UpstreamResultError("22", "LIMITED")
        with pytest.raises(SystemExit) as exc_info:
            _run_cli(monkeypatch, "regions", gateway=gateway)
        assert exc_info.value.code == 1
        assert "quota_exceeded" in capsys.readouterr().out
        gateway.aclose.assert_awaited_once()

    def test_unknown_command(self, monkeypatch):
        monkeypatch.setattr("sys.argv", ["tourgate", "dance"])
        with pytest.raises(SystemExit):
            cli.main()
