"""Tests for the click command line."""

import orjson
import pytest
from click.testing import CliRunner

from baha_miner.cli import main
from baha_miner.models import BuildingRecord, FloorRecord, PageRecord
from baha_miner.store import BuildingStore


def test_show_prints_stored_building(tmp_path):
    db_path = tmp_path / "building.db"
    floor = FloorRecord(floor_index=1, author_name="Alice", author_id="alice01", content="op")
    BuildingStore(db_path).sync_building_tree(BuildingRecord(
        bsn=60076, sna=42, building_title="Stored", last_page_index=1, poster_floor=floor,
        pages=[PageRecord(bsn=60076, sna=42, page_index=1, floor_records=[floor])],
    ))

    result = CliRunner().invoke(main, ["--log-level", "ERROR", "show", "60076", "42", "--db", str(db_path)])
    assert result.exit_code == 0, result.output

    data = orjson.loads(result.output)
    assert data["building_title"] == "Stored"
    assert data["poster_floor"]["author_id"] == "alice01"


def test_show_unknown_building(tmp_path):
    result = CliRunner().invoke(main, ["show", "1", "2", "--db", str(tmp_path / "empty.db")])
    assert result.exit_code == 1
    assert "not in" in result.output


def test_monitor_rejects_invalid_rule():
    result = CliRunner().invoke(main, [
        "monitor", "--account", "me", "--password", "pw", "--sna", "0", "--author", "op",
    ])
    assert result.exit_code == 1
    assert "bsn and sna must be positive" in result.output


def test_scrape_requires_credentials():
    result = CliRunner(env={"BAHA_ACCOUNT": None, "BAHA_PASSWORD": None}).invoke(
        main, ["scrape", "https://forum.gamer.com.tw/C.php?bsn=60076&snA=1"]
    )
    assert result.exit_code == 2


@pytest.mark.parametrize("option", [
    ["--interval=-1"],
    ["--max-failure=0"],
])
def test_monitor_rejects_out_of_range_limits(option):
    result = CliRunner().invoke(main, [
        "monitor", "--account", "me", "--password", "pw", "--sna", "1", "--author", "op", *option,
    ])
    assert result.exit_code == 2
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "Invalid value" in result.output
