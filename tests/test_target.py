"""Tests for thread targets."""

import pytest

from baha_miner.errors import InvalidTarget
from baha_miner.target import TargetInfo


class TestValidate:
    def test_valid(self):
        TargetInfo(bsn=60076, sna=8292214).validate()

    @pytest.mark.parametrize("bsn,sna", [(0, 1), (1, 0), (-5, 3), (0, 0)])
    def test_non_positive_ids_rejected(self, bsn, sna):
        with pytest.raises(InvalidTarget):
            TargetInfo(bsn=bsn, sna=sna).validate()


class TestUrls:
    def test_building_url(self):
        target = TargetInfo(bsn=60076, sna=8292214)
        assert target.building_url() == "https://forum.gamer.com.tw/C.php?bsn=60076&snA=8292214"

    def test_page_url(self):
        target = TargetInfo(bsn=60076, sna=8292214)
        assert target.page_url(3).endswith("bsn=60076&snA=8292214&page=3")


class TestFromUrl:
    def test_parses_query(self):
        target = TargetInfo.from_url("https://forum.gamer.com.tw/C.php?bsn=60076&snA=8292214&page=2")
        assert (target.bsn, target.sna, target.page) == (60076, 8292214, 2)

    def test_missing_parameters_stay_zero(self):
        target = TargetInfo.from_url("https://forum.gamer.com.tw/C.php?bsn=60076")
        assert target.sna == 0
        with pytest.raises(InvalidTarget):
            target.validate()

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidTarget):
            TargetInfo.from_url("https://forum.gamer.com.tw/C.php?bsn=abc&snA=1")
