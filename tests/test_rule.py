"""Tests for TrackingRule."""

import pytest

from baha_miner.errors import InvalidTarget
from baha_miner.rule import (
    DEFAULT_ASYLUM_BSN,
    DEFAULT_INTERVAL,
    DEFAULT_MAX_FAILURE,
    TrackingRule,
    log_new_post,
    log_update_last,
)


class TestTrackingRule:
    def test_defaults(self):
        rule = TrackingRule(sna=3146926, author_id="leichitw")
        assert rule.bsn == DEFAULT_ASYLUM_BSN == 60076
        assert rule.interval == DEFAULT_INTERVAL
        assert rule.max_failure == DEFAULT_MAX_FAILURE
        assert rule.sync_local_db is False
        assert rule.on_new_post is log_new_post
        assert rule.on_update is log_update_last

    def test_urls(self):
        rule = TrackingRule(sna=3146926, author_id="leichitw")
        assert rule.url == "https://forum.gamer.com.tw/C.php?bsn=60076&snA=3146926&s_author=leichitw"
        assert rule.last_page_url == rule.url + "&last=1#down"
        assert rule.name == "60076/3146926@leichitw"

    def test_custom_callbacks_kept(self):
        def callback(floor):
            return None

        rule = TrackingRule(sna=1, author_id="a", on_new_post=callback, on_update=callback)
        assert rule.on_new_post is callback
        assert rule.on_update is callback

    @pytest.mark.parametrize("kwargs", [
        {"sna": 0, "author_id": "a"},
        {"sna": 1, "author_id": "a", "bsn": -1},
        {"sna": 1, "author_id": ""},
    ])
    def test_invalid_target(self, kwargs):
        with pytest.raises(InvalidTarget):
            TrackingRule(**kwargs)

    def test_invalid_limits(self):
        with pytest.raises(ValueError):
            TrackingRule(sna=1, author_id="a", interval=-1)
        with pytest.raises(ValueError):
            TrackingRule(sna=1, author_id="a", max_failure=0)
