"""Tests for data models."""

import orjson

from baha_miner.models import BuildingRecord, FloorRecord, PageRecord, ReplyRecord


class TestReplyRecord:
    def test_defaults(self):
        reply = ReplyRecord(reply_index=0)
        assert reply.author_name == ""
        assert reply.author_id == ""
        assert reply.content == ""


class TestFloorRecord:
    def test_defaults(self):
        floor = FloorRecord(floor_index=3)
        assert floor.messages == []
        assert floor.fid is None

    def test_to_dict_uses_snake_case(self):
        floor = FloorRecord(
            floor_index=2, author_name="alice", author_id="a01", content="<b>x</b>",
            messages=[ReplyRecord(reply_index=0, author_name="bob", author_id="b01", content="hi")],
        )
        d = floor.to_dict()
        assert d["floor_index"] == 2
        assert d["author_name"] == "alice"
        assert d["messages"][0]["reply_index"] == 0
        assert d["messages"][0]["author_id"] == "b01"


class TestBuildingRecord:
    def test_floors_span_pages_in_order(self):
        building = BuildingRecord(bsn=1, sna=2, pages=[
            PageRecord(bsn=1, sna=2, page_index=1,
                       floor_records=[FloorRecord(floor_index=1), FloorRecord(floor_index=2)]),
            PageRecord(bsn=1, sna=2, page_index=2, floor_records=[FloorRecord(floor_index=5)]),
        ])
        assert [f.floor_index for f in building.floors] == [1, 2, 5]

    def test_to_json_nested(self):
        poster = FloorRecord(floor_index=1, content="first")
        building = BuildingRecord(
            bsn=60076, sna=123, building_title="T", last_page_index=1, poster_floor=poster,
            pages=[PageRecord(bsn=60076, sna=123, page_index=1, floor_records=[poster])],
        )
        data = orjson.loads(building.to_json())
        assert data["building_title"] == "T"
        assert data["poster_floor"]["floor_index"] == 1
        assert data["pages"][0]["floor_records"][0]["content"] == "first"


class TestParentReferences:
    def test_unset_until_persisted(self):
        assert ReplyRecord(reply_index=0).fid is None
        floor = FloorRecord(floor_index=1)
        assert (floor.bid, floor.pid) == (None, None)
        assert PageRecord(bsn=1, sna=2, page_index=1).bid is None

    def test_serialized_with_children(self):
        reply = ReplyRecord(reply_index=0, fid="f-1")
        floor = FloorRecord(floor_index=1, fid="f-1", bid="b-1", pid="p-1", messages=[reply])
        page = PageRecord(bsn=1, sna=2, page_index=1, pid="p-1", bid="b-1", floor_records=[floor])

        data = orjson.loads(page.to_json())
        assert data["bid"] == "b-1"
        assert data["floor_records"][0]["bid"] == "b-1"
        assert data["floor_records"][0]["pid"] == "p-1"
        assert data["floor_records"][0]["messages"][0]["fid"] == "f-1"
