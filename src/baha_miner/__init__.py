"""
Baha Miner - Thread extraction and tracking for the Bahamut forum

This package scrapes forum.gamer.com.tw threads ("buildings") into a tree of
pages, floors and replies, keeps them in SQLite with idempotent upserts, and
can poll a thread for new or edited floors.

Main components:
- Transport: Authenticated async HTTP client
- Crawler: Page extraction and pagination driver
- BuildingStore: Create-or-update persistence
- TrackingRule / Monitor: Continuous polling with callbacks

Usage:
    from baha_miner import Crawler, TargetInfo, Transport
    import asyncio

    async def main():
        async with Transport() as transport:
            await transport.login(account, password)
            building = await Crawler(transport).scrape_building(
                TargetInfo(bsn=60076, sna=8292214)
            )

    asyncio.run(main())
"""

from .crawler import Crawler
from .errors import (
    BahaMinerError,
    InvalidTarget,
    LoginError,
    NotFound,
    ParseError,
    SessionInactive,
    TransientFetchError,
)
from .models import BuildingRecord, FloorRecord, PageRecord, ReplyRecord
from .monitor import Monitor, Phase
from .rule import TrackingRule
from .store import BuildingStore, SyncOutcome, SyncReport
from .target import TargetInfo
from .transport import Transport

__all__ = [
    'Crawler',
    'Transport',
    'TargetInfo',
    'BuildingStore',
    'SyncOutcome',
    'SyncReport',
    'TrackingRule',
    'Monitor',
    'Phase',
    'BuildingRecord',
    'PageRecord',
    'FloorRecord',
    'ReplyRecord',
    'BahaMinerError',
    'InvalidTarget',
    'SessionInactive',
    'LoginError',
    'NotFound',
    'ParseError',
    'TransientFetchError',
]

__version__ = '1.0.0'
