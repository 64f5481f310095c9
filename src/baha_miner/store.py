"""
Persistence for extracted threads using SQLAlchemy.

Four tables mirror the record tree:

    building(id, bsn, sna, title, last_page_index)
    page(building_id, page_id, page_index)
    floor(building_id, page_id, floor_id, floor_index, author_name, author_id, content)
    reply(floor_id, reply_index, author_name, author_id, content)

All writes go through one create-or-update routine. Each entity kind is
described by an ``EntityPolicy``: which columns form its natural key, which
columns may change over time, and how a new surrogate id is generated.
The routine looks the row up by natural key, inserts it with a fresh id when
absent, and otherwise writes only the mutable columns that differ. Calling
it twice with the same input never writes on the second call.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint, create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from .models import BuildingRecord, FloorRecord, PageRecord, ReplyRecord

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/building.db")


class Base(DeclarativeBase):
    """Declarative base for the building tables."""
    pass


class BuildingRow(Base):
    __tablename__ = "building"
    __table_args__ = (UniqueConstraint("bsn", "sna"),)

    id = Column(String, primary_key=True)
    bsn = Column(Integer, nullable=False)
    sna = Column(Integer, nullable=False)
    title = Column(String, nullable=False)
    last_page_index = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"BuildingRow(id={self.id!r}, bsn={self.bsn}, sna={self.sna}, title={self.title!r})"


class PageRow(Base):
    __tablename__ = "page"
    __table_args__ = (UniqueConstraint("building_id", "page_index"),)

    page_id = Column(String, primary_key=True)
    building_id = Column(String, ForeignKey("building.id"), nullable=False)
    page_index = Column(Integer, nullable=False)


class FloorRow(Base):
    __tablename__ = "floor"
    __table_args__ = (UniqueConstraint("building_id", "floor_index"),)

    floor_id = Column(String, primary_key=True)
    building_id = Column(String, ForeignKey("building.id"), nullable=False)
    page_id = Column(String, ForeignKey("page.page_id"), nullable=False)
    floor_index = Column(Integer, nullable=False)
    author_name = Column(String, nullable=False, default="")
    author_id = Column(String, nullable=False, default="")
    content = Column(Text, nullable=False, default="")


class ReplyRow(Base):
    __tablename__ = "reply"

    floor_id = Column(String, ForeignKey("floor.floor_id"), primary_key=True)
    reply_index = Column(Integer, primary_key=True)
    author_name = Column(String, nullable=False, default="")
    author_id = Column(String, nullable=False, default="")
    content = Column(Text, nullable=False, default="")


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class EntityPolicy:
    """
    How one entity kind is upserted.

    Attributes:
        name: Label used in logs and reports
        model: Mapped row class
        key_columns: Natural key used for the lookup
        mutable_columns: Columns compared and rewritten on change
        id_column: Surrogate id column, None when the natural key is the id
        id_factory: Generates a surrogate id for new rows
    """
    name: str
    model: type
    key_columns: Tuple[str, ...]
    mutable_columns: Tuple[str, ...]
    id_column: Optional[str] = None
    id_factory: Callable[[], str] = new_id

    def identity(self, values: Dict[str, Any]) -> Any:
        if self.id_column:
            return values[self.id_column]
        return tuple(values[c] for c in self.key_columns)


BUILDING_POLICY = EntityPolicy(
    name="building",
    model=BuildingRow,
    key_columns=("bsn", "sna"),
    mutable_columns=("title", "last_page_index"),
    id_column="id",
)

PAGE_POLICY = EntityPolicy(
    name="page",
    model=PageRow,
    key_columns=("building_id", "page_index"),
    mutable_columns=(),
    id_column="page_id",
)

FLOOR_POLICY = EntityPolicy(
    name="floor",
    model=FloorRow,
    key_columns=("building_id", "floor_index"),
    mutable_columns=("content",),
    id_column="floor_id",
)

REPLY_POLICY = EntityPolicy(
    name="reply",
    model=ReplyRow,
    key_columns=("floor_id", "reply_index"),
    mutable_columns=("content",),
)


@dataclass(frozen=True)
class SyncOutcome:
    """
    Result of one upsert.

    Attributes:
        identifier: Surrogate id, or the natural key tuple for replies
        created: True when a new row was inserted
        changed: Mutable columns rewritten on an existing row
    """
    identifier: Any
    created: bool = False
    changed: Tuple[str, ...] = ()

    @property
    def written(self) -> bool:
        return self.created or bool(self.changed)


@dataclass
class SyncReport:
    """Counters for a whole-building sync."""
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def record(self, outcome: SyncOutcome) -> None:
        if outcome.created:
            self.created += 1
        elif outcome.changed:
            self.updated += 1
        else:
            self.unchanged += 1

    def record_failure(self, what: str, error: Exception) -> None:
        self.failed += 1
        self.errors.append(f"{what}: {error}")


class BuildingStore:
    """
    SQLite-backed store for buildings, pages, floors and replies.

    The store is the only writer of durable state. Every upsert runs its
    lookup and write inside one transaction while holding the store lock, so
    two callers can never insert the same natural key twice.

    Usage:
        store = BuildingStore("data/building.db")
        outcome = store.sync_building(building)
        report = store.sync_building_tree(building)
    """

    def __init__(self, db_path: Union[str, Path] = DEFAULT_DB_PATH, echo: bool = False):
        """
        Open (and if needed create) the database.

        Args:
            db_path: SQLite file path, or ":memory:"
            echo: Log emitted SQL
        """
        if str(db_path) == ":memory:":
            url = "sqlite://"
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{self.db_path}"

        self.engine = create_engine(url, echo=echo)
        Base.metadata.create_all(self.engine)

        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)
        self._lock = threading.Lock()
        self.write_count = 0

        logger.info("Building store ready: %s", url)

    # -------------------------------------------------------
    # Generic create-or-update
    # -------------------------------------------------------

    def upsert(self, policy: EntityPolicy, values: Dict[str, Any]) -> SyncOutcome:
        """
        Create or update one row described by ``values``.

        Raises:
            SQLAlchemyError: on any database failure (after rollback)
        """
        key = {column: values[column] for column in policy.key_columns}

        with self._lock:
            # A unique-key conflict means another writer inserted the row
            # between lookup and commit; the second pass takes the update path.
            for attempt in range(2):
                try:
                    return self._upsert_once(policy, key, values)
                except IntegrityError:
                    if attempt:
                        raise
                    logger.warning("Concurrent insert of %s %s, retrying as update", policy.name, key)

    def _upsert_once(self, policy: EntityPolicy, key: Dict[str, Any], values: Dict[str, Any]) -> SyncOutcome:
        with self.SessionLocal() as session:
            try:
                row = session.query(policy.model).filter_by(**key).first()

                if row is None:
                    insert = dict(values)
                    if policy.id_column:
                        insert[policy.id_column] = policy.id_factory()
                    session.add(policy.model(**insert))
                    session.commit()
                    self.write_count += 1
                    logger.debug("Created %s %s", policy.name, key)
                    return SyncOutcome(identifier=policy.identity(insert), created=True)

                current = {column: getattr(row, column)
                           for column in policy.key_columns + ((policy.id_column,) if policy.id_column else ())}
                changed = tuple(
                    column for column in policy.mutable_columns
                    if getattr(row, column) != values[column]
                )
                if changed:
                    for column in changed:
                        setattr(row, column, values[column])
                    session.commit()
                    self.write_count += 1
                    logger.debug("Updated %s %s: %s", policy.name, key, ", ".join(changed))
                return SyncOutcome(identifier=policy.identity(current), changed=changed)
            except Exception:
                session.rollback()
                raise

    # -------------------------------------------------------
    # Per-entity sync
    # -------------------------------------------------------

    def sync_building(self, building: BuildingRecord) -> SyncOutcome:
        return self.upsert(BUILDING_POLICY, {
            "bsn": building.bsn,
            "sna": building.sna,
            "title": building.building_title,
            "last_page_index": building.last_page_index,
        })

    def sync_page(self, building_id: str, page: PageRecord) -> SyncOutcome:
        return self.upsert(PAGE_POLICY, {
            "building_id": building_id,
            "page_index": page.page_index,
        })

    def sync_floor(self, building_id: str, page_id: str, floor: FloorRecord) -> SyncOutcome:
        """Upsert a floor. The page a floor was first seen on is never rewritten."""
        return self.upsert(FLOOR_POLICY, {
            "building_id": building_id,
            "page_id": page_id,
            "floor_index": floor.floor_index,
            "author_name": floor.author_name,
            "author_id": floor.author_id,
            "content": floor.content,
        })

    def sync_reply(self, floor_id: str, reply: ReplyRecord) -> SyncOutcome:
        return self.upsert(REPLY_POLICY, {
            "floor_id": floor_id,
            "reply_index": reply.reply_index,
            "author_name": reply.author_name,
            "author_id": reply.author_id,
            "content": reply.content,
        })

    def sync_building_tree(self, building: BuildingRecord) -> SyncReport:
        """
        Persist a whole building, parents before children.

        A failure on the building itself propagates. Below that, a failed
        page skips its floors and a failed floor skips its replies, but every
        other entity is still attempted. Assigned ids, and the parent ids
        (``bid``, ``pid``, ``fid``) of pages, floors and replies, are written
        back onto the records.
        """
        report = SyncReport()

        outcome = self.sync_building(building)
        report.record(outcome)
        building.id = outcome.identifier

        for page in building.pages:
            try:
                outcome = self.sync_page(building.id, page)
            except Exception as e:
                logger.error("Sync of page %d failed: %s", page.page_index, e)
                report.record_failure(f"page {page.page_index}", e)
                continue
            report.record(outcome)
            page.pid = outcome.identifier
            page.bid = building.id

            for floor in page.floor_records:
                try:
                    outcome = self.sync_floor(building.id, page.pid, floor)
                except Exception as e:
                    logger.error("Sync of floor %d failed: %s", floor.floor_index, e)
                    report.record_failure(f"floor {floor.floor_index}", e)
                    continue
                report.record(outcome)
                floor.fid = outcome.identifier
                floor.bid = building.id
                floor.pid = page.pid

                for reply in floor.messages:
                    reply.fid = floor.fid
                    try:
                        report.record(self.sync_reply(floor.fid, reply))
                    except Exception as e:
                        logger.error("Sync of reply %d/%d failed: %s",
                                     floor.floor_index, reply.reply_index, e)
                        report.record_failure(f"reply {floor.floor_index}/{reply.reply_index}", e)

        logger.info("Synced building %d/%d: %d created, %d updated, %d unchanged, %d failed",
                    building.bsn, building.sna, report.created, report.updated,
                    report.unchanged, report.failed)
        return report

    # -------------------------------------------------------
    # Reads
    # -------------------------------------------------------

    def get_building(self, bsn: int, sna: int) -> Optional[BuildingRow]:
        with self.SessionLocal(expire_on_commit=False) as session:
            return session.query(BuildingRow).filter_by(bsn=bsn, sna=sna).first()

    def building_id(self, bsn: int, sna: int) -> Optional[str]:
        row = self.get_building(bsn, sna)
        return row.id if row else None

    def count(self, model: type) -> int:
        with self.SessionLocal() as session:
            return session.query(model).count()

    def load_building(self, bsn: int, sna: int) -> Optional[BuildingRecord]:
        """Reassemble a stored building into records, or None if unknown."""
        with self.SessionLocal() as session:
            row = session.query(BuildingRow).filter_by(bsn=bsn, sna=sna).first()
            if row is None:
                return None

            building = BuildingRecord(
                bsn=row.bsn,
                sna=row.sna,
                building_title=row.title,
                last_page_index=row.last_page_index,
                id=row.id,
            )
            page_rows = (session.query(PageRow)
                         .filter_by(building_id=row.id)
                         .order_by(PageRow.page_index)
                         .all())
            for page_row in page_rows:
                page = PageRecord(bsn=row.bsn, sna=row.sna, page_index=page_row.page_index,
                                  pid=page_row.page_id, bid=row.id)
                floor_rows = (session.query(FloorRow)
                              .filter_by(page_id=page_row.page_id)
                              .order_by(FloorRow.floor_index)
                              .all())
                for floor_row in floor_rows:
                    reply_rows = (session.query(ReplyRow)
                                  .filter_by(floor_id=floor_row.floor_id)
                                  .order_by(ReplyRow.reply_index)
                                  .all())
                    page.floor_records.append(FloorRecord(
                        floor_index=floor_row.floor_index,
                        author_name=floor_row.author_name,
                        author_id=floor_row.author_id,
                        content=floor_row.content,
                        fid=floor_row.floor_id,
                        bid=row.id,
                        pid=page_row.page_id,
                        messages=[
                            ReplyRecord(
                                reply_index=r.reply_index,
                                author_name=r.author_name,
                                author_id=r.author_id,
                                content=r.content,
                                fid=r.floor_id,
                            )
                            for r in reply_rows
                        ],
                    ))
                building.pages.append(page)

        if building.pages and building.pages[0].floor_records:
            building.poster_floor = building.pages[0].floor_records[0]
        return building
