"""Persistence storage over a synchronous SQLAlchemy engine.

Every operation runs in its own short-lived session with SQLAlchemy's
default transaction semantics: writes commit when the operation returns and
roll back when it raises.  Instances handed back to callers are detached
with their column values loaded (``expire_on_commit=False``), so a form can
edit a single value and store the instance again.  Lazily loaded
relationships have to be fetched with :meth:`PersistenceStorage.initialize`
before they can be read on a detached instance.

The storage validates its configuration, including the scheme checksum
guard, before any engine is created.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy import Engine, create_engine, event, select, text
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapper, Session, object_session, sessionmaker
from sqlalchemy.orm.exc import UnmappedInstanceError
from sqlalchemy.pool import StaticPool

from formbuilder.config import StorageBackend
from formbuilder.errors import InvalidQueryError, StorageError
from formbuilder.fields.kinds import FieldKind, resolve_field_kinds
from formbuilder.query.translator import EntityQueryTranslator
from formbuilder.storage.conf import PersistenceStorageConf

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MEMORY_DATABASE = ":memory:"
_RELATION_KINDS = frozenset({FieldKind.TO_ONE, FieldKind.TO_MANY})


def _create_engine(conf: PersistenceStorageConf) -> Engine:
    url = conf.connection_url()

    if conf.backend != StorageBackend.SQLITE:
        engine = create_engine(url, echo=False, pool_pre_ping=True, pool_recycle=3600)
        logger.info("Created %s engine for database %s", conf.backend.value, conf.database_name)
        return engine

    if conf.database_name == _MEMORY_DATABASE:
        # One shared connection, otherwise every session sees an empty database.
        engine = create_engine(
            url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        Path(conf.database_name).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, echo=False)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn: object, _: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Created SQLite engine: %s", url)
    return engine


class PersistenceStorage:
    """CRUD and query access to the record types of one database.

    Parameters
    ----------
    conf:
        Storage configuration.  Validated (scheme checksum guard included)
        before the engine is created.

    Raises
    ------
    ConfigError, SchemaDriftError, StorageError
        Propagated from configuration validation.
    """

    def __init__(self, conf: PersistenceStorageConf) -> None:
        self._conf = conf
        conf.validate_conf()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._translator: EntityQueryTranslator | None = None
        self.recreate_engine()

    @property
    def storage_conf(self) -> PersistenceStorageConf:
        return self._conf

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise StorageError("Storage has been shut down")
        return self._engine

    def _sessions(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            raise StorageError("Storage has been shut down")
        return self._session_factory

    def recreate_engine(self) -> None:
        """Dispose of the current engine (if any) and connect anew."""
        if self._engine is not None:
            self._engine.dispose()
        self._engine = _create_engine(self._conf)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._translator = EntityQueryTranslator(self._conf.record_types, dialect=self._engine.dialect.name)

    def create_tables(self) -> None:
        """Create the tables of all configured record types that don't exist yet."""
        metadatas = []
        for record_type in self._conf.record_types:
            metadata = sa_inspect(record_type).local_table.metadata
            if metadata not in metadatas:
                metadatas.append(metadata)
        try:
            for metadata in metadatas:
                metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to create tables: {exc}", cause=exc) from exc

    # -- writes --------------------------------------------------------------

    def store(self, obj: Any) -> None:
        """Insert *obj*; it is detached afterwards."""
        try:
            with self._sessions().begin() as session:
                session.add(obj)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to store {obj!r}: {exc}", cause=exc) from exc

    def update(self, obj: Any) -> None:
        """Write the state of *obj* (usually detached) back to the database."""
        try:
            with self._sessions().begin() as session:
                session.merge(obj)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to update {obj!r}: {exc}", cause=exc) from exc

    def delete(self, obj: Any) -> None:
        """Delete the row of *obj*, which may be detached."""
        try:
            with self._sessions().begin() as session:
                # Only instances attached to this session can be deleted.
                session.delete(session.merge(obj))
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to delete {obj!r}: {exc}", cause=exc) from exc

    # -- reads ---------------------------------------------------------------

    def retrieve(self, identity: Any, record_type: type[T]) -> T | None:
        """Return the instance of *record_type* with primary key *identity*."""
        try:
            with self._sessions()() as session:
                return session.get(record_type, identity)
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to retrieve {record_type.__name__} {identity!r}: {exc}", cause=exc
            ) from exc

    def is_class_supported(self, record_type: type) -> bool:
        """Return whether *record_type* is a mapped record type."""
        mapper = sa_inspect(record_type, raiseerr=False)
        return isinstance(mapper, Mapper)

    def run_query(self, query_text: str, record_type: type[T], query_limit: int) -> list[T]:
        """Run an entity query and return at most *query_limit* instances.

        Raises
        ------
        InvalidQueryError
            The query text can't be translated.
        StorageError
            The database rejected the query.
        """
        translator = self._translator
        if translator is None:
            raise StorageError("Storage has been shut down")
        if not self.is_class_supported(record_type):
            raise InvalidQueryError(f"{record_type.__name__} is not a mapped record type")
        translator.register(record_type)

        sql = translator.translate(query_text, limit=query_limit)
        try:
            with self._sessions()() as session:
                return list(session.scalars(select(record_type).from_statement(text(sql))))
        except SQLAlchemyError as exc:
            raise StorageError(f"Query '{query_text}' failed: {exc}", cause=exc) from exc

    def run_query_attribute(self, attribute_name: str, attribute_value: Any, record_type: type[T]) -> list[T]:
        """Return all instances whose *attribute_name* equals *attribute_value*."""
        attribute = getattr(record_type, attribute_name, None)
        if attribute is None:
            raise InvalidQueryError(f"{record_type.__name__} has no attribute '{attribute_name}'")
        try:
            with self._sessions()() as session:
                return list(session.scalars(select(record_type).where(attribute == attribute_value)))
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Attribute query on {record_type.__name__}.{attribute_name} failed: {exc}", cause=exc
            ) from exc

    def run_query_all(self, record_type: type[T]) -> list[T]:
        """Return every instance of *record_type*."""
        try:
            with self._sessions()() as session:
                return list(session.scalars(select(record_type)))
        except SQLAlchemyError as exc:
            raise StorageError(f"Query for all {record_type.__name__} failed: {exc}", cause=exc) from exc

    def is_managed(self, obj: Any) -> bool:
        """Return whether *obj* is attached to an open session."""
        try:
            return object_session(obj) is not None
        except UnmappedInstanceError:
            return False

    def initialize(self, entity: Any) -> None:
        """Load every lazily fetched relationship of a persisted *entity*.

        Afterwards the relationships can be read on the detached instance.
        Transient (never stored) instances have nothing to load.

        Raises
        ------
        ValueError
            If *entity* is ``None``.
        """
        if entity is None:
            raise ValueError("entity mustn't be None")

        state = sa_inspect(entity)
        if state.transient or state.pending:
            return

        relations = [f for f in resolve_field_kinds(type(entity)) if f.kind in _RELATION_KINDS]
        try:
            with self._sessions()() as session, session.no_autoflush:
                if state.detached:
                    session.add(entity)
                for field in relations:
                    value = getattr(entity, field.name)
                    if field.kind == FieldKind.TO_MANY and value is not None:
                        # Touch the collection so it is populated.
                        len(value)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to initialize {entity!r}: {exc}", cause=exc) from exc

    def shutdown(self) -> None:
        """Release all pooled connections; the storage is unusable afterwards."""
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self._translator = None
