# godown_allocation/db/interface.py
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime
from typing import Dict, Any, Optional, List, Tuple, Union

from sqlalchemy import select as sa_select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from godown_allocation.models import Base, new_id
from godown_allocation.exceptions import ConflictError, StorageError

Filters = Dict[str, Any]
Order = Union[str, List[str], None]
Expand = Dict[str, Tuple[str, str]]

OPERATORS = ('eq', 'neq', 'in', 'gte', 'lte', 'gt', 'lt', 'is', 'ilike')

# Postgres error code for unique_violation
UNIQUE_VIOLATION = '23505'


def parse_filter_key(key: str) -> Tuple[str, Optional[str]]:
    """Split 'column__op' into (column, op). Plain keys return (key, None)."""
    if '__' in key:
        column, op = key.rsplit('__', 1)
        if op in OPERATORS:
            return column, op
    return key, None


def resolve_operator(op: Optional[str], value: Any) -> str:
    """Pick the operator for a filter: lists mean IN, None means IS NULL."""
    if op:
        return op
    if isinstance(value, (list, tuple, set, frozenset)):
        return 'in'
    if value is None:
        return 'is'
    return 'eq'


def normalize_order(order: Order) -> List[Tuple[str, bool]]:
    """Turn 'col' / '-col' / ['a', '-b'] into [(column, descending), ...]."""
    if not order:
        return []
    if isinstance(order, str):
        order = [order]
    return [(o[1:], True) if o.startswith('-') else (o, False) for o in order]


class DatabaseInterface(ABC):
    """Abstract data-access interface shared by every backend.

    Rows are plain dictionaries. Filters are dictionaries whose keys are column
    names, optionally suffixed with an operator (``created_at__gte``); a list
    value means IN and a plain value means equality. ``order`` takes column
    names, '-' prefixed for descending. ``expand`` maps an alias to
    ``(table, fk_column)`` and nests the referenced row under the alias.
    """

    @abstractmethod
    def select(
        self,
        table_name: str,
        columns: Union[str, List[str]] = '*',
        filters: Filters = None,
        order: Order = None,
        limit: int = None,
        expand: Expand = None,
        for_update: bool = False
    ) -> List[Dict[str, Any]]:
        """Query rows from a table."""
        pass

    @abstractmethod
    def insert(self, table_name: str, rows: Union[Dict[str, Any], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Insert one or more rows and return them as stored."""
        pass

    @abstractmethod
    def update(self, table_name: str, patch: Dict[str, Any], filters: Filters) -> List[Dict[str, Any]]:
        """Update rows matching the filters and return the updated rows."""
        pass

    @abstractmethod
    def delete(self, table_name: str, filters: Filters) -> int:
        """Delete rows matching the filters and return how many were removed."""
        pass

    @contextmanager
    def transaction(self):
        """Group the calls made inside the block. Backends without
        transactions simply run them in order."""
        yield self

    def select_one(self, table_name: str, filters: Filters, **kwargs) -> Optional[Dict[str, Any]]:
        """Return the first matching row or None."""
        rows = self.select(table_name, filters=filters, limit=1, **kwargs)
        return rows[0] if rows else None


def _serialize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return [_serialize(v) for v in value]
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


class SupabaseInterface(DatabaseInterface):
    """Supabase (PostgREST) interface implementation.

    PostgREST has no client-side transactions: ``transaction()`` runs the calls
    in sequence, and callers rely on conditional updates for state changes.
    """

    def __init__(self, client):
        """Initialize with Supabase client."""
        self.client = client

    def _apply_filters(self, query, filters: Filters):
        for key, value in (filters or {}).items():
            column, op = parse_filter_key(key)
            op = resolve_operator(op, value)
            value = _serialize(value)

            if op == 'eq':
                query = query.eq(column, value)
            elif op == 'neq':
                query = query.neq(column, value)
            elif op == 'in':
                query = query.in_(column, list(value))
            elif op == 'gte':
                query = query.gte(column, value)
            elif op == 'lte':
                query = query.lte(column, value)
            elif op == 'gt':
                query = query.gt(column, value)
            elif op == 'lt':
                query = query.lt(column, value)
            elif op == 'is':
                query = query.is_(column, 'null' if value is None else value)
            elif op == 'ilike':
                query = query.ilike(column, value)
        return query

    def _execute(self, query, action: str):
        try:
            result = query.execute()
        except Exception as e:
            if getattr(e, 'code', None) == UNIQUE_VIOLATION:
                raise ConflictError(f"Supabase {action} conflict: {getattr(e, 'message', str(e))}") from e
            raise StorageError(f"Supabase {action} error: {getattr(e, 'message', str(e))}") from e

        if hasattr(result, 'error') and result.error:
            raise StorageError(f"Supabase {action} error: {result.error}")

        return result.data if result.data else []

    def select(self, table_name, columns='*', filters=None, order=None, limit=None,
               expand=None, for_update=False):
        """Query data from a table using Supabase."""
        if isinstance(columns, (list, tuple)):
            columns = ', '.join(columns)
        for alias, (target, fk_column) in (expand or {}).items():
            columns += f", {alias}:{target}!{fk_column}(*)"

        query = self._apply_filters(self.client.table(table_name).select(columns), filters)

        for column, descending in normalize_order(order):
            query = query.order(column, desc=descending)

        if limit:
            query = query.limit(limit)

        return self._execute(query, 'query')

    def insert(self, table_name, rows):
        """Insert data into a table using Supabase."""
        payload = rows if isinstance(rows, list) else [rows]
        if not payload:
            return []
        payload = [{k: _serialize(v) for k, v in row.items()} for row in payload]
        return self._execute(self.client.table(table_name).insert(payload), 'insert')

    def update(self, table_name, patch, filters):
        """Update data in a table using Supabase."""
        if not filters:
            raise StorageError(f"Refusing unfiltered update on {table_name}")
        patch = {k: _serialize(v) for k, v in patch.items()}
        query = self._apply_filters(self.client.table(table_name).update(patch), filters)
        return self._execute(query, 'update')

    def delete(self, table_name, filters):
        """Delete data from a table using Supabase."""
        if not filters:
            raise StorageError(f"Refusing unfiltered delete on {table_name}")
        query = self._apply_filters(self.client.table(table_name).delete(), filters)
        return len(self._execute(query, 'delete'))


class SQLAlchemyInterface(DatabaseInterface):
    """SQLAlchemy Core implementation over the tables declared in models.py.

    Calls made inside ``transaction()`` share one session that is committed on
    success and rolled back on any exception. Calls outside a transaction each
    run in their own short transaction.
    """

    def __init__(self, engine, metadata=None):
        self.engine = engine
        self.metadata = metadata if metadata is not None else Base.metadata
        self._session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
        self._local = threading.local()

    # -- schema ---------------------------------------------------------

    def create_all(self):
        self.metadata.create_all(bind=self.engine)

    def drop_all(self):
        self.metadata.drop_all(bind=self.engine)

    # -- transactions ---------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, 'session', None) is not None

    @contextmanager
    def transaction(self):
        """Provide transaction scope; nested blocks join the outer one."""
        if self.in_transaction:
            yield self
            return

        session = self._session_factory()
        self._local.session = session
        try:
            yield self
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise self._translate(e, 'commit') from e
        except Exception:
            session.rollback()
            raise
        finally:
            self._local.session = None
            session.close()

    @contextmanager
    def _session(self):
        if self.in_transaction:
            yield self._local.session
        else:
            with self.transaction():
                yield self._local.session

    @staticmethod
    def _translate(error: SQLAlchemyError, action: str):
        detail = getattr(error, 'orig', None) or error
        if isinstance(error, IntegrityError):
            return ConflictError(f"Database {action} conflict: {detail}")
        return StorageError(f"Database {action} error: {detail}")

    def _execute(self, session, statement, action: str):
        try:
            return session.execute(statement)
        except SQLAlchemyError as e:
            raise self._translate(e, action) from e

    # -- helpers --------------------------------------------------------

    def _table(self, table_name: str):
        try:
            return self.metadata.tables[table_name]
        except KeyError:
            raise StorageError(f"Unknown table: {table_name}")

    @staticmethod
    def _column(table, column_name: str):
        try:
            return table.c[column_name]
        except KeyError:
            raise StorageError(f"Unknown column {column_name} on {table.name}")

    def _where(self, table, filters: Filters) -> list:
        clauses = []
        for key, value in (filters or {}).items():
            column_name, op = parse_filter_key(key)
            column = self._column(table, column_name)
            op = resolve_operator(op, value)

            if op == 'eq':
                clauses.append(column.is_(None) if value is None else column == value)
            elif op == 'neq':
                clauses.append(column.is_not(None) if value is None else column != value)
            elif op == 'in':
                clauses.append(column.in_(list(value)))
            elif op == 'gte':
                clauses.append(column >= value)
            elif op == 'lte':
                clauses.append(column <= value)
            elif op == 'gt':
                clauses.append(column > value)
            elif op == 'lt':
                clauses.append(column < value)
            elif op == 'is':
                clauses.append(column.is_(value))
            elif op == 'ilike':
                clauses.append(column.ilike(value))
        return clauses

    def _expand(self, session, rows: List[Dict[str, Any]], expand: Expand):
        for alias, (target_name, fk_column) in expand.items():
            target = self._table(target_name)
            ids = {row.get(fk_column) for row in rows if row.get(fk_column) is not None}
            related = {}
            if ids:
                stmt = sa_select(target).where(self._column(target, 'id').in_(list(ids)))
                for record in self._execute(session, stmt, 'query'):
                    related[record._mapping['id']] = dict(record._mapping)
            for row in rows:
                row[alias] = related.get(row.get(fk_column))

    # -- operations -----------------------------------------------------

    def select(self, table_name, columns='*', filters=None, order=None, limit=None,
               expand=None, for_update=False):
        table = self._table(table_name)

        if columns == '*' or not columns:
            selected = list(table.c)
        else:
            if isinstance(columns, str):
                columns = [c.strip() for c in columns.split(',')]
            # foreign keys used for expansion must come back with the row
            names = list(columns) + [fk for _, fk in (expand or {}).values() if fk not in columns]
            selected = [self._column(table, name) for name in names]

        stmt = sa_select(*selected).where(*self._where(table, filters))
        for column_name, descending in normalize_order(order):
            column = self._column(table, column_name)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit:
            stmt = stmt.limit(limit)
        if for_update:
            stmt = stmt.with_for_update()

        with self._session() as session:
            rows = [dict(record._mapping) for record in self._execute(session, stmt, 'query')]
            if expand and rows:
                self._expand(session, rows, expand)
        return rows

    def insert(self, table_name, rows):
        table = self._table(table_name)
        payload = rows if isinstance(rows, list) else [rows]
        if not payload:
            return []

        prepared = []
        for row in payload:
            row = dict(row)
            if 'id' in table.c and not row.get('id'):
                row['id'] = new_id()
            prepared.append(row)

        ids = [row['id'] for row in prepared]
        with self._session() as session:
            # one statement per row: rows may carry different optional columns
            for row in prepared:
                self._execute(session, table.insert().values(**row), 'insert')
            stmt = sa_select(table).where(table.c.id.in_(ids))
            stored = {r._mapping['id']: dict(r._mapping) for r in self._execute(session, stmt, 'query')}
        return [stored[i] for i in ids if i in stored]

    def update(self, table_name, patch, filters):
        table = self._table(table_name)
        if not filters:
            raise StorageError(f"Refusing unfiltered update on {table_name}")
        clauses = self._where(table, filters)

        with self._session() as session:
            if getattr(self.engine.dialect, 'update_returning', False):
                stmt = table.update().where(*clauses).values(**patch).returning(*table.c)
                return [dict(r._mapping) for r in self._execute(session, stmt, 'update')]

            ids = [r._mapping['id'] for r in
                   self._execute(session, sa_select(table.c.id).where(*clauses), 'query')]
            if not ids:
                return []
            stmt = table.update().where(table.c.id.in_(ids), *clauses).values(**patch)
            self._execute(session, stmt, 'update')
            stmt = sa_select(table).where(table.c.id.in_(ids))
            return [dict(r._mapping) for r in self._execute(session, stmt, 'query')]

    def delete(self, table_name, filters):
        table = self._table(table_name)
        if not filters:
            raise StorageError(f"Refusing unfiltered delete on {table_name}")

        with self._session() as session:
            result = self._execute(session, table.delete().where(*self._where(table, filters)), 'delete')
            return result.rowcount
