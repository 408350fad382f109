"""
Mock Supabase Client for Testing
In-memory stand-in for the PostgREST query builder used by the app.

Supports the subset the code calls: select / insert / upsert / update /
delete, the eq / neq / in_ / ilike / or_ / gt / gte / lt / lte filters,
order, range, limit, maybe_single, single and count="exact". Unique keys
from supabase/schema.sql are enforced and raise APIError 23505.
"""
import re
import uuid
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser
from postgrest.exceptions import APIError


UNIQUE_KEYS = {
    'users': [('email',), ('username',), ('roll_number',)],
    'batches': [('name', 'academic_year', 'department')],
    'courses': [('course_code',)],
    'grades': [('task_id', 'student_id')],
    'submissions': [('task_id', 'student_id')],
    'batch_students': [('batch_id', 'student_id')],
    'course_batches': [('course_id', 'batch_id')],
    'course_faculty': [('course_id', 'faculty_id')],
    'settings': [('key',)],
}

# Join tables are keyed by their column pair and carry no id
JOIN_TABLES = {'batch_students', 'course_batches', 'course_faculty'}

DEFAULTS = {
    'users': {'is_active': True},
    'grades': {'grade': None, 'status': 'Pending', 'submission_id': None, 'feedback': '', 'graded_at': None},
    'submissions': {'status': 'On-Time', 'attachments': []},
    'tasks': {'attachments': [], 'max_points': 100},
    'courses': {'status': 'Upcoming'},
}


class MockResponse:
    def __init__(self, data: Any, count: Optional[int] = None):
        self.data = data
        self.count = count


def _like(pattern: str) -> re.Pattern:
    parts = []
    escaped = False
    for ch in pattern:
        if escaped:
            parts.append(re.escape(ch))
            escaped = False
        elif ch == '\\':
            escaped = True
        elif ch in '%*':
            parts.append('.*')
        elif ch == '_':
            parts.append('.')
        else:
            parts.append(re.escape(ch))
    return re.compile(''.join(parts), re.IGNORECASE | re.DOTALL)


def _comparable(a: Any, b: Any):
    """Compare ISO timestamps as datetimes, everything else as-is."""
    if isinstance(a, str) and isinstance(b, str):
        try:
            return parser.isoparse(a), parser.isoparse(b)
        except ValueError:
            return a, b
    return a, b


class MockQuery:
    def __init__(self, client: 'MockSupabaseClient', table: str):
        self.client = client
        self.table_name = table
        self.operation = 'select'
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.ignore_duplicates = False
        self.count_mode: Optional[str] = None
        self.filters: List = []
        self.orders: List = []
        self.window: Optional[tuple] = None
        self.max_rows: Optional[int] = None
        self.single_mode: Optional[str] = None

    # ---- operations ----
    def select(self, columns: str = '*', count: Optional[str] = None):
        self.operation = 'select'
        self.count_mode = count
        return self

    def insert(self, rows):
        self.operation = 'insert'
        self.payload = rows
        return self

    def upsert(self, rows, on_conflict: str = '', ignore_duplicates: bool = False):
        self.operation = 'upsert'
        self.payload = rows
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, values: Dict):
        self.operation = 'update'
        self.payload = values
        return self

    def delete(self):
        self.operation = 'delete'
        return self

    # ---- filters ----
    def _add(self, predicate):
        self.filters.append(predicate)
        return self

    def eq(self, column, value):
        return self._add(lambda r: r.get(column) == value)

    def neq(self, column, value):
        return self._add(lambda r: r.get(column) != value)

    def in_(self, column, values):
        allowed = set(values)
        return self._add(lambda r: r.get(column) in allowed)

    def ilike(self, column, pattern):
        regex = _like(pattern)
        return self._add(lambda r: r.get(column) is not None and bool(regex.fullmatch(str(r.get(column)))))

    def _compare(self, column, value, op):
        def predicate(r):
            current = r.get(column)
            if current is None:
                return False
            a, b = _comparable(current, value)
            return op(a, b)
        return self._add(predicate)

    def gt(self, column, value):
        return self._compare(column, value, lambda a, b: a > b)

    def gte(self, column, value):
        return self._compare(column, value, lambda a, b: a >= b)

    def lt(self, column, value):
        return self._compare(column, value, lambda a, b: a < b)

    def lte(self, column, value):
        return self._compare(column, value, lambda a, b: a <= b)

    def or_(self, expression: str):
        clauses = []
        for part in expression.split(','):
            column, op, value = part.split('.', 2)
            if op == 'ilike':
                regex = _like(value)
                clauses.append(lambda r, c=column, rx=regex: r.get(c) is not None and bool(rx.fullmatch(str(r.get(c)))))
            elif op == 'eq':
                clauses.append(lambda r, c=column, v=value: str(r.get(c)) == v)
            else:
                raise NotImplementedError(f'or_ operator {op!r}')
        return self._add(lambda r: any(clause(r) for clause in clauses))

    # ---- modifiers ----
    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def range(self, start: int, end: int):
        self.window = (start, end)
        return self

    def limit(self, n: int):
        self.max_rows = n
        return self

    def maybe_single(self):
        self.single_mode = 'maybe'
        return self

    def single(self):
        self.single_mode = 'single'
        return self

    # ---- execution ----
    def _matches(self, row) -> bool:
        return all(predicate(row) for predicate in self.filters)

    def execute(self) -> MockResponse:
        self.client.calls.append((self.table_name, self.operation))
        handler = getattr(self, f'_execute_{self.operation}')
        return handler()

    def _execute_select(self):
        rows = [deepcopy(r) for r in self.client.rows(self.table_name) if self._matches(r)]
        for column, desc in reversed(self.orders):
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: _comparable(r[column], r[column])[0], reverse=desc)
            rows = present + missing
        total = len(rows)
        if self.window:
            start, end = self.window
            rows = rows[start:end + 1]
        if self.max_rows is not None:
            rows = rows[:self.max_rows]
        if self.client.row_cap is not None:
            rows = rows[:self.client.row_cap]

        if self.single_mode:
            if len(rows) > 1:
                raise APIError({'code': 'PGRST116', 'message': 'Multiple rows returned'})
            if not rows:
                if self.single_mode == 'single':
                    raise APIError({'code': 'PGRST116', 'message': 'No rows returned'})
                return MockResponse(None)
            return MockResponse(rows[0])
        return MockResponse(rows, total if self.count_mode else None)

    def _execute_insert(self):
        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = [self.client.insert_row(self.table_name, row) for row in rows]
        return MockResponse(deepcopy(inserted))

    def _execute_upsert(self):
        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        keys = [k.strip() for k in (self.on_conflict or 'id').split(',') if k.strip()]
        written = []
        for row in rows:
            existing = next(
                (r for r in self.client.rows(self.table_name) if all(r.get(k) == row.get(k) for k in keys)),
                None,
            )
            if existing is None:
                written.append(self.client.insert_row(self.table_name, row))
            elif not self.ignore_duplicates:
                existing.update(deepcopy(row))
                written.append(existing)
        return MockResponse(deepcopy(written))

    def _execute_update(self):
        table = self.client.rows(self.table_name)
        updated = []
        for row in table:
            if self._matches(row):
                candidate = {**row, **deepcopy(self.payload)}
                self.client.check_unique(self.table_name, candidate, ignore=row)
                row.update(deepcopy(self.payload))
                updated.append(deepcopy(row))
        return MockResponse(updated)

    def _execute_delete(self):
        table = self.client.rows(self.table_name)
        removed = [r for r in table if self._matches(r)]
        self.client.tables[self.table_name] = [r for r in table if not self._matches(r)]
        return MockResponse(deepcopy(removed))


class MockSupabaseClient:
    """Mock Supabase client holding every table in memory"""

    def __init__(self):
        self.tables: Dict[str, List[Dict]] = {}
        self.calls: List[tuple] = []
        # PostgREST max-rows: a select never returns more than this
        self.row_cap: Optional[int] = None

    def table(self, name: str) -> MockQuery:
        return MockQuery(self, name)

    def rows(self, name: str) -> List[Dict]:
        return self.tables.setdefault(name, [])

    def check_unique(self, table: str, row: Dict, ignore: Optional[Dict] = None):
        for key in UNIQUE_KEYS.get(table, []):
            values = tuple(row.get(k) for k in key)
            if any(v is None for v in values):
                continue
            for other in self.rows(table):
                if other is ignore:
                    continue
                if tuple(other.get(k) for k in key) == values:
                    raise APIError({
                        'code': '23505',
                        'message': f'duplicate key value violates unique constraint on {table}{key}',
                    })

    def insert_row(self, table: str, row: Dict) -> Dict:
        record = {**DEFAULTS.get(table, {}), **deepcopy(row)}
        if table not in JOIN_TABLES:
            record.setdefault('id', str(uuid.uuid4()))
            record.setdefault('created_at', datetime.now(timezone.utc).isoformat())
        self.check_unique(table, record)
        self.rows(table).append(record)
        return record
