"""
Document Engine
In-memory document collections with structured filters, unique indexes,
atomic counters and JSON snapshots
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from distrack.database import codec

logger = logging.getLogger('db_engine')


class DatabaseError(Exception):
    pass


class DuplicateKeyError(DatabaseError):
    pass


class UnknownCollectionError(DatabaseError):
    pass


class Operator(Enum):
    EQ = '$eq'
    NE = '$ne'
    GT = '$gt'
    GTE = '$gte'
    LT = '$lt'
    LTE = '$lte'
    IN = '$in'
    NIN = '$nin'
    EXISTS = '$exists'


@dataclass
class Condition:
    column: str
    operator: Operator
    value: Any = None

    def evaluate(self, row: Dict[str, Any]) -> bool:
        col_value = row.get(self.column)

        if self.operator == Operator.EXISTS:
            return (col_value is not None) == bool(self.value)
        if self.operator == Operator.EQ:
            return col_value == self.value
        if self.operator == Operator.NE:
            return col_value != self.value
        if self.operator == Operator.IN:
            return col_value in self.value
        if self.operator == Operator.NIN:
            return col_value not in self.value

        if col_value is None or self.value is None:
            return False

        if self.operator == Operator.GT:
            return col_value > self.value
        elif self.operator == Operator.GTE:
            return col_value >= self.value
        elif self.operator == Operator.LT:
            return col_value < self.value
        elif self.operator == Operator.LTE:
            return col_value <= self.value

        return False


def compile_conditions(conditions: Optional[Dict[str, Any]]) -> List[Condition]:
    compiled = []
    for column, clause in (conditions or {}).items():
        if isinstance(clause, dict) and clause and all(k.startswith('$') for k in clause):
            for op, value in clause.items():
                try:
                    operator = Operator(op)
                except ValueError:
                    raise DatabaseError(f"Unknown operator: {op}")
                compiled.append(Condition(column, operator, value))
        else:
            compiled.append(Condition(column, Operator.EQ, clause))
    return compiled


def matches(row: Dict[str, Any], conditions: Optional[Dict[str, Any]]) -> bool:
    return all(c.evaluate(row) for c in compile_conditions(conditions))


def _sort_key(column: str):
    def key(row: Dict[str, Any]):
        value = row.get(column)
        return (value is None, value)
    return key


@dataclass
class Collection:
    name: str
    unique: List[Tuple[str, ...]] = field(default_factory=list)
    rows: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    next_id: int = 1

    def check_unique(self, row: Dict[str, Any], row_id: Optional[int] = None):
        for key in self.unique:
            values = tuple(row.get(col) for col in key)
            if any(v is None for v in values):
                continue
            for other_id, other in self.rows.items():
                if other_id == row_id:
                    continue
                if tuple(other.get(col) for col in key) == values:
                    raise DuplicateKeyError(
                        f"Duplicate key {dict(zip(key, values))} in collection '{self.name}'"
                    )

    def matching(self, conditions: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        compiled = compile_conditions(conditions)
        return [row for row in self.rows.values() if all(c.evaluate(row) for c in compiled)]


class DocumentEngine:
    """Single-process document store.

    Every public coroutine runs without suspending between its read and its
    write, so each call is atomic with respect to other tasks on the loop.
    """

    def __init__(self):
        self._collections: Dict[str, Collection] = {}

    def create_collection(
        self,
        name: str,
        unique: Optional[Sequence[Sequence[str]]] = None,
        if_not_exists: bool = True
    ) -> Collection:
        if name in self._collections:
            if if_not_exists:
                return self._collections[name]
            raise DatabaseError(f"Collection '{name}' already exists")

        collection = Collection(name=name, unique=[tuple(k) for k in (unique or [])])
        self._collections[name] = collection
        return collection

    def _get(self, table: str) -> Collection:
        collection = self._collections.get(table)
        if collection is None:
            raise UnknownCollectionError(f"Unknown collection: {table}")
        return collection

    async def insert(self, table: str, row: Dict[str, Any]) -> int:
        collection = self._get(table)
        document = copy.deepcopy(row)
        document.pop('_id', None)
        collection.check_unique(document)

        row_id = collection.next_id
        collection.next_id += 1
        document['_id'] = row_id
        collection.rows[row_id] = document
        return row_id

    async def update(
        self,
        table: str,
        data: Dict[str, Any],
        conditions: Optional[Dict[str, Any]] = None
    ) -> int:
        collection = self._get(table)
        targets = collection.matching(conditions)
        changes = {k: copy.deepcopy(v) for k, v in data.items() if k != '_id'}

        for row in targets:
            collection.check_unique({**row, **changes}, row['_id'])

        for row in targets:
            row.update(copy.deepcopy(changes))
        return len(targets)

    async def increment(
        self,
        table: str,
        conditions: Dict[str, Any],
        column: str,
        amount: int = 1,
        defaults: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Atomically add ``amount`` to ``column`` on the first match, inserting it if absent."""
        collection = self._get(table)
        targets = collection.matching(conditions)

        if targets:
            row = targets[0]
            row[column] = row.get(column, 0) + amount
            return copy.deepcopy(row)

        document = copy.deepcopy(defaults or {})
        for key, value in conditions.items():
            if not isinstance(value, dict):
                document[key] = value
        document[column] = document.get(column, 0) + amount
        row_id = await self.insert(table, document)
        return copy.deepcopy(collection.rows[row_id])

    async def delete(self, table: str, conditions: Optional[Dict[str, Any]] = None) -> int:
        collection = self._get(table)
        targets = collection.matching(conditions)
        for row in targets:
            del collection.rows[row['_id']]
        return len(targets)

    async def select(
        self,
        table: str,
        conditions: Optional[Dict[str, Any]] = None,
        order_by: Optional[Sequence[Sequence[str]]] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        rows = self._get(table).matching(conditions)

        for column, direction in reversed(list(order_by or [])):
            rows.sort(key=_sort_key(column), reverse=str(direction).upper() == 'DESC')

        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def find_one(self, table: str, conditions: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, conditions, limit=1)
        return rows[0] if rows else None

    async def count(self, table: str, conditions: Optional[Dict[str, Any]] = None) -> int:
        return len(self._get(table).matching(conditions))

    async def group_count(
        self,
        table: str,
        column: str,
        conditions: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        counts: Dict[Any, int] = {}
        for row in self._get(table).matching(conditions):
            value = row.get(column)
            counts[value] = counts.get(value, 0) + 1

        groups = [{'value': value, 'count': count} for value, count in counts.items()]
        groups.sort(key=lambda g: g['count'], reverse=True)
        return groups

    def list_tables(self) -> List[str]:
        return list(self._collections)

    def stats(self) -> Dict[str, Any]:
        return {
            'collections': len(self._collections),
            'documents': {name: len(c.rows) for name, c in self._collections.items()}
        }

    def snapshot(self) -> Dict[str, Any]:
        return {
            name: {
                'unique': [list(k) for k in c.unique],
                'next_id': c.next_id,
                'rows': list(c.rows.values())
            }
            for name, c in self._collections.items()
        }

    def restore(self, data: Dict[str, Any]):
        for name, payload in data.items():
            collection = self.create_collection(name, payload.get('unique'))
            collection.rows = {row['_id']: row for row in payload.get('rows', [])}
            collection.next_id = max(payload.get('next_id', 1), max(collection.rows, default=0) + 1)

    def save(self, path: str):
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            f.write(codec.dumps(self.snapshot()))
        os.replace(tmp_path, path)

    def load(self, path: str) -> bool:
        if not os.path.exists(path):
            return False
        with open(path, 'r', encoding='utf-8') as f:
            self.restore(codec.loads(f.read()))
        logger.info(f"Loaded snapshot from {path}")
        return True
