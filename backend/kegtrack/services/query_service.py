"""
Consultas filtradas y paginadas sobre las colecciones.

Una FilteredQuery separa los filtros que resuelve la base de datos (igualdad,
"in" y rango sobre columnas indexadas, más un único orden con id como
desempate) de los predicados que se aplican en Python sobre un superconjunto
traído por lotes. La paginación es por cursor (keyset), nunca por offset.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from kegtrack.core.errors import IndexRequired, TransientStoreError, ValidationError
from kegtrack.core.serialization_helpers import parse_datetime, serialize_datetime


logger = logging.getLogger(__name__)

_RANGE_OPERATORS = {
    ">": lambda col, value: col > value,
    ">=": lambda col, value: col >= value,
    "<": lambda col, value: col < value,
    "<=": lambda col, value: col <= value,
}


class Page(NamedTuple):
    items: list
    next_cursor: Optional[str]
    total: int
    approximate: bool


def encode_cursor(sort_value: Any, row_id: Any) -> str:
    if isinstance(sort_value, datetime):
        payload = {"t": "dt", "v": serialize_datetime(sort_value), "id": row_id}
    else:
        payload = {"t": "raw", "v": sort_value, "id": row_id}
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> Tuple[Any, Any]:
    """
    Raises:
        ValidationError: si el cursor no es uno emitido por encode_cursor
    """
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        value = payload["v"]
        if payload.get("t") == "dt":
            value = parse_datetime(value)
        return value, payload["id"]
    except (ValueError, KeyError, TypeError, binascii.Error):
        raise ValidationError("Cursor de paginación inválido")


class FilteredQuery:
    def __init__(self, model, sort_column: str, descending: bool = False, page_size: int = 10):
        self.model = model
        self.sort_column = sort_column
        self.descending = descending
        self.page_size = page_size
        self._equals: Dict[str, Any] = {}
        self._ins: Dict[str, List[Any]] = {}
        self._ranges: List[Tuple[str, str, Any]] = []
        self._predicates: List[Callable[[Any], bool]] = []

    # -- construcción ---------------------------------------------------

    def where_equal(self, column: str, value: Any) -> "FilteredQuery":
        if value is not None:
            self._equals[column] = value
        return self

    def where_in(self, column: str, values) -> "FilteredQuery":
        self._ins[column] = list(values)
        return self

    def where_range(self, column: str, op: str, value: Any) -> "FilteredQuery":
        if op not in _RANGE_OPERATORS:
            raise ValueError(f"Operador de rango no soportado: {op}")
        self._ranges.append((column, op, value))
        return self

    def where_client(self, predicate: Callable[[Any], bool]) -> "FilteredQuery":
        self._predicates.append(predicate)
        return self

    @property
    def approximate(self) -> bool:
        return bool(self._predicates)

    @property
    def collection(self) -> str:
        return self.model.__tablename__

    # -- índices ---------------------------------------------------------

    def required_index(self) -> List[str]:
        return sorted(set(self._equals) | set(self._ins)) + [self.sort_column]

    def check_index(self) -> None:
        """
        Verifica que la combinación de filtros del servidor tenga un índice declarado:
        primero las columnas de igualdad (en cualquier orden), después la columna de orden.

        Raises:
            IndexRequired: con la definición del índice que falta
        """
        equality = set(self._equals) | set(self._ins)
        for column, _op, _value in self._ranges:
            if column != self.sort_column:
                raise IndexRequired(
                    f"El filtro de rango sobre {column} requiere ordenar por {column}",
                    {"collection": self.collection, "fields": self.required_index()},
                )

        for index in self.model.__table__.indexes:
            names = [col.name for col in index.columns]
            n = len(equality)
            if len(names) > n and set(names[:n]) == equality and names[n] == self.sort_column:
                return

        fields = self.required_index()
        raise IndexRequired(
            f"La consulta sobre {self.collection} requiere un índice ({', '.join(fields)})",
            {"collection": self.collection, "fields": fields},
        )

    # -- ejecución -------------------------------------------------------

    def _column(self, name: str):
        return getattr(self.model, name)

    def _filtered(self, query):
        for column, value in self._equals.items():
            query = query.filter(self._column(column) == value)
        for column, values in self._ins.items():
            query = query.filter(self._column(column).in_(values))
        for column, op, value in self._ranges:
            query = query.filter(_RANGE_OPERATORS[op](self._column(column), value))
        return query

    def _ordered(self, query):
        sort = self._column(self.sort_column)
        row_id = self.model.id
        if self.descending:
            return query.order_by(sort.desc(), row_id.desc())
        return query.order_by(sort.asc(), row_id.asc())

    def _after(self, query, key: Optional[Tuple[Any, Any]]):
        if key is None:
            return query
        value, last_id = key
        sort = self._column(self.sort_column)
        row_id = self.model.id
        if self.descending:
            return query.filter(or_(sort < value, and_(sort == value, row_id < last_id)))
        return query.filter(or_(sort > value, and_(sort == value, row_id > last_id)))

    def _key(self, row) -> Tuple[Any, Any]:
        return getattr(row, self.sort_column), row.id

    def _matches(self, row) -> bool:
        return all(predicate(row) for predicate in self._predicates)

    def fetch(self, db: Session, cursor: Optional[str] = None) -> Tuple[list, Optional[str]]:
        """
        Devuelve hasta page_size elementos después del cursor y el cursor siguiente
        (None si no hay más).
        """
        self.check_index()
        key = decode_cursor(cursor) if cursor else None
        # Con predicados en cliente se trae un superconjunto más grande por lote
        batch_size = self.page_size + 1 if not self._predicates else max(self.page_size * 5, 50)
        base = self._ordered(self._filtered(db.query(self.model)))

        matched: list = []
        scan_key = key
        try:
            while len(matched) <= self.page_size:
                batch = self._after(base, scan_key).limit(batch_size).all()
                matched.extend(row for row in batch if self._matches(row))
                if len(batch) < batch_size:
                    break
                scan_key = self._key(batch[-1])
        except DBAPIError as exc:
            logger.warning("Query on %s failed: %s", self.collection, exc)
            raise TransientStoreError(f"No se pudo leer {self.collection}") from exc

        items = matched[: self.page_size]
        next_cursor = None
        if len(matched) > self.page_size:
            next_cursor = encode_cursor(*self._key(items[-1]))
        return items, next_cursor

    def count(self, db: Session) -> int:
        """Conteo del lado servidor; solo es exacto si no hay predicados en cliente."""
        self.check_index()
        try:
            return self._filtered(db.query(func.count(self.model.id))).scalar() or 0
        except DBAPIError as exc:
            raise TransientStoreError(f"No se pudo contar {self.collection}") from exc

    def page(self, db: Session, cursor: Optional[str] = None) -> Page:
        items, next_cursor = self.fetch(db, cursor)
        return Page(items, next_cursor, self.count(db), self.approximate)


def empty_page_response(error, request_id: Optional[str] = None, prev_cursors=None) -> dict:
    """Página vacía con el error que la causó, para que la vista no falle."""
    return {
        "items": [],
        "next_cursor": None,
        "prev_cursors": prev_cursors or [],
        "total": 0,
        "approximate": False,
        "request_id": request_id,
        "error": {"code": error.code, "message": error.message},
    }


def page_response(page: Page, items: list, request_id: Optional[str] = None, prev_cursors=None) -> dict:
    return {
        "items": items,
        "next_cursor": page.next_cursor,
        "prev_cursors": prev_cursors or [],
        "total": page.total,
        "approximate": page.approximate,
        "request_id": request_id,
        "error": None,
    }


class GenerationGuard:
    """
    La última consulta gana: cada cambio de filtros avanza la generación y solo
    se entrega el resultado de la generación vigente, aunque otro termine después.
    """

    def __init__(self) -> None:
        self.current = 0

    def advance(self) -> int:
        self.current += 1
        return self.current

    def is_current(self, generation: int) -> bool:
        return generation == self.current
