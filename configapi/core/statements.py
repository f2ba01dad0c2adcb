"""Statement parameters and read-only echo rendering.

Write statements are built with SQLAlchemy Core. Their parameters are
declared as ``Plain(value)`` (type inferred by the driver) or
``Typed(sql_type, value)`` and turned into bind parameters in one place,
``bind``. When a write is blocked by read-only mode, ``echo_statement``
renders the same statement for logs and for the admin response.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Union

from sqlalchemy import bindparam
from sqlalchemy.sql.elements import BindParameter
from sqlalchemy.sql.expression import ClauseElement
from sqlalchemy.types import TypeEngine


@dataclass(frozen=True)
class Plain:
    value: Any


@dataclass(frozen=True)
class Typed:
    sql_type: Union[TypeEngine, type]
    value: Any


Param = Union[Plain, Typed]


def bind(name: str, param: Param) -> BindParameter:
    """Resolve a tagged parameter to a SQLAlchemy bind parameter."""
    if isinstance(param, Typed):
        return bindparam(name, param.value, type_=param.sql_type)
    if isinstance(param, Plain):
        return bindparam(name, param.value)
    raise TypeError(f"Unsupported parameter for {name!r}: {type(param).__name__}")


def bind_all(params: Mapping[str, Param]) -> dict[str, BindParameter]:
    return {name: bind(name, param) for name, param in params.items()}


@dataclass(frozen=True)
class SqlEcho:
    """What a blocked write would have executed."""
    sql: str
    params: dict[str, Any] = field(default_factory=dict)
    formatted_sql: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "sql": self.sql,
            "params": {k: _jsonable(v) for k, v in self.params.items()},
            "formattedSql": self.formatted_sql,
        }


_PLACEHOLDER = re.compile(r"(?<![:\w]):(\w+)")


def echo_statement(statement: ClauseElement) -> SqlEcho:
    """Compile *statement* with the default dialect and inline its parameters."""
    compiled = statement.compile()
    sql = str(compiled)
    params = dict(compiled.params)
    return SqlEcho(sql=sql, params=params, formatted_sql=format_sql(sql, params))


def format_sql(sql: str, params: Mapping[str, Any]) -> str:
    """Replace ``:name`` placeholders with SQL literals. Log output only."""

    def _substitute(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in params:
            return match.group(0)
        return sql_literal(params[name])

    return _PLACEHOLDER.sub(_substitute, sql)


def sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return f"'{value.isoformat()}'"
    text = str(value).replace("'", "''")
    return f"'{text}'"


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value
