"""Tests for tagged statement parameters and read-only SQL echo."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import Integer, String, update

from configapi.core.statements import Plain, Typed, bind, bind_all, echo_statement, format_sql, sql_literal
from configapi.models import ConfigOverride


class TestBind:

    def test_typed_parameter_keeps_type(self):
        param = bind("config_id", Typed(Integer(), 5))
        assert param.key == "config_id"
        assert param.value == 5
        assert isinstance(param.type, Integer)

    def test_plain_parameter(self):
        param = bind("tenant", Plain("C1"))
        assert param.value == "C1"

    def test_untagged_value_rejected(self):
        with pytest.raises(TypeError):
            bind("raw", "C1")

    def test_bind_all_keeps_names(self):
        binds = bind_all({"a": Plain(1), "b": Typed(String(10), "x")})
        assert set(binds) == {"a", "b"}


class TestSqlLiteral:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, "NULL"),
            (True, "1"),
            (False, "0"),
            (42, "42"),
            (1.5, "1.5"),
            ("plain", "'plain'"),
            ("O'Brien", "'O''Brien'"),
        ],
    )
    def test_literals(self, value, expected):
        assert sql_literal(value) == expected

    def test_datetime_is_quoted_iso(self):
        stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert sql_literal(stamp) == "'2024-05-01T12:00:00+00:00'"


class TestFormatSql:

    def test_substitutes_known_names(self):
        sql = "UPDATE t SET value=:new_value WHERE id = :config_id"
        assert format_sql(sql, {"new_value": "60", "config_id": 3}) == (
            "UPDATE t SET value='60' WHERE id = 3"
        )

    def test_unknown_names_and_casts_untouched(self):
        sql = "SELECT x::text, :missing"
        assert format_sql(sql, {"text": "boom"}) == sql

    def test_longer_names_not_clobbered_by_prefixes(self):
        sql = ":stamp, :stamp_extra"
        assert format_sql(sql, {"stamp": 1, "stamp_extra": 2}) == "1, 2"


class TestEchoStatement:

    def test_echo_of_update(self):
        table = ConfigOverride.__table__
        binds = bind_all({
            "config_id": Typed(Integer(), 9),
            "new_value": Typed(String(10), "it's"),
        })
        stmt = update(table).where(table.c.config_id == binds["config_id"]).values(value=binds["new_value"])

        echo = echo_statement(stmt)

        assert echo.sql.startswith("UPDATE config_overrides SET value=:new_value")
        assert echo.params == {"new_value": "it's", "config_id": 9}
        assert "value='it''s'" in echo.formatted_sql
        assert "config_overrides.config_id = 9" in echo.formatted_sql

    def test_to_dict_is_json_safe(self):
        table = ConfigOverride.__table__
        stamp = datetime(2024, 1, 2, tzinfo=timezone.utc)
        binds = bind_all({"stamp": Typed(ConfigOverride.modified_at.type, stamp)})
        stmt = update(table).values(modified_at=binds["stamp"])

        body = echo_statement(stmt).to_dict()

        assert body["params"] == {"stamp": "2024-01-02T00:00:00+00:00"}
        assert set(body) == {"sql", "params", "formattedSql"}
