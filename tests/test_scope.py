"""Tests for scope levels and selectors."""

import pytest

from configapi.core.scope import ScopeLevel, ScopeSelector
from configapi.exceptions import InvalidLevelError, ValidationError


class TestScopeLevel:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("GLOBAL", ScopeLevel.GLOBAL),
            ("customer", ScopeLevel.CUSTOMER),
            ("Org", ScopeLevel.ORG),
            ("organization", ScopeLevel.ORG),
            (" site ", ScopeLevel.SITE),
            ("AGENT", ScopeLevel.AGENT),
            (ScopeLevel.SITE, ScopeLevel.SITE),
        ],
    )
    def test_parse(self, raw, expected):
        assert ScopeLevel.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["", "   ", "TENANT", None, 3])
    def test_parse_rejects(self, raw):
        with pytest.raises(InvalidLevelError) as exc_info:
            ScopeLevel.parse(raw)
        assert exc_info.value.status_code == 400

    def test_depth_orders_levels(self):
        depths = [level.depth for level in ScopeLevel]
        assert depths == [0, 1, 2, 3, 4]


class TestScopeSelector:

    def test_blank_values_become_none(self):
        selector = ScopeSelector.of(customer_id="C1", organization="  ", site="")
        assert selector.organization is None
        assert selector.site is None
        assert selector.deepest_level == ScopeLevel.CUSTOMER

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"customer_id": "C1", "organization": "O1", "agent": "A1"}, "site"),
            ({"customer_id": "C1", "site": "S1"}, "organization"),
            ({"organization": "O1"}, "customerId"),
        ],
    )
    def test_skipped_levels_rejected(self, kwargs, field):
        with pytest.raises(ValidationError) as exc_info:
            ScopeSelector.of(**kwargs)
        assert exc_info.value.details["field"] == field

    def test_reachable_levels(self):
        selector = ScopeSelector.of(customer_id="C1", organization="O1", site="S1")
        assert selector.reachable_levels() == [
            ScopeLevel.GLOBAL, ScopeLevel.CUSTOMER, ScopeLevel.ORG, ScopeLevel.SITE,
        ]

    def test_node_for_nulls_columns_below_level(self):
        selector = ScopeSelector.of(customer_id="C1", organization="O1", site="S1", agent="A1")
        assert selector.node_for(ScopeLevel.ORG) == {
            "customer_id": "C1", "organization": "O1", "site": None, "agent": None,
        }
        assert selector.node_for(ScopeLevel.GLOBAL) == {
            "customer_id": None, "organization": None, "site": None, "agent": None,
        }

    def test_node_for_deeper_than_selector(self):
        selector = ScopeSelector.of(customer_id="C1")
        with pytest.raises(ValidationError) as exc_info:
            selector.node_for(ScopeLevel.SITE)
        assert exc_info.value.details["field"] == "site"
