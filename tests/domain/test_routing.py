"""Tests for the routing resolver."""

import pytest

from approval_kernel.domain.chain import ApproverTemplate
from approval_kernel.domain.routing import RoutingTable, selector_key
from approval_kernel.exceptions import ConfigurationError, MissingFallbackRouteError

LEAD = ApproverTemplate("lead.na@example.com", "Dana", "Sales Team Lead")
VP = ApproverTemplate("vp.sales@example.com", "Morgan", "VP of Sales")
ADMIN = ApproverTemplate("approvals.admin@example.com", "Desk", "Operations Manager")


@pytest.fixture
def table():
    return RoutingTable(routes={"Sales|North America": (LEAD, VP)}, fallback=(ADMIN,))


class TestSelectorKey:
    def test_joins_with_pipe(self):
        assert selector_key("Sales", "North America") == "Sales|North America"


class TestResolve:
    def test_exact_match(self, table):
        resolution = table.resolve("Sales|North America")
        assert resolution.templates == (LEAD, VP)
        assert resolution.is_fallback is False
        assert resolution.selector_key == "Sales|North America"

    def test_unknown_key_uses_fallback(self, table):
        resolution = table.resolve("Unknown|Combo")
        assert resolution.templates == (ADMIN,)
        assert resolution.is_fallback is True
        assert resolution.selector_key == "Unknown|Combo"

    def test_match_is_case_sensitive(self, table):
        assert table.resolve("sales|north america").is_fallback

    def test_empty_route_uses_fallback(self):
        table = RoutingTable(routes={"X|Y": ()}, fallback=(ADMIN,))
        assert table.resolve("X|Y").is_fallback

    def test_keys(self, table):
        assert table.keys() == ("Sales|North America",)


class TestFallbackRequired:
    def test_missing_fallback_rejected(self):
        with pytest.raises(MissingFallbackRouteError) as exc_info:
            RoutingTable(routes={"Sales|EMEA": (LEAD,)}, fallback=(), source="routing.yaml")
        assert exc_info.value.source == "routing.yaml"
        assert isinstance(exc_info.value, ConfigurationError)
