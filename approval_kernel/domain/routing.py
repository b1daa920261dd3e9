"""
Routing resolver (``approval_kernel.domain.routing``).

Maps a ``"<department>|<team>"`` selector key to the ordered approver
templates of its route.  Matching is exact and case-sensitive.  A miss is
a normal outcome: the fallback route is returned with ``is_fallback`` set,
and the chain builder annotates the first step with the unmatched key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from approval_kernel.domain.chain import ApproverTemplate
from approval_kernel.exceptions import MissingFallbackRouteError

SELECTOR_SEPARATOR = "|"


def selector_key(department: str, team: str) -> str:
    """Build the composite key used to look up a route."""
    return f"{department}{SELECTOR_SEPARATOR}{team}"


@dataclass(frozen=True)
class RouteResolution:
    """Result of resolving a selector key."""

    selector_key: str
    templates: tuple[ApproverTemplate, ...]
    is_fallback: bool = False


@dataclass(frozen=True)
class RoutingTable:
    """Static route configuration with a required fallback chain."""

    routes: Mapping[str, tuple[ApproverTemplate, ...]] = field(default_factory=dict)
    fallback: tuple[ApproverTemplate, ...] = ()
    source: str = "<memory>"

    def __post_init__(self) -> None:
        if not self.fallback:
            raise MissingFallbackRouteError(self.source)

    def resolve(self, key: str) -> RouteResolution:
        templates = self.routes.get(key)
        if templates:
            return RouteResolution(selector_key=key, templates=tuple(templates))
        return RouteResolution(
            selector_key=key,
            templates=tuple(self.fallback),
            is_fallback=True,
        )

    def keys(self) -> tuple[str, ...]:
        return tuple(self.routes.keys())
