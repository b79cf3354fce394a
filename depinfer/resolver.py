"""Resolve module package sets into categorized dependency edges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from depinfer.model import Module
from depinfer.ownership import OwnershipIndex

API = "api"
IMPLEMENTATION = "implementation"
TEST = "test"

EDGE_KINDS = (API, IMPLEMENTATION, TEST)


@dataclass(frozen=True)
class DependencyEdge:
    """A build dependency of one module on another."""

    consumer: str
    provider: str
    kind: str  # api, implementation, test
    packages: tuple[str, ...] = ()  # packages that produced the edge


@dataclass(frozen=True)
class ResolvedDependencies:
    """The three edge lists of one module, each sorted by provider."""

    module_id: str
    api: tuple[DependencyEdge, ...] = ()
    implementation: tuple[DependencyEdge, ...] = ()
    test: tuple[DependencyEdge, ...] = ()

    def edges(self, kind: str) -> tuple[DependencyEdge, ...]:
        if kind not in EDGE_KINDS:
            raise ValueError(f"Unknown dependency kind: {kind}")
        return getattr(self, kind)

    def providers(self, kind: str) -> list[str]:
        return [edge.provider for edge in self.edges(kind)]

    def all_edges(self) -> list[DependencyEdge]:
        return [*self.api, *self.implementation, *self.test]


def _edges_for(
    module: Module,
    packages: Iterable[str],
    kind: str,
    index: OwnershipIndex,
) -> tuple[DependencyEdge, ...]:
    by_provider: dict[str, set[str]] = {}
    for package in packages:
        for owner in index.owners(package):
            if owner == module.id:
                continue
            by_provider.setdefault(owner, set()).add(package)

    # Plain str ordering compares code points, independent of locale
    return tuple(
        DependencyEdge(
            consumer=module.id,
            provider=provider,
            kind=kind,
            packages=tuple(sorted(by_provider[provider])),
        )
        for provider in sorted(by_provider)
    )


def resolve_module(module: Module, index: OwnershipIndex) -> ResolvedDependencies:
    """Compute api, implementation and test edges for one module."""
    return ResolvedDependencies(
        module_id=module.id,
        api=_edges_for(module, module.transitive_exported_packages, API, index),
        implementation=_edges_for(module, module.imported_packages, IMPLEMENTATION, index),
        test=_edges_for(module, module.imported_test_packages, TEST, index),
    )


def resolve_all(modules: Iterable[Module], index: OwnershipIndex) -> dict[str, ResolvedDependencies]:
    """Resolve every module, keyed by module id in ascending order."""
    resolved = {module.id: resolve_module(module, index) for module in modules}
    return {module_id: resolved[module_id] for module_id in sorted(resolved)}
