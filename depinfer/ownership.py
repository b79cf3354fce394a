"""Package ownership index: which modules declare which packages."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from depinfer.model import Module

logger = logging.getLogger(__name__)


class OwnershipIndex:
    """Map package names to the ids of the modules that export them.

    A package may have no owner (external library), one owner, or
    several. Several owners are all treated as providers; each such
    package is reported with a warning when the index is built.
    """

    def __init__(self, owners: dict[str, tuple[str, ...]]):
        self._owners = owners

    @classmethod
    def build(cls, modules: Iterable[Module]) -> "OwnershipIndex":
        collected: dict[str, set[str]] = defaultdict(set)
        for module in modules:
            for package in module.exported_packages:
                collected[package].add(module.id)

        index = cls({package: tuple(sorted(ids)) for package, ids in collected.items()})
        for package in index.ambiguous():
            logger.warning(
                "Package %s is declared by multiple modules: %s",
                package,
                ", ".join(index.owners(package)),
            )
        return index

    def owners(self, package: str) -> tuple[str, ...]:
        """Owning module ids in ascending order (empty if external)."""
        return self._owners.get(package, ())

    def ambiguous(self) -> list[str]:
        """Packages exported by more than one module."""
        return sorted(p for p, ids in self._owners.items() if len(ids) > 1)

    def packages(self) -> list[str]:
        return sorted(self._owners)

    def __contains__(self, package: object) -> bool:
        return package in self._owners

    def __len__(self) -> int:
        return len(self._owners)
