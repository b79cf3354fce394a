"""Module records built by folding source units."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import PurePath
from typing import Iterable

from depinfer.extractor import MAIN, TEST, SourceUnit


def module_id_for(relative_path: PurePath | str) -> str:
    """Build a Gradle project path from a module's relative location.

    ``services/foo`` becomes ``:services:foo``; the tree root is ``:``.
    """
    parts = [p for p in PurePath(relative_path).parts if p not in ("", ".")]
    return ":" + ":".join(parts)


@dataclass(frozen=True)
class Module:
    """Package-level facts for one module.

    All four sets are unions over the module's source units, so folding
    units in any order yields the same record.
    """

    id: str
    relative_path: str
    exported_packages: frozenset[str] = field(default_factory=frozenset)
    imported_packages: frozenset[str] = field(default_factory=frozenset)
    transitive_exported_packages: frozenset[str] = field(default_factory=frozenset)
    imported_test_packages: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def empty(cls, module_id: str, relative_path: PurePath | str) -> "Module":
        return cls(id=module_id, relative_path=str(relative_path))

    @classmethod
    def fold(
        cls,
        module_id: str,
        relative_path: PurePath | str,
        units: Iterable[SourceUnit],
    ) -> "Module":
        module = cls.empty(module_id, relative_path)
        for unit in units:
            module = module.add(unit)
        return module

    def add(self, unit: SourceUnit) -> "Module":
        """Return a new module that also covers one source unit."""
        if unit.origin == TEST:
            return replace(
                self,
                imported_test_packages=self.imported_test_packages | unit.imported_packages,
            )
        if unit.origin != MAIN:
            raise ValueError(f"Unknown source origin: {unit.origin}")

        exported = self.exported_packages
        if unit.declared_package:
            exported = exported | {unit.declared_package}
        return replace(
            self,
            exported_packages=exported,
            imported_packages=self.imported_packages | unit.imported_packages,
            transitive_exported_packages=self.transitive_exported_packages | unit.exported_packages,
        )

    def merge(self, other: "Module") -> "Module":
        """Union two partial records of the same module."""
        if other.id != self.id:
            raise ValueError(f"Cannot merge module {other.id} into {self.id}")
        return replace(
            self,
            exported_packages=self.exported_packages | other.exported_packages,
            imported_packages=self.imported_packages | other.imported_packages,
            transitive_exported_packages=(
                self.transitive_exported_packages | other.transitive_exported_packages
            ),
            imported_test_packages=self.imported_test_packages | other.imported_test_packages,
        )
