"""Per-file fact extraction: declared package, imports and exported packages."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from depinfer.config import InferConfig, is_excluded_package
from depinfer.errors import MalformedDeclarationError, SurfaceInferenceError
from depinfer.surface import SurfaceParser, language_for, member_facts, parser_for, supertype_facts

logger = logging.getLogger(__name__)

MAIN = "main"
TEST = "test"

GENERAL = "general"
SCHEMA = "schema"

_PACKAGE_LINE_RE = re.compile(r"^package\s")
_IMPORT_LINE_RE = re.compile(r"^import\s")


@dataclass(frozen=True)
class SourceUnit:
    """Facts extracted from one source file."""

    path: str
    declared_package: str = ""
    imported_packages: frozenset[str] = field(default_factory=frozenset)
    exported_packages: frozenset[str] = field(default_factory=frozenset)
    origin: str = MAIN  # main, test


@dataclass(frozen=True)
class ImportStatement:
    """A parsed import line."""

    qualified_name: str  # a.b.C, with any static member dropped
    package: str
    symbol: str
    alias: Optional[str] = None
    static: bool = False

    @property
    def wildcard(self) -> bool:
        return self.symbol == "*"


def classify_file(path: Path | str, config: InferConfig) -> Optional[str]:
    """Return GENERAL, SCHEMA or None for a file path."""
    suffix = Path(path).suffix.lower()
    if suffix in config.source_extensions:
        return GENERAL
    if suffix in config.schema_extensions:
        return SCHEMA
    return None


def parse_package_line(line: str, path: str = "", line_number: Optional[int] = None) -> str:
    """Return the package token of a ``package`` line.

    Raises:
        MalformedDeclarationError: If no package name follows the keyword.
    """
    rest = line[len("package"):].strip()
    token = re.split(r"[\s;]", rest, maxsplit=1)[0] if rest else ""
    if not token:
        raise MalformedDeclarationError(
            "Invalid package declaration",
            source_line=line,
            file=path or None,
            line=line_number,
        )
    return token


def parse_import_line(line: str, path: str = "", line_number: Optional[int] = None) -> ImportStatement:
    """Parse one import line.

    Import statements come in several forms:
    import a.b.C;              -> a.b.C, package a.b
    import a.b.*;              -> a.b.*, package a.b
    import static a.b.C.f;     -> a.b.C, package a.b
    import a.b.C as D          -> a.b.C, package a.b, alias D

    Raises:
        MalformedDeclarationError: If the line has an unexpected shape.
    """
    text = line.split("//", 1)[0].strip()
    text = text.rstrip(";").strip()

    alias = None
    alias_match = re.search(r"\sas\s+", text)
    if alias_match:
        alias = text[alias_match.end():].strip() or None
        text = text[: alias_match.start()]

    parts = text.split()
    static = False
    if len(parts) == 3 and parts[1] == "static":
        static = True
        fqn = parts[2]
    elif len(parts) == 2:
        fqn = parts[1]
    else:
        raise MalformedDeclarationError(
            f"Invalid import statement: {line.strip()}",
            source_line=line,
            file=path or None,
            line=line_number,
        )

    if static:
        # drop the imported member, keep the owning type
        if "." not in fqn:
            raise MalformedDeclarationError(
                f"Invalid static import: {line.strip()}",
                source_line=line,
                file=path or None,
                line=line_number,
            )
        fqn = fqn.rsplit(".", 1)[0]

    package, _, symbol = fqn.rpartition(".")
    return ImportStatement(
        qualified_name=fqn,
        package=package,
        symbol=symbol,
        alias=alias,
        static=static,
    )


def _read_schema_package(text: str, option: str) -> str:
    prefix = f"option {option}"
    for line in text.splitlines():
        if line.startswith(prefix):
            match = re.search(r'"([^"]*)"', line)
            return match.group(1) if match else ""
    return ""


def _filtered(packages: set[str], config: InferConfig) -> frozenset[str]:
    prefixes = config.excluded_prefixes
    return frozenset(p for p in packages if p and not is_excluded_package(p, prefixes))


def _lookup(symbol: str, symbol_table: dict[str, str]) -> Optional[str]:
    # Outer.Inner resolves through the imported Outer
    head = symbol.split(".", 1)[0]
    return symbol_table.get(symbol) or symbol_table.get(head)


def _infer_exports(
    path: str,
    text: str,
    symbol_table: dict[str, str],
    surface: SurfaceParser,
) -> set[str]:
    exported: set[str] = set()
    for declaration in surface(text):
        for fact in supertype_facts(declaration):
            package = _lookup(fact.symbol, symbol_table)
            if package:
                exported.add(package)
        try:
            facts = member_facts(declaration)
        except SurfaceInferenceError as e:
            logger.warning(
                "Failed to infer member types for %s in %s: %s",
                declaration.name,
                path,
                e.message,
            )
            continue
        for fact in facts:
            package = _lookup(fact.symbol, symbol_table)
            if package:
                exported.add(package)
    return exported


def extract_source_unit(
    path: Path | str,
    text: str,
    origin: str,
    kind: str,
    config: InferConfig,
    surface: Optional[SurfaceParser] = None,
) -> SourceUnit:
    """Extract the facts of one source file.

    Args:
        path: File path, used for diagnostics and language detection.
        text: File contents.
        origin: MAIN or TEST.
        kind: GENERAL or SCHEMA.
        config: Active configuration (exclusion prefixes, schema option).
        surface: Parser for top-level declarations. Defaults to the
            Kotlin or Java parser chosen from the file extension.

    Returns:
        SourceUnit for the file.

    Raises:
        MalformedDeclarationError: If a package or import line is malformed.
    """
    path_str = str(path)

    if kind == SCHEMA:
        return SourceUnit(
            path=path_str,
            declared_package=_read_schema_package(text, config.schema_package_option),
            origin=origin,
        )

    declared_package = ""
    package_seen = False
    imports: list[ImportStatement] = []
    for number, line in enumerate(text.splitlines(), start=1):
        if not package_seen and _PACKAGE_LINE_RE.match(line):
            declared_package = parse_package_line(line, path_str, number)
            package_seen = True
        elif _IMPORT_LINE_RE.match(line):
            imports.append(parse_import_line(line, path_str, number))

    symbol_table: dict[str, str] = {}
    for statement in imports:
        if statement.static or statement.wildcard or not statement.package:
            continue
        symbol_table[statement.symbol] = statement.package
        if statement.alias:
            symbol_table[statement.alias] = statement.package

    if surface is None:
        language = language_for(path_str)
        surface = parser_for(language) if language else None

    exported: set[str] = set()
    if surface is not None:
        exported = _infer_exports(path_str, text, symbol_table, surface)

    return SourceUnit(
        path=path_str,
        declared_package=declared_package,
        imported_packages=_filtered({s.package for s in imports}, config),
        exported_packages=_filtered(exported, config),
        origin=origin,
    )
