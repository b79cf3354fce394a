"""Structural surface parsing for Kotlin and Java sources.

This is a best-effort scanner, not a grammar. It blanks comments and
string literals, tracks brace depth, and reports for every top-level
type declaration:

- the type texts it declares as supertypes
- the declared types of its outermost-level members (function return
  types and property types), on demand

Nested classes, companion objects and local declarations are never
inspected. Type texts are reduced to a base name with ``base_type_name``
so callers can look them up in a file's import table.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from depinfer.errors import SurfaceInferenceError

KOTLIN = "kotlin"
JAVA = "java"

LANGUAGE_BY_EXTENSION = {
    ".kt": KOTLIN,
    ".kts": KOTLIN,
    ".java": JAVA,
}

SUPERTYPE = "supertype"
MEMBER_TYPE = "member_type"

_DECLARATION_RE = re.compile(
    r"(?<![\w$.@])(class|interface|object|record|enum)\s+"
    r"(?!class\b|interface\b)([A-Za-z_$][\w$]*)"
)
_TYPE_NAME_RE = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")
_LEADING_ANNOTATIONS_RE = re.compile(r"^(?:@[\w.]+(?:\([^)]*\))?\s+)+")

_KT_MODIFIERS = (
    r"(?:(?:@[\w.:]+(?:\([^)]*\))?|public|protected|private|internal|open|override|"
    r"abstract|final|suspend|inline|operator|infix|tailrec|external|lateinit|const|"
    r"actual|expect|data|sealed|inner|value)\s+)*"
)
_KT_FUN_RE = re.compile(r"^(?P<mods>" + _KT_MODIFIERS + r")fun\b")
_KT_PROPERTY_RE = re.compile(r"^(?P<mods>" + _KT_MODIFIERS + r")(?:val|var)\s+")
_KT_CONSTRUCTOR_PREFIX_RE = re.compile(
    r"^\s*(?:(?:@[\w.]+(?:\([^)]*\))?|public|protected|private|internal)\s+)*constructor\b"
)

_JAVA_MODIFIERS = r"(?:public|protected|private|static|final|abstract|synchronized|native|default|strictfp)"
_JAVA_METHOD_RE = re.compile(
    r"^(?P<mods>(?:@[\w.]+(?:\s*\([^)]*\))?\s*|" + _JAVA_MODIFIERS + r"\s+)*)"
    r"(?:<[^()]*?>\s+)?"
    r"(?P<type>(?!" + _JAVA_MODIFIERS + r"\b)[\w$.]+(?:\s*<.*?>)?(?:\s*\[\s*\])*)\s+"
    r"(?P<name>[\w$]+)\s*\("
)
_JAVA_NOT_TYPES = frozenset({"new", "return", "throw", "else", "case", "package", "import"})

_PRIVATE_RE = re.compile(r"\bprivate\b")


@dataclass(frozen=True)
class TypeFact:
    """A type name referenced from a declaration's public surface."""

    symbol: str
    kind: str  # supertype, member_type


@dataclass
class Declaration:
    """A top-level type declaration found in a source file."""

    name: str
    kind: str  # class, interface, object, record, enum
    language: str
    line: int
    supertypes: list[str] = field(default_factory=list)
    body: str = ""

    def member_type_texts(self) -> list[str]:
        """Declared types of the outermost-level, non-private members.

        Raises:
            SurfaceInferenceError: If a member signature cannot be split.
        """
        if self.language == KOTLIN:
            return _kotlin_member_types(self)
        return _java_member_types(self)


SurfaceParser = Callable[[str], list[Declaration]]


def language_for(path: Path | str) -> Optional[str]:
    """Return the surface language for a file based on its extension."""
    return LANGUAGE_BY_EXTENSION.get(Path(path).suffix.lower())


def parser_for(language: str) -> SurfaceParser:
    """Return a parser callable bound to one language."""
    if language not in (KOTLIN, JAVA):
        raise ValueError(f"Unsupported surface language: {language}")

    def _parse(text: str) -> list[Declaration]:
        return parse_surface(text, language)

    return _parse


def blank_comments_and_strings(text: str, language: str = KOTLIN) -> str:
    """Replace comment and string literal contents with spaces.

    Newlines and opening quotes are preserved so line numbers and token
    boundaries survive. The output has the same length as the input.
    """
    out: list[str] = []
    i = 0
    n = len(text)
    nest_comments = language == KOTLIN

    def blank(segment: str) -> str:
        return "".join("\n" if ch == "\n" else " " for ch in segment)

    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if ch == "/" and nxt == "/":
            end = text.find("\n", i)
            if end == -1:
                end = n
            out.append(blank(text[i:end]))
            i = end
        elif ch == "/" and nxt == "*":
            depth = 1
            j = i + 2
            while j < n and depth:
                if nest_comments and text.startswith("/*", j):
                    depth += 1
                    j += 2
                elif text.startswith("*/", j):
                    depth -= 1
                    j += 2
                else:
                    j += 1
            out.append(blank(text[i:j]))
            i = j
        elif text.startswith('"""', i):
            end = text.find('"""', i + 3)
            end = n if end == -1 else end + 3
            out.append('"' + blank(text[i + 1:end]))
            i = end
        elif ch in ('"', "'"):
            j = i + 1
            while j < n and text[j] != ch and text[j] != "\n":
                j += 2 if text[j] == "\\" else 1
            end = min(j + 1, n)
            out.append(ch + blank(text[i + 1:end]))
            i = end
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def mask_nested(text: str) -> str:
    """Blank everything nested inside (), <> or [] pairs.

    The brackets themselves are kept, so top-level keywords, commas and
    colons can be located in the mask and sliced from the original text.
    The arrow in ``->`` does not close an angle bracket.
    """
    out: list[str] = []
    depth = 0
    for i, ch in enumerate(text):
        if ch in "(<[":
            out.append(ch if depth == 0 else " ")
            depth += 1
        elif ch in ")>]":
            if ch == ">" and i > 0 and text[i - 1] == "-":
                out.append(" " if depth else ch)
                continue
            depth = max(depth - 1, 0)
            out.append(ch if depth == 0 else " ")
        else:
            out.append(ch if depth == 0 else ("\n" if ch == "\n" else " "))
    return "".join(out)


def split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split on a separator that is not nested in any bracket pair."""
    mask = mask_nested(text)
    parts = []
    start = 0
    for i, ch in enumerate(mask):
        if ch == separator:
            parts.append(text[start:i])
            start = i + 1
    parts.append(text[start:])
    return [p.strip() for p in parts if p.strip()]


def _skip_balanced(text: str, start: int, open_ch: str, close_ch: str) -> int:
    """Return the index just past the bracket pair opening at start."""
    depth = 0
    for i in range(start, len(text)):
        if text[i] == open_ch:
            depth += 1
        elif text[i] == close_ch and not (close_ch == ">" and i > 0 and text[i - 1] == "-"):
            depth -= 1
            if depth == 0:
                return i + 1
    return len(text)


def base_type_name(type_text: str) -> Optional[str]:
    """Reduce a declared type to the name that can be looked up.

    ``Map<String, Foo>?`` becomes ``Map``, ``Foo[]`` becomes ``Foo``.
    Function types have no nominal name and yield None.

    Raises:
        SurfaceInferenceError: If the text cannot be reduced to a name.
    """
    text = _LEADING_ANNOTATIONS_RE.sub("", type_text.strip())
    if "->" in text:
        return None
    if text.count("<") != text.count(">"):
        raise SurfaceInferenceError(f"Unbalanced generic arguments in type '{type_text}'")
    if "<" in text:
        text = text[: text.index("<")]
    text = text.strip().rstrip("?").strip()
    while text.endswith("[]"):
        text = text[:-2].rstrip()
    if text.endswith("..."):
        text = text[:-3].rstrip()
    if not _TYPE_NAME_RE.match(text):
        raise SurfaceInferenceError(f"Cannot resolve type '{type_text}'")
    return text


def _brace_depths(text: str) -> list[int]:
    depths = []
    depth = 0
    for ch in text:
        depths.append(depth)
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(depth - 1, 0)
    return depths


def _header_end(text: str, start: int, language: str) -> int:
    """Find where a declaration header stops (at its body brace or end)."""
    parens = 0
    angles = 0
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "(":
            parens += 1
        elif ch == ")":
            parens = max(parens - 1, 0)
        # a < inside parentheses is an expression, not a type argument
        elif ch == "<" and parens == 0:
            angles += 1
        elif ch == ">" and parens == 0 and text[i - 1] != "-":
            angles = max(angles - 1, 0)
        elif parens == 0 and angles == 0:
            if ch in "{};":
                return i
            if ch == "\n" and language == KOTLIN:
                before = text[start:i].rstrip()
                after = text[i:].lstrip()
                continues = (
                    (before and before[-1] in ",:")
                    or (after and after[0] in ":,.{")
                    or after.startswith("where ")
                    or _KT_CONSTRUCTOR_PREFIX_RE.match(after) is not None
                )
                if not continues:
                    return i
        i += 1
    return n


def _kotlin_supertypes(header: str) -> list[str]:
    rest = header.lstrip()
    if rest.startswith("<"):
        rest = rest[_skip_balanced(rest, 0, "<", ">"):].lstrip()
    match = _KT_CONSTRUCTOR_PREFIX_RE.match(rest)
    if match:
        rest = rest[match.end():].lstrip()
    if rest.startswith("("):
        rest = rest[_skip_balanced(rest, 0, "(", ")"):].lstrip()
    if not rest.startswith(":"):
        return []
    rest = rest[1:]
    where = re.search(r"\bwhere\b", mask_nested(rest))
    if where:
        rest = rest[: where.start()]

    supertypes = []
    for item in split_top_level(rest):
        by_match = re.search(r"\bby\b", mask_nested(item))
        if by_match:
            item = item[: by_match.start()]
        paren = mask_nested(item).find("(")
        if paren != -1:
            item = item[:paren]
        item = item.strip()
        if item:
            supertypes.append(item)
    return supertypes


def _java_supertypes(header: str, kind: str) -> list[str]:
    rest = header.lstrip()
    if rest.startswith("<"):
        rest = rest[_skip_balanced(rest, 0, "<", ">"):].lstrip()
    if kind == "record" and rest.startswith("("):
        rest = rest[_skip_balanced(rest, 0, "(", ")"):]

    mask = mask_nested(rest)
    clauses = list(re.finditer(r"\b(extends|implements|permits)\b", mask))
    supertypes = []
    for index, clause in enumerate(clauses):
        if clause.group(1) == "permits":
            continue
        end = clauses[index + 1].start() if index + 1 < len(clauses) else len(rest)
        supertypes.extend(split_top_level(rest[clause.end():end]))
    return supertypes


def parse_surface(text: str, language: str) -> list[Declaration]:
    """Find the top-level type declarations of a Kotlin or Java file.

    Args:
        text: Raw file contents.
        language: KOTLIN or JAVA.

    Returns:
        Declarations in source order.
    """
    clean = blank_comments_and_strings(text, language)
    # package and import lines never hold declarations
    clean = re.sub(r"(?m)^[ \t]*(?:package|import)\b[^\n]*", lambda m: " " * len(m.group(0)), clean)
    depths = _brace_depths(clean)

    declarations = []
    position = 0
    for match in _DECLARATION_RE.finditer(clean):
        if match.start() < position or depths[match.start()] != 0:
            continue

        kind, name = match.group(1), match.group(2)
        end = _header_end(clean, match.end(), language)
        header = clean[match.end():end]

        body = ""
        position = end
        if end < len(clean) and clean[end] == "{":
            close = _skip_balanced(clean, end, "{", "}")
            body = clean[end + 1:close - 1] if close <= len(clean) and clean[close - 1] == "}" else clean[end + 1:]
            position = close

        if language == KOTLIN:
            supertypes = _kotlin_supertypes(header)
        else:
            supertypes = _java_supertypes(header, kind)

        declarations.append(
            Declaration(
                name=name,
                kind=kind,
                language=language,
                line=clean.count("\n", 0, match.start()) + 1,
                supertypes=supertypes,
                body=body,
            )
        )

    return declarations


def _outermost_segments(body: str, split_on_newline: bool) -> list[str]:
    """Split a declaration body into its outermost-level statements.

    Nested blocks are dropped entirely; the text before a block (a member
    signature) is kept as its own segment.
    """
    segments = []
    current: list[str] = []
    braces = 0
    parens = 0

    def flush() -> None:
        segment = " ".join("".join(current).split())
        if segment:
            segments.append(segment)
        current.clear()

    for ch in body:
        if braces > 0:
            if ch == "{":
                braces += 1
            elif ch == "}":
                braces -= 1
            continue
        if ch == "{" and parens == 0:
            flush()
            braces = 1
        elif ch == "}" and parens == 0:
            flush()
        elif ch == ";" and parens == 0:
            flush()
        elif ch == "\n" and split_on_newline and parens == 0:
            flush()
        else:
            if ch == "(":
                parens += 1
            elif ch == ")":
                parens = max(parens - 1, 0)
            current.append(ch)
    flush()
    return segments


def _cut_at_top_level(text: str, pattern: str) -> str:
    match = re.search(pattern, mask_nested(text))
    return text[: match.start()] if match else text


def _kotlin_member_types(declaration: Declaration) -> list[str]:
    types = []
    for segment in _outermost_segments(declaration.body, split_on_newline=True):
        fun = _KT_FUN_RE.match(segment)
        if fun:
            if _PRIVATE_RE.search(fun.group("mods")):
                continue
            rest = segment[fun.end():]
            paren = mask_nested(rest).find("(")
            if paren == -1:
                raise SurfaceInferenceError(
                    f"Function without parameter list in '{declaration.name}': {segment}",
                    declaration=declaration.name,
                )
            rest = rest[_skip_balanced(rest, paren, "(", ")"):].strip()
            if not rest.startswith(":"):
                continue
            type_text = _cut_at_top_level(rest[1:], r"=|\bwhere\b").strip()
            if type_text:
                types.append(type_text)
            continue

        prop = _KT_PROPERTY_RE.match(segment)
        if prop:
            if _PRIVATE_RE.search(prop.group("mods")):
                continue
            rest = segment[prop.end():]
            if rest.startswith("<"):
                rest = rest[_skip_balanced(rest, 0, "<", ">"):]
            # initializer or delegate may hold an elvis ?:
            declared = _cut_at_top_level(rest, r"=|\bby\b")
            colon = mask_nested(declared).find(":")
            if colon == -1:
                continue
            type_text = _cut_at_top_level(
                declared[colon + 1:], r"\b[gs]et\b|\b(?:private|protected|internal)\b"
            ).strip()
            if type_text:
                types.append(type_text)
    return types


def _java_member_types(declaration: Declaration) -> list[str]:
    types = []
    for segment in _outermost_segments(declaration.body, split_on_newline=False):
        match = _JAVA_METHOD_RE.match(segment)
        if not match:
            continue
        if _PRIVATE_RE.search(match.group("mods")):
            continue
        type_text = match.group("type")
        if type_text in _JAVA_NOT_TYPES:
            continue
        types.append(type_text)
    return types


def supertype_facts(declaration: Declaration) -> list[TypeFact]:
    """Supertype facts for a declaration; unreadable texts are skipped."""
    facts = []
    for text in declaration.supertypes:
        try:
            name = base_type_name(text)
        except SurfaceInferenceError:
            continue
        if name:
            facts.append(TypeFact(name, SUPERTYPE))
    return facts


def member_facts(declaration: Declaration) -> list[TypeFact]:
    """Member type facts for a declaration.

    Raises:
        SurfaceInferenceError: If any member type cannot be inspected.
    """
    facts = []
    for text in declaration.member_type_texts():
        try:
            name = base_type_name(text)
        except SurfaceInferenceError as e:
            raise SurfaceInferenceError(e.message, declaration=declaration.name) from e
        if name:
            facts.append(TypeFact(name, MEMBER_TYPE))
    return facts
