"""SQL Composer — builds administrative SQL from a template with typed placeholders.

Invariants:
    - %I quotes an identifier: always wrapped in double quotes, embedded quotes doubled
    - %L quotes a literal: NULL / TRUE / FALSE / bare integer / single-quoted text
    - %% emits a single percent sign; any other directive is a CompositionError
    - Placeholder count must equal argument count (CompositionError otherwise)
    - NUL bytes are rejected in both kinds (PostgreSQL cannot store them)

Design Decisions:
    - Only two placeholder kinds: no raw %s pass-through, so caller-provided names
      can never reach the wire unescaped
    - Quoting follows PostgreSQL's quote_ident / quote_literal rules, computed
      client-side because DDL (CREATE DATABASE, CREATE ROLE) cannot take bind parameters
"""

import re
from typing import Any

from dbmanager.core.errors import CompositionError

_PLACEHOLDER = re.compile(r"%(.?)", re.DOTALL)


def quote_identifier(name: str, template: str = "") -> str:
    """Quote a single identifier (table, role, database, column)."""
    if not isinstance(name, str):
        raise CompositionError(
            f"Identifier must be a string, got {type(name).__name__}", template,
        )
    if not name:
        raise CompositionError("Identifier must not be empty", template)
    if "\x00" in name:
        raise CompositionError("Identifier must not contain NUL", template)
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: Any, template: str = "") -> str:
    """Quote a single literal value."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    text = str(value)
    if "\x00" in text:
        raise CompositionError("Literal must not contain NUL", template)
    quoted = text.replace("'", "''")
    if "\\" in quoted:
        return "E'" + quoted.replace("\\", "\\\\") + "'"
    return "'" + quoted + "'"


def compose(template: str, *args: Any) -> str:
    """Substitute %I / %L placeholders in template with quoted args."""
    remaining = list(args)

    def _substitute(match: re.Match) -> str:
        kind = match.group(1)
        if kind == "%":
            return "%"
        if kind not in ("I", "L"):
            raise CompositionError(
                f"Unsupported placeholder '%{kind}'", template,
            )
        if not remaining:
            raise CompositionError(
                f"Not enough arguments for template ({len(args)} given)", template,
            )
        value = remaining.pop(0)
        if kind == "I":
            return quote_identifier(value, template)
        return quote_literal(value, template)

    sql = _PLACEHOLDER.sub(_substitute, template)
    if remaining:
        raise CompositionError(
            f"Too many arguments for template ({len(args)} given, "
            f"{len(args) - len(remaining)} used)",
            template,
        )
    return sql


def split_qualified_name(name: str) -> list[str]:
    """Split an already-quoted dotted name ('public."My Seq"') into raw parts.

    Inverse of quote_ident-joined names as produced by pg_get_serial_sequence:
    unquoted parts are case-folded to lower case, quoted parts keep their case
    with doubled quotes collapsed.
    """
    parts: list[str] = []
    i, n = 0, len(name)
    while i < n:
        if name[i] == '"':
            j = i + 1
            buf = []
            while True:
                if j >= n:
                    raise CompositionError(f"Unterminated quoted name: {name}", name)
                if name[j] == '"':
                    if j + 1 < n and name[j + 1] == '"':
                        buf.append('"')
                        j += 2
                        continue
                    break
                buf.append(name[j])
                j += 1
            parts.append("".join(buf))
            i = j + 1
        else:
            j = name.find(".", i)
            j = n if j == -1 else j
            parts.append(name[i:j].lower())
            i = j
        if i < n:
            if name[i] != ".":
                raise CompositionError(f"Malformed qualified name: {name}", name)
            i += 1
            if i == n:
                raise CompositionError(f"Malformed qualified name: {name}", name)
    if not parts or any(p == "" for p in parts):
        raise CompositionError(f"Malformed qualified name: {name}", name)
    return parts

