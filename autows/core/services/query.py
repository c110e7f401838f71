"""
Package queries — match packages against a textual query.

Queries have the form ``FIELD=VALUE:FIELD~VALUE:...``.  ``F=V`` asks for
an exact match, ``F~V`` allows partial, case-insensitive matches, and a
bare string ``S`` is a shorthand for "name~S or srcdir~S".  All clauses
must match; the result of a match is a priority, the weakest clause
deciding for the whole query:

    EXACT (4) > PARTIAL (3) > DIR_PREFIX_STRONG (2) > DIR_PREFIX_WEAK (1)

Fields:
    autobuild.name        package name            (shortcut: name)
    autobuild.srcdir      source directory
    autobuild.class.name  build class             (shortcut: class)
    vcs.type              VCS type
    vcs.url               VCS URL                 (shortcut: vcs)
    package_set.name      defining package set    (shortcut: package_set)
"""

from __future__ import annotations

import re
from typing import Callable, Protocol, Sequence, Union

from autows.core.errors import QueryError
from autows.core.models.vcs import VCSDefinition

EXACT = 4
PARTIAL = 3
DIR_PREFIX_STRONG = 2
DIR_PREFIX_WEAK = 1


class PackageDescription(Protocol):
    """What a query needs to know about a package."""

    name: str
    srcdir: str
    class_name: str
    package_set: str
    vcs: VCSDefinition


# ── Field registry ──────────────────────────────────────────────

FIELD_ACCESSORS: dict[str, Callable[[PackageDescription], object]] = {
    "autobuild.name": lambda pkg: pkg.name,
    "autobuild.srcdir": lambda pkg: pkg.srcdir,
    "autobuild.class.name": lambda pkg: pkg.class_name,
    "vcs.type": lambda pkg: pkg.vcs.type,
    "vcs.url": lambda pkg: pkg.vcs.url,
    "package_set.name": lambda pkg: pkg.package_set,
}

FIELD_SHORTCUTS: dict[str, str] = {
    "name": "autobuild.name",
    "class": "autobuild.class.name",
    "vcs": "vcs.url",
    "package_set": "package_set.name",
}


# ── Matchers ────────────────────────────────────────────────────


class AllMatcher:
    """Matches every package."""

    def match(self, pkg: PackageDescription) -> bool:
        return True


class OrMatcher:
    """Best priority among the sub-matches that succeed."""

    def __init__(self, submatches: Sequence[Matcher]) -> None:
        self.submatches = list(submatches)

    def match(self, pkg: PackageDescription) -> int | None:
        priorities = [p for p in (m.match(pkg) for m in self.submatches) if p is not None]
        return max(priorities) if priorities else None


class AndMatcher:
    """Weakest priority of the sub-matches, or no match if one fails."""

    def __init__(self, submatches: Sequence[Matcher]) -> None:
        self.submatches = list(submatches)

    def match(self, pkg: PackageDescription) -> int | None:
        priorities = []
        for m in self.submatches:
            p = m.match(pkg)
            if p is None:
                return None
            priorities.append(p)
        return min(priorities)


class Query:
    """A single ``FIELD=VALUE`` or ``FIELD~VALUE`` clause."""

    def __init__(self, field: str, value: str, partial: bool = False) -> None:
        field = FIELD_SHORTCUTS.get(field, field)
        if field not in FIELD_ACCESSORS:
            raise QueryError(f"{field} is not a known query key")

        self.field = field
        self.value = value
        self.partial = partial
        self._accessor = FIELD_ACCESSORS[field]
        self._value_rx = re.compile(re.escape(value), re.IGNORECASE)

        directories = value.split("/")
        while directories and not directories[-1]:
            directories.pop()
        self.use_dir_prefix = "/" in value and bool(directories)
        if self.use_dir_prefix:
            self._dir_prefix_weak_rx = re.compile(
                "/".join(rf"{re.escape(d)}\w*" for d in directories), re.IGNORECASE
            )
            head = "/".join(rf"{re.escape(d)}\w*" for d in directories[:-1])
            self._dir_prefix_strong_rx = re.compile(
                rf"{head}/{re.escape(directories[-1])}$", re.IGNORECASE
            )

    def __repr__(self) -> str:
        op = "~" if self.partial else "="
        return f"<Query {self.field}{op}{self.value}>"

    def match(self, pkg: PackageDescription) -> int | None:
        """Priority of ``pkg`` for this clause, or None if it does not match."""
        return self.match_value(self._accessor(pkg))

    def match_value(self, raw: object) -> int | None:
        """Same as ``match``, on an already-extracted field value."""
        pkg_value = "" if raw is None else str(raw)

        if pkg_value == self.value:
            return EXACT
        if not self.partial:
            return None

        if self._value_rx.search(pkg_value):
            return PARTIAL

        if self.use_dir_prefix:
            if self._dir_prefix_strong_rx.search(pkg_value):
                return DIR_PREFIX_STRONG
            if self._dir_prefix_weak_rx.search(pkg_value):
                return DIR_PREFIX_WEAK
        return None

    # ── Parsing ─────────────────────────────────────────────────

    @staticmethod
    def all() -> AllMatcher:
        return AllMatcher()

    @classmethod
    def parse(cls, text: str) -> Query:
        """Parse one ``FIELD=VALUE`` / ``FIELD~VALUE`` clause.

        Raises:
            QueryError: if the field is unknown or the clause has no operator.
        """
        field, sep, value = text.partition("=")
        partial = False
        if not sep:
            field, sep, value = text.partition("~")
            partial = True
        if not sep:
            raise QueryError(f"'{text}' is not a FIELD=VALUE or FIELD~VALUE clause")
        return cls(field, value, partial)

    @classmethod
    def parse_query(cls, query: str | None) -> Matcher:
        """Parse a complete ``:``-separated query.  No query matches everything."""
        if not query:
            return cls.all()

        clauses: list[Matcher] = []
        for text in query.split(":"):
            if "=" in text or "~" in text:
                clauses.append(cls.parse(text))
            else:
                clauses.append(OrMatcher([
                    cls("autobuild.name", text, partial=True),
                    cls("autobuild.srcdir", text, partial=True),
                ]))

        if len(clauses) == 1:
            return clauses[0]
        return AndMatcher(clauses)


Matcher = Union[Query, OrMatcher, AndMatcher, AllMatcher]


def find_matches(matcher: Matcher, packages) -> list[tuple[PackageDescription, int]]:
    """Packages matching ``matcher`` with their priority, best first.

    Packages of equal priority keep their input order.
    """
    results = []
    for pkg in packages:
        priority = matcher.match(pkg)
        if priority is None or priority is False:
            continue
        results.append((pkg, int(priority)))
    results.sort(key=lambda item: -item[1])
    return results
