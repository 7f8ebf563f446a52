"""
Abstract Syntax Tree (AST) nodes for generated SPARQL queries.

The search layer never concatenates query text by hand: it assembles these
nodes and renders them with ``str()``. Terms validate themselves on
construction so that a malformed IRI or variable name fails at build time,
not at the endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union
import re

from phenobase.errors import QueryBuildError

_VARIABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_IRI_FORBIDDEN = re.compile(r'[<>"{}|^`\\\s]')


def escape_string(value: str) -> str:
    """Escape text for use inside a double-quoted SPARQL string literal."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


# =============================================================================
# Term Types (subjects, predicates, objects)
# =============================================================================

@dataclass(frozen=True)
class Variable:
    """A SPARQL variable (e.g., ?uri)."""
    name: str

    def __post_init__(self):
        if not _VARIABLE_NAME.match(self.name):
            raise QueryBuildError(f"Invalid SPARQL variable name: {self.name!r}")

    def __str__(self) -> str:
        return f"?{self.name}"


@dataclass(frozen=True)
class IRI:
    """An absolute IRI, rendered as ``<...>``."""
    value: str

    def __post_init__(self):
        if not self.value or _IRI_FORBIDDEN.search(self.value):
            raise QueryBuildError(f"Invalid IRI: {self.value!r}")

    def __str__(self) -> str:
        return f"<{self.value}>"


@dataclass(frozen=True)
class Literal:
    """A plain string literal."""
    value: Any

    def __str__(self) -> str:
        return f'"{escape_string(str(self.value))}"'


@dataclass(frozen=True)
class ZeroOrMorePath:
    """A predicate followed by any number of hops, e.g. ``rdfs:subClassOf*``."""
    predicate: IRI

    def __str__(self) -> str:
        return f"{self.predicate}*"


Term = Union[Variable, IRI, Literal]


# =============================================================================
# Triple Patterns
# =============================================================================

@dataclass(frozen=True)
class TriplePattern:
    """
    A basic graph pattern.

    Each position can be a variable (for matching) or a concrete term.
    """
    subject: Union[Variable, IRI]
    predicate: Union[Variable, IRI, ZeroOrMorePath]
    object: Term

    def __str__(self) -> str:
        return f"{self.subject} {self.predicate} {self.object} ."


# =============================================================================
# Filter Expressions
# =============================================================================

@dataclass
class FunctionCall:
    """A SPARQL function call (e.g., LANG(?x), REGEX(?label, "a", "i"))."""
    name: str
    arguments: list[Union[Variable, Literal, IRI, "FunctionCall"]]

    def __str__(self) -> str:
        args = ", ".join(str(a) for a in self.arguments)
        return f"{self.name}({args})"


@dataclass
class Equals:
    """An equality test (e.g., LANG(?label) = "")."""
    left: Union[Variable, Literal, IRI, FunctionCall]
    right: Union[Variable, Literal, IRI, FunctionCall]

    def __str__(self) -> str:
        return f"{self.left} = {self.right}"


@dataclass
class Disjunction:
    """Expressions joined with ``||``."""
    operands: list[Union[Equals, FunctionCall]]

    def __str__(self) -> str:
        return f"({' || '.join(str(o) for o in self.operands)})"


@dataclass
class Filter:
    """A FILTER clause constraining query results."""
    expression: Union[Equals, Disjunction, FunctionCall]

    def __str__(self) -> str:
        return f"FILTER({self.expression})"


# =============================================================================
# Group patterns
# =============================================================================

@dataclass
class OptionalPattern:
    """An OPTIONAL { ... } group. Its filters only constrain the optional match."""
    patterns: list[TriplePattern] = field(default_factory=list)
    filters: list[Filter] = field(default_factory=list)

    def render(self, indent: str = "  ") -> list[str]:
        lines = [f"{indent}OPTIONAL {{"]
        for pattern in self.patterns:
            lines.append(f"{indent}  {pattern}")
        for flt in self.filters:
            lines.append(f"{indent}  {flt}")
        lines.append(f"{indent}}}")
        return lines


WhereElement = Union[TriplePattern, OptionalPattern, Filter]


@dataclass
class WhereClause:
    """The WHERE clause: triple patterns, optional groups and filters, in order."""
    elements: list[WhereElement] = field(default_factory=list)

    def render(self) -> list[str]:
        lines = ["WHERE {"]
        for element in self.elements:
            if isinstance(element, OptionalPattern):
                lines.extend(element.render())
            else:
                lines.append(f"  {element}")
        lines.append("}")
        return lines


# =============================================================================
# Query Structure
# =============================================================================

@dataclass(frozen=True)
class Aggregate:
    """An aggregate projection such as ``(COUNT(DISTINCT ?uri) AS ?count)``."""
    function: str
    argument: Optional[Variable]  # None means *
    alias: Variable
    distinct: bool = False

    def __str__(self) -> str:
        distinct_str = "DISTINCT " if self.distinct else ""
        argument = "*" if self.argument is None else str(self.argument)
        return f"({self.function}({distinct_str}{argument}) AS {self.alias})"


Projection = Union[Variable, Aggregate]


@dataclass
class SelectQuery:
    """
    A SELECT query returning variable bindings.

    SELECT DISTINCT ?uri ?label
    WHERE { ?uri rdfs:label ?label }
    ORDER BY ?uri
    LIMIT 20
    OFFSET 0
    """
    projections: list[Projection]
    where: WhereClause = field(default_factory=WhereClause)
    distinct: bool = False
    limit: Optional[int] = None
    offset: Optional[int] = None
    order_by: list[Variable] = field(default_factory=list)  # ascending

    def __str__(self) -> str:
        distinct_str = "DISTINCT " if self.distinct else ""
        parts = [f"SELECT {distinct_str}{' '.join(str(v) for v in self.projections)}"]
        parts.extend(self.where.render())

        if self.order_by:
            parts.append(f"ORDER BY {' '.join(str(v) for v in self.order_by)}")

        if self.limit is not None:
            parts.append(f"LIMIT {self.limit}")

        if self.offset is not None:
            parts.append(f"OFFSET {self.offset}")

        return "\n".join(parts)


@dataclass
class AskQuery:
    """An ASK query returning boolean."""
    where: WhereClause = field(default_factory=WhereClause)

    def __str__(self) -> str:
        return "\n".join(["ASK"] + self.where.render())
