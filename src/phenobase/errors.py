"""
Exceptions raised by the PhenoBase search and storage layers.

Search outcomes that are not failures (no results, unsatisfiable filters)
are not exceptions; see phenobase.search.pagination.Outcome.
"""

from __future__ import annotations

from typing import Iterable, Optional


class PhenobaseError(Exception):
    """Base class for all PhenoBase errors."""
    pass


class ValidationError(PhenobaseError):
    """
    A referenced entity does not exist or is of the wrong kind, or a
    write payload is invalid.

    Carries one message per offending item so the REST layer can report
    them all at once.
    """

    def __init__(self, messages: Iterable[str] | str):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class StoreFailure(PhenobaseError):
    """A backing store is unreachable, rejected a query or returned an inconsistent result."""

    def __init__(self, store: str, message: str):
        self.store = store
        super().__init__(f"[{store}] {message}")


class UnsupportedOperation(PhenobaseError):
    """A mutation is not implemented for an entity family."""

    def __init__(self, family: str, operation: str):
        self.family = family
        self.operation = operation
        super().__init__(f"{operation} is not supported for {family}")


class MaterializationError(PhenobaseError):
    """A result row lacks a binding that the entity requires."""

    def __init__(self, entity: str, binding: str, subject: Optional[str] = None):
        self.entity = entity
        self.binding = binding
        self.subject = subject
        where = f" for <{subject}>" if subject else ""
        super().__init__(f"Missing required binding ?{binding} in {entity} row{where}")


class QueryBuildError(PhenobaseError, ValueError):
    """A query could not be built from the given terms (invalid IRI, variable name...)."""
    pass
