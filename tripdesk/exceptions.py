"""Domain errors raised by the template engine and its collaborators."""
from __future__ import annotations


class TripdeskError(Exception):
    """Base class for errors the API layer translates into HTTP responses."""


class NotFoundError(TripdeskError, LookupError):
    """A referenced trip, itinerary, day, activity or template does not exist."""


class InvalidArgumentError(TripdeskError, ValueError):
    """The request is well-formed but cannot be honoured."""


class ForbiddenError(TripdeskError, PermissionError):
    """The caller may not act on a resource owned by someone else."""
