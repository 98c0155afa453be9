"""Exception types raised by the meal composer."""

from __future__ import annotations


class MealComposerError(Exception):
    """Base class for all meal composer failures."""


class ValidationError(MealComposerError, ValueError):
    """Request is structurally invalid; nothing is committed."""


class ResolutionError(MealComposerError, LookupError):
    """A specific plan, recipe, or shopping item could not be found."""


class SchedulingError(MealComposerError):
    """The slot assignment model could not be solved."""


class ReplacementError(MealComposerError):
    """A recipe replacement failed validation before commit."""


class DiversityError(MealComposerError):
    """A batch of search prompts violates the diversity contract."""


class CollaboratorError(MealComposerError):
    """An external collaborator (generation, retrieval, storage) failed."""
