"""
Validation errors with actionable diagnostics for clustering inputs.

These error classes describe what went wrong, what was expected and which
hit or parameter caused it. Error codes enable programmatic handling.

Error Codes:
    E001_INVALID_PARAMETER: Algorithm parameter outside its valid range
    E002_LENGTH_MISMATCH: Hit arrays of different lengths
    E003_LAYER_OUT_OF_RANGE: Layer id outside [0, n_layers)
    E004_NON_FINITE: NaN or infinite coordinate or weight
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ValidationError:
    """Base class for validation errors with actionable diagnostics.

    Attributes
    ----------
    message : str
        Human-readable error description
    error_code : str
        Machine-readable error code for programmatic handling
    expected : Any
        What the validator expected to find
    found : Any
        What was actually found
    suggestion : str
        Actionable suggestion for fixing the error
    context : Dict[str, Any]
        Additional context for debugging
    """

    message: str
    error_code: str = "E000_UNKNOWN"
    expected: Any = None
    found: Any = None
    suggestion: str = ""
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error as human-readable multi-line string."""
        parts = [f"[{self.error_code}] {self.message}"]
        if self.expected is not None:
            parts.append(f"  Expected: {self.expected}")
        if self.found is not None:
            parts.append(f"  Found: {self.found}")
        if self.suggestion:
            parts.append(f"  Suggestion: {self.suggestion}")
        return "\n".join(parts)


@dataclass
class InvalidParameterError(ValidationError):
    """Error for an algorithm parameter outside its valid range."""

    error_code: str = "E001_INVALID_PARAMETER"
    parameter: str = ""

    def __post_init__(self):
        if not self.suggestion and self.parameter:
            self.suggestion = f"Set '{self.parameter}' to {self.expected}."


@dataclass
class LengthMismatchError(ValidationError):
    """Error for hit arrays that are not index-aligned."""

    error_code: str = "E002_LENGTH_MISMATCH"
    lengths: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        if not self.suggestion and self.lengths:
            self.suggestion = (
                "Pass x, y, layer and weight with one entry per hit "
                f"(got {', '.join(f'{k}={v}' for k, v in self.lengths.items())})."
            )


@dataclass
class LayerOutOfRangeError(ValidationError):
    """Error for a layer id outside the configured layer range.

    Reports the first offending hit so it can be located in the input.
    """

    error_code: str = "E003_LAYER_OUT_OF_RANGE"
    hit_index: int = -1
    n_bad: int = 0

    def __post_init__(self):
        if not self.suggestion:
            self.suggestion = (
                "Increase 'n_layers' in the configuration or fix the layer "
                f"numbering ({self.n_bad} hit(s) affected)."
            )


@dataclass
class NonFiniteValueError(ValidationError):
    """Error for NaN or infinite values in hit coordinates or weights."""

    error_code: str = "E004_NON_FINITE"
    column_name: str = ""
    hit_index: int = -1


@dataclass
class ValidationResult:
    """Result of validation with the errors found.

    Attributes
    ----------
    is_valid : bool
        True if validation passed (no errors)
    errors : List[ValidationError]
        List of validation errors (empty if valid)

    Example
    -------
    >>> result = config.validate()
    >>> result.raise_if_invalid("clustering configuration")
    """

    is_valid: bool = True
    errors: List[ValidationError] = field(default_factory=list)

    def add_error(self, error: ValidationError) -> None:
        """Record an error and mark the result invalid."""
        self.errors.append(error)
        self.is_valid = False

    def raise_if_invalid(self, context: str = "") -> None:
        """Raise ValueError if validation failed.

        Parameters
        ----------
        context : str
            Additional context for the error message (e.g., "hit input")

        Raises
        ------
        ValueError
            If validation failed, with formatted error details
        """
        if not self.is_valid:
            error_msgs = [str(e) for e in self.errors]
            context_str = f" for {context}" if context else ""
            msg = f"Validation failed{context_str}:\n\n" + "\n\n".join(error_msgs)
            raise ValueError(msg)

    @property
    def error_codes(self) -> List[str]:
        return [e.error_code for e in self.errors]
