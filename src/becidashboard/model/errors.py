"""
Error Taxonomy
==============
Every error the controller can raise internally. None of them is meant to
escape a user interaction: the controller logs them and degrades silently.
"""


class DashboardError(Exception):
    """Base class for all recoverable dashboard errors."""


class UnknownThemeError(DashboardError, KeyError):
    """A theme or sub-theme id that is not declared in the registry."""

    def __init__(self, theme_id: str, parent_id: str | None = None) -> None:
        self.theme_id = theme_id
        self.parent_id = parent_id
        if parent_id:
            msg = f"Unknown sub-theme '{theme_id}' under theme '{parent_id}'"
        else:
            msg = f"Unknown theme '{theme_id}'"
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.args[0]


class MetadataUnavailable(DashboardError):
    """Temporal metadata for a layer resolved empty or failed."""

    def __init__(self, layer_id: str, reason: str = "no metadata") -> None:
        self.layer_id = layer_id
        super().__init__(f"Temporal metadata unavailable for '{layer_id}': {reason}")


class MalformedSnapshot(DashboardError):
    """A persisted session snapshot failed validation."""


class FilterParseAnomaly(DashboardError, ValueError):
    """An entity string could not be split with the grouped-delimiter grammar."""

    def __init__(self, text: str, token: str, reason: str) -> None:
        self.text = text
        self.token = token
        super().__init__(f"Cannot parse token '{token}' in '{text}': {reason}")
