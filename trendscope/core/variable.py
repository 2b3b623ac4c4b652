# trendscope/core/variable.py
from __future__ import annotations

from dataclasses import dataclass

from .exceptions import InvalidVariable


@dataclass(frozen=True, slots=True, order=True)
class VariableId:
    """Identity of a variable: the (series_key, aux_attribute) pair seen in raw records."""

    series_key: str
    aux_attribute: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.series_key, str) or not self.series_key.strip():
            raise InvalidVariable("VariableId.series_key must be a non-empty string.")
        if self.aux_attribute is None:
            object.__setattr__(self, "aux_attribute", "")
        elif not isinstance(self.aux_attribute, str):
            raise InvalidVariable("VariableId.aux_attribute must be a string.")

    @property
    def label(self) -> str:
        aux = self.aux_attribute.strip()
        return f"{self.series_key} ({aux})" if aux else self.series_key

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True, slots=True)
class Variable:
    """
    A selectable variable.

    `selected` belongs to the surrounding UI. The core copies it through
    unchanged and never flips it.
    """
    id: VariableId
    display_label: str | None = None
    selected: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.id, VariableId):
            raise InvalidVariable("Variable.id must be a VariableId instance.")

        # Default the label to the deterministic composition of the identity.
        if self.display_label is None:
            object.__setattr__(self, "display_label", self.id.label)
        elif not isinstance(self.display_label, str):
            raise InvalidVariable("Variable.display_label must be a string.")

    @classmethod
    def from_key(cls, series_key: str, aux_attribute: str = "", *, selected: bool = False) -> "Variable":
        return cls(id=VariableId(series_key, aux_attribute), selected=selected)

    @property
    def series_key(self) -> str:
        return self.id.series_key

    @property
    def aux_attribute(self) -> str:
        return self.id.aux_attribute

    def with_selected(self, selected: bool) -> "Variable":
        # For UI code; the core itself never calls this.
        return Variable(id=self.id, display_label=self.display_label, selected=selected)
