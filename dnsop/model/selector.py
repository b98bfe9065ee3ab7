"""Label selectors used to pick custom weights for a target object."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SelectorOperator(str, Enum):
    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"


class SelectorRequirement(BaseModel):
    """One ``matchExpressions`` clause: ``key <operator> values``."""

    model_config = ConfigDict(frozen=True)

    key: str
    operator: SelectorOperator
    values: tuple[str, ...] = ()

    def validate_requirement(self) -> None:
        """Raise ValueError if the operator and values do not fit together."""
        if not self.key:
            raise ValueError("selector requirement key cannot be empty")
        if self.operator in (SelectorOperator.IN, SelectorOperator.NOT_IN):
            if not self.values:
                raise ValueError(
                    f"values must be non-empty for operator '{self.operator.value}'"
                )
        elif self.values:
            raise ValueError(f"values must be empty for operator '{self.operator.value}'")

    def matches(self, labels: dict[str, str]) -> bool:
        present = self.key in labels
        if self.operator is SelectorOperator.IN:
            return present and labels[self.key] in self.values
        if self.operator is SelectorOperator.NOT_IN:
            return not present or labels[self.key] not in self.values
        if self.operator is SelectorOperator.EXISTS:
            return present
        return not present


class LabelSelector(BaseModel):
    """Equality map plus expression list; every clause must hold (AND).

    An empty selector matches everything, which is why custom weights
    refuse one.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    match_labels: dict[str, str] = Field(default_factory=dict, alias="matchLabels")
    match_expressions: tuple[SelectorRequirement, ...] = Field(
        default_factory=tuple, alias="matchExpressions"
    )

    def is_empty(self) -> bool:
        return not self.match_labels and not self.match_expressions

    def validate_selector(self) -> None:
        for requirement in self.match_expressions:
            requirement.validate_requirement()

    def matches(self, labels: dict[str, str]) -> bool:
        for key, value in self.match_labels.items():
            if labels.get(key) != value:
                return False
        return all(req.matches(labels) for req in self.match_expressions)
