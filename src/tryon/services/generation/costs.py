"""Credit cost calculation for a generation attempt.

Pure functions: no I/O. The price table is loaded by the caller and passed in.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

from tryon.services.generation.types import AiTools

BASE_GENERATION = "base_generation"
AI_EDIT = "ai_edit"
REMOVE_BACKGROUND = "remove_background"
CHANGE_BACKGROUND = "change_background"
ADD_LOGO = "add_logo"

PRICING_ACTIONS = [BASE_GENERATION, AI_EDIT, REMOVE_BACKGROUND, CHANGE_BACKGROUND, ADD_LOGO]

DEFAULT_PRICES = {BASE_GENERATION: 2, AI_EDIT: 1}


@dataclass(frozen=True)
class CostBreakdown:
    base_generation: int
    edits: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.base_generation + sum(self.edits.values())

    def as_dict(self) -> dict[str, Any]:
        return {
            "baseGeneration": self.base_generation,
            "aiEdits": {
                "removeBackground": self.edits.get(REMOVE_BACKGROUND, 0),
                "changeBackground": self.edits.get(CHANGE_BACKGROUND, 0),
                "addLogo": self.edits.get(ADD_LOGO, 0),
            },
            "total": self.total,
        }


def _price(overrides: Mapping[str, int], action: str, fallback: int) -> int:
    value = overrides.get(action)
    if value is None or value < 0:
        return fallback
    return int(value)


def calculate_cost(tools: AiTools, overrides: Mapping[str, int] | None = None) -> CostBreakdown:
    """Compute the credit cost of an attempt.

    The base fee is always charged. Each enabled optional tool adds one edit
    fee; a tool-specific price (keyed by the tool name) overrides the generic
    ``ai_edit`` price. A background change is only chargeable with a concrete,
    non-original selection, and the logo only when a logo asset is present.
    """
    overrides = overrides or {}
    base = _price(overrides, BASE_GENERATION, DEFAULT_PRICES[BASE_GENERATION])
    edit_fee = _price(overrides, AI_EDIT, DEFAULT_PRICES[AI_EDIT])

    edits: dict[str, int] = {}
    if tools.remove_background:
        edits[REMOVE_BACKGROUND] = _price(overrides, REMOVE_BACKGROUND, edit_fee)
    if tools.change_background.wants_custom:
        edits[CHANGE_BACKGROUND] = _price(overrides, CHANGE_BACKGROUND, edit_fee)
    if tools.add_logo.active:
        edits[ADD_LOGO] = _price(overrides, ADD_LOGO, edit_fee)

    return CostBreakdown(base_generation=base, edits=edits)
