"""Credit cost calculation tests."""

from tryon.services.generation.costs import calculate_cost
from tryon.services.generation.types import AiTools

PRESET_BACKGROUND = {"enabled": True, "selection": {"type": "preset", "presetId": "beach", "presetName": "Beach"}}


def test_base_only_defaults_to_two_credits():
    cost = calculate_cost(AiTools())

    assert cost.total == 2
    assert cost.edits == {}
    assert cost.as_dict() == {
        "baseGeneration": 2,
        "aiEdits": {"removeBackground": 0, "changeBackground": 0, "addLogo": 0},
        "total": 2,
    }


def test_each_enabled_tool_adds_edit_fee():
    tools = AiTools.from_json(
        {
            "removeBackground": True,
            "changeBackground": PRESET_BACKGROUND,
            "addLogo": {"enabled": True, "logo": "data:image/png;base64,AAAA", "position": "chest"},
        }
    )

    cost = calculate_cost(tools)

    assert cost.edits == {"remove_background": 1, "change_background": 1, "add_logo": 1}
    assert cost.total == 5


def test_background_and_logo_need_concrete_selection():
    """Original background and a logo tool without a logo are free."""
    tools = AiTools.from_json(
        {
            "changeBackground": {"enabled": True, "selection": {"type": "original"}},
            "addLogo": {"enabled": True, "logo": None},
        }
    )
    assert calculate_cost(tools).total == 2

    disabled = AiTools.from_json({"changeBackground": {"enabled": False, "selection": PRESET_BACKGROUND["selection"]}})
    assert calculate_cost(disabled).total == 2


def test_overrides_apply_per_tool_then_generic():
    tools = AiTools.from_json({"removeBackground": True, "changeBackground": PRESET_BACKGROUND})

    cost = calculate_cost(tools, {"base_generation": 4, "ai_edit": 2, "change_background": 5})

    assert cost.base_generation == 4
    assert cost.edits == {"remove_background": 2, "change_background": 5}
    assert cost.total == 11


def test_negative_overrides_ignored():
    tools = AiTools.from_json({"removeBackground": True})

    cost = calculate_cost(tools, {"base_generation": -1, "ai_edit": -3})

    assert cost.total == 3


def test_zero_price_override_is_respected():
    assert calculate_cost(AiTools(), {"base_generation": 0}).total == 0
