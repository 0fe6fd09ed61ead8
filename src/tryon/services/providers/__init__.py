"""Model provider integrations."""

from tryon.services.providers.gateway import (
    CompatibilityAssessment,
    ImagePayload,
    ImageResult,
    ModelProviderGateway,
    PromptBrief,
    PromptResult,
)

__all__ = [
    "CompatibilityAssessment",
    "ImagePayload",
    "ImageResult",
    "ModelProviderGateway",
    "PromptBrief",
    "PromptResult",
]
