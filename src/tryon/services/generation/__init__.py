"""Generation orchestration pipeline."""

from tryon.services.generation.pipeline import GenerationPipeline
from tryon.services.generation.types import (
    FailureKind,
    GenerationFailure,
    GenerationOutcome,
    GenerationRequest,
    GenerationSucceeded,
)

__all__ = [
    "FailureKind",
    "GenerationFailure",
    "GenerationOutcome",
    "GenerationPipeline",
    "GenerationRequest",
    "GenerationSucceeded",
]
