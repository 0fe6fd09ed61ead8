"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from tryon.models.customization import (
    BackgroundPreset,
    GenerationCustomization,
    ImageFormatPreset,
)
from tryon.models.generation import Generation, GenerationStatus, InvalidStateTransition
from tryon.models.ledger import CreditTransaction
from tryon.models.pose import ModelPose, SavedModel
from tryon.models.pricing import CreditPricing, EditingTool
from tryon.models.result import GeneratedPrompt, GenerationEdit, GenerationResult
from tryon.models.upload import UserUpload
from tryon.models.user import User

__all__ = [
    "User",
    "UserUpload",
    "ModelPose",
    "SavedModel",
    "GenerationCustomization",
    "ImageFormatPreset",
    "BackgroundPreset",
    "CreditPricing",
    "EditingTool",
    "Generation",
    "GenerationStatus",
    "InvalidStateTransition",
    "GeneratedPrompt",
    "GenerationResult",
    "GenerationEdit",
    "CreditTransaction",
]
