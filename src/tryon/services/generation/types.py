"""Value types shared by the generation pipeline stages.

Expected failures travel as ``GenerationFailure`` return values; each stage
returns either its product or a failure, and the pipeline stops at the first
failure it sees.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, TypeVar, Union
from uuid import UUID

from tryon.models.upload import UserUpload
from tryon.services.providers.gateway import ImagePayload


class FailureKind(str, Enum):
    VALIDATION = "validation"
    AUTH = "auth"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    CONTENT_SAFETY = "content_safety"
    PROMPT_OPTIMIZATION = "prompt_optimization"
    SYNTHESIS = "synthesis"
    PERSISTENCE = "persistence"
    INTERNAL = "internal"


_STATUS_CODES = {
    FailureKind.VALIDATION: 400,
    FailureKind.AUTH: 401,
    FailureKind.FORBIDDEN: 403,
    FailureKind.NOT_FOUND: 404,
    FailureKind.INSUFFICIENT_CREDITS: 402,
    FailureKind.CONTENT_SAFETY: 500,
    FailureKind.PROMPT_OPTIMIZATION: 500,
    FailureKind.SYNTHESIS: 502,
    FailureKind.PERSISTENCE: 500,
    FailureKind.INTERNAL: 500,
}


@dataclass
class GenerationFailure:
    """Typed, expected failure of a generation attempt."""

    kind: FailureKind
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)
    # Stored on the generation record instead of the user-facing message
    record_message: Optional[str] = None

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.kind]

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, **self.details}
        if self.retryable:
            body["retryable"] = True
        return body


@dataclass
class GenerationSucceeded:
    generation_id: UUID
    preview_url: str
    thumbnail_url: Optional[str]
    credits_used: int
    credits_remaining: int
    ai_edits_applied: list[str]

    status_code: int = 200

    def to_body(self) -> dict[str, Any]:
        return {
            "success": True,
            "generationId": str(self.generation_id),
            "previewUrl": self.preview_url,
            "thumbnailUrl": self.thumbnail_url,
            "creditsUsed": self.credits_used,
            "creditsRemaining": self.credits_remaining,
            "aiEditsApplied": list(self.ai_edits_applied),
        }


GenerationOutcome = Union[GenerationSucceeded, GenerationFailure]

T = TypeVar("T")
StageResult = Union[T, GenerationFailure]


@dataclass
class GenerationRequest:
    """Inbound request, not yet validated."""

    user_id: UUID
    upload_ids: Any
    regeneration_type: Any = None
    improvement_text: Any = None


# Pose sources


@dataclass(frozen=True)
class CatalogPose:
    pose_id: UUID

    @property
    def kind(self) -> str:
        return "catalog"


@dataclass(frozen=True)
class OriginalUploadAsPose:
    upload_id: UUID

    @property
    def kind(self) -> str:
        return "original_upload"


@dataclass(frozen=True)
class SavedCustomModel:
    model_id: UUID

    @property
    def kind(self) -> str:
        return "saved_model"


PoseSource = Union[CatalogPose, OriginalUploadAsPose, SavedCustomModel]

ORIGINAL_POSE_PREFIX = "original:"
SAVED_MODEL_POSE_PREFIX = "user-model:"


def parse_pose_reference(value: Optional[str]) -> Optional[PoseSource]:
    """Parse a stored pose reference string into its variant.

    ``original:<upload id>`` and ``user-model:<model id>`` select the two
    non-catalog sources; anything else is a catalog pose id. Returns None for
    an empty or malformed reference.
    """
    if not value:
        return None
    try:
        if value.startswith(ORIGINAL_POSE_PREFIX):
            return OriginalUploadAsPose(UUID(value[len(ORIGINAL_POSE_PREFIX) :]))
        if value.startswith(SAVED_MODEL_POSE_PREFIX):
            return SavedCustomModel(UUID(value[len(SAVED_MODEL_POSE_PREFIX) :]))
        return CatalogPose(UUID(value))
    except ValueError:
        return None


@dataclass
class PoseMetadata:
    gender: str = "FEMALE"
    age_min: Optional[int] = 20
    age_max: Optional[int] = 40
    age_range: Optional[str] = "TWENTIES"
    ethnicity: str = "MIXED"
    category: str = "standing"
    description: Optional[str] = None


# Customization


@dataclass
class BackgroundTool:
    enabled: bool = False
    selection: Optional[dict[str, Any]] = None

    @property
    def selection_type(self) -> Optional[str]:
        return (self.selection or {}).get("type")

    @property
    def keeps_original(self) -> bool:
        return self.selection_type == "original"

    @property
    def wants_custom(self) -> bool:
        """Enabled with a concrete non-original selection."""
        return self.enabled and self.selection is not None and not self.keeps_original

    @property
    def mode(self) -> str:
        return (self.selection or {}).get("mode") or "integrated"

    @property
    def description(self) -> str:
        selection = self.selection or {}
        kind = self.selection_type
        if kind == "preset":
            return selection.get("presetName") or selection.get("presetId") or "preset background"
        if kind == "ai":
            return selection.get("aiPrompt") or "custom AI-generated background"
        if kind == "custom":
            return selection.get("customFileName") or "custom uploaded background"
        return "original garment background"


@dataclass
class LogoTool:
    enabled: bool = False
    logo: Optional[str] = None
    position: str = "center"

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.logo)


@dataclass
class AiTools:
    remove_background: bool = False
    change_background: BackgroundTool = field(default_factory=BackgroundTool)
    add_logo: LogoTool = field(default_factory=LogoTool)

    @classmethod
    def from_json(cls, raw: Optional[dict[str, Any]]) -> "AiTools":
        """Build from the stored ``ai_tools`` JSON (camelCase keys as the UI saves them)."""
        raw = raw or {}
        background = raw.get("changeBackground") or {}
        logo = raw.get("addLogo") or {}
        return cls(
            remove_background=bool(raw.get("removeBackground")),
            change_background=BackgroundTool(
                enabled=bool(background.get("enabled")),
                selection=background.get("selection") or None,
            ),
            add_logo=LogoTool(
                enabled=bool(logo.get("enabled")),
                logo=logo.get("logo") or None,
                position=logo.get("position") or "center",
            ),
        )

    def snapshot(self) -> dict[str, Any]:
        return {
            "removeBackground": self.remove_background,
            "changeBackground": {
                "enabled": self.change_background.enabled,
                "selection": self.change_background.selection,
            },
            "addLogo": {"enabled": self.add_logo.enabled, "hasLogo": bool(self.add_logo.logo)},
        }


@dataclass
class CustomizationProfile:
    height_cm: int = 170
    weight_kg: int = 60
    age_range: Optional[str] = None
    body_size: Optional[str] = None
    facial_expression: Optional[str] = None
    hair_color: Optional[str] = None
    aspect_ratio: str = "3:4"
    width: int = 864
    height: int = 1184
    tools: AiTools = field(default_factory=AiTools)

    def snapshot(self) -> dict[str, Any]:
        return {
            "height": self.height_cm,
            "weight": self.weight_kg,
            "ageRange": self.age_range,
            "bodySize": self.body_size,
            "facialExpression": self.facial_expression,
            "hairColor": self.hair_color,
            "aspectRatio": self.aspect_ratio,
            "aiTools": self.tools.snapshot(),
        }


class BackgroundStrategy(str, Enum):
    """How a custom background reaches the final image; decided once per attempt."""

    NO_BACKGROUND = "no_background"
    INTEGRATED = "integrated"
    DEFERRED_EDIT = "deferred_edit"


@dataclass
class ReferenceSet:
    """Everything resolved for one attempt before any paid side effect."""

    user_id: UUID
    available_credits: int
    uploads: list[UserUpload]
    garments: list[ImagePayload]
    pose: ImagePayload
    pose_source: PoseSource
    pose_reference: str
    pose_metadata: PoseMetadata
    profile: CustomizationProfile
    background: Optional[ImagePayload] = None
    logo: Optional[ImagePayload] = None

    @property
    def primary_upload(self) -> UserUpload:
        return self.uploads[0]

    @property
    def garment_type(self) -> str:
        return "outfit" if len(self.uploads) > 1 else "single"

    @property
    def garment_category(self) -> Optional[str]:
        return self.primary_upload.garment.get("category")

    @property
    def garment_description(self) -> Optional[str]:
        return self.primary_upload.garment.get("description")

    @property
    def piece_type(self) -> Optional[str]:
        return self.primary_upload.piece_type


@dataclass
class SynthesizedPrompt:
    text: str
    model: str
    tokens_used: Optional[int]
    is_minor: bool


@dataclass
class PoseGuidance:
    text: str
    score: Optional[int] = None


@dataclass
class EditedImage:
    image: ImagePayload
    applied_edits: list[str]
