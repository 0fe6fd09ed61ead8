"""Provider-neutral interface to the generative model capabilities.

The pipeline only talks to ``ModelProviderGateway``; the Replicate-backed
implementation lives in ``replicate_gateway`` and tests substitute an
in-memory fake.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class ImagePayload:
    """Raw image bytes plus their MIME type."""

    data: bytes
    mime_type: str = "image/png"

    def to_data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @classmethod
    def from_data_uri(cls, value: str) -> Optional["ImagePayload"]:
        """Parse ``data:<mime>;base64,<payload>``; returns None for anything else."""
        if not value or not value.startswith("data:") or ";base64," not in value:
            return None
        header, _, payload = value.partition(";base64,")
        try:
            data = base64.b64decode(payload, validate=True)
        except ValueError:
            return None
        return cls(data=data, mime_type=header[len("data:") :] or "image/png")


@dataclass
class PromptBrief:
    """Structured description of the shot handed to the prompt optimizer."""

    garment_type: str  # "single" | "outfit"
    garment_category: str
    gender: str
    pose_category: str
    height_cm: int
    weight_kg: int
    aspect_ratio: str
    width: int
    height: int
    garment_description: Optional[str] = None
    pose_description: Optional[str] = None
    age_range: Optional[str] = None
    body_size: Optional[str] = None
    facial_expression: Optional[str] = None
    hair_color: Optional[str] = None
    placement_hint: Optional[str] = None
    background: Optional[dict[str, Any]] = None
    refinement_request: Optional[str] = None

    @property
    def is_outfit(self) -> bool:
        return self.garment_type == "outfit"


@dataclass
class PromptResult:
    success: bool
    prompt: Optional[str] = None
    tokens_used: Optional[int] = None
    model: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ImageResult:
    success: bool
    image_bytes: Optional[bytes] = None
    mime_type: str = "image/png"
    tokens_used: Optional[int] = None
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        """True only when the provider reported success and returned bytes."""
        return self.success and bool(self.image_bytes)

    def to_payload(self) -> ImagePayload:
        if not self.image_bytes:
            raise ValueError("ImageResult has no image bytes")
        return ImagePayload(data=self.image_bytes, mime_type=self.mime_type)


@dataclass
class CompatibilityAssessment:
    """Garment/pose fit heuristic. Score is 0-100 and never blocks generation."""

    score: int
    guidance: str
    summary: str = ""
    recommend_adjustment: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


class ModelProviderGateway(Protocol):
    """Capabilities the generation pipeline consumes.

    Implementations report provider failures through ``success=False`` results
    (or ``None`` for the best-effort capabilities) rather than raising.
    """

    async def optimize_prompt(self, brief: PromptBrief) -> PromptResult: ...

    async def synthesize_image(
        self,
        instruction: str,
        garments: list[ImagePayload],
        pose: ImagePayload,
        background: Optional[ImagePayload],
        aspect_ratio: str,
    ) -> ImageResult: ...

    async def apply_edit(self, instruction: str, image: ImagePayload) -> ImageResult: ...

    async def blend_images(self, instruction: str, images: list[ImagePayload]) -> ImageResult: ...

    async def describe_pose(
        self, pose: ImagePayload, category: Optional[str], gender: Optional[str]
    ) -> Optional[str]: ...

    async def assess_compatibility(
        self,
        garment: ImagePayload,
        pose: ImagePayload,
        category: Optional[str],
        piece_type: Optional[str],
        pose_description: Optional[str],
    ) -> Optional[CompatibilityAssessment]: ...
