"""Best-effort garment/pose compatibility guidance."""

from typing import Optional

import structlog

from tryon.services.generation.types import PoseGuidance, ReferenceSet
from tryon.services.providers.gateway import CompatibilityAssessment, ModelProviderGateway

logger = structlog.get_logger()

LOW_COMPATIBILITY_THRESHOLD = 60

FOLLOW_POSE_SENTENCE = "Follow the reference pose exactly."
GENERIC_GUIDANCE = (
    "Follow the provided reference pose exactly, including torso orientation, "
    "limb placement and weight distribution."
)
PROPORTIONS_SENTENCE = (
    "Ensure realistic human proportions with a natural head-to-body ratio, keeping limbs and "
    "torso proportional to a real human reference."
)


def guidance_from_assessment(assessment: Optional[CompatibilityAssessment]) -> PoseGuidance:
    if assessment is None:
        return PoseGuidance(text=GENERIC_GUIDANCE)
    if assessment.recommend_adjustment or assessment.score < LOW_COMPATIBILITY_THRESHOLD:
        text = f"Moderate compatibility ({assessment.score}/100). {assessment.guidance}"
    else:
        text = f"High compatibility ({assessment.score}/100). {assessment.guidance} {FOLLOW_POSE_SENTENCE}"
    return PoseGuidance(text=text, score=assessment.score)


def compose_instruction(prompt: str, guidance: PoseGuidance) -> str:
    """Final instruction sent to image synthesis."""
    return f"{prompt}\n\n{guidance.text}\n{PROPORTIONS_SENTENCE}"


class PoseAdvisor:
    def __init__(self, gateway: ModelProviderGateway):
        self.gateway = gateway

    async def advise(self, references: ReferenceSet) -> PoseGuidance:
        """Score the garment against the pose; never fails the attempt."""
        try:
            assessment = await self.gateway.assess_compatibility(
                references.garments[0],
                references.pose,
                references.garment_category,
                references.piece_type,
                references.pose_metadata.description,
            )
        except Exception as e:
            logger.warning("generation.pose_advisor_failed", error=str(e))
            assessment = None
        return guidance_from_assessment(assessment)
