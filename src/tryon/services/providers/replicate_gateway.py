"""Replicate-backed model provider gateway with error classification."""

import asyncio
import json
from typing import Any, Optional

import httpx
import replicate
import structlog
from replicate.exceptions import ReplicateError as ReplicateAPIError

from tryon.services.providers import prompts
from tryon.services.providers.gateway import (
    CompatibilityAssessment,
    ImagePayload,
    ImageResult,
    PromptBrief,
    PromptResult,
)

logger = structlog.get_logger()


class ReplicateError(Exception):
    """Base class for categorized Replicate API errors."""

    retryable: bool = False


class TransientError(ReplicateError):
    """Transient errors that may succeed on retry (network, rate limits, service unavailability)."""

    retryable = True


class ContentPolicyError(ReplicateError):
    """Request rejected by the provider's content safety filter."""

    retryable = True


class PermanentError(ReplicateError):
    """Permanent errors that should not be retried (auth, validation)."""

    retryable = False


def classify_error(exception: Exception) -> ReplicateError:
    """Classify exception into retry category.

    Args:
        exception: Original exception from Replicate SDK or network layer

    Returns:
        Classified ReplicateError subclass instance

    Classification rules:
        - Timeout errors → TransientError
        - 429 (rate limit) → TransientError
        - 503 (service unavailable) → TransientError
        - 401/403 (authentication) → PermanentError
        - Content policy / prohibited content → ContentPolicyError
        - Connection errors → TransientError
        - Anything else → PermanentError
    """
    error_message = str(exception)
    error_message_lower = error_message.lower()

    if "timeout" in error_message_lower or isinstance(exception, TimeoutError):
        return TransientError(f"Network timeout: {error_message}")

    if "429" in error_message or "rate limit" in error_message_lower:
        return TransientError(f"Rate limit exceeded: {error_message}")

    if "503" in error_message or "service unavailable" in error_message_lower:
        return TransientError(f"Service unavailable: {error_message}")

    if (
        "401" in error_message
        or "403" in error_message
        or "unauthorized" in error_message_lower
        or "forbidden" in error_message_lower
        or "authentication" in error_message_lower
        or "invalid api token" in error_message_lower
    ):
        return PermanentError(f"Authentication failed: {error_message}")

    if (
        "content policy" in error_message_lower
        or "prohibited" in error_message_lower
        or "nsfw" in error_message_lower
        or "safety" in error_message_lower
        or "inappropriate" in error_message_lower
    ):
        return ContentPolicyError(f"Content policy violation: {error_message}")

    if isinstance(exception, (ConnectionError, OSError)):
        return TransientError(f"Connection error: {error_message}")

    return PermanentError(f"Permanent error: {error_message}")


class ReplicateGateway:
    """ModelProviderGateway implementation running hosted models on Replicate.

    Image capabilities (synthesis, edit, blend) use a multi-image editing model;
    text capabilities (prompt optimization, pose description, compatibility
    advice) use a multimodal text model. The Replicate SDK is synchronous, so
    every call runs in a worker thread.
    """

    def __init__(
        self,
        api_token: str,
        image_model: str = "google/nano-banana",
        text_model: str = "google/gemini-2.5-flash",
        advisor_model: str = "google/gemini-2.5-flash",
        http_timeout: float = 60.0,
        client: Any = None,
    ):
        self.api_token = api_token
        self.image_model = image_model
        self.text_model = text_model
        self.advisor_model = advisor_model
        self.http_timeout = http_timeout
        self.client = client or replicate.Client(api_token=api_token)

    async def _run(self, model: str, payload: dict[str, Any]) -> Any:
        """Run a model and classify any failure.

        Raises:
            ReplicateError: Classified failure (TransientError, ContentPolicyError, PermanentError)
        """
        if not self.api_token:
            raise PermanentError("REPLICATE_API_TOKEN not configured")

        try:
            return await asyncio.to_thread(self.client.run, model, input=payload)
        except ReplicateAPIError as e:
            raise classify_error(e) from e
        except (ConnectionError, OSError, TimeoutError) as e:
            raise classify_error(e) from e
        except Exception as e:
            # Unknown SDK failures are not retried
            raise PermanentError(f"Unexpected error: {e}") from e

    async def _predict(self, model: str, payload: dict[str, Any]) -> tuple[Any, dict[str, Any]]:
        """Run a model as a prediction so its usage metrics come back with the output.

        Raises:
            ReplicateError: Classified failure, including predictions that end failed or canceled
        """
        if not self.api_token:
            raise PermanentError("REPLICATE_API_TOKEN not configured")

        def create_and_wait():
            prediction = self.client.models.predictions.create(model=model, input=payload)
            prediction.wait()
            return prediction

        try:
            prediction = await asyncio.to_thread(create_and_wait)
        except ReplicateAPIError as e:
            raise classify_error(e) from e
        except (ConnectionError, OSError, TimeoutError) as e:
            raise classify_error(e) from e
        except Exception as e:
            raise PermanentError(f"Unexpected error: {e}") from e

        if prediction.status != "succeeded":
            raise classify_error(Exception(prediction.error or f"Prediction {prediction.status}"))
        return prediction.output, prediction.metrics or {}

    async def _read_image_output(self, output: Any) -> ImagePayload:
        """Turn a model output (file object, URL or list of either) into bytes."""
        if isinstance(output, list):
            if not output:
                raise PermanentError("Model returned an empty output list")
            output = output[0]

        if hasattr(output, "read"):
            data = await asyncio.to_thread(output.read)
            return ImagePayload(data=data, mime_type="image/png")

        url = str(output)
        if not url.startswith("http"):
            raise PermanentError(f"Unexpected output format from Replicate: {type(output)}")

        try:
            async with httpx.AsyncClient(timeout=self.http_timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransientError(f"Failed to download model output: {e}") from e

        mime_type = response.headers.get("content-type", "image/png").split(";")[0]
        return ImagePayload(data=response.content, mime_type=mime_type)

    @staticmethod
    def _join_text(output: Any) -> str:
        if isinstance(output, str):
            return output.strip()
        return "".join(str(chunk) for chunk in output).strip()

    async def _run_image(self, instruction: str, images: list[ImagePayload], aspect_ratio: str | None) -> ImageResult:
        payload: dict[str, Any] = {
            "prompt": instruction,
            "image_input": [image.to_data_uri() for image in images],
            "output_format": "png",
        }
        if aspect_ratio:
            payload["aspect_ratio"] = aspect_ratio

        try:
            output = await self._run(self.image_model, payload)
            image = await self._read_image_output(output)
        except ReplicateError as e:
            logger.warning(
                "replicate.image_call_failed",
                model=self.image_model,
                error_type=type(e).__name__,
                error=str(e),
            )
            return ImageResult(success=False, error=str(e))

        return ImageResult(success=True, image_bytes=image.data, mime_type=image.mime_type)

    async def optimize_prompt(self, brief: PromptBrief) -> PromptResult:
        system = prompts.OPTIMIZER_SYSTEM_OUTFIT if brief.is_outfit else prompts.OPTIMIZER_SYSTEM_SINGLE
        try:
            output, metrics = await self._predict(
                self.text_model,
                {"prompt": prompts.render_brief(brief), "system_instruction": system},
            )
        except ReplicateError as e:
            logger.warning("replicate.optimize_prompt_failed", error_type=type(e).__name__, error=str(e))
            return PromptResult(success=False, model=self.text_model, error=str(e))

        text = self._join_text(output or "")
        if not text:
            return PromptResult(success=False, model=self.text_model, error="Optimizer returned an empty prompt")
        return PromptResult(
            success=True, prompt=text, tokens_used=token_usage(metrics), model=self.text_model
        )

    async def synthesize_image(
        self,
        instruction: str,
        garments: list[ImagePayload],
        pose: ImagePayload,
        background: Optional[ImagePayload],
        aspect_ratio: str,
    ) -> ImageResult:
        images = [*garments, pose]
        if background is not None:
            images.append(background)
        return await self._run_image(instruction, images, aspect_ratio)

    async def apply_edit(self, instruction: str, image: ImagePayload) -> ImageResult:
        return await self._run_image(instruction, [image], None)

    async def blend_images(self, instruction: str, images: list[ImagePayload]) -> ImageResult:
        return await self._run_image(instruction, images, None)

    async def describe_pose(
        self, pose: ImagePayload, category: Optional[str], gender: Optional[str]
    ) -> Optional[str]:
        request = (
            f"Pose category: {category or 'unspecified'}\n"
            f"Model gender: {gender or 'unspecified'}\n"
            "Describe the pose shown in the image."
        )
        try:
            output = await self._run(
                self.advisor_model,
                {
                    "prompt": request,
                    "system_instruction": prompts.POSE_DESCRIBER_SYSTEM,
                    "images": [pose.to_data_uri()],
                },
            )
        except ReplicateError as e:
            logger.info("replicate.describe_pose_failed", error=str(e))
            return None
        return self._join_text(output) or None

    async def assess_compatibility(
        self,
        garment: ImagePayload,
        pose: ImagePayload,
        category: Optional[str],
        piece_type: Optional[str],
        pose_description: Optional[str],
    ) -> Optional[CompatibilityAssessment]:
        try:
            output = await self._run(
                self.advisor_model,
                {
                    "prompt": prompts.render_advisor_request(category, piece_type, pose_description),
                    "system_instruction": prompts.ADVISOR_SYSTEM,
                    "images": [garment.to_data_uri(), pose.to_data_uri()],
                },
            )
        except ReplicateError as e:
            logger.info("replicate.assess_compatibility_failed", error=str(e))
            return None
        return parse_assessment(self._join_text(output))


def parse_assessment(text: str) -> Optional[CompatibilityAssessment]:
    """Extract the advisor's JSON object from free-form model output.

    Returns None when no well-formed object with a numeric score is present.
    """
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("score"), (int, float)):
        return None

    score = max(0, min(100, int(parsed["score"])))
    recommend = parsed.get("recommendPoseAdjustment")
    return CompatibilityAssessment(
        score=score,
        summary=str(parsed.get("summary") or ""),
        guidance=str(
            parsed.get("guidance")
            or "Follow the reference pose, adjusting slightly only where the garment requires it."
        ),
        recommend_adjustment=recommend if isinstance(recommend, bool) else False,
    )


def token_usage(metrics: dict[str, Any]) -> Optional[int]:
    """Total prompt plus completion tokens reported by a language model prediction."""
    counts = [metrics.get(key) for key in ("input_token_count", "output_token_count")]
    present = [int(count) for count in counts if isinstance(count, (int, float))]
    return sum(present) if present else None
