"""pytest fixtures for try-on backend tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- session_factory: Function-scoped SQLite database with every table created
- session: Function-scoped database session
- uow_factory: Function-scoped UnitOfWork factory
- gateway / storage / auth_verifier: In-memory fakes of the external services
- seed: Factory inserting a user, uploads, a pose and a customization
- pipeline: GenerationPipeline wired to the fakes
"""

import io
import os
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Optional
from uuid import UUID, uuid4

# Must be set before tryon is imported so Settings skips credential checks
os.environ["APP_ENV"] = "test"

import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.core.config import Settings
from tryon.core.database import create_all_tables, setup_db_session
from tryon.models import (
    EditingTool,
    GenerationCustomization,
    ModelPose,
    SavedModel,
    User,
    UserUpload,
)
from tryon.services.exceptions import StorageNetworkError, StorageNotFoundError
from tryon.services.generation import GenerationPipeline
from tryon.services.generation.types import (
    CatalogPose,
    CustomizationProfile,
    PoseMetadata,
    ReferenceSet,
)
from tryon.services.providers.gateway import (
    CompatibilityAssessment,
    ImagePayload,
    ImageResult,
    PromptBrief,
    PromptResult,
)
from tryon.services.storage.base import StoredObject
from tryon.uow import create_uow_factory


def make_png(color: tuple[int, int, int] = (200, 30, 30), size: tuple[int, int] = (64, 80)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path):
    """Provide a session factory bound to a fresh SQLite database file.

    Each test gets its own file, so no truncation is needed between tests.
    """
    factory = setup_db_session(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_all_tables(factory)

    yield factory

    await factory.kw["bind"].dispose()


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session_factory):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(session_factory)


# External service fakes


EDIT_SIGNATURES = {
    "remove the background": "remove_background",
    "add the logo": "add_logo",
    "change only the background": "change_background",
}


def edit_name(instruction: str) -> str:
    lowered = instruction.lower()
    return next((name for key, name in EDIT_SIGNATURES.items() if key in lowered), "unknown")


class FakeGateway:
    """In-memory ModelProviderGateway recording every call.

    Tests tweak the public attributes to script provider behaviour.
    """

    def __init__(self):
        self.prompt_result = PromptResult(
            success=True, prompt="A studio photo of the model wearing the garment.", tokens_used=321, model="fake-optimizer"
        )
        self.synthesis_results: list[ImageResult] = []
        self.edit_failures: set[str] = set()
        self.edit_exceptions: set[str] = set()
        self.pose_description: Optional[str] = "Standing facing camera, arms relaxed."
        self.assessment: Optional[CompatibilityAssessment] = CompatibilityAssessment(
            score=85, guidance="Keep the shoulders square to the camera."
        )
        self.advisor_error: Optional[Exception] = None

        self.briefs: list[PromptBrief] = []
        self.synthesis_calls: list[dict[str, Any]] = []
        self.edit_calls: list[str] = []
        self.blend_calls: list[tuple[str, int]] = []
        self.describe_calls = 0
        self.assess_calls = 0

    async def optimize_prompt(self, brief: PromptBrief) -> PromptResult:
        self.briefs.append(brief)
        return self.prompt_result

    async def synthesize_image(self, instruction, garments, pose, background, aspect_ratio) -> ImageResult:
        self.synthesis_calls.append(
            {
                "instruction": instruction,
                "garments": garments,
                "pose": pose,
                "background": background,
                "aspect_ratio": aspect_ratio,
            }
        )
        if self.synthesis_results:
            return self.synthesis_results.pop(0)
        return ImageResult(success=True, image_bytes=make_png((10, 120, 200)), mime_type="image/png")

    def _edit_result(self, name: str) -> ImageResult:
        if name in self.edit_exceptions:
            raise RuntimeError(f"{name} exploded")
        if name in self.edit_failures:
            return ImageResult(success=False, error=f"{name} failed")
        return ImageResult(success=True, image_bytes=make_png((30, 200, 30)), mime_type="image/png")

    async def apply_edit(self, instruction: str, image: ImagePayload) -> ImageResult:
        name = edit_name(instruction)
        self.edit_calls.append(name)
        return self._edit_result(name)

    async def blend_images(self, instruction: str, images: list[ImagePayload]) -> ImageResult:
        name = edit_name(instruction)
        self.edit_calls.append(name)
        self.blend_calls.append((name, len(images)))
        return self._edit_result(name)

    async def describe_pose(self, pose, category, gender) -> Optional[str]:
        self.describe_calls += 1
        return self.pose_description

    async def assess_compatibility(self, garment, pose, category, piece_type, pose_description):
        self.assess_calls += 1
        if self.advisor_error is not None:
            raise self.advisor_error
        return self.assessment

    @property
    def total_calls(self) -> int:
        return (
            len(self.briefs)
            + len(self.synthesis_calls)
            + len(self.edit_calls)
            + self.describe_calls
            + self.assess_calls
        )


class FakeStorage:
    """In-memory ObjectStorage.

    ``missing_urls`` raise not-found on fetch; ``fail_uploads`` makes every
    primary upload raise a network error.
    """

    def __init__(self):
        self.missing_urls: set[str] = set()
        self.fail_uploads = False
        self.fail_thumbnails = False
        self.fetched: list[str] = []
        self.uploads: dict[str, ImagePayload] = {}

    async def fetch_image(self, url: str) -> ImagePayload:
        self.fetched.append(url)
        if url in self.missing_urls:
            raise StorageNotFoundError(f"Object not found: {url}")
        return ImagePayload(data=make_png(), mime_type="image/png")

    async def upload_generated_image(self, owner_id: UUID, generation_id: UUID, image: ImagePayload) -> StoredObject:
        if self.fail_uploads:
            raise StorageNetworkError("Storage unavailable")
        path = f"{owner_id}/generations/{generation_id}.png"
        self.uploads[path] = image
        return StoredObject(path=path, public_url=f"https://storage.test/{path}")

    async def upload_thumbnail(self, owner_id: UUID, generation_id: UUID, image: ImagePayload) -> StoredObject:
        if self.fail_thumbnails:
            raise StorageNetworkError("Storage unavailable")
        path = f"{owner_id}/thumbnails/{generation_id}_thumb.jpg"
        self.uploads[path] = image
        return StoredObject(path=path, public_url=f"https://storage.test/{path}")


class FakeAuthVerifier:
    def __init__(self):
        self.tokens: dict[str, UUID] = {}

    async def verify(self, access_token: str) -> Optional[UUID]:
        return self.tokens.get(access_token)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def auth_verifier() -> FakeAuthVerifier:
    return FakeAuthVerifier()


@pytest.fixture
def settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


@pytest.fixture
def pipeline(uow_factory, gateway, storage, settings) -> GenerationPipeline:
    return GenerationPipeline(uow_factory, gateway, storage, settings)


# Seed data


@dataclass
class Seeded:
    user: User
    uploads: list[UserUpload]
    pose: Optional[ModelPose] = None
    saved_model: Optional[SavedModel] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def upload_ids(self) -> list[str]:
        return [str(upload.id) for upload in self.uploads]


@pytest.fixture
def seed(uow_factory):
    """Return an async factory seeding one complete generation setup.

    Example:
        seeded = await seed(credits=5, ai_tools={"removeBackground": True})
    """

    async def _seed(
        credits: int = 10,
        upload_count: int = 1,
        ai_tools: Optional[dict[str, Any]] = None,
        pose_age_min: int = 20,
        pose_age_range: str = "TWENTIES",
        pose_reference: Optional[str] = None,
        customization: bool = True,
        age_range: Optional[str] = None,
        category: str = "T_SHIRT",
    ) -> Seeded:
        async with await uow_factory() as uow:
            user = await uow.users.add(User(email=f"{uuid4().hex[:8]}@example.com", credits=credits))

            pose = await uow.poses.add(
                ModelPose(
                    image_url="https://storage.test/poses/standing.png",
                    gender="FEMALE",
                    age_min=pose_age_min,
                    age_max=pose_age_min + 10,
                    age_range=pose_age_range,
                    pose_category="standing",
                    pose_metadata={"description": "Standing straight, hands on hips."},
                )
            )

            uploads = []
            for index in range(upload_count):
                upload_id = uuid4()
                reference = pose_reference or str(pose.id)
                uploads.append(
                    await uow.uploads.add(
                        UserUpload(
                            id=upload_id,
                            user_id=user.id,
                            file_path=f"{user.id}/uploads/{upload_id}.png",
                            public_url=f"https://storage.test/uploads/{upload_id}.png",
                            mime_type="image/png",
                            upload_metadata={
                                "garment": {"category": category, "description": "Red cotton tee"},
                                "piece_type": "upper" if index == 0 else "lower",
                                "pose_selection": {"selected_pose_ids": [reference]},
                            },
                        )
                    )
                )

            if customization:
                await uow.customizations.add(
                    GenerationCustomization(
                        upload_id=uploads[0].id,
                        model_height_cm=172,
                        model_weight_kg=61,
                        age_range=age_range,
                        ai_tools=ai_tools,
                    )
                )

            for tool_name in ("remove_background", "change_background", "add_logo"):
                await uow.pricing.add(EditingTool(tool_name=tool_name))

        return Seeded(user=user, uploads=uploads, pose=pose)

    return _seed


def build_references(
    pose: Optional[PoseMetadata] = None,
    profile: Optional[CustomizationProfile] = None,
    upload_count: int = 1,
    category: str = "T_SHIRT",
    background: Optional[ImagePayload] = None,
    logo: Optional[ImagePayload] = None,
) -> ReferenceSet:
    """Build an in-memory ReferenceSet without touching the database."""
    user_id = uuid4()
    uploads = [
        UserUpload(
            user_id=user_id,
            file_path="garment.png",
            public_url="https://storage.test/garment.png",
            upload_metadata={
                "garment": {"category": category, "description": "Blue denim"},
                "piece_type": "upper" if index == 0 else "lower",
            },
        )
        for index in range(upload_count)
    ]
    image = ImagePayload(data=make_png())
    return ReferenceSet(
        user_id=user_id,
        available_credits=10,
        uploads=uploads,
        garments=[image] * upload_count,
        pose=image,
        pose_source=CatalogPose(uuid4()),
        pose_reference="catalog",
        pose_metadata=pose or PoseMetadata(description="Walking towards camera"),
        profile=profile or CustomizationProfile(),
        background=background,
        logo=logo,
    )


@pytest.fixture
def make_references():
    return build_references
