"""Integration tests for the HTTP surface.

- POST /api/ai/generate-image - status code contract
- GET /api/generations/{generation_id} - ownership-checked status
- GET /api/credits/history - ledger pagination
- GET /health - database connectivity
"""

from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tryon.app import app
from tryon.models import Generation, GenerationResult, GenerationStatus
from tryon.services.exceptions import AuthServiceError
from tryon.services.generation.synthesis import SYNTHESIS_RETRY_MESSAGE
from tryon.services.providers.gateway import ImageResult


@pytest_asyncio.fixture
async def test_client(session_factory, uow_factory, pipeline, auth_verifier):
    """Provide AsyncClient with the app wired to the test database and fakes."""
    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory
    app.state.pipeline = pipeline
    app.state.auth_verifier = auth_verifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def seeded_user(seed, auth_verifier):
    seeded = await seed(credits=10)
    auth_verifier.tokens["good-token"] = seeded.user.id
    return seeded


AUTH = {"Authorization": "Bearer good-token"}


@pytest.mark.asyncio
async def test_generate_requires_bearer_token(test_client, seeded_user):
    response = await test_client.post("/api/ai/generate-image", json={"uploadIds": seeded_user.upload_ids})
    assert response.status_code == 401

    response = await test_client.post(
        "/api/ai/generate-image",
        json={"uploadIds": seeded_user.upload_ids},
        headers={"Authorization": "Bearer wrong-token"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


@pytest.mark.asyncio
async def test_auth_service_outage_is_503(test_client, auth_verifier):
    async def unavailable(token):
        raise AuthServiceError("auth backend returned 502")

    auth_verifier.verify = unavailable

    response = await test_client.post("/api/ai/generate-image", json={"uploadIds": []}, headers=AUTH)

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_generate_validation_error(test_client, seeded_user):
    response = await test_client.post("/api/ai/generate-image", json={}, headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {"error": "uploadIds array is required"}


@pytest.mark.asyncio
async def test_generate_unknown_upload_is_404(test_client, seeded_user):
    response = await test_client.post(
        "/api/ai/generate-image", json={"uploadIds": [str(uuid4())]}, headers=AUTH
    )

    assert response.status_code == 404
    assert response.json() == {"error": "Uploads not found"}


@pytest.mark.asyncio
async def test_generate_success_then_status_and_history(test_client, seeded_user):
    response = await test_client.post(
        "/api/ai/generate-image", json={"uploadIds": seeded_user.upload_ids}, headers=AUTH
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["creditsRemaining"] == 8
    generation_id = body["generationId"]

    status_response = await test_client.get(f"/api/generations/{generation_id}", headers=AUTH)
    assert status_response.status_code == 200
    status_body = status_response.json()
    assert status_body["id"] == generation_id
    assert status_body["status"] == "completed"
    assert status_body["creditsUsed"] == 2
    assert status_body["previewUrl"] == body["previewUrl"]
    assert status_body["aiEditsApplied"] == []

    history = await test_client.get("/api/credits/history", headers=AUTH)
    assert history.status_code == 200
    history_body = history.json()
    assert history_body["balance"] == 8
    assert history_body["total"] == 1
    assert history_body["limit"] == 20
    assert history_body["transactions"][0]["amount"] == -2
    assert history_body["transactions"][0]["generationId"] == generation_id


@pytest.mark.asyncio
async def test_generate_insufficient_credits_is_402(test_client, seed, auth_verifier):
    seeded = await seed(credits=1)
    auth_verifier.tokens["poor-token"] = seeded.user.id

    response = await test_client.post(
        "/api/ai/generate-image",
        json={"uploadIds": seeded.upload_ids},
        headers={"Authorization": "Bearer poor-token"},
    )

    assert response.status_code == 402
    assert response.json() == {"error": "Insufficient credits", "required": 2, "available": 1}


@pytest.mark.asyncio
async def test_generate_synthesis_failure_is_502(test_client, seeded_user, gateway):
    gateway.synthesis_results = [ImageResult(success=False, error="boom")] * 2

    response = await test_client.post(
        "/api/ai/generate-image", json={"uploadIds": seeded_user.upload_ids}, headers=AUTH
    )

    assert response.status_code == 502
    assert response.json() == {"error": SYNTHESIS_RETRY_MESSAGE}


@pytest.mark.asyncio
async def test_generation_status_hidden_from_other_users(test_client, seeded_user, auth_verifier):
    response = await test_client.post(
        "/api/ai/generate-image", json={"uploadIds": seeded_user.upload_ids}, headers=AUTH
    )
    generation_id = response.json()["generationId"]
    auth_verifier.tokens["other-token"] = uuid4()

    other = await test_client.get(
        f"/api/generations/{generation_id}", headers={"Authorization": "Bearer other-token"}
    )
    missing = await test_client.get(f"/api/generations/{uuid4()}", headers=AUTH)

    assert other.status_code == 404
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_failed_generation_status_hides_artifacts(test_client, seeded_user, uow_factory):
    async with await uow_factory() as uow:
        generation = await uow.generations.add(
            Generation(
                user_id=seeded_user.user.id,
                status=GenerationStatus.FAILED,
                error_message="Insufficient credits at settlement",
            )
        )
        await uow.results.add_result(
            GenerationResult(
                generation_id=generation.id,
                image_url="owner/generations/unpaid.png",
                image_public_url="https://storage.test/owner/generations/unpaid.png",
                thumbnail_public_url="https://storage.test/owner/thumbnails/unpaid_thumb.jpg",
                ai_edits_applied=["remove_background"],
            )
        )

    response = await test_client.get(f"/api/generations/{generation.id}", headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "failed"
    assert body["errorMessage"] == "Insufficient credits at settlement"
    assert body["previewUrl"] is None
    assert body["thumbnailUrl"] is None
    assert body["aiEditsApplied"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "extra, error",
    [
        ({"improvementText": "x" * 2001}, "improvementText must be a string of at most 2000 characters"),
        ({"improvementText": 42}, "improvementText must be a string of at most 2000 characters"),
        ({"regenerationType": ["feedback"]}, "regenerationType must be 'feedback' or 'improvement'"),
    ],
)
async def test_generate_malformed_refinement_is_400(test_client, seeded_user, gateway, extra, error):
    response = await test_client.post(
        "/api/ai/generate-image", json={"uploadIds": seeded_user.upload_ids, **extra}, headers=AUTH
    )

    assert response.status_code == 400
    assert response.json() == {"error": error}
    assert gateway.total_calls == 0


@pytest.mark.asyncio
async def test_credit_history_validates_paging(test_client, seeded_user):
    response = await test_client.get("/api/credits/history?limit=0", headers=AUTH)
    assert response.status_code == 422

    response = await test_client.get("/api/credits/history?limit=5&offset=3", headers=AUTH)
    assert response.status_code == 200
    assert response.json()["transactions"] == []
    assert response.json()["offset"] == 3


@pytest.mark.asyncio
async def test_credit_history_unknown_user(test_client, auth_verifier):
    auth_verifier.tokens["ghost-token"] = uuid4()

    response = await test_client.get("/api/credits/history", headers={"Authorization": "Bearer ghost-token"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health_check(test_client):
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
