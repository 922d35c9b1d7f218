"""
Tests for prompt generation
"""
import pytest

from api.services.prompt_service import (
    MAX_IMAGE_BYTES,
    PromptService,
    PromptServiceException,
    build_text_prompt,
)
from db.repositories.prompt_repository import PromptRepository


@pytest.fixture
def service(db_session):
    return PromptService(PromptRepository(db_session))


class TestPromptService:
    def test_text_prompt_mood(self):
        assert "rich shadows" in build_text_prompt("A dark forest at night")
        assert "Bright, positive" in build_text_prompt("A sunny beach")

    def test_generate_from_text(self, service, make_user):
        user = make_user()
        generation = service.generate(user.id, text="  a red bicycle  ")
        assert generation.id is not None
        assert generation.original_text == "a red bicycle"
        assert '"a red bicycle"' in generation.generated_prompt

    def test_generate_from_image(self, service, make_user):
        user = make_user()
        generation = service.generate(user.id, image_name="photo.png", image_size=1024)
        assert generation.original_text is None
        assert 'uploaded file "photo.png"' in generation.generated_prompt

    def test_text_wins_over_image(self, service, make_user):
        user = make_user()
        generation = service.generate(user.id, text="castle", image_name="photo.png", image_size=10)
        assert "ENHANCED PROMPT" in generation.generated_prompt
        assert generation.image_name == "photo.png"

    def test_empty_input_rejected(self, service, make_user):
        with pytest.raises(PromptServiceException) as exc_info:
            service.generate(make_user().id, text="   ")
        assert "either text input or upload an image" in str(exc_info.value)

    def test_oversized_image_rejected(self, service, make_user):
        with pytest.raises(PromptServiceException) as exc_info:
            service.generate(make_user().id, image_name="big.png", image_size=MAX_IMAGE_BYTES + 1)
        assert "10MB" in str(exc_info.value)

    def test_recent_is_per_user_and_limited(self, service, make_user):
        user, other = make_user(), make_user()
        for i in range(7):
            service.generate(user.id, text=f"idea {i}")
        service.generate(other.id, text="not mine")
        recent = service.recent(user.id)
        assert len(recent) == 5
        assert recent[0].original_text == "idea 6"
