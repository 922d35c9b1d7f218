from db.models.prompt_generation import PromptGeneration
from db.repositories.prompt_repository import PromptRepository
from typing import Optional
import logging

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
RECENT_LIMIT = 5

_DARK_WORDS = ("dark", "moody")

TEXT_TEMPLATE = """Professional AI Prompt - Enhanced Version:

Original Input: "{text}"

ENHANCED PROMPT:
Create a highly detailed, professional-grade image/content based on: "{text}"

SPECIFICATIONS:
- Style: Professional, high-quality, detailed
- Technical Quality: 4K resolution, sharp focus, optimal lighting
- Composition: Rule of thirds, balanced elements, dynamic perspective
- Color Palette: Harmonious colors, proper contrast, vibrant yet realistic
- Mood & Atmosphere: {mood}
- Detail Level: Intricate details, texture emphasis, depth of field

ARTISTIC DIRECTION:
- Professional photography/illustration style
- Studio-quality lighting setup
- Crisp, clear details with no blur
- Photorealistic rendering
- Award-winning composition

QUALITY ENHANCERS:
- Ultra-high resolution
- Perfect exposure and white balance
- Professional color grading
- Sharp focus throughout
- Masterpiece quality

This prompt is optimized for AI image generation tools like Midjourney, DALL-E, or Stable Diffusion."""

IMAGE_TEMPLATE = """Professional AI Prompt - Image Analysis Based:

SOURCE: Image analysis of uploaded file "{image_name}"

RECREATE & ENHANCE:
Generate a professional image that captures and enhances the visual elements from the reference image.

DETAILED SPECIFICATIONS:
- Visual Style: Match and improve upon the reference aesthetic
- Composition: Maintain similar layout with professional refinements
- Color Scheme: Enhanced color palette based on reference tones
- Lighting: Professional studio lighting to enhance the original mood
- Quality: Ultra-high resolution, crystal clear details
- Perspective: Optimal viewing angle with improved depth

ENHANCEMENT DIRECTIONS:
- Upgrade to professional photography standards
- Enhance all textures and surface details
- Improve lighting for maximum visual impact
- Add subtle artistic flair while maintaining authenticity
- Ensure award-winning composition quality

TECHNICAL REQUIREMENTS:
- 4K+ resolution output
- Perfect focus and clarity
- Professional color correction
- Optimal contrast and saturation
- Masterpiece-level execution

This prompt is specifically crafted for high-end AI image generation with reference image input."""


class PromptServiceException(Exception):
    pass


def build_text_prompt(text: str) -> str:
    lowered = text.lower()
    if any(word in lowered for word in _DARK_WORDS):
        mood = "Dramatic, atmospheric lighting with rich shadows"
    else:
        mood = "Bright, positive, engaging atmosphere"
    return TEXT_TEMPLATE.format(text=text, mood=mood)


def build_image_prompt(image_name: str) -> str:
    return IMAGE_TEMPLATE.format(image_name=image_name)


class PromptService:
    def __init__(self, prompt_repo: PromptRepository):
        self.prompt_repo = prompt_repo

    def generate(
        self,
        user_id: int,
        text: Optional[str] = None,
        image_name: Optional[str] = None,
        image_size: int = 0,
    ) -> PromptGeneration:
        text = (text or "").strip()
        image_name = (image_name or "").strip()
        if not text and not image_name:
            raise PromptServiceException("Please provide either text input or upload an image")
        if image_name and image_size > MAX_IMAGE_BYTES:
            raise PromptServiceException("Image size must be less than 10MB")

        prompt = build_text_prompt(text) if text else build_image_prompt(image_name)
        generation = PromptGeneration(
            user_id=user_id,
            original_text=text or None,
            image_name=image_name or None,
            generated_prompt=prompt,
        )
        self.prompt_repo.create(generation)
        logger.info(f"Generated prompt {generation.id} for user {user_id}")
        return generation

    def recent(self, user_id: int) -> list[PromptGeneration]:
        return self.prompt_repo.list_recent(user_id, RECENT_LIMIT)
