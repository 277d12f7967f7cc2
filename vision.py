import base64
import io
import json
import logging
import re

import requests
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from errors import ExtractionError
from meals import MealEntry

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"

VALID_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
FALLBACK_TYPE = "image/jpeg"
PIL_FORMATS = {"JPEG": "image/jpeg", "PNG": "image/png", "GIF": "image/gif", "WEBP": "image/webp"}

PROMPT = (
    "Analyze this meal photo and return ONLY a valid JSON object:\n"
    "{\n"
    '  "meal": "short meal description",\n'
    '  "calories": number,\n'
    '  "protein_g": number,\n'
    '  "carbs_g": number,\n'
    '  "fat_g": number,\n'
    '  "fiber_g": number\n'
    "}\n"
    "Return ONLY the JSON, no other text."
)

CODE_FENCE = re.compile(r"```json\n?|\n?```")


def resolve_media_type(image_data: bytes, content_type: str = "") -> str:
    """
    Picks a media type the vision API accepts.

    Uses the declared content type when it is an accepted image type,
    otherwise sniffs the bytes, otherwise falls back to JPEG.
    """
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared in VALID_TYPES:
        return declared

    try:
        image = Image.open(io.BytesIO(image_data))
    except (UnidentifiedImageError, OSError):
        return FALLBACK_TYPE
    return PIL_FORMATS.get(image.format, FALLBACK_TYPE)


def parse_meal_json(text: str) -> MealEntry:
    cleaned = CODE_FENCE.sub("", text.strip()).strip()
    try:
        data = json.loads(cleaned)
        return MealEntry.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ExtractionError("Could not read nutrition data from the photo", cause=e)


class VisionExtractor:
    """
    Estimates a meal's nutrition from a photo with an OpenAI vision model.
    """

    def __init__(self, api_key: str, model: str = "gpt-4o", timeout: float = 60):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def extract(self, image_data: bytes, content_type: str = "") -> MealEntry:
        media_type = resolve_media_type(image_data, content_type)
        base64_image = base64.b64encode(image_data).decode("utf-8")
        logger.info(f"Image downloaded: {len(base64_image)} bytes, type: {media_type}")

        payload = {
            "model": self.model,
            "max_tokens": 500,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{media_type};base64,{base64_image}"}
                        },
                        {"type": "text", "text": PROMPT}
                    ],
                }
            ],
        }

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }

        try:
            response = requests.post(OPENAI_URL, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExtractionError(f"Vision API unreachable: {e}", cause=e)

        if response.status_code != 200:
            raise ExtractionError(f"Error from vision API ({response.status_code})")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExtractionError("Unexpected response from vision API", cause=e)

        logger.info(json.dumps({"severity": "INFO", "message": "Vision response", "content": content}, ensure_ascii=False))
        return parse_meal_json(content or "")
