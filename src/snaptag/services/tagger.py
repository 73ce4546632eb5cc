"""
Vision tagging clients.

A vision tagger takes the URL of a stored image and returns a comma-separated
tag string. Two implementations exist:

- OpenAIVisionTagger: downloads the image, enforces a size limit and asks an
  OpenAI vision model for 10-15 lowercase keywords.
- HttpVisionTagger: delegates to a remote tag-generation endpoint (such as
  ``POST /generate-tags`` of another snaptag deployment), forwarding the
  caller's bearer token.

Both raise SnapTagError subclasses on failure; whether a failure matters is
the caller's decision.
"""

import base64
from typing import Any, Protocol

import openai
import requests
from openai import OpenAI

from ..config import TaggerSettings, get_tagger_settings
from ..errors import TaggingError, TransportError
from ..logging_config import get_logger

logger = get_logger(__name__)

MAX_IMAGE_BYTES = 20 * 1024 * 1024
MAX_COMPLETION_TOKENS = 150

TAGGING_PROMPT = (
    "Analyze this image in detail and generate 10-15 descriptive tags/keywords. "
    "Include: 1) Main subjects (people, animals, objects), "
    "2) Clothing items and colors (e.g., 'black t-shirt', 'blue jeans'), "
    "3) Actions or activities, 4) Setting/location, 5) Mood or atmosphere, 6) Notable details. "
    "Return ONLY comma-separated tags in lowercase, no explanations or extra text."
)


class VisionTagger(Protocol):
    """Turns an image URL into a comma-separated tag string."""

    def tag(self, image_url: str, auth_token: str | None = None) -> str: ...


class OpenAIVisionTagger:
    """Tags images with an OpenAI vision-capable chat model."""

    def __init__(
        self,
        settings: TaggerSettings | None = None,
        client: OpenAI | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings or get_tagger_settings()
        self._client = client
        self.session = session or requests.Session()

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise TaggingError("OpenAI API key not configured", code="provider_not_configured")
            self._client = OpenAI(api_key=self.settings.openai_api_key, timeout=self.settings.timeout)
        return self._client

    def fetch_image(self, image_url: str) -> tuple[bytes, str]:
        """
        Download the image to be tagged.

        Returns:
            tuple: (image bytes, content type)

        Raises:
            TransportError: If the image could not be downloaded
            TaggingError: If the download was rejected or the image is too large
        """
        try:
            response = self.session.get(image_url, timeout=self.settings.timeout)
        except requests.RequestException as e:
            raise TransportError(
                f"Failed to fetch image: {e}", code="image_fetch_failed", original_exception=e
            ) from e

        if not response.ok:
            raise TaggingError(
                "Failed to fetch image",
                code="image_fetch_rejected",
                details={"status_code": response.status_code, "image_url": image_url},
            )

        image_bytes = response.content
        if len(image_bytes) > MAX_IMAGE_BYTES:
            raise TaggingError(
                "Image too large",
                code="image_too_large",
                details={"size_mb": round(len(image_bytes) / (1024 * 1024), 2), "limit_mb": 20},
            )

        content_type = response.headers.get("Content-Type", "image/jpeg").split(";")[0].strip()
        logger.debug("image_fetched_for_tagging", size=len(image_bytes), content_type=content_type)
        return image_bytes, content_type

    def build_messages(self, image_bytes: bytes, content_type: str) -> list[dict[str, Any]]:
        data_url = f"data:{content_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": TAGGING_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }
        ]

    def tag(self, image_url: str, auth_token: str | None = None) -> str:
        """
        Generate tags for the image at ``image_url``.

        ``auth_token`` is accepted for interface compatibility; the provider is
        authenticated with the configured API key.

        Raises:
            TaggingError: Provider missing, image rejected or response unusable
            TransportError: Image or provider unreachable
        """
        client = self.client
        image_bytes, content_type = self.fetch_image(image_url)

        try:
            response = client.chat.completions.create(
                model=self.settings.model,
                messages=self.build_messages(image_bytes, content_type),  # type: ignore[arg-type]
                max_tokens=MAX_COMPLETION_TOKENS,
            )
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            raise TransportError(
                f"Failed to reach vision provider: {e}", code="provider_unreachable", original_exception=e
            ) from e
        except openai.APIStatusError as e:
            raise TaggingError(
                "AI tagging failed",
                code="provider_rejected",
                details={"status_code": e.status_code},
                original_exception=e,
            ) from e
        except openai.OpenAIError as e:
            raise TaggingError("AI tagging failed", code="provider_error", original_exception=e) from e

        try:
            tag_string = response.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError) as e:
            raise TaggingError("Unparseable tagging response", code="unparseable_response", original_exception=e) from e

        logger.info("vision_tags_generated", model=self.settings.model, response=tag_string)
        return tag_string


class HttpVisionTagger:
    """Calls a remote tag-generation endpoint with the caller's authorization."""

    def __init__(self, endpoint_url: str, timeout: float = 30.0, session: requests.Session | None = None) -> None:
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def tag(self, image_url: str, auth_token: str | None = None) -> str:
        """
        POST ``{"imageUrl": ...}`` and return the tags joined with commas.

        Raises:
            TransportError: If the endpoint is unreachable
            TaggingError: Non-2xx answer, error payload or unparseable body
        """
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        try:
            response = self.session.post(
                self.endpoint_url, json={"imageUrl": image_url}, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(
                f"Failed to reach tagging endpoint: {e}", code="tagger_unreachable", original_exception=e
            ) from e

        if not response.ok:
            raise TaggingError(
                "Tagging endpoint rejected the request",
                code="tagger_rejected",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TaggingError("Unparseable tagging response", code="unparseable_response", original_exception=e) from e

        tags = payload.get("tags") if isinstance(payload, dict) else None
        if isinstance(payload, dict) and payload.get("error") and not tags:
            raise TaggingError(str(payload["error"]), code="tagger_error", details={"details": payload.get("details")})

        if isinstance(tags, str):
            return tags
        if isinstance(tags, list):
            return ", ".join(str(tag) for tag in tags)

        raise TaggingError("Unparseable tagging response", code="unparseable_response")


def get_vision_tagger(settings: TaggerSettings | None = None) -> VisionTagger:
    """Remote tagger when TAGGER_URL is set, OpenAI otherwise."""
    settings = settings or get_tagger_settings()
    if settings.tagger_url:
        return HttpVisionTagger(settings.tagger_url, timeout=settings.timeout)
    return OpenAIVisionTagger(settings)
