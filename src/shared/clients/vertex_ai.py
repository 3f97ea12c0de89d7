"""Vertex AI REST client for image generation and Gemini text calls."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from src.shared.batch.errors import AuthenticationError, QuotaExceededError, TransientError

logger = logging.getLogger(__name__)

IMAGE_GENERATION_API_LIMIT = 4
DEFAULT_TIMEOUT = 120.0


class GenerationApiError(TransientError):
    """The upstream model call failed (non-200 answer, blocked content, timeout)."""


class MalformedOutputError(TransientError):
    """The model answered with output that could not be parsed."""


class VertexAiClient:
    """Calls publisher models on a regional Vertex AI endpoint.

    Error classification: 401/403 raise AuthenticationError and 429 raises
    QuotaExceededError (both fatal). Every other failed call raises a
    TransientError subclass so the caller may retry it.
    """

    def __init__(
        self,
        *,
        project_id: str,
        token_provider: Callable[[], str],
        region: str = "us-central1",
        api_endpoint: str = "aiplatform.googleapis.com",
        text_model: str = "gemini-1.5-flash:generateContent",
        image_model: str = "imagegeneration:predict",
        http_client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not project_id:
            raise ValueError("project_id is required for Vertex AI")
        self.project_id = project_id
        self.region = region
        self.api_endpoint = api_endpoint
        self.text_model = text_model
        self.image_model = image_model
        self.token_provider = token_provider
        self._http = http_client or httpx.Client(timeout=timeout)

    def endpoint(self, model: str) -> str:
        return (
            f"https://{self.region}-{self.api_endpoint}/v1/projects/{self.project_id}"
            f"/locations/{self.region}/publishers/google/models/{model}"
        )

    def _call(self, model: str, payload: Dict[str, Any], label: str) -> str:
        try:
            response = self._http.post(
                self.endpoint(model),
                json=payload,
                headers={"Authorization": f"Bearer {self.token_provider()}"},
            )
        except httpx.TransportError as exc:
            raise GenerationApiError(f"{label} call failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(f"{label} rejected the credentials: {response.text[:200]}")
        if response.status_code == 429:
            raise QuotaExceededError(f"{label} quota exhausted: {response.text[:200]}")
        if response.status_code != 200:
            logger.error("Call to %s failed (HTTP %d): %s", label, response.status_code, response.text[:500])
            raise GenerationApiError(f"{label} returned HTTP {response.status_code}")
        return response.text

    @staticmethod
    def _parse_json(text: str, label: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("JSON parse error for %s output: %s", label, text[:500])
            raise MalformedOutputError(f"{label} output is not valid JSON") from exc

    def generate_images(self, prompt: str, sample_count: int = IMAGE_GENERATION_API_LIMIT) -> List[bytes]:
        """Generate up to ``sample_count`` images for ``prompt``.

        An empty list means the model produced nothing (for example because
        the prompt was blocked).
        """
        sample_count = max(1, min(sample_count, IMAGE_GENERATION_API_LIMIT))
        payload = {"instances": [{"prompt": prompt}], "parameters": {"sampleCount": sample_count}}
        result = self._parse_json(self._call(self.image_model, payload, "Image generation API"), "Image generation API")
        if not isinstance(result, dict):
            raise MalformedOutputError("Image generation API returned an unexpected payload")
        images = []
        predictions = result.get("predictions") or []
        for prediction in predictions:
            encoded = prediction.get("bytesBase64Encoded")
            if encoded:
                images.append(base64.b64decode(encoded))
        return images

    def generate_text(
        self,
        text: str,
        *,
        image: Optional[bytes] = None,
        image_uri: Optional[str] = None,
        mime_type: str = "image/png",
    ) -> str:
        """Send ``text`` and an optional image to the Gemini model.

        The image is either inline bytes or a ``gs://`` URI the model reads
        directly.
        """
        parts: List[Dict[str, Any]] = [{"text": text}]
        if image is not None:
            parts.append(
                {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(image).decode("ascii")}}
            )
        elif image_uri:
            parts.append({"fileData": {"mimeType": mime_type, "fileUri": image_uri}})
        payload = {
            "contents": {"role": "user", "parts": parts},
            "safety_settings": {
                "category": "HARM_CATEGORY_SEXUALLY_EXPLICIT",
                "threshold": "BLOCK_LOW_AND_ABOVE",
            },
            "generation_config": {
                "temperature": 0.4,
                "topP": 1,
                "topK": 10,
                "maxOutputTokens": 2048,
            },
        }
        result = self._parse_json(self._call(self.text_model, payload, "Gemini API"), "Gemini API")
        try:
            return "".join(
                part.get("text", "")
                for candidate in result.get("candidates", [])
                for part in candidate.get("content", {}).get("parts", [])
            )
        except AttributeError as exc:
            raise MalformedOutputError("Gemini API returned an unexpected payload") from exc

    def close(self) -> None:
        self._http.close()
