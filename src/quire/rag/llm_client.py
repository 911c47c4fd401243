"""LiteLLM client wrapper with retry, backoff, and API key validation.

All text, embedding and image calls in the core route through this module.
LiteLLM's built-in retry is used (num_retries=3, exponential backoff).
"""

from __future__ import annotations

import base64
import logging
import os
import uuid
from pathlib import Path

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 4096,
    temperature: float = 0.2,
    num_retries: int = 3,
    timeout: float | None = None,
) -> str:
    """Call litellm.completion() with retry/backoff. Returns content string.

    Raises:
        litellm.exceptions.APIError: On persistent API failure after retries.
    """
    response = litellm.completion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
        timeout=timeout,
    )
    return response.choices[0].message.content or ""


def embed(model: str, text: str, num_retries: int = 3) -> list[float]:
    """Call litellm.embedding() with retry/backoff. Returns embedding vector."""
    response = litellm.embedding(
        model=model,
        input=[text],
        num_retries=num_retries,
    )
    return response.data[0]["embedding"]


def count_tokens(model: str, text: str) -> int:
    """Count tokens in *text* for *model* using LiteLLM's provider-aware counter.

    Falls back to character-based approximation (4 chars ≈ 1 token) if the model
    is not supported by litellm.token_counter().
    """
    try:
        return litellm.token_counter(model=model, text=text)
    except Exception:
        return max(1, len(text) // 4)


# ------------------------------------------------------------------
# Capability adapters
# ------------------------------------------------------------------


class LiteLLMTextGenerator:
    """Text generation capability backed by ``litellm.completion``.

    Args:
        model: Default LiteLLM model string, used when no model hint is given.
        timeout: Default per-call timeout in seconds.
    """

    def __init__(self, model: str = "openai/gpt-4o", timeout: float = 300.0) -> None:
        self.model = model
        self.timeout = timeout

    def generate(
        self, prompt: str, model: str | None = None, timeout: float | None = None
    ) -> str:
        model = model or self.model
        logger.info("generating text with model %s", model)
        text = complete(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout if timeout is not None else self.timeout,
        )
        if not text.strip():
            raise RuntimeError(f"Empty response from model '{model}'")
        return text


class LiteLLMImageGenerator:
    """Image generation capability backed by ``litellm.image_generation``.

    Providers that return a hosted URL have that URL stored as-is. Providers
    that return base64 bytes have them written to *output_dir* and the stored
    location is ``url_prefix + file name``.
    """

    def __init__(
        self,
        model: str = "openai/dall-e-3",
        output_dir: Path | str = "data/uploads",
        url_prefix: str = "/api/files/",
        timeout: float = 3_600.0,
    ) -> None:
        self.model = model
        self.output_dir = Path(output_dir)
        self.url_prefix = url_prefix
        self.timeout = timeout

    def generate_image(
        self, prompt: str, model: str | None = None, timeout: float | None = None
    ) -> str:
        model = model or self.model
        logger.info("generating image with model %s", model)
        response = litellm.image_generation(
            model=model,
            prompt=prompt,
            timeout=timeout if timeout is not None else self.timeout,
        )
        if not response.data:
            raise RuntimeError(f"No image returned by model '{model}'")

        image = response.data[0]
        url = getattr(image, "url", None)
        if url:
            return url

        b64 = getattr(image, "b64_json", None)
        if not b64:
            raise RuntimeError(f"No image data in response from model '{model}'")
        return self._save(base64.b64decode(b64))

    def _save(self, data: bytes) -> str:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        file_name = f"image_{uuid.uuid4().hex}.png"
        (self.output_dir / file_name).write_bytes(data)
        logger.info("image saved to %s", self.output_dir / file_name)
        return f"{self.url_prefix}{file_name}"
