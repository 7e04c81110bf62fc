"""Embedding gateway — the single ``embed(text) -> vector`` boundary.

All embedding calls route through LiteLLM (``provider/model`` strings, e.g.
``ollama/all-minilm`` for a local all-MiniLM-L6-v2 served by Ollama).
The model string ``dummy-sha256`` selects a deterministic offline embedder
with no network dependency.

Lifecycle: initialize() validates the API key and probes the model once
(dimension check); release() drops the handle. The gateway is also a
context manager so release happens on every exit path.
"""

from __future__ import annotations

import hashlib
import logging
import os
import struct

import litellm

from syndex.errors import EmbeddingError, ModelLoadError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

DUMMY_MODEL = "dummy-sha256"

_PROBE_TEXT = "syndex embedding probe"

# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "huggingface": "HUGGINGFACE_API_KEY",
    "ollama": None,  # Local, no key required
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        ModelLoadError: If the provider needs a key and none is set.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise ModelLoadError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


class HashEmbedder:
    """Deterministic placeholder embedder.

    Produces a vector derived from SHA-256 of the UTF-8 bytes, mapped to
    [-1, 1]. Stable across runs; carries no semantics.
    """

    def __init__(self, dimensions: int) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be > 0")
        self.dimensions = dimensions

    def embed(self, text: str) -> list[float]:
        data = text.encode("utf-8")
        floats: list[float] = []
        counter = 0
        while len(floats) < self.dimensions:
            h = hashlib.sha256()
            h.update(counter.to_bytes(4, "little"))
            h.update(data)
            digest = h.digest()
            for (word,) in struct.iter_unpack("<I", digest):
                if len(floats) >= self.dimensions:
                    break
                floats.append(((word / 0xFFFFFFFF) * 2.0) - 1.0)
            counter += 1
        return floats


class EmbeddingGateway:
    """Wrap the embedding model behind ``embed(text) -> list[float]``.

    Args:
        model: LiteLLM model string, or ``dummy-sha256`` for offline use.
        dimensions: Expected vector length; every result is checked against it.
        api_base: Optional endpoint override (e.g. a local Ollama URL).
    """

    def __init__(self, model: str, dimensions: int, api_base: str | None = None) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self.model = model
        self.dimensions = dimensions
        self.api_base = api_base
        self._ready = False
        self._hash: HashEmbedder | None = None

    @property
    def ready(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        """Load (probe) the model. Idempotent.

        Raises:
            ModelLoadError: Missing API key, unreachable model, or a model
                whose output dimension differs from the configured one.
        """
        if self._ready:
            return
        if self.model == DUMMY_MODEL:
            self._hash = HashEmbedder(self.dimensions)
            self._ready = True
            return

        validate_api_key(self.model)
        try:
            probe = self._call(_PROBE_TEXT)
        except Exception as exc:
            raise ModelLoadError(f"Cannot load embedding model '{self.model}': {exc}") from exc
        if len(probe) != self.dimensions:
            raise ModelLoadError(
                f"Embedding model '{self.model}' returns {len(probe)}-dimensional vectors, "
                f"configured dimensions is {self.dimensions}"
            )
        self._ready = True
        logger.info("Embedding model %s ready (%d dimensions)", self.model, self.dimensions)

    def embed(self, text: str) -> list[float]:
        """Embed *text*.

        Raises:
            EmbeddingError: If the gateway is not initialised, the model call
                fails, or the vector has the wrong dimension.
        """
        if not self._ready:
            raise EmbeddingError("Embedding gateway is not initialised")
        if self._hash is not None:
            return self._hash.embed(text)
        try:
            vector = self._call(text)
        except Exception as exc:
            raise EmbeddingError(f"Embedding call to '{self.model}' failed: {exc}") from exc
        if len(vector) != self.dimensions:
            raise EmbeddingError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
            )
        return vector

    def release(self) -> None:
        """Drop the model handle; embed() fails until initialize() is called again."""
        self._ready = False
        self._hash = None

    def __enter__(self) -> EmbeddingGateway:
        self.initialize()
        return self

    def __exit__(self, *args: object) -> None:
        self.release()

    def _call(self, text: str) -> list[float]:
        """Call litellm.embedding() and return the embedding vector."""
        kwargs: dict[str, object] = {}
        if self.api_base:
            kwargs["api_base"] = self.api_base
        response = litellm.embedding(model=self.model, input=[text], **kwargs)
        return [float(x) for x in response.data[0]["embedding"]]
