"""LiteLLM client wrapper - connectivity verification and model chat."""

import logging

import httpx
import litellm

from vibecode.config import AgentConfig, is_ollama_model

_log = logging.getLogger(__name__)


class TransportError(ConnectionError):
    """The model server could not be reached or rejected the request."""


class LLMClient:
    """LiteLLM client for model communication."""

    def __init__(self, config: AgentConfig) -> None:
        self.model = config.model
        self.api_base = config.api_base
        self.api_key = config.api_key
        self.temperature = config.temperature
        self.max_output_tokens = config.max_output_tokens
        self.top_p = config.top_p
        self.timeout = config.request_timeout

    def _handle_llm_error(self, error: Exception, model: str) -> None:
        """Convert exceptions from LiteLLM calls to TransportError with clear messages.

        Raises:
            TransportError: Always. With differentiated messages for connectivity,
                authentication, timeout, server errors, and unexpected failures.
        """
        if isinstance(error, litellm.AuthenticationError):
            raise TransportError(
                f"Authentication failed connecting to the model server.\n\n"
                f"  Server: {self.api_base}\n"
                f"  Error: {error.message}\n\n"
                f"Check your api_key in ~/.vibecode/config.yaml"
            ) from None
        # litellm.Timeout subclasses APIConnectionError, so it is checked first.
        if isinstance(error, litellm.Timeout):
            raise TransportError(
                f"Connection to the model server timed out.\n\n"
                f"  Server: {self.api_base}\n\n"
                f"The server may be overloaded or unreachable."
            ) from None
        if isinstance(error, litellm.APIConnectionError):
            if is_ollama_model(model):
                model_name = model.split("/", 1)[-1]
                raise TransportError(
                    f"Cannot connect to Ollama. Is it running?\n\n"
                    f"  Server: {self.api_base}\n\n"
                    f"Suggestions:\n"
                    f"  1. Start Ollama:     ollama serve\n"
                    f"  2. Pull the model:   ollama pull {model_name}\n"
                    f"  3. Verify api_base in ~/.vibecode/config.yaml"
                ) from None
            raise TransportError(
                f"Cannot connect to the model server.\n\n"
                f"  Server: {self.api_base}\n"
                f"  Error: {error.message}\n\n"
                f"Verify api_base in ~/.vibecode/config.yaml"
            ) from None
        if isinstance(error, litellm.BadRequestError):
            raise TransportError(
                f"Model rejected the request.\n\n"
                f"  Model: {model}\n"
                f"  Error: {error}"
            ) from None
        if isinstance(error, litellm.APIError):
            raise TransportError(
                f"Model request failed (status {error.status_code}).\n\n"
                f"  Server: {self.api_base}\n"
                f"  Error: {error.message}"
            ) from None
        raise TransportError(
            f"Unexpected error from the model server.\n\n"
            f"  Server: {self.api_base}\n"
            f"  Error: {type(error).__name__}: {error}"
        ) from None

    def _completion(self, model: str, messages: list[dict], **overrides):
        params = {
            "model": model,
            "messages": messages,
            "api_base": self.api_base,
            "api_key": self.api_key,
            "timeout": self.timeout,
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
            "top_p": self.top_p,
        }
        params.update(overrides)
        try:
            return litellm.completion(**params)
        except Exception as e:
            self._handle_llm_error(e, model)

    def verify_connection(self) -> None:
        """Send a one-token request to confirm the server is reachable.

        Raises:
            TransportError: If the server cannot be reached or rejects the request.
        """
        self._completion(
            self.model,
            [{"role": "user", "content": "ping"}],
            max_tokens=1,
            timeout=10,
        )

    def chat(self, model_id: str, system_prompt: str, context: str) -> str | None:
        """Ask the model one question.

        Transport failures never escape: they are logged and their description
        is returned as the reply text.

        Returns:
            The reply text, or None if the model returned nothing.
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": context},
        ]
        try:
            response = self._completion(model_id, messages)
        except TransportError as e:
            _log.warning("Model request failed: %s", str(e).splitlines()[0])
            return str(e)

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError):
            _log.debug("Model response had no message content: %r", response)
            return None
        if not content or not content.strip():
            return None
        return content

    def list_models(self) -> list[str]:
        """Names of the models installed on the Ollama server.

        Raises:
            TransportError: If the configured model is not served by Ollama, or
                the server cannot be reached or answers with an error.
        """
        if not is_ollama_model(self.model):
            raise TransportError("Model listing is only available for Ollama servers.")
        url = self.api_base.rstrip("/") + "/api/tags"
        try:
            response = httpx.get(url, timeout=10.0)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise TransportError(
                f"Cannot list models from Ollama. Is it running?\n\n"
                f"  Server: {self.api_base}\n"
                f"  Error: {e}"
            ) from None
        except ValueError:
            raise TransportError(f"Ollama returned an unreadable model list from {url}") from None
        return [entry["name"] for entry in data.get("models", []) if entry.get("name")]
