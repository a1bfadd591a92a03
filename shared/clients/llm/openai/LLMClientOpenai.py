import json

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import UpstreamStreamError


class LLMClientOpenai(LLMClientInterface):
    """Any OpenAI-compatible /chat/completions backend (OpenAI, Kolosal, OpenRouter, vLLM...)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(
        self,
        messages: list[dict],
        model: str,
        temperature: float,
        max_tokens: int | None,
        stop: list[str] | None,
        stream: bool,
    ) -> dict:
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "stream": stream,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if stop:
            # the API accepts at most 4 stop sequences
            payload["stop"] = stop[:4]
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply from a /chat/completions response.

        Raises:
            ValueError: If the response carries no choices or no message content.
        """
        choices = response_data.get("choices") or []
        if not choices:
            raise ValueError(
                "OpenAI chat response does not contain choices. "
                "Response keys: %s" % list(response_data.keys())
            )
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise ValueError("OpenAI chat response does not contain a message content.")
        return content

    def extract_stream_delta(self, line: str) -> tuple[str | None, bool]:
        """Parse one server-sent event line: ``data: {...}`` or ``data: [DONE]``."""
        if not line.startswith("data:"):
            # comments (": keep-alive") and event/id fields carry no text
            return None, False
        data = line[len("data:"):].strip()
        if data == "[DONE]":
            return None, True
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            self.logging.warning("Skipping malformed stream line: %s", data[:200])
            return None, False
        if "error" in event:
            message = (event.get("error") or {}).get("message", "unknown provider error")
            raise UpstreamStreamError(f"Completion provider error: {message}")
        choices = event.get("choices") or []
        if not choices:
            return None, False
        delta = (choices[0].get("delta") or {}).get("content")
        return delta or None, False
