import json

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import UpstreamStreamError


class LLMClientOllama(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

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
        """Build the Ollama chat request body.

        Sampling parameters go into "options"; num_predict is Ollama's max_tokens.
        Multi-modal content is flattened to text, since Ollama expects images as
        base64 in a separate field and remote image urls cannot be forwarded.
        """
        options: dict = {"temperature": temperature}
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        if stop:
            options["stop"] = stop
        return {
            "model": model,
            "messages": [self._flatten_message(m) for m in messages],
            "stream": stream,
            "options": options,
        }

    @staticmethod
    def _flatten_message(message: dict) -> dict:
        content = message.get("content")
        if isinstance(content, list):
            texts = [part.get("text", "") for part in content if part.get("type") == "text"]
            content = "\n".join(t for t in texts if t)
        return {"role": message.get("role"), "content": content or ""}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from an Ollama /api/chat response.

        Raises:
            ValueError: If the response does not contain a valid message.
        """
        message = response_data.get("message", {})
        content = message.get("content")
        if content is None:
            raise ValueError(
                "Ollama chat response does not contain a valid message. "
                "Response keys: %s" % list(response_data.keys())
            )
        return content

    def extract_stream_delta(self, line: str) -> tuple[str | None, bool]:
        """Parse one NDJSON line of a streamed /api/chat response."""
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            self.logging.warning("Skipping malformed stream line: %s", line[:200])
            return None, False
        if "error" in event:
            raise UpstreamStreamError(f"Completion provider error: {event['error']}")
        content = (event.get("message") or {}).get("content")
        return content or None, bool(event.get("done"))
