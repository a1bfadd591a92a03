from abc import abstractmethod
from typing import AsyncIterator

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import UpstreamStreamError


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default="")
        self.default_temperature = helper_config.get_number_val(
            f"{self.get_client_type().upper()}_TEMPERATURE", default=0.7, min_val=0, max_val=1
        )

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(
        self,
        messages: list[dict],
        model: str,
        temperature: float,
        max_tokens: int | None,
        stop: list[str] | None,
        stream: bool,
    ) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).
            model (str): The model identifier.
            temperature (float): Sampling temperature in [0, 1].
            max_tokens (int | None): Output token ceiling.
            stop (list[str] | None): Stop sequences.
            stream (bool): Whether the backend should stream the answer.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a non-streaming chat response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.
        """
        pass

    @abstractmethod
    def extract_stream_delta(self, line: str) -> tuple[str | None, bool]:
        """Parse one line of the streamed response body.

        Args:
            line (str): A single line as delivered by the backend (SSE or NDJSON).

        Returns:
            tuple[str | None, bool]: (text delta or None, True if the backend signalled the end of the stream)

        Raises:
            UpstreamStreamError: If the line carries a provider-side error.
        """
        pass

    def _resolve_model(self, model: str | None) -> str:
        resolved = model or self.chat_model
        if not resolved:
            raise ValueError("No chat model given and LLM_CHAT_MODEL is not set.")
        return resolved

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(
        self,
        messages: list[dict],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send a non-streaming chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages.
            model (str | None): Model override; falls back to LLM_CHAT_MODEL.
            temperature (float | None): Temperature override.
            max_tokens (int | None): Output token ceiling.

        Returns:
            str: The assistant reply text.

        Raises:
            Exception: If the HTTP request fails.
            ValueError: If the response does not contain a valid reply.
        """
        body = self.get_chat_payload(
            messages,
            model=self._resolve_model(model),
            temperature=self.default_temperature if temperature is None else temperature,
            max_tokens=max_tokens,
            stop=None,
            stream=False,
        )
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=body,
            raise_on_error=True,
        )
        return self.extract_chat_response(response.json())

    async def do_stream_chat(
        self,
        messages: list[dict],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        stop: list[str] | None = None,
    ) -> AsyncIterator[str]:
        """Open a streaming completion and yield text deltas in arrival order.

        Closing the returned generator (aclose) closes the HTTP response and
        with it the upstream connection.

        Args:
            messages (list[dict]): OpenAI-format messages.
            model (str | None): Model override; falls back to LLM_CHAT_MODEL.
            temperature (float | None): Temperature override.
            max_tokens (int | None): Output token ceiling.
            stop (list[str] | None): Stop sequences.

        Yields:
            str: Non-empty text fragments.

        Raises:
            UpstreamStreamError: On a non-2xx status, a provider error line, or a transport failure.
        """
        body = self.get_chat_payload(
            messages,
            model=self._resolve_model(model),
            temperature=self.default_temperature if temperature is None else temperature,
            max_tokens=max_tokens,
            stop=stop,
            stream=True,
        )
        try:
            async with self.do_stream_request(method="POST", endpoint=self._get_endpoint_chat(), json=body) as response:
                if response.status_code >= 300:
                    error_body = (await response.aread()).decode("utf-8", errors="replace")
                    self.logging.error(
                        "Streaming chat request failed: status %d, body: %s",
                        response.status_code,
                        error_body[:300],
                    )
                    raise UpstreamStreamError(f"Completion provider returned status {response.status_code}.")
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    delta, done = self.extract_stream_delta(line)
                    if delta:
                        yield delta
                    if done:
                        break
        except httpx.HTTPError as exc:
            raise UpstreamStreamError(f"Completion stream failed: {exc}") from exc
