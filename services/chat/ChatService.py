"""Chat request orchestration.

Order of a request (fixed, each step may short-circuit):

1. authenticate            -> UnauthorizedError
2. rate limit              -> RateLimitedError
3. extract the query       -> InvalidInputError
4. validate its length     -> InputTooLargeError
5. build the system prompt (persona + role + caller memory)
6. select at most one enrichment
7. assemble the provider messages
8. open the completion stream
"""

import asyncio

from pydantic import BaseModel

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.ratelimit.RateLimitClientInterface import RateLimitClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatTurn
from shared.models.context import CallerIdentity, EnrichmentResult, RequestContext
from shared.models.errors import RateLimitedError, RequestCancelledError, UnauthorizedError
from services.chat.PromptBuilder import PromptBuilder
from services.chat.StreamRelay import StreamFormat, StreamRelay
from services.chat.prompt_templates import STOP_SEQUENCES
from services.enrichment.EnrichmentPipeline import EnrichmentPipeline


class PreparedChat(BaseModel):
    """Everything needed to open the completion stream for one request."""

    context: RequestContext
    enrichment: EnrichmentResult | None = None
    provider_messages: list[dict]


class ChatService:
    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        rate_limiter: RateLimitClientInterface,
        enrichment_pipeline: EnrichmentPipeline,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._llm_client = llm_client
        self._rate_limiter = rate_limiter
        self._enrichment = enrichment_pipeline
        self._prompt_builder = prompt_builder or PromptBuilder(helper_config)

        self.default_model = helper_config.get_string_val("CHAT_DEFAULT_MODEL", default=llm_client.chat_model)
        self.max_tokens = int(helper_config.get_number_val("CHAT_MAX_TOKENS", default=2048, min_val=1))

    ##########################################
    ############### PIPELINE #################
    ##########################################

    async def _check_rate_limit(self, caller: CallerIdentity) -> None:
        try:
            decision = await self._rate_limiter.do_check(caller.user_id)
        except Exception as e:
            # limiter backend down: let the request through
            self.logging.error("Rate limiter unavailable, allowing request for '%s': %s", caller.user_id, e)
            return
        if not decision.allowed:
            self.logging.info(
                "Rate limit exceeded for '%s' (%d/%d), retry in %.1fs.",
                caller.user_id,
                decision.limit - decision.remaining,
                decision.limit,
                decision.retry_after,
            )
            raise RateLimitedError("Too many requests. Please slow down.", retry_after=decision.retry_after)

    async def prepare(
        self,
        caller: CallerIdentity | None,
        messages: list[ChatTurn],
        model: str | None = None,
        temperature: float | None = None,
        system_prompt: str | None = None,
        web_search: bool = False,
    ) -> PreparedChat:
        """Run the request pipeline up to (not including) the completion call.

        Args:
            caller (CallerIdentity | None): The authenticated caller, None if the token was missing or invalid.
            messages (list[ChatTurn]): Conversation so far; the last turn is the new user message.
            model (str | None): Model override.
            temperature (float | None): Sampling temperature in [0, 1].
            system_prompt (str | None): System prompt override.
            web_search (bool): Whether the caller asked for a web search.

        Returns:
            PreparedChat: Context, chosen enrichment and the final provider messages.

        Raises:
            UnauthorizedError: If there is no caller.
            RateLimitedError: If the caller exceeded the quota.
            InvalidInputError: If the conversation is malformed.
            InputTooLargeError: If the query is longer than CHAT_MAX_INPUT_CHARS.
        """
        if caller is None:
            raise UnauthorizedError("Unauthorized")

        await self._check_rate_limit(caller)

        query = self._prompt_builder.extract_query(messages)
        self._prompt_builder.validate_query(query)

        ctx = RequestContext(
            caller=caller,
            model=model or self.default_model,
            temperature=self._llm_client.default_temperature if temperature is None else temperature,
            system_prompt=system_prompt,
            web_search=web_search,
            messages=messages,
            query=query,
        )
        final_system_prompt = self._prompt_builder.build_system_prompt(caller, system_prompt)

        enrichment = await self._enrichment.do_select(ctx)

        provider_messages = self._prompt_builder.assemble_messages(
            system_prompt=final_system_prompt,
            messages=messages,
            query=query,
            enrichment=enrichment,
        )
        self.logging.debug(
            "Prepared chat for '%s': %d message(s), enrichment=%s, model=%s",
            caller.user_id,
            len(provider_messages),
            enrichment.kind.value if enrichment else "none",
            ctx.model,
        )
        return PreparedChat(context=ctx, enrichment=enrichment, provider_messages=provider_messages)

    ##########################################
    ############### STREAMING ################
    ##########################################

    async def open_stream(
        self,
        prepared: PreparedChat,
        cancel_event: asyncio.Event | None = None,
        stream_format: StreamFormat = StreamFormat.TEXT,
    ) -> StreamRelay:
        """Start the completion and wait for its first delta.

        Raises:
            RequestCancelledError: If cancel_event is already set. No completion call is made.
            UpstreamStreamError: If the provider fails before the first delta.
        """
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError("Request was cancelled before the completion started.")

        upstream = self._llm_client.do_stream_chat(
            prepared.provider_messages,
            model=prepared.context.model,
            temperature=prepared.context.temperature,
            max_tokens=self.max_tokens,
            stop=STOP_SEQUENCES,
        )
        relay = StreamRelay(
            self._helper_config,
            upstream=upstream,
            stream_format=stream_format,
            cancel_event=cancel_event,
        )
        await relay.do_open()
        return relay
