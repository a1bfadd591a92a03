"""Query extraction and prompt assembly for one chat request."""

from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import MEDIA_PLACEHOLDER, ChatTurn, TextPart
from shared.models.context import CallerIdentity, EnrichmentResult
from shared.models.errors import InputTooLargeError, InvalidInputError
from services.chat.prompt_templates import (
    DEFAULT_SYSTEM_PROMPT,
    ENRICHMENT_HEADERS,
    ENRICHMENT_TEMPLATE,
    MEMORY_BLOCK,
    ROLE_PERSONAS,
)


class PromptBuilder:
    """Builds the final message list sent to the completion provider.

    Pure string work: nothing here performs I/O.
    """

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        self.default_system_prompt = helper_config.get_string_val("CHAT_DEFAULT_SYSTEM_PROMPT", default=DEFAULT_SYSTEM_PROMPT)
        self.max_input_chars = int(helper_config.get_number_val("CHAT_MAX_INPUT_CHARS", default=2000, min_val=1))

    ##########################################
    ################ QUERY ###################
    ##########################################

    def extract_query(self, messages: list[ChatTurn]) -> str:
        """Return the plain-text query of the last turn.

        Plain text is used as is; for multi-modal content the first text part
        is used; without any text the media placeholder is substituted.

        Raises:
            InvalidInputError: If there are no messages or the last turn is not user-authored.
        """
        if not messages:
            raise InvalidInputError("Conversation must contain at least one message.")
        last_turn = messages[-1]
        if last_turn.role != "user":
            raise InvalidInputError("The last message must be authored by the user.")
        text = last_turn.first_text()
        if text is None:
            return MEDIA_PLACEHOLDER
        if not text.strip() and last_turn.image_parts():
            return MEDIA_PLACEHOLDER
        return text

    def validate_query(self, query: str) -> None:
        """Reject oversized input before any provider is called.

        Raises:
            InputTooLargeError: If the query exceeds CHAT_MAX_INPUT_CHARS.
            InvalidInputError: If the query is blank.
        """
        if len(query) > self.max_input_chars:
            raise InputTooLargeError(
                f"Message is too long ({len(query)} characters). The limit is {self.max_input_chars}."
            )
        if not query.strip():
            raise InvalidInputError("Message must not be empty.")

    ##########################################
    ############# SYSTEM PROMPT ##############
    ##########################################

    def build_system_prompt(self, caller: CallerIdentity, override: str | None = None) -> str:
        """Base prompt (override or default) + role persona + caller memory."""
        prompt = override.strip() if override and override.strip() else self.default_system_prompt
        persona = ROLE_PERSONAS.get(caller.role)
        if persona:
            prompt += "\n\n" + persona
        if caller.memory and caller.memory.strip():
            prompt += "\n\n" + MEMORY_BLOCK.format(memory=caller.memory.strip())
        return prompt

    ##########################################
    ############### ASSEMBLY #################
    ##########################################

    @staticmethod
    def render_enrichment(enrichment: EnrichmentResult, query: str) -> str:
        header = ENRICHMENT_HEADERS[enrichment.kind.value].format(source=enrichment.source_descriptor)
        return ENRICHMENT_TEMPLATE.format(header=header, text=enrichment.injected_text, query=query)

    def assemble_messages(
        self,
        system_prompt: str,
        messages: list[ChatTurn],
        query: str,
        enrichment: EnrichmentResult | None = None,
    ) -> list[dict]:
        """Final list: [system, *prior turns, last turn].

        With an enrichment the last turn's text is replaced by the rendered
        block (header + evidence + original query); image parts of a
        multi-modal last turn are kept after it.
        """
        prior = [turn.to_provider_message() for turn in messages[:-1]]
        last_turn = messages[-1]

        if enrichment is None or not enrichment.injected_text:
            last_message = last_turn.to_provider_message()
        else:
            block = self.render_enrichment(enrichment, query)
            images = last_turn.image_parts()
            if images:
                content = [TextPart(text=block), *images]
                last_message = ChatTurn(role="user", content=content).to_provider_message()
            else:
                last_message = {"role": "user", "content": block}

        return [{"role": "system", "content": system_prompt}, *prior, last_message]
