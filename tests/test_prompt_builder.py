import pytest

from shared.models.chat import MEDIA_PLACEHOLDER, ChatTurn, ImagePart, ImageUrl, TextPart
from shared.models.context import CallerIdentity, EnrichmentKind, EnrichmentResult
from shared.models.errors import InputTooLargeError, InvalidInputError
from services.chat.PromptBuilder import PromptBuilder
from services.chat.prompt_templates import DEFAULT_SYSTEM_PROMPT, ROLE_PERSONAS


@pytest.fixture
def builder(helper_config):
    return PromptBuilder(helper_config)


def _image(url: str = "https://img.example.com/cat.png") -> ImagePart:
    return ImagePart(image_url=ImageUrl(url=url))


class TestExtractQuery:
    def test_plain_text(self, builder):
        assert builder.extract_query([ChatTurn(role="user", content="hello")]) == "hello"

    def test_first_text_part_of_multimodal_turn(self, builder):
        turn = ChatTurn(role="user", content=[_image(), TextPart(text="what is this?"), TextPart(text="second")])
        assert builder.extract_query([turn]) == "what is this?"

    def test_media_without_text_gets_placeholder(self, builder):
        turn = ChatTurn(role="user", content=[_image()])
        assert builder.extract_query([turn]) == MEDIA_PLACEHOLDER

    def test_content_list_without_text_part_gets_placeholder(self, builder):
        query = builder.extract_query([ChatTurn(role="user", content=[])])
        assert query == MEDIA_PLACEHOLDER
        builder.validate_query(query)

    def test_last_turn_not_from_user(self, builder):
        with pytest.raises(InvalidInputError):
            builder.extract_query([ChatTurn(role="assistant", content="hi")])


class TestValidateQuery:
    def test_too_long(self, builder):
        with pytest.raises(InputTooLargeError):
            builder.validate_query("a" * 2001)

    def test_blank(self, builder):
        with pytest.raises(InvalidInputError):
            builder.validate_query("   ")

    def test_limit_from_config(self, monkeypatch, helper_config):
        monkeypatch.setenv("CHAT_MAX_INPUT_CHARS", "10")
        builder = PromptBuilder(helper_config)
        builder.validate_query("a" * 10)
        with pytest.raises(InputTooLargeError):
            builder.validate_query("a" * 11)


class TestSystemPrompt:
    def test_default_for_plain_user(self, builder):
        prompt = builder.build_system_prompt(CallerIdentity(user_id="u"))
        assert prompt == DEFAULT_SYSTEM_PROMPT

    def test_override_role_and_memory_are_concatenated(self, builder):
        caller = CallerIdentity(user_id="u", role="admin", memory="Lives in Bandung.")
        prompt = builder.build_system_prompt(caller, override="You are a pirate.")

        assert prompt.startswith("You are a pirate.")
        assert ROLE_PERSONAS["admin"] in prompt
        assert "Lives in Bandung." in prompt
        assert DEFAULT_SYSTEM_PROMPT not in prompt

    def test_blank_override_falls_back_to_default(self, builder):
        prompt = builder.build_system_prompt(CallerIdentity(user_id="u"), override="  ")
        assert prompt == DEFAULT_SYSTEM_PROMPT


class TestAssembleMessages:
    def test_without_enrichment_messages_pass_through(self, builder):
        messages = [
            ChatTurn(role="user", content="a"),
            ChatTurn(role="assistant", content="b"),
            ChatTurn(role="user", content="c"),
        ]
        result = builder.assemble_messages("SYS", messages, "c")
        assert result == [
            {"role": "system", "content": "SYS"},
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "b"},
            {"role": "user", "content": "c"},
        ]

    def test_enrichment_block_contains_header_text_and_query(self, builder):
        enrichment = EnrichmentResult(
            kind=EnrichmentKind.SCRAPE,
            injected_text="Page body text.",
            source_descriptor="https://example.com/page",
        )
        result = builder.assemble_messages("SYS", [ChatTurn(role="user", content="summarise https://example.com/page")], "summarise https://example.com/page", enrichment)

        content = result[-1]["content"]
        assert isinstance(content, str)
        assert "[WEB PAGE CONTENT]" in content
        assert "https://example.com/page" in content
        assert "Page body text." in content
        assert content.endswith("User question: summarise https://example.com/page")

    def test_images_are_kept_after_the_replaced_text(self, builder):
        enrichment = EnrichmentResult(kind=EnrichmentKind.KNOWLEDGE, injected_text="fact", source_descriptor="kb")
        turn = ChatTurn(role="user", content=[TextPart(text="q"), _image("https://img.example.com/1.png")])

        content = builder.assemble_messages("SYS", [turn], "q", enrichment)[-1]["content"]

        assert content[0]["type"] == "text"
        assert "fact" in content[0]["text"]
        assert content[1] == {"type": "image_url", "image_url": {"url": "https://img.example.com/1.png"}}

    def test_empty_enrichment_text_is_ignored(self, builder):
        enrichment = EnrichmentResult(kind=EnrichmentKind.SEARCH, injected_text="", source_descriptor="q")
        result = builder.assemble_messages("SYS", [ChatTurn(role="user", content="q")], "q", enrichment)
        assert result[-1] == {"role": "user", "content": "q"}
