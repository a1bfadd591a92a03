"""
Prompt templates for the chat pipeline.

All model-facing text lives here so it can be reviewed independently of the
pipeline logic.
"""

DEFAULT_SYSTEM_PROMPT: str = (
    "You are Tawarln, a smart, concise and genuinely helpful AI assistant. "
    "Answer in the language the user writes in."
)

# appended to the system prompt depending on the caller's role
ROLE_PERSONAS: dict[str, str] = {
    "owner": (
        "The user is the owner of this workspace. They may ask about the "
        "knowledge base contents and how the assistant is configured."
    ),
    "admin": (
        "The user is an administrator of this workspace and maintains the "
        "knowledge base."
    ),
}

MEMORY_BLOCK: str = """[USER MEMORY]
Facts the user asked you to remember about them:
{memory}"""

# enrichment header per kind; the block replaces the content of the last user turn
ENRICHMENT_HEADERS: dict[str, str] = {
    "knowledge": "[KNOWLEDGE BASE]\nUse the following internal reference material to answer. Prefer it over general knowledge.",
    "scrape": "[WEB PAGE CONTENT]\nThe user shared a link. This is the readable text of {source}:",
    "search": "[WEB SEARCH RESULTS]\nLive search results for \"{source}\". Cite the numbered sources you use:",
}

ENRICHMENT_TEMPLATE: str = """{header}

{text}

[END OF CONTEXT]

User question: {query}"""

QUERY_REWRITE_PROMPT: str = (
    "Rewrite the user's latest message into one short web search query. "
    "Use the conversation for context (resolve pronouns, keep names and dates). "
    "Reply with the search keywords only, no quotes, no explanation."
)

SEARCH_RESULT_LINE: str = "{index}. {title}\n   {link}\n   {snippet}"

KNOWLEDGE_SEPARATOR: str = "\n\n---\n\n"

STOP_SEQUENCES: list[str] = ["\nUser:", "User:", "\nSystem:", "System:"]
