"""Engine-name → client-class resolution shared by all client managers.

Engines live in ``shared/clients/{type}/{engine}/{Type}Client{Engine}.py``,
e.g. ``shared/clients/llm/openai/LLMClientOpenai.py``.
"""

from shared.helper.HelperConfig import HelperConfig

_CLASS_PREFIX = {
    "llm": "LLMClient",
    "embed": "EmbedClient",
    "store": "StoreClient",
    "auth": "AuthClient",
    "ratelimit": "RateLimitClient",
    "search": "SearchClient",
}


def normalise_engine_name(engine: str) -> str:
    """Lowercase all and uppercase the first letter, e.g. "OPENAI" → "Openai"."""
    return engine.strip().lower().capitalize()


def load_client(helper_config: HelperConfig, client_type: str, engine: str):
    """Import and instantiate the client class for one engine.

    Args:
        helper_config (HelperConfig): Passed to the client constructor.
        client_type (str): Client family, e.g. "llm".
        engine (str): Engine name in any case, e.g. "openai".

    Returns:
        The instantiated client.

    Raises:
        ValueError: If the engine is unsupported or cannot be imported.
    """
    engine = normalise_engine_name(engine)
    class_name = f"{_CLASS_PREFIX[client_type]}{engine}"
    try:
        module = __import__(
            f"shared.clients.{client_type}.{engine.lower()}.{class_name}",
            fromlist=[class_name],
        )
        client_class = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise ValueError(f"Unsupported {client_type.upper()} engine specified: '{engine}'. Error: {e}")
    client = client_class(helper_config=helper_config)
    helper_config.get_logger().debug("Instantiated %s client for engine: %s", client_type.upper(), engine)
    return client
