"""Runtime selection of client engines.

An engine implementation lives in
``shared/clients/<type>/<engine>/<Prefix><Engine>.py`` and is picked by the
``<TYPE>_ENGINE`` environment variable, e.g. ``EMBED_ENGINE=aiservice`` loads
``shared.clients.embed.aiservice.EmbedClientAiservice``.
"""

from typing import Any

from shared.helper.HelperConfig import HelperConfig

_CLASS_PREFIXES = {
    "embed": "EmbedClient",
    "llm": "LLMClient",
    "store": "StoreClient",
}


def resolve_engine(helper_config: HelperConfig, client_type: str, default_engine: str) -> str:
    """Lowercase engine name configured for a client type."""
    env_key = f"{client_type.upper()}_ENGINE"
    engine = helper_config.get_string_val(env_key, default=default_engine).strip().lower()
    if not engine:
        raise ValueError(f"No {client_type} engine specified in configuration ({env_key}).")
    return engine


def build_engine_client(helper_config: HelperConfig, client_type: str, default_engine: str) -> Any:
    """Import and instantiate the configured engine of a client type.

    Args:
        helper_config (HelperConfig): Passed on to the client constructor.
        client_type (str): "embed", "llm" or "store".
        default_engine (str): Engine used when ``<TYPE>_ENGINE`` is unset.

    Returns:
        Any: The client instance; its configuration is validated by its constructor.

    Raises:
        ValueError: If the engine cannot be found or its configuration is incomplete.
    """
    engine = resolve_engine(helper_config, client_type, default_engine)
    class_name = f"{_CLASS_PREFIXES[client_type]}{engine.capitalize()}"
    module_path = f"shared.clients.{client_type}.{engine}.{class_name}"
    try:
        module = __import__(module_path, fromlist=[class_name])
        client_class = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise ValueError(f"Unsupported {client_type} engine '{engine}' (looked for {module_path}): {e}")

    client = client_class(helper_config=helper_config)
    helper_config.get_logger().debug("Instantiated %s client for engine: %s", client_type, engine)
    return client
