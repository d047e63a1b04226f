from shared.clients.client_loader import build_engine_client
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig


class EmbedClientManager:
    """Holds the embedding client selected by EMBED_ENGINE (default "ollama")."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.client: EmbedClientInterface = build_engine_client(helper_config, client_type="embed", default_engine="ollama")

    def get_client(self) -> EmbedClientInterface:
        return self.client
