from shared.clients.client_loader import build_engine_client
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig


class LLMClientManager:
    """Holds the chat client used for semantic re-checks, selected by LLM_ENGINE (default "ollama")."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.client: LLMClientInterface = build_engine_client(helper_config, client_type="llm", default_engine="ollama")

    def get_client(self) -> LLMClientInterface:
        return self.client
