from shared.clients.client_loader import build_engine_client
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig


class StoreClientManager:
    """Holds the record store client selected by STORE_ENGINE (default "postgres")."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.client: StoreClientInterface = build_engine_client(helper_config, client_type="store", default_engine="postgres")

    def get_client(self) -> StoreClientInterface:
        return self.client
