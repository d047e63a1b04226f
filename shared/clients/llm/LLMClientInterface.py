from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(ClientInterface):
    """Chat model used to judge whether two risks describe the same threat.

    Settings: LLM_CHAT_MODEL (default "llama2"), LLM_TEMPERATURE (default 0,
    so repeated re-checks of the same pair agree) and LLM_JSON_MODE (ask the
    backend to constrain the reply to JSON, default off).
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        prefix = self.get_client_type().upper()
        self.chat_model = helper_config.get_string_val(f"{prefix}_CHAT_MODEL", default="llama2")
        self.temperature = float(helper_config.get_number_val(f"{prefix}_TEMPERATURE", default=0.0))
        self.json_mode = helper_config.get_bool_val(f"{prefix}_JSON_MODE", default=False)

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        pass

    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Request body for a non-streaming chat request.

        Args:
            messages (list[dict]): Chat history, e.g. [{"role": "user", "content": "..."}].
        """
        pass

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """
        Raises:
            ValueError: If the answer carries no reply text.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict]) -> str:
        """Send a chat request and return the reply text.

        Failures are raised, not absorbed: the caller decides whether a failed
        re-check keeps the previous score.

        Raises:
            ClientRequestError: On a non-2xx answer.
            httpx.HTTPError: On transport failures.
            ValueError: If the answer carries no reply text.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(messages),
            raise_on_error=True,
        )
        reply = self.extract_chat_response(response.json())
        self.logging.debug("Chat reply from %s (%d chars)", self.chat_model, len(reply))
        return reply
