from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:11434", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:11434"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    def _get_auth_header(self) -> dict:
        # only set behind an authenticating proxy
        return {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    def get_chat_payload(self, messages: list[dict]) -> dict:
        payload = {
            "model": self.chat_model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": self.temperature},
        }
        if self.json_mode:
            payload["format"] = "json"
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        """Reply text of an /api/chat answer.

        Also accepts the top-level "response" field that /api/generate style
        proxies return.
        """
        content = (response_data.get("message") or {}).get("content")
        if content is None:
            content = response_data.get("response")
        if content is None:
            raise ValueError(f"Ollama chat answer has no reply text. Response keys: {list(response_data.keys())}")
        return content
