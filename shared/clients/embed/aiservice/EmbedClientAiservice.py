import asyncio

import httpx

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientAiservice(EmbedClientInterface):
    """Embedding client for the internal AI service.

    The AI service fronts the embedding model for all backend services and is
    reached with a shared internal service token. Transport errors and 5xx
    answers are retried with exponential backoff (base, 2x base, 4x base, …).
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._service_token = self.get_config_val("SERVICE_TOKEN", default="", val_type="string")
        self._retry_attempts = max(1, int(self.get_config_val("RETRY_ATTEMPTS", default=3, val_type="number")))
        self._retry_base_delay = float(self.get_config_val("RETRY_BASE_DELAY", default=1.0, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Aiservice"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="SERVICE_TOKEN", val_type="string", default=""),
            EnvConfig(env_key="RETRY_ATTEMPTS", val_type="number", default=3),
            EnvConfig(env_key="RETRY_BASE_DELAY", val_type="number", default=1.0),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._service_token:
            return {"X-Internal-Service-Token": self._service_token}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/health"

    def get_endpoint_embedding(self) -> str:
        return "/v1/embeddings/generate"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, text: str) -> dict:
        """Build the AI service embedding request body.

        The service resolves the model itself, the configured model name is
        sent along for logging on the service side.

        Returns:
            dict: {"model": "...", "text": "..."}
        """
        return {"model": self.embed_model, "text": text}

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _post_embedding(self, body: dict) -> httpx.Response:
        """Send the embedding request, retrying transport errors and 5xx answers.

        Returns:
            httpx.Response: The first non-5xx response, or the last 5xx one.

        Raises:
            httpx.HTTPError: If the last attempt fails at transport level.
        """
        for attempt in range(1, self._retry_attempts + 1):
            try:
                response = await super()._post_embedding(body)
                if response.status_code < 500 or attempt == self._retry_attempts:
                    return response
                reason = f"status {response.status_code}"
            except httpx.TransportError as exc:
                if attempt == self._retry_attempts:
                    raise
                reason = str(exc) or type(exc).__name__

            delay = self._retry_base_delay * (2 ** (attempt - 1))
            self.logging.warning(
                "AI service embedding attempt %d of %d failed (%s), retrying in %.1fs...",
                attempt, self._retry_attempts, reason, delay,
            )
            await asyncio.sleep(delay)
