from abc import abstractmethod

import httpx
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="nomic-embed-text")
        self.embed_max_text_length = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_MAX_TEXT_LENGTH", default=1024))
        # 0 disables the dimensionality check
        self.embed_dimensions = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_DIMENSIONS", default=0))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/api/embeddings")

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, text: str) -> dict:
        """Build the backend-specific request body for a single-text embedding request.

        Args:
            text (str): The text to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "prompt": "..."}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embedding_from_response(self, response_data: dict) -> list[float]:
        """Extract the embedding vector from a raw embedding API response.

        Both supported backends answer with {"embedding": [...]}.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[float]: The embedding vector.

        Raises:
            ValueError: If the vector is missing, not a list, or empty.
        """
        embedding = response_data.get("embedding") if isinstance(response_data, dict) else None
        if not isinstance(embedding, list) or not embedding:
            keys = list(response_data.keys()) if isinstance(response_data, dict) else type(response_data).__name__
            raise ValueError(f"Embedding response does not contain a valid vector. Response keys: {keys}")
        return [float(v) for v in embedding]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _post_embedding(self, body: dict) -> httpx.Response:
        """Send one embedding request. Engines override this to add retries."""
        return await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)

    async def generate(self, text: str) -> list[float] | None:
        """Embed a single text, best-effort.

        Never raises: a blank text, a non-2xx status, a response without a
        usable vector, a vector of the wrong dimensionality and any transport
        error are logged and mapped to None. Callers that persist vectors rely
        on this so an unavailable model never rolls back unrelated work.

        Args:
            text (str): The text to embed.

        Returns:
            list[float] | None: The vector, or None on any failure.
        """
        normalized = (text or "").strip()
        if not normalized:
            return None

        try:
            response = await self._post_embedding(self.get_embed_payload(normalized))
            if response.status_code < 200 or response.status_code >= 300:
                self.logging.error(
                    "Embedding request to %s failed: status %d, body: %s. Model '%s' may not support embeddings.",
                    self.get_engine_name(),
                    response.status_code,
                    response.text[:200],
                    self.embed_model,
                )
                return None
            embedding = self.extract_embedding_from_response(response.json())
        except ValueError as exc:
            # also covers undecodable JSON bodies
            self.logging.error("Embedding model '%s' returned no usable vector: %s", self.embed_model, exc)
            return None
        except Exception as exc:
            self.logging.error(
                "Failed to generate embedding via %s: %s. Make sure the backend is running and model '%s' supports embeddings.",
                self.get_engine_name(),
                exc,
                self.embed_model,
            )
            return None

        if self.embed_dimensions and len(embedding) != self.embed_dimensions:
            self.logging.error(
                "Embedding model '%s' returned %d dimensions, expected %d. Check EMBED_MODEL / EMBED_DIMENSIONS.",
                self.embed_model,
                len(embedding),
                self.embed_dimensions,
            )
            return None

        self.logging.debug("Generated embedding of length %d for text: %r", len(embedding), normalized[:50])
        return embedding
