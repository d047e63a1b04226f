from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientRequestError(Exception):
    """A backend answered with a status of 300 or above."""

    def __init__(self, url: str, status_code: int, body: str = ""):
        super().__init__(f"Request to {url} failed with status {status_code}")
        self.url = url
        self.status_code = status_code
        self.body = body


class ClientInterface(ABC):
    """Base for HTTP backends (embedding models, chat models).

    Configuration follows ``<TYPE>_<ENGINE>_<KEY>`` (e.g. ``EMBED_OLLAMA_BASE_URL``)
    and is validated when the client is constructed, so a misconfigured
    engine fails at startup instead of on the first request. The underlying
    ``httpx.AsyncClient`` only exists between boot() and close().
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Raises:
            ValueError: If a required key is unset or a value has the wrong type.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """Lowercase client type, e.g. "embed"."""
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """Lowercase engine name, e.g. "ollama"."""
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """Configuration keys of the engine, checked on construction."""
        pass

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Read an engine setting, e.g. raw_key "BASE_URL" of the ollama embed
        client reads EMBED_OLLAMA_BASE_URL.

        Args:
            raw_key (str): Key without the "<TYPE>_<ENGINE>_" prefix.
            default (Any): Value if unset; None makes the key required.
            val_type (str): "string", "number" or "bool".
        """
        key = f"{self.get_client_type()}_{self.get_engine_name()}_{raw_key}".upper()
        getters = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
        }
        if val_type not in getters:
            raise ValueError(f"Unsupported config value type '{val_type}' for {key}.")
        return getters[val_type](key, default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers that authenticate against the backend; empty when no secret is configured."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    def _build_url(self, endpoint: str) -> str:
        path = endpoint.strip().lstrip("/")
        base = self._get_base_url().rstrip("/")
        return f"{base}/{path}" if path else base

    ##########################################
    ############## LIFECYCLE #################
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP client.

        Args:
            transport (httpx.AsyncBaseTransport | None): Replaces the network
                transport, e.g. with httpx.MockTransport.
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """
        Raises:
            ClientRequestError: If the backend answers with a non-2xx status.
            httpx.HTTPError: If the backend cannot be reached.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), raise_on_error=True)

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send one request to the backend.

        At most one body is sent: ``content`` wins over ``json``.

        Returns:
            httpx.Response: The response, whatever its status unless raise_on_error is set.

        Raises:
            RuntimeError: If boot() was not called.
            ClientRequestError: If raise_on_error is set and the status is 300 or above.
            httpx.HTTPError: On transport failures (timeout, connection refused).
        """
        if self._client is None:
            raise RuntimeError(f"{self.get_client_type()} client '{self.get_engine_name()}' is not booted.")

        url = self._build_url(endpoint)
        headers = {**self._get_auth_header(), **(additional_headers or {})}
        body: dict = {}
        if content is not None:
            body["content"] = content
        elif json is not None:
            body["json"] = json

        response = await self._client.request(method, url, headers=headers, params=params, timeout=self.timeout, **body)

        if raise_on_error and response.status_code >= 300:
            self.logging.error("Request to %s failed with status %d: %s", url, response.status_code, response.text[:200])
            raise ClientRequestError(url, response.status_code, response.text[:200])
        return response
