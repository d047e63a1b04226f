"""Environment based configuration."""

import logging
import os
from typing import Any


class HelperConfig:
    """Typed access to environment variables.

    Keys are case-insensitive. A variable set to the empty string counts as
    unset. Every getter takes a ``default``; with ``default=None`` the
    variable is required and a missing value raises ValueError.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @staticmethod
    def _raw(key: str) -> str | None:
        value = os.getenv(key.upper())
        return value.strip() if value and value.strip() else None

    @staticmethod
    def _unset(key: str, default: Any) -> Any:
        if default is None:
            raise ValueError(f"Environment variable '{key.upper()}' is not set.")
        return default

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        raw = self._raw(key)
        return raw if raw is not None else self._unset(key, default)

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Numeric value; "5" gives an int, "0.5" a float.

        Raises:
            ValueError: If unset without default, or not a number.
        """
        raw = self._raw(key)
        if raw is None:
            return self._unset(key, default)
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_positive_int_val(self, key: str, default: int | None = None) -> int:
        """Whole number of at least 1, e.g. a batch size, concurrency bound or limit.

        Raises:
            ValueError: If unset without default, fractional, or below 1.
        """
        value = self.get_number_val(key, default=default)
        if value != int(value):
            raise ValueError(f"Environment variable '{key.upper()}' must be a whole number. Got: '{value}'.")
        if value < 1:
            raise ValueError(f"Environment variable '{key.upper()}' must be at least 1. Got: {int(value)}.")
        return int(value)

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """True for "true", "1" or "yes" (any case), False for anything else."""
        raw = self._raw(key)
        if raw is None:
            return self._unset(key, default)
        return raw.lower() in ("true", "1", "yes")

    def get_logger(self) -> logging.Logger:
        return self._logger
