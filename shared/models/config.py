from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required by a client engine.

    Attributes:
        env_key (str): The raw key of the environment variable, without the "<TYPE>_<ENGINE>_" prefix.
        val_type (str): The expected type of the value. Supported types are "string", "number" and "bool".
        default (str | int | float | bool | None): Fallback if the variable is not set. If None, the variable is required and an error is raised when it is missing.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | None = None
