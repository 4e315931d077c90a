"""Base model for objects exchanged over the (HTTP) API."""

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin


class CamelCaseModel(DataClassORJSONMixin):
    """Base for models that are (de)serialized with camelCase keys on the wire."""

    class Config(BaseConfig):
        """Serialize all fields by their (camelCase) alias."""

        serialize_by_alias = True


def alias(name: str) -> dict[str, str]:
    """Return the field metadata to (de)serialize a field by the given alias."""
    return {"alias": name}
