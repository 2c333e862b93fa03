# storefront/schemas/common.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """JSON en camelCase hacia el frontend; acepta snake_case de entrada."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
