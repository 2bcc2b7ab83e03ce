from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    API boundary adapter: serializes camelCase and accepts either camelCase
    or snake_case on input, so callers never normalize field names themselves.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def round_hours(value: float) -> float:
    return round(value, 1)
