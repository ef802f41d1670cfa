from pydantic import BaseModel, ConfigDict  # type: ignore
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema class that inherits from Pydantic BaseModel.

    This class provides common configuration for all schema classes including
    camelCase alias generation, population by field name, and attribute mapping.
    """

    model_config: ConfigDict = ConfigDict(  # type: ignore
        alias_generator=to_camel,  # Accept targetBucket as well as target_bucket
        populate_by_name=True,
        from_attributes=True,
        validate_assignment=True,
        str_strip_whitespace=True,
        frozen=True,  # Task input is immutable for the task's lifetime
        use_enum_values=True,
    )
