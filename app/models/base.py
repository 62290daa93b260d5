from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for documents exchanged with the school API.

    The API speaks camelCase JSON; attributes stay snake_case and either
    spelling is accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )

    def to_api(self, **kwargs) -> dict:
        """Dump with camelCase keys, ready to send as a request body."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)
