"""Pydantic schemas for request/response validation."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case fields in Python, camelCase on the wire (the widget speaks camelCase)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def tenant_field(**kwargs):
    """Body field accepting tenantId, companyId or tenant_id."""
    return Field(validation_alias=AliasChoices("tenantId", "companyId", "tenant_id"), **kwargs)
