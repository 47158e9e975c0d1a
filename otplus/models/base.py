"""Base model for all records handed to the overtime engine.

This module provides a base Pydantic model with common configuration
and helper behavior for records produced by the Clockify API collaborator.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiRecordModel(BaseModel):
    """Base class for records handed over by the API collaborator.

    Provides common configuration for:
    - camelCase keys (as the Clockify API returns them) or snake_case names
    - Ignoring unknown pass-through keys instead of failing
    - Immutability (frozen models)
    - Arbitrary types support for decimals

    Example:
        >>> class Sample(ApiRecordModel):
        ...     user_id: str
        >>> sample = Sample.model_validate({"userId": "u1", "extra": 1})
        >>> sample.user_id
        'u1'
        >>> sample.model_dump(by_alias=True)
        {'userId': 'u1'}
    """

    model_config = ConfigDict(
        # Accept both "userId" and "user_id"
        alias_generator=to_camel,
        populate_by_name=True,
        # Allow arbitrary types like Decimal
        arbitrary_types_allowed=True,
        strict=False,
        # Pass-through fields from the API must not break validation
        extra="ignore",
        # Records are immutable after creation
        frozen=True,
    )
