"""
Shared Schema Base

The API speaks camelCase JSON. Models accept both camelCase and
snake_case on input and always answer in camelCase.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MessageResponse(APIModel):
    success: bool = True
    message: str


PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
