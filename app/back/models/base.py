# app/back/models/base.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    파이썬 쪽은 snake_case, JSON(API 응답 / metadata.json)은 camelCase
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        # model_id 필드 때문에
        protected_namespaces=(),
    )
