from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from legaldoc.schemas.legal_document import SignatoryInfo
from legaldoc.schemas.signature import SignatureFieldMetadata


class ReviewSessionCreate(BaseModel):
    status: str = "loading"
    document: dict[str, Any] | None = None
    form_data: dict[str, Any] | None = None
    document_version: str = "blocks"


class ReviewSessionUpdate(BaseModel):
    status: str | None = None
    document: dict[str, Any] | None = None
    document_version: str | None = None
    num_pages: int | None = None
    content_pages: int | None = None
    signature_fields: list[dict[str, Any]] | None = None
    dirty: bool | None = None
    tracking_id: str | None = None
    provider_document_id: str | None = None
    last_error: str | None = None


class ReviewCreateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document: Any = Field(..., description="法律文档 JSON")
    form_data: dict[str, Any] | None = Field(None, description="起草向导表单数据")


class EditStartRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    clicked_text: str | None = Field(None, description="查看器中点击的文本，用于定位块")


class EditTarget(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    block_id: str
    path: list[int]
    text: str
    type: str
    is_title: bool


class EditRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    path: list[int] = Field(..., min_length=1, description="块路径")
    text: str = Field(..., description="新文本")
    is_title: bool = Field(False, description="是否替换 article/section 标题")


class FieldsUpdateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    signature_fields: list[SignatureFieldMetadata]


class SubmitRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    signatories: list[SignatoryInfo] | None = Field(None, description="覆盖文档中的签署人")


class ReviewSessionResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    status: str
    document: dict[str, Any] | None = None
    document_version: str
    num_pages: int | None = None
    content_pages: int | None = None
    signature_fields: list[SignatureFieldMetadata] | None = None
    dirty: bool | None = False
    tracking_id: str | None = None
    last_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EditStartResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session: ReviewSessionResponse
    target: EditTarget | None = None
