from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from legaldoc.schemas.legal_document import SignatoryInfo
from legaldoc.schemas.signature import SignatureFieldMetadata


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentRenderRequest(CamelModel):
    # 原始 JSON，经接入边界校验与版本判定
    document: Any = Field(..., description="法律文档 JSON")
    form_data: dict[str, Any] | None = Field(None, description="起草向导表单数据")


class PdfMetadataResponse(CamelModel):
    success: bool = True
    pdf_base64: str
    num_pages: int
    content_pages: int
    signature_fields: list[SignatureFieldMetadata] = Field(default_factory=list)
    message: str | None = None


class SignatureFieldsRequest(CamelModel):
    signatories: list[SignatoryInfo] = Field(default_factory=list)
    num_pages: int | None = Field(None, ge=1, description="查看器报告的页数")
    pages_include_signatures: bool = Field(True, description="num_pages 是否已包含签名页")


class SignatureFieldsResponse(CamelModel):
    signature_fields: list[SignatureFieldMetadata]
    content_pages: int
    signature_pages: int
    num_pages: int


class DraftRequest(CamelModel):
    form_data: dict[str, Any] = Field(..., description="起草向导表单数据")
    template: str | None = Field(None, description="模板标识")


class DraftResponse(CamelModel):
    success: bool = True
    document: dict[str, Any]
    metadata: dict[str, Any]
