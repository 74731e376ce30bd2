from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from legaldoc.schemas.legal_document import SignatoryInfo


class SignatureFieldType(str, Enum):
    SIGNATURE = "signature"
    DATE = "date"
    TEXT = "text"


class SignatureFieldMetadata(BaseModel):
    """
    页面锚定的交互式签名字段

    坐标单位为 PDF 点（72pt/inch），原点在页面左上角。
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="字段ID，由签署人序号与当事方派生")
    type: SignatureFieldType = Field(..., description="字段类型")
    party: str = Field("signatory", description="当事方")
    label: str = Field("", description="显示标签")
    page_number: int = Field(..., ge=1, description="页码，从1开始")
    signatory_index: int = Field(..., ge=0, description="签署人序号，从0开始")
    x: float
    y: float
    width: float
    height: float


class SigningApiField(BaseModel):
    """已转换到签名服务 96 DPI 像素空间的字段"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    type: SignatureFieldType
    signatory_index: int = Field(..., ge=0)
    page_number: int = Field(..., ge=1)
    x: int
    y: int
    width: int
    height: int
    label: str = ""


class SignatureSubmission(BaseModel):
    """提交给电子签名服务的负载"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pdf_base64: str = Field(..., description="已渲染 PDF 的 base64 内容")
    signatories: list[SignatoryInfo] = Field(..., min_length=1)
    signature_fields: list[SigningApiField] = Field(default_factory=list)
    num_pages: int | None = Field(None, ge=1)
    title: str | None = None
    document: dict[str, Any] | None = None


class SignatoryStatus(BaseModel):
    name: str
    email: str | None = None
    status: str = "pending"


class SignatureSendResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str
    tracking_id: str
    document_id: str
    signatories: list[SignatoryStatus] = Field(default_factory=list)
    events: list[dict[str, Any]] = Field(default_factory=list)
