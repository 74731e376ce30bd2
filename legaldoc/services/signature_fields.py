"""
签名字段元数据生成与坐标变换

- 根据签署人列表和正文页数生成签名/日期字段（位置来自 signature_layout）
- 页码与实际渲染页数的对齐（超出时钳制到最后一页）
- 覆盖层缩放（界面 zoom）与提交时的 DPI 校正（72pt → 96px）

两个缩放因子互不相关：界面 zoom 只影响屏幕显示，提交坐标只乘 DPI_SCALE。
"""
import json
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from legaldoc.core.logger import get_logger
from legaldoc.schemas.legal_document import SignatoryInfo
from legaldoc.schemas.signature import SignatureFieldMetadata, SignatureFieldType, SigningApiField
from legaldoc.services.signature_layout import (
    calculate_signature_pages,
    date_box,
    get_signature_page_number,
    signature_box,
)

logger = get_logger(__name__)

PDF_DPI = 72
SIGNING_API_DPI = 96
DPI_SCALE = SIGNING_API_DPI / PDF_DPI

MIN_ZOOM = 0.5
MAX_ZOOM = 2.0

METADATA_PAYLOAD_VERSION = "1.0"


def generate_signature_field_metadata(
    signatories: list[SignatoryInfo],
    content_pages: int
) -> list[SignatureFieldMetadata]:
    """
    为所有签署人生成签名字段元数据

    与 PDF 签名页使用同一组布局函数，覆盖层位置与静态渲染位置始终一致。

    Args:
        signatories: 签署人列表
        content_pages: 正文页数（签名页排在其后）

    Returns:
        每个签署人两个字段（签名、日期）；无签署人时返回空列表
    """
    fields = []
    for index, signatory in enumerate(signatories):
        page_number = get_signature_page_number(index, content_pages)
        party = signatory.party or "signatory"
        party_id = signatory.party_id()

        sig = signature_box(index)
        fields.append(SignatureFieldMetadata(
            id=f"sig-{index}-{party_id}",
            type=SignatureFieldType.SIGNATURE,
            party=party,
            label=f"{signatory.name} - Signature",
            page_number=page_number,
            signatory_index=index,
            x=sig.x,
            y=sig.y,
            width=sig.width,
            height=sig.height,
        ))

        date = date_box(index)
        fields.append(SignatureFieldMetadata(
            id=f"date-{index}-{party_id}",
            type=SignatureFieldType.DATE,
            party=party,
            label="Date",
            page_number=page_number,
            signatory_index=index,
            x=date.x,
            y=date.y,
            width=date.width,
            height=date.height,
        ))

    return fields


def content_pages_from_total(total_pages: int, signatory_count: int) -> int:
    """从查看器报告的总页数推算正文页数（至少1页）"""
    return max(1, total_pages - calculate_signature_pages(signatory_count))


def clamp_fields_to_pages(
    fields: list[SignatureFieldMetadata],
    num_pages: int
) -> list[SignatureFieldMetadata]:
    """
    将超出实际页数的字段钳制到最后一页
    """
    last_page = max(1, num_pages)
    clamped = []
    for field in fields:
        if field.page_number > last_page:
            logger.warning(
                f"Signature field {field.id} references page {field.page_number} "
                f"but document has {last_page} pages; clamping to last page"
            )
            field = field.model_copy(update={"page_number": last_page})
        clamped.append(field)
    return clamped


def reconcile_field_pages(
    fields: list[SignatureFieldMetadata],
    signatories: list[SignatoryInfo],
    num_pages: int
) -> list[SignatureFieldMetadata]:
    """
    页数变化后重新计算字段页码

    保留字段的坐标（可能已被用户拖动），只按签署人序号重算页码，
    再钳制到实际页数范围内。
    """
    content_pages = content_pages_from_total(num_pages, len(signatories))
    updated = []
    for field in fields:
        page_number = get_signature_page_number(field.signatory_index, content_pages)
        updated.append(field.model_copy(update={"page_number": page_number}))
    return clamp_fields_to_pages(updated, num_pages)


def create_metadata_payload(
    fields: list[SignatureFieldMetadata],
    signatories: list[SignatoryInfo]
) -> str:
    """序列化字段元数据，随 PDF 一起返回给客户端"""
    return json.dumps({
        "version": METADATA_PAYLOAD_VERSION,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "signatureFields": [f.model_dump(by_alias=True, mode="json") for f in fields],
        "signatories": [s.model_dump(exclude_none=True) for s in signatories or []],
    })


def parse_metadata_payload(payload: str) -> list[SignatureFieldMetadata] | None:
    """解析字段元数据，格式错误时返回 None"""
    try:
        data = json.loads(payload)
        raw_fields = data.get("signatureFields")
        if raw_fields is None:
            return None
        return [SignatureFieldMetadata.model_validate(f) for f in raw_fields]
    except (json.JSONDecodeError, AttributeError, TypeError, ValidationError) as e:
        logger.error(f"Failed to parse signature field metadata: {e}")
        return None


# ===== 覆盖层坐标 =====

def clamp_zoom(scale: float) -> float:
    return min(max(scale, MIN_ZOOM), MAX_ZOOM)


def to_screen(field: SignatureFieldMetadata, scale: float) -> dict[str, float]:
    """字段在当前界面缩放下的屏幕像素位置"""
    zoom = clamp_zoom(scale)
    return {
        "x": field.x * zoom,
        "y": field.y * zoom,
        "width": field.width * zoom,
        "height": field.height * zoom,
    }


def from_screen(x: float, y: float, scale: float) -> tuple[float, float]:
    """拖动结束后的屏幕坐标换算回 PDF 点"""
    zoom = clamp_zoom(scale)
    return x / zoom, y / zoom


def move_field(field: SignatureFieldMetadata, screen_x: float, screen_y: float, scale: float) -> SignatureFieldMetadata:
    x, y = from_screen(screen_x, screen_y, scale)
    return field.model_copy(update={"x": x, "y": y})


# ===== DPI 校正 =====

def scale_field(field: SignatureFieldMetadata, factor: float) -> SignatureFieldMetadata:
    """对 x/y/width/height 统一乘以缩放因子，不取整"""
    return field.model_copy(update={
        "x": field.x * factor,
        "y": field.y * factor,
        "width": field.width * factor,
        "height": field.height * factor,
    })


def to_signing_api_fields(fields: list[SignatureFieldMetadata]) -> list[SigningApiField]:
    """
    将 PDF 点坐标转换为签名服务的 96 DPI 像素坐标

    与界面缩放无关。坐标取整到整像素，非法坐标抛出 ValueError。
    """
    converted = []
    invalid = []
    for field in fields:
        scaled = scale_field(field, DPI_SCALE)
        api_field = SigningApiField(
            id=field.id,
            type=field.type,
            signatory_index=field.signatory_index,
            page_number=field.page_number,
            x=round(scaled.x),
            y=round(scaled.y),
            width=round(scaled.width),
            height=round(scaled.height),
            label=field.label or ("Signature" if field.type is SignatureFieldType.SIGNATURE else "Date"),
        )
        if api_field.x < 0 or api_field.y < 0 or api_field.width <= 0 or api_field.height <= 0:
            invalid.append(field.id)
        converted.append(api_field)

    if invalid:
        logger.error(f"Invalid signature field coordinates: {invalid}")
        raise ValueError(
            "Some signature fields have invalid coordinates. Please check and adjust the fields."
        )
    return converted


def fields_from_dicts(raw_fields: list[dict[str, Any]]) -> list[SignatureFieldMetadata]:
    return [SignatureFieldMetadata.model_validate(f) for f in raw_fields]


def fields_to_dicts(fields: list[SignatureFieldMetadata]) -> list[dict[str, Any]]:
    return [f.model_dump(by_alias=True, mode="json") for f in fields]
