"""
导出器共用的工具函数与固定文案
"""
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from legaldoc.core.config import settings
from legaldoc.schemas.signature import SignatureFieldMetadata

INVALID_DOCUMENT_MESSAGE = "Invalid document format. Please regenerate the document."
LEGACY_DOCUMENT_MESSAGE = "This document format is no longer supported. Please regenerate the document."

FILENAME_FALLBACK = "Legal_Document"


class RenderStatus(str, Enum):
    OK = "ok"
    INVALID = "invalid"
    LEGACY = "legacy"


@dataclass
class RenderResult:
    """导出结果"""
    content: bytes
    status: RenderStatus = RenderStatus.OK
    num_pages: int = 1
    content_pages: int = 1
    signature_fields: list[SignatureFieldMetadata] = field(default_factory=list)
    message: str | None = None


def sanitize_filename(name: object, fallback: str = FILENAME_FALLBACK) -> str:
    """
    生成安全的下载文件名

    去除危险字符，空白折叠为下划线，并限制长度。
    """
    if not name or not isinstance(name, str):
        return fallback

    sanitized = unicodedata.normalize("NFKD", name)
    sanitized = re.sub(r"[^\w\s-]", "", sanitized, flags=re.ASCII).strip()
    sanitized = re.sub(r"\s+", "_", sanitized)
    sanitized = re.sub(r"_+", "_", sanitized)

    if not sanitized:
        return fallback
    return sanitized[:settings.MAX_FILENAME_LENGTH]


def format_effective_date(value: str) -> str:
    """ISO 日期格式化为 'January 5, 2025'，无法解析时原样返回"""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return value
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def format_page_number(template: str, page: int, total: int) -> str:
    return template.replace("{page}", str(page)).replace("{total}", str(total))
