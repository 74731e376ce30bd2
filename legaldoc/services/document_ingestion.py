"""
文档接入边界

在数据进入系统时一次性确定文档版本（块结构 / 旧版 articles 结构），
并对块结构文档做必填字段校验。后续渲染与导出只看版本标签，不再做形状探测。
"""
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from legaldoc.core.logger import get_logger
from legaldoc.schemas.legal_document import DocumentVersion, LegalDocument

logger = get_logger(__name__)

SCHEMA_VERSION_KEY = "schemaVersion"


class DocumentValidationError(ValueError):
    """文档缺少必填字段或结构不合法"""


class LegacyDocumentError(DocumentValidationError):
    """旧版 articles 结构文档，无法按块结构处理"""


@dataclass
class IngestedDocument:
    version: DocumentVersion
    document: LegalDocument | None
    raw: dict[str, Any]

    @property
    def is_legacy(self) -> bool:
        return self.version is DocumentVersion.LEGACY_ARTICLES


def detect_document_version(payload: dict[str, Any]) -> DocumentVersion:
    """
    确定文档版本

    优先使用显式的 schemaVersion 字段；缺省时只有「有 articles 且无 content」
    的文档才判定为旧版结构。
    """
    explicit = payload.get(SCHEMA_VERSION_KEY)
    if explicit is not None:
        try:
            return DocumentVersion(explicit)
        except ValueError:
            raise DocumentValidationError(f"Unknown document schema version: {explicit}")

    if "articles" in payload and "content" not in payload:
        return DocumentVersion.LEGACY_ARTICLES
    return DocumentVersion.BLOCKS


def validate_required_fields(payload: dict[str, Any]) -> None:
    """metadata.title 与 content 必须存在，缺失视为硬错误"""
    metadata = payload.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("title"):
        raise DocumentValidationError("Document is missing required field: metadata.title")
    content = payload.get("content")
    if content is None:
        raise DocumentValidationError("Document is missing required field: content")
    if not isinstance(content, list):
        raise DocumentValidationError(
            f"Document content must be an array of blocks, got {type(content).__name__}"
        )


def ingest_document(payload: Any) -> IngestedDocument:
    """
    接入文档负载

    Args:
        payload: 外部（AI 起草 / 会话存储）提供的 JSON 对象

    Returns:
        带版本标签的文档；旧版结构原样保留在 raw 中

    Raises:
        DocumentValidationError: 负载不是对象，或块结构文档缺少必填字段
    """
    if not isinstance(payload, dict):
        raise DocumentValidationError(
            f"Document payload must be a JSON object, got {type(payload).__name__}"
        )

    version = detect_document_version(payload)
    if version is DocumentVersion.LEGACY_ARTICLES:
        logger.warning("Legacy articles-based document received; it cannot be rendered faithfully")
        return IngestedDocument(version=version, document=None, raw=payload)

    validate_required_fields(payload)
    try:
        document = LegalDocument.model_validate(payload)
    except ValidationError as e:
        raise DocumentValidationError(f"Invalid document format: {e.errors()[0].get('msg', str(e))}") from e

    problems = document.structure_problems()
    for problem in problems:
        logger.warning(f"Block structure contract violation: {problem}")

    return IngestedDocument(version=version, document=document, raw=payload)


def require_block_document(payload: Any) -> LegalDocument:
    """接入并要求为块结构文档"""
    ingested = ingest_document(payload)
    if ingested.is_legacy:
        raise LegacyDocumentError("This document format is no longer supported. Please regenerate the document.")
    return ingested.document


def dump_document(document: LegalDocument) -> dict[str, Any]:
    """序列化为会话存储使用的 JSON 对象"""
    data = document.model_dump(by_alias=True, exclude_none=True, mode="json")
    data[SCHEMA_VERSION_KEY] = DocumentVersion.BLOCKS.value
    return data
