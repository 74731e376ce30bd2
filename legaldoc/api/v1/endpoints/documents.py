from base64 import b64encode
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from legaldoc.api.v1.errors import DOMAIN_ERRORS, http_error
from legaldoc.core.logger import get_logger
from legaldoc.schemas.document import (
    DocumentRenderRequest,
    DraftRequest,
    DraftResponse,
    PdfMetadataResponse,
    SignatureFieldsRequest,
    SignatureFieldsResponse,
)
from legaldoc.services.block_renderer import block_renderer
from legaldoc.services.document_ingestion import dump_document, require_block_document
from legaldoc.services.docx_exporter import docx_exporter
from legaldoc.services.drafting import drafting_service
from legaldoc.services.export_utils import RenderResult, sanitize_filename
from legaldoc.services.pdf_exporter import pdf_exporter
from legaldoc.services.signature_fields import (
    clamp_fields_to_pages,
    content_pages_from_total,
    generate_signature_field_metadata,
)
from legaldoc.services.signature_layout import calculate_signature_pages

router = APIRouter()
logger = get_logger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _document_title(document: Any) -> str | None:
    if isinstance(document, dict) and isinstance(document.get("metadata"), dict):
        return document["metadata"].get("title")
    return None


def _file_response(result: RenderResult, document: Any, media_type: str, extension: str) -> Response:
    file_name = sanitize_filename(_document_title(document))
    return Response(
        content=result.content,
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{file_name}.{extension}"',
            "X-Render-Status": result.status.value,
            "X-Num-Pages": str(result.num_pages),
        }
    )


@router.post("/generate-pdf")
async def generate_pdf(
    request: DocumentRenderRequest,
    metadata: bool = Query(False, description="返回 JSON（base64 PDF + 签名字段）")
):
    """
    生成 PDF

    无效或旧版文档返回单页说明，而不是报错。
    """
    try:
        result = pdf_exporter.export(request.document)

        if metadata:
            return PdfMetadataResponse(
                success=True,
                pdf_base64=b64encode(result.content).decode("ascii"),
                num_pages=result.num_pages,
                content_pages=result.content_pages,
                signature_fields=result.signature_fields,
                message=result.message,
            ).model_dump(by_alias=True, mode="json")

        return _file_response(result, request.document, PDF_MEDIA_TYPE, "pdf")

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating PDF: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to generate PDF: {str(e)}")


@router.post("/generate-docx")
async def generate_docx(request: DocumentRenderRequest):
    """
    生成 DOCX
    """
    try:
        result = docx_exporter.export(request.document)
        return _file_response(result, request.document, DOCX_MEDIA_TYPE, "docx")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating DOCX: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to generate DOCX: {str(e)}")


@router.post("/elements")
async def render_elements(request: DocumentRenderRequest):
    """
    可视元素序列预览

    与 PDF / DOCX 使用同一序列，每个元素带源块路径，供查看器点击编辑定位。
    """
    try:
        document = require_block_document(request.document)
    except DOMAIN_ERRORS as e:
        raise http_error(e)

    elements = block_renderer.render_document(document)
    return {
        "title": document.metadata.title,
        "elements": [element.to_dict() for element in elements],
    }


@router.post("/signature-fields")
async def signature_fields(request: SignatureFieldsRequest):
    """
    计算签名字段元数据

    numPages 为查看器实际报告的页数；包含签名页时先推算正文页数，结果再钳制到该页数内。
    """
    count = len(request.signatories)
    if request.num_pages and request.pages_include_signatures:
        content_pages = content_pages_from_total(request.num_pages, count)
    else:
        content_pages = request.num_pages or 1

    fields = generate_signature_field_metadata(request.signatories, content_pages)
    signature_pages = calculate_signature_pages(count)
    num_pages = content_pages + signature_pages
    if request.num_pages and request.pages_include_signatures:
        num_pages = request.num_pages
        fields = clamp_fields_to_pages(fields, num_pages)

    return SignatureFieldsResponse(
        signature_fields=fields,
        content_pages=content_pages,
        signature_pages=signature_pages,
        num_pages=num_pages,
    ).model_dump(by_alias=True, mode="json")


@router.post("/draft")
async def draft_document(request: DraftRequest):
    """
    AI 起草文档
    """
    try:
        document = await drafting_service.generate_document(request.form_data, request.template)
        return DraftResponse(
            document=dump_document(document),
            metadata=document.metadata.model_dump(by_alias=True, exclude_none=True),
        ).model_dump(by_alias=True)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error drafting document: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to generate document: {str(e)}")
