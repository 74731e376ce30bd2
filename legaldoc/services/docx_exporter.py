"""
DOCX 导出服务（python-docx）

与 PDF 导出器消费同一份可视元素序列，保证标题层级与段落顺序一致。
分页交给 Word，页脚中的页码使用 PAGE / NUMPAGES 域。
"""
import re
from io import BytesIO
from typing import Any

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_BREAK
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor

from legaldoc.core.config import settings
from legaldoc.core.logger import get_logger
from legaldoc.schemas.legal_document import LegalDocument
from legaldoc.services.block_renderer import ElementKind, VisualElement, block_renderer
from legaldoc.services.document_ingestion import DocumentValidationError, ingest_document
from legaldoc.services.export_utils import (
    INVALID_DOCUMENT_MESSAGE,
    LEGACY_DOCUMENT_MESSAGE,
    RenderResult,
    RenderStatus,
    format_effective_date,
)
from legaldoc.services.signature_layout import calculate_signature_pages

logger = get_logger(__name__)

# 页面尺寸（英寸）
PAGE_SIZES = {
    "LETTER": (8.5, 11),
    "A4": (8.27, 11.69),
    "LEGAL": (8.5, 14),
}

LIST_INDENT = Pt(18)
SIGNATURE_LINE = "_" * 30
DATE_LINE = "_" * 20
MUTED = RGBColor(0x64, 0x74, 0x8B)

# XML 1.0 不允许的字符，python-docx 写入时会直接报错
_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def _xml_safe(text: str | None) -> str:
    return _XML_INVALID.sub("", text or "")


def _add_field(paragraph, instr: str) -> None:
    """插入 Word 域（PAGE / NUMPAGES）"""
    field = OxmlElement("w:fldSimple")
    field.set(qn("w:instr"), instr)
    run = OxmlElement("w:r")
    text = OxmlElement("w:t")
    text.text = "1"
    run.append(text)
    field.append(run)
    paragraph._p.append(field)


class DocxExporter:
    """法律文档 DOCX 导出器"""

    def __init__(self, page_size: str | None = None):
        self.page_size = (page_size or settings.PDF_PAGE_SIZE).upper()

    def export(self, payload: Any, include_signature_page: bool = True) -> RenderResult:
        """从原始 JSON 负载导出 DOCX，无效或旧版文档输出单段说明"""
        try:
            ingested = ingest_document(payload)
        except DocumentValidationError as e:
            logger.warning(f"Rendering invalid document placeholder: {e}")
            return self._message_docx(INVALID_DOCUMENT_MESSAGE, RenderStatus.INVALID)

        if ingested.is_legacy:
            return self._message_docx(LEGACY_DOCUMENT_MESSAGE, RenderStatus.LEGACY)

        return self.render(ingested.document, include_signature_page=include_signature_page)

    def render(self, document: LegalDocument, include_signature_page: bool = True) -> RenderResult:
        """
        渲染块结构文档

        Word 自行分页，content_pages 只统计显式分页符划分出的页数。
        """
        doc = self._new_document()
        metadata = document.metadata

        title = doc.add_heading(_xml_safe(metadata.title), level=0)
        title.alignment = WD_ALIGN_PARAGRAPH.CENTER

        if metadata.effective_date:
            label = metadata.effective_date_label or "Effective Date:"
            paragraph = doc.add_paragraph()
            paragraph.add_run(f"{_xml_safe(label)} ").bold = True
            paragraph.add_run(_xml_safe(format_effective_date(metadata.effective_date)))

        elements = block_renderer.render_document(document)
        page_breaks = 0
        for element in elements:
            if element.kind is ElementKind.PAGE_BREAK:
                doc.add_paragraph().add_run().add_break(WD_BREAK.PAGE)
                page_breaks += 1
                continue
            self._add_element(doc, element)

        signatories = document.signatories if include_signature_page else []
        if signatories:
            self._add_signature_section(doc, document)

        self._add_footer(doc, metadata.title, metadata.page_number_format)

        buffer = BytesIO()
        doc.save(buffer)

        content_pages = page_breaks + 1
        num_pages = content_pages + calculate_signature_pages(len(signatories))
        logger.info(f"Rendered DOCX '{metadata.title}': {len(elements)} elements, {len(signatories)} signatories")
        return RenderResult(
            content=buffer.getvalue(),
            status=RenderStatus.OK,
            num_pages=num_pages,
            content_pages=content_pages,
        )

    def _new_document(self):
        doc = Document()
        width, height = PAGE_SIZES.get(self.page_size, PAGE_SIZES["LETTER"])
        section = doc.sections[0]
        section.page_width = Inches(width)
        section.page_height = Inches(height)
        for side in ("left_margin", "right_margin", "top_margin", "bottom_margin"):
            setattr(section, side, Inches(1))
        return doc

    def _add_element(self, doc, element: VisualElement) -> None:
        text = _xml_safe(element.text)
        if element.kind is ElementKind.ARTICLE_HEADING:
            doc.add_heading(text, level=1)
            return
        if element.kind is ElementKind.SECTION_HEADING:
            doc.add_heading(text, level=2)
            return

        paragraph = doc.add_paragraph()
        if element.kind is ElementKind.LIST_ITEM:
            paragraph.add_run(f"{_xml_safe(element.marker)}\t" if element.marker else "")
            paragraph.add_run(text)
        elif element.kind is ElementKind.DEFINITION_TERM:
            paragraph.add_run(text).bold = True
        else:
            paragraph.add_run(text).bold = element.bold

        if element.align == "justify":
            paragraph.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
        if element.indent:
            paragraph.paragraph_format.left_indent = LIST_INDENT * element.indent

    def _add_signature_section(self, doc, document: LegalDocument) -> None:
        config = document.signature_page_config
        doc.add_paragraph().add_run().add_break(WD_BREAK.PAGE)

        heading = doc.add_heading(_xml_safe(config.title.upper()), level=1)
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
        if config.attestation_clause:
            clause = doc.add_paragraph(_xml_safe(config.attestation_clause))
            clause.alignment = WD_ALIGN_PARAGRAPH.CENTER

        for signatory in document.signatories:
            label = signatory.party_label()
            if label:
                run = doc.add_paragraph().add_run(_xml_safe(label))
                run.bold = True
                run.font.size = Pt(9)

            doc.add_paragraph().add_run(_xml_safe(signatory.name)).bold = True
            details = signatory.detail_lines()
            if details:
                run = doc.add_paragraph().add_run(_xml_safe(" • ".join(details)))
                run.font.size = Pt(9)
                run.font.color.rgb = MUTED

            doc.add_paragraph(f"{_xml_safe(config.signature_label)}: {SIGNATURE_LINE}")
            doc.add_paragraph(f"{_xml_safe(config.date_label)}: {DATE_LINE}")
            doc.add_paragraph()

    def _add_footer(self, doc, title: str, page_format: str) -> None:
        """页脚: 标题 + 页码模板（{page} / {total} 替换为 Word 域）"""
        footer = doc.sections[0].footer
        paragraph = footer.paragraphs[0]
        paragraph.text = f"{_xml_safe(title)}\t\t"
        for part in re.split(r"(\{page\}|\{total\})", page_format):
            if part == "{page}":
                _add_field(paragraph, "PAGE")
            elif part == "{total}":
                _add_field(paragraph, "NUMPAGES")
            elif part:
                paragraph.add_run(_xml_safe(part))

    def _message_docx(self, message: str, status: RenderStatus) -> RenderResult:
        doc = self._new_document()
        doc.add_paragraph(message)
        buffer = BytesIO()
        doc.save(buffer)
        return RenderResult(content=buffer.getvalue(), status=status, message=message)


# 全局服务实例
docx_exporter = DocxExporter()
