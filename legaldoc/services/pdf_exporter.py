"""
PDF 导出服务（PyMuPDF）

正文通过 fitz.Story 排版，由 MuPDF 负责自动换行与分页；
签名页按 signature_layout 的绝对坐标绘制，与签名字段元数据共用同一组函数；
最后在每页写入页脚（标题 + 页码）。
"""
import html
from io import BytesIO
from typing import Any

import fitz  # PyMuPDF

from legaldoc.core.config import settings
from legaldoc.core.logger import get_logger
from legaldoc.schemas.legal_document import LegalDocument, SignatoryInfo, SignaturePageConfig
from legaldoc.services.block_renderer import ElementKind, VisualElement, block_renderer
from legaldoc.services.document_ingestion import DocumentValidationError, ingest_document
from legaldoc.services.export_utils import (
    INVALID_DOCUMENT_MESSAGE,
    LEGACY_DOCUMENT_MESSAGE,
    RenderResult,
    RenderStatus,
    format_effective_date,
    format_page_number,
)
from legaldoc.services.signature_fields import (
    clamp_fields_to_pages,
    create_metadata_payload,
    generate_signature_field_metadata,
)
from legaldoc.services.signature_layout import (
    SIG_PAGE_LAYOUT,
    date_box,
    field_label_y,
    get_signature_block_position,
    line_y,
    signature_box,
)

logger = get_logger(__name__)

PAGE_MARGIN = 72  # 1英寸页边距
FOOTER_OFFSET = 36
LIST_INDENT_PT = 18
FIELDS_ATTACHMENT = "signature-fields.json"

DOCUMENT_CSS = """
* { font-family: sans-serif; }
body { font-size: 10.5pt; color: #111827; }
h1.doc-title { font-size: 18pt; font-weight: bold; text-align: center; margin: 0 0 24pt 0; }
p.effective-date { font-size: 11pt; margin: 0 0 12pt 0; }
h2.article { font-size: 12pt; font-weight: bold; margin: 15pt 0 8pt 0; }
h3.section { font-size: 11pt; font-weight: bold; margin: 10pt 0 6pt 0; }
p.paragraph { font-size: 10pt; text-align: justify; margin: 0 0 8pt 0; line-height: 1.5; }
p.list-item { font-size: 10pt; margin: 0 0 4pt 0; line-height: 1.5; }
p.definition-term { font-size: 10pt; font-weight: bold; margin: 0 0 2pt 10pt; }
p.definition-text { font-size: 10pt; text-align: justify; margin: 0 0 6pt 10pt; line-height: 1.5; }
"""


def _css(size: float, bold: bool = False, color: str = "#000000", align: str = "left") -> str:
    weight = "bold" if bold else "normal"
    return (
        f"* {{font-family: sans-serif; font-size: {size}pt; font-weight: {weight}; "
        f"color: {color}; text-align: {align};}}"
    )


def _element_html(element: VisualElement) -> str:
    text = html.escape(element.text)
    if element.kind is ElementKind.ARTICLE_HEADING:
        return f'<h2 class="article">{text}</h2>'
    if element.kind is ElementKind.SECTION_HEADING:
        return f'<h3 class="section">{text}</h3>'
    if element.kind is ElementKind.LIST_ITEM:
        margin = element.indent * LIST_INDENT_PT
        marker = html.escape(element.marker or "")
        return f'<p class="list-item" style="margin-left: {margin}pt">{marker}&nbsp;&nbsp;{text}</p>'
    if element.kind is ElementKind.DEFINITION_TERM:
        return f'<p class="definition-term">{text}</p>'
    if element.kind is ElementKind.DEFINITION_TEXT:
        return f'<p class="definition-text">{text}</p>'
    margin = element.indent * LIST_INDENT_PT
    return f'<p class="paragraph" style="margin-left: {margin}pt">{text}</p>'


class PdfExporter:
    """法律文档 PDF 导出器"""

    def __init__(self, page_size: str | None = None):
        self.page_size = (page_size or settings.PDF_PAGE_SIZE).lower()
        self.mediabox = fitz.paper_rect(self.page_size)
        self.content_rect = self.mediabox + (PAGE_MARGIN, PAGE_MARGIN, -PAGE_MARGIN, -PAGE_MARGIN)

    def export(self, payload: Any, include_signature_page: bool = True) -> RenderResult:
        """
        从原始 JSON 负载导出 PDF

        校验失败或旧版结构时输出单页说明，而不是部分渲染的文档。
        """
        try:
            ingested = ingest_document(payload)
        except DocumentValidationError as e:
            logger.warning(f"Rendering invalid document placeholder: {e}")
            return self._message_pdf(INVALID_DOCUMENT_MESSAGE, RenderStatus.INVALID)

        if ingested.is_legacy:
            return self._message_pdf(LEGACY_DOCUMENT_MESSAGE, RenderStatus.LEGACY)

        return self.render(ingested.document, include_signature_page=include_signature_page)

    def render(self, document: LegalDocument, include_signature_page: bool = True) -> RenderResult:
        """
        渲染块结构文档

        Returns:
            PDF 字节、总页数、正文页数以及签名字段元数据
        """
        elements = block_renderer.render_document(document)
        content_pdf = self._layout_content(document, elements)

        pdf = fitz.open(stream=content_pdf, filetype="pdf")
        try:
            content_pages = pdf.page_count
            signatories = document.signatories if include_signature_page else []

            if signatories:
                self._draw_signature_pages(pdf, signatories, document.signature_page_config)

            num_pages = pdf.page_count
            self._draw_footers(pdf, document.metadata.title, document.metadata.page_number_format)

            fields = generate_signature_field_metadata(signatories, content_pages)
            fields = clamp_fields_to_pages(fields, num_pages)

            pdf.set_metadata({"title": document.metadata.title, "creator": settings.PROJECT_NAME})
            # 字段元数据随 PDF 一起分发，查看器无需再次计算
            pdf.embfile_add(
                FIELDS_ATTACHMENT,
                create_metadata_payload(fields, signatories).encode("utf-8"),
                filename=FIELDS_ATTACHMENT,
            )

            content = pdf.tobytes(garbage=3, deflate=True)
        finally:
            pdf.close()

        logger.info(
            f"Rendered PDF '{document.metadata.title}': {num_pages} pages "
            f"({content_pages} content), {len(fields)} signature fields"
        )
        return RenderResult(
            content=content,
            status=RenderStatus.OK,
            num_pages=num_pages,
            content_pages=content_pages,
            signature_fields=fields,
        )

    def _layout_content(self, document: LegalDocument, elements: list[VisualElement]) -> bytes:
        """用 Story 排版正文，分页符处另起新页"""
        header = [f'<h1 class="doc-title">{html.escape(document.metadata.title)}</h1>']
        if document.metadata.effective_date:
            label = document.metadata.effective_date_label or "Effective Date:"
            date_text = format_effective_date(document.metadata.effective_date)
            header.append(f'<p class="effective-date">{html.escape(label)} {html.escape(date_text)}</p>')

        segments: list[list[str]] = [header]
        for element in elements:
            if element.kind is ElementKind.PAGE_BREAK:
                segments.append([])
                continue
            segments[-1].append(_element_html(element))

        buffer = BytesIO()
        writer = fitz.DocumentWriter(buffer)
        for segment in segments:
            if not segment:
                continue
            story = fitz.Story(html="<body>" + "".join(segment) + "</body>", user_css=DOCUMENT_CSS)
            more = 1
            while more:
                device = writer.begin_page(self.mediabox)
                more, _ = story.place(self.content_rect)
                story.draw(device)
                writer.end_page()
        writer.close()
        return buffer.getvalue()

    def _draw_signature_pages(
        self,
        pdf: fitz.Document,
        signatories: list[SignatoryInfo],
        config: SignaturePageConfig
    ) -> None:
        """按共享布局绘制签名页，每页最多 MAX_PER_PAGE 个签名块"""
        width, height = self.mediabox.width, self.mediabox.height
        margin_x = SIG_PAGE_LAYOUT.MARGIN_X
        page = None

        for index, signatory in enumerate(signatories):
            if index % SIG_PAGE_LAYOUT.MAX_PER_PAGE == 0:
                page = pdf.new_page(width=width, height=height)
                self._draw_signature_header(page, config, first=index == 0)

            top = get_signature_block_position(index)
            right = width - margin_x

            label = signatory.party_label()
            if label:
                page.insert_htmlbox(
                    fitz.Rect(margin_x, top + SIG_PAGE_LAYOUT.LABEL_Y, right, top + SIG_PAGE_LAYOUT.NAME_Y),
                    html.escape(label),
                    css=_css(9, bold=True, color="#1e40af"),
                )
            page.insert_htmlbox(
                fitz.Rect(margin_x, top + SIG_PAGE_LAYOUT.NAME_Y, right, top + SIG_PAGE_LAYOUT.TITLE_Y),
                html.escape(signatory.name or ""),
                css=_css(12, bold=True),
            )
            details = signatory.detail_lines()
            if details:
                page.insert_htmlbox(
                    fitz.Rect(margin_x, top + SIG_PAGE_LAYOUT.TITLE_Y, right, top + SIG_PAGE_LAYOUT.SIG_BOX_Y_OFFSET),
                    html.escape(" • ".join(details)),
                    css=_css(9, color="#64748b"),
                )

            for box, caption in ((signature_box(index), config.signature_label), (date_box(index), config.date_label)):
                y = line_y(index)
                page.draw_line(fitz.Point(box.x, y), fitz.Point(box.x1, y), color=(0, 0, 0), width=1)
                label_top = field_label_y(index)
                page.insert_htmlbox(
                    fitz.Rect(box.x, label_top, box.x1, label_top + 12),
                    html.escape(caption),
                    css=_css(8, color="#64748b"),
                )

    def _draw_signature_header(self, page: fitz.Page, config: SignaturePageConfig, first: bool) -> None:
        margin_x = SIG_PAGE_LAYOUT.MARGIN_X
        right = self.mediabox.width - margin_x
        top = SIG_PAGE_LAYOUT.HEADER_Y
        page.insert_htmlbox(
            fitz.Rect(margin_x, top, right, top + 20),
            html.escape(config.title.upper()),
            css=_css(14, bold=True, align="center"),
        )
        if first and config.attestation_clause:
            page.insert_htmlbox(
                fitz.Rect(margin_x, top + 24, right, top + SIG_PAGE_LAYOUT.HEADER_HEIGHT),
                html.escape(config.attestation_clause),
                css=_css(10, color="#444444", align="center"),
            )

    def _draw_footers(self, pdf: fitz.Document, title: str, page_format: str) -> None:
        total = pdf.page_count
        width, height = self.mediabox.width, self.mediabox.height
        rule_y = height - FOOTER_OFFSET - 14
        for page_index in range(total):
            page = pdf[page_index]
            page.draw_line(
                fitz.Point(PAGE_MARGIN, rule_y),
                fitz.Point(width - PAGE_MARGIN, rule_y),
                color=(0.9, 0.91, 0.92),
                width=0.5,
            )
            text_rect_top = rule_y + 4
            page.insert_htmlbox(
                fitz.Rect(PAGE_MARGIN, text_rect_top, width / 2, text_rect_top + 12),
                html.escape(title),
                css=_css(7.5, color="#9ca3af"),
            )
            page.insert_htmlbox(
                fitz.Rect(width / 2, text_rect_top, width - PAGE_MARGIN, text_rect_top + 12),
                html.escape(format_page_number(page_format, page_index + 1, total)),
                css=_css(7.5, color="#9ca3af", align="right"),
            )

    def _message_pdf(self, message: str, status: RenderStatus) -> RenderResult:
        """单页说明文档（校验失败 / 旧版结构）"""
        pdf = fitz.open()
        try:
            page = pdf.new_page(width=self.mediabox.width, height=self.mediabox.height)
            page.insert_htmlbox(
                fitz.Rect(PAGE_MARGIN, PAGE_MARGIN, self.mediabox.width - PAGE_MARGIN, PAGE_MARGIN + 60),
                html.escape(message),
                css=_css(12),
            )
            content = pdf.tobytes()
        finally:
            pdf.close()
        return RenderResult(content=content, status=status, num_pages=1, content_pages=1, message=message)


# 全局服务实例
pdf_exporter = PdfExporter()
