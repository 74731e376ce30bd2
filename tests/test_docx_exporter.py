from io import BytesIO

from docx import Document

from legaldoc.schemas.legal_document import LegalDocument
from legaldoc.services.block_renderer import ElementKind, block_renderer
from legaldoc.services.docx_exporter import docx_exporter
from legaldoc.services.export_utils import INVALID_DOCUMENT_MESSAGE, LEGACY_DOCUMENT_MESSAGE, RenderStatus


def _paragraphs(content: bytes):
    return Document(BytesIO(content)).paragraphs


class TestDocxExporter:
    """DOCX 导出测试"""

    def test_heading_hierarchy(self, sample_document):
        """标题层级与 PDF 相同：文档标题 / 条款 / 小节"""
        result = docx_exporter.export(sample_document)
        assert result.status is RenderStatus.OK

        headings = [(p.style.name, p.text) for p in _paragraphs(result.content) if p.style.name.startswith(("Heading", "Title"))]
        assert headings[:5] == [
            ("Title", "Employment Agreement"),
            ("Heading 1", "ARTICLE 1: Definitions"),
            ("Heading 2", "1.1 Defined Terms"),
            ("Heading 1", "ARTICLE 2: Duties"),
            ("Heading 2", "2.1 Position"),
        ]

    def test_same_element_order_as_pdf(self, sample_document):
        """正文段落顺序与可视元素序列一致"""
        result = docx_exporter.export(sample_document, include_signature_page=False)
        texts = [p.text for p in _paragraphs(result.content) if p.text]

        elements = block_renderer.render_document(LegalDocument.model_validate(sample_document))
        expected = [
            f"{e.marker}\t{e.text}" if e.kind is ElementKind.LIST_ITEM else e.text
            for e in elements if e.kind is not ElementKind.PAGE_BREAK
        ]
        # 跳过标题与生效日期
        assert texts[2:] == expected

    def test_definition_term_bold(self, sample_document):
        """定义术语加粗"""
        result = docx_exporter.export(sample_document)
        term = next(p for p in _paragraphs(result.content) if p.text == "Confidential Information")
        assert term.runs[0].bold

    def test_signature_section(self, sample_document):
        """签名部分包含当事方、姓名、签名与日期线"""
        result = docx_exporter.export(sample_document)
        texts = [p.text for p in _paragraphs(result.content)]

        assert "SIGNATURES" in texts
        assert "EMPLOYER" in texts
        assert "Jane Smith" in texts
        assert "CEO • Acme Inc. • jane@acme.com" in texts
        assert sum(t.startswith("Signature: ") for t in texts) == 2
        assert sum(t.startswith("Date: ") for t in texts) == 2

    def test_effective_date(self, sample_document):
        """生效日期格式化"""
        result = docx_exporter.export(sample_document)
        assert "Effective Date: January 15, 2025" in [p.text for p in _paragraphs(result.content)]

    def test_footer_text(self, sample_document):
        """页脚包含文档标题"""
        result = docx_exporter.export(sample_document)
        footer = Document(BytesIO(result.content)).sections[0].footer
        assert "Employment Agreement" in footer.paragraphs[0].text

    def test_invalid_document(self, sample_document):
        """无效文档输出说明"""
        sample_document.pop("content")
        result = docx_exporter.export(sample_document)
        assert result.status is RenderStatus.INVALID
        assert [p.text for p in _paragraphs(result.content)] == [INVALID_DOCUMENT_MESSAGE]

    def test_legacy_document(self, legacy_document):
        """旧版文档输出不支持说明"""
        result = docx_exporter.export(legacy_document)
        assert result.status is RenderStatus.LEGACY
        assert [p.text for p in _paragraphs(result.content)] == [LEGACY_DOCUMENT_MESSAGE]

    def test_control_characters_stripped(self, sample_document):
        """XML 不允许的控制字符被移除，导出不失败"""
        sample_document["metadata"]["title"] = "Employment\x00 Agreement"
        sample_document["content"][1]["children"][0]["children"].append(
            {"type": "paragraph", "text": "Clause\x0bwith vertical tab"}
        )
        sample_document["signatories"][0]["name"] = "Jane\x1f Smith"

        result = docx_exporter.export(sample_document)
        assert result.status is RenderStatus.OK

        document = Document(BytesIO(result.content))
        texts = [p.text for p in document.paragraphs]
        assert "Clausewith vertical tab" in texts
        assert "Jane Smith" in texts
        assert texts[0] == "Employment Agreement"
        assert "Employment Agreement" in document.sections[0].footer.paragraphs[0].text
