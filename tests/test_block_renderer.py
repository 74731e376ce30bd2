import logging

import pytest

from legaldoc.schemas.legal_document import BlockType, DocumentBlock, LegalDocument
from legaldoc.services.block_renderer import ElementKind, block_renderer, list_marker


class TestListMarkers:
    """列表标记测试"""

    @pytest.mark.parametrize("position,depth,expected", [
        (1, 0, "1."),
        (12, 0, "12."),
        (1, 1, "(a)"),
        (27, 1, "(aa)"),
        (4, 2, "(iv)"),
        (9, 2, "(ix)"),
        (2, 3, "•"),
    ])
    def test_marker_by_depth(self, position, depth, expected):
        """数字 → 字母 → 罗马数字 → 圆点"""
        assert list_marker(position, depth) == expected

    def test_unordered_uses_bullet(self):
        """无序列表使用圆点"""
        assert list_marker(3, 0, ordered=False) == "•"


class TestBlockRenderer:
    """块渲染测试"""

    def test_document_order(self, sample_document):
        """标题与段落顺序与文档一致"""
        document = LegalDocument.model_validate(sample_document)
        elements = block_renderer.render_document(document)

        headings = [e.text for e in elements if e.kind in (ElementKind.ARTICLE_HEADING, ElementKind.SECTION_HEADING)]
        assert headings == [
            "ARTICLE 1: Definitions",
            "1.1 Defined Terms",
            "ARTICLE 2: Duties",
            "2.1 Position",
        ]

    def test_definition_term_bold(self, sample_document):
        """定义项术语加粗，释义两端对齐"""
        document = LegalDocument.model_validate(sample_document)
        elements = block_renderer.render_document(document)

        term = next(e for e in elements if e.kind is ElementKind.DEFINITION_TERM)
        text = next(e for e in elements if e.kind is ElementKind.DEFINITION_TEXT)
        assert term.text == "Confidential Information"
        assert term.bold
        assert text.align == "justify"

    def test_nested_list_markers(self, sample_document):
        """嵌套列表使用字母标记并增加缩进"""
        document = LegalDocument.model_validate(sample_document)
        items = [e for e in block_renderer.render_document(document) if e.kind is ElementKind.LIST_ITEM]

        assert [(e.marker, e.text) for e in items] == [
            ("1.", "Design software systems."),
            ("2.", "Review code."),
            ("(a)", "Security reviews."),
            ("(b)", "Performance reviews."),
        ]
        assert items[2].indent == items[0].indent + 1

    def test_explicit_marker_wins(self):
        """props.marker 优先于自动编号"""
        block = DocumentBlock.model_validate({
            "type": "list",
            "children": [
                {"type": "list_item", "props": {"marker": "A."}, "text": "First"},
                {"type": "list_item", "text": "Second"},
            ],
        })
        items = block_renderer.render(block)
        assert [e.marker for e in items] == ["A.", "2."]

    def test_unordered_list(self):
        """ordered=false 使用圆点"""
        block = DocumentBlock.model_validate({
            "type": "list",
            "props": {"ordered": False},
            "children": [{"type": "list_item", "text": "Item"}],
        })
        assert block_renderer.render(block)[0].marker == "•"

    def test_article_without_number(self):
        """无编号条款只显示标题"""
        block = DocumentBlock.model_validate({"type": "article", "props": {"title": "Recitals"}})
        assert block_renderer.render(block)[0].text == "Recitals"

    def test_section_without_title(self):
        """无标题的 section 不输出小标题"""
        block = DocumentBlock.model_validate({
            "type": "section",
            "props": {"number": "3.1"},
            "children": [{"type": "paragraph", "text": "Body"}],
        })
        elements = block_renderer.render(block)
        assert [e.kind for e in elements] == [ElementKind.PARAGRAPH]

    def test_page_break(self):
        """分页符输出 page_break 元素"""
        block = DocumentBlock.model_validate({"type": "page_break"})
        assert block_renderer.render(block)[0].kind is ElementKind.PAGE_BREAK


class TestMalformedBlocks:
    """畸形输入测试"""

    def test_unknown_type_renders_children(self, caplog):
        """未知类型只渲染子节点并记录警告"""
        block = DocumentBlock.model_validate({
            "type": "callout",
            "children": [{"type": "paragraph", "text": "Inside"}],
        })
        assert block.type is BlockType.UNKNOWN
        assert block.raw_type == "callout"

        with caplog.at_level(logging.WARNING):
            elements = block_renderer.render(block)

        assert [e.text for e in elements] == ["Inside"]
        assert "callout" in caplog.text

    def test_bad_children_and_props_skipped(self):
        """非对象子节点跳过，非对象 props 置空"""
        block = DocumentBlock.model_validate({
            "type": "section",
            "props": "oops",
            "children": [42, None, {"type": "paragraph", "text": "Kept"}],
        })
        assert block.props == {}
        assert len(block.children) == 1
        assert [e.text for e in block_renderer.render(block)] == ["Kept"]

    def test_non_string_text(self):
        """数值文本转为字符串，其余丢弃"""
        assert DocumentBlock.model_validate({"type": "paragraph", "text": 7}).text == "7"
        assert DocumentBlock.model_validate({"type": "paragraph", "text": {"a": 1}}).text is None

    def test_empty_paragraph_skipped(self):
        """空段落不输出也不抛出"""
        block = DocumentBlock.model_validate({"type": "paragraph"})
        assert block_renderer.render(block) == []

    def test_missing_type(self):
        """缺少 type 的块按未知类型处理"""
        block = DocumentBlock.model_validate({"children": [{"type": "paragraph", "text": "x"}]})
        assert block.type is BlockType.UNKNOWN
        assert [e.text for e in block_renderer.render(block)] == ["x"]
