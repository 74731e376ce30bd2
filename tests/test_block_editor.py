import pytest

from legaldoc.schemas.legal_document import BlockType, LegalDocument
from legaldoc.services.block_editor import (
    BlockPathError,
    build_text_index,
    find_block_by_text,
    get_block_at_path,
    update_block_text,
)
from legaldoc.services.pdf_exporter import pdf_exporter


@pytest.fixture
def document(sample_document) -> LegalDocument:
    return LegalDocument.model_validate(sample_document)


class TestTextIndex:
    """可编辑文本索引测试"""

    def test_index_contains_titles_and_leaves(self, document):
        """索引包含条款标题与叶子文本"""
        index = build_text_index(document)
        titles = [m.text for m in index if m.is_title]
        assert titles == ["Definitions", "Defined Terms", "Duties", "Position"]
        assert any(m.type is BlockType.PARAGRAPH and m.path == [1, 0, 0] for m in index)

    def test_find_exact_match(self, document):
        """完全匹配优先"""
        mapping = find_block_by_text("Review code.", document)
        assert mapping.path == [1, 0, 1, 1]
        assert mapping.is_leaf

    def test_find_partial_match(self, document):
        """点击片段匹配到所在段落"""
        mapping = find_block_by_text("serve as Senior Engineer", document)
        assert mapping.path == [1, 0, 0]

    def test_no_match_below_threshold(self, document):
        """得分低于阈值返回 None"""
        assert find_block_by_text("zz qq", document) is None
        assert find_block_by_text("   ", document) is None


class TestUpdateBlockText:
    """块文本替换测试"""

    def test_only_path_nodes_copied(self, document):
        """只复制路径上的节点，其余保持原对象"""
        updated = update_block_text(document, [1, 0, 0], "The Employee shall serve as Principal Engineer.")

        assert updated is not document
        assert updated.content[1] is not document.content[1]
        assert updated.content[1].children[0] is not document.content[1].children[0]
        # 兄弟节点与未触及的子树保持原对象
        assert updated.content[0] is document.content[0]
        assert updated.content[1].children[0].children[1] is document.content[1].children[0].children[1]
        assert updated.signatories is document.signatories

        assert get_block_at_path(updated, [1, 0, 0]).text == "The Employee shall serve as Principal Engineer."
        assert get_block_at_path(document, [1, 0, 0]).text.startswith("The Employee shall serve as Senior")

    def test_update_title(self, document):
        """is_title 替换 props.title，保留其他属性"""
        updated = update_block_text(document, [1], "Responsibilities", is_title=True)
        block = get_block_at_path(updated, [1])
        assert block.title == "Responsibilities"
        assert block.number == "2"

    @pytest.mark.parametrize("path", [[], [5], [0, 9], [1, 0, 0, 0]])
    def test_invalid_path(self, document, path):
        """无效路径抛出 BlockPathError"""
        with pytest.raises(BlockPathError):
            update_block_text(document, path, "x")

    def test_rerender_recomputes_page_count(self, document):
        """编辑后重新渲染，页数与签名字段页码随之更新"""
        before = pdf_exporter.render(document)

        long_text = " ".join(["This clause has been substantially expanded during review."] * 400)
        updated = update_block_text(document, [1, 0, 0], long_text)
        after = pdf_exporter.render(updated)

        assert after.content_pages > before.content_pages
        assert after.num_pages == after.content_pages + 1
        assert all(f.page_number == after.content_pages + 1 for f in after.signature_fields)
