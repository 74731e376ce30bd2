"""
文档块渲染服务

递归遍历块树，输出与格式无关的可视元素序列（标题、段落、列表项、定义），
PDF 与 DOCX 导出器消费同一序列，保证两种格式的标题层级与段落顺序一致。
分页由宿主排版引擎（PyMuPDF Story / Word）负责，这里不计算分页。
"""
from dataclasses import dataclass, field
from enum import Enum

from legaldoc.core.logger import get_logger
from legaldoc.schemas.legal_document import BlockType, DocumentBlock, LegalDocument

logger = get_logger(__name__)

BULLET = "•"


class ElementKind(str, Enum):
    ARTICLE_HEADING = "article_heading"
    SECTION_HEADING = "section_heading"
    PARAGRAPH = "paragraph"
    LIST_ITEM = "list_item"
    DEFINITION_TERM = "definition_term"
    DEFINITION_TEXT = "definition_text"
    PAGE_BREAK = "page_break"


@dataclass
class VisualElement:
    """可视元素"""
    kind: ElementKind
    text: str = ""
    level: int = 0  # 块树深度
    indent: int = 0  # 缩进级数
    marker: str | None = None  # 列表标记
    bold: bool = False
    align: str = "left"  # left, justify
    path: tuple[int, ...] = field(default_factory=tuple)  # 源块路径

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "text": self.text,
            "level": self.level,
            "indent": self.indent,
            "marker": self.marker,
            "bold": self.bold,
            "align": self.align,
            "path": list(self.path),
        }


def _to_letters(n: int) -> str:
    """1 -> a, 26 -> z, 27 -> aa"""
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("a") + rem) + letters
    return letters


def _to_roman(n: int) -> str:
    numerals = [
        (1000, "m"), (900, "cm"), (500, "d"), (400, "cd"),
        (100, "c"), (90, "xc"), (50, "l"), (40, "xl"),
        (10, "x"), (9, "ix"), (5, "v"), (4, "iv"), (1, "i"),
    ]
    result = ""
    for value, numeral in numerals:
        while n >= value:
            result += numeral
            n -= value
    return result


def list_marker(position: int, depth: int, ordered: bool = True) -> str:
    """
    自动列表标记

    第一层数字 1. 2.，第二层字母 (a) (b)，第三层罗马数字 (i) (ii)，更深层用圆点。
    """
    if not ordered:
        return BULLET
    if depth == 0:
        return f"{position}."
    if depth == 1:
        return f"({_to_letters(position)})"
    if depth == 2:
        return f"({_to_roman(position)})"
    return BULLET


class BlockRenderer:
    """块树递归渲染器"""

    def render(
        self,
        block: DocumentBlock,
        level: int = 0,
        path: tuple[int, ...] = (),
        list_depth: int = 0
    ) -> list[VisualElement]:
        """
        渲染单个块及其子树

        Args:
            block: 文档块
            level: 块树深度
            path: 块在文档中的路径
            list_depth: 当前列表嵌套深度

        Returns:
            可视元素序列
        """
        if not isinstance(block, DocumentBlock):
            logger.warning(f"Skipping malformed block at {list(path)}: {type(block).__name__}")
            return []

        if block.type is BlockType.ARTICLE:
            return self._render_article(block, level, path)
        if block.type is BlockType.SECTION:
            return self._render_section(block, level, path)
        if block.type is BlockType.PARAGRAPH:
            return self._render_paragraph(block, level, path, list_depth)
        if block.type is BlockType.LIST:
            return self._render_list(block, level, path, list_depth)
        if block.type is BlockType.LIST_ITEM:
            # 脱离 list 容器的列表项
            return self._render_list_item(block, level, path, list_depth, position=1, ordered=False)
        if block.type is BlockType.DEFINITION:
            return self._render_definition(block, level, path)
        if block.type is BlockType.DEFINITION_ITEM:
            return self._render_definition_item(block, level, path)
        if block.type is BlockType.PAGE_BREAK:
            return [VisualElement(kind=ElementKind.PAGE_BREAK, level=level, path=path)]

        logger.warning(
            f"Unknown block type '{block.raw_type}' at {list(path)}; rendering children only"
        )
        return self._render_children(block, level + 1, path, list_depth)

    def render_document(self, document: LegalDocument) -> list[VisualElement]:
        """渲染文档全部顶层块"""
        elements = []
        for idx, block in enumerate(document.content):
            elements.extend(self.render(block, level=0, path=(idx,)))
        return elements

    def _render_children(
        self,
        block: DocumentBlock,
        level: int,
        path: tuple[int, ...],
        list_depth: int = 0
    ) -> list[VisualElement]:
        elements = []
        for idx, child in enumerate(block.children):
            elements.extend(self.render(child, level, path + (idx,), list_depth))
        return elements

    def _render_article(self, block: DocumentBlock, level: int, path: tuple[int, ...]) -> list[VisualElement]:
        elements = []
        prefix = f"ARTICLE {block.number}: " if block.number else ""
        heading = f"{prefix}{block.title or ''}".strip()
        if heading:
            elements.append(VisualElement(
                kind=ElementKind.ARTICLE_HEADING,
                text=heading,
                level=level,
                bold=True,
                path=path,
            ))
        else:
            logger.warning(f"Article at {list(path)} has neither number nor title")
        elements.extend(self._render_children(block, level + 1, path))
        return elements

    def _render_section(self, block: DocumentBlock, level: int, path: tuple[int, ...]) -> list[VisualElement]:
        elements = []
        if block.title:
            prefix = f"{block.number} " if block.number else ""
            elements.append(VisualElement(
                kind=ElementKind.SECTION_HEADING,
                text=f"{prefix}{block.title}",
                level=level,
                bold=True,
                path=path,
            ))
        elements.extend(self._render_children(block, level + 1, path))
        return elements

    def _render_paragraph(
        self,
        block: DocumentBlock,
        level: int,
        path: tuple[int, ...],
        list_depth: int
    ) -> list[VisualElement]:
        elements = []
        if block.text:
            elements.append(VisualElement(
                kind=ElementKind.PARAGRAPH,
                text=block.text,
                level=level,
                indent=list_depth,
                align="justify",
                path=path,
            ))
        elif not block.children:
            logger.warning(f"Paragraph at {list(path)} has no text; skipping")
        elements.extend(self._render_children(block, level + 1, path, list_depth))
        return elements

    def _render_list(
        self,
        block: DocumentBlock,
        level: int,
        path: tuple[int, ...],
        list_depth: int
    ) -> list[VisualElement]:
        ordered = block.props.get("ordered", True) is not False
        elements = []
        position = 0
        for idx, child in enumerate(block.children):
            child_path = path + (idx,)
            if child.type is BlockType.LIST_ITEM:
                position += 1
                elements.extend(self._render_list_item(
                    child, level + 1, child_path, list_depth, position, ordered
                ))
            elif child.type is BlockType.LIST:
                # 直接嵌套的子列表
                elements.extend(self._render_list(child, level + 1, child_path, list_depth + 1))
            else:
                elements.extend(self.render(child, level + 1, child_path, list_depth))
        return elements

    def _render_list_item(
        self,
        block: DocumentBlock,
        level: int,
        path: tuple[int, ...],
        list_depth: int,
        position: int,
        ordered: bool
    ) -> list[VisualElement]:
        elements = []
        marker = block.props.get("marker")
        marker = str(marker) if marker else list_marker(position, list_depth, ordered)

        if block.text:
            elements.append(VisualElement(
                kind=ElementKind.LIST_ITEM,
                text=block.text,
                level=level,
                indent=list_depth + 1,
                marker=marker,
                path=path,
            ))
        elif not block.children:
            logger.warning(f"List item at {list(path)} has no text; skipping")

        for idx, child in enumerate(block.children):
            child_path = path + (idx,)
            if child.type is BlockType.LIST:
                elements.extend(self._render_list(child, level + 1, child_path, list_depth + 1))
            else:
                elements.extend(self.render(child, level + 1, child_path, list_depth + 1))
        return elements

    def _render_definition(self, block: DocumentBlock, level: int, path: tuple[int, ...]) -> list[VisualElement]:
        elements = []
        for idx, child in enumerate(block.children):
            elements.extend(self.render(child, level + 1, path + (idx,)))
        return elements

    def _render_definition_item(self, block: DocumentBlock, level: int, path: tuple[int, ...]) -> list[VisualElement]:
        term = block.props.get("term")
        if not term and not block.text:
            logger.warning(f"Definition item at {list(path)} has neither term nor text; skipping")
            return []

        elements = []
        if term:
            elements.append(VisualElement(
                kind=ElementKind.DEFINITION_TERM,
                text=str(term),
                level=level,
                indent=1,
                bold=True,
                path=path,
            ))
        if block.text:
            elements.append(VisualElement(
                kind=ElementKind.DEFINITION_TEXT,
                text=block.text,
                level=level,
                indent=1,
                align="justify",
                path=path,
            ))
        return elements


# 全局服务实例
block_renderer = BlockRenderer()
