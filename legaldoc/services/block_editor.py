"""
块级内联编辑

- 建立可编辑文本索引（叶子块文本、article/section 标题）
- 根据点击的文本片段定位块
- 按路径替换单个块的文本，只复制路径上的节点，兄弟节点与未触及的子树保持原对象
"""
import re
from dataclasses import dataclass

from legaldoc.core.logger import get_logger
from legaldoc.schemas.legal_document import BlockType, DocumentBlock, LegalDocument

logger = get_logger(__name__)

LEAF_BLOCK_TYPES = {BlockType.PARAGRAPH, BlockType.LIST_ITEM, BlockType.DEFINITION_ITEM}
TITLED_BLOCK_TYPES = {BlockType.ARTICLE, BlockType.SECTION}

MIN_MATCH_SCORE = 20


class BlockPathError(ValueError):
    """编辑路径不指向有效块"""


@dataclass
class TextBlockMapping:
    block_id: str
    path: list[int]
    text: str
    type: BlockType
    is_leaf: bool
    is_title: bool


def _index_blocks(blocks: list[DocumentBlock], path: list[int], index: list[TextBlockMapping]) -> None:
    for idx, block in enumerate(blocks):
        current_path = path + [idx]
        block_id = block.id or f"block-{'-'.join(str(i) for i in current_path)}"

        if block.text and block.type in LEAF_BLOCK_TYPES:
            index.append(TextBlockMapping(
                block_id=block_id,
                path=current_path,
                text=block.text,
                type=block.type,
                is_leaf=True,
                is_title=False,
            ))

        if block.type in TITLED_BLOCK_TYPES and block.title:
            index.append(TextBlockMapping(
                block_id=block_id,
                path=current_path,
                text=block.title,
                type=block.type,
                is_leaf=False,
                is_title=True,
            ))

        if block.children:
            _index_blocks(block.children, current_path, index)


def build_text_index(document: LegalDocument) -> list[TextBlockMapping]:
    """建立文档的可编辑文本索引"""
    index: list[TextBlockMapping] = []
    _index_blocks(document.content, [], index)
    return index


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text.lower()).strip()


def _match_score(clicked: str, mapping: TextBlockMapping) -> float:
    block_text = _normalize(mapping.text)
    score = 0.0

    if block_text == clicked:
        score = 100
    elif clicked in block_text:
        # 越短的块匹配越精确
        score = 80 - (len(block_text) - len(clicked)) / 100
    elif block_text in clicked:
        score = 70 - (len(clicked) - len(block_text)) / 100
    else:
        clicked_words = [w for w in clicked.split() if len(w) > 2]
        block_words = block_text.split()
        if clicked_words:
            matching = [
                w for w in clicked_words
                if any(bw in w or w in bw for bw in block_words)
            ]
            score = len(matching) / len(clicked_words) * 50

    if mapping.is_leaf:
        score += 10
    return score


def find_block_by_text(clicked_text: str, document: LegalDocument) -> TextBlockMapping | None:
    """
    根据查看器中点击的文本定位最匹配的块

    优先叶子块（段落）而不是容器，得分低于阈值时返回 None。
    """
    if not clicked_text or not clicked_text.strip():
        return None

    index = build_text_index(document)
    if not index:
        return None

    clicked = _normalize(clicked_text)
    scored = sorted(
        ((mapping, _match_score(clicked, mapping)) for mapping in index),
        key=lambda pair: pair[1],
        reverse=True,
    )
    best, score = scored[0]
    if score >= MIN_MATCH_SCORE:
        return best
    return None


def get_block_at_path(document: LegalDocument, path: list[int]) -> DocumentBlock | None:
    """按路径取块，路径无效时返回 None"""
    if not path:
        return None
    blocks = document.content
    block = None
    for idx in path:
        if idx < 0 or idx >= len(blocks):
            return None
        block = blocks[idx]
        blocks = block.children
    return block


def _replace_in(
    blocks: list[DocumentBlock],
    path: list[int],
    depth: int,
    new_text: str,
    is_title: bool
) -> list[DocumentBlock]:
    idx = path[depth]
    if idx < 0 or idx >= len(blocks):
        raise BlockPathError(f"Invalid path index {idx} at position {depth} for path {path}")

    target = blocks[idx]
    if depth == len(path) - 1:
        if is_title:
            updated = target.model_copy(update={"props": {**target.props, "title": new_text}})
        else:
            updated = target.model_copy(update={"text": new_text})
    else:
        if not target.children:
            raise BlockPathError(f"Block at path {path[:depth + 1]} has no children")
        children = _replace_in(target.children, path, depth + 1, new_text, is_title)
        updated = target.model_copy(update={"children": children})

    replaced = list(blocks)
    replaced[idx] = updated
    return replaced


def update_block_text(
    document: LegalDocument,
    path: list[int],
    new_text: str,
    is_title: bool = False
) -> LegalDocument:
    """
    替换路径所指块的文本（或 article/section 标题）

    Args:
        document: 原文档，不会被修改
        path: 块路径 [article, section, ...]
        new_text: 新文本
        is_title: 为 True 时替换 props.title

    Returns:
        新文档，仅路径上的节点为新对象

    Raises:
        BlockPathError: 路径为空或无效
    """
    if not path:
        raise BlockPathError("Edit path must not be empty")

    content = _replace_in(document.content, list(path), 0, new_text, is_title)
    logger.info(f"Updated {'title' if is_title else 'text'} of block at path {list(path)}")
    return document.model_copy(update={"content": content})
