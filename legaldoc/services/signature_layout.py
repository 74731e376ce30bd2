"""
签名页共享布局

签名页上所有元素位置的唯一来源。PDF 渲染（静态签名线）与签名字段元数据
（交互覆盖层）都调用这里的函数，不得各自维护一套常量。

坐标单位为 PDF 点（72pt/inch），原点在页面左上角。
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class SignaturePageLayout:
    PAGE_WIDTH: float = 612  # US Letter 宽度
    PAGE_HEIGHT: float = 792  # US Letter 高度
    MARGIN_X: float = 72  # 1英寸页边距

    # 页眉
    HEADER_Y: float = 72
    HEADER_HEIGHT: float = 60

    # 签名块
    BLOCK_START_Y: float = 160  # 第一个签名块的固定起点
    BLOCK_HEIGHT: float = 130  # 每个签署人的固定高度
    BLOCK_GAP: float = 40  # 签名块间距
    MAX_PER_PAGE: int = 3

    # 块内元素偏移（相对块顶部）
    LABEL_Y: float = 0
    NAME_Y: float = 15
    TITLE_Y: float = 30
    LINE_Y: float = 80
    FIELD_LABEL_Y: float = 86

    # 交互字段区域
    # 签名框 + 间距 + 日期框 = 220 + 40 + 120 = 380，内容宽度 468，居中偏移 44
    SIG_BOX_X_OFFSET: float = 44
    SIG_BOX_Y_OFFSET: float = 45
    SIG_BOX_HEIGHT: float = 45
    SIG_BOX_WIDTH: float = 220
    DATE_BOX_X_OFFSET: float = 304  # SIG_BOX_X_OFFSET + SIG_BOX_WIDTH + 40
    DATE_BOX_WIDTH: float = 120

    @property
    def CONTENT_WIDTH(self) -> float:
        return self.PAGE_WIDTH - self.MARGIN_X * 2


SIG_PAGE_LAYOUT = SignaturePageLayout()
CONTENT_WIDTH = SIG_PAGE_LAYOUT.CONTENT_WIDTH


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def x1(self) -> float:
        return self.x + self.width

    @property
    def y1(self) -> float:
        return self.y + self.height


def get_signature_block_position(index: int) -> float:
    """
    计算签署人签名块顶部的 Y 坐标

    Args:
        index: 签署人序号，从0开始

    Returns:
        块顶部在所在签名页上的 Y 坐标
    """
    if index < 0:
        raise ValueError(f"signatory index must be non-negative, got {index}")
    slot = index % SIG_PAGE_LAYOUT.MAX_PER_PAGE
    return SIG_PAGE_LAYOUT.BLOCK_START_Y + slot * (SIG_PAGE_LAYOUT.BLOCK_HEIGHT + SIG_PAGE_LAYOUT.BLOCK_GAP)


def calculate_signature_pages(signatory_count: int) -> int:
    """签署人数量所需的签名页数"""
    if signatory_count <= 0:
        return 0
    return -(-signatory_count // SIG_PAGE_LAYOUT.MAX_PER_PAGE)


def get_signature_page_number(index: int, content_pages: int) -> int:
    """
    计算签署人签名块所在页码（从1开始）

    签名页紧跟在正文页之后，每页最多 MAX_PER_PAGE 个签署人。
    """
    if index < 0:
        raise ValueError(f"signatory index must be non-negative, got {index}")
    return index // SIG_PAGE_LAYOUT.MAX_PER_PAGE + max(content_pages, 0) + 1


def signature_box(index: int) -> Box:
    """签署人签名框（覆盖层热区，同时也是签名线的水平范围）"""
    top = get_signature_block_position(index)
    return Box(
        x=SIG_PAGE_LAYOUT.MARGIN_X + SIG_PAGE_LAYOUT.SIG_BOX_X_OFFSET,
        y=top + SIG_PAGE_LAYOUT.SIG_BOX_Y_OFFSET,
        width=SIG_PAGE_LAYOUT.SIG_BOX_WIDTH,
        height=SIG_PAGE_LAYOUT.SIG_BOX_HEIGHT,
    )


def date_box(index: int) -> Box:
    """签署人日期框"""
    top = get_signature_block_position(index)
    return Box(
        x=SIG_PAGE_LAYOUT.MARGIN_X + SIG_PAGE_LAYOUT.DATE_BOX_X_OFFSET,
        y=top + SIG_PAGE_LAYOUT.SIG_BOX_Y_OFFSET,
        width=SIG_PAGE_LAYOUT.DATE_BOX_WIDTH,
        height=SIG_PAGE_LAYOUT.SIG_BOX_HEIGHT,
    )


def line_y(index: int) -> float:
    """签名线的 Y 坐标"""
    return get_signature_block_position(index) + SIG_PAGE_LAYOUT.LINE_Y


def field_label_y(index: int) -> float:
    return get_signature_block_position(index) + SIG_PAGE_LAYOUT.FIELD_LABEL_Y
