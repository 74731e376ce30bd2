"""
法律文档块结构数据模型

文档内容是一棵递归的类型化块树：
- article: 一级容器（ARTICLE 1）
- section: 二级容器（1.1）
- paragraph / list / list_item / definition / definition_item: 内容块

未识别的块类型统一归入 UNKNOWN 变体，渲染时只输出其子节点。
"""
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from legaldoc.core.logger import get_logger

logger = get_logger(__name__)


class BlockType(str, Enum):
    """文档块类型"""
    ARTICLE = "article"
    SECTION = "section"
    PARAGRAPH = "paragraph"
    LIST = "list"
    LIST_ITEM = "list_item"
    DEFINITION = "definition"
    DEFINITION_ITEM = "definition_item"
    PAGE_BREAK = "page_break"
    UNKNOWN = "unknown"


class DocumentVersion(str, Enum):
    """文档结构版本，在数据接入边界确定"""
    BLOCKS = "blocks"
    LEGACY_ARTICLES = "legacy_articles"


_KNOWN_BLOCK_TYPES = {t.value for t in BlockType if t is not BlockType.UNKNOWN}

# 各容器允许的子节点类型
_CONTENT_BLOCK_TYPES = {
    BlockType.PARAGRAPH,
    BlockType.LIST,
    BlockType.DEFINITION,
    BlockType.PAGE_BREAK,
    BlockType.UNKNOWN,
}


class DocumentBlock(BaseModel):
    """文档内容树中的一个节点，渲染期间不可变"""
    model_config = ConfigDict(frozen=True)

    type: BlockType = Field(..., description="块类型")
    raw_type: str | None = Field(None, description="未识别类型的原始标签")
    id: str | None = Field(None, description="块ID")
    props: dict[str, Any] = Field(default_factory=dict, description="类型相关属性: title/number/term/marker/ordered")
    text: str | None = Field(None, description="叶子节点文本")
    children: list["DocumentBlock"] = Field(default_factory=list, description="有序子节点")

    @model_validator(mode="before")
    @classmethod
    def narrow_raw_block(cls, data: Any) -> Any:
        """
        在接入边界收窄畸形输入

        未知类型转为 UNKNOWN，非字典 props 置空，非字符串 text 丢弃，
        不合法的子节点跳过并记录警告，不让单个坏块中断整个文档。
        """
        if not isinstance(data, dict):
            return data

        data = dict(data)
        raw_type = data.get("type")
        if not isinstance(raw_type, str) or raw_type not in _KNOWN_BLOCK_TYPES:
            if raw_type != BlockType.UNKNOWN.value:
                data["raw_type"] = str(raw_type) if raw_type is not None else None
            data["type"] = BlockType.UNKNOWN

        props = data.get("props")
        if props is None:
            data["props"] = {}
        elif not isinstance(props, dict):
            logger.warning(f"Block props must be an object, got {type(props).__name__}; ignoring")
            data["props"] = {}

        text = data.get("text")
        if text is not None and not isinstance(text, str):
            if isinstance(text, (int, float)):
                data["text"] = str(text)
            else:
                logger.warning(f"Block text must be a string, got {type(text).__name__}; ignoring")
                data["text"] = None

        children = data.get("children")
        if children is None:
            data["children"] = []
        elif not isinstance(children, list):
            logger.warning(
                f"Block children must be an array, got {type(children).__name__} "
                f"on '{data.get('type')}' block; skipping children"
            )
            data["children"] = []
        else:
            kept = []
            for child in children:
                if isinstance(child, (dict, DocumentBlock)):
                    kept.append(child)
                else:
                    logger.warning(f"Skipping malformed child block of type {type(child).__name__}")
            data["children"] = kept

        return data

    @property
    def title(self) -> str | None:
        value = self.props.get("title")
        return str(value) if value is not None else None

    @property
    def number(self) -> str | None:
        value = self.props.get("number")
        return str(value) if value is not None and value != "" else None

    def validate_structure(self, path: tuple[int, ...] = ()) -> list[str]:
        """
        检查结构约定：article 只能包含 section，section 只能包含内容块

        违反约定时渲染仍会继续，这里只返回问题描述供调用方记录。
        """
        problems = []
        location = "/".join(str(i) for i in path) or "root"

        for idx, child in enumerate(self.children):
            if self.type is BlockType.ARTICLE and child.type is not BlockType.SECTION:
                problems.append(f"{location}: article contains '{child.type.value}' child at index {idx}")
            elif self.type is BlockType.SECTION and child.type not in _CONTENT_BLOCK_TYPES:
                problems.append(f"{location}: section contains '{child.type.value}' child at index {idx}")
            problems.extend(child.validate_structure(path + (idx,)))

        return problems


class DocumentMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(..., description="文档标题")
    effective_date: str | None = Field(None, description="生效日期")
    effective_date_label: str | None = Field(None, description="生效日期标签，默认 'Effective Date:'")
    document_type: str | None = Field(None, description="文档类型，如 employment-agreement / nda")
    jurisdiction: str | None = Field(None, description="司法辖区")
    generated_at: str | None = Field(None, description="生成时间")
    page_number_format: str = Field("Page {page} of {total}", description="页码格式模板")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("metadata.title must not be empty")
        return v


class SignaturePageConfig(BaseModel):
    """签名页文案配置，AI 可按司法辖区调整"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = "Signatures"
    attestation_clause: str = (
        "IN WITNESS WHEREOF, the parties have executed this Agreement as of the date first above written."
    )
    signature_label: str = "Signature"
    date_label: str = "Date"


def _is_generic(value: str | None) -> bool:
    return not value or not value.strip() or value.strip().lower() == "other"


class SignatoryInfo(BaseModel):
    """需要签署文档的一方"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    party: str = Field("signatory", description="当事方类型: employer/employee/disclosingParty 等")
    name: str = Field("", description="签署人姓名")
    email: str | None = Field(None, description="通知邮箱")
    role: str | None = Field(None, description="签署角色")
    title: str | None = Field(None, description="职务")
    phone: str | None = Field(None, description="电话")
    company: str | None = Field(None, description="公司")
    address: str | None = Field(None, description="地址")
    order: int | None = Field(None, description="签署顺序")

    @field_validator("party", mode="before")
    @classmethod
    def default_party(cls, v: Any) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "signatory"
        return str(v)

    def party_id(self) -> str:
        """用于字段ID的当事方标识"""
        return re.sub(r"\s+", "_", self.party or "signatory").lower()

    def party_label(self) -> str:
        """
        签名块上显示的当事方标签

        优先级: 格式化的 party → title → role → FOR {company} → 空
        """
        if not _is_generic(self.party):
            label = re.sub(r"([a-z])([A-Z])", r"\1 \2", self.party.strip())
            label = re.sub(r"[_-]", " ", label)
            return label.upper().strip()
        if not _is_generic(self.title):
            return self.title.strip().upper()
        if not _is_generic(self.role):
            return self.role.strip().upper()
        if self.company and self.company.strip():
            return f"FOR {self.company.strip().upper()}"
        return ""

    def detail_lines(self) -> list[str]:
        """姓名下方的详情行: 职务 • 公司, 地址, 邮箱"""
        lines = []
        title_company = [part.strip() for part in (self.title, self.company) if part and part.strip()]
        if title_company:
            lines.append(" • ".join(title_company))
        if self.address and self.address.strip():
            lines.append(self.address.strip())
        if self.email and self.email.strip():
            lines.append(self.email.strip())
        return lines


class LegalDocument(BaseModel):
    """完整的法律文档"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    metadata: DocumentMetadata
    content: list[DocumentBlock]
    signatories: list[SignatoryInfo] = Field(default_factory=list)
    signature_page_config: SignaturePageConfig = Field(default_factory=SignaturePageConfig)

    @field_validator("signatories", mode="before")
    @classmethod
    def none_signatories(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("signature_page_config", mode="before")
    @classmethod
    def none_signature_config(cls, v: Any) -> Any:
        return {} if v is None else v

    def structure_problems(self) -> list[str]:
        problems = []
        for idx, block in enumerate(self.content):
            problems.extend(block.validate_structure((idx,)))
        return problems
