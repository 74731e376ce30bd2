"""
AI 起草服务

根据表单数据调用 OpenAI 生成块结构法律文档，输出经过接入边界校验后返回。
"""
import json
import re
from typing import Any

import openai

from legaldoc.core.config import settings
from legaldoc.core.logger import get_logger
from legaldoc.schemas.legal_document import BlockType, LegalDocument
from legaldoc.services.document_ingestion import require_block_document

logger = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)

SYSTEM_PROMPT = f"""You are an expert legal drafter. Produce the requested agreement as a single JSON object:

{{
  "metadata": {{"title": "...", "effectiveDate": "YYYY-MM-DD", "documentType": "...", "jurisdiction": "..."}},
  "content": [ <blocks> ],
  "signatories": [{{"party": "...", "name": "...", "email": "...", "title": "...", "company": "..."}}]
}}

Each block is {{"type": "...", "props": {{}}, "text": "...", "children": []}} where type is one of:
{", ".join(t.value for t in BlockType if t is not BlockType.UNKNOWN)}.
Articles contain only sections (props.number, props.title). Sections contain paragraphs, lists and definitions.
List items may set props.marker; definition items set props.term. Return JSON only.
"""


class DraftingError(Exception):
    """AI 调用失败或输出无法解析"""


def strip_markdown_fences(content: str) -> str:
    """去除模型偶尔包裹的 ```json 代码块"""
    match = _FENCE_PATTERN.match(content)
    return match.group(1) if match else content.strip()


def build_user_prompt(form_data: dict[str, Any], template: str | None = None) -> str:
    """将表单数据拼成用户提示"""
    lines = [f"Draft a {template or 'legal agreement'} with the following details:", ""]
    for key, value in form_data.items():
        if value in (None, "", [], {}):
            continue
        if isinstance(value, (dict, list)):
            value = json.dumps(value, ensure_ascii=False)
        lines.append(f"- {key}: {value}")
    return "\n".join(lines)


class DraftingService:
    """法律文档起草服务"""

    def __init__(self):
        self._client: openai.AsyncOpenAI | None = None
        self.model = settings.DRAFTING_MODEL
        self.temperature = settings.DRAFTING_TEMPERATURE

    @property
    def client(self) -> openai.AsyncOpenAI:
        # 首次使用时创建，未配置密钥时应用仍可启动
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    async def generate_document(self, form_data: dict[str, Any], template: str | None = None) -> LegalDocument:
        """
        起草文档

        Args:
            form_data: 向导表单数据
            template: 模板标识，如 employment-agreement

        Returns:
            已校验的块结构文档

        Raises:
            DraftingError: 调用失败或返回内容不是 JSON
            DocumentValidationError: 返回的 JSON 缺少必填字段
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(form_data, template)},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"}
            )
        except openai.OpenAIError as e:
            logger.error(f"Drafting request failed: {e}")
            raise DraftingError(f"Failed to generate document: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.error("Drafting response contained no content")
            raise DraftingError("No content generated")

        try:
            payload = json.loads(strip_markdown_fences(content))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse drafting response as JSON: {e}; content starts with {content[:200]!r}")
            raise DraftingError("Invalid JSON response from AI") from e

        document = require_block_document(payload)
        logger.info(
            f"Drafted '{document.metadata.title}' with {len(document.content)} top-level blocks "
            f"and {len(document.signatories)} signatories"
        )
        return document


# 全局服务实例
drafting_service = DraftingService()
