import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import openai
import pytest

from legaldoc.services.document_ingestion import DocumentValidationError
from legaldoc.services.drafting import DraftingError, DraftingService, build_user_prompt, strip_markdown_fences


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _service(create: AsyncMock) -> DraftingService:
    service = DraftingService()
    service._client = Mock()
    service._client.chat.completions.create = create
    return service


class TestPromptHelpers:
    """提示与输出清理测试"""

    def test_strip_json_fence(self):
        """去除 ```json 代码块"""
        assert strip_markdown_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_markdown_fences('```\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_markdown_fences('  {"a": 1} ') == '{"a": 1}'

    def test_user_prompt_skips_empty_values(self):
        """空值不进入提示"""
        prompt = build_user_prompt(
            {"employerName": "Acme Inc.", "salary": "", "benefits": ["health", "dental"]},
            "employment-agreement",
        )
        assert prompt.startswith("Draft a employment-agreement")
        assert "- employerName: Acme Inc." in prompt
        assert "salary" not in prompt
        assert '- benefits: ["health", "dental"]' in prompt


class TestGenerateDocument:
    """起草流程测试"""

    def test_returns_validated_document(self, sample_document):
        """返回经过校验的块结构文档"""
        create = AsyncMock(return_value=_completion(json.dumps(sample_document)))
        service = _service(create)

        document = asyncio.run(service.generate_document({"employerName": "Acme Inc."}, "employment-agreement"))

        assert document.metadata.title == "Employment Agreement"
        assert len(document.signatories) == 2
        kwargs = create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"

    def test_fenced_response(self, sample_document):
        """模型返回代码块包裹的 JSON"""
        content = f"```json\n{json.dumps(sample_document)}\n```"
        service = _service(AsyncMock(return_value=_completion(content)))
        document = asyncio.run(service.generate_document({}))
        assert document.metadata.title == "Employment Agreement"

    def test_empty_content(self):
        """空内容"""
        service = _service(AsyncMock(return_value=_completion(None)))
        with pytest.raises(DraftingError, match="No content generated"):
            asyncio.run(service.generate_document({}))

    def test_invalid_json(self):
        """非 JSON 内容"""
        service = _service(AsyncMock(return_value=_completion("Here is your agreement: ...")))
        with pytest.raises(DraftingError, match="Invalid JSON"):
            asyncio.run(service.generate_document({}))

    def test_missing_required_fields(self):
        """JSON 缺少必填字段"""
        service = _service(AsyncMock(return_value=_completion('{"metadata": {}}')))
        with pytest.raises(DocumentValidationError):
            asyncio.run(service.generate_document({}))

    def test_api_error(self):
        """OpenAI 调用失败"""
        service = _service(AsyncMock(side_effect=openai.OpenAIError("rate limited")))
        with pytest.raises(DraftingError, match="rate limited"):
            asyncio.run(service.generate_document({}))
