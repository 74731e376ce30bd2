import pytest

from legaldoc.schemas.legal_document import DocumentVersion, SignatoryInfo
from legaldoc.services.document_ingestion import (
    DocumentValidationError,
    LegacyDocumentError,
    detect_document_version,
    dump_document,
    ingest_document,
    require_block_document,
)


class TestDocumentVersion:
    """文档版本判定测试"""

    def test_block_document(self, sample_document):
        """有 content 的文档为块结构"""
        assert detect_document_version(sample_document) is DocumentVersion.BLOCKS

    def test_legacy_document(self, legacy_document):
        """有 articles 无 content 的文档为旧版结构"""
        assert detect_document_version(legacy_document) is DocumentVersion.LEGACY_ARTICLES

    def test_explicit_version_wins(self, legacy_document):
        """显式 schemaVersion 优先于形状判断"""
        legacy_document["schemaVersion"] = "blocks"
        legacy_document["content"] = []
        assert detect_document_version(legacy_document) is DocumentVersion.BLOCKS

    def test_unknown_explicit_version(self, sample_document):
        """未知版本号抛出校验错误"""
        sample_document["schemaVersion"] = "v9"
        with pytest.raises(DocumentValidationError):
            detect_document_version(sample_document)


class TestIngestDocument:
    """接入校验测试"""

    def test_ingest_block_document(self, sample_document):
        """块结构文档解析为 LegalDocument"""
        ingested = ingest_document(sample_document)
        assert not ingested.is_legacy
        assert ingested.document.metadata.title == "Employment Agreement"
        assert ingested.document.metadata.effective_date == "2025-01-15"
        assert len(ingested.document.signatories) == 2

    def test_legacy_kept_raw(self, legacy_document):
        """旧版文档原样保留，不解析"""
        ingested = ingest_document(legacy_document)
        assert ingested.is_legacy
        assert ingested.document is None
        assert ingested.raw is legacy_document

    @pytest.mark.parametrize("mutate", [
        lambda d: d.pop("metadata"),
        lambda d: d["metadata"].pop("title"),
        lambda d: d["metadata"].update(title=""),
        lambda d: d.pop("content"),
        lambda d: d.update(content="text"),
    ])
    def test_missing_required_fields(self, sample_document, mutate):
        """缺少 metadata.title 或 content 是硬错误"""
        mutate(sample_document)
        with pytest.raises(DocumentValidationError):
            ingest_document(sample_document)

    @pytest.mark.parametrize("payload", [None, "document", [1, 2]])
    def test_non_object_payload(self, payload):
        """非对象负载抛出校验错误"""
        with pytest.raises(DocumentValidationError):
            ingest_document(payload)

    def test_structure_problems_logged_not_raised(self, sample_document):
        """结构约定违反只记录，不中断"""
        sample_document["content"][0]["children"].append({"type": "paragraph", "text": "Stray"})
        ingested = ingest_document(sample_document)
        assert ingested.document.structure_problems()

    def test_null_signatories(self, sample_document):
        """signatories 为 null 视为空列表"""
        sample_document["signatories"] = None
        assert ingest_document(sample_document).document.signatories == []

    def test_require_block_document(self, legacy_document):
        """需要块结构时旧版文档抛出 LegacyDocumentError"""
        with pytest.raises(LegacyDocumentError):
            require_block_document(legacy_document)

    def test_dump_round_trip(self, sample_document):
        """序列化结果带版本号且可再次接入"""
        document = require_block_document(sample_document)
        data = dump_document(document)
        assert data["schemaVersion"] == "blocks"
        assert data["metadata"]["effectiveDate"] == "2025-01-15"
        assert require_block_document(data) == document


class TestSignatoryInfo:
    """签署人显示信息测试"""

    @pytest.mark.parametrize("kwargs,label", [
        ({"party": "disclosingParty"}, "DISCLOSING PARTY"),
        ({"party": "receiving_party"}, "RECEIVING PARTY"),
        ({"party": "other", "title": "Director"}, "DIRECTOR"),
        ({"party": "other", "role": "Witness"}, "WITNESS"),
        ({"party": "other", "company": "Acme"}, "FOR ACME"),
        ({"party": "other"}, ""),
    ])
    def test_party_label(self, kwargs, label):
        """当事方标签的回退顺序"""
        assert SignatoryInfo(name="X", **kwargs).party_label() == label

    def test_detail_lines(self):
        """职务 • 公司、地址、邮箱"""
        signer = SignatoryInfo(name="Jane", title="CEO", company="Acme", address="1 Main St", email="j@acme.com")
        assert signer.detail_lines() == ["CEO • Acme", "1 Main St", "j@acme.com"]

    def test_missing_party_defaults(self):
        """缺少 party 时使用 signatory"""
        signer = SignatoryInfo.model_validate({"name": "Jane", "party": None})
        assert signer.party == "signatory"
        assert signer.party_id() == "signatory"
