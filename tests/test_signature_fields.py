import json

import pytest

from legaldoc.schemas.legal_document import SignatoryInfo
from legaldoc.schemas.signature import SignatureFieldType
from legaldoc.services.signature_fields import (
    DPI_SCALE,
    clamp_fields_to_pages,
    clamp_zoom,
    content_pages_from_total,
    create_metadata_payload,
    from_screen,
    generate_signature_field_metadata,
    move_field,
    parse_metadata_payload,
    reconcile_field_pages,
    scale_field,
    to_screen,
    to_signing_api_fields,
)
from legaldoc.services.signature_layout import date_box, signature_box


def _signatories(n: int) -> list[SignatoryInfo]:
    return [SignatoryInfo(party=f"party {i}", name=f"Signer {i}", email=f"s{i}@example.com") for i in range(n)]


class TestGenerateSignatureFields:
    """签名字段元数据生成测试"""

    def test_empty_signatories(self):
        """无签署人时返回空列表"""
        assert generate_signature_field_metadata([], 3) == []

    def test_two_fields_per_signatory(self):
        """每个签署人一个签名字段、一个日期字段"""
        fields = generate_signature_field_metadata(_signatories(4), 2)
        assert len(fields) == 8
        assert [f.type for f in fields[:2]] == [SignatureFieldType.SIGNATURE, SignatureFieldType.DATE]

    def test_field_ids_and_labels(self):
        """字段ID由序号与当事方派生"""
        signer = SignatoryInfo(party="Disclosing Party", name="Alice")
        sig, date = generate_signature_field_metadata([signer], 1)
        assert sig.id == "sig-0-disclosing_party"
        assert date.id == "date-0-disclosing_party"
        assert sig.label == "Alice - Signature"
        assert date.label == "Date"

    def test_page_numbers(self):
        """页码 = floor(i / 3) + content_pages + 1"""
        fields = generate_signature_field_metadata(_signatories(7), 2)
        for field in fields:
            assert field.page_number == field.signatory_index // 3 + 3

    def test_positions_match_layout(self):
        """字段位置与签名页布局一致"""
        fields = generate_signature_field_metadata(_signatories(5), 1)
        for field in fields:
            box = signature_box(field.signatory_index) if field.type is SignatureFieldType.SIGNATURE \
                else date_box(field.signatory_index)
            assert (field.x, field.y, field.width, field.height) == (box.x, box.y, box.width, box.height)

    def test_deterministic(self):
        """相同输入得到相同输出"""
        signers = _signatories(3)
        assert generate_signature_field_metadata(signers, 2) == generate_signature_field_metadata(signers, 2)


class TestPageReconciliation:
    """页码对齐测试"""

    def test_content_pages_from_total(self):
        """从总页数推算正文页数，至少1页"""
        assert content_pages_from_total(5, 4) == 3
        assert content_pages_from_total(1, 4) == 1

    def test_clamp_to_last_page(self):
        """超出页数的字段钳制到最后一页"""
        fields = generate_signature_field_metadata(_signatories(4), 3)
        clamped = clamp_fields_to_pages(fields, 4)
        assert max(f.page_number for f in clamped) == 4
        assert all(f.page_number <= 4 for f in clamped)

    def test_reconcile_keeps_moved_coordinates(self):
        """页数变化后保留用户调整过的坐标，只重算页码"""
        signers = _signatories(2)
        fields = generate_signature_field_metadata(signers, 1)
        moved = [fields[0].model_copy(update={"x": 300.0, "y": 400.0})] + fields[1:]

        reconciled = reconcile_field_pages(moved, signers, 4)

        assert reconciled[0].x == 300.0
        assert reconciled[0].y == 400.0
        assert all(f.page_number == 4 for f in reconciled)


class TestMetadataPayload:
    """元数据负载测试"""

    def test_payload_contains_fields(self):
        """负载包含版本与字段"""
        signers = _signatories(1)
        fields = generate_signature_field_metadata(signers, 1)
        data = json.loads(create_metadata_payload(fields, signers))
        assert data["version"] == "1.0"
        assert data["signatureFields"][0]["pageNumber"] == 2
        assert parse_metadata_payload(json.dumps(data)) == fields

    @pytest.mark.parametrize("payload", ["not json", "[]", '{"signatureFields": [{"id": 1}]}', "{}"])
    def test_malformed_payload(self, payload):
        """格式错误时返回 None"""
        assert parse_metadata_payload(payload) is None


class TestOverlayTransforms:
    """覆盖层缩放与 DPI 校正测试"""

    def test_zoom_is_clamped(self):
        """缩放限制在 [0.5, 2.0]"""
        assert clamp_zoom(0.1) == 0.5
        assert clamp_zoom(3) == 2.0
        assert clamp_zoom(1.25) == 1.25

    def test_screen_round_trip(self):
        """拖动结果换算回 PDF 点"""
        field = generate_signature_field_metadata(_signatories(1), 1)[0]
        screen = to_screen(field, 1.5)
        assert screen["x"] == field.x * 1.5
        assert from_screen(screen["x"], screen["y"], 1.5) == pytest.approx((field.x, field.y))

    def test_move_field(self):
        """移动字段后坐标以 PDF 点保存"""
        field = generate_signature_field_metadata(_signatories(1), 1)[0]
        moved = move_field(field, 200, 300, 2.0)
        assert (moved.x, moved.y) == (100, 150)

    def test_scale_field_exact(self):
        """缩放四个量都乘以同一因子"""
        field = generate_signature_field_metadata(_signatories(1), 1)[0]
        scaled = scale_field(field, DPI_SCALE)
        assert scaled.x == pytest.approx(field.x * 96 / 72)
        assert scaled.width == pytest.approx(field.width * 96 / 72)
        assert scaled.height == pytest.approx(field.height * 96 / 72)

    @pytest.mark.parametrize("index", [0, 2, 3, 7])
    def test_dpi_round_trip(self, index):
        """72 → 96 → 72 DPI 往返后坐标不变"""
        fields = [f for f in generate_signature_field_metadata(_signatories(8), 2) if f.signatory_index == index]
        assert len(fields) == 2
        for field in fields:
            back = scale_field(scale_field(field, DPI_SCALE), 72 / 96)
            assert back.x == pytest.approx(field.x)
            assert back.y == pytest.approx(field.y)
            assert back.width == pytest.approx(field.width)
            assert back.height == pytest.approx(field.height)
            assert back.page_number == field.page_number

    def test_submission_independent_of_zoom(self):
        """提交坐标与界面缩放无关"""
        field = generate_signature_field_metadata(_signatories(1), 1)[0]
        screen = to_screen(field, 1.75)
        zoomed_and_back = move_field(field, screen["x"], screen["y"], 1.75)
        direct = to_signing_api_fields([field])[0]
        via_zoom = to_signing_api_fields([zoomed_and_back])[0]
        assert (direct.x, direct.y) == (via_zoom.x, via_zoom.y)

    def test_signing_api_fields_rounded(self):
        """签名服务坐标取整"""
        field = generate_signature_field_metadata(_signatories(1), 1)[0]
        api_field = to_signing_api_fields([field])[0]
        assert api_field.x == round(field.x * DPI_SCALE)
        assert api_field.width == round(220 * DPI_SCALE)
        assert api_field.page_number == field.page_number

    def test_invalid_coordinates_rejected(self):
        """负坐标或非正尺寸抛出 ValueError"""
        field = generate_signature_field_metadata(_signatories(1), 1)[0]
        bad = field.model_copy(update={"width": 0})
        with pytest.raises(ValueError):
            to_signing_api_fields([bad])
