"""
电子签名服务客户端

流程: 获取令牌 → 预签名 URL 上传 PDF → PrepareContract → 等待 preparation_success
→ RolloutContract（携带字段坐标）→ 等待 rollout 事件。
任何一步失败都抛出 SignatureServiceError，由用户决定是否重试，这里不做自动重试。
"""
import re
import time
import uuid
from base64 import b64decode
from typing import Any

import requests

from legaldoc.core.config import settings
from legaldoc.core.logger import get_logger
from legaldoc.schemas.legal_document import SignatoryInfo
from legaldoc.schemas.signature import (
    SignatoryStatus,
    SignatureFieldType,
    SignatureSendResult,
    SignatureSubmission,
    SigningApiField,
)
from legaldoc.services.signature_fields import (
    content_pages_from_total,
    generate_signature_field_metadata,
    to_signing_api_fields,
)

logger = get_logger(__name__)

PREPARATION_SUCCESS = "preparation_success"
ROLLOUT_SUCCESS = "rollout_success"
ROLLOUT_FAILED = "rollout_failed"

_GUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


class SignatureServiceError(Exception):
    """签名服务调用失败"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _split_name(name: str) -> tuple[str, str]:
    parts = (name or "").strip().split()
    if not parts:
        return "Signatory", "Participant"
    return parts[0], " ".join(parts[1:]) or "Participant"


def _json_body(response: requests.Response, step: str, expected: type = dict) -> Any:
    """解析响应 JSON，结构不符时抛出 SignatureServiceError"""
    try:
        body = response.json()
    except ValueError as e:
        raise SignatureServiceError(f"{step} returned a non-JSON body") from e
    if not isinstance(body, expected):
        raise SignatureServiceError(f"{step} returned an unexpected body: {body!r:.200}")
    return body


def _resolved_orders(signatories: list[SignatoryInfo]) -> list[int]:
    """签署顺序: 显式 order 优先，否则按列表位置"""
    return [s.order if s.order and s.order > 0 else idx + 1 for idx, s in enumerate(signatories)]


class SignatureService:
    """电子签名服务"""

    def __init__(self):
        self.timeout = settings.SIGNATURE_REQUEST_TIMEOUT
        self.poll_attempts = settings.SIGNATURE_EVENT_POLL_ATTEMPTS
        self.poll_interval = settings.SIGNATURE_EVENT_POLL_INTERVAL

    def _post_json(self, url: str, token: str, body: dict[str, Any], step: str) -> requests.Response:
        try:
            response = requests.post(
                url,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"{step} request failed: {e}")
            raise SignatureServiceError(f"{step} failed: {e}") from e

        if not response.ok:
            logger.error(f"{step} failed: {response.status_code} {response.text}")
            raise SignatureServiceError(f"{step} failed: {response.status_code} {response.text}", response.status_code)
        return response

    def get_access_token(self) -> str:
        """client_credentials 方式获取访问令牌"""
        if not settings.SIGNATURE_CLIENT_ID or not settings.SIGNATURE_CLIENT_SECRET:
            raise SignatureServiceError("Signature service credentials are not configured on the server.")

        try:
            response = requests.post(
                settings.SIGNATURE_IDENTITY_URL,
                data={
                    "grant_type": "client_credentials",
                    "client_id": settings.SIGNATURE_CLIENT_ID,
                    "client_secret": settings.SIGNATURE_CLIENT_SECRET,
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Token request failed: {e}")
            raise SignatureServiceError(f"Token request failed: {e}") from e

        if not response.ok:
            raise SignatureServiceError(f"Token request failed: {response.status_code} {response.text}", response.status_code)

        token = _json_body(response, "Token request").get("access_token")
        if not token or not isinstance(token, str):
            raise SignatureServiceError("No access_token in identity response")
        return token

    def upload_pdf(self, token: str, pdf_bytes: bytes, file_name: str, tag: str = "LegalDocument") -> str:
        """
        上传 PDF

        Returns:
            存储服务分配的文件ID
        """
        response = self._post_json(
            settings.SIGNATURE_STORAGE_URL,
            token,
            {
                "ItemId": str(uuid.uuid4()),
                "MetaData": "{}",
                "Name": file_name,
                "ParentDirectoryId": "",
                "Tags": f'["File","{tag}"]',
                "AccessModifier": "Private",
            },
            "Pre-signed upload URL"
        )
        data = _json_body(response, "Pre-signed upload URL")
        upload_url, file_id = data.get("UploadUrl"), data.get("FileId")
        if not upload_url or not file_id:
            raise SignatureServiceError("Pre-signed upload response is missing UploadUrl or FileId")

        try:
            upload = requests.put(
                upload_url,
                data=pdf_bytes,
                headers={"x-ms-blob-type": "BlockBlob", "Content-Type": "application/pdf"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise SignatureServiceError(f"Failed to upload PDF blob: {e}") from e
        if not upload.ok:
            raise SignatureServiceError(f"Failed to upload PDF blob: {upload.status_code} {upload.text}", upload.status_code)

        logger.info(f"Uploaded {file_name} ({len(pdf_bytes)} bytes) as file {file_id}")
        return file_id

    def build_prepare_command(
        self,
        file_id: str,
        signatories: list[SignatoryInfo],
        title: str
    ) -> dict[str, Any]:
        orders = _resolved_orders(signatories)
        ranked = sorted(zip(orders, signatories), key=lambda pair: pair[0])

        owner_email = ranked[0][1].email if ranked else None
        if not owner_email:
            raise SignatureServiceError("Unable to determine owner email from signatories.")

        add_commands = []
        for _, signatory in ranked:
            first_name, last_name = _split_name(signatory.name)
            add_commands.append({
                "Email": signatory.email,
                "ContractRole": 0,
                "FirstName": first_name,
                "LastName": last_name,
                "Phone": signatory.phone or "",
            })

        return {
            "TrackingId": str(uuid.uuid4()),
            "Title": title,
            "ContractType": 0,
            "ReturnDocument": True,
            "ReceiveRolloutEmail": True,
            "SignatureClass": 0,
            "Language": "en-US",
            "LandingPageType": 0,
            "ReminderPulse": 168,
            "OwnerEmail": owner_email,
            "FileIds": [file_id],
            "AddSignatoryCommands": add_commands,
            "SigningOrders": [{"Email": s.email, "Order": order} for order, s in ranked],
        }

    def build_coordinates(
        self,
        file_id: str,
        signatories: list[SignatoryInfo],
        fields: list[SigningApiField]
    ) -> dict[str, list[dict[str, Any]]]:
        """
        将像素坐标字段转换为服务端坐标结构

        页码转换为从0开始；找不到签署人的字段跳过并记录警告。
        """
        orders = _resolved_orders(signatories)
        coordinates: dict[str, list[dict[str, Any]]] = {
            "StampCoordinates": [],
            "TextFieldCoordinates": [],
            "StampPostInfoCoordinates": [],
        }

        for field in fields:
            if field.signatory_index >= len(signatories):
                logger.warning(f"Signatory at index {field.signatory_index} not found for field {field.id}")
                continue
            signatory = signatories[field.signatory_index]
            coordinate_id = field.id if _GUID_PATTERN.match(field.id) else str(uuid.uuid4())
            common = {
                "FileId": file_id,
                "PageNumber": max(0, field.page_number - 1),
                "Width": field.width,
                "Height": field.height,
                "X": field.x,
                "Y": field.y,
                "SignatoryEmail": signatory.email,
                "CoordinateId": coordinate_id,
                "SignatoryGroupId": None,
                "Order": orders[field.signatory_index],
                "SignatoryId": None,
                "SignatoryName": signatory.name or "Signatory",
            }

            if field.type is SignatureFieldType.SIGNATURE:
                coordinates["StampCoordinates"].append({**common, "SignatureImageFileId": None})
            elif field.type is SignatureFieldType.DATE:
                coordinates["StampPostInfoCoordinates"].append({
                    **common,
                    "EntityName": "AuditLog",
                    "PropertyName": "{StampTime}",
                    "FontDetails": {"FontName": "Arial", "FontSize": 12},
                })
            else:
                coordinates["TextFieldCoordinates"].append({**common, "Value": signatory.name})

        return coordinates

    def prepare_contract(self, token: str, command: dict[str, Any]) -> str:
        """创建合同，返回 DocumentId"""
        response = self._post_json(settings.SIGNATURE_PREPARE_URL, token, command, "PrepareContract")
        result = _json_body(response, "PrepareContract")
        nested = result.get("Result")
        document_id = nested.get("DocumentId") if isinstance(nested, dict) else None
        document_id = document_id or result.get("DocumentId")
        if not document_id or not isinstance(document_id, str):
            raise SignatureServiceError(f"No DocumentId in PrepareContract response: {result}")
        if not _GUID_PATTERN.match(document_id):
            raise SignatureServiceError(f"Invalid DocumentId format: {document_id}")
        return document_id

    def wait_for_event(self, token: str, document_id: str, statuses: set[str]) -> list[dict[str, Any]] | None:
        """
        轮询服务端事件，直到出现指定状态之一

        这是对异步处理结果的有限次轮询，不是失败重试。

        Returns:
            出现目标状态时的完整事件列表；轮询结束仍未出现时返回 None
        """
        for attempt in range(1, self.poll_attempts + 1):
            try:
                response = requests.post(
                    settings.SIGNATURE_EVENTS_URL,
                    json={"DocumentId": document_id},
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout
                )
            except requests.RequestException as e:
                raise SignatureServiceError(f"GetEvents failed: {e}") from e

            if response.ok:
                events = _json_body(response, "GetEvents", expected=list)
                events = [e for e in events if isinstance(e, dict)]
                if any(e.get("Status") in statuses for e in events):
                    return events
            else:
                logger.warning(f"GetEvents check failed (attempt {attempt}/{self.poll_attempts}): {response.status_code}")

            if attempt < self.poll_attempts:
                time.sleep(self.poll_interval)

        return None

    def rollout_contract(self, token: str, document_id: str, coordinates: dict[str, list[dict[str, Any]]]) -> None:
        """发送合同给签署人"""
        self._post_json(
            settings.SIGNATURE_ROLLOUT_URL,
            token,
            {"DocumentId": document_id, **coordinates},
            "RolloutContract"
        )

    def _resolve_fields(self, submission: SignatureSubmission) -> list[SigningApiField]:
        """未提供字段时按布局生成默认位置"""
        if submission.signature_fields:
            return submission.signature_fields
        num_pages = submission.num_pages or 1
        content_pages = content_pages_from_total(num_pages, len(submission.signatories))
        logger.warning("No signature fields supplied; using default signature page layout")
        return to_signing_api_fields(generate_signature_field_metadata(submission.signatories, content_pages))

    def send_for_signature(self, submission: SignatureSubmission) -> SignatureSendResult:
        """
        执行完整的签署流程

        Args:
            submission: PDF、签署人以及 96 DPI 像素空间的字段

        Returns:
            发送结果（tracking_id / document_id / 事件）

        Raises:
            SignatureServiceError: 任意步骤失败
        """
        missing = [s.name or str(idx) for idx, s in enumerate(submission.signatories) if not s.email]
        if missing:
            raise SignatureServiceError(f"Signatories without email: {', '.join(missing)}")

        try:
            pdf_bytes = b64decode(submission.pdf_base64, validate=True)
        except ValueError as e:
            raise SignatureServiceError("pdfBase64 is not valid base64") from e

        fields = self._resolve_fields(submission)
        title_base = submission.title or "Legal Document"
        first_name = submission.signatories[0].name or "Document"
        file_stub = re.sub(r"[^A-Za-z0-9_-]", "", re.sub(r"\s+", "_", first_name.strip()))
        title_stub = re.sub(r"\s+", "_", title_base)
        file_name = f"{title_stub}_{file_stub}_{int(time.time() * 1000)}.pdf"

        token = self.get_access_token()
        file_id = self.upload_pdf(token, pdf_bytes, file_name)

        command = self.build_prepare_command(file_id, submission.signatories, f"{title_base} - {first_name}")
        coordinates = self.build_coordinates(file_id, submission.signatories, fields)

        document_id = self.prepare_contract(token, command)
        if self.wait_for_event(token, document_id, {PREPARATION_SUCCESS}) is None:
            raise SignatureServiceError("Contract preparation failed or timed out")

        self.rollout_contract(token, document_id, coordinates)
        events = self.wait_for_event(token, document_id, {ROLLOUT_SUCCESS, ROLLOUT_FAILED}) or []

        if any(e.get("Status") == ROLLOUT_FAILED for e in events):
            logger.error(f"Rollout failed for document {document_id}: {events}")
            raise SignatureServiceError("Contract was prepared but rollout failed")
        if not events:
            logger.warning(f"No rollout event detected for document {document_id}; it may still be processing")

        tracking_id = command["TrackingId"]
        logger.info(f"Sent document {document_id} for signature (tracking {tracking_id})")
        return SignatureSendResult(
            success=True,
            message="Document sent for signature",
            tracking_id=tracking_id,
            document_id=document_id,
            signatories=[SignatoryStatus(name=s.name, email=s.email) for s in submission.signatories],
            events=events,
        )


# 全局服务实例
signature_service = SignatureService()
