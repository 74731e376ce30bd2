import uuid

from sqlalchemy import Column, String, Text, JSON, Integer, Boolean

from legaldoc.models.base import BaseModel


class ReviewSession(BaseModel):
    __tablename__ = "review_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), comment="会话ID")
    status = Column(String(32), default="loading", comment="状态: loading/rendered/editing/preparing/submitted/error")

    # 文档内容
    document = Column(JSON, nullable=True, comment="块结构文档（含 schemaVersion）")
    form_data = Column(JSON, nullable=True, comment="起草向导表单数据")
    document_version = Column(String(32), default="blocks", comment="文档版本: blocks/legacy_articles")

    # 渲染结果
    num_pages = Column(Integer, nullable=True, comment="PDF 总页数")
    content_pages = Column(Integer, nullable=True, comment="正文页数")
    signature_fields = Column(JSON, nullable=True, comment="签名字段元数据（PDF 点坐标）")
    dirty = Column(Boolean, default=False, comment="编辑后尚未重新渲染")

    # 签署结果
    tracking_id = Column(String(64), nullable=True, comment="签名服务跟踪ID")
    provider_document_id = Column(String(64), nullable=True, comment="签名服务文档ID")
    last_error = Column(Text, nullable=True, comment="最近一次错误信息")

    def __repr__(self):
        return f"<ReviewSession(id={self.id}, status='{self.status}')>"
