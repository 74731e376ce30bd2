import copy
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from legaldoc.main import app
from legaldoc.core.database import get_db, Base
from legaldoc import models  # noqa: F401

# 测试数据库配置
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session")
def db() -> Generator:
    """创建测试数据库"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(db) -> Generator:
    """创建测试数据库会话，测试结束后回滚"""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def client(db_session) -> Generator:
    """创建测试客户端"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


SAMPLE_DOCUMENT = {
    "metadata": {
        "title": "Employment Agreement",
        "effectiveDate": "2025-01-15",
        "documentType": "employment-agreement",
        "jurisdiction": "California",
    },
    "content": [
        {
            "type": "article",
            "props": {"number": "1", "title": "Definitions"},
            "children": [
                {
                    "type": "section",
                    "props": {"number": "1.1", "title": "Defined Terms"},
                    "children": [
                        {
                            "type": "definition",
                            "children": [
                                {
                                    "type": "definition_item",
                                    "props": {"term": "Confidential Information"},
                                    "text": "means all non-public information disclosed by the Company.",
                                },
                            ],
                        },
                    ],
                },
            ],
        },
        {
            "type": "article",
            "props": {"number": "2", "title": "Duties"},
            "children": [
                {
                    "type": "section",
                    "props": {"number": "2.1", "title": "Position"},
                    "children": [
                        {
                            "type": "paragraph",
                            "text": "The Employee shall serve as Senior Engineer and report to the CTO.",
                        },
                        {
                            "type": "list",
                            "children": [
                                {"type": "list_item", "text": "Design software systems."},
                                {
                                    "type": "list_item",
                                    "text": "Review code.",
                                    "children": [
                                        {
                                            "type": "list",
                                            "children": [
                                                {"type": "list_item", "text": "Security reviews."},
                                                {"type": "list_item", "text": "Performance reviews."},
                                            ],
                                        },
                                    ],
                                },
                            ],
                        },
                    ],
                },
            ],
        },
    ],
    "signatories": [
        {"party": "employer", "name": "Jane Smith", "email": "jane@acme.com", "title": "CEO", "company": "Acme Inc."},
        {"party": "employee", "name": "John Doe", "email": "john@example.com"},
    ],
}

LEGACY_DOCUMENT = {
    "metadata": {"title": "Old Agreement"},
    "articles": [
        {"number": "1", "title": "Terms", "sections": [{"number": "1.1", "content": "Legacy text."}]},
    ],
}


@pytest.fixture
def sample_document() -> dict:
    """块结构示例文档"""
    return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def legacy_document() -> dict:
    """旧版 articles 结构文档"""
    return copy.deepcopy(LEGACY_DOCUMENT)


@pytest.fixture
def many_signatories() -> list[dict]:
    """四个签署人，需要两页签名页"""
    return [
        {"party": "disclosingParty", "name": "Alice Chen", "email": "alice@example.com"},
        {"party": "receiving party", "name": "Bob Lee", "email": "bob@example.com"},
        {"party": "witness", "name": "Carol Diaz", "email": "carol@example.com"},
        {"party": "other", "name": "Dan Wu", "email": "dan@example.com", "company": "Wu LLC"},
    ]
