"""Shared fakes and fixtures for the test suite."""

from __future__ import annotations

import json
import threading
from typing import Any, Dict, List, Optional

import pytest

from app import create_app
from job_storage import PersistentJobStorage
from studygen.config import load_settings
from studygen.storage import JobRepository


class FakeRedis:
    """Dict-backed stand-in for the redis client, recording every write."""

    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}
        self.history: List[tuple] = []
        self.ttls: Dict[str, int] = {}

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> bool:
        self.data[key] = value
        self.history.append((key, value))
        return True

    def setex(self, key: str, ttl: int, value: Any) -> bool:
        self.ttls[key] = ttl
        return self.set(key, value)

    def exists(self, key: str) -> int:
        return int(key in self.data)


class FakeInvoker:
    """Returns scripted completions (or raises scripted errors) in order."""

    def __init__(self, responses: List[Any], events: Optional[List[tuple]] = None) -> None:
        self.responses = list(responses)
        self.prompts: List[str] = []
        self.operations: List[str] = []
        self.events = events if events is not None else []

    def invoke_for(self, operation: str, prompt: str) -> str:
        self.operations.append(operation)
        self.prompts.append(prompt)
        self.events.append(("call", len(self.prompts)))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def flashcards_json(count: int, start: int = 1) -> str:
    cards = [
        {"question": f"Question {number}", "answer": f"Answer {number}"}
        for number in range(start, start + count)
    ]
    return json.dumps({"flashcards": cards})


def mcqs_json(count: int, start: int = 1) -> str:
    questions = [
        {
            "question": f"Question {number}",
            "A": "Alpha",
            "B": "Beta",
            "C": "Gamma",
            "D": "Delta",
            "correct": "B",
        }
        for number in range(start, start + count)
    ]
    return json.dumps({"questions": questions})


def make_pdf(text: str = "Hello World") -> bytes:
    """Build a one-page PDF with a correct cross-reference table."""
    stream = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_offset,
    )
    return bytes(out)


def join_extraction_threads(timeout: float = 10.0) -> None:
    for thread in threading.enumerate():
        if thread.name.startswith("pdf_extract_"):
            thread.join(timeout)


@pytest.fixture
def settings():
    return load_settings(
        {
            "OPENAI_MODEL": "test-model",
            "OPENAI_API_KEY": "sk-test",
            "MIN_WORD_COUNT": "5",
            "MAX_WORD_COUNT": "200",
            "TRANSCRIPT_WORD_THRESHOLD": "50",
            "MAX_FILE_SIZE_MB": "1",
        }
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def storage(fake_redis):
    return PersistentJobStorage(prefix="test", client=fake_redis)


@pytest.fixture
def repository(storage):
    return JobRepository(storage)


@pytest.fixture
def invoker_slot():
    """Holds the invoker the Flask app hands to generation endpoints."""
    return {"invoker": FakeInvoker([])}


@pytest.fixture
def flask_app(settings, storage, invoker_slot):
    flask_app = create_app(settings=settings, storage=storage, invoker_factory=lambda: invoker_slot["invoker"])
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()
