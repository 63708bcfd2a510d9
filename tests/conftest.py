"""
Pytest configuration and fixtures.
"""

import io
import time
from types import SimpleNamespace

import pytest
from PIL import Image

from identity_intelligence.models.data_structures import (
    DocumentSide,
    DocumentType,
    Entity,
    RecognitionResult,
)
from identity_intelligence.utils.config_loader import ENV_OVERRIDES


class FakeDocumentAIClient:
    """Stands in for DocumentProcessorServiceClient.

    ``responses`` maps a processor name to a response object or to an
    exception to raise.
    """

    def __init__(self, responses=None, default=None):
        self.responses = dict(responses or {})
        self.default = default
        self.requests = []

    def process_document(self, request=None, timeout=None):
        self.requests.append({"request": request, "timeout": timeout})
        response = self.responses.get(request["name"], self.default)
        if isinstance(response, Exception):
            raise response
        return response


class FakeAdapter:
    """Recognition adapter returning canned results per (type, side).

    Values may be RecognitionResult or an exception instance. ``delays``
    sleeps before answering, to shuffle completion order.
    """

    def __init__(self, results, delays=None):
        self.results = dict(results)
        self.delays = dict(delays or {})
        self.calls = []

    def process(self, image_bytes, document_type, side, mime_type=None, image_role=None):
        self.calls.append((document_type, side, image_role))
        delay = self.delays.get((document_type, side))
        if delay:
            time.sleep(delay)
        result = self.results[(document_type, side)]
        if isinstance(result, Exception):
            raise result
        return result


def make_docai_entity(type_, mention_text="", confidence=0.9, **kwargs):
    """Create a Document AI entity lookalike."""
    return SimpleNamespace(
        type_=type_,
        mention_text=mention_text,
        confidence=confidence,
        normalized_value=kwargs.get("normalized_value"),
        text_anchor=kwargs.get("text_anchor"),
        properties=kwargs.get("properties", []),
    )


def make_docai_response(text, entities=()):
    """Create a process_document response lookalike."""
    return SimpleNamespace(document=SimpleNamespace(text=text, entities=list(entities)))


def make_result(text, *entities):
    """Create a RecognitionResult from (label, value, confidence) tuples."""
    return RecognitionResult(
        text=text,
        entities=tuple(Entity(label, value, confidence) for label, value, confidence in entities),
        processing_time=0.1,
        processor_id="projects/test/locations/us/processors/fake",
    )


@pytest.fixture
def fake_client_class():
    """Fake Document AI client class."""
    return FakeDocumentAIClient


@pytest.fixture
def fake_adapter_class():
    """Fake recognition adapter class."""
    return FakeAdapter


@pytest.fixture
def docai_entity():
    """Factory for Document AI entity lookalikes."""
    return make_docai_entity


@pytest.fixture
def docai_response():
    """Factory for process_document responses."""
    return make_docai_response


@pytest.fixture
def recognition_result():
    """Factory for RecognitionResult objects."""
    return make_result


@pytest.fixture(scope="session")
def png_bytes():
    """Small PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (40, 25), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(scope="session")
def jpeg_bytes():
    """Small JPEG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (30, 20), color="gray").save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def id_front_result():
    """Recognition output for a national ID front."""
    return make_result(
        "ROYAUME DU MAROC\nCARTE NATIONALE D'IDENTITE\nAHMED\nBENALI\n"
        "Né le 12/05/1988 à CASABLANCA\nAB123456",
        ("first_name", "AHMED", 0.95),
        ("last_name", "BENALI", 0.93),
        ("dateofbirth", "12/05/1988", 0.9),
        ("born_in", "CASABLANCA", 0.88),
        ("id_number", "AB 123456", 0.97),
    )


@pytest.fixture
def id_back_result():
    """Recognition output for a national ID back."""
    return make_result(
        "ROYAUME DU MAROC\nAdresse: 12 RUE ATLAS MAARIF CASABLANCA\n"
        "Valable jusqu'au 15/06/2030\nSexe: M",
        ("living_adress", "12 RUE ATLAS MAARIF CASABLANCA", 0.85),
        ("expiry_date", "15/06/2030", 0.9),
        ("issue_date", "15/06/2020", 0.9),
    )


@pytest.fixture
def license_front_result():
    """Recognition output for a driving license front."""
    return make_result(
        "ROYAUME DU MAROC\nPERMIS DE CONDUIRE\nAHMAD\nBENALI\n"
        "Permis N° 12/345678\nCatégories: B",
        ("first_name", "AHMAD", 0.8),
        ("last_name", "BENALI", 0.8),
        ("license_number", "12/345678", 0.92),
    )


@pytest.fixture
def license_back_result():
    """Recognition output for a driving license back."""
    return make_result(
        "PERMIS DE CONDUIRE\nRestrictions: 01\nCatégories B",
        ("restrictions", "01", 0.7),
        ("expiry_date", "01/01/2031", 0.75),
    )


@pytest.fixture
def document_results(id_front_result, id_back_result, license_front_result, license_back_result):
    """All four recognition outputs keyed by (type, side)."""
    return {
        (DocumentType.ID, DocumentSide.FRONT): id_front_result,
        (DocumentType.ID, DocumentSide.BACK): id_back_result,
        (DocumentType.LICENSE, DocumentSide.FRONT): license_front_result,
        (DocumentType.LICENSE, DocumentSide.BACK): license_back_result,
    }


@pytest.fixture
def clean_env(monkeypatch):
    """Remove recognition environment overrides."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line(
        "markers", "integration: Integration tests for multiple components"
    )
    config.addinivalue_line("markers", "slow: Tests that take significant time")
