"""
Recognition adapter for the Identity Intelligence System.

Wraps one Google Cloud Document AI ``process_document`` call per image:
resolves the processor for a document type and side, submits the raw image
bytes, and converts the returned document into a RecognitionResult. Service
failures are classified into RecognitionError kinds with a retryable flag;
the adapter itself never retries.

Typical usage example:

    registry = ProcessorRegistry.from_config(config)
    adapter = RecognitionAdapter(
        RecognitionConfig.from_config(config.recognition), registry.resolve
    )
    result = adapter.process(image_bytes, DocumentType.ID, DocumentSide.FRONT)
    print(f"{len(result.entities)} entities in {result.processing_time:.2f}s")
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions

from ..models.data_structures import (
    DocumentSide,
    DocumentType,
    Entity,
    RecognitionResult,
)
from ..utils.error_handlers import (
    ConfigurationError,
    RecognitionError,
    RecognitionErrorKind,
)
from ..utils.image_utils import detect_mime_type, get_image_dimensions
from ..utils.text_utils import normalize_whitespace, truncate_text

logger = logging.getLogger(__name__)

ProcessorResolver = Callable[[DocumentType, DocumentSide], str]
TEXT_PREVIEW_LENGTH = 120

# Status texts checked when the exception type is not conclusive
STATUS_TEXT_KINDS = (
    (("NOT_FOUND", "NOT FOUND"), RecognitionErrorKind.PROCESSOR_NOT_FOUND),
    (
        ("PERMISSION_DENIED", "UNAUTHENTICATED", "PERMISSION DENIED"),
        RecognitionErrorKind.AUTHENTICATION,
    ),
    (
        ("DEADLINE_EXCEEDED", "DEADLINE EXCEEDED", "TIMED OUT", "TIMEOUT"),
        RecognitionErrorKind.TIMEOUT,
    ),
    (("QUOTA", "RESOURCE_EXHAUSTED"), RecognitionErrorKind.QUOTA_EXCEEDED),
)


@dataclass
class RecognitionConfig:
    """Configuration for recognition calls.

    Attributes:
        location: Document AI location ("us", "eu").
        key_file: Optional service account JSON key. Application default
            credentials are used when empty.
        max_file_size_mb: Largest accepted upload.
        allowed_mime_types: MIME types the processors accept.
        default_mime_type: MIME type used when detection fails.
        timeout_seconds: Per-call deadline passed to the client.
    """

    location: str = "us"
    key_file: Optional[str] = None
    max_file_size_mb: float = 10.0
    allowed_mime_types: List[str] = field(
        default_factory=lambda: [
            "image/jpeg",
            "image/png",
            "image/gif",
            "image/bmp",
            "image/webp",
            "application/pdf",
        ]
    )
    default_mime_type: str = "image/jpeg"
    timeout_seconds: float = 60.0

    def __post_init__(self) -> None:
        if not self.location:
            raise ValueError("location cannot be empty")
        if self.max_file_size_mb <= 0:
            raise ValueError(
                f"max_file_size_mb must be positive, got {self.max_file_size_mb}"
            )
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )
        if not self.allowed_mime_types:
            raise ValueError("allowed_mime_types cannot be empty")

    @classmethod
    def from_config(cls, section: Dict[str, Any]) -> "RecognitionConfig":
        """Build from the ``recognition`` configuration section."""
        return cls(
            location=section.get("location") or "us",
            key_file=section.get("key_file") or None,
            max_file_size_mb=float(section.get("max_file_size_mb", 10)),
            allowed_mime_types=list(
                section.get("allowed_mime_types") or cls().allowed_mime_types
            ),
            default_mime_type=section.get("default_mime_type") or "image/jpeg",
            timeout_seconds=float(section.get("timeout_seconds", 60)),
        )

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)


def classify_error(error: Exception) -> RecognitionErrorKind:
    """
    Classify a client exception into a RecognitionErrorKind.

    The google-api-core exception type decides when it is specific;
    otherwise the status text in the message is inspected.
    """
    if isinstance(error, api_exceptions.NotFound):
        return RecognitionErrorKind.PROCESSOR_NOT_FOUND
    if isinstance(
        error,
        (
            api_exceptions.PermissionDenied,
            api_exceptions.Unauthenticated,
            auth_exceptions.DefaultCredentialsError,
        ),
    ):
        return RecognitionErrorKind.AUTHENTICATION
    if isinstance(error, (api_exceptions.DeadlineExceeded, TimeoutError)):
        return RecognitionErrorKind.TIMEOUT
    if isinstance(error, api_exceptions.ResourceExhausted):
        return RecognitionErrorKind.QUOTA_EXCEEDED

    message = str(error).upper()
    for markers, kind in STATUS_TEXT_KINDS:
        if any(marker in message for marker in markers):
            return kind

    return RecognitionErrorKind.TRANSPORT


def _status_code(error: Exception) -> Optional[int]:
    code = getattr(error, "code", None)
    return code if isinstance(code, int) else None


def entity_text(entity: Any, doc_text: str) -> str:
    """
    Return the text of a Document AI entity.

    Uses mention_text, then the normalized value, then the text anchor
    segments of the document text.
    """
    mention_text = getattr(entity, "mention_text", "") or ""
    if mention_text:
        return mention_text

    normalized_value = getattr(entity, "normalized_value", None)
    if normalized_value is not None:
        text = getattr(normalized_value, "text", "") or ""
        if text:
            return text

    text_anchor = getattr(entity, "text_anchor", None)
    if text_anchor is not None and doc_text:
        parts = []
        for segment in getattr(text_anchor, "text_segments", None) or []:
            try:
                start = int(getattr(segment, "start_index", 0) or 0)
                end = int(getattr(segment, "end_index", 0) or 0)
            except (TypeError, ValueError):
                continue
            if end > start:
                parts.append(doc_text[start:end])
        return "".join(parts).strip()

    return ""


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0
    return min(max(confidence, 0.0), 1.0)


def convert_entities(document: Any) -> List[Entity]:
    """
    Convert Document AI entities (and their nested properties) to Entities.

    Order follows the document: each entity is followed by its properties.
    """
    doc_text = getattr(document, "text", "") or ""
    entities: List[Entity] = []

    def visit(items: Any) -> None:
        for item in items or []:
            label = getattr(item, "type_", "") or ""
            entities.append(
                Entity(
                    label=label,
                    value=entity_text(item, doc_text),
                    confidence=_clamp_confidence(getattr(item, "confidence", 0.0)),
                )
            )
            visit(getattr(item, "properties", None))

    visit(getattr(document, "entities", None))
    return entities


class RecognitionAdapter:
    """
    Calls a Document AI processor for one image at a time.

    Thread-safe: the client is created lazily once and shared; each call
    works on its own request.

    Attributes:
        config: Recognition configuration.
        resolve_processor: Capability mapping (document type, side) to a
            fully-qualified processor name.
    """

    def __init__(
        self,
        config: RecognitionConfig,
        resolve_processor: ProcessorResolver,
        client: Optional[Any] = None,
    ) -> None:
        """
        Args:
            config: Recognition configuration.
            resolve_processor: Processor resolution capability.
            client: Optional pre-built Document AI client. When None, a
                DocumentProcessorServiceClient is created on first use.
        """
        self.config = config
        self.resolve_processor = resolve_processor
        self._client = client
        self._client_lock = threading.Lock()

    def process(
        self,
        image_bytes: bytes,
        document_type: DocumentType,
        side: DocumentSide,
        mime_type: Optional[str] = None,
        image_role: Optional[str] = None,
    ) -> RecognitionResult:
        """
        Recognize one image.

        Args:
            image_bytes: Raw image bytes.
            document_type: Document type photographed.
            side: Document side photographed.
            mime_type: MIME type; detected from the bytes when None.
            image_role: Optional role value for error reporting.

        Returns:
            RecognitionResult with full text, entities, elapsed time and
            processor name.

        Raises:
            RecognitionError: On invalid input, unresolvable processor, or
                any service failure.
        """
        mime_type = self._check_input(image_bytes, mime_type, image_role)

        try:
            processor_name = self.resolve_processor(document_type, side)
        except ConfigurationError as e:
            raise RecognitionError(
                f"No processor for {document_type.value} {side.value}: {e.message}",
                kind=RecognitionErrorKind.PROCESSOR_NOT_FOUND,
                image_role=image_role,
                original_error=e,
            ) from e

        request = {
            "name": processor_name,
            "raw_document": {"content": image_bytes, "mime_type": mime_type},
            "skip_human_review": True,
        }

        logger.info(
            f"Processing {document_type.value} {side.value} "
            f"({len(image_bytes)} bytes, {mime_type}) with {processor_name}"
        )
        start_time = time.time()

        try:
            client = self._get_client()
            response = client.process_document(
                request=request, timeout=self.config.timeout_seconds
            )
        except RecognitionError:
            raise
        except Exception as e:
            kind = classify_error(e)
            raise RecognitionError(
                f"Document AI call failed ({kind.value}): {e}",
                kind=kind,
                image_role=image_role,
                processor_id=processor_name,
                status_code=_status_code(e),
                original_error=e,
            ) from e

        processing_time = time.time() - start_time

        document = getattr(response, "document", None) if response else None
        if document is None:
            raise RecognitionError(
                "Empty response from Document AI",
                kind=RecognitionErrorKind.TRANSPORT,
                image_role=image_role,
                processor_id=processor_name,
            )

        text = getattr(document, "text", "") or ""
        entities = convert_entities(document)
        if not text and not entities:
            raise RecognitionError(
                "Document AI returned no text and no entities",
                kind=RecognitionErrorKind.TRANSPORT,
                image_role=image_role,
                processor_id=processor_name,
            )

        result = RecognitionResult(
            text=text,
            entities=tuple(entities),
            processing_time=processing_time,
            processor_id=processor_name,
        )
        logger.info(
            f"Recognition complete: {len(entities)} entities, "
            f"confidence {result.confidence:.2f}, {processing_time:.2f}s"
        )
        preview = truncate_text(normalize_whitespace(text), TEXT_PREVIEW_LENGTH)
        logger.debug(f"Recognized text: {preview!r}")
        return result

    def _check_input(
        self, image_bytes: bytes, mime_type: Optional[str], image_role: Optional[str]
    ) -> str:
        """Validate the upload and return the MIME type to send."""
        if not image_bytes:
            raise RecognitionError(
                "Image content is empty",
                kind=RecognitionErrorKind.INVALID_INPUT,
                image_role=image_role,
            )

        if len(image_bytes) > self.config.max_file_size_bytes:
            size_mb = len(image_bytes) / (1024 * 1024)
            raise RecognitionError(
                f"Image is {size_mb:.1f}MB, limit is "
                f"{self.config.max_file_size_mb:g}MB",
                kind=RecognitionErrorKind.INVALID_INPUT,
                image_role=image_role,
            )

        if mime_type is None:
            mime_type = detect_mime_type(image_bytes)
            if mime_type is None:
                logger.warning(
                    f"Could not detect MIME type, using "
                    f"{self.config.default_mime_type}"
                )
                mime_type = self.config.default_mime_type

        if mime_type not in self.config.allowed_mime_types:
            raise RecognitionError(
                f"Unsupported MIME type: {mime_type}",
                kind=RecognitionErrorKind.INVALID_INPUT,
                image_role=image_role,
            )

        dimensions = get_image_dimensions(image_bytes)
        if dimensions:
            logger.debug(f"Image dimensions: {dimensions[0]}x{dimensions[1]}")

        return mime_type

    def _get_client(self) -> Any:
        """Return the Document AI client, creating it on first use."""
        if self._client is not None:
            return self._client

        with self._client_lock:
            if self._client is None:
                self._client = self._create_client()
        return self._client

    def _create_client(self) -> Any:
        from google.cloud import documentai

        client_options = {
            "api_endpoint": f"{self.config.location}-documentai.googleapis.com"
        }
        if self.config.key_file:
            client = documentai.DocumentProcessorServiceClient.from_service_account_file(
                self.config.key_file, client_options=client_options
            )
        else:
            client = documentai.DocumentProcessorServiceClient(
                client_options=client_options
            )
        logger.info(
            f"Document AI client initialized (location: {self.config.location})"
        )
        return client
