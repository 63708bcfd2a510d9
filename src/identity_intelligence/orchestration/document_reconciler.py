"""
Document Reconciler Module

Runs one extraction pipeline per uploaded identity image (recognition,
entity mapping, normalization, text-pattern backfill) concurrently, then
merges the per-image field sets into a single ReconciledRecord in fixed role
priority: ID front, ID back, license front, license back. The first image in
that order that has a field set wins, whatever order the pipelines finished
in.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..models.data_structures import (
    ROLE_PRIORITY,
    SEMANTIC_FIELDS,
    DocumentType,
    ImageOutcome,
    ImageRole,
    ImageUpload,
    ReconciledRecord,
)
from ..processing.entity_mapper import EntityMapper
from ..processing.field_normalizer import FieldNormalizer
from ..processing.field_validator import FieldValidator
from ..processing.label_tables import default_tables, load_mapping_file
from ..processing.recognition_adapter import RecognitionAdapter, RecognitionConfig
from ..processing.text_pattern_extractor import (
    DefaultValuePolicy,
    TextPatternExtractor,
)
from ..utils.config_loader import ProcessorRegistry, SystemConfig
from ..utils.error_handlers import (
    ConfigurationError,
    IdentityProcessingError,
    ReconciliationFailure,
    ValidationError,
    log_error_with_context,
)
from ..utils.text_utils import detect_document_type

logger = logging.getLogger(__name__)

ImageInput = Union[bytes, bytearray, ImageUpload]

DOCUMENT_TYPE_LABELS = {
    DocumentType.ID: "National ID",
    DocumentType.LICENSE: "Driving License",
}

DEFAULT_SOURCE = "default"


@dataclass
class ReconcilerConfig:
    """Configuration for reconciliation.

    Attributes:
        max_workers: Concurrent image pipelines (1-4).
        validate_fields: Whether to attach a validation report.
    """

    max_workers: int = 4
    validate_fields: bool = True

    def __post_init__(self) -> None:
        if not 1 <= self.max_workers <= len(ROLE_PRIORITY):
            raise ValueError(
                f"max_workers must be between 1 and {len(ROLE_PRIORITY)}, "
                f"got {self.max_workers}"
            )


def combined_document_label(document_types: List[DocumentType]) -> str:
    """Return "National ID", "Driving License" or both joined with " + "."""
    return " + ".join(
        DOCUMENT_TYPE_LABELS[t] for t in DocumentType if t in document_types
    )


class DocumentReconciler:
    """Merges identity fields extracted from up to four document images.

    Attributes:
        adapter: Recognition adapter used for every image.
        mapper: Entity mapper.
        normalizer: Field normalizer.
        extractor: Text-pattern extractor.
        default_policy: Defaults applied after merge.
        validator: Field validator (used when config.validate_fields).
        config: Reconciler configuration.
    """

    def __init__(
        self,
        adapter: RecognitionAdapter,
        mapper: Optional[EntityMapper] = None,
        normalizer: Optional[FieldNormalizer] = None,
        extractor: Optional[TextPatternExtractor] = None,
        default_policy: Optional[DefaultValuePolicy] = None,
        validator: Optional[FieldValidator] = None,
        config: Optional[ReconcilerConfig] = None,
    ) -> None:
        """Initialize the reconciler with dependency injection.

        Args:
            adapter: Recognition adapter instance.
            mapper: Optional entity mapper (created if None).
            normalizer: Optional field normalizer.
            extractor: Optional text-pattern extractor; shares the normalizer.
            default_policy: Optional default-value policy.
            validator: Optional field validator.
            config: Optional reconciler configuration.
        """
        self.adapter = adapter
        self.mapper = mapper or EntityMapper()
        self.normalizer = normalizer or FieldNormalizer()
        self.extractor = extractor or TextPatternExtractor(normalizer=self.normalizer)
        self.default_policy = default_policy or DefaultValuePolicy()
        self.validator = validator or FieldValidator()
        self.config = config or ReconcilerConfig()

        logger.info(
            f"DocumentReconciler initialized (max_workers={self.config.max_workers}, "
            f"defaults={'on' if self.default_policy.enabled else 'off'})"
        )

    @classmethod
    def from_config(
        cls, config: SystemConfig, client: Optional[Any] = None
    ) -> "DocumentReconciler":
        """Build a reconciler and its components from system configuration.

        Args:
            config: Loaded system configuration.
            client: Optional Document AI client (created lazily if None).

        Raises:
            ConfigurationError: If a section holds invalid values.
        """
        try:
            recognition_config = RecognitionConfig.from_config(config.recognition)
            default_policy = DefaultValuePolicy.from_config(config.defaults)
            reconciler_config = ReconcilerConfig(
                max_workers=int(config.reconciliation.get("max_workers", 4)),
                validate_fields=bool(
                    config.reconciliation.get("validate_fields", True)
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid configuration: {e}", original_error=e
            ) from e

        mapping_file = config.entity_mapping.get("mapping_file")
        tables = load_mapping_file(mapping_file) if mapping_file else default_tables()

        registry = ProcessorRegistry.from_config(config)
        adapter = RecognitionAdapter(recognition_config, registry.resolve, client)

        return cls(
            adapter=adapter,
            mapper=EntityMapper(tables),
            default_policy=default_policy,
            config=reconciler_config,
        )

    def reconcile(
        self, images: Mapping[Union[ImageRole, str], ImageInput]
    ) -> Tuple[ReconciledRecord, List[ImageOutcome]]:
        """Extract and merge fields from 1-4 role-tagged images.

        Args:
            images: Mapping of image role (or role string such as
                "id_front") to image bytes or ImageUpload.

        Returns:
            Tuple of the merged record and one outcome per supplied image,
            in role priority order.

        Raises:
            ValidationError: If no image is supplied, a role is unknown or
                an image value has the wrong type.
            ReconciliationFailure: If every supplied image failed.
        """
        uploads = self._coerce_images(images)
        start_time = time.time()

        logger.info(
            f"Reconciling {len(uploads)} image(s): "
            f"{[role.value for role in uploads]}"
        )

        outcomes_by_role: Dict[ImageRole, ImageOutcome] = {}
        max_workers = min(self.config.max_workers, len(uploads))

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_role = {
                executor.submit(self._process_image_safe, role, upload): role
                for role, upload in uploads.items()
            }
            for future in as_completed(future_to_role):
                role = future_to_role[future]
                outcomes_by_role[role] = future.result()

        outcomes = [outcomes_by_role[r] for r in ROLE_PRIORITY if r in outcomes_by_role]
        successes = [o for o in outcomes if o.success]

        if not successes:
            failures = {o.role.value: o.error_message or "unknown error" for o in outcomes}
            errors = {o.role.value: o.error or {} for o in outcomes}
            logger.error(f"Reconciliation failed: all {len(outcomes)} image(s) failed")
            raise ReconciliationFailure(failures, errors)

        record = self._build_record(uploads, outcomes)

        logger.info(
            f"Reconciliation complete: {len(successes)}/{len(outcomes)} image(s), "
            f"{len(record.fields)} field(s), {time.time() - start_time:.2f}s"
        )
        return record, outcomes

    def process_image(self, role: ImageRole, upload: ImageUpload) -> ImageOutcome:
        """Run the extraction pipeline for one image.

        Raises:
            IdentityProcessingError: If recognition fails.
        """
        start_time = time.time()
        document_type, side = role.document_type, role.side

        result = self.adapter.process(
            upload.content,
            document_type,
            side,
            mime_type=upload.mime_type,
            image_role=role.value,
        )

        fields = self.mapper.map(result, document_type, side)
        self.normalizer.normalize(fields)
        self.extractor.extract(fields, result.text)

        warnings: List[str] = []
        detected = detect_document_type(result.text)
        if detected is not None and detected != (document_type, side):
            message = (
                f"Text looks like {detected[0].value} {detected[1].value}, "
                f"uploaded as {role.value}"
            )
            warnings.append(message)
            logger.warning(f"{role.value}: {message}")

        logger.debug(
            f"{role.value}: {len(fields.present_fields())} field(s) extracted"
        )
        return ImageOutcome(
            role=role,
            success=True,
            fields=fields,
            processing_time=time.time() - start_time,
            warnings=warnings,
        )

    def _process_image_safe(self, role: ImageRole, upload: ImageUpload) -> ImageOutcome:
        """Run process_image, turning any failure into a failed outcome."""
        start_time = time.time()
        try:
            return self.process_image(role, upload)
        except IdentityProcessingError as e:
            error = e
        except Exception as e:
            error = IdentityProcessingError(
                f"Unexpected pipeline error: {e}",
                image_role=role.value,
                stage="pipeline",
                original_error=e,
            )

        log_error_with_context(
            error, logger, {"image_role": role.value, "stage": error.stage}
        )
        logger.warning(f"{role.value} failed: {error.message}")
        return ImageOutcome(
            role=role,
            success=False,
            error=error.to_dict(),
            processing_time=time.time() - start_time,
        )

    def _build_record(
        self, uploads: Dict[ImageRole, ImageUpload], outcomes: List[ImageOutcome]
    ) -> ReconciledRecord:
        merged: Dict[str, str] = {}
        sources: Dict[str, str] = {}
        scores: Dict[str, float] = {}
        field_confidences: Dict[str, float] = {}
        national_markers = False

        # outcomes are already in role priority order
        for outcome in outcomes:
            if not outcome.success or outcome.fields is None:
                continue
            fields = outcome.fields
            national_markers = national_markers or fields.has_national_markers
            for label, confidence in fields.field_confidences.items():
                field_confidences.setdefault(label, confidence)
            for name, value in fields.present_fields().items():
                if name in merged:
                    continue
                merged[name] = value
                sources[name] = outcome.role.value
                if name in fields.field_scores:
                    scores[name] = fields.field_scores[name]

        defaulted = self.default_policy.apply(merged, national_markers)
        for name in defaulted:
            sources[name] = DEFAULT_SOURCE

        document_types = sorted(
            {role.document_type for role in uploads}, key=lambda t: t.value
        )
        successes = [o for o in outcomes if o.success and o.fields is not None]
        confidence = sum(o.fields.confidence for o in successes) / len(successes)

        report = None
        if self.config.validate_fields:
            report = self.validator.validate(
                merged, document_types, scores, defaulted_fields=defaulted
            )

        ordered = {name: merged[name] for name in SEMANTIC_FIELDS if name in merged}
        return ReconciledRecord(
            fields=ordered,
            field_sources={name: sources[name] for name in ordered},
            source_files={
                role.value: uploads[role].filename if role in uploads else None
                for role in ROLE_PRIORITY
            },
            document_type_label=combined_document_label(document_types),
            confidence=confidence,
            field_confidences=field_confidences,
            defaulted_fields=tuple(defaulted),
            validation_report=report,
        )

    @staticmethod
    def _coerce_images(
        images: Mapping[Union[ImageRole, str], ImageInput]
    ) -> Dict[ImageRole, ImageUpload]:
        if not images:
            raise ValidationError("At least one image is required", field_name="images")

        uploads: Dict[ImageRole, ImageUpload] = {}
        for key, value in images.items():
            try:
                role = ImageRole.from_value(key)
            except ValueError as e:
                raise ValidationError(
                    str(e), field_name="images", original_error=e
                ) from e

            if role in uploads:
                raise ValidationError(
                    f"Image role supplied twice: {role.value}", field_name="images"
                )

            if isinstance(value, ImageUpload):
                uploads[role] = value
            elif isinstance(value, (bytes, bytearray)):
                uploads[role] = ImageUpload(content=bytes(value))
            else:
                raise ValidationError(
                    f"Image for {role.value} must be bytes or ImageUpload, "
                    f"got {type(value).__name__}",
                    field_name=role.value,
                )
        return uploads
