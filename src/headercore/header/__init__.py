"""
Header lifecycle: parse, fingerprint, evaluate, merge and generate.

Public API::

    from headercore.header import (
        HeaderParser,
        HeaderGenerator,
        HeaderSerializer,
        StalenessEvaluator,
        default_registry,
    )
"""

from headercore.header.checksum import body_checksum, checksum_matches
from headercore.header.fingerprint import (
    CodeFingerprintExtractor,
    DocumentFingerprintExtractor,
    ExtractorRegistry,
    Fingerprint,
    FingerprintExtractor,
    HardwareJobFingerprintExtractor,
    InterfacePoint,
    default_registry,
)
from headercore.header.generator import (
    GenerationResult,
    GenerationSummary,
    HeaderGenerator,
    utc_now,
)
from headercore.header.merge import (
    DEFAULT_MERGE_POLICY,
    FieldMergeRule,
    apply_merge_policy,
    check_preservation,
    validate_merge_policy,
)
from headercore.header.parser import (
    DEFAULT_WINDOW_LINES,
    MAX_WINDOW_LINES,
    MIN_WINDOW_LINES,
    ArtifactParts,
    HeaderParser,
    split_artifact,
)
from headercore.header.schema import ActionItem, HeaderRecord, ParseResult
from headercore.header.serializer import HeaderSerializer, SerializationError, assemble_artifact
from headercore.header.staleness import Evaluation, StalenessEvaluator

__all__ = [
    # Schema
    "ActionItem",
    "HeaderRecord",
    "ParseResult",
    # Parsing
    "ArtifactParts",
    "DEFAULT_WINDOW_LINES",
    "HeaderParser",
    "MAX_WINDOW_LINES",
    "MIN_WINDOW_LINES",
    "split_artifact",
    # Fingerprints
    "CodeFingerprintExtractor",
    "DocumentFingerprintExtractor",
    "ExtractorRegistry",
    "Fingerprint",
    "FingerprintExtractor",
    "HardwareJobFingerprintExtractor",
    "InterfacePoint",
    "default_registry",
    # Staleness
    "Evaluation",
    "StalenessEvaluator",
    # Generation
    "DEFAULT_MERGE_POLICY",
    "FieldMergeRule",
    "GenerationResult",
    "GenerationSummary",
    "HeaderGenerator",
    "HeaderSerializer",
    "SerializationError",
    "apply_merge_policy",
    "assemble_artifact",
    "body_checksum",
    "check_preservation",
    "checksum_matches",
    "utc_now",
    "validate_merge_policy",
]
