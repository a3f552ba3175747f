"""Service layer helpers (annotation, protected terms, settings)."""

from .annotation import AnnotationRequest, AnnotationResult, AnnotationService, parse_annotation
from .settings import Settings, SettingsStore
from .terms import ProtectedTerms, load_protected_terms

__all__ = [
    "AnnotationRequest",
    "AnnotationResult",
    "AnnotationService",
    "ProtectedTerms",
    "Settings",
    "SettingsStore",
    "load_protected_terms",
    "parse_annotation",
]
