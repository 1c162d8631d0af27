"""Advisory field triage: collaborator clients, response validation and local fallback."""

from .client import HttpTriageClient, OpenAITriageClient, TriageClient, build_triage_client
from .fallback import classify_locally
from .models import ClassificationResult, TriageField, TriageRequest, TriageResponse
from .service import TriageOutcome, parse_classifications, triage_fields

__all__ = [
    "ClassificationResult",
    "HttpTriageClient",
    "OpenAITriageClient",
    "TriageClient",
    "TriageField",
    "TriageOutcome",
    "TriageRequest",
    "TriageResponse",
    "build_triage_client",
    "classify_locally",
    "parse_classifications",
    "triage_fields",
]
