"""Claimfill: semantic classification and autofill of claim web forms."""

from .autofill import AutofillEngine, SweepContext

from .browser import (
	PageSnapshot,
	PageWriter,
	PlaywrightPageWriter,
	SoupPageWriter,
	open_page,
	snapshot_page,
)

from .config import Settings, get_settings
from .errors import ClaimfillError, CommitRejectedError, FillError, TriageError, ValidationFailedError

from .forms import (
	FieldCategory,
	FieldDescriptor,
	FillRecord,
	MatchResult,
	SchemaRegistry,
	SweepResult,
	Tier,
	TieredMatcher,
	default_registry,
	extract_field_descriptors,
	parse_html,
)

from .triage import HttpTriageClient, OpenAITriageClient, TriageClient
from .values import KnownValues

__all__ = [
	"AutofillEngine",
	"SweepContext",
	# Browser adapters
	"PageSnapshot",
	"PageWriter",
	"PlaywrightPageWriter",
	"SoupPageWriter",
	"open_page",
	"snapshot_page",
	# Configuration and errors
	"Settings",
	"get_settings",
	"ClaimfillError",
	"CommitRejectedError",
	"FillError",
	"TriageError",
	"ValidationFailedError",
	# Classification
	"FieldCategory",
	"FieldDescriptor",
	"FillRecord",
	"MatchResult",
	"SchemaRegistry",
	"SweepResult",
	"Tier",
	"TieredMatcher",
	"default_registry",
	"extract_field_descriptors",
	"parse_html",
	# Triage
	"HttpTriageClient",
	"OpenAITriageClient",
	"TriageClient",
	# Known values
	"KnownValues",
]
