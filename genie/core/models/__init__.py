"""
Domain models — pydantic types for genie.

All models are re-exported here for convenient access:

    from genie.core.models import GenerationOutcome, GenieConfig, GenieContext
"""

from genie.core.models.config import FormatterSettings, GenieConfig, ReferenceConvention
from genie.core.models.outcome import CascadeFinding, GenerationOutcome, OutcomeStatus
from genie.core.models.template import (
    TEMPLATE_SUFFIX,
    GenieContext,
    is_template_file,
    target_path_for,
)
from genie.core.models.validation import ReferenceWarning, ValidationIssue

__all__ = [
    # outcome.py
    "CascadeFinding",
    # config.py
    "FormatterSettings",
    "GenerationOutcome",
    "GenieConfig",
    # template.py
    "GenieContext",
    "OutcomeStatus",
    "ReferenceConvention",
    # validation.py
    "ReferenceWarning",
    "TEMPLATE_SUFFIX",
    "ValidationIssue",
    "is_template_file",
    "target_path_for",
]
