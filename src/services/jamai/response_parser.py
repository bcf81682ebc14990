"""
Response Parser

Decodes aggregated generation text into the verdict shapes the review checks
act on.
"""

from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from src.exceptions.review_exceptions import ResponseDecodeException
from src.models.schemas.verdicts import (
    ChangelogSuggestion,
    IssueCreationVerdict,
    SecretLeakVerdict,
)

VerdictT = TypeVar("VerdictT", bound=BaseModel)


def _decode(model: Type[VerdictT], shape: str, content: str) -> VerdictT:
    try:
        return model.model_validate_json(content)
    except ValidationError as e:
        reason = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ResponseDecodeException(shape=shape, raw_text=content, reason=reason) from e


def parse_secret_leak(content: str) -> SecretLeakVerdict:
    """
    Decode `{"leak": bool, "commit": str?, "response": str}`.

    Raises:
        ResponseDecodeException: On invalid JSON, missing fields or type mismatches
    """
    return _decode(SecretLeakVerdict, "secret leak", content)


def parse_issue_creation(content: str) -> IssueCreationVerdict:
    """Decode `{"title": str, "body": str, "labels": [str]?}`."""
    return _decode(IssueCreationVerdict, "issue creation", content)


def parse_changelog_suggestion(content: str) -> ChangelogSuggestion:
    # Changelog suggestions are free text; there is nothing to validate.
    return ChangelogSuggestion(text=content)
