"""
Analysis request and result types.

Results are plain value objects. Every field is always a string, and every
failure path is expressed as a fully populated result whose ``error``
attribute is set, so rendering never has to deal with missing data.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..config import AnalysisMode
from ..services.images import ImageContent


@dataclass
class AnalysisRequest:
    """One outbound unit of work for the provider gateway."""

    images: List[ImageContent]
    prompt: str
    previous_context: Optional[str] = None

    def __post_init__(self):
        if not self.images:
            raise ValueError("AnalysisRequest requires at least one image")


@dataclass
class CodeAnalysisResult:
    code: str
    summary: str
    time_complexity: str
    space_complexity: str
    language: str
    # Set on failure paths; not part of the serialized result
    error: Optional[str] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, str]:
        return {
            "code": self.code,
            "summary": self.summary,
            "timeComplexity": self.time_complexity,
            "spaceComplexity": self.space_complexity,
            "language": self.language,
        }

    def serialize(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class GeneralAnalysisResult:
    answer: str
    explanation: str
    test: str
    error: Optional[str] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, str]:
        return {
            "answer": self.answer,
            "explanation": self.explanation,
            "test": self.test,
        }

    def serialize(self) -> str:
        return json.dumps(self.to_dict())


AnalysisResult = Union[CodeAnalysisResult, GeneralAnalysisResult]


# ---------------------------------------------------------------------------
# Failure placeholders
# ---------------------------------------------------------------------------


class FailureKind:
    NO_IMAGES = "no_images"
    PROCESSING = "processing"
    SERVICE = "service"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


_CODE_FAILURES = {
    FailureKind.NO_IMAGES: (
        "No images provided for analysis",
        "Please capture screenshots to analyze",
        "N/A",
        "N/A",
        "N/A",
    ),
    FailureKind.PROCESSING: (
        "Failed to read image files",
        "Please make sure the image files are valid and accessible",
        "N/A",
        "N/A",
        "N/A",
    ),
    FailureKind.SERVICE: (
        "AI service unavailable",
        "The AI analysis service is currently unavailable. Please check your API key and try again.",
        "Analysis unavailable",
        "Analysis unavailable",
        "Unknown",
    ),
    FailureKind.TIMEOUT: (
        "Analysis in progress or timed out",
        "The analysis is taking longer than expected or encountered an error",
        "Unknown",
        "Unknown",
        "Unknown",
    ),
    FailureKind.UNEXPECTED: (
        "Analysis failed",
        "Please try again",
        "Unknown",
        "Unknown",
        "Unknown",
    ),
}

_GENERAL_FAILURES = {
    FailureKind.NO_IMAGES: (
        "No images provided",
        "Capture at least one screenshot to analyze",
        "No test available",
    ),
    FailureKind.PROCESSING: (
        "Failed to process images",
        "Verify screenshot files and try again",
        "No test available",
    ),
    FailureKind.SERVICE: (
        "AI service unavailable",
        "Please check your API key and provider availability",
        "No test available",
    ),
    FailureKind.TIMEOUT: (
        "Analysis failed or timed out",
        "Unable to complete analysis",
        "No test generated",
    ),
    FailureKind.UNEXPECTED: (
        "Analysis failed",
        "Please try again",
        "No test available",
    ),
}


def failure_result(mode: str, kind: str, error: str) -> AnalysisResult:
    """Build the placeholder result for a failure of *kind* in *mode*."""
    if mode == AnalysisMode.GENERAL:
        answer, explanation, test = _GENERAL_FAILURES[kind]
        return GeneralAnalysisResult(answer, explanation, test, error=error or answer)

    code, summary, time_c, space_c, language = _CODE_FAILURES[kind]
    return CodeAnalysisResult(code, summary, time_c, space_c, language, error=error or code)
