"""
Example snippets used to prefill the interpreter input.

The snippets are read-only reference data. They double as the source
of document type hints: input that matches a snippet takes its type,
anything else is classified by keyword.
"""

import re
from typing import Optional, Tuple

from app.models.schemas import DocumentType, ExampleSnippet


EXAMPLE_SNIPPETS: Tuple[ExampleSnippet, ...] = (
    ExampleSnippet(
        id="prescription",
        title="Prescription",
        text=(
            "Metformin 500mg - Take 1 tablet twice daily with meals for Type 2 "
            "diabetes management. Continue for 3 months then review. Avoid "
            "alcohol consumption."
        ),
        type=DocumentType.PRESCRIPTION,
    ),
    ExampleSnippet(
        id="lab_result",
        title="Lab Result",
        text=(
            "Complete Blood Count: WBC: 12,500/μL (High - Normal: 4,000-11,000), "
            "RBC: 4.2 million/μL (Normal), Hemoglobin: 10.5 g/dL (Low - Normal: "
            "12-16), Platelets: 180,000/μL (Normal)"
        ),
        type=DocumentType.LAB_RESULT,
    ),
    ExampleSnippet(
        id="scan_summary",
        title="Scan Summary",
        text=(
            "Abdominal Ultrasound: Liver appears normal in size and echogenicity. "
            "Gallbladder shows multiple small echogenic foci consistent with "
            "gallstones. No evidence of acute cholecystitis."
        ),
        type=DocumentType.SCAN_SUMMARY,
    ),
)

# First match wins; scan cues are checked before lab cues so that
# "ultrasound ... normal in size" is not read as a lab value.
DOCUMENT_TYPE_KEYWORDS = [
    ("ultrasound", DocumentType.SCAN_SUMMARY),
    ("x-ray", DocumentType.SCAN_SUMMARY),
    ("xray", DocumentType.SCAN_SUMMARY),
    ("ct scan", DocumentType.SCAN_SUMMARY),
    ("mri", DocumentType.SCAN_SUMMARY),
    ("radiograph", DocumentType.SCAN_SUMMARY),
    ("impression", DocumentType.SCAN_SUMMARY),
    ("blood count", DocumentType.LAB_RESULT),
    ("hemoglobin", DocumentType.LAB_RESULT),
    ("wbc", DocumentType.LAB_RESULT),
    ("glucose", DocumentType.LAB_RESULT),
    ("cholesterol", DocumentType.LAB_RESULT),
    ("reference range", DocumentType.LAB_RESULT),
    ("mg/dl", DocumentType.LAB_RESULT),
    ("tablet", DocumentType.PRESCRIPTION),
    ("capsule", DocumentType.PRESCRIPTION),
    ("daily", DocumentType.PRESCRIPTION),
    ("dose", DocumentType.PRESCRIPTION),
    ("mg", DocumentType.PRESCRIPTION),
]

# Keywords match as whole words (plural "s" allowed). Digits may touch a
# keyword so "500mg" still reads as a dose.
_KEYWORD_PATTERNS = [
    (re.compile(r"(?<![a-z])" + re.escape(keyword) + r"s?(?![a-z])"), document_type)
    for keyword, document_type in DOCUMENT_TYPE_KEYWORDS
]


def get_example(snippet_id: str) -> Optional[ExampleSnippet]:
    """Get an example snippet by ID."""
    for snippet in EXAMPLE_SNIPPETS:
        if snippet.id == snippet_id:
            return snippet
    return None


def detect_document_type(text: str) -> Optional[DocumentType]:
    """
    Guess the document type of already-trimmed text.

    Returns None when nothing in the text hints at a type.
    """
    for snippet in EXAMPLE_SNIPPETS:
        if snippet.text == text:
            return snippet.type

    text_lower = text.lower()
    for pattern, document_type in _KEYWORD_PATTERNS:
        if pattern.search(text_lower):
            return document_type

    return None
