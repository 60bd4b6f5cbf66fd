"""
Input normalization for InfoRx Interpreter.

Structural validation only: trims the raw text, enforces the length
bound and resolves language and document type hints. No translation
and no medical parsing happen here.
"""

from dataclasses import dataclass
from typing import Optional, Union

from app.config import settings
from app.core.examples import detect_document_type
from app.core.exceptions import InputError, InputErrorCause
from app.models.schemas import DocumentType, Language


@dataclass(frozen=True)
class NormalizedText:
    """Trimmed, length-checked input ready for interpretation."""

    text: str
    document_type: Optional[DocumentType] = None

    def __str__(self) -> str:
        return self.text

    def __len__(self) -> int:
        return len(self.text)


def normalize(raw_text: str, max_length: Optional[int] = None) -> NormalizedText:
    """
    Validate and trim raw medical text.

    Args:
        raw_text: Text as typed or pasted by the user
        max_length: Override for settings.max_input_length

    Returns:
        NormalizedText with surrounding whitespace removed

    Raises:
        InputError: EMPTY_INPUT or INPUT_TOO_LONG
    """
    limit = max_length if max_length is not None else settings.max_input_length
    text = (raw_text or "").strip()

    if not text:
        raise InputError(InputErrorCause.EMPTY_INPUT)

    if len(text) > limit:
        raise InputError(
            InputErrorCause.INPUT_TOO_LONG,
            f"input is {len(text)} characters, limit is {limit}",
            max_length=limit
        )

    return NormalizedText(text=text, document_type=detect_document_type(text))


def resolve_language(value: Union[str, Language]) -> Language:
    """
    Map a language value or display name onto Language.

    Accepts "english", "pidgin" and the display names ("English",
    "Nigerian Pidgin") in any casing.
    """
    if isinstance(value, Language):
        return value
    try:
        return Language(value)
    except ValueError:
        raise InputError(
            InputErrorCause.UNSUPPORTED_LANGUAGE,
            f"unsupported language: {value!r}"
        ) from None
