"""
Extraction detail builder.

Produces the uniform ExtractionDetails record regardless of which extractor
ran, including best-effort language detection.
"""
import re
from typing import Callable, Dict, Any, Optional, Union

from ..core.config import LANGUAGE_SAMPLE_CHARS
from ..models.document import ExtractionDetails, ExtractionMethod
from .text_processing import count_words

# A detector maps text to a language code and always returns a value
LanguageDetector = Callable[[str], str]

_HAN = re.compile(r"[\u4e00-\u9fff]")
_DEVANAGARI = re.compile(r"[\u0900-\u097f]")
_CYRILLIC = re.compile(r"[\u0400-\u04ff]")
_ACCENTED = re.compile(r"[àâäçéèêëîïôöùûüÿœæ]", re.IGNORECASE)

DEFAULT_LANGUAGE = "en"
ACCENTED_LANGUAGE = "fr"
ACCENT_THRESHOLD = 5


def detect_language(text: str) -> str:
    """
    Heuristic script-based language detection.

    Only the first few hundred characters are sampled. Script ranges take
    priority (Han, Devanagari, Cyrillic); otherwise a count of accented Latin
    characters separates French from the English default. This is a best
    guess and never returns "unknown".
    """
    sample = (text or "")[:LANGUAGE_SAMPLE_CHARS]
    if _HAN.search(sample):
        return "zh"
    if _DEVANAGARI.search(sample):
        return "hi"
    if _CYRILLIC.search(sample):
        return "ru"
    if len(_ACCENTED.findall(sample)) > ACCENT_THRESHOLD:
        return ACCENTED_LANGUAGE
    return DEFAULT_LANGUAGE


def build_extraction_details(
    text: str,
    method: Union[ExtractionMethod, str],
    overrides: Optional[Dict[str, Any]] = None,
    detector: LanguageDetector = detect_language
) -> ExtractionDetails:
    """
    Build extraction metadata for a document.

    Args:
        text: Text the counts are computed over (not re-normalized)
        method: Extraction method that produced the text
        overrides: Optional page_count, warnings, ocr_model, duration_ms, language
        detector: Language detection strategy

    Returns:
        ExtractionDetails record
    """
    overrides = overrides or {}
    text = text or ""
    try:
        method = ExtractionMethod(method)
    except ValueError:
        method = ExtractionMethod.UNKNOWN

    return ExtractionDetails(
        method=method,
        word_count=count_words(text),
        character_count=len(text),
        page_count=overrides.get("page_count"),
        language=overrides.get("language") or detector(text),
        ocr_model=overrides.get("ocr_model"),
        warnings=list(overrides.get("warnings") or []),
        duration_ms=float(overrides.get("duration_ms") or 0.0),
    )
