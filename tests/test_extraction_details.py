from docintel.models.document import ExtractionMethod
from docintel.utils.extraction_details import build_extraction_details, detect_language


def test_detect_language_by_script():
    assert detect_language("这是一个测试文档") == "zh"
    assert detect_language("यह एक परीक्षण है") == "hi"
    assert detect_language("Это тестовый документ") == "ru"


def test_detect_language_accented_latin():
    assert detect_language("Le café était très élégant à côté du théâtre où nous étions") == "fr"


def test_detect_language_defaults_to_english():
    assert detect_language("Plain English text without accents.") == "en"
    assert detect_language("") == "en"


def test_build_details_counts_and_overrides():
    details = build_extraction_details(
        "one two three",
        ExtractionMethod.PDF,
        {"page_count": 2, "warnings": ["Page 2 appears to be empty or image-based."], "duration_ms": 12.5},
    )
    assert details.method == ExtractionMethod.PDF
    assert details.word_count == 3
    assert details.character_count == len("one two three")
    assert details.page_count == 2
    assert details.warnings == ["Page 2 appears to be empty or image-based."]
    assert details.duration_ms == 12.5
    assert details.language == "en"


def test_build_details_unknown_method_and_custom_detector():
    details = build_extraction_details("texte", "carrier-pigeon", detector=lambda text: "xx")
    assert details.method == ExtractionMethod.UNKNOWN
    assert details.language == "xx"


def test_build_details_language_override_wins():
    details = build_extraction_details("hello", "txt", {"language": "de"})
    assert details.method == ExtractionMethod.TXT
    assert details.language == "de"
