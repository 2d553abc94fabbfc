from docintel.utils.text_processing import (
    ELLIPSIS,
    PREVIEW_PLACEHOLDER,
    chunk_text,
    count_words,
    create_preview,
    normalize_whitespace,
    prepare_text_payload,
)


def test_normalize_whitespace_canonicalizes_breaks_and_spaces():
    raw = "  Line one\r\nLine\ttwo  here\r\n\r\n\r\n\r\nLine   three  "
    assert normalize_whitespace(raw) == "Line one\nLine two here\n\nLine three"


def test_normalize_whitespace_is_idempotent():
    raw = "A\r\n\r\n\r\nB\t\tC\f D"
    once = normalize_whitespace(raw)
    assert normalize_whitespace(once) == once


def test_normalize_whitespace_handles_empty_input():
    assert normalize_whitespace("") == ""
    assert normalize_whitespace(None) == ""


def test_preview_short_text_is_returned_unchanged():
    assert create_preview("Short text.", limit=50) == "Short text."


def test_preview_truncates_on_word_boundary():
    preview = create_preview("alpha beta gamma delta", limit=12)
    assert preview == f"alpha beta{ELLIPSIS}"


def test_preview_without_whitespace_cuts_hard():
    assert create_preview("x" * 30, limit=10) == "x" * 10 + ELLIPSIS


def test_preview_placeholder_for_blank_text():
    assert create_preview("   ") == PREVIEW_PLACEHOLDER


def test_chunks_respect_target_length():
    sentence = "This sentence has exactly some words in it."
    text = " ".join([sentence] * 20)
    chunks = chunk_text(text, target_length=100)
    assert len(chunks) > 1
    assert all(len(chunk) <= 100 for chunk in chunks)
    assert " ".join(chunks) == normalize_whitespace(text)


def test_oversized_sentence_becomes_its_own_chunk():
    long_sentence = "word " * 60 + "end."
    text = f"Short one. {long_sentence} Short two."
    chunks = chunk_text(text, target_length=50)
    assert chunks[0] == "Short one."
    assert chunks[1] == normalize_whitespace(long_sentence)
    assert chunks[-1] == "Short two."


def test_chunk_text_empty():
    assert chunk_text("") == []


def test_count_words():
    assert count_words("one two  three\nfour") == 4
    assert count_words("") == 0


def test_prepare_text_payload_derives_everything_from_cleaned_text():
    payload = prepare_text_payload("Hello   world.\r\n\r\n\r\nSecond paragraph here.")
    assert payload.cleaned_text == "Hello world.\n\nSecond paragraph here."
    assert payload.preview == payload.cleaned_text
    assert payload.chunks == [payload.cleaned_text]
    assert payload.word_count == 5
