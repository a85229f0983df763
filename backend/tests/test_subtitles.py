"""Script chunking and SRT formatting."""

from shortfactory.services.subtitles import (
    MAX_CUE_WORDS,
    build_cues,
    format_srt,
    smart_chunk_script,
)


def _words(n: int, end: str = "") -> str:
    return " ".join(f"w{i}" for i in range(n)) + end


def test_short_script_is_one_chunk():
    chunks = smart_chunk_script("Hello there. General greeting.")
    assert len(chunks) == 1
    assert chunks[0].word_count == 4
    assert chunks[0].duration_estimate == 1.6


def test_chunk_closes_on_sentence_end_inside_range():
    # 25 words reach 10s, inside the 9-18s window
    script = _words(25, ".") + " " + _words(10, ".")
    chunks = smart_chunk_script(script)
    assert [c.word_count for c in chunks] == [25, 10]
    assert chunks[0].text.endswith(".")
    assert [c.id for c in chunks] == [1, 2]


def test_sentence_end_before_minimum_does_not_close_chunk():
    script = "Short one. " + _words(30)
    chunks = smart_chunk_script(script)
    assert len(chunks) == 1
    assert chunks[0].word_count == 32


def test_chunk_is_cut_at_maximum_without_punctuation():
    # 45 words is 18 seconds
    chunks = smart_chunk_script(_words(50))
    assert [c.word_count for c in chunks] == [45, 5]
    assert chunks[0].duration_estimate == 18.0


def test_empty_script_has_no_chunks_or_cues():
    assert smart_chunk_script("   ") == []
    assert build_cues("") == []


def test_cues_split_on_sentences_and_word_limit():
    cues = build_cues("Cats nap. " + _words(10), total_duration=12.0)
    assert cues[0].text == "Cats nap."
    assert len(cues[1].text.split()) == MAX_CUE_WORDS
    assert len(cues[2].text.split()) == 2
    # 12 words over 12 seconds
    assert (cues[0].start, cues[0].end) == (0.0, 2.0)
    assert cues[-1].end == 12.0


def test_cue_timing_without_duration_uses_speaking_rate():
    cues = build_cues("One two three four five.")
    assert cues[-1].end == 2.0


def test_format_srt():
    cues = build_cues("Hello there. Goodbye now.", total_duration=61.5)
    assert format_srt(cues) == (
        "1\n00:00:00,000 --> 00:00:30,750\nHello there.\n"
        "\n"
        "2\n00:00:30,750 --> 00:01:01,500\nGoodbye now.\n"
    )
