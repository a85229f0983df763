"""Script chunking and SRT subtitle building.

Speaking rate is assumed at 150 words per minute (2.5 words/second) when
no narration duration is known.
"""

import re
from dataclasses import dataclass
from typing import Optional

from shortfactory.schemas.stage_payloads import SubtitleCue

WORDS_PER_SECOND = 2.5
MIN_CHUNK_SECONDS = 9
MAX_CHUNK_SECONDS = 18
MAX_CUE_WORDS = 8

_SENTENCE_END = re.compile(r"[.!?]$")


@dataclass
class ScriptChunk:
    id: int
    text: str
    duration_estimate: float
    word_count: int


def smart_chunk_script(script: str) -> list[ScriptChunk]:
    """Group words into 9-18 second blocks, closing on sentence ends.

    A chunk closes when it reaches the maximum length, when it is inside
    the valid range and the word ends a sentence, or at the last word.
    """
    words = script.split()
    chunks: list[ScriptChunk] = []
    current: list[str] = []

    for index, word in enumerate(words):
        current.append(word)
        duration = len(current) / WORDS_PER_SECOND
        is_max = duration >= MAX_CHUNK_SECONDS
        in_range_sentence_end = duration >= MIN_CHUNK_SECONDS and _SENTENCE_END.search(word)
        if is_max or in_range_sentence_end or index == len(words) - 1:
            chunks.append(
                ScriptChunk(
                    id=len(chunks) + 1,
                    text=" ".join(current),
                    duration_estimate=round(duration, 2),
                    word_count=len(current),
                )
            )
            current = []

    return chunks


def build_cues(script: str, total_duration: Optional[float] = None) -> list[SubtitleCue]:
    """Split a script into short cues timed proportionally to word count."""
    words = script.split()
    if not words:
        return []

    groups: list[list[str]] = []
    current: list[str] = []
    for word in words:
        current.append(word)
        if len(current) >= MAX_CUE_WORDS or _SENTENCE_END.search(word):
            groups.append(current)
            current = []
    if current:
        groups.append(current)

    duration = total_duration or len(words) / WORDS_PER_SECOND
    per_word = duration / len(words)
    cues: list[SubtitleCue] = []
    start = 0.0
    for i, group in enumerate(groups, start=1):
        end = start + len(group) * per_word
        cues.append(SubtitleCue(index=i, start=round(start, 3), end=round(end, 3), text=" ".join(group)))
        start = end
    return cues


def _timestamp(seconds: float) -> str:
    millis = int(round(seconds * 1000))
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def format_srt(cues: list[SubtitleCue]) -> str:
    blocks = [
        f"{cue.index}\n{_timestamp(cue.start)} --> {_timestamp(cue.end)}\n{cue.text}\n"
        for cue in cues
    ]
    return "\n".join(blocks)
