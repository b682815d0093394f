"""
Knowledge feature: splitting extracted text into categorized, retrievable chunks.

Pipeline per page: split_into_chunks -> categorize_chunk -> infer_chunk_metadata.
build_chunks runs it over a whole document and enforces the upload limits.
"""

import logging
import math
import re
from typing import Iterable, Sequence

from app.config import get_settings
from app.core.exceptions import ValidationError
from app.features.announcements.schemas import ScheduleEntry
from app.features.knowledge.extraction import PageText
from app.features.knowledge.schemas import Chunk, ContentType

logger = logging.getLogger(__name__)

POLICY_KEYWORDS = (
    "deadline", "grading", "late", "attendance", "policy", "exam date",
    "due date", "submission", "penalty", "extension", "absence", "missed",
    "grade", "points", "percentage", "rubric", "cheating", "academic integrity",
    "syllabus", "course policy", "late work", "makeup", "retake", "drop date",
    "withdrawal", "office hours", "email policy", "communication policy",
)

CONCEPT_KEYWORDS = (
    "explain", "algorithm", "data structure", "recursion", "how does", "what is",
    "concept", "definition", "example", "understand", "learn", "teach", "demonstrate",
    "theory", "principle", "method", "technique", "approach", "implementation",
    "analysis", "design", "pattern", "optimization", "complexity", "efficiency",
)

# Words ignored when matching schedule topics against chunk text
_STOPWORDS = {
    "the", "and", "for", "with", "from", "into", "about", "of", "to", "in", "on",
    "an", "a", "intro", "introduction", "part", "week", "lecture", "chapter", "unit",
    "review", "overview", "basics",
}

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_WORD = re.compile(r"[a-z0-9]+")
_WEEK_WITH_TOPIC = re.compile(r"\bweek\s+(\d{1,2})\b\s*[:\-–—]\s*([^\n]+)", re.IGNORECASE)
_WEEK_HEADING = re.compile(r"^\s*week\s+(\d{1,2})\b", re.IGNORECASE | re.MULTILINE)

MAX_TOPIC_LENGTH = 120


# ── Splitting ────────────────────────────────────────────

def split_into_chunks(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split text into chunks of roughly `chunk_size` characters.

    Paragraphs are accumulated until the next one would overflow; the flushed
    buffer's last `overlap` characters seed the next buffer. A buffer that is
    still too large is split again on sentence boundaries without overlap.
    A single sentence longer than `chunk_size` is kept whole.

    Raises:
        ValidationError: chunk_size <= overlap, or negative values.
    """
    if chunk_size <= 0 or overlap < 0 or overlap >= chunk_size:
        raise ValidationError(
            "Invalid chunking parameters",
            detail=f"chunk_size={chunk_size}, overlap={overlap}; need chunk_size > overlap >= 0",
        )

    chunks: list[str] = []
    current = ""

    for raw in _PARAGRAPH_BREAK.split(text):
        paragraph = raw.strip()
        if not paragraph:
            continue

        if current and len(current) + len(paragraph) > chunk_size:
            chunks.append(current.strip())
            if len(current) > overlap:
                current = current[-overlap:] + " " + paragraph if overlap else paragraph
            else:
                current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph

        if len(current) > chunk_size:
            buffer = ""
            for sentence in _SENTENCE_BREAK.split(current):
                if buffer and len(buffer) + len(sentence) > chunk_size:
                    chunks.append(buffer.strip())
                    buffer = sentence
                else:
                    buffer = f"{buffer} {sentence}" if buffer else sentence
            current = buffer

    if current.strip():
        chunks.append(current.strip())

    return [c for c in chunks if c]


# ── Categorization ───────────────────────────────────────

def _keyword_hits(text: str, keywords: Iterable[str]) -> int:
    return sum(1 for keyword in keywords if keyword in text)


def categorize_chunk(content: str) -> ContentType:
    """Keyword vote between policy and concept vocabularies. Ties go to policy."""
    lowered = content.lower()
    policy_score = _keyword_hits(lowered, POLICY_KEYWORDS)
    concept_score = _keyword_hits(lowered, CONCEPT_KEYWORDS)
    return "policy" if policy_score >= concept_score else "concept"


# ── Metadata inference ───────────────────────────────────

def _significant_words(topic: str) -> list[str]:
    words = []
    for word in _WORD.findall(topic.lower()):
        if len(word) >= 3 and word not in _STOPWORDS and word not in words:
            words.append(word)
    return words


def match_schedule_topic(content: str, schedule: Sequence[ScheduleEntry]) -> ScheduleEntry | None:
    """Find the schedule entry whose topic the chunk talks about.

    A topic matches when at least half of its significant words (and never
    fewer than two) appear in the chunk as whole words. Best hit count wins;
    ties go to the earlier week.
    """
    lowered = content.lower()
    best: tuple[int, int] | None = None
    best_entry = None

    for entry in schedule:
        words = _significant_words(entry.topic or "")
        if len(words) < 2:
            continue
        required = max(2, math.ceil(len(words) / 2))
        hits = sum(1 for w in words if re.search(rf"\b{re.escape(w)}\b", lowered))
        if hits < required:
            continue
        rank = (hits, -entry.week_number)
        if best is None or rank > best:
            best, best_entry = rank, entry

    return best_entry


def extract_week_pattern(content: str) -> tuple[int | None, str | None]:
    """Pull "Week N: Topic" (or a bare "Week N" heading) out of the text."""
    match = _WEEK_WITH_TOPIC.search(content)
    if match:
        week = int(match.group(1))
        topic = match.group(2).strip().rstrip(".").strip()[:MAX_TOPIC_LENGTH] or None
        return (week if week >= 1 else None), topic

    heading = _WEEK_HEADING.search(content)
    if heading:
        week = int(heading.group(1))
        return (week if week >= 1 else None), None

    return None, None


def last_week_heading(content: str) -> tuple[int | None, str | None]:
    """The last "Week N[: Topic]" marker in the text, or (None, None).

    Used to carry a heading onto the chunks that follow it.
    """
    markers = [(m.start(1), m.group(1), m.group(2)) for m in _WEEK_WITH_TOPIC.finditer(content)]
    markers += [(m.start(1), m.group(1), None) for m in _WEEK_HEADING.finditer(content)]
    if not markers:
        return None, None

    # a "Week N: Topic" line also matches the bare heading at the same spot
    _, week, topic = max(markers, key=lambda m: (m[0], m[2] is not None))
    week = int(week)
    if topic is not None:
        topic = topic.strip().rstrip(".").strip()[:MAX_TOPIC_LENGTH] or None
    return (week if week >= 1 else None), topic


def infer_chunk_metadata(
    content: str,
    schedule: Sequence[ScheduleEntry] | None = None,
    week_number: int | None = None,
    topic: str | None = None,
    carried: tuple[int | None, str | None] | None = None,
) -> tuple[int | None, str | None]:
    """Resolve (week_number, topic) for a chunk.

    Each field independently takes the first available of: explicit argument,
    schedule-topic match, in-text "Week N: Topic" pattern, and the `carried`
    heading seen earlier on the same page.
    """
    if week_number is not None and topic is not None:
        return week_number, topic

    candidates: list[tuple[int | None, str | None]] = []
    if schedule:
        entry = match_schedule_topic(content, schedule)
        if entry is not None:
            candidates.append((entry.week_number, entry.topic))
    candidates.append(extract_week_pattern(content))

    for cand_week, cand_topic in candidates:
        if week_number is None and cand_week is not None:
            week_number = cand_week
        if topic is None and cand_topic:
            topic = cand_topic

    # the carried topic only belongs to the carried week
    if carried and carried[0] is not None:
        if week_number is None:
            week_number = carried[0]
        if topic is None and week_number == carried[0]:
            topic = carried[1]

    return week_number, topic


# ── Document-level build ─────────────────────────────────

def build_chunks(
    pages: Sequence[PageText],
    course_id: str,
    source: str,
    week_number: int | None = None,
    topic: str | None = None,
    schedule: Sequence[ScheduleEntry] | None = None,
    chunk_size: int | None = None,
    overlap: int | None = None,
) -> list[Chunk]:
    """Chunk every page of a document and attach metadata.

    Raises:
        ValidationError: Document over the character/chunk limits, or no
            non-empty chunk could be produced.
    """
    settings = get_settings()
    chunk_size = settings.CHUNK_SIZE if chunk_size is None else chunk_size
    overlap = settings.CHUNK_OVERLAP if overlap is None else overlap

    total_chars = sum(len(page.text) for page in pages)
    if total_chars > settings.MAX_CHARACTERS_PER_UPLOAD:
        raise ValidationError(
            "Document too large",
            detail=f"{total_chars} characters exceeds limit of {settings.MAX_CHARACTERS_PER_UPLOAD}",
        )

    chunks: list[Chunk] = []
    for page in pages:
        if not page.text.strip():
            logger.warning(f"⚠️ Skipping empty page {page.page_number} of {source}")
            continue

        heading: tuple[int | None, str | None] = (None, None)
        for content in split_into_chunks(page.text, chunk_size, overlap):
            content_type = categorize_chunk(content)
            chunk_week, chunk_topic = infer_chunk_metadata(content, schedule, week_number, topic, carried=heading)
            latest = last_week_heading(content)
            if latest[0] is not None:
                heading = latest
            chunks.append(Chunk(
                content=content,
                course_id=course_id,
                page_number=page.page_number,
                week_number=chunk_week,
                topic=chunk_topic,
                content_type=content_type,
                metadata={"chunk_index": len(chunks), "source": source},
            ))

    if not chunks:
        raise ValidationError(
            "No text content could be extracted from the document",
            detail=f"{source} produced zero non-empty chunks (empty or image-only?)",
        )

    if len(chunks) > settings.MAX_CHUNKS_PER_UPLOAD:
        raise ValidationError(
            "Document produces too many chunks",
            detail=f"{len(chunks)} chunks exceeds limit of {settings.MAX_CHUNKS_PER_UPLOAD}",
        )

    policy = sum(1 for c in chunks if c.content_type == "policy")
    logger.info(f"✂️ {source}: {len(chunks)} chunks ({policy} policy, {len(chunks) - policy} concept)")
    return chunks
