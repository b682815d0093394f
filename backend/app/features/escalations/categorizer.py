"""
Escalations feature: keyword categorizer.

This is the only path that assigns a category to an escalation, so the same
query always lands in the same bucket of the professor's queue. Keywords are
matched case-insensitively as substrings; the category with most hits wins,
ties go to the earlier category in CATEGORY_ORDER.
"""

from pydantic import BaseModel

EXTENSION_REQUEST = "ExtensionRequest"
GRADE_DISPUTE = "GradeDispute"
PERSONAL_ISSUE = "PersonalIssue"
TECHNICAL_PROBLEM = "TechnicalProblem"
CONCEPT_QUESTION = "ConceptQuestion"
OTHER = "Other"

CATEGORY_ORDER = (
    EXTENSION_REQUEST,
    GRADE_DISPUTE,
    PERSONAL_ISSUE,
    TECHNICAL_PROBLEM,
    CONCEPT_QUESTION,
)
ALL_CATEGORIES = CATEGORY_ORDER + (OTHER,)

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    EXTENSION_REQUEST: (
        "extension", "extend", "deadline", "due date", "late", "submit", "submission",
        "turn in", "more time", "extra time", "need more", "can't finish",
        "won't be able", "unable to complete", "miss the deadline", "after the due date",
    ),
    GRADE_DISPUTE: (
        "grade", "grading", "score", "points", "marked", "incorrect", "wrong", "dispute",
        "appeal", "disagree", "unfair", "mistake", "error", "regrade", "reconsider",
        "review my grade",
    ),
    PERSONAL_ISSUE: (
        "personal", "family", "emergency", "sick", "illness", "health", "medical",
        "hospital", "death", "bereavement", "grief", "mental health", "anxiety",
        "depression", "stress", "crisis", "difficult", "struggling", "help", "support",
    ),
    TECHNICAL_PROBLEM: (
        "technical", "technology", "computer", "laptop", "internet", "connection", "wifi",
        "network", "website", "platform", "system", "bug", "error", "not working",
        "broken", "crash", "freeze", "access", "login", "password", "upload", "download",
        "file", "software", "hardware",
    ),
    CONCEPT_QUESTION: (
        "explain", "what is", "how does", "how do", "concept", "understand", "confused",
        "clarify", "definition", "example", "algorithm", "lecture", "don't get",
    ),
}


class CategorizationResult(BaseModel):
    category: str
    confidence: float  # 0-1


def categorize_escalation(query: str) -> CategorizationResult:
    """Assign an escalation category with a rough confidence.

    No hits -> Other (0.3). A clear winner scores min(0.7 + 0.1 * hits, 0.95);
    a tie at the top scores min(0.5 + 0.05 * hits, 0.7).
    """
    if not query or not query.strip():
        return CategorizationResult(category=OTHER, confidence=0.0)

    normalized = query.lower().strip()
    scores = {
        category: sum(1 for keyword in CATEGORY_KEYWORDS[category] if keyword in normalized)
        for category in CATEGORY_ORDER
    }

    best_category = OTHER
    best_score = 0
    for category in CATEGORY_ORDER:
        if scores[category] > best_score:
            best_category, best_score = category, scores[category]

    if best_score == 0:
        return CategorizationResult(category=OTHER, confidence=0.3)

    ranked = sorted(scores.values(), reverse=True)
    if ranked[0] > ranked[1]:
        confidence = min(0.7 + best_score * 0.1, 0.95)
    else:
        confidence = min(0.5 + best_score * 0.05, 0.7)

    return CategorizationResult(category=best_category, confidence=round(confidence, 2))
