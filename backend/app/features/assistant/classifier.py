"""
Assistant feature: query classifier (router).

The text-generation service makes the semantic call; this module only
accepts its answer when it names exactly one known route. Anything else
(empty, chatty, two labels, unknown words) routes to ESCALATE so a human
sees the question.
"""

import logging
import re

from app.core.exceptions import ValidationError
from app.core.llm_provider import TextGenerator
from app.features.assistant.prompts import ROUTER_PROMPT_TEMPLATE, ROUTER_SYSTEM_PROMPT
from app.features.assistant.schemas import Route, RoutingDecision

logger = logging.getLogger(__name__)

_LABEL = re.compile(r"\b(POLICY|CONCEPT|ESCALATE)\b")


def parse_route_label(raw: str | None) -> Route | None:
    """Return the route named in `raw`, or None unless exactly one distinct label appears."""
    if not raw:
        return None
    labels = set(_LABEL.findall(raw.upper()))
    if len(labels) != 1:
        return None
    return Route(labels.pop())


class QueryClassifier:

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    def classify(self, question: str) -> RoutingDecision:
        """Map a question to POLICY, CONCEPT or ESCALATE.

        Raises:
            ValidationError: Empty question.
            UpstreamError: The generation call failed; callers decide the fallback.
        """
        if not question or not question.strip():
            raise ValidationError("Question must be a non-empty string")

        raw = self.generator.generate(
            ROUTER_PROMPT_TEMPLATE.format(question=question.strip()),
            system=ROUTER_SYSTEM_PROMPT,
        )

        route = parse_route_label(raw)
        if route is None:
            logger.warning(f"⚠️ Unrecognized router label {raw!r}, escalating")
            return RoutingDecision(
                route=Route.ESCALATE,
                raw_label=raw,
                reason="unrecognized classifier output",
            )

        return RoutingDecision(route=route, raw_label=raw, reason=f"classified as {route.value}")
