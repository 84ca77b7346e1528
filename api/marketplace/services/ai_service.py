"""
AI assistant, semantic matching and capability search.

The model is treated as an unreliable remote dependency. Every operation
returns a usable default when the call fails or its output does not parse,
and structured output is validated entry by entry. Capability search only
takes the ranking and explanation from the model; all catalog facts are
re-read from the stored solutions.
"""
import json
import logging
from typing import Any

from pydantic import ValidationError

from marketplace.core.config import Settings
from marketplace.schemas.ai import (
    CapabilityMatch,
    CapabilitySearchResponse,
    ChatReply,
    FeedbackAnalysis,
    MatchingResponse,
    RankedSolution,
    SemanticMatch,
)
from marketplace.schemas.marketplace import (
    GOVERNMENT_ROLES,
    Challenge,
    Review,
    Solution,
    UserRole,
    utcnow,
)
from marketplace.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

CHAT_FALLBACK = "I'm experiencing technical difficulties. Please try again later or contact support."
EMPTY_CHAT_REPLY = "I apologize, but I couldn't generate a response."
TIPS_FALLBACK = (
    "Unable to generate submission tips at this time. Please refer to the challenge documentation."
)
FEEDBACK_FALLBACK = "Unable to analyze feedback at this time"
NO_SOLUTIONS_MESSAGE = "No solutions available in the database"

BASE_SYSTEM_PROMPT = (
    "You are an AI assistant for the G-TEAD Marketplace, helping with military technology "
    "procurement and submissions."
)
ROLE_PROMPTS = {
    UserRole.VENDOR: (
        " Provide guidance on submission requirements, challenge applications, and improving "
        "solution presentations. Focus on helping vendors navigate the procurement process."
    ),
    UserRole.GOVERNMENT: (
        " Provide guidance on procurement processes, technology evaluation, acquisition pathways, "
        "and regulatory compliance. Help with FAR, OT agreements, and TSM processes."
    ),
}


def build_system_prompt(user_role: UserRole | str) -> str:
    role = UserRole(user_role)
    if role in GOVERNMENT_ROLES:
        role = UserRole.GOVERNMENT
    return BASE_SYSTEM_PROMPT + ROLE_PROMPTS.get(role, "")


def _parse_json_object(raw: str) -> dict[str, Any]:
    result = json.loads(raw)
    if not isinstance(result, dict):
        raise ValueError("Expected a JSON object")
    return result


class AIService:
    """Prompt construction and response parsing around an LLMClient."""

    def __init__(self, llm: LLMClient, settings: Settings):
        self.llm = llm
        self.settings = settings

    def chat_assistant(
        self, message: str, user_role: UserRole | str, context: dict[str, Any] | None = None
    ) -> ChatReply:
        messages = [{"role": "system", "content": build_system_prompt(user_role)}]
        if context:
            messages.append({
                "role": "system",
                "content": f"Context for this question: {json.dumps(context, default=str)}",
            })
        messages.append({"role": "user", "content": message})

        try:
            text = self.llm.complete(messages, task="chat")
        except Exception as e:
            logger.error(f"Chat assistant failed: {e}")
            return ChatReply(message=CHAT_FALLBACK, context={"error": True})

        role_value = user_role.value if isinstance(user_role, UserRole) else user_role
        return ChatReply(
            message=text or EMPTY_CHAT_REPLY,
            context={"user_role": role_value, "timestamp": utcnow().isoformat()},
        )

    def semantic_matching(
        self, query: str, solutions: list[Solution], challenges: list[Challenge]
    ) -> MatchingResponse:
        """Match a free-text query against the whole catalog."""
        solution_summaries = [
            {
                "id": s.id,
                "title": s.title,
                "description": s.description,
                "capability_areas": s.capability_areas,
                "trl": s.trl,
            }
            for s in solutions
        ]
        challenge_summaries = [
            {
                "id": c.id,
                "title": c.title,
                "description": c.description,
                "focus_areas": c.focus_areas,
            }
            for c in challenges
        ]
        prompt = f"""As an AI assistant for military technology procurement, analyze the following query and match it with relevant solutions and challenges.

Query: "{query}"

Solutions available: {json.dumps(solution_summaries)}

Challenges available: {json.dumps(challenge_summaries)}

Provide matches with relevance scores and explanations. Return a JSON object with a "matches" array; each entry has "id", "title", "score" (0-1) and "explanation"."""

        try:
            raw = self.llm.complete([{"role": "user", "content": prompt}], task="matching", json_mode=True)
            result = _parse_json_object(raw)
        except Exception as e:
            logger.error(f"Semantic matching failed: {e}")
            return MatchingResponse()

        entries = result.get("matches")
        if not isinstance(entries, list):
            logger.error(f"Semantic matching returned no match list: {entries!r}")
            return MatchingResponse()

        known_ids = {s.id for s in solutions} | {c.id for c in challenges}
        matches = []
        for entry in entries:
            try:
                match = SemanticMatch.model_validate(entry)
            except ValidationError:
                logger.warning(f"Dropping malformed match entry: {entry!r}")
                continue
            if match.id not in known_ids:
                logger.warning(f"Dropping match for unknown id {match.id}")
                continue
            matches.append(match)
        return MatchingResponse(matches=matches, total_matches=len(matches))

    def capability_search(self, requirement: str, solutions: list[Solution]) -> CapabilitySearchResponse:
        """Rank stored solutions against an operational requirement."""
        if not solutions:
            return CapabilitySearchResponse(message=NO_SOLUTIONS_MESSAGE)

        candidates = solutions[: self.settings.CAPABILITY_SEARCH_LIMIT]
        catalog = [
            {
                "id": s.id,
                "title": s.title,
                "description": s.description,
                "capability_areas": s.capability_areas,
                "trl": s.trl,
                "nato_compatible": s.nato_compatible,
                "security_cleared": s.security_cleared,
            }
            for s in candidates
        ]
        prompt = f"""You are helping a military commander find fielded or near-field technologies for an operational requirement.

Requirement: "{requirement}"

Available solutions: {json.dumps(catalog)}

Be generous with matches: include solutions with partial or indirect relevance, giving them an appropriately lower percentage. Return a JSON object with a "matches" array; each entry has "id" (from the list above), "match_percentage" (0-100) and "relevance" (one or two sentences on why it fits)."""

        try:
            raw = self.llm.complete(
                [{"role": "user", "content": prompt}], task="capability_search", json_mode=True
            )
            result = _parse_json_object(raw)
        except Exception as e:
            logger.error(f"Capability search failed: {e}")
            return CapabilitySearchResponse()

        entries = result.get("matches")
        if not isinstance(entries, list):
            logger.error(f"Capability search returned no match list: {entries!r}")
            return CapabilitySearchResponse()

        by_id = {s.id: s for s in candidates}
        ranked: dict[str, CapabilityMatch] = {}
        for entry in entries:
            try:
                item = RankedSolution.model_validate(entry)
            except ValidationError:
                logger.warning(f"Dropping malformed capability match: {entry!r}")
                continue
            solution = by_id.get(item.id)
            if solution is None:
                logger.warning(f"Dropping capability match for unknown solution {item.id}")
                continue
            previous = ranked.get(item.id)
            if previous is not None and previous.match_percentage >= item.match_percentage:
                continue
            ranked[item.id] = CapabilityMatch(
                id=solution.id,
                title=solution.title,
                description=solution.description,
                vendor_id=solution.vendor_id,
                trl=solution.trl,
                capability_areas=list(solution.capability_areas),
                nato_compatible=solution.nato_compatible,
                security_cleared=solution.security_cleared,
                status=solution.status,
                match_percentage=item.match_percentage,
                relevance=item.relevance,
            )

        matches = sorted(ranked.values(), key=lambda m: m.match_percentage, reverse=True)
        return CapabilitySearchResponse(matches=matches, total_matches=len(matches))

    def submission_tips(self, challenge_type: str, user_profile: dict[str, Any]) -> str:
        prompt = f"""Generate specific submission tips for a {challenge_type} challenge application.
User profile: {json.dumps(user_profile, default=str)}

Provide actionable advice for creating a competitive submission, focusing on:
- Key requirements and evaluation criteria
- Common mistakes to avoid
- Ways to strengthen the proposal
- Timeline and preparation recommendations"""
        try:
            return self.llm.complete([{"role": "user", "content": prompt}], task="submission_tips")
        except Exception as e:
            logger.error(f"Submission tips failed: {e}")
            return TIPS_FALLBACK

    def analyze_feedback(self, reviews: list[Review]) -> FeedbackAnalysis:
        review_data = [
            r.model_dump(
                mode="json",
                include={
                    "rating",
                    "title",
                    "description",
                    "readiness_score",
                    "interoperability_score",
                    "support_score",
                    "field_tested",
                },
            )
            for r in reviews
        ]
        prompt = f"""Analyze the following government reviews and feedback to provide insights:

Reviews: {json.dumps(review_data)}

Provide analysis as a JSON object with:
- summary: Brief overview of overall feedback
- trends: Array of key trends observed
- recommendations: Array of actionable recommendations for improvement"""
        try:
            raw = self.llm.complete(
                [{"role": "user", "content": prompt}], task="feedback_analysis", json_mode=True
            )
            result = _parse_json_object(raw)
            return FeedbackAnalysis(
                summary=result.get("summary") or "No analysis available",
                trends=result.get("trends") or [],
                recommendations=result.get("recommendations") or [],
            )
        except Exception as e:
            logger.error(f"Feedback analysis failed: {e}")
            return FeedbackAnalysis(summary=FEEDBACK_FALLBACK)
