"""Compact output formatters for MCP tool responses."""

from helpdesk_rag.models.cache import CacheStats
from helpdesk_rag.models.feedback import FeedbackRecord, LearningStats
from helpdesk_rag.pipeline import PipelineAnswer


def format_answer(answer: PipelineAnswer) -> str:
    """Response text followed by a one-line provenance footer."""
    parts = [f"specialist: {answer.specialist.value}", f"score: {answer.best_score:.2f}"]
    if answer.from_cache:
        parts.append("cached")
    if answer.low_confidence:
        parts.append("low confidence")
    if answer.sources_used:
        parts.append("sources: " + ", ".join(answer.sources_used))
    if answer.ticket_ids:
        parts.append("tickets: " + ", ".join(answer.ticket_ids))
    return f"{answer.response}\n\n[{' | '.join(parts)}]"


def format_feedback(record: FeedbackRecord) -> str:
    """Format: Recorded negative feedback 3f2a... (new) | keywords: vpn, proxy."""
    rating = "positive" if record.is_helpful else "negative"
    line = f"Recorded {rating} feedback {record.id} ({record.status.value})"
    if record.suggested_keywords:
        line += " | keywords: " + ", ".join(record.suggested_keywords)
    return line


def format_stats(cache: CacheStats, learning: LearningStats) -> str:
    """Cache and learning summary for operators."""
    lines = [
        f"Cache: {cache.size} entries, {cache.hits} hits "
        f"({cache.semantic_hits} semantic), {cache.misses} misses, "
        f"hit rate {cache.hit_rate:.0%}",
        f"Feedback: {learning.total_feedback} total, {learning.positive_feedback} positive, "
        f"{learning.negative_feedback} negative, satisfaction {learning.satisfaction_rate:.0%}",
        f"Unreviewed: {learning.unreviewed_count} | Low confidence: "
        f"{learning.low_confidence_count} | Auto-enriched keywords: "
        f"{learning.auto_enriched_keywords} | Cached from feedback: "
        f"{learning.cached_successful_responses}",
    ]
    if learning.top_suggestions:
        lines.append("Top keyword suggestions:")
        for s in learning.top_suggestions[:10]:
            applied = " (applied)" if s.was_auto_applied else ""
            lines.append(f"  {s.keyword} x{s.frequency}{applied}")
    if learning.failure_patterns:
        lines.append("Failure patterns:")
        for p in learning.failure_patterns[:10]:
            alerted = " [ALERTED]" if p.is_alerted else ""
            lines.append(f"  {p.description} x{p.failure_count}{alerted}")
    return "\n".join(lines)
