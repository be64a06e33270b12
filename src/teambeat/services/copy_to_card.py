"""
Card content for agreements and survey results copied onto a board.

Multi-line text is indented so it renders as one markdown block inside the
card. Survey questions become a short summary of their ratings.
"""

from collections import Counter
from typing import Dict, Optional, Sequence

CONTINUATION_INDENT = "\n    \t"


def indent_content(content: str) -> str:
    return content.replace("\n", CONTINUATION_INDENT)


def format_reactions(reaction_counts: Dict[str, int]) -> str:
    """Render reactions as ``(2×👍) (1×🎉)``, in the order given."""
    return " ".join(f"({count}×{emoji})" for emoji, count in reaction_counts.items())


def agreement_card_content(
    content: str, reaction_counts: Optional[Dict[str, int]] = None
) -> str:
    """
    Card text for an agreement.

    Args:
        content: Agreement text
        reaction_counts: Reactions on the card the agreement was made on,
            emoji -> count; appended after a blank line when present

    Returns:
        Card content
    """
    text = indent_content(content)
    reactions = format_reactions(reaction_counts or {})
    if reactions:
        text = f"{text}\n\n{reactions}"
    return text


def format_distribution(question_type: str, distribution: Dict[int, int]) -> str:
    if question_type == "redyellowgreen":
        return (
            f"🔴 Red: {distribution.get(1, 0)} | "
            f"🟡 Yellow: {distribution.get(3, 0)} | "
            f"🟢 Green: {distribution.get(5, 0)}"
        )
    if question_type == "boolean":
        return f"No: {distribution.get(0, 0)} | Yes: {distribution.get(1, 0)}"
    return " | ".join(f"{rating}: {distribution[rating]}" for rating in sorted(distribution))


def question_card_content(
    question: str,
    question_type: str,
    ratings: Sequence[int],
    description: Optional[str] = None,
) -> str:
    """
    Card text summarising the responses to a survey question.

    Args:
        question: Question text
        question_type: One of the survey question types
        ratings: Every submitted rating
        description: Optional question description, shown in italics

    Returns:
        Markdown with the question, average, response count and distribution
    """
    total = len(ratings)
    average = sum(ratings) / total if total else 0
    plural = "" if total == 1 else "s"
    lines = [f"**{question}**", ""]
    if description:
        lines += [f"_{description}_", ""]
    lines += [
        f"**Average:** {average:.2f} ({total} response{plural})",
        "",
        f"**Distribution:** {format_distribution(question_type, Counter(ratings))}",
    ]
    return "\n".join(lines)
