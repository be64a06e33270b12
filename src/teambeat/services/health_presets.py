"""
Health check survey question presets.

Presets are templates: applying one to a scene copies its questions into
independent HealthQuestion rows.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class PresetQuestion:
    question: str
    question_type: str
    description: Optional[str] = None


@dataclass(frozen=True)
class HealthQuestionPreset:
    id: str
    name: str
    description: str
    questions: Tuple[PresetQuestion, ...] = field(default_factory=tuple)


def _agree(question: str) -> PresetQuestion:
    return PresetQuestion(question=question, question_type="agreetodisagree")


def _ryg(question: str, description: str) -> PresetQuestion:
    return PresetQuestion(
        question=question, description=description, question_type="redyellowgreen"
    )


GALLUP_Q12 = HealthQuestionPreset(
    id="gallup-q12",
    name="Gallup Q12",
    description="Employee engagement survey with 12 validated questions",
    questions=(
        _agree("I know what is expected of me at work"),
        _agree("I have the materials and equipment I need to do my work right"),
        _agree("At work, I have the opportunity to do what I do best every day"),
        _agree(
            "In the last seven days, I have received recognition or praise for doing good work"
        ),
        _agree("My supervisor, or someone at work, seems to care about me as a person"),
        _agree("There is someone at work who encourages my development"),
        _agree("At work, my opinions seem to count"),
        _agree("The mission or purpose of my company makes me feel my job is important"),
        _agree("My associates or fellow employees are committed to doing quality work"),
        _agree("I have a best friend at work"),
        _agree("In the last six months, someone at work has talked to me about my progress"),
        _agree("This last year, I have had opportunities at work to learn and grow"),
    ),
)

STANDOUT_Q8 = HealthQuestionPreset(
    id="standout-q8",
    name="StandOut Team Engagement (Q8)",
    description='Modern team engagement survey by Marcus Buckingham, from "Nine Lies About Work"',
    questions=(
        _agree("I am really enthusiastic about the mission of my company"),
        _agree("At work, I clearly understand what is expected of me"),
        _agree("In my team, I am surrounded by people who share my values"),
        _agree("I have the chance to use my strengths every day at work"),
        _agree("My teammates have my back"),
        _agree("I know I will be recognized for excellent work"),
        _agree("I have great confidence in my company's future"),
        _agree("In my work, I am always challenged to grow"),
    ),
)

SPOTIFY_SQUAD = HealthQuestionPreset(
    id="spotify-squad",
    name="Spotify Squad Health Check",
    description="Popular agile team health model for software and product teams",
    questions=(
        _ryg(
            "Easy to release",
            "Releasing is simple, safe, painless & mostly automated vs. risky, "
            "painful, lots of manual work",
        ),
        _ryg(
            "Suitable process",
            "Our way of working fits us perfectly vs. our way of working sucks",
        ),
        _ryg(
            "Tech quality (code base health)",
            "We're proud of the quality of our code vs. our code is a pile of dung",
        ),
        _ryg("Value", "We deliver great stuff! We're proud of it vs. we deliver crap"),
        _ryg(
            "Speed",
            "We get stuff done really quickly vs. we never seem to get done with anything",
        ),
        _ryg(
            "Mission",
            "We know exactly why we are here, and we are excited about it vs. our "
            "mission is unclear and uninspiring",
        ),
        _ryg(
            "Fun",
            "We love going to work, and have great fun working together vs. boring",
        ),
        _ryg(
            "Learning",
            "We're learning lots of interesting stuff all the time vs. we never have "
            "time to learn anything",
        ),
        _ryg(
            "Support",
            "We always get great support & help when we ask for it vs. we keep "
            "getting stuck because we can't get support",
        ),
        _ryg(
            "Pawns or players",
            "We are in control of our destiny vs. we are just pawns in a game of chess",
        ),
        _ryg(
            "Teamwork",
            "We are a great team working well together vs. we struggle to work as a team",
        ),
    ),
)

ATLASSIAN_TEAM = HealthQuestionPreset(
    id="atlassian-team",
    name="Atlassian Team Health Monitor",
    description="General-purpose team effectiveness assessment based on Atlassian research",
    questions=(
        _ryg(
            "Team cohesion",
            "We have mutual trust and respect vs. we lack trust and connection",
        ),
        _ryg(
            "Balanced team",
            "We have the right people with the right skills in the right roles vs. "
            "we lack key skills or have unclear roles",
        ),
        _ryg(
            "Encouraging difference",
            "We seek and voice different viewpoints and work through differences "
            "respectfully vs. we avoid diverse perspectives",
        ),
        _ryg(
            "Shared understanding",
            "We share understanding of our mission, purpose, and milestones vs. our "
            "direction is unclear",
        ),
        _ryg(
            "Value and metrics",
            "We understand our value, how it's measured, and use metrics to make "
            "decisions vs. we lack clarity on value and success",
        ),
        _ryg(
            "Suitable ways of working",
            "Our ways of working enable us to do our jobs effectively vs. our "
            "processes hinder our work",
        ),
        _ryg(
            "Engagement and support",
            "It's clear how to engage with us and teams get the support they need "
            "vs. engagement with our team is unclear or ineffective",
        ),
        _ryg(
            "Continuous improvement",
            "We celebrate successes and act on improvement opportunities with "
            "regular feedback loops vs. we don't make time for reflection or "
            "improvement",
        ),
    ),
)

HEALTH_QUESTION_PRESETS: Tuple[HealthQuestionPreset, ...] = (
    GALLUP_Q12,
    STANDOUT_Q8,
    SPOTIFY_SQUAD,
    ATLASSIAN_TEAM,
)

_PRESETS_BY_ID: Dict[str, HealthQuestionPreset] = {
    preset.id: preset for preset in HEALTH_QUESTION_PRESETS
}


def get_preset_by_id(preset_id: str) -> Optional[HealthQuestionPreset]:
    return _PRESETS_BY_ID.get(preset_id)


def get_preset_metadata() -> List[Dict[str, object]]:
    """Summaries of every preset, without the question lists."""
    return [
        {
            "id": preset.id,
            "name": preset.name,
            "description": preset.description,
            "question_count": len(preset.questions),
        }
        for preset in HEALTH_QUESTION_PRESETS
    ]
