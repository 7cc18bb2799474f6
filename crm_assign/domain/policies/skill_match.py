"""SkillMatchPolicy — how well an agent's skills cover an assignment's needs."""

from collections.abc import Iterable


def normalize_skills(skills: Iterable[str] | None) -> frozenset[str]:
    """Strip whitespace and drop blank tags."""
    if not skills:
        return frozenset()
    return frozenset(s.strip() for s in skills if s and s.strip())


def match_score(required: Iterable[str] | None, held: Iterable[str] | None) -> float:
    """Pure function: fraction of required skills the agent holds.

    Returns a score in [0, 1]. No requirement is a perfect match (1.0), so
    assignments without skill constraints are never penalised.
    """
    required_set = normalize_skills(required)
    if not required_set:
        return 1.0

    held_set = normalize_skills(held)
    return len(required_set & held_set) / len(required_set)
