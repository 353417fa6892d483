from __future__ import annotations

from dataclasses import dataclass, field

from ..cases import LANGUAGE_EXTENSIONS

DEFAULT_PROGRAM = "print_one"


@dataclass(frozen=True)
class LoadProfile:
    """Weighted mix of programs submitted by a load run."""

    name: str
    language_weights: dict[str, float]
    programs: dict[str, str] = field(default_factory=dict)

    def program_for(self, language: str) -> str:
        return self.programs.get(language, DEFAULT_PROGRAM)

    def normalised_language_weights(self) -> dict[str, float]:
        weights = {lang: self.language_weights.get(lang, 0.0) for lang in LANGUAGE_EXTENSIONS}
        return _normalise(weights)


IDENTICAL = LoadProfile(
    name="identical",
    language_weights={"python": 1.0},
)

MIXED = LoadProfile(
    name="mixed",
    language_weights={
        "python": 1.2,
        "javascript": 1.0,
        "go": 0.8,
        "cpp": 0.8,
        "java": 0.6,
    },
)

PROFILES: dict[str, LoadProfile] = {profile.name: profile for profile in (IDENTICAL, MIXED)}


def get_profile(name: str) -> LoadProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown load profile {name!r} (expected one of: {', '.join(sorted(PROFILES))})"
        ) from None


def _normalise(weights: dict[str, float]) -> dict[str, float]:
    total = sum(value for value in weights.values() if value > 0)
    if total <= 0:
        raise ValueError("LoadProfile weights must sum to > 0")
    return {key: max(value, 0.0) / total for key, value in weights.items()}
