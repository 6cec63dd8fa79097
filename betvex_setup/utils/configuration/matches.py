import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

import structlog

from betvex_setup.exceptions.config import FixtureError

log = structlog.get_logger(__name__)

MATCH_FIELDS = ("game", "team_1", "team_2", "in_odds_1", "in_odds_2", "date")


@dataclass(frozen=True)
class MatchDefinition:
    """One entry of the match fixture, as passed to ``create_match``."""

    game: str
    team_1: str
    team_2: str
    in_odds_1: float
    in_odds_2: float
    date: str

    @property
    def key(self) -> str:
        """The match id the betting contract derives for this match."""
        return f"{self.team_1}-{self.team_2}-{self.date}"

    def as_args(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in MATCH_FIELDS}

    @classmethod
    def from_dict(cls, data: Any) -> "MatchDefinition":
        if not isinstance(data, dict):
            raise FixtureError(f"Match definition must be an object, not {data!r}")
        missing = [name for name in MATCH_FIELDS if name not in data]
        if missing:
            raise FixtureError(f"Match definition {data!r} is missing {', '.join(missing)}")
        for name in ("in_odds_1", "in_odds_2"):
            if isinstance(data[name], bool) or not isinstance(data[name], (int, float)):
                raise FixtureError(f"{name} must be a number in match definition {data!r}")
        return cls(**{name: data[name] for name in MATCH_FIELDS})


def load_matches(fixture_file: Path) -> List[MatchDefinition]:
    """Load the ordered list of matches from a JSON fixture file.

    :raises FixtureError:
        if the file does not exist, cannot be decoded, is not a non-empty JSON
        array or one of its entries is not a valid match definition.
    """
    try:
        with open(fixture_file) as handler:
            data = json.load(handler)
    except json.JSONDecodeError as e:
        raise FixtureError(f"Match fixture {fixture_file} is not valid JSON") from e
    except FileNotFoundError as e:
        raise FixtureError(f"Match fixture {fixture_file} does not exist") from e

    if not isinstance(data, list):
        raise FixtureError(f"Match fixture {fixture_file} must contain a JSON array")
    if not data:
        raise FixtureError(f"Match fixture {fixture_file} does not contain any match")

    matches = [MatchDefinition.from_dict(entry) for entry in data]
    log.debug("Loaded match fixture", file=str(fixture_file), count=len(matches))
    return matches
