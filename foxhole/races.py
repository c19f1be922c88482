from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from foxhole.api.models import Stats
from foxhole.errors import InvalidRace

BASE_STAT = 10


class RaceName(str, Enum):
    human = "human"
    catpeople = "catpeople"
    orc = "orc"
    dwarf = "dwarf"
    elf = "elf"
    goblin = "goblin"


@dataclass(frozen=True, slots=True)
class RaceSpec:
    name: RaceName
    display_name: str
    description: str
    strength: int = 0
    intelligence: int = 0
    speed: int = 0
    luck: int = 0

    def bonuses(self) -> Stats:
        return Stats(strength=self.strength, intelligence=self.intelligence, speed=self.speed, luck=self.luck)

    def starting_stats(self) -> Stats:
        return Stats(
            strength=BASE_STAT + self.strength,
            intelligence=BASE_STAT + self.intelligence,
            speed=BASE_STAT + self.speed,
            luck=BASE_STAT + self.luck,
        )


RACE_SPECS: dict[RaceName, RaceSpec] = {
    RaceName.human: RaceSpec(RaceName.human, "Human", "Versatile and adaptable sailors", intelligence=5, luck=5),
    RaceName.catpeople: RaceSpec(RaceName.catpeople, "Cat People", "Agile and quick-witted felines", speed=10),
    RaceName.orc: RaceSpec(RaceName.orc, "Orc", "Strong and fearsome warriors", strength=10, luck=-5),
    RaceName.dwarf: RaceSpec(RaceName.dwarf, "Dwarf", "Hardy and resilient craftsmen", strength=5, speed=-5),
    RaceName.elf: RaceSpec(RaceName.elf, "Elf", "Wise and graceful navigators", intelligence=5, speed=5, luck=5),
    RaceName.goblin: RaceSpec(
        RaceName.goblin, "Goblin", "Cunning and sneaky scavengers", strength=-5, intelligence=5, speed=5, luck=-5
    ),
}


def get_race(race: RaceName | str) -> RaceSpec:
    try:
        race_name = RaceName(race) if not isinstance(race, RaceName) else race
    except ValueError as e:
        raise InvalidRace(f"Invalid race: {race}") from e
    return RACE_SPECS[race_name]
