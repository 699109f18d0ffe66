import shutil
from pathlib import Path

import pytest

from backend import config
from emberfall.content import default_campaign
from emberfall.dice import DiceRoller
from emberfall.hero import HeroBuild

TEST_DATA_DIR = Path("data-tests")


class ScriptedRandom:
    """Stands in for random.Random: hands out queued d20 results in order."""

    def __init__(self, *values: int) -> None:
        self.values = list(values)
        self.calls = 0

    def push(self, *values: int) -> None:
        self.values.extend(values)

    def randint(self, a: int, b: int) -> int:
        self.calls += 1
        if not self.values:
            raise AssertionError("ScriptedRandom ran out of rolls")
        value = self.values.pop(0)
        assert a <= value <= b
        return value


@pytest.fixture(autouse=True)
def clean_test_data():
    """Wipe and re-init data-tests/ before every test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    config.init_data_dir(TEST_DATA_DIR)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


@pytest.fixture
def campaign():
    return default_campaign()


@pytest.fixture
def rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture
def dice(rng: ScriptedRandom) -> DiceRoller:
    return DiceRoller(rng)


@pytest.fixture
def build() -> HeroBuild:
    return HeroBuild(
        name="Aria",
        race_id="human",
        class_id="fighter",
        background_id="soldier",
        ability_scores={
            "strength": 15,
            "dexterity": 14,
            "constitution": 13,
            "intelligence": 10,
            "wisdom": 12,
            "charisma": 8,
        },
        skill_choices=["perception", "survival"],
    )
