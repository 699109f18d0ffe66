"""Create a demo save for development/testing."""

from emberfall.content import default_campaign
from emberfall.engine import GameEngine
from emberfall.hero import HeroBuild
from emberfall.storage import ProgressStore

DEMO_USER = "demo"

DEMO_BUILD = HeroBuild(
    name="Aria Emberwind",
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

# Auto-success choices only, so the demo save is the same on every run.
DEMO_CHOICES = ["intro_seek_seraphine"]


def create_demo_data(store: ProgressStore) -> GameEngine:
    """Replace the demo user's save with a fresh hero a few steps in."""
    store.delete(DEMO_USER)
    engine = GameEngine(default_campaign())
    engine.create_hero(DEMO_BUILD)
    for choice_id in DEMO_CHOICES:
        engine.choose_option(choice_id)
    store.save(DEMO_USER, engine.get_snapshot())
    return engine
