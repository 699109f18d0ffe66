"""Pydantic request models for API endpoints.

Bodies accept camelCase (the wire format) as well as snake_case.
"""

from emberfall.llm import ProviderFormat
from emberfall.models import HeroSnapshot, WireModel


class ChooseBody(WireModel):
    choice_id: str


class TalkBody(WireModel):
    npc_id: str
    prompt: str


class OracleBody(WireModel):
    npc_id: str
    prompt: str
    hero: HeroSnapshot


class CheckConnectionBody(WireModel):
    provider_url: str
    api_key: str = ""
    provider_format: ProviderFormat = "koboldcpp"
