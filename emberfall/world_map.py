"""Derived world-map state for renderers.

The map is display-only: nothing here feeds back into resolution. Static
lookups (scene -> location, adjacency) are computed once per campaign; the
visited/current overlay is recomputed from a session's visit counts.
"""

from __future__ import annotations

from pydantic import Field

from emberfall.models import Campaign, MapLocation, MapPosition, WireModel


class LocationStatus(WireModel):
    id: str
    name: str
    summary: str
    position: MapPosition
    tier: str | None = None
    scene_ids: list[str] = Field(default_factory=list)
    connections: list[str] = Field(default_factory=list)  # symmetric neighbours
    visited: bool = False
    current: bool = False


class MapSegment(WireModel):
    id: str
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    visited: bool = False


class MapProgress(WireModel):
    visited: int
    total: int


class WorldMapIndex(WireModel):
    width: float = 0
    height: float = 0
    description: str | None = None
    locations: list[LocationStatus] = Field(default_factory=list)
    segments: list[MapSegment] = Field(default_factory=list)
    scene_to_location: dict[str, str] = Field(default_factory=dict)
    current_location_id: str | None = None
    visited_location_ids: list[str] = Field(default_factory=list)
    progress: MapProgress = Field(default_factory=lambda: MapProgress(visited=0, total=0))


class MapIndexer:
    """Precomputes the campaign's map topology."""

    def __init__(self, campaign: Campaign) -> None:
        self._map = campaign.map
        self._locations: dict[str, MapLocation] = {}
        self.scene_to_location: dict[str, str] = {}
        self.adjacency: dict[str, list[str]] = {}
        self._edges: list[tuple[str, str]] = []

        # Scenes declare their own location; the map's sceneIds take precedence.
        for scene in campaign.scenes:
            if scene.location_id:
                self.scene_to_location[scene.id] = scene.location_id
        if self._map is None:
            return

        for location in self._map.locations:
            self._locations[location.id] = location
            self.adjacency.setdefault(location.id, [])
            for scene_id in location.scene_ids:
                self.scene_to_location[scene_id] = location.id

        seen: set[tuple[str, str]] = set()
        for location in self._map.locations:
            for target_id in location.connections:
                if target_id not in self._locations or target_id == location.id:
                    continue
                key = tuple(sorted((location.id, target_id)))
                if key in seen:
                    continue
                seen.add(key)
                self._edges.append((location.id, target_id))
                self.adjacency[location.id].append(target_id)
                self.adjacency[target_id].append(location.id)

    def location_for_scene(self, scene_id: str | None) -> str | None:
        if scene_id is None:
            return None
        return self.scene_to_location.get(scene_id)

    def visited_locations(self, visited_scenes: dict[str, int]) -> set[str]:
        return {
            location.id
            for location in self._locations.values()
            if any(visited_scenes.get(s, 0) > 0 for s in location.scene_ids)
        }

    def index(self, visited_scenes: dict[str, int], current_scene_id: str | None) -> WorldMapIndex:
        if self._map is None:
            return WorldMapIndex(scene_to_location=dict(self.scene_to_location))

        visited = self.visited_locations(visited_scenes)
        current = self.location_for_scene(current_scene_id)
        locations = [
            LocationStatus(
                id=loc.id,
                name=loc.name,
                summary=loc.summary,
                position=loc.position,
                tier=loc.tier,
                scene_ids=list(loc.scene_ids),
                connections=list(self.adjacency[loc.id]),
                visited=loc.id in visited,
                current=loc.id == current,
            )
            for loc in self._map.locations
        ]
        segments = [
            MapSegment(
                id="-".join(sorted((a, b))),
                source=a,
                target=b,
                visited=a in visited and b in visited,
            )
            for a, b in self._edges
        ]
        return WorldMapIndex(
            width=self._map.width,
            height=self._map.height,
            description=self._map.description,
            locations=locations,
            segments=segments,
            scene_to_location=dict(self.scene_to_location),
            current_location_id=current,
            visited_location_ids=[loc.id for loc in self._map.locations if loc.id in visited],
            progress=MapProgress(visited=len(visited), total=len(self._map.locations)),
        )
