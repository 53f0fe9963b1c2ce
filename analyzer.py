import re
import sys
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple

import lumpalyzer
from complevel import CompLevel
from records import Linedef, Sector, Thing, read_dehacked_lines, read_linedefs, read_sectors, read_things
from wad import DirectoryEntry, Wad, WadFormatError

EPISODE_AND_MAP_RE = re.compile(r'^E\dM\d$')
MAP_ONLY_RE = re.compile(r'^MAP\d\d$')
ULTIMATE_DOOM_MAP_RE = re.compile(r'^E4M\d$')

# Map lumps are found by their distance from the map marker. Names can't be
# trusted: some WADs in the wild have mangled names inside a map.
THINGS_OFFSET = 1
LINEDEFS_OFFSET = 2
SECTORS_OFFSET = 8

DEHACKED_LUMP = "DEHACKED"
THINGS_LUMP = "THINGS"
MUSIC_PREFIXES = ("D_", "MUS_")


@dataclass
class AnalysisSettings:
    """Knobs for the analysis engine."""
    # Report WADs with this many enemies or fewer as deathmatch-only.
    detect_deathmatch: bool = True
    deathmatch_enemy_threshold: int = 0
    # Heretic has its own set of monster types.
    heretic: bool = False


@dataclass(frozen=True)
class AnalysisResults:
    comp_level: CompLevel
    map_list: Tuple[str, ...]
    contains_exmx_maps: bool
    contains_mapxx_maps: bool
    has_mismatched_bosses: bool
    is_deathmatch: bool
    enemy_count: int
    maps_without_exit: Tuple[str, ...]
    maps_without_player_start: Tuple[str, ...]
    music_lumps: Tuple[str, ...]


class MapLumps(NamedTuple):
    name: str
    linedefs: List[Linedef]
    sectors: List[Sector]
    things: List[Thing]


def is_map_marker(name: str) -> bool:
    return bool(EPISODE_AND_MAP_RE.match(name) or MAP_ONLY_RE.match(name))


class Analyzer:
    """
    Runs every heuristic over a single open WAD. Each map is read once and
    the decoded records are shared by the complevel scan, the boss check and
    the exit check.
    """
    def __init__(self, wad: Wad, settings: Optional[AnalysisSettings] = None, verbose: bool = False):
        self.wad = wad
        self.settings = settings or AnalysisSettings()
        self.verbose = verbose

        # (directory index, entry) for every map marker
        self.map_markers: List[Tuple[int, DirectoryEntry]] = [
            (index, entry) for index, entry in enumerate(wad.lumps) if is_map_marker(entry.name)
        ]

    @property
    def map_list(self) -> Tuple[str, ...]:
        return tuple(entry.name for _, entry in self.map_markers)

    @property
    def uses_episode_and_map(self) -> bool:
        return any(EPISODE_AND_MAP_RE.match(name) for name in self.map_list)

    @property
    def uses_map_only(self) -> bool:
        return any(MAP_ONLY_RE.match(name) for name in self.map_list)

    @property
    def has_ultimate_doom_maps(self) -> bool:
        return any(ULTIMATE_DOOM_MAP_RE.match(name) for name in self.map_list)

    def _map_lump(self, map_name: str, marker_index: int, offset: int, expected: str) -> DirectoryEntry:
        index = marker_index + offset
        if index >= len(self.wad.lumps):
            raise WadFormatError(f"{map_name} has no {expected} lump")

        entry = self.wad.lumps[index]
        if entry.name != expected and self.verbose:
            print(f"{map_name}: expected {expected} at lump {index}, found '{entry.name}'. Using it anyway.")
        return entry

    def read_map(self, marker_index: int) -> Optional[MapLumps]:
        """Decode a map's linedefs, sectors and things, or None if they can't be read."""
        map_name = self.wad.lumps[marker_index].name
        try:
            things = self._map_lump(map_name, marker_index, THINGS_OFFSET, "THINGS")
            linedefs = self._map_lump(map_name, marker_index, LINEDEFS_OFFSET, "LINEDEFS")
            sectors = self._map_lump(map_name, marker_index, SECTORS_OFFSET, "SECTORS")

            return MapLumps(
                map_name,
                read_linedefs(self.wad.get_lump(linedefs)),
                read_sectors(self.wad.get_lump(sectors)),
                read_things(self.wad.get_lump(things)),
            )
        except WadFormatError as e:
            print(f"warning: skipping {map_name}: {e}", file=sys.stderr)
            return None

    def read_maps(self) -> List[MapLumps]:
        maps = []
        for index, _ in self.map_markers:
            map_lumps = self.read_map(index)
            if map_lumps is not None:
                maps.append(map_lumps)
        return maps

    def detect_comp_level(self, maps: List[MapLumps]) -> Tuple[CompLevel, bool]:
        """
        Guess the complevel. Also returns whether E1M8 has bosses that behave
        differently under Ultimate Doom.
        """
        comp_level = lumpalyzer.BASELINE

        for entry in self.wad.find_lumps(DEHACKED_LUMP):
            try:
                lines = read_dehacked_lines(self.wad.get_lump(entry))
            except WadFormatError as e:
                print(f"warning: skipping {DEHACKED_LUMP}: {e}", file=sys.stderr)
                continue
            comp_level = comp_level.promote(lumpalyzer.analyze_dehacked(lines))

        for map_lumps in maps:
            comp_level = comp_level.promote(lumpalyzer.analyze_linedefs(map_lumps.linedefs))
            comp_level = comp_level.promote(lumpalyzer.analyze_sectors(map_lumps.sectors))
            comp_level = comp_level.promote(lumpalyzer.analyze_things(map_lumps.things))
            if self.verbose:
                print(f"{map_lumps.name}: complevel so far {int(comp_level)}")

        has_mismatched_bosses = False
        if comp_level < CompLevel.BOOM and not self.uses_map_only:
            # Episode 4 only exists in Ultimate Doom.
            if self.has_ultimate_doom_maps:
                return CompLevel.ULTIMATE_DOOM, has_mismatched_bosses

            # There's no telling whether an E1M8 with a Cyberdemon and tag 666
            # was made for 1.9 or relies on it, so only promote when it's clean.
            has_mismatched_bosses = any(
                lumpalyzer.has_mismatched_boss_encounter(m.name, m.sectors, m.things) for m in maps
            )
            comp_level = comp_level.promote(CompLevel.ULTIMATE_DOOM, not has_mismatched_bosses)

        return comp_level, has_mismatched_bosses

    def find_maps_without_exit(self, maps: List[MapLumps]) -> Tuple[str, ...]:
        return tuple(
            m.name for m in maps if not lumpalyzer.has_exit(m.name, m.linedefs, m.sectors, m.things)
        )

    def count_enemies(self) -> int:
        """Count enemies in every THINGS lump in the WAD, map or not."""
        total = 0
        for entry in self.wad.find_lumps(THINGS_LUMP):
            try:
                things = read_things(self.wad.get_lump(entry))
            except WadFormatError as e:
                print(f"warning: skipping {THINGS_LUMP}: {e}", file=sys.stderr)
                continue
            total += lumpalyzer.count_enemies(things, self.settings.heretic)
        return total

    def music_lumps(self) -> Tuple[str, ...]:
        return tuple(entry.name for entry in self.wad.lumps if entry.name.startswith(MUSIC_PREFIXES))

    def analyze(self) -> AnalysisResults:
        maps = self.read_maps()
        comp_level, has_mismatched_bosses = self.detect_comp_level(maps)

        enemy_count = self.count_enemies()
        is_deathmatch = (
            self.settings.detect_deathmatch
            and bool(self.wad.find_lumps(THINGS_LUMP))
            and enemy_count <= self.settings.deathmatch_enemy_threshold
        )

        return AnalysisResults(
            comp_level=comp_level,
            map_list=self.map_list,
            contains_exmx_maps=self.uses_episode_and_map,
            contains_mapxx_maps=self.uses_map_only,
            has_mismatched_bosses=has_mismatched_bosses,
            is_deathmatch=is_deathmatch,
            enemy_count=enemy_count,
            maps_without_exit=self.find_maps_without_exit(maps),
            maps_without_player_start=tuple(
                m.name for m in maps if not lumpalyzer.has_player_start(m.things)
            ),
            music_lumps=self.music_lumps(),
        )


def analyze_wad(filename, settings: Optional[AnalysisSettings] = None, verbose: bool = False) -> AnalysisResults:
    with Wad(filename) as wad:
        return Analyzer(wad, settings, verbose).analyze()
