"""
Builds a PWAD that swaps out a WAD's music.

Choosing the tracks is up to the caller; this module knows which music lump
each map plays and writes the replacement lumps.
"""

from typing import Dict, Iterable, List

from wad import LumpSource, write_wad

# The first entry is Ultimate Doom's, the second Doom II's. Both are written
# with the same track.
INTERMISSION_LUMPS = ("D_INTER", "D_DM2INT")

MUSIC_MAP = {
    # Ultimate Doom
    "E1M1": "D_E1M1", "E1M2": "D_E1M2", "E1M3": "D_E1M3",
    "E1M4": "D_E1M4", "E1M5": "D_E1M5", "E1M6": "D_E1M6",
    "E1M7": "D_E1M7", "E1M8": "D_E1M8", "E1M9": "D_E1M9",

    "E2M1": "D_E2M1", "E2M2": "D_E2M2", "E2M3": "D_E2M3",
    "E2M4": "D_E2M4", "E2M5": "D_E2M5", "E2M6": "D_E2M6",
    "E2M7": "D_E2M7", "E2M8": "D_E2M8", "E2M9": "D_E2M9",

    "E3M1": "D_E3M1", "E3M2": "D_E3M2", "E3M3": "D_E3M3",
    "E3M4": "D_E3M4", "E3M5": "D_E3M5", "E3M6": "D_E3M6",
    "E3M7": "D_E3M7", "E3M8": "D_E3M8", "E3M9": "D_E3M9",

    # Episode 4 borrows from the first three.
    "E4M1": "D_E3M4", "E4M2": "D_E3M2", "E4M3": "D_E3M3",
    "E4M4": "D_E1M5", "E4M5": "D_E2M7", "E4M6": "D_E2M4",
    "E4M7": "D_E2M6", "E4M8": "D_E2M5", "E4M9": "D_E1M9",

    # Doom II / Final Doom
    "MAP01": "D_RUNNIN", "MAP02": "D_STALKS", "MAP03": "D_COUNTD",
    "MAP04": "D_BETWEE", "MAP05": "D_DOOM", "MAP06": "D_THE_DA",
    "MAP07": "D_SHAWN", "MAP08": "D_DDTBLU", "MAP09": "D_IN_CIT",
    "MAP10": "D_DEAD", "MAP11": "D_STLKS2", "MAP12": "D_THEDA2",
    "MAP13": "D_DOOM2", "MAP14": "D_DDTBL2", "MAP15": "D_RUNNI2",
    "MAP16": "D_DEAD2", "MAP17": "D_STLKS3", "MAP18": "D_ROMERO",
    "MAP19": "D_SHAWN2", "MAP20": "D_MESSAG", "MAP21": "D_COUNT2",
    "MAP22": "D_DDTBL3", "MAP23": "D_AMPIE", "MAP24": "D_THEDA3",
    "MAP25": "D_ADRIAN", "MAP26": "D_MESSG2", "MAP27": "D_ROMER2",
    "MAP28": "D_TENSE", "MAP29": "D_SHAWN3", "MAP30": "D_OPENIN",
    "MAP31": "D_EVIL", "MAP32": "D_ULTIMA",
}


def music_lumps_to_fill(map_list: Iterable[str], existing_music: Iterable[str] = (),
                        replace_existing: bool = False, replace_intermission: bool = True) -> List[str]:
    """
    Work out which music lumps need a new track, in map order. Music the WAD
    already ships is left alone unless replace_existing is set.
    """
    to_fill = []
    for map_name in map_list:
        lump = MUSIC_MAP.get(map_name)
        if lump is not None and lump not in to_fill:
            to_fill.append(lump)

    if replace_intermission:
        to_fill.append(INTERMISSION_LUMPS[0])

    if not replace_existing:
        existing = set(existing_music)
        to_fill = [lump for lump in to_fill if lump not in existing]

    return to_fill


def create_music_wad(filename, assignments: Dict[str, LumpSource]) -> List[str]:
    """
    Write a music PWAD. assignments maps a music lump name to the track's
    data (bytes or a file path). Returns the lump names in the order written.
    """
    lumps = []
    for lump_name, source in assignments.items():
        lumps.append((lump_name, source))
        if lump_name == INTERMISSION_LUMPS[0]:
            lumps.append((INTERMISSION_LUMPS[1], source))

    return [entry.name for entry in write_wad(filename, lumps)]
