#!/usr/bin/env python3
"""
Pick a random WAD (or take the one given), work out how to play it and print
a ready-to-use command line.
"""

import argparse
import os
import random
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Set

from analyzer import AnalysisResults, AnalysisSettings, analyze_wad
from complevel import CompLevel
from wad import WadFormatError

# Defaults
PLAYED_FILE = "wadinator_played.txt"
DEFAULT_PORT = "dsda-doom"
HERETIC_PORT = "crispy-heretic"
DEATHMATCH_THRESHOLD = 0

# Complevels offered as alternatives, by WAD style.
EPISODE_ALTERNATIVES = (CompLevel.DOOM_12, CompLevel.DOOM_1666)
MAP_ONLY_ALTERNATIVES = (CompLevel.DOOM_1666, CompLevel.FINAL_DOOM)
EXTENDED_ALTERNATIVES = (CompLevel.BOOM, CompLevel.MBF, CompLevel.MBF21)


def find_wads(path, recurse: bool = False) -> List[str]:
    """List .wad files in a directory, ignoring case."""
    pattern = '**/*' if recurse else '*'
    return sorted(
        str(p) for p in Path(path).glob(pattern)
        if p.is_file() and p.suffix.lower() == '.wad'
    )


def read_played(filename) -> Set[str]:
    if not os.path.exists(filename):
        return set()
    with open(filename, 'r', encoding='utf-8') as f:
        return {line.strip().lower() for line in f if line.strip()}


def record_played(filename, wad_path: str) -> None:
    with open(filename, 'a', encoding='utf-8') as f:
        f.write(wad_path + '\n')


def pick_random_wad(candidates: Iterable[str], played: Set[str], rng: Optional[random.Random] = None) -> Optional[str]:
    """Pick a WAD that isn't in played. Returns None when everything has been played."""
    rng = rng or random.Random()
    played = {p.lower() for p in played}
    remaining = [c for c in candidates if c.lower() not in played]
    if not remaining:
        return None
    return rng.choice(remaining)


def complevel_alternatives(results: AnalysisResults) -> List[CompLevel]:
    """Other complevels worth trying if the detected one misbehaves."""
    level = results.comp_level
    alternatives = []

    if level < CompLevel.BOOM and results.contains_exmx_maps:
        alternatives.extend(EPISODE_ALTERNATIVES)
        if level == CompLevel.ULTIMATE_DOOM:
            alternatives.append(CompLevel.DOOM_19)
        elif level == CompLevel.DOOM_19:
            alternatives.append(CompLevel.ULTIMATE_DOOM)

    if level < CompLevel.BOOM and results.contains_mapxx_maps:
        alternatives.extend(a for a in MAP_ONLY_ALTERNATIVES if a not in alternatives)

    alternatives.extend(a for a in EXTENDED_ALTERNATIVES if a > level)
    return alternatives


def command_line(path: str, results: AnalysisResults, port: str, heretic: bool, use_complevels: bool) -> str:
    if heretic:
        return f"{port} -file {path} -skill 4"

    iwad = "doom2.wad" if results.contains_mapxx_maps else "doom.wad"
    line = f"{port} -iwad {iwad} -file {path} -skill 4"
    if use_complevels:
        line += f" -complevel {int(results.comp_level)}"
    return line


def print_report(path: str, results: AnalysisResults, args) -> None:
    print()
    print(f"    ===>  {path}  <===")
    print()

    if results.map_list:
        print("  This WAD contains the following maps:")
        print()
        print(f"    {', '.join(sorted(results.map_list))}")
    else:
        print("  This WAD contains no maps.")
    print()

    if results.is_deathmatch:
        print(f"  NOTE: This WAD has {results.enemy_count} enemies. It's probably meant for deathmatch.")
        print()

    if results.maps_without_exit:
        print(f"  NOTE: These maps have no exit: {', '.join(results.maps_without_exit)}")
        print()

    if results.maps_without_player_start:
        print(f"  NOTE: These maps have no player 1 start: {', '.join(results.maps_without_player_start)}")
        print()

    port = args.port or (HERETIC_PORT if args.heretic else DEFAULT_PORT)
    print("  Here, have a convenient command line:")
    print()
    print(f"    {command_line(path, results, port, args.heretic, args.complevels)}")
    print()

    if args.heretic:
        return

    if results.has_mismatched_bosses and results.comp_level <= CompLevel.ULTIMATE_DOOM:
        print("  NOTE: E1M8 has a Cyberdemon and/or Spider Mastermind, as well as sectors tagged 666.")
        print("        Ultimate Doom v1.9 handles these differently. If the WAD was made for it, use")
        print("        complevel 3. Older WADs relying on the legacy behavior need complevel 2.")
        print()

    alternatives = complevel_alternatives(results)
    if args.complevels and alternatives:
        print("  The complevel detection isn't perfect. If you run into trouble, try one of these:")
        print()
        for level in alternatives:
            print(f"    {int(level):2d} - {level.description}")
        print()
        print("  When in doubt, check the WAD's readme!")
        print()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Pick a random WAD from a directory (or take a single file) and guess how to play it"
    )
    parser.add_argument(
        "path",
        help="A WAD file to analyze, or a directory to pick a random WAD from"
    )
    parser.add_argument(
        "-r", "--recurse",
        action="store_true",
        help="Scan the directory recursively"
    )
    parser.add_argument(
        "--heretic",
        action="store_true",
        help="The WADs were made for Heretic"
    )
    parser.add_argument(
        "--deathmatch-threshold",
        type=int,
        default=DEATHMATCH_THRESHOLD,
        help=f"Treat WADs with this many enemies or fewer as deathmatch-only (default: {DEATHMATCH_THRESHOLD})"
    )
    parser.add_argument(
        "--no-deathmatch-detection",
        dest="detect_deathmatch",
        action="store_false",
        help="Don't try to detect deathmatch-only WADs"
    )
    parser.add_argument(
        "--played",
        default=PLAYED_FILE,
        help=f"File listing WADs that were already picked (default: {PLAYED_FILE})"
    )
    parser.add_argument(
        "--port",
        help=f"Source port executable (default: {DEFAULT_PORT}, or {HERETIC_PORT} with --heretic)"
    )
    parser.add_argument(
        "--no-complevels",
        dest="complevels",
        action="store_false",
        help="The source port doesn't take -complevel"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args(argv)

    path = args.path
    picked = False
    if os.path.isdir(path):
        wads = find_wads(path, args.recurse)
        if not wads:
            print("error: no WAD files found!", file=sys.stderr)
            return 1

        path = pick_random_wad(wads, read_played(args.played))
        if path is None:
            print("You've played everything in there already.")
            return 0
        picked = True
    elif not os.path.exists(path):
        print(f"error: '{path}' does not exist", file=sys.stderr)
        return 1

    settings = AnalysisSettings(
        detect_deathmatch=args.detect_deathmatch,
        deathmatch_enemy_threshold=args.deathmatch_threshold,
        heretic=args.heretic,
    )

    try:
        results = analyze_wad(path, settings, args.verbose)
    except (OSError, WadFormatError) as e:
        print(f"error: failed to read '{path}': {e}", file=sys.stderr)
        return 1

    if picked:
        record_played(args.played, path)
        print()
        print("    The RNG gods have made their decision!")

    print_report(path, results, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
