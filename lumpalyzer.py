"""
Heuristics for reading map and DeHackEd lumps.

The analyze_* functions each look at one lump's worth of records and return
the lowest complevel that lump looks like it needs. Every record gets its own
verdict and the verdicts are folded together with promote(), so the order of
records (and of lumps) never changes the answer.
"""

from functools import reduce
from typing import Iterable, Sequence, Tuple

from complevel import CompLevel, promote
from records import Linedef, Sector, Thing

BASELINE = CompLevel.DOOM_19

MBF21_CODE_POINTERS = (
    "A_AddFlags",
    "A_CheckAmmo",
    "A_ClearTracer",
    "A_ConsumeAmmo",
    "A_FindTracer",
    "A_GunFlashTo",
    "A_HealChase",
    "A_JumpIfFlagsSet",
    "A_JumpIfHealthBelow",
    "A_JumpIfTargetCloser",
    "A_JumpIfTargetInSight",
    "A_JumpIfTracerCloser",
    "A_JumpIfTracerInSight",
    "A_MonsterBulletAttack",
    "A_MonsterMeleeAttack",
    "A_MonsterProjectile",
    "A_NoiseAlert",
    "A_RadiusDamage",
    "A_RefireTo",
    "A_RemoveFlags",
    "A_SeekTracer",
    "A_SpawnObject",
    "A_WeaponAlert",
    "A_WeaponBulletAttack",
    "A_WeaponJump",
    "A_WeaponMeleeAttack",
    "A_WeaponProjectile",
    "A_WeaponSound",
)

MBF21_DEHACKED_KEYS = frozenset({
    "MBF21 Bits",
    "Infighting group",
    "Projectile group",
    "Splash group",
    "Fast speed",
    "Melee range",
    "Ammo per shot",
})

# Linedef flags
# Boom's pass-use flag is documented as 0x0200, but classification has always
# keyed on 0x0100 and existing complevel guesses depend on that.
ML_BOOM_FLAG = 0x0100
ML_BLOCKLANDMONSTERS = 0x1000
ML_BLOCKPLAYERS = 0x2000
ML_EDITOR_NOISE = 0x4000 | 0x8000

# Thing flags
MTF_EDITOR_NOISE = 0x0100
MTF_NOTDM = 0x0020
MTF_FRIEND = 0x0080

# Thing types
MT_CYBORG = 16
MT_SPIDER = 7
MT_BOSSBRAIN = 88
MT_DOGS = 140
MT_PUSH = 5001
MT_PULL = 5002
MT_MUSICSOURCE = range(14100, 14165)
PLAYER1_START = 1

DOOM_MONSTERS = frozenset({
    7,     # Spider Mastermind
    9,     # Shotgun guy
    16,    # Cyberdemon
    58,    # Spectre
    64,    # Arch-vile
    65,    # Heavy weapon dude
    66,    # Revenant
    67,    # Mancubus
    68,    # Arachnotron
    69,    # Hell knight
    71,    # Pain elemental
    84,    # Wolfenstein SS
    3001,  # Imp
    3002,  # Demon
    3003,  # Baron of hell
    3004,  # Zombieman
    3005,  # Cacodemon
    3006,  # Lost soul
})

HERETIC_MONSTERS = frozenset({
    5,     # Fire gargoyle
    6,     # Iron lich
    7,     # D'Sparil
    9,     # Maulotaur
    15,    # Disciple of D'Sparil
    45,    # Nitrogolem
    46,    # Nitrogolem ghost
    64,    # Undead warrior
    65,    # Undead warrior ghost
    66,    # Gargoyle
    68,    # Golem
    69,    # Golem ghost
    70,    # Weredragon
    90,    # Sabreclaw
    92,    # Ophidian
})

# Exits: S1/W1 normal and secret, then Boom's G1 pair.
EXIT_LINEDEF_TYPES = frozenset({11, 51, 52, 124, 197, 198})
EXIT_SECTOR_TYPE = 11  # E1M8-style damage, exit below 11% health
# MBF21 sector kill bit plus damage bits: "kill all players and exit" and
# "kill all players and secret exit".
MBF21_EXIT_SECTOR_MASK = 0x1060
MBF21_EXIT_SECTOR_PATTERNS = (0x1040, 0x1060)
# Maps where killing the boss ends the level.
BOSS_EXIT_MAPS = {
    "E2M8": MT_CYBORG,
    "E3M8": MT_SPIDER,
}

MISMATCHED_BOSS_MAP = "E1M8"
MISMATCHED_BOSS_TYPES = (MT_SPIDER, MT_CYBORG)
MISMATCHED_BOSS_TAG = 666


def _fold(verdicts: Iterable[CompLevel]) -> CompLevel:
    return reduce(promote, verdicts, BASELINE)


def split_dehacked_line(line: str) -> Tuple[str, str]:
    parts = line.split('=')
    if len(parts) > 1:
        return parts[0].strip(), parts[1].strip()
    return parts[0].strip(), ""


def analyze_dehacked(lines: Iterable[str]) -> CompLevel:
    """Guess which complevel a DEHACKED lump needs."""
    lines = list(lines)
    result = BASELINE

    # DSDHacked announces itself with "Doom version = 2021".
    version_line = next((line for line in lines if line.strip().startswith("Doom version")), None)
    if version_line is not None:
        _, version = split_dehacked_line(version_line)
        result = result.promote(CompLevel.MBF21, version == "2021")

    def line_level(line: str) -> CompLevel:
        key, value = split_dehacked_line(line)
        level = BASELINE
        level = level.promote(CompLevel.MBF21, key in MBF21_DEHACKED_KEYS)
        level = level.promote(CompLevel.MBF21, value.startswith(MBF21_CODE_POINTERS))
        return level

    return promote(result, _fold(map(line_level, lines)))


def linedef_level(linedef: Linedef) -> CompLevel:
    level = BASELINE

    # Some old editors set every unused flag bit. If either of the top bits
    # is set, none of the flags can be trusted.
    if not linedef.flags & ML_EDITOR_NOISE:
        level = level.promote(CompLevel.BOOM, bool(linedef.flags & ML_BOOM_FLAG))
        level = level.promote(CompLevel.MBF21, bool(linedef.flags & ML_BLOCKLANDMONSTERS))
        level = level.promote(CompLevel.MBF21, bool(linedef.flags & ML_BLOCKPLAYERS))

    # 271/272: MBF sky transfers.
    level = level.promote(CompLevel.MBF, linedef.type in (271, 272))

    # Boom starts at 142. doom.wad from Ultimate Doom has a stray type 65535
    # in it, so that one value doesn't count.
    level = level.promote(CompLevel.BOOM, linedef.type >= 142 and linedef.type != 65535)
    return level


def analyze_linedefs(linedefs: Iterable[Linedef]) -> CompLevel:
    return _fold(map(linedef_level, linedefs))


def sector_level(sector: Sector) -> CompLevel:
    # Boom generalized sector types, then MBF21's additions above them.
    level = BASELINE.promote(CompLevel.BOOM, sector.type > 0x0020)
    return level.promote(CompLevel.MBF21, sector.type >= 0x1000)


def analyze_sectors(sectors: Iterable[Sector]) -> CompLevel:
    return _fold(map(sector_level, sectors))


def thing_level(thing: Thing) -> CompLevel:
    level = BASELINE
    level = level.promote(CompLevel.BOOM, thing.type in (MT_PUSH, MT_PULL))
    level = level.promote(CompLevel.MBF, thing.type == MT_DOGS)
    # Nobody is sure MBF introduced MT_MUSICSOURCE, but it needs complevel 11.
    level = level.promote(CompLevel.MBF, thing.type in MT_MUSICSOURCE)

    # HellMaker and friends set the unused flag bits to 1. Bit 8 being set
    # means the rest are noise.
    if not thing.flags & MTF_EDITOR_NOISE:
        level = level.promote(CompLevel.BOOM, thing.flags > MTF_NOTDM)
        level = level.promote(CompLevel.MBF, thing.flags > MTF_FRIEND)
    return level


def analyze_things(things: Iterable[Thing]) -> CompLevel:
    return _fold(map(thing_level, things))


def has_mismatched_boss_encounter(map_name: str, sectors: Iterable[Sector], things: Iterable[Thing]) -> bool:
    """
    True if map_name is E1M8 and it has a Cyberdemon or Spider Mastermind as
    well as a sector tagged 666. Ultimate Doom lowers the tag 666 floors when
    the Barons die, where 1.9 lowered them when any boss died.
    """
    if map_name != MISMATCHED_BOSS_MAP:
        return False

    boss_found = any(thing.type in MISMATCHED_BOSS_TYPES for thing in things)
    tag_found = any(sector.tag == MISMATCHED_BOSS_TAG for sector in sectors)
    return boss_found and tag_found


def count_enemies(things: Iterable[Thing], heretic: bool = False) -> int:
    monsters = HERETIC_MONSTERS if heretic else DOOM_MONSTERS
    return sum(1 for thing in things if thing.type in monsters)


def has_player_start(things: Iterable[Thing]) -> bool:
    return any(thing.type == PLAYER1_START for thing in things)


def _is_exit_sector(sector: Sector) -> bool:
    if sector.type == EXIT_SECTOR_TYPE:
        return True
    return (sector.type & MBF21_EXIT_SECTOR_MASK) in MBF21_EXIT_SECTOR_PATTERNS


def has_exit(map_name: str, linedefs: Sequence[Linedef], sectors: Sequence[Sector], things: Sequence[Thing]) -> bool:
    """Check whether a map has any way of ending it."""
    if any(linedef.type in EXIT_LINEDEF_TYPES for linedef in linedefs):
        return True

    if any(_is_exit_sector(sector) for sector in sectors):
        return True

    if any(thing.type == MT_BOSSBRAIN for thing in things):
        return True

    boss_type = BOSS_EXIT_MAPS.get(map_name)
    return boss_type is not None and any(thing.type == boss_type for thing in things)
