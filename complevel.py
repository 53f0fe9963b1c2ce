from enum import IntEnum


class CompLevel(IntEnum):
    """
    PrBoom-style compatibility levels. The values are the numbers passed to
    -complevel, so comparing two levels compares the engine revisions.
    """
    DOOM_12 = 0
    DOOM_1666 = 1
    DOOM_19 = 2
    ULTIMATE_DOOM = 3
    FINAL_DOOM = 4
    BOOM = 9
    MBF = 11
    MBF21 = 21

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    def promote(self, target: 'CompLevel', condition: bool = True) -> 'CompLevel':
        """Return the higher of the two levels, or self if condition is false."""
        return promote(self, target, condition)


_DESCRIPTIONS = {
    CompLevel.DOOM_12: "Doom v1.2",
    CompLevel.DOOM_1666: "Doom v1.666",
    CompLevel.DOOM_19: "Doom v1.9",
    CompLevel.ULTIMATE_DOOM: "Ultimate Doom v1.9",
    CompLevel.FINAL_DOOM: "Final Doom",
    CompLevel.BOOM: "Boom",
    CompLevel.MBF: "MBF",
    CompLevel.MBF21: "MBF21",
}


def promote(current: CompLevel, target: CompLevel, condition: bool = True) -> CompLevel:
    if condition and target > current:
        return CompLevel(target)
    return current
