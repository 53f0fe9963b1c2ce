"""Tests for analyzer.py: whole-WAD analysis."""
import struct

import pytest

from analyzer import AnalysisSettings, Analyzer, analyze_wad, is_map_marker
from complevel import CompLevel
from wad import Wad


@pytest.fixture
def h(wad_helpers):
    return wad_helpers


def exit_line(h):
    return h.pack_linedef(type=11)


def test_map_markers():
    assert is_map_marker("E1M1")
    assert is_map_marker("MAP32")
    assert not is_map_marker("E1M10")
    assert not is_map_marker("MAP1")
    assert not is_map_marker("D_E1M1")


def test_unknown_wad_is_empty(make_wad, h):
    path = make_wad(h.map_lumps("MAP01", linedefs=[h.pack_linedef(type=272)]), magic=b'XXXX')
    results = analyze_wad(path)
    assert results.map_list == ()
    assert results.comp_level is CompLevel.DOOM_19
    assert not results.is_deathmatch


def test_map_list_and_styles(make_wad, h):
    lumps = (h.map_lumps("MAP02", [h.pack_thing(type=3004)], [exit_line(h)])
             + h.map_lumps("MAP01", [h.pack_thing(type=3004)], [exit_line(h)]))
    results = analyze_wad(make_wad(lumps))
    assert results.map_list == ("MAP02", "MAP01")
    assert results.contains_mapxx_maps
    assert not results.contains_exmx_maps


def test_vanilla_doom2_stays_at_1_9(make_wad, h):
    """MAPxx WADs don't get the Ultimate Doom promotion."""
    lumps = h.map_lumps("MAP01", [h.pack_thing(type=3004)], [exit_line(h)], [h.pack_sector()])
    assert analyze_wad(make_wad(lumps)).comp_level is CompLevel.DOOM_19


def test_boom_linedef_promotes(make_wad, h):
    lumps = h.map_lumps("MAP01", [h.pack_thing(type=3004)], [h.pack_linedef(type=142), exit_line(h)])
    assert analyze_wad(make_wad(lumps)).comp_level is CompLevel.BOOM


def test_levels_fold_across_maps(make_wad, h):
    lumps = (h.map_lumps("MAP01", [h.pack_thing(type=140)], [exit_line(h)])
             + h.map_lumps("MAP02", [h.pack_thing(type=3004)], [exit_line(h)], [h.pack_sector(type=0x1000)]))
    assert analyze_wad(make_wad(lumps)).comp_level is CompLevel.MBF21


def test_dehacked_lump(make_wad, h):
    lumps = h.map_lumps("MAP01", [h.pack_thing(type=3004)], [exit_line(h)])
    lumps.append(("DEHACKED", b'Patch File for DeHackEd v3.0\nDoom version = 2021\n'))
    assert analyze_wad(make_wad(lumps)).comp_level is CompLevel.MBF21


def test_map_lumps_found_by_position(make_wad, h):
    """A mangled lump name inside a map doesn't hide its data."""
    lumps = h.map_lumps("MAP01", [h.pack_thing(type=3004)], [h.pack_linedef(type=271), exit_line(h)])
    lumps[2] = ("LINEDEF?", lumps[2][1])
    assert analyze_wad(make_wad(lumps)).comp_level is CompLevel.MBF


def test_stray_linedefs_lump_outside_map_is_not_classified(make_wad, h):
    lumps = h.map_lumps("MAP01", [h.pack_thing(type=3004)], [exit_line(h)])
    lumps.append(("LINEDEFS", h.pack_linedef(type=272)))
    assert analyze_wad(make_wad(lumps)).comp_level is CompLevel.DOOM_19


def test_truncated_map_is_skipped(make_wad, h, capsys):
    lumps = h.map_lumps("MAP01", [h.pack_thing(type=3004)], [exit_line(h)])
    lumps += [("MAP02", b''), ("THINGS", h.pack_thing(type=140)), ("LINEDEFS", b'')]
    results = analyze_wad(make_wad(lumps))

    assert results.map_list == ("MAP01", "MAP02")
    assert results.comp_level is CompLevel.DOOM_19
    assert results.maps_without_exit == ()
    assert "MAP02" in capsys.readouterr().err


def test_map_with_negative_lump_position_is_skipped(tmp_path, h, capsys):
    lumps = (h.map_lumps("MAP01", [h.pack_thing(type=1)], [h.pack_linedef(type=272)])
             + h.map_lumps("MAP02", [h.pack_thing(type=1)], [exit_line(h)]))
    data = bytearray(h.raw_wad(lumps))

    # Point MAP01's LINEDEFS entry (directory index 2) before the start of the file.
    _, _, directory = struct.unpack_from('<4sii', data)
    struct.pack_into('<i', data, directory + 2 * 16, -100)
    path = tmp_path / "negative.wad"
    path.write_bytes(bytes(data))

    results = analyze_wad(path)
    assert results.map_list == ("MAP01", "MAP02")
    assert results.comp_level is CompLevel.DOOM_19
    assert results.maps_without_player_start == ()
    assert "MAP01" in capsys.readouterr().err


class TestUltimateDoom:

    def test_episode_wad_promoted(self, make_wad, h):
        lumps = h.map_lumps("E1M1", [h.pack_thing(type=3004)], [exit_line(h)])
        results = analyze_wad(make_wad(lumps))
        assert results.comp_level is CompLevel.ULTIMATE_DOOM
        assert results.contains_exmx_maps
        assert not results.has_mismatched_bosses

    def test_episode_4_forces_ultimate_doom(self, make_wad, h):
        boss_map = h.map_lumps("E1M8", [h.pack_thing(type=16)], [exit_line(h)], [h.pack_sector(tag=666)])
        lumps = boss_map + h.map_lumps("E4M1", [h.pack_thing(type=3004)], [exit_line(h)])
        results = analyze_wad(make_wad(lumps))
        assert results.comp_level is CompLevel.ULTIMATE_DOOM
        assert not results.has_mismatched_bosses

    def test_mismatched_boss_stays_at_1_9(self, make_wad, h):
        lumps = h.map_lumps("E1M8", [h.pack_thing(type=16)], [exit_line(h)], [h.pack_sector(tag=666)])
        results = analyze_wad(make_wad(lumps))
        assert results.has_mismatched_bosses
        assert results.comp_level is CompLevel.DOOM_19

    @pytest.mark.parametrize("thing_type,tag", [(3003, 666), (16, 0)])
    def test_boss_needs_both_conditions(self, make_wad, h, thing_type, tag):
        lumps = h.map_lumps("E1M8", [h.pack_thing(type=thing_type)], [exit_line(h)], [h.pack_sector(tag=tag)])
        results = analyze_wad(make_wad(lumps))
        assert not results.has_mismatched_bosses
        assert results.comp_level is CompLevel.ULTIMATE_DOOM

    def test_boom_wad_skips_adjustment(self, make_wad, h):
        lumps = h.map_lumps("E1M8", [h.pack_thing(type=16)], [h.pack_linedef(type=197)], [h.pack_sector(tag=666)])
        results = analyze_wad(make_wad(lumps))
        assert results.comp_level is CompLevel.BOOM
        assert not results.has_mismatched_bosses

    def test_mixed_styles_skip_adjustment(self, make_wad, h):
        lumps = (h.map_lumps("E1M1", [h.pack_thing(type=3004)], [exit_line(h)])
                 + h.map_lumps("MAP01", [h.pack_thing(type=3004)], [exit_line(h)]))
        assert analyze_wad(make_wad(lumps)).comp_level is CompLevel.DOOM_19


class TestExits:

    def test_map_without_exit_reported(self, make_wad, h):
        lumps = (h.map_lumps("MAP01", [h.pack_thing(type=3004)], [h.pack_linedef(type=1)], [h.pack_sector(type=9)])
                 + h.map_lumps("MAP02", [h.pack_thing(type=3004)], [exit_line(h)]))
        assert analyze_wad(make_wad(lumps)).maps_without_exit == ("MAP01",)

    @pytest.mark.parametrize("extra", ["linedef", "sector", "mbf21_sector", "thing"])
    def test_any_exit_feature_clears_it(self, make_wad, h, extra):
        things = [h.pack_thing(type=3004)]
        linedefs = [h.pack_linedef(type=1)]
        sectors = [h.pack_sector(type=9)]
        if extra == "linedef":
            linedefs.append(h.pack_linedef(type=52))
        elif extra == "sector":
            sectors.append(h.pack_sector(type=11))
        elif extra == "mbf21_sector":
            sectors.append(h.pack_sector(type=0x1060))
        else:
            things.append(h.pack_thing(type=88))

        results = analyze_wad(make_wad(h.map_lumps("MAP01", things, linedefs, sectors)))
        assert results.maps_without_exit == ()

    def test_boss_exit_maps(self, make_wad, h):
        lumps = (h.map_lumps("E2M8", [h.pack_thing(type=16)])
                 + h.map_lumps("E3M8", [h.pack_thing(type=7)])
                 + h.map_lumps("E1M9", [h.pack_thing(type=16)]))
        assert analyze_wad(make_wad(lumps)).maps_without_exit == ("E1M9",)


class TestDeathmatch:

    def enemies(self, h, count):
        return [h.pack_thing(type=3004)] * count

    def test_at_threshold_is_deathmatch(self, make_wad, h):
        lumps = (h.map_lumps("MAP01", self.enemies(h, 2), [exit_line(h)])
                 + h.map_lumps("MAP02", self.enemies(h, 1), [exit_line(h)]))
        results = analyze_wad(make_wad(lumps), AnalysisSettings(deathmatch_enemy_threshold=3))
        assert results.enemy_count == 3
        assert results.is_deathmatch

    def test_above_threshold_is_not(self, make_wad, h):
        lumps = (h.map_lumps("MAP01", self.enemies(h, 2), [exit_line(h)])
                 + h.map_lumps("MAP02", self.enemies(h, 2), [exit_line(h)]))
        results = analyze_wad(make_wad(lumps), AnalysisSettings(deathmatch_enemy_threshold=3))
        assert results.enemy_count == 4
        assert not results.is_deathmatch

    def test_no_enemies_default_threshold(self, make_wad, h):
        lumps = h.map_lumps("MAP01", [h.pack_thing(type=1), h.pack_thing(type=2)], [exit_line(h)])
        assert analyze_wad(make_wad(lumps)).is_deathmatch

    def test_detection_disabled(self, make_wad, h):
        lumps = h.map_lumps("MAP01", [h.pack_thing(type=1)], [exit_line(h)])
        results = analyze_wad(make_wad(lumps), AnalysisSettings(detect_deathmatch=False))
        assert not results.is_deathmatch

    def test_counts_every_things_lump(self, make_wad, h):
        lumps = h.map_lumps("MAP01", self.enemies(h, 1), [exit_line(h)])
        lumps.append(("THINGS", b''.join(self.enemies(h, 5))))
        assert analyze_wad(make_wad(lumps)).enemy_count == 6

    def test_heretic_monsters(self, make_wad, h):
        things = [h.pack_thing(type=66), h.pack_thing(type=90), h.pack_thing(type=3004)]
        lumps = h.map_lumps("E1M1", things, [exit_line(h)])
        results = analyze_wad(make_wad(lumps), AnalysisSettings(heretic=True))
        assert results.enemy_count == 2

    def test_wad_without_things_is_not_deathmatch(self, make_wad):
        assert not analyze_wad(make_wad([("D_RUNNIN", b'MUS')])).is_deathmatch

    def test_things_lump_without_map_marker_counts(self, make_wad, h):
        results = analyze_wad(make_wad([("THINGS", h.pack_thing(type=1))]))
        assert results.map_list == ()
        assert results.enemy_count == 0
        assert results.is_deathmatch


def test_music_lumps(make_wad, h):
    lumps = [("D_RUNNIN", b'MUS'), ("PLAYPAL", b'x'), ("MUS_E1M1", b'MUS'), ("D_INTER", b'MUS')]
    assert analyze_wad(make_wad(lumps)).music_lumps == ("D_RUNNIN", "MUS_E1M1", "D_INTER")


def test_verbose_output(make_wad, h, capsys):
    lumps = h.map_lumps("MAP01", [h.pack_thing(type=3004)], [exit_line(h)])
    lumps[8] = ("SECTORZ", b'')
    with Wad(make_wad(lumps)) as w:
        Analyzer(w, verbose=True).analyze()
    out = capsys.readouterr().out
    assert "SECTORZ" in out
    assert "MAP01" in out


def test_results_are_frozen(make_wad, h):
    results = analyze_wad(make_wad(h.map_lumps("MAP01")))
    with pytest.raises(AttributeError):
        results.comp_level = CompLevel.MBF21


def test_maps_without_player_start(make_wad, h):
    lumps = (h.map_lumps("MAP01", [h.pack_thing(type=1)], [exit_line(h)])
             + h.map_lumps("MAP02", [h.pack_thing(type=11), h.pack_thing(type=2)], [exit_line(h)]))
    assert analyze_wad(make_wad(lumps)).maps_without_player_start == ("MAP02",)
