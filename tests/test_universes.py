import io
import math

import numpy as np
import pytest

from xsecanalysis.universes import (
    SPLINE_WEIGHT_NAME,
    TUNE_WEIGHT_NAME,
    UNWEIGHTED_NAME,
    FormulaMatch,
    Histogram,
    RecoBin,
    TrueBin,
    TrueBinType,
    Universe,
    UniverseMaker,
    apply_cv_correction_weights,
    load_histograms,
    safe_weight,
)
from xsecanalysis.weights import WeightHandler

CONFIG = """universes stv_tree MySel
2
0 0 "t0"
1 0 "t1"
2
0 0 "r0"
0 0 "r1"
"""

CATEG_1 = "MySel_EventCategory == 1"


def evaluate(expr, entry):
    return [entry.get(expr, 0.0)]


def make_maker(config=CONFIG):
    return UniverseMaker(io.StringIO(config), categories=(1, 2))


def mc_event(**extra):
    event = {
        "is_mc": True,
        "t0": 1.0,
        "r1": 1.0,
        CATEG_1: 1.0,
        "weight_flux": [2.0, 0.5],
        SPLINE_WEIGHT_NAME: [1.0],
        TUNE_WEIGHT_NAME: [1.0],
    }
    event.update(extra)
    return event


def test_safe_weight_keeps_valid_weight():
    assert safe_weight(0.5) == 0.5


@pytest.mark.parametrize("bad", [math.nan, math.inf, -2.0])
def test_safe_weight_replaces_bad_weight(bad):
    assert safe_weight(bad) == 1.0


def test_cv_corrections():
    assert apply_cv_correction_weights(SPLINE_WEIGHT_NAME, 4.0, 2.0, 3.0) == 4.0
    assert apply_cv_correction_weights(TUNE_WEIGHT_NAME, 4.0, 2.0, 3.0) == 4.0 * 2.0
    assert apply_cv_correction_weights("weight_flux", 4.0, 2.0, 3.0) == 4.0 * 2.0 * 3.0


def test_true_bin_round_trip():
    tb = TrueBin(signal_cuts='a && b == "x"', type=TrueBinType.BACKGROUND, block_index=3)
    assert TrueBin.parse(str(tb)) == tb


def test_reco_bin_round_trip():
    rb = RecoBin(selection_cuts="x > 1 && y < 2", type=1, block_index=0)
    assert RecoBin.parse(str(rb)) == rb


def test_config_parsing():
    maker = make_maker()
    assert maker.output_directory_name == "universes"
    assert maker.ntuple_name == "stv_tree"
    assert maker.true_bins[1] == TrueBin("t1", TrueBinType.BACKGROUND, 0)
    assert maker.reco_bin_formulas == ["r0", "r1"]
    assert maker.category_formulas[0] == CATEG_1


def test_truncated_config_raises():
    with pytest.raises(ValueError):
        make_maker("universes stv_tree MySel\n3\n0 0 \"t0\"\n")


def test_non_integer_bin_count_raises():
    with pytest.raises(ValueError):
        make_maker("universes stv_tree MySel\nmany\n")


def test_histogram_errors_match_sumw2():
    hist = Histogram.zeros("h", (2,))
    for w in (2.0, 3.0):
        hist.fill(1, w)
    assert hist.entries == 2
    assert hist.contents[0] == 0.0
    assert hist.sumw2[1] == sum(w * w for w in (2.0, 3.0))
    np.testing.assert_allclose(hist.errors ** 2, hist.sumw2)


def test_universe_fill_places_entries():
    univ = Universe("x", 0, 2, 2, 1)
    univ.fill([FormulaMatch(0, 1.0)], [FormulaMatch(1, 1.0)], [FormulaMatch(0, 1.0)], 1.0)
    assert univ.hist_true.contents.tolist() == [1.0, 0.0]
    assert univ.hist_reco.contents.tolist() == [0.0, 1.0]
    assert univ.hist_2d.contents[0, 1] == 1.0
    assert univ.hist_2d.contents.sum() == 1.0
    assert univ.hist_categ.contents[0, 1] == 1.0
    assert univ.hist_reco2d.contents[1, 1] == 1.0
    assert univ.hist_true2d.contents[0, 0] == 1.0


def test_prepare_universes_sizes():
    maker = make_maker()
    wh = WeightHandler()
    wh.set_branches({"weight_a": [1.0, 2.0, 3.0], "other": [1.0]})
    maker.prepare_universes(wh)
    assert len(maker.universes["weight_a"]) == 3
    assert len(maker.universes[UNWEIGHTED_NAME]) == 1
    assert "other" not in maker.universes


def test_build_universes_fills_weights():
    maker = make_maker()
    maker.build_universes([mc_event()], evaluate)
    flux = maker.universes["weight_flux"]
    assert flux[0].hist_true.contents[0] == 2.0
    assert flux[1].hist_true.contents[0] == 0.5
    assert flux[0].hist_2d.contents[0, 1] == 2.0
    unweighted = maker.universes[UNWEIGHTED_NAME][0]
    assert unweighted.hist_reco.contents.tolist() == [0.0, 1.0]
    assert unweighted.hist_categ.contents[0, 1] == 1.0
    assert unweighted.hist_categ.contents[1].sum() == 0.0


def test_build_universes_applies_cv_corrections():
    maker = make_maker()
    event = mc_event(**{
        "weight_flux": [1.0, 1.0],
        SPLINE_WEIGHT_NAME: [2.0],
        TUNE_WEIGHT_NAME: [3.0],
    })
    maker.build_universes([event], evaluate)
    expected = apply_cv_correction_weights("weight_flux", 1.0, 2.0, 3.0)
    assert maker.universes["weight_flux"][0].hist_reco.contents[1] == expected
    tune_expected = apply_cv_correction_weights(TUNE_WEIGHT_NAME, 3.0, 2.0, 3.0)
    assert maker.universes[TUNE_WEIGHT_NAME][0].hist_reco.contents[1] == safe_weight(
        tune_expected
    )


def test_build_universes_uses_safe_weight():
    maker = make_maker()
    maker.build_universes([mc_event(weight_flux=[math.nan, 1.0])], evaluate)
    assert maker.universes["weight_flux"][0].hist_reco.contents[1] == safe_weight(math.nan)


def test_build_universes_with_named_branches_only():
    maker = make_maker()
    maker.build_universes([mc_event(weight_other=[5.0])], evaluate, ["weight_flux"])
    assert "weight_other" not in maker.universes
    assert SPLINE_WEIGHT_NAME in maker.universes


def test_data_events_leave_truth_empty():
    maker = make_maker()
    maker.build_universes([{"is_mc": False, "r0": 1.0, "t0": 1.0}], evaluate)
    unweighted = maker.universes[UNWEIGHTED_NAME][0]
    assert unweighted.hist_true.entries == 0
    assert unweighted.hist_reco.contents[0] == 1.0


def test_build_without_events_raises():
    with pytest.raises(ValueError):
        make_maker().build_universes([], evaluate)


def test_save_and_load_round_trip(tmp_path):
    maker = make_maker()
    maker.build_universes([mc_event(), mc_event(r0=1.0)], evaluate)
    path = tmp_path / "univ.npz"
    maker.save_histograms(path, "sample")
    loaded = load_histograms(path, "universes", "sample")
    for u_vec in maker.universes.values():
        for univ in u_vec:
            for hist in univ.histograms():
                assert np.array_equal(loaded[hist.name].contents, hist.contents)
                assert np.array_equal(loaded[hist.name].sumw2, hist.sumw2)
                assert loaded[hist.name].entries == hist.entries


def test_data_save_skips_truth(tmp_path):
    maker = make_maker()
    maker.build_universes([{"is_mc": False, "r0": 1.0}], evaluate)
    path = tmp_path / "data.npz"
    maker.save_histograms(path, "data")
    loaded = load_histograms(path, "universes", "data")
    assert "reco_unweighted_0" in loaded
    assert "true_unweighted_0" not in loaded


def test_update_adds_subdirectory(tmp_path):
    path = tmp_path / "univ.npz"
    first = make_maker()
    first.build_universes([mc_event()], evaluate)
    first.save_histograms(path, "a")
    second = make_maker()
    second.build_universes([{"is_mc": False, "r0": 1.0}], evaluate)
    second.save_histograms(path, "b", update_file=True)
    loaded_a = load_histograms(path, "universes", "a")
    loaded_b = load_histograms(path, "universes", "b")
    assert loaded_a["reco_unweighted_0"].contents.tolist() == [0.0, 1.0]
    assert loaded_b["reco_unweighted_0"].contents.tolist() == [1.0, 0.0]


def test_update_with_inconsistent_bins_raises(tmp_path):
    path = tmp_path / "univ.npz"
    first = make_maker()
    first.build_universes([mc_event()], evaluate)
    first.save_histograms(path, "a")
    other = make_maker(CONFIG.replace('"t1"', '"t2"'))
    other.build_universes([mc_event()], evaluate)
    with pytest.raises(ValueError, match="Inconsistent true bin"):
        other.save_histograms(path, "b", update_file=True)


def test_update_with_other_tree_name_raises(tmp_path):
    path = tmp_path / "univ.npz"
    first = make_maker()
    first.build_universes([mc_event()], evaluate)
    first.save_histograms(path, "a")
    other = make_maker(CONFIG.replace("stv_tree", "other_tree"))
    other.build_universes([mc_event()], evaluate)
    with pytest.raises(ValueError, match="Tree name mismatch"):
        other.save_histograms(path, "b", update_file=True)


def test_load_missing_subdirectory_raises(tmp_path):
    path = tmp_path / "univ.npz"
    maker = make_maker()
    maker.build_universes([mc_event()], evaluate)
    maker.save_histograms(path, "a")
    with pytest.raises(KeyError):
        load_histograms(path, "universes", "missing")