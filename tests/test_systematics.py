import numpy as np
import pytest

from xsecanalysis.systematics import MCC9SystematicsCalculator, SystMode
from xsecanalysis.universes import (
    Histogram,
    RecoBin,
    TrueBin,
    TrueBinType,
    Universe,
)

SIG = TrueBinType.SIGNAL
BKG = TrueBinType.BACKGROUND

TRUE_BINS = [TrueBin("sig", SIG, 0), TrueBin("bkg", BKG, 0)]
RECO_BINS = [RecoBin("r0", 0, 0)]


def _universe(name, true, two_d):
    two_d = np.asarray(two_d, dtype=float)
    num_true, num_reco = two_d.shape
    univ = Universe(name, 0, num_true, num_reco)
    univ.hist_true.contents = np.asarray(true, dtype=float)
    univ.hist_2d.contents = two_d
    return univ


@pytest.fixture
def cv():
    return _universe("cv", [10, 7], [[4], [3]])


@pytest.fixture
def varied():
    return _universe("var", [20, 7], [[6], [5]])


def _calc(cv, mode, **kwargs):
    return MCC9SystematicsCalculator(
        TRUE_BINS, RECO_BINS, cv, syst_mode=mode, **kwargs
    )


def test_cv_universe_is_total_prediction(cv):
    calc = _calc(cv, SystMode.FOR_XSEC)
    assert calc.evaluate_observable(cv, 0) == pytest.approx(
        cv.hist_2d.contents[:, 0].sum()
    )


@pytest.mark.parametrize("mode", list(SystMode))
def test_cv_universe_same_in_every_mode(cv, mode):
    reference = _calc(cv, SystMode.FOR_XSEC).evaluate_observable(cv, 0)
    assert _calc(cv, mode).evaluate_observable(cv, 0) == pytest.approx(reference)


def test_background_difference_between_modes(cv, varied):
    full = _calc(cv, SystMode.FOR_XSEC).evaluate_observable(varied, 0)
    response_only = _calc(cv, SystMode.VARY_ONLY_SIGNAL_RESPONSE).evaluate_observable(
        varied, 0
    )
    expected = varied.hist_2d.contents[1, 0] - cv.hist_2d.contents[1, 0]
    assert full - response_only == pytest.approx(expected)


def test_signal_difference_between_modes(cv, varied):
    signal = _calc(cv, SystMode.VARY_ONLY_SIGNAL).evaluate_observable(varied, 0)
    background = _calc(cv, SystMode.VARY_ONLY_BACKGROUND).evaluate_observable(varied, 0)
    expected = varied.hist_2d.contents[0, 0] - cv.hist_2d.contents[0, 0]
    assert signal - background == pytest.approx(expected)


def test_response_mode_scales_cv_true_count(cv, varied):
    calc = _calc(cv, SystMode.VARY_ONLY_SIGNAL_RESPONSE)
    # smearceptance 6/20 applied to 10 CV events, plus 3 CV background
    assert calc.evaluate_observable(varied, 0) == pytest.approx(6.0)


def test_flux_universe_keeps_cv_denominator(cv, varied):
    flux = _calc(cv, SystMode.FOR_XSEC).evaluate_observable(
        varied, 0, flux_universe_index=0
    )
    direct = _calc(cv, SystMode.VARY_BACKGROUND_AND_SIGNAL_DIRECTLY).evaluate_observable(
        varied, 0
    )
    assert flux == pytest.approx(direct)


def test_signal_bins_in_other_blocks_are_ignored():
    true_bins = [TrueBin("a", SIG, 0), TrueBin("b", SIG, 1), TrueBin("c", BKG, 0)]
    cv_a = _universe("cv", [10, 8, 0], [[4], [2], [3]])
    cv_b = _universe("cv", [10, 80, 0], [[4], [50], [3]])
    result_a = MCC9SystematicsCalculator(true_bins, RECO_BINS, cv_a).evaluate_observable(
        cv_a, 0
    )
    result_b = MCC9SystematicsCalculator(true_bins, RECO_BINS, cv_b).evaluate_observable(
        cv_b, 0
    )
    assert result_a == pytest.approx(result_b)


def test_zero_denominator_drops_signal(cv):
    empty = _universe("empty", [0, 7], [[6], [5]])
    calc = _calc(cv, SystMode.FOR_XSEC)
    assert calc.evaluate_observable(empty, 0) == pytest.approx(
        empty.hist_2d.contents[1, 0]
    )


def test_detvar_universe_uses_detvar_cv(cv):
    detvar_cv = _universe("detvar_cv", [5, 7], [[1], [2]])
    detvar = _universe("detvar", [5, 7], [[1], [2]])
    calc = _calc(
        cv,
        SystMode.VARY_ONLY_SIGNAL_RESPONSE,
        detvar_cv_universe=detvar_cv,
        detvar_universes=[detvar],
    )
    assert calc.is_detvar_universe(detvar)
    assert calc.is_detvar_universe(detvar_cv)
    assert not calc.is_detvar_universe(cv)
    assert calc.evaluate_observable(detvar, 0) == pytest.approx(
        detvar_cv.hist_2d.contents[:, 0].sum()
    )


def test_detvar_without_cv_raises(cv):
    detvar = _universe("detvar", [5, 7], [[1], [2]])
    calc = _calc(cv, SystMode.FOR_XSEC, detvar_universes=[detvar])
    with pytest.raises(ValueError):
        calc.evaluate_observable(detvar, 0)


def test_invalid_reco_bin_raises(cv):
    calc = _calc(cv, SystMode.FOR_XSEC)
    with pytest.raises(IndexError):
        calc.evaluate_observable(cv, 1)
    with pytest.raises(IndexError):
        calc.evaluate_observable(cv, -1)


def test_mc_stat_covariance_uses_bin_errors(cv):
    cv.hist_reco2d.fill((0, 0), 2.0)
    cv.hist_reco2d.fill((0, 0), 2.0)
    calc = _calc(cv, SystMode.FOR_XSEC)
    assert calc.evaluate_mc_stat_covariance(cv, 0, 0) == pytest.approx(
        cv.hist_reco2d.errors[0, 0] ** 2
    )
    assert calc.evaluate_mc_stat_covariance(cv, 0, 0) == pytest.approx(8.0)


def test_data_stat_covariance_picks_sample(cv):
    bnb = Histogram.zeros("bnb", (1, 1))
    bnb.fill((0, 0), 3.0)
    ext = Histogram.zeros("ext", (1, 1))
    ext.fill((0, 0), 2.0)
    calc = _calc(cv, SystMode.FOR_XSEC, bnb_data_2d=bnb, ext_data_2d=ext)
    assert calc.evaluate_data_stat_covariance(0, 0, False) == pytest.approx(
        bnb.errors[0, 0] ** 2
    )
    assert calc.evaluate_data_stat_covariance(0, 0, True) == pytest.approx(
        ext.errors[0, 0] ** 2
    )


def test_missing_data_histogram_raises(cv):
    calc = _calc(cv, SystMode.FOR_XSEC)
    with pytest.raises(ValueError):
        calc.evaluate_data_stat_covariance(0, 0, False)