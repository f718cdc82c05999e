"""Reco-space event counts in systematic universes for covariance matrices.

The default recipe (:attr:`SystMode.FOR_XSEC`) suits unfolding: systematic
variations enter the background directly but reach the signal only through
the response (smearceptance) matrix.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Optional, Sequence

from .universes import Histogram, RecoBin, TrueBin, TrueBinType, Universe


class SystMode(Enum):
    """Which parts of the prediction a systematic universe may vary."""

    FOR_XSEC = auto()
    VARY_ONLY_BACKGROUND = auto()
    VARY_ONLY_SIGNAL_RESPONSE = auto()
    VARY_ONLY_SIGNAL = auto()
    VARY_BACKGROUND_AND_SIGNAL_DIRECTLY = auto()


# Modes in which the expected signal is the varied smearceptance times CV
_SIGNAL_VIA_RESPONSE = frozenset(
    {SystMode.FOR_XSEC, SystMode.VARY_ONLY_SIGNAL_RESPONSE}
)
# Modes in which the universe's own signal prediction is used
_SIGNAL_DIRECT = frozenset(
    {SystMode.VARY_ONLY_SIGNAL, SystMode.VARY_BACKGROUND_AND_SIGNAL_DIRECTLY}
)
# Modes in which the universe's own background prediction is used
_BACKGROUND_VARIED = frozenset(
    {
        SystMode.FOR_XSEC,
        SystMode.VARY_ONLY_BACKGROUND,
        SystMode.VARY_BACKGROUND_AND_SIGNAL_DIRECTLY,
    }
)
# Modes in which the background is held at its CV prediction
_BACKGROUND_CV = frozenset(
    {SystMode.VARY_ONLY_SIGNAL, SystMode.VARY_ONLY_SIGNAL_RESPONSE}
)


class MCC9SystematicsCalculator:
    """Evaluates the total (signal plus background) reco event count per bin.

    Bin indices are zero-based. Universes that describe detector variations
    are compared with the detector-variation CV universe instead of the
    ordinary CV universe.
    """

    def __init__(
        self,
        true_bins: Sequence[TrueBin],
        reco_bins: Sequence[RecoBin],
        cv_universe: Universe,
        *,
        detvar_cv_universe: Optional[Universe] = None,
        detvar_universes: Sequence[Universe] = (),
        bnb_data_2d: Optional[Histogram] = None,
        ext_data_2d: Optional[Histogram] = None,
        syst_mode: SystMode = SystMode.FOR_XSEC,
    ) -> None:
        self.true_bins = list(true_bins)
        self.reco_bins = list(reco_bins)
        self.cv_universe = cv_universe
        self.detvar_cv_universe = detvar_cv_universe
        self.detvar_universes = list(detvar_universes)
        self.bnb_data_2d = bnb_data_2d
        self.ext_data_2d = ext_data_2d
        self.syst_mode = syst_mode

    def is_detvar_universe(self, univ: Universe) -> bool:
        """Return True if the universe is a detector variation or its CV."""
        if self.detvar_cv_universe is not None and univ is self.detvar_cv_universe:
            return True
        return any(univ is other for other in self.detvar_universes)

    def _cv_for(self, univ: Universe) -> Universe:
        if not self.is_detvar_universe(univ):
            return self.cv_universe
        if self.detvar_cv_universe is None:
            raise ValueError("Missing detector-variation CV universe")
        return self.detvar_cv_universe

    def _reco_bin(self, reco_bin: int) -> RecoBin:
        if not 0 <= reco_bin < len(self.reco_bins):
            raise IndexError(f"Invalid reco bin {reco_bin}")
        return self.reco_bins[reco_bin]

    def evaluate_observable(
        self, univ: Universe, reco_bin: int, flux_universe_index: int = -1
    ) -> float:
        """Return the expected number of events in a reco bin for a universe.

        Signal true bins outside the reco bin's block are ignored to avoid
        double counting. For flux universes (``flux_universe_index >= 0``)
        the smearceptance denominator is kept at the CV expectation.
        """
        rbin = self._reco_bin(reco_bin)
        cv_univ = self._cv_for(univ)
        mode = self.syst_mode

        reco_bin_events = 0.0
        for tb, tbin in enumerate(self.true_bins):
            if tbin.type == TrueBinType.SIGNAL:
                if tbin.block_index != rbin.block_index:
                    continue

                denom_cv = float(cv_univ.hist_true.contents[tb])
                numer_cv = float(cv_univ.hist_2d.contents[tb, reco_bin])
                numer = float(univ.hist_2d.contents[tb, reco_bin])
                denom = float(univ.hist_true.contents[tb])

                if flux_universe_index >= 0:
                    denom = denom_cv

                smearcept = numer / denom if denom > 0.0 else 0.0

                if mode in _SIGNAL_VIA_RESPONSE:
                    expected_signal = smearcept * denom_cv
                elif mode in _SIGNAL_DIRECT:
                    expected_signal = numer
                elif mode is SystMode.VARY_ONLY_BACKGROUND:
                    expected_signal = numer_cv
                else:
                    raise ValueError(f"Unrecognized SystMode value {mode!r}")
                reco_bin_events += expected_signal

            elif tbin.type == TrueBinType.BACKGROUND:
                if mode in _BACKGROUND_VARIED:
                    reco_bin_events += float(univ.hist_2d.contents[tb, reco_bin])
                elif mode in _BACKGROUND_CV:
                    reco_bin_events += float(cv_univ.hist_2d.contents[tb, reco_bin])
                else:
                    raise ValueError(f"Unrecognized SystMode value {mode!r}")

        return reco_bin_events

    def evaluate_mc_stat_covariance(
        self, univ: Universe, reco_bin_a: int, reco_bin_b: int
    ) -> float:
        """Return the MC statistical covariance between two reco bins."""
        self._reco_bin(reco_bin_a)
        self._reco_bin(reco_bin_b)
        err = float(univ.hist_reco2d.errors[reco_bin_a, reco_bin_b])
        return err * err

    def evaluate_data_stat_covariance(
        self, reco_bin_a: int, reco_bin_b: int, use_ext: bool
    ) -> float:
        """Return the data statistical covariance between two reco bins.

        Uses the EXT (beam-off) data if ``use_ext`` is true, otherwise the
        beam-on data.
        """
        d_hist = self.ext_data_2d if use_ext else self.bnb_data_2d
        if d_hist is None:
            kind = "EXT" if use_ext else "BNB"
            raise ValueError(f"Missing {kind} data histogram")
        self._reco_bin(reco_bin_a)
        self._reco_bin(reco_bin_b)
        err = float(d_hist.errors[reco_bin_a, reco_bin_b])
        return err * err