"""Uncertainties on a forward-folded differential cross section."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .fiducial import FiducialVolume, integrated_numu_flux_in_fv
from .universes import Histogram, RecoBin, TrueBin, TrueBinType, Universe


def _divide(numerator: float, denominator: float) -> float:
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(numerator) / np.float64(denominator))


class MCC8ForwardFolder:
    """Evaluates the forward-folded cross section in each reco bin.

    The cross section is the background-subtracted data count divided by an
    effective efficiency, the integrated flux, the number of argon targets
    and the reco bin width. Bin indices are zero-based.
    """

    def __init__(
        self,
        true_bins: Sequence[TrueBin],
        reco_bins: Sequence[RecoBin],
        cv_universe: Universe,
        *,
        total_bnb_data_pot: float,
        fiducial_volume: FiducialVolume,
        bnb_data: Optional[Histogram] = None,
        ext_data: Optional[Histogram] = None,
        bnb_data_2d: Optional[Histogram] = None,
        ext_data_2d: Optional[Histogram] = None,
        cv_numu_integrated_flux: Optional[float] = None,
        reco_bin_widths: Optional[Sequence[float]] = None,
    ) -> None:
        self.true_bins = list(true_bins)
        self.reco_bins = list(reco_bins)
        self.cv_universe = cv_universe
        self.total_bnb_data_pot = float(total_bnb_data_pot)
        self.fiducial_volume = fiducial_volume
        self.bnb_data = bnb_data
        self.ext_data = ext_data
        self.bnb_data_2d = bnb_data_2d
        self.ext_data_2d = ext_data_2d
        # numu / POT / cm^2
        if cv_numu_integrated_flux is None:
            cv_numu_integrated_flux = integrated_numu_flux_in_fv(1.0)
        self.cv_numu_integrated_flux = float(cv_numu_integrated_flux)
        if reco_bin_widths is None:
            reco_bin_widths = [1.0] * len(self.reco_bins)
        if len(reco_bin_widths) != len(self.reco_bins):
            raise ValueError("One bin width is needed per reco bin")
        self.reco_bin_widths = [float(w) for w in reco_bin_widths]

    def _reco_bin(self, reco_bin: int) -> RecoBin:
        if not 0 <= reco_bin < len(self.reco_bins):
            raise IndexError("Invalid reco bin")
        return self.reco_bins[reco_bin]

    def effective_efficiency(self, univ: Universe, reco_bin: int) -> float:
        """Return the effective signal efficiency for a reco bin.

        Only signal true bins in the same block as the reco bin contribute.
        """
        rbin = self._reco_bin(reco_bin)
        numerator = 0.0
        denominator = 0.0
        for tb, tbin in enumerate(self.true_bins):
            if tbin.type != TrueBinType.SIGNAL:
                continue
            if tbin.block_index != rbin.block_index:
                continue

            num_j_gen = float(univ.hist_true.contents[tb])
            num_ij = float(univ.hist_2d.contents[tb, reco_bin])
            num_j_sel = float(univ.hist_2d.contents[tb, :].sum())

            if num_j_sel > 0.0:
                denom_term = num_ij * num_j_gen / num_j_sel
            else:
                denom_term = 0.0

            numerator += num_ij
            denominator += denom_term

        return numerator / denominator if denominator > 0.0 else 0.0

    def expected_mc_background(
        self, univ: Universe, reco_bin: int, stat_var: bool = False
    ) -> float:
        """Return the expected MC background in a reco bin.

        With ``stat_var`` the MC statistical variance of that prediction is
        returned instead.
        """
        self._reco_bin(reco_bin)
        total = 0.0
        for tb, tbin in enumerate(self.true_bins):
            if tbin.type != TrueBinType.BACKGROUND:
                continue
            if stat_var:
                total += float(univ.hist_2d.errors[tb, reco_bin]) ** 2
            else:
                total += float(univ.hist_2d.contents[tb, reco_bin])
        return total

    def xsec_scale_factor(
        self, reco_bin: int, flux_factor: Optional[float] = None
    ) -> float:
        """Return the factor that turns event counts into a cross section.

        ``flux_factor`` rescales the CV integrated flux for flux universes.
        """
        self._reco_bin(reco_bin)
        numu_flux = self.cv_numu_integrated_flux
        if flux_factor is not None:
            numu_flux *= flux_factor
        numu_flux *= self.total_bnb_data_pot

        width = self.reco_bin_widths[reco_bin]
        num_ar_targets = self.fiducial_volume.num_ar_targets()
        return _divide(1.0, numu_flux * num_ar_targets * width)

    def forward_folded_xsec(
        self, univ: Universe, reco_bin: int, flux_factor: Optional[float] = None
    ) -> float:
        """Return the forward-folded cross section in a reco bin."""
        self._reco_bin(reco_bin)
        if self.bnb_data is None or self.ext_data is None:
            raise ValueError("Missing BNB or EXT data histogram")
        data_counts = float(self.bnb_data.contents[reco_bin])
        ext_counts = float(self.ext_data.contents[reco_bin])
        mc_bkgd_counts = self.expected_mc_background(univ, reco_bin)

        eff = self.effective_efficiency(univ, reco_bin)
        scaling = self.xsec_scale_factor(reco_bin, flux_factor)

        return _divide(
            (data_counts - ext_counts - mc_bkgd_counts) * scaling, eff
        )

    def evaluate_observable(
        self, univ: Universe, reco_bin: int, flux_factor: Optional[float] = None
    ) -> float:
        """Return the observable for a universe: the forward-folded xsec."""
        return self.forward_folded_xsec(univ, reco_bin, flux_factor)

    def evaluate_mc_stat_covariance(
        self, univ: Universe, reco_bin_a: int, reco_bin_b: int
    ) -> float:
        """Return the MC statistical covariance; correlations are neglected."""
        self._reco_bin(reco_bin_b)
        if reco_bin_a != reco_bin_b:
            return 0.0

        err2 = self.expected_mc_background(univ, reco_bin_a, stat_var=True)
        eff = self.effective_efficiency(univ, reco_bin_a)
        scaling = self.xsec_scale_factor(reco_bin_a)

        if eff <= 0.0:
            return 0.0
        return err2 * (scaling / eff) ** 2

    def evaluate_data_stat_covariance(
        self, reco_bin_a: int, reco_bin_b: int, use_ext: bool
    ) -> float:
        """Return the data statistical covariance between two reco bins."""
        d_hist = self.ext_data_2d if use_ext else self.bnb_data_2d
        if d_hist is None:
            kind = "EXT" if use_ext else "BNB"
            raise ValueError(f"Missing {kind} data histogram")
        self._reco_bin(reco_bin_a)
        self._reco_bin(reco_bin_b)

        cv = self.cv_universe
        err2 = float(d_hist.errors[reco_bin_a, reco_bin_b]) ** 2

        eff_a = self.effective_efficiency(cv, reco_bin_a)
        eff_b = self.effective_efficiency(cv, reco_bin_b)
        scaling_a = self.xsec_scale_factor(reco_bin_a)
        scaling_b = self.xsec_scale_factor(reco_bin_b)

        if eff_a <= 0.0 or eff_b <= 0.0:
            return 0.0
        return err2 * (scaling_a / eff_a) * (scaling_b / eff_b)