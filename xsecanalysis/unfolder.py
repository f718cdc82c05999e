"""Common interface and result container for unfolding algorithms."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np


@dataclass
class UnfoldedMeasurement:
    """Output of an unfolding: the unfolded signal and associated matrices."""

    unfolded_signal: np.ndarray
    cov_matrix: np.ndarray
    unfolding_matrix: np.ndarray
    err_prop_matrix: np.ndarray
    add_smear_matrix: np.ndarray
    response_matrix: np.ndarray


@dataclass
class BlockBins:
    """True and reco bin indices that belong to one block of bins."""

    true_bin_indices: List[int] = field(default_factory=list)
    reco_bin_indices: List[int] = field(default_factory=list)


class Unfolder(ABC):
    """Base for algorithms that unfold background-subtracted reco-space
    event counts into true space, possibly with regularisation."""

    @abstractmethod
    def unfold(
        self,
        data_signal: np.ndarray,
        data_covmat: np.ndarray,
        smearcept: np.ndarray,
        prior_true_signal: np.ndarray,
    ) -> UnfoldedMeasurement:
        """Unfold the measured signal and return the result."""

    @staticmethod
    def check_matrices(
        data_signal: np.ndarray,
        data_covmat: np.ndarray,
        smearcept: np.ndarray,
        prior_true_signal: np.ndarray,
    ) -> Tuple[int, int]:
        """Check the dimensions of the unfolding inputs.

        The measured signal and the prior must be column vectors, the
        covariance matrix square, and the smearceptance matrix must map true
        bins (columns) to reco bins (rows). Returns the numbers of reco and
        true bins.
        """
        data_signal = np.asarray(data_signal)
        data_covmat = np.asarray(data_covmat)
        smearcept = np.asarray(smearcept)
        prior_true_signal = np.asarray(prior_true_signal)

        if smearcept.ndim != 2:
            raise ValueError("The smearceptance matrix must be two-dimensional")
        num_reco, num_true = smearcept.shape

        if data_signal.shape != (num_reco, 1):
            raise ValueError(
                "The measured signal must be a column vector with one row"
                " per reco bin of the smearceptance matrix"
            )
        if data_covmat.shape != (num_reco, num_reco):
            raise ValueError(
                "The data covariance matrix must be square with one row"
                " per reco bin"
            )
        if prior_true_signal.shape != (num_true, 1):
            raise ValueError(
                "The prior true signal must be a column vector with one row"
                " per true bin of the smearceptance matrix"
            )
        return num_reco, num_true