"""Covariance matrix results and their storage on disk."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, Union

import numpy as np

TOTAL_MC = "total_mc"

# Labels that only exist for the summed total MC results
_TOTAL_ONLY_LABELS = frozenset({"xsec_all", "xsec_unisim"})

_INDEX_KEY = "index"
_KINDS = ("signal_cov_mat", "bkgd_cov_mat", "reco_signal_cv", "reco_bkgd_cv")


@dataclass
class CovMatResults:
    """Signal and background covariance matrices with their CV predictions.

    Bin indices are zero-based.
    """

    signal_cov_mat: np.ndarray
    bkgd_cov_mat: np.ndarray
    reco_signal_cv: np.ndarray
    reco_bkgd_cv: np.ndarray
    fractional: bool = False
    _checked: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.signal_cov_mat = np.asarray(self.signal_cov_mat, dtype=float)
        self.bkgd_cov_mat = np.asarray(self.bkgd_cov_mat, dtype=float)
        self.reco_signal_cv = np.asarray(self.reco_signal_cv, dtype=float)
        self.reco_bkgd_cv = np.asarray(self.reco_bkgd_cv, dtype=float)
        self.fractional = bool(self.fractional)
        n = self.reco_signal_cv.shape[0] if self.reco_signal_cv.ndim == 1 else -1
        for mat in (self.signal_cov_mat, self.bkgd_cov_mat):
            if mat.shape != (n, n):
                raise ValueError("Covariance matrices must be square and match"
                                 " the number of reco bins")
        if self.reco_bkgd_cv.shape != (n,):
            raise ValueError("CV predictions must have one entry per reco bin")

    def num_reco_bins(self) -> int:
        """Return the number of reco bins."""
        return self.signal_cov_mat.shape[0]

    @staticmethod
    def _frac(covar: float, cv_a: float, cv_b: float, fractional: bool) -> float:
        if fractional:
            return covar
        cv_prod = cv_a * cv_b
        if cv_prod == 0.0:
            return 0.0
        return covar / cv_prod

    def frac_covariance_signal(self, bin_a: int, bin_b: int) -> float:
        """Return the fractional covariance for the signal only."""
        return self._frac(
            float(self.signal_cov_mat[bin_a, bin_b]),
            float(self.reco_signal_cv[bin_a]),
            float(self.reco_signal_cv[bin_b]),
            self.fractional,
        )

    def frac_covariance_bkgd(self, bin_a: int, bin_b: int) -> float:
        """Return the fractional covariance for the background only."""
        return self._frac(
            float(self.bkgd_cov_mat[bin_a, bin_b]),
            float(self.reco_bkgd_cv[bin_a]),
            float(self.reco_bkgd_cv[bin_b]),
            self.fractional,
        )

    def frac_covariance_total(self, bin_a: int, bin_b: int) -> float:
        """Return the fractional covariance for signal plus background."""
        covar_bkgd = float(self.bkgd_cov_mat[bin_a, bin_b])
        covar_signal = float(self.signal_cov_mat[bin_a, bin_b])
        cv_a_bkgd = float(self.reco_bkgd_cv[bin_a])
        cv_b_bkgd = float(self.reco_bkgd_cv[bin_b])
        cv_a_signal = float(self.reco_signal_cv[bin_a])
        cv_b_signal = float(self.reco_signal_cv[bin_b])

        # Fractional covariances must be scaled back before summing
        if self.fractional:
            covar_bkgd *= cv_a_bkgd * cv_b_bkgd
            covar_signal *= cv_a_signal * cv_b_signal

        covar = covar_bkgd + covar_signal
        cv_prod = (cv_a_bkgd + cv_a_signal) * (cv_b_bkgd + cv_b_signal)
        if cv_prod == 0.0:
            return 0.0
        return covar / cv_prod


MatrixMap = Dict[str, Dict[str, CovMatResults]]
PathLike = Union[str, "os.PathLike[str]"]


def save_matrix_map(matrix_map: MatrixMap, path: PathLike) -> None:
    """Write a map of covariance matrices to an ``.npz`` archive at ``path``."""
    arrays: Dict[str, np.ndarray] = {}
    entries: Dict[str, Dict[str, str]] = {}
    labels = set()
    counter = 0
    for ntuple_file, results_map in matrix_map.items():
        file_entries = entries.setdefault(ntuple_file, {})
        for label, results in results_map.items():
            labels.add(label)
            prefix = f"m{counter}"
            counter += 1
            file_entries[label] = prefix
            for kind in _KINDS:
                arrays[f"{prefix}_{kind}"] = getattr(results, kind)
            arrays[f"{prefix}_fractional"] = np.array(results.fractional)

    index = {
        "ntuple_files": list(matrix_map),
        "labels": sorted(labels),
        "entries": entries,
    }
    arrays[_INDEX_KEY] = np.array(json.dumps(index))
    with open(path, "wb") as out_file:
        np.savez(out_file, **arrays)


def load_matrix_map(path: PathLike) -> MatrixMap:
    """Read a map of covariance matrices written by :func:`save_matrix_map`."""
    with np.load(path, allow_pickle=False) as archive:
        if _INDEX_KEY not in archive.files:
            raise ValueError("Missing covMat labels!")
        index = json.loads(str(archive[_INDEX_KEY]))
        labels = index["labels"]
        entries = index["entries"]

        ntuple_files = [f for f in index["ntuple_files"] if f != TOTAL_MC]
        ntuple_files.append(TOTAL_MC)

        retrieved: MatrixMap = {}
        for ntuple_file in ntuple_files:
            if ntuple_file not in entries:
                raise ValueError(f"Missing covMat subdirectory {ntuple_file}")
            file_entries = entries[ntuple_file]
            submap = retrieved.setdefault(ntuple_file, {})
            for label in labels:
                if ntuple_file != TOTAL_MC and label in _TOTAL_ONLY_LABELS:
                    continue
                if label not in file_entries:
                    raise ValueError(
                        f"Missing covariance matrix {label} for {ntuple_file}"
                    )
                prefix = file_entries[label]
                submap[label] = CovMatResults(
                    *(archive[f"{prefix}_{kind}"] for kind in _KINDS),
                    fractional=bool(archive[f"{prefix}_fractional"]),
                )
    return retrieved