"""Common state shared by event selections: names, branches and volumes."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import numpy as np

from .fiducial import FiducialVolume


class FiducialVolumeNotDefined(RuntimeError):
    """Raised when a fiducial volume is used before it has been defined."""


class SelectionBase:
    """Base for event selections with their output branches and volumes."""

    def __init__(self, sel_name: str) -> None:
        self.selection_name = sel_name
        self.category_map: Dict[int, Tuple[str, int]] = {}
        self.selected = False
        self.mc_signal = False
        self._fv_true: Optional[FiducialVolume] = None
        self._fv_reco: Optional[FiducialVolume] = None

    @property
    def name(self) -> str:
        """Name of this selection."""
        return self.selection_name

    def define_true_fv(
        self,
        x_min: float,
        x_max: float,
        y_min: float,
        y_max: float,
        z_min: float,
        z_max: float,
    ) -> None:
        """Set the fiducial volume used for MC truth."""
        self._fv_true = FiducialVolume(x_min, x_max, y_min, y_max, z_min, z_max)

    def define_reco_fv(
        self,
        x_min: float,
        x_max: float,
        y_min: float,
        y_max: float,
        z_min: float,
        z_max: float,
    ) -> None:
        """Set the fiducial volume used for reconstructed quantities."""
        self._fv_reco = FiducialVolume(x_min, x_max, y_min, y_max, z_min, z_max)

    def true_fv(self) -> FiducialVolume:
        """Return the true fiducial volume, raising if it is not defined."""
        if self._fv_true is None:
            raise FiducialVolumeNotDefined(
                "True Fiducial volume has not been defined for selection:"
                f"{self.selection_name}"
            )
        return self._fv_true

    def reco_fv(self) -> FiducialVolume:
        """Return the reco fiducial volume, raising if it is not defined."""
        if self._fv_reco is None:
            raise FiducialVolumeNotDefined(
                "Reco Fiducial volume has not been defined for selection:"
                f"{self.selection_name}"
            )
        return self._fv_reco

    def branch_name(self, var_name: str) -> str:
        """Return the variable name prefixed with the selection name."""
        return f"{self.selection_name}_{var_name}"

    def leaf_list(self, var_name: str, value: Any) -> str:
        """Return the leaf list for a simple value, or "" for an object.

        Booleans map to ``/O``, doubles to ``/D``, single-precision floats to
        ``/F``, signed integers to ``/I`` and unsigned 32-bit integers to
        ``/i``.
        """
        suffix = _leaf_suffix(value)
        if suffix is None:
            return ""
        return self.branch_name(var_name) + suffix


def _leaf_suffix(value: Any) -> Optional[str]:
    if isinstance(value, (bool, np.bool_)):
        return "/O"
    if isinstance(value, np.float32):
        return "/F"
    if isinstance(value, (float, np.float64)):
        return "/D"
    if isinstance(value, np.uint32):
        return "/i"
    if isinstance(value, (int, np.int32)):
        return "/I"
    return None