"""Fiducial volume definitions and related normalisation quantities."""

from __future__ import annotations

from dataclasses import dataclass

# Physical constants used for the argon target count
_ARGON_MOLAR_MASS = 39.948  # g/mol
_AVOGADRO = 6.02214076e23  # 1/mol
_LAR_DENSITY = 1.3836  # g/cm^3

# Integrated BNB numu flux per POT in the active volume (numu / cm^2 / POT)
_NUMU_PER_CM2_PER_POT = 7.3762291e-10


@dataclass(frozen=True)
class FiducialVolume:
    """An axis-aligned box in detector coordinates (cm)."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float
    z_min: float
    z_max: float

    def contains(self, x: float, y: float, z: float) -> bool:
        """Return True if the point lies strictly inside the volume."""
        return (
            self.x_min < x < self.x_max
            and self.y_min < y < self.y_max
            and self.z_min < z < self.z_max
        )

    def num_ar_targets(self) -> float:
        """Return the number of argon nuclei inside the volume."""
        volume = (
            (self.x_max - self.x_min)
            * (self.y_max - self.y_min)
            * (self.z_max - self.z_min)
        )
        return volume * _LAR_DENSITY * _AVOGADRO / _ARGON_MOLAR_MASS


def integrated_numu_flux_in_fv(pot: float) -> float:
    """Return the integrated numu flux (numu / cm^2) for a given exposure.

    The flux in the active volume is used as an approximation.
    """
    return pot * _NUMU_PER_CM2_PER_POT