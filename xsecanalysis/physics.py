"""Kinematic helpers: PDG code classification and single-transverse variables."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

Vector3 = Sequence[float]


def real_sqrt(x: float) -> float:
    """Square root that returns zero instead of NaN for negative input."""
    if x < 0.0:
        return 0.0
    return math.sqrt(x)


def is_meson_or_antimeson(pdg_code: int) -> bool:
    """Return True if the PDG code denotes a meson or antimeson."""
    abs_pdg = abs(pdg_code)

    # Seven-digit codes beginning with 99 are generator-specific
    if abs_pdg >= 9900000:
        return False

    # Mesons have a zero thousands digit and a nonzero hundreds digit
    if (abs_pdg // 1000) % 10 != 0:
        return False
    if (abs_pdg // 100) % 10 == 0:
        return False

    # Parton distribution function codes
    if 901 <= abs_pdg <= 930:
        return False
    # Reggeon and pomeron
    if abs_pdg in (110, 990):
        return False
    # GEANT tracking codes
    if abs_pdg in (998, 999):
        return False
    # Generator-specific pseudoparticle
    if abs_pdg == 100:
        return False

    return True


@dataclass(frozen=True)
class STVs:
    """Single-transverse kinematic imbalance variables."""

    delta_pT: float
    delta_phiT: float
    delta_alphaT: float
    delta_pL: float
    pn: float
    delta_pTx: float
    delta_pTy: float


def _div(num: float, den: float) -> float:
    """Floating-point division following IEEE semantics for a zero divisor."""
    if den != 0.0:
        return num / den
    if num == 0.0 or math.isnan(num):
        return math.nan
    return math.copysign(math.inf, num) * math.copysign(1.0, den)


def _acos(value: float) -> float:
    if math.isnan(value) or not -1.0 <= value <= 1.0:
        return math.nan
    return math.acos(value)


def _unit2(x: float, y: float) -> tuple[float, float]:
    mod = math.hypot(x, y)
    if mod == 0.0:
        return 0.0, 0.0
    return x / mod, y / mod


def compute_stvs(
    p3mu: Vector3,
    p3p: Vector3,
    muon_mass: float,
    proton_mass: float,
    target_mass: float,
    neutron_mass: float,
    binding_energy: float,
) -> STVs:
    """Compute STVs from muon and proton 3-momenta (neutrino along +z)."""
    mux, muy, muz = (float(c) for c in p3mu)
    px, py, pz = (float(c) for c in p3p)

    dx, dy = mux + px, muy + py
    delta_pT = math.hypot(dx, dy)

    mu_t = math.hypot(mux, muy)
    p_t = math.hypot(px, py)

    delta_phiT = _acos(_div(-mux * px - muy * py, mu_t * p_t))
    delta_alphaT = _acos(_div(-mux * dx - muy * dy, mu_t * delta_pT))

    e_mu = math.sqrt(muon_mass**2 + mux**2 + muy**2 + muz**2)
    e_p = math.sqrt(proton_mass**2 + px**2 + py**2 + pz**2)
    r = target_mass + muz + pz - e_mu - e_p

    # Remnant nucleus mass under the CCQE assumption
    mf = target_mass - neutron_mass + binding_energy
    delta_pL = 0.5 * r - _div(mf**2 + delta_pT**2, 2.0 * r)

    pn = math.sqrt(delta_pL**2 + delta_pT**2)

    # x direction: z cross p_mu projected on the transverse plane
    xtx, xty = _unit2(-muy, mux)
    delta_pTx = xtx * dx + xty * dy

    # y direction: opposite the muon transverse momentum
    ytx, yty = _unit2(-mux, -muy)
    delta_pTy = ytx * dx + yty * dy

    return STVs(
        delta_pT=delta_pT,
        delta_phiT=delta_phiT,
        delta_alphaT=delta_alphaT,
        delta_pL=delta_pL,
        pn=pn,
        delta_pTx=delta_pTx,
        delta_pTy=delta_pTy,
    )