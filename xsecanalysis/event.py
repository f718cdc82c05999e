"""Container for the per-event information read from analysis ntuples."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

DEFAULT_WEIGHT = 1.0


def _vec() -> list:
    return []


@dataclass
class AnalysisEvent:
    """Reconstructed and MC truth information for one event.

    Scalars left as None have not been read. Optional vector branches that are
    absent from an input ntuple are set to None so that they are skipped on
    output.
    """

    # Event scores for the numu CC selection
    topological_score: Optional[float] = None
    cosmic_impact_parameter: Optional[float] = None

    # Backtracked hit purity and completeness (MC only)
    nu_completeness_from_pfp: Optional[float] = None
    nu_purity_from_pfp: Optional[float] = None

    # Reco PDG code of the neutrino candidate
    nu_pdg: Optional[int] = None
    # Number of neutrino slices (zero or one)
    nslice: Optional[int] = None

    # Reco neutrino vertex (cm), space-charge corrected
    nu_vx: Optional[float] = None
    nu_vy: Optional[float] = None
    nu_vz: Optional[float] = None

    # Reconstructed object counts
    num_pf_particles: Optional[int] = None
    num_tracks: Optional[int] = None
    num_showers: Optional[int] = None

    # PFParticle properties
    pfp_generation: List[int] = field(default_factory=_vec)
    pfp_trk_daughters_count: List[int] = field(default_factory=_vec)
    pfp_shr_daughters_count: List[int] = field(default_factory=_vec)
    pfp_track_score: List[float] = field(default_factory=_vec)
    pfp_reco_pdg: List[int] = field(default_factory=_vec)
    pfp_hits: List[int] = field(default_factory=_vec)
    pfp_hits_u: List[int] = field(default_factory=_vec)
    pfp_hits_v: List[int] = field(default_factory=_vec)
    pfp_hits_y: List[int] = field(default_factory=_vec)

    # Backtracked truth
    pfp_true_pdg: List[int] = field(default_factory=_vec)
    pfp_true_e: List[float] = field(default_factory=_vec)
    pfp_true_px: List[float] = field(default_factory=_vec)
    pfp_true_py: List[float] = field(default_factory=_vec)
    pfp_true_pz: List[float] = field(default_factory=_vec)

    # Shower properties (absent from some ntuples)
    shower_pfp_id: Optional[List[int]] = field(default_factory=_vec)
    shower_startx: Optional[List[float]] = field(default_factory=_vec)
    shower_starty: Optional[List[float]] = field(default_factory=_vec)
    shower_startz: Optional[List[float]] = field(default_factory=_vec)
    shower_start_distance: Optional[List[float]] = field(default_factory=_vec)

    # Track properties
    track_pfp_id: List[int] = field(default_factory=_vec)
    track_length: List[float] = field(default_factory=_vec)
    track_startx: List[float] = field(default_factory=_vec)
    track_starty: List[float] = field(default_factory=_vec)
    track_startz: List[float] = field(default_factory=_vec)
    track_start_distance: List[float] = field(default_factory=_vec)
    track_endx: List[float] = field(default_factory=_vec)
    track_endy: List[float] = field(default_factory=_vec)
    track_endz: List[float] = field(default_factory=_vec)
    track_dirx: List[float] = field(default_factory=_vec)
    track_diry: List[float] = field(default_factory=_vec)
    track_dirz: List[float] = field(default_factory=_vec)
    track_theta: List[float] = field(default_factory=_vec)
    track_phi: List[float] = field(default_factory=_vec)

    # Proton kinetic energy from range
    track_kinetic_energy_p: List[float] = field(default_factory=_vec)
    track_range_mom_mu: List[float] = field(default_factory=_vec)
    track_mcs_mom_mu: List[float] = field(default_factory=_vec)
    # Absent from some ntuples
    track_chi2_proton: Optional[List[float]] = field(default_factory=_vec)

    # Log-likelihood-ratio particle ID
    track_llr_pid: List[float] = field(default_factory=_vec)
    track_llr_pid_u: List[float] = field(default_factory=_vec)
    track_llr_pid_v: List[float] = field(default_factory=_vec)
    track_llr_pid_y: List[float] = field(default_factory=_vec)
    # Rescaled overall score on [-1, 1]
    track_llr_pid_score: List[float] = field(default_factory=_vec)

    # True neutrino information
    mc_nu_pdg: Optional[int] = None
    mc_nu_vx: Optional[float] = None
    mc_nu_vy: Optional[float] = None
    mc_nu_vz: Optional[float] = None
    mc_nu_sce_vx: Optional[float] = None
    mc_nu_sce_vy: Optional[float] = None
    mc_nu_sce_vz: Optional[float] = None
    mc_nu_energy: Optional[float] = None
    # CC (0) or NC (1)
    mc_nu_ccnc: int = 0
    mc_nu_interaction_type: Optional[int] = None

    # Final-state particles (post-FSI)
    mc_nu_daughter_pdg: List[int] = field(default_factory=_vec)
    mc_nu_daughter_energy: List[float] = field(default_factory=_vec)
    mc_nu_daughter_px: List[float] = field(default_factory=_vec)
    mc_nu_daughter_py: List[float] = field(default_factory=_vec)
    mc_nu_daughter_pz: List[float] = field(default_factory=_vec)

    # Systematic variation weights (absent from some ntuples)
    mc_weights_map: Optional[Dict[str, List[float]]] = field(default_factory=dict)

    # GENIE weights
    spline_weight: float = DEFAULT_WEIGHT
    tuned_cv_weight: float = DEFAULT_WEIGHT

    is_mc: bool = False

    def has_showers(self) -> bool:
        """Return True if reconstructed shower information is available."""
        return self.shower_startx is not None

    def has_chi2_proton(self) -> bool:
        """Return True if the chi^2 proton PID score is available."""
        return self.track_chi2_proton is not None

    def has_weight_map(self) -> bool:
        """Return True if a map of systematic weights is available."""
        return self.mc_weights_map is not None