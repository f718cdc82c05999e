"""Mapping between ntuple branches and :class:`AnalysisEvent` fields.

An ntuple entry is any mapping from input branch names to values. Output
branches are produced as an ordered dictionary of branch names to values.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from .event import AnalysisEvent

# Scalar input branches that are always read: (branch name, event attribute)
_INPUT_SCALARS = (
    ("slpdg", "nu_pdg"),
    ("nslice", "nslice"),
    ("topological_score", "topological_score"),
    ("CosmicIP", "cosmic_impact_parameter"),
    ("reco_nu_vtx_sce_x", "nu_vx"),
    ("reco_nu_vtx_sce_y", "nu_vy"),
    ("reco_nu_vtx_sce_z", "nu_vz"),
    ("n_pfps", "num_pf_particles"),
    ("n_tracks", "num_tracks"),
    ("n_showers", "num_showers"),
    ("nu_pdg", "mc_nu_pdg"),
    ("true_nu_vtx_x", "mc_nu_vx"),
    ("true_nu_vtx_y", "mc_nu_vy"),
    ("true_nu_vtx_z", "mc_nu_vz"),
    ("nu_e", "mc_nu_energy"),
    ("ccnc", "mc_nu_ccnc"),
    ("interaction", "mc_nu_interaction_type"),
    ("true_nu_vtx_sce_x", "mc_nu_sce_vx"),
    ("true_nu_vtx_sce_y", "mc_nu_sce_vy"),
    ("true_nu_vtx_sce_z", "mc_nu_sce_vz"),
)

# Vector input branches that are always read
_INPUT_VECTORS = (
    ("pfp_generation_v", "pfp_generation"),
    ("pfp_trk_daughters_v", "pfp_trk_daughters_count"),
    ("pfp_shr_daughters_v", "pfp_shr_daughters_count"),
    ("trk_score_v", "pfp_track_score"),
    ("pfpdg", "pfp_reco_pdg"),
    ("pfnhits", "pfp_hits"),
    ("pfnplanehits_U", "pfp_hits_u"),
    ("pfnplanehits_V", "pfp_hits_v"),
    ("pfnplanehits_Y", "pfp_hits_y"),
    ("backtracked_pdg", "pfp_true_pdg"),
    ("backtracked_e", "pfp_true_e"),
    ("backtracked_px", "pfp_true_px"),
    ("backtracked_py", "pfp_true_py"),
    ("backtracked_pz", "pfp_true_pz"),
    ("trk_pfp_id_v", "track_pfp_id"),
    ("trk_len_v", "track_length"),
    ("trk_sce_start_x_v", "track_startx"),
    ("trk_sce_start_y_v", "track_starty"),
    ("trk_sce_start_z_v", "track_startz"),
    ("trk_distance_v", "track_start_distance"),
    ("trk_sce_end_x_v", "track_endx"),
    ("trk_sce_end_y_v", "track_endy"),
    ("trk_sce_end_z_v", "track_endz"),
    ("trk_dir_x_v", "track_dirx"),
    ("trk_dir_y_v", "track_diry"),
    ("trk_dir_z_v", "track_dirz"),
    ("trk_theta_v", "track_theta"),
    ("trk_phi_v", "track_phi"),
    ("trk_energy_proton_v", "track_kinetic_energy_p"),
    ("trk_range_muon_mom_v", "track_range_mom_mu"),
    ("trk_mcs_muon_mom_v", "track_mcs_mom_mu"),
    ("trk_llr_pid_v", "track_llr_pid"),
    ("trk_llr_pid_u_v", "track_llr_pid_u"),
    ("trk_llr_pid_v_v", "track_llr_pid_v"),
    ("trk_llr_pid_y_v", "track_llr_pid_y"),
    ("trk_llr_pid_score_v", "track_llr_pid_score"),
    ("mc_pdg", "mc_nu_daughter_pdg"),
    ("mc_E", "mc_nu_daughter_energy"),
    ("mc_px", "mc_nu_daughter_px"),
    ("mc_py", "mc_nu_daughter_py"),
    ("mc_pz", "mc_nu_daughter_pz"),
)

# Shower branches, excluded from some ntuples for blindness
_SHOWER_VECTORS = (
    ("shr_pfp_id_v", "shower_pfp_id"),
    ("shr_start_x_v", "shower_startx"),
    ("shr_start_y_v", "shower_starty"),
    ("shr_start_z_v", "shower_startz"),
    ("shr_dist_v", "shower_start_distance"),
)

# Output scalars written before the vector branches, after the weights
_OUTPUT_SCALARS = (
    ("nu_completeness_from_pfp", "nu_completeness_from_pfp"),
    ("nu_purity_from_pfp", "nu_purity_from_pfp"),
    ("nslice", "nslice"),
    ("topological_score", "topological_score"),
    ("CosmicIP", "cosmic_impact_parameter"),
    ("reco_nu_vtx_sce_x", "nu_vx"),
    ("reco_nu_vtx_sce_y", "nu_vy"),
    ("reco_nu_vtx_sce_z", "nu_vz"),
    ("mc_nu_pdg", "mc_nu_pdg"),
    ("mc_nu_vtx_x", "mc_nu_vx"),
    ("mc_nu_vtx_y", "mc_nu_vy"),
    ("mc_nu_vtx_z", "mc_nu_vz"),
    ("mc_nu_energy", "mc_nu_energy"),
    ("mc_ccnc", "mc_nu_ccnc"),
    ("mc_interaction", "mc_nu_interaction_type"),
)

_OUTPUT_PFP_VECTORS = (
    ("pfp_generation_v", "pfp_generation"),
    ("pfp_trk_daughters_v", "pfp_trk_daughters_count"),
    ("pfp_shr_daughters_v", "pfp_shr_daughters_count"),
    ("trk_score_v", "pfp_track_score"),
    ("pfpdg", "pfp_reco_pdg"),
    ("pfnhits", "pfp_hits"),
    ("pfnplanehits_U", "pfp_hits_u"),
    ("pfnplanehits_V", "pfp_hits_v"),
    ("pfnplanehits_Y", "pfp_hits_y"),
    ("backtracked_pdg", "pfp_true_pdg"),
    ("backtracked_e", "pfp_true_e"),
    ("backtracked_px", "pfp_true_px"),
    ("backtracked_py", "pfp_true_py"),
    ("backtracked_pz", "pfp_true_pz"),
)

_OUTPUT_SHOWER_VECTORS = (
    ("shr_start_x_v", "shower_startx"),
    ("shr_start_y_v", "shower_starty"),
    ("shr_start_z_v", "shower_startz"),
    ("shr_dist_v", "shower_start_distance"),
)

_OUTPUT_TRACK_VECTORS = (
    ("trk_len_v", "track_length"),
    ("trk_sce_start_x_v", "track_startx"),
    ("trk_sce_start_y_v", "track_starty"),
    ("trk_sce_start_z_v", "track_startz"),
    ("trk_distance_v", "track_start_distance"),
    ("trk_sce_end_x_v", "track_endx"),
    ("trk_sce_end_y_v", "track_endy"),
    ("trk_sce_end_z_v", "track_endz"),
    ("trk_dir_x_v", "track_dirx"),
    ("trk_dir_y_v", "track_diry"),
    ("trk_dir_z_v", "track_dirz"),
    ("trk_energy_proton_v", "track_kinetic_energy_p"),
    ("trk_range_muon_mom_v", "track_range_mom_mu"),
    ("trk_mcs_muon_mom_v", "track_mcs_mom_mu"),
)

_OUTPUT_PID_AND_TRUTH_VECTORS = (
    ("trk_llr_pid_v", "track_llr_pid"),
    ("trk_llr_pid_u_v", "track_llr_pid_u"),
    ("trk_llr_pid_v_v", "track_llr_pid_v"),
    ("trk_llr_pid_y_v", "track_llr_pid_y"),
    ("trk_llr_pid_score_v", "track_llr_pid_score"),
    ("mc_pdg", "mc_nu_daughter_pdg"),
    ("mc_E", "mc_nu_daughter_energy"),
    ("mc_px", "mc_nu_daughter_px"),
    ("mc_py", "mc_nu_daughter_py"),
    ("mc_pz", "mc_nu_daughter_pz"),
)

WEIGHT_BRANCH_PREFIX = "weight_"


def _read_scalars(entry: Mapping[str, Any], event: AnalysisEvent, pairs) -> None:
    for branch, attr in pairs:
        if branch in entry:
            setattr(event, attr, entry[branch])


def _read_vectors(entry: Mapping[str, Any], event: AnalysisEvent, pairs) -> None:
    for branch, attr in pairs:
        if branch in entry:
            setattr(event, attr, list(entry[branch]))


def read_event(entry: Mapping[str, Any]) -> AnalysisEvent:
    """Build an :class:`AnalysisEvent` from one ntuple entry.

    Branches that are optional in the input (showers, chi^2 proton PID,
    the systematic weight map) are set to None on the event when absent.
    """
    event = AnalysisEvent()
    _read_scalars(entry, event, _INPUT_SCALARS)
    _read_vectors(entry, event, _INPUT_VECTORS)

    if "shr_pfp_id_v" in entry:
        _read_vectors(entry, event, _SHOWER_VECTORS)
    else:
        for _, attr in _SHOWER_VECTORS:
            setattr(event, attr, None)

    if "trk_pid_chipr_v" in entry:
        event.track_chi2_proton = list(entry["trk_pid_chipr_v"])
    else:
        event.track_chi2_proton = None

    if "weightSpline" in entry:
        event.spline_weight = entry["weightSpline"]
        if "weightTune" in entry:
            event.tuned_cv_weight = entry["weightTune"]

    if "weights" in entry:
        event.mc_weights_map = {
            name: list(values) for name, values in entry["weights"].items()
        }
    else:
        event.mc_weights_map = None

    if "nu_purity_from_pfp" in entry:
        event.nu_purity_from_pfp = entry["nu_purity_from_pfp"]
        if "nu_completeness_from_pfp" in entry:
            event.nu_completeness_from_pfp = entry["nu_completeness_from_pfp"]

    return event


def _write(out: Dict[str, Any], event: AnalysisEvent, pairs) -> None:
    for branch, attr in pairs:
        out[branch] = getattr(event, attr)


def output_branches(event: AnalysisEvent) -> Dict[str, Any]:
    """Return the output branches for an event, in output-tree order."""
    out: Dict[str, Any] = {
        "is_mc": event.is_mc,
        "spline_weight": event.spline_weight,
        "tuned_cv_weight": event.tuned_cv_weight,
    }

    if event.has_weight_map():
        for name in sorted(event.mc_weights_map):
            out[WEIGHT_BRANCH_PREFIX + name] = event.mc_weights_map[name]

    _write(out, event, _OUTPUT_SCALARS)
    _write(out, event, _OUTPUT_PFP_VECTORS)
    if event.has_showers():
        _write(out, event, _OUTPUT_SHOWER_VECTORS)
    _write(out, event, _OUTPUT_TRACK_VECTORS)
    if event.has_chi2_proton():
        out["trk_pid_chipr_v"] = event.track_chi2_proton
    _write(out, event, _OUTPUT_PID_AND_TRUTH_VECTORS)
    return out


def leaf_spec(name: str, value: Any) -> str:
    """Return the leaf specification for a simple branch value.

    Booleans map to ``/O``, integers to ``/I`` and floats to ``/F``. Any
    other value is stored as an object branch and has an empty leaf spec.
    """
    if isinstance(value, bool):
        return f"{name}/O"
    if isinstance(value, int):
        return f"{name}/I"
    if isinstance(value, float):
        return f"{name}/F"
    return ""