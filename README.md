# xsecanalysis

Tools for measuring neutrino cross sections from reconstructed event
samples. The package covers fiducial-volume checks, kinematic helpers, a
per-event record with its mapping to named columns, systematic weight
handling, filling of systematic-variation universe histograms, covariance
matrix storage, and the evaluation of reco-space observables and
statistical covariances for systematic studies.

## What is inside

| Module | Purpose |
| --- | --- |
| `xsecanalysis.fiducial` | `FiducialVolume` (strict point containment with `contains`, argon target count with `num_ar_targets`) and `integrated_numu_flux_in_fv` |
| `xsecanalysis.physics` | `real_sqrt`, `is_meson_or_antimeson` and `compute_stvs`, which returns transverse kinematic imbalance variables as an `STVs` record |
| `xsecanalysis.event` | `AnalysisEvent`, the per-event record of reconstructed and true quantities, with `has_showers`, `has_chi2_proton` and `has_weight_map` |
| `xsecanalysis.branches` | `read_event` (mapping of input column names to an `AnalysisEvent`), `output_branches` (ordered output columns) and `leaf_spec` |
| `xsecanalysis.weights` | `WeightHandler`, which collects vectors of systematic weights from `weight_` columns or named ones, and `MissingBranchError` |
| `xsecanalysis.covariance` | `CovMatResults` (signal, background and total fractional covariances), with `save_matrix_map` and `load_matrix_map` to and from `.npz` archives |
| `xsecanalysis.unfolder` | The abstract `Unfolder` base class with its `check_matrices` input check, `UnfoldedMeasurement` and `BlockBins` |
| `xsecanalysis.selection` | `SelectionBase`, the base for event selections (fiducial volumes, branch names, leaf lists), and `FiducialVolumeNotDefined` |
| `xsecanalysis.universes` | `TrueBin`, `RecoBin`, `TrueBinType`, `FormulaMatch`, `Histogram`, `Universe` and `UniverseMaker`, plus `safe_weight`, `apply_cv_correction_weights` and `load_histograms` |
| `xsecanalysis.systematics` | `MCC9SystematicsCalculator` and its `SystMode` recipes |
| `xsecanalysis.forward_folder` | `MCC8ForwardFolder`, for forward-folded cross sections and their statistical covariances |

## Examples

Kinematic helpers:

```python
from xsecanalysis.physics import real_sqrt, is_meson_or_antimeson

real_sqrt(-4.0)               # 0.0 instead of NaN
real_sqrt(9.0)                # 3.0
is_meson_or_antimeson(211)    # True: charged pion
is_meson_or_antimeson(2212)   # False: proton
```

Fiducial volume and expected flux for a beam exposure in protons on target:

```python
from xsecanalysis.fiducial import FiducialVolume, integrated_numu_flux_in_fv

fv = FiducialVolume(21.5, 234.85, -95.0, 95.0, 21.5, 966.8)
fv.contains(100.0, 0.0, 500.0)          # True
targets = fv.num_ar_targets()
flux = integrated_numu_flux_in_fv(1.0e20)   # numu / cm^2
```

Filling universe histograms. Cut expressions are evaluated by a function
you supply, which returns the instance weights of an expression for one
entry; nonzero values count as matches. The configuration is a stream of
whitespace-separated tokens: output directory, tree name, selection name,
the number of true bins and their definitions (`type block "cuts"`), then
the same for reco bins.

```python
import io
from xsecanalysis.universes import UniverseMaker

config = io.StringIO(
    'universes stv_tree MySel 1 0 0 "mc_signal" 1 0 0 "reco_ok"'
)
maker = UniverseMaker(config)

def evaluate(expression, entry):
    return [float(entry[expression])]

events = [{
    "is_mc": True,
    "mc_signal": 1,
    "reco_ok": 1,
    "weight_splines_general_Spline": [1.0],
    "weight_TunedCentralValue_UBGenie": [1.0],
    "weight_flux": [1.0, 1.2],
}]
maker.build_universes(events, evaluate)
maker.save_histograms("universes.npz", "sample")
```

Fractional covariances:

```python
from xsecanalysis.covariance import CovMatResults

results = CovMatResults(
    signal_cov_mat=[[4.0, 0.0], [0.0, 9.0]],
    bkgd_cov_mat=[[1.0, 0.0], [0.0, 1.0]],
    reco_signal_cv=[2.0, 3.0],
    reco_bkgd_cv=[1.0, 1.0],
)
results.frac_covariance_signal(0, 0)   # 1.0
```

Bin indices are zero-based throughout.

## What the package does not do

- It contains no concrete unfolding algorithm: `Unfolder` is an abstract
  base class that defines the interface and checks input dimensions.
- It provides no concrete event selections, event category definitions or
  binning-scheme definitions; `SelectionBase` only supplies shared state.
- It does not read or write any particular ntuple file format. Events are
  plain mappings from column names to values, cut expressions are evaluated
  by a caller-supplied function, and histograms and covariance matrices are
  stored as NumPy `.npz` archives.
- It has no command-line programs or plotting.

## Tests

The test suite uses pytest and is installed with the `test` extra.