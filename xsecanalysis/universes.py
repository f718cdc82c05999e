"""Filling of systematic-variation universe histograms from ntuple entries.

Each universe holds histograms of event counts in true bins, reco bins and
their combinations. A universe is filled once per event with the event weight
for that universe; a special "unweighted" universe is filled with unit weight.
Selection cuts are expression strings that a caller-supplied ``evaluate``
function turns into one or more per-instance weights for a given entry.
"""

from __future__ import annotations

import itertools
import json
import math
import os
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    TextIO,
    Tuple,
    Union,
)

import numpy as np

from .weights import WeightHandler

SPLINE_WEIGHT_NAME = "weight_splines_general_Spline"
TUNE_WEIGHT_NAME = "weight_TunedCentralValue_UBGenie"
UNWEIGHTED_NAME = "unweighted"

TRUE_BIN_SPEC_NAME = "true_bin_spec"
RECO_BIN_SPEC_NAME = "reco_bin_spec"

# Event weights outside this range (or non-finite) are replaced by one
MIN_WEIGHT = 0.0
MAX_WEIGHT = 30.0

_META_KEY = "__meta__"
_TOKEN_RE = re.compile(r'"((?:[^"\\]|\\.)*)"|(\S+)', re.DOTALL)
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)

Evaluator = Callable[[str, Mapping[str, Any]], Iterable[float]]
PathLike = Union[str, "os.PathLike[str]"]


def safe_weight(weight: float) -> float:
    """Return the weight if it is finite and within limits, otherwise one."""
    if math.isfinite(weight) and MIN_WEIGHT <= weight <= MAX_WEIGHT:
        return weight
    return 1.0


def apply_cv_correction_weights(
    weight_name: str, weight: float, spline_weight: float, tune_weight: float
) -> float:
    """Return the weight multiplied by the needed central-value corrections.

    The spline weight needs no correction, the tune weight is multiplied by
    the spline weight, and every other weight by both.
    """
    if weight_name == SPLINE_WEIGHT_NAME:
        return weight
    if weight_name == TUNE_WEIGHT_NAME:
        return weight * spline_weight
    return weight * spline_weight * tune_weight


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _tokens(text: str) -> Iterator[str]:
    for match in _TOKEN_RE.finditer(text):
        quoted, plain = match.groups()
        yield _ESCAPE_RE.sub(r"\1", quoted) if quoted is not None else plain


def _next_token(tokens: Iterator[str], what: str) -> str:
    try:
        return next(tokens)
    except StopIteration:
        raise ValueError(f"Unexpected end of configuration while reading {what}")


def _next_int(tokens: Iterator[str], what: str) -> int:
    token = _next_token(tokens, what)
    try:
        return int(token)
    except ValueError:
        raise ValueError(f"Expected an integer for {what}, got {token!r}") from None


class TrueBinType(IntEnum):
    """Kind of events that a true bin collects."""

    SIGNAL = 0
    BACKGROUND = 1


@dataclass(frozen=True)
class TrueBin:
    """A bin in true space defined by a cut expression."""

    signal_cuts: str = ""
    type: TrueBinType = TrueBinType.SIGNAL
    block_index: int = -1

    def __str__(self) -> str:
        return f"{int(self.type)} {self.block_index} {_quote(self.signal_cuts)}"

    @classmethod
    def read(cls, tokens: Iterator[str]) -> "TrueBin":
        """Read one bin definition from a token stream."""
        bin_type = TrueBinType(_next_int(tokens, "a true bin type"))
        block = _next_int(tokens, "a true bin block index")
        cuts = _next_token(tokens, "true bin cuts")
        return cls(signal_cuts=cuts, type=bin_type, block_index=block)

    @classmethod
    def parse(cls, text: str) -> "TrueBin":
        """Parse a bin definition from its text form."""
        return cls.read(_tokens(text))


@dataclass(frozen=True)
class RecoBin:
    """A bin in reco space defined by a selection expression."""

    selection_cuts: str = ""
    type: int = 0
    block_index: int = -1

    def __str__(self) -> str:
        return f"{self.type} {self.block_index} {_quote(self.selection_cuts)}"

    @classmethod
    def read(cls, tokens: Iterator[str]) -> "RecoBin":
        """Read one bin definition from a token stream."""
        bin_type = _next_int(tokens, "a reco bin type")
        block = _next_int(tokens, "a reco bin block index")
        cuts = _next_token(tokens, "reco bin cuts")
        return cls(selection_cuts=cuts, type=bin_type, block_index=block)

    @classmethod
    def parse(cls, text: str) -> "RecoBin":
        """Parse a bin definition from its text form."""
        return cls.read(_tokens(text))


@dataclass(frozen=True)
class FormulaMatch:
    """A bin index matched by a formula, with the formula's weight."""

    bin_index: int
    weight: float


@dataclass
class Histogram:
    """Weighted bin contents with their sums of squared weights."""

    name: str
    contents: np.ndarray
    sumw2: np.ndarray
    entries: int = 0

    @classmethod
    def zeros(cls, name: str, shape: Tuple[int, ...]) -> "Histogram":
        return cls(name, np.zeros(shape), np.zeros(shape))

    def fill(self, index: Union[int, Tuple[int, ...]], weight: float) -> None:
        """Add a weighted entry to the bin at ``index`` (zero-based)."""
        self.contents[index] += weight
        self.sumw2[index] += weight * weight
        self.entries += 1

    @property
    def errors(self) -> np.ndarray:
        """Statistical uncertainty of each bin."""
        return np.sqrt(self.sumw2)


class Universe:
    """Histograms of event counts for one systematic variation."""

    def __init__(
        self,
        branch_name: str,
        index: int,
        num_true_bins: int,
        num_reco_bins: int,
        num_categories: int = 0,
    ) -> None:
        self.branch_name = branch_name
        self.index = index
        suffix = f"{branch_name}_{index}"
        self.hist_true = Histogram.zeros(f"true_{suffix}", (num_true_bins,))
        self.hist_reco = Histogram.zeros(f"reco_{suffix}", (num_reco_bins,))
        self.hist_2d = Histogram.zeros(
            f"2d_{suffix}", (num_true_bins, num_reco_bins)
        )
        self.hist_categ = Histogram.zeros(
            f"categ_{suffix}", (num_categories, num_reco_bins)
        )
        self.hist_reco2d = Histogram.zeros(
            f"reco2d_{suffix}", (num_reco_bins, num_reco_bins)
        )
        self.hist_true2d = Histogram.zeros(
            f"true2d_{suffix}", (num_true_bins, num_true_bins)
        )

    def histograms(self) -> List[Histogram]:
        """Return all histograms of this universe."""
        return [
            self.hist_true,
            self.hist_reco,
            self.hist_2d,
            self.hist_categ,
            self.hist_reco2d,
            self.hist_true2d,
        ]

    def fill(
        self,
        matched_true_bins: Sequence[FormulaMatch],
        matched_reco_bins: Sequence[FormulaMatch],
        matched_categories: Sequence[FormulaMatch],
        weight: float,
    ) -> None:
        """Fill the histograms for one event with the given event weight."""
        for tb in matched_true_bins:
            self.hist_true.fill(tb.bin_index, tb.weight * weight)
            for rb in matched_reco_bins:
                self.hist_2d.fill(
                    (tb.bin_index, rb.bin_index), tb.weight * rb.weight * weight
                )
            for other_tb in matched_true_bins:
                self.hist_true2d.fill(
                    (tb.bin_index, other_tb.bin_index),
                    tb.weight * other_tb.weight * weight,
                )

        for rb in matched_reco_bins:
            self.hist_reco.fill(rb.bin_index, rb.weight * weight)
            for cat in matched_categories:
                self.hist_categ.fill(
                    (cat.bin_index, rb.bin_index), cat.weight * rb.weight * weight
                )
            for other_rb in matched_reco_bins:
                self.hist_reco2d.fill(
                    (rb.bin_index, other_rb.bin_index),
                    rb.weight * other_rb.weight * weight,
                )


def _matches(
    formulas: Sequence[str], entry: Mapping[str, Any], evaluate: Evaluator
) -> List[FormulaMatch]:
    return [
        FormulaMatch(idx, float(value))
        for idx, expr in enumerate(formulas)
        for value in evaluate(expr, entry)
        if value
    ]


class UniverseMaker:
    """Builds universe histograms from a binning configuration.

    The configuration holds, as whitespace-separated tokens: the output
    directory name, the ntuple tree name, the name of the selection used for
    event categories, the number of true bins followed by their definitions,
    and the number of reco bins followed by theirs.
    """

    def __init__(self, config_stream: TextIO, categories: Iterable[int] = ()) -> None:
        tokens = _tokens(config_stream.read())
        self.output_directory_name = _next_token(tokens, "the output directory")
        self.ntuple_name = _next_token(tokens, "the tree name")
        self.sel_for_categ_name = _next_token(tokens, "the selection name")

        num_true = _next_int(tokens, "the number of true bins")
        self.true_bins: List[TrueBin] = [TrueBin.read(tokens) for _ in range(num_true)]

        num_reco = _next_int(tokens, "the number of reco bins")
        self.reco_bins: List[RecoBin] = [RecoBin.read(tokens) for _ in range(num_reco)]

        self.categories: List[int] = [int(c) for c in categories]
        self.universes: Dict[str, List[Universe]] = {}

    @classmethod
    def from_file(cls, path: PathLike, categories: Iterable[int] = ()) -> "UniverseMaker":
        """Create a maker from a configuration file."""
        with open(path, encoding="utf-8") as config_file:
            return cls(config_file, categories)

    @property
    def true_bin_formulas(self) -> List[str]:
        return [tb.signal_cuts for tb in self.true_bins]

    @property
    def reco_bin_formulas(self) -> List[str]:
        return [rb.selection_cuts for rb in self.reco_bins]

    @property
    def category_formulas(self) -> List[str]:
        return [
            f"{self.sel_for_categ_name}_EventCategory == {cat}"
            for cat in self.categories
        ]

    def _new_universe(self, name: str, index: int) -> Universe:
        return Universe(
            name, index, len(self.true_bins), len(self.reco_bins), len(self.categories)
        )

    def prepare_universes(self, weight_handler: WeightHandler) -> None:
        """Create one universe per weight in each weight vector, plus the
        unweighted universe."""
        self.universes = {
            name: [self._new_universe(name, u) for u in range(len(weights))]
            for name, weights in weight_handler.weight_map.items()
        }
        self.universes[UNWEIGHTED_NAME] = [self._new_universe(UNWEIGHTED_NAME, 0)]

    def build_universes(
        self,
        events: Iterable[Mapping[str, Any]],
        evaluate: Evaluator,
        universe_branch_names: Optional[Union[str, Iterable[str]]] = None,
    ) -> None:
        """Fill the universes from ntuple entries.

        ``evaluate(expression, entry)`` returns the instance weights of a cut
        expression for the entry; nonzero values count as matches. Weight
        branches are those named in ``universe_branch_names`` or, if it is
        None, all branches starting with ``weight_``.
        """
        iterator = iter(events)
        first = next(iterator, None)
        if first is None:
            raise ValueError(
                "The UniverseMaker object has not been initialized with any"
                " input events yet."
            )

        wh = WeightHandler()
        wh.set_branches(first, universe_branch_names)
        wh.add_branch(first, SPLINE_WEIGHT_NAME, False)
        wh.add_branch(first, TUNE_WEIGHT_NAME, False)

        self.prepare_universes(wh)

        true_formulas = self.true_bin_formulas
        reco_formulas = self.reco_bin_formulas
        categ_formulas = self.category_formulas

        for entry in itertools.chain([first], iterator):
            wh.load_entry(entry)

            matched_reco = _matches(reco_formulas, entry, evaluate)
            matched_categ = _matches(categ_formulas, entry, evaluate)

            matched_true: List[FormulaMatch] = []
            spline_weight = 0.0
            tune_weight = 0.0
            if entry["is_mc"]:
                matched_true = _matches(true_formulas, entry, evaluate)
                wm = wh.weight_map
                if wm:
                    spline_weight = wm[SPLINE_WEIGHT_NAME][0]
                    tune_weight = wm[TUNE_WEIGHT_NAME][0]

            for name, weights in wh.weight_map.items():
                u_vec = self.universes[name]
                for u, w in enumerate(weights):
                    corrected = apply_cv_correction_weights(
                        name, w, spline_weight, tune_weight
                    )
                    u_vec[u].fill(
                        matched_true, matched_reco, matched_categ,
                        safe_weight(corrected),
                    )

            self.universes[UNWEIGHTED_NAME][0].fill(
                matched_true, matched_reco, matched_categ, 1.0
            )

    def _bin_specs(self) -> Tuple[str, str]:
        true_spec = "".join(f"{tb}\n" for tb in self.true_bins)
        reco_spec = "".join(f"{rb}\n" for rb in self.reco_bins)
        return true_spec, reco_spec

    def save_histograms(
        self, path: PathLike, subdirectory_name: str, update_file: bool = False
    ) -> None:
        """Write the universe histograms to an ``.npz`` archive.

        With ``update_file`` an existing archive is extended; its stored
        configuration must match this one, or :class:`ValueError` is raised.
        Histograms of MC truth are written only if the true histogram was
        filled at least once.
        """
        meta: Dict[str, Any] = {}
        arrays: Dict[str, np.ndarray] = {}
        if update_file and os.path.exists(path):
            meta, arrays = _read_archive(path)

        root = meta.setdefault("directories", {}).setdefault(
            self.output_directory_name, {}
        )
        true_spec, reco_spec = self._bin_specs()

        saved_tree = root.setdefault("ntuple_name", self.ntuple_name)
        if saved_tree != self.ntuple_name:
            raise ValueError(
                f"Tree name mismatch: {self.ntuple_name} vs. {saved_tree}"
            )
        if root.setdefault(TRUE_BIN_SPEC_NAME, true_spec) != true_spec:
            raise ValueError("Inconsistent true bin specification!")
        if root.setdefault(RECO_BIN_SPEC_NAME, reco_spec) != reco_spec:
            raise ValueError("Inconsistent reco bin specification!")
        if root.setdefault("sel_for_categ", self.sel_for_categ_name) != (
            self.sel_for_categ_name
        ):
            raise ValueError(
                "Inconsistent selections configured for event categorization"
            )

        sub = root.setdefault("subdirs", {}).setdefault(subdirectory_name, {})
        for u_vec in self.universes.values():
            for univ in u_vec:
                hists = [univ.hist_reco, univ.hist_reco2d]
                if univ.hist_true.entries > 0:
                    hists += [
                        univ.hist_true, univ.hist_2d,
                        univ.hist_categ, univ.hist_true2d,
                    ]
                for hist in hists:
                    key = sub.get(hist.name, {}).get("key")
                    if key is None:
                        key = f"h{meta.get('next_id', 0)}"
                        meta["next_id"] = meta.get("next_id", 0) + 1
                    arrays[f"{key}_contents"] = hist.contents
                    arrays[f"{key}_sumw2"] = hist.sumw2
                    sub[hist.name] = {"key": key, "entries": hist.entries}

        arrays[_META_KEY] = np.array(json.dumps(meta))
        with open(path, "wb") as out_file:
            np.savez(out_file, **arrays)


def _read_archive(path: PathLike) -> Tuple[Dict[str, Any], Dict[str, np.ndarray]]:
    with np.load(path, allow_pickle=False) as archive:
        if _META_KEY not in archive.files:
            raise ValueError(f"{os.fspath(path)} holds no universe histograms")
        meta = json.loads(str(archive[_META_KEY]))
        arrays = {k: archive[k] for k in archive.files if k != _META_KEY}
    return meta, arrays


def load_histograms(
    path: PathLike, directory_name: str, subdirectory_name: str
) -> Dict[str, Histogram]:
    """Read the histograms saved in one subdirectory of an archive."""
    meta, arrays = _read_archive(path)
    try:
        sub = meta["directories"][directory_name]["subdirs"][subdirectory_name]
    except KeyError:
        raise KeyError(
            f"Missing subdirectory {subdirectory_name} in {directory_name}"
        ) from None
    return {
        name: Histogram(
            name,
            arrays[f"{info['key']}_contents"],
            arrays[f"{info['key']}_sumw2"],
            int(info["entries"]),
        )
        for name, info in sub.items()
    }