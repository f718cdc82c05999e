"""Selection and loading of event weight branches from ntuple entries."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

WEIGHT_BRANCH_PREFIX = "weight_"


class MissingBranchError(KeyError):
    """Raised when a required weight branch is absent from the input."""


class WeightHandler:
    """Keeps the vectors of event weights for a set of weight branches.

    Each included branch is assumed to hold a sequence of floating-point
    weights, one per systematic universe. The weight map is kept sorted by
    branch name.
    """

    def __init__(self) -> None:
        self.weight_map: Dict[str, List[float]] = {}

    def _sort(self) -> None:
        self.weight_map = dict(sorted(self.weight_map.items()))

    def set_branches(
        self,
        branches: Mapping[str, Any],
        branch_names: Optional[Union[str, Iterable[str]]] = None,
    ) -> None:
        """Replace the weight map with the selected branches.

        If ``branch_names`` is given (a single name or several), only those
        branches are included. Otherwise every branch whose name starts with
        ``weight_`` is included.
        """
        if isinstance(branch_names, str):
            wanted: Optional[set] = {branch_names}
        elif branch_names is not None:
            wanted = set(branch_names)
        else:
            wanted = None

        self.weight_map = {}
        for name in branches:
            if wanted is not None:
                include = name in wanted
            else:
                include = name.startswith(WEIGHT_BRANCH_PREFIX)
            if include:
                self.weight_map[name] = [float(w) for w in branches[name]]
        self._sort()

    def add_branch(
        self,
        branches: Mapping[str, Any],
        branch_name: str,
        throw_when_missing: bool = True,
    ) -> None:
        """Add a single branch to the weight map.

        Does nothing if the branch is already included. If the branch is
        absent from ``branches``, raises :class:`MissingBranchError` when
        ``throw_when_missing`` is true and otherwise leaves the map unchanged.
        """
        if branch_name in self.weight_map:
            return
        if branch_name not in branches:
            if throw_when_missing:
                raise MissingBranchError(f"Missing TTree branch {branch_name}")
            return
        self.weight_map[branch_name] = [float(w) for w in branches[branch_name]]
        self._sort()

    def load_entry(self, entry: Mapping[str, Any]) -> None:
        """Refresh the weights of every included branch from a new entry."""
        for name in self.weight_map:
            if name not in entry:
                raise MissingBranchError(f"Missing TTree branch {name}")
            self.weight_map[name] = [float(w) for w in entry[name]]