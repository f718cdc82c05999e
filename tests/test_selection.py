import numpy as np
import pytest

from xsecanalysis.fiducial import FiducialVolume
from xsecanalysis.selection import FiducialVolumeNotDefined, SelectionBase


def test_name_is_kept():
    assert SelectionBase("CC1mu1p0pi").name == "CC1mu1p0pi"


def test_true_fv_round_trip():
    sel = SelectionBase("Sel")
    sel.define_true_fv(10.0, 20.0, -5.0, 5.0, 0.0, 100.0)
    assert sel.true_fv() == FiducialVolume(10.0, 20.0, -5.0, 5.0, 0.0, 100.0)


def test_reco_fv_round_trip():
    sel = SelectionBase("Sel")
    sel.define_reco_fv(1.0, 2.0, 3.0, 4.0, 5.0, 6.0)
    fv = sel.reco_fv()
    assert (fv.x_min, fv.z_max) == (1.0, 6.0)


def test_true_fv_undefined_raises():
    with pytest.raises(FiducialVolumeNotDefined):
        SelectionBase("Sel").true_fv()


def test_reco_fv_undefined_raises_even_with_true_set():
    sel = SelectionBase("Sel")
    sel.define_true_fv(0, 1, 0, 1, 0, 1)
    with pytest.raises(FiducialVolumeNotDefined):
        sel.reco_fv()


def test_branch_name_is_prefixed():
    assert SelectionBase("Dummy").branch_name("Pt") == "Dummy_Pt"


@pytest.mark.parametrize(
    "value, suffix",
    [
        (True, "/O"),
        (np.bool_(False), "/O"),
        (1.5, "/D"),
        (np.float64(2.0), "/D"),
        (np.float32(2.0), "/F"),
        (3, "/I"),
        (np.int32(3), "/I"),
        (np.uint32(3), "/i"),
    ],
)
def test_leaf_list_for_simple_types(value, suffix):
    assert SelectionBase("Dummy").leaf_list("var", value) == "Dummy_var" + suffix


def test_leaf_list_empty_for_objects():
    assert SelectionBase("Dummy").leaf_list("vec", [1.0, 2.0]) == ""


def test_category_map_starts_empty_and_is_per_instance():
    a = SelectionBase("A")
    b = SelectionBase("B")
    a.category_map[1] = ("signal", 2)
    assert b.category_map == {}
    assert a.category_map == {1: ("signal", 2)}