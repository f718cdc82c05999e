import numpy as np
import pytest

from xsecanalysis.unfolder import BlockBins, UnfoldedMeasurement, Unfolder


def _inputs(num_reco=3, num_true=2):
    return (
        np.ones((num_reco, 1)),
        np.eye(num_reco),
        np.ones((num_reco, num_true)),
        np.ones((num_true, 1)),
    )


def test_check_matrices_returns_dimensions():
    assert Unfolder.check_matrices(*_inputs(4, 3)) == (4, 3)


def test_check_matrices_rejects_wrong_signal_length():
    data, cov, smear, prior = _inputs()
    with pytest.raises(ValueError):
        Unfolder.check_matrices(np.ones((2, 1)), cov, smear, prior)


def test_check_matrices_rejects_row_vector_signal():
    data, cov, smear, prior = _inputs()
    with pytest.raises(ValueError):
        Unfolder.check_matrices(data.T, cov, smear, prior)


def test_check_matrices_rejects_non_square_covariance():
    data, cov, smear, prior = _inputs()
    with pytest.raises(ValueError):
        Unfolder.check_matrices(data, np.ones((3, 2)), smear, prior)


def test_check_matrices_rejects_wrong_prior_length():
    data, cov, smear, prior = _inputs()
    with pytest.raises(ValueError):
        Unfolder.check_matrices(data, cov, smear, np.ones((3, 1)))


def test_check_matrices_rejects_one_dimensional_smearcept():
    data, cov, smear, prior = _inputs()
    with pytest.raises(ValueError):
        Unfolder.check_matrices(data, cov, np.ones(3), prior)


def test_unfolder_is_abstract():
    with pytest.raises(TypeError):
        Unfolder()


def test_block_bins_defaults_are_independent():
    a = BlockBins()
    b = BlockBins()
    a.true_bin_indices.append(1)
    assert b.true_bin_indices == []
    assert a.true_bin_indices == [1]


def test_unfolded_measurement_holds_matrices():
    mat = np.eye(2)
    result = UnfoldedMeasurement(mat, mat, mat, mat, mat, mat)
    assert np.array_equal(result.response_matrix, np.eye(2))
    assert result.unfolded_signal is mat