"""Tests for the chi-square goodness-of-fit statistics."""

import pytest
from numpy.testing import assert_allclose
from scipy import special, stats

from marquardt import ConvergenceError, chi2_cdf
from marquardt._statistics import gammp


@pytest.mark.parametrize(
    "a,x",
    [(0.5, 0.1), (1.0, 1.0), (1.5, 0.7), (3.0, 2.0), (3.0, 10.0), (10.0, 4.0), (25.0, 30.0)],
)
def test_gammp_matches_scipy(a, x):
    assert_allclose(gammp(a, x), special.gammainc(a, x), rtol=1e-10, atol=1e-14)


@pytest.mark.parametrize("dof", [1, 2, 3, 7, 30])
@pytest.mark.parametrize("x", [0.05, 1.0, 4.5, 12.0, 60.0])
def test_chi2_cdf_matches_scipy(x, dof):
    assert_allclose(chi2_cdf(x, dof), stats.chi2.cdf(x, dof), rtol=1e-9, atol=1e-14)


def test_chi2_cdf_at_zero():
    assert chi2_cdf(0.0, 4) == 0.0


def test_chi2_cdf_rejects_invalid_arguments():
    with pytest.raises(ValueError):
        chi2_cdf(1.0, 0)
    with pytest.raises(ValueError):
        chi2_cdf(-1.0, 3)
    with pytest.raises(ValueError):
        gammp(0.0, 1.0)


def test_series_iteration_limit():
    with pytest.raises(ConvergenceError):
        gammp(5.0, 3.0, max_iterations=2)


def test_continued_fraction_iteration_limit():
    with pytest.raises(ConvergenceError):
        gammp(2.5, 10.0, max_iterations=1)
