"""Chi-square goodness-of-fit statistics.

The chi-square cumulative distribution is evaluated through the regularized
lower incomplete gamma function P(a, x), using its power series for
x < a + 1 and a modified Lentz continued fraction for the complement
otherwise. Both iterations are bounded and raise ConvergenceError when the
bound is reached.
"""

import math

from scipy.special import gammaln

from marquardt._errors import ConvergenceError

EPS = 2.220446049250313e-16
FPMIN = 1e-300
MAX_ITERATIONS = 1000


def _gamma_series(a: float, x: float, max_iterations: int) -> float:
    """P(a, x) from its series representation."""
    ap = a
    term = total = 1.0 / a
    for _ in range(max_iterations):
        ap += 1.0
        term *= x / ap
        total += term
        if abs(term) < abs(total) * EPS:
            return total * math.exp(-x + a * math.log(x) - gammaln(a))
    raise ConvergenceError(
        f"incomplete gamma series did not converge in {max_iterations} iterations "
        f"(a={a}, x={x})"
    )


def _gamma_continued_fraction(a: float, x: float, max_iterations: int) -> float:
    """Q(a, x) = 1 - P(a, x) from its continued fraction representation."""
    b = x + 1.0 - a
    c = 1.0 / FPMIN
    d = 1.0 / b
    h = d
    for i in range(1, max_iterations + 1):
        an = -i * (i - a)
        b += 2.0
        d = an * d + b
        if abs(d) < FPMIN:
            d = FPMIN
        c = b + an / c
        if abs(c) < FPMIN:
            c = FPMIN
        d = 1.0 / d
        delta = d * c
        h *= delta
        if abs(delta - 1.0) < EPS:
            return math.exp(-x + a * math.log(x) - gammaln(a)) * h
    raise ConvergenceError(
        f"incomplete gamma continued fraction did not converge in {max_iterations} "
        f"iterations (a={a}, x={x})"
    )


def gammp(a: float, x: float, max_iterations: int = MAX_ITERATIONS) -> float:
    """Regularized lower incomplete gamma function P(a, x).

    Args:
        a: Shape parameter, must be positive.
        x: Upper integration limit, must be non-negative.
        max_iterations: Bound on the inner series / continued fraction.

    Returns:
        P(a, x) in [0, 1].

    Raises:
        ValueError: If a <= 0 or x < 0.
        ConvergenceError: If the inner iteration does not converge.
    """
    if a <= 0.0:
        raise ValueError(f"a must be positive, got {a}")
    if x < 0.0:
        raise ValueError(f"x must be non-negative, got {x}")
    if x == 0.0:
        return 0.0
    if x < a + 1.0:
        return _gamma_series(a, x, max_iterations)
    return 1.0 - _gamma_continued_fraction(a, x, max_iterations)


def chi2_cdf(x: float, dof: int, max_iterations: int = MAX_ITERATIONS) -> float:
    """Chi-square cumulative distribution function.

    Probability that a chi-square variable with ``dof`` degrees of freedom
    takes a value less than or equal to ``x``.

    Raises:
        ValueError: If dof <= 0 or x < 0.
        ConvergenceError: If the incomplete gamma evaluation does not converge.
    """
    if dof <= 0:
        raise ValueError(f"degrees of freedom must be positive, got {dof}")
    return gammp(0.5 * dof, 0.5 * x, max_iterations)
