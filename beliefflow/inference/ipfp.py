"""Iterative proportional fitting of soft evidence into a clique potential.

Given a potential holding every soft-evidenced variable and a target
distribution for each of them, IPFP repeatedly rescales the table so
each variable's marginal matches its target, one variable at a time,
while keeping the dependence between variables encoded in the table.

See Valtorta, Kim & Vomlel, "Soft evidential update for probabilistic
multiagent systems", IJAR 30 (2002).
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Set, Tuple

import numpy as np

from beliefflow.core.config import DEFAULT_IPFP_EPSILON, DEFAULT_IPFP_MAX_ITERATIONS
from beliefflow.core.factor import FactorTable

logger = logging.getLogger(__name__)


def variable_marginal(potential: FactorTable, variable: str) -> Dict[str, float]:
    """Unnormalised marginal of *variable* as ``{state: mass}``."""
    marginal = potential.marginalize_to([variable])
    return {
        state: float(value)
        for state, value in zip(marginal.states[0], marginal.values)
    }


def ipfp(
    potential: FactorTable,
    soft_evidence: Mapping[str, Mapping[str, float]],
    epsilon: float = DEFAULT_IPFP_EPSILON,
    max_iterations: int = DEFAULT_IPFP_MAX_ITERATIONS,
) -> FactorTable:
    """Fit *potential* to the soft evidence targets.

    Parameters
    ----------
    potential : FactorTable
        Clique potential containing every soft-evidenced variable.  It is
        not modified.
    soft_evidence : mapping
        ``{variable: {state: target}}`` with targets summing to one.
        States missing from a target get weight zero.
    epsilon : float
        Stop once no cell changes by more than this within an iteration.
    max_iterations : int
        Safety cap; reaching it logs a warning and returns the current
        table.

    Returns
    -------
    FactorTable
        Fitted potential, normalised to sum to one when it has any mass.

    Notes
    -----
    When a state has positive target mass but zero current mass no finite
    scaling can satisfy it.  The scale factor for that state is taken as
    zero and a warning is logged once per variable and state.
    """
    values = potential.values.copy()
    targets: Dict[str, Tuple[int, np.ndarray]] = {}
    for variable, weights in soft_evidence.items():
        if variable not in potential.variables:
            raise ValueError(
                f"Soft-evidence variable '{variable}' is not in the potential "
                f"{potential.variables}"
            )
        axis = potential.variables.index(variable)
        states = potential.states[axis]
        targets[variable] = (
            axis,
            np.array([float(weights.get(s, 0.0)) for s in states]),
        )

    warned: Set[Tuple[str, str]] = set()
    iterations = 0
    converged = not targets

    while not converged and iterations < max_iterations:
        iterations += 1
        previous = values.copy()

        for variable, (axis, target) in targets.items():
            other_axes = tuple(i for i in range(values.ndim) if i != axis)
            current = values.sum(axis=other_axes)
            factors = np.zeros_like(target)
            np.divide(target, current, out=factors, where=current > 0)

            impossible = (current <= 0) & (target > 0)
            for idx in np.flatnonzero(impossible):
                state = potential.states[axis][idx]
                if (variable, state) not in warned:
                    warned.add((variable, state))
                    logger.warning(
                        "IPFP cannot fit '%s'='%s': target %.6g but the "
                        "current marginal is 0; scaling by 0 instead",
                        variable, state, target[idx],
                    )

            shape = [1] * values.ndim
            shape[axis] = -1
            values = values * factors.reshape(shape)

        converged = float(np.max(np.abs(values - previous))) < epsilon

    if not converged:
        logger.warning(
            "IPFP stopped after %d iterations without converging (epsilon=%g)",
            iterations, epsilon,
        )
    else:
        logger.debug("IPFP converged after %d iterations", iterations)

    total = values.sum()
    if total > 0:
        values = values / total
    return FactorTable(potential.variables, potential.states, values)
