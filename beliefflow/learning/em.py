"""Expectation-Maximization parameter learning.

Each observation in the training set is a (possibly partial, possibly
soft) evidence mapping.  One EM iteration:

* **E-step**: run junction-tree inference for every observation and add
  up, per node, the posterior marginal of its family (parents + node).
  These are the expected sufficient statistics.
* **M-step**: normalise each node's expected counts over its own states
  within every parent context to get the new CPT.

Soft evidence is always passed to inference (where IPFP makes it the
posterior of its variable) and counts are always posterior family
marginals.  For a fully observed node the expected count therefore equals
the soft distribution itself, and for hidden nodes the soft observations
of their neighbours condition the posterior.

The loop is driven by the observed-data log-likelihood
``sum(log P(observation))``, which the E-step gets for free from the
propagated potentials and which EM never decreases.  It stops when that
value decreases, when its relative change drops below ``stop_ratio``, or
at the iteration cap.  The complete-data log-likelihood of every new set
of parameters is recorded alongside as a diagnostic.

:func:`learn_in_epochs` runs mini-batch EM instead: one update per epoch
on a random share of the data, with an optional held-out validation set.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.special import xlogy

from beliefflow.core.config import (
    DEFAULT_STOP_RATIO,
    EpochOptions,
    IPFPOptions,
    LearningOptions,
)
from beliefflow.core.exceptions import JunctionTreeError
from beliefflow.core.factor import FactorTable
from beliefflow.core.types import Evidence
from beliefflow.inference.junction_tree import RawInference, propagate
from beliefflow.networks.dag import BayesianNetwork

logger = logging.getLogger(__name__)

ExpectedCounts = Dict[str, FactorTable]

# Log-likelihood decreases smaller than this are treated as round-off
_LL_TOLERANCE = 1e-9


@dataclass
class LearningResult:
    """Outcome of :func:`learn_parameters`.

    Attributes
    ----------
    network : BayesianNetwork
        The learned network.
    log_likelihoods : list of float
        Complete-data log-likelihood of the parameters produced by each
        maximization step that was kept.
    observed_log_likelihoods : list of float
        Observed-data log-likelihood of the parameters entering each
        iteration; entry ``k`` scores the parameters after ``k`` updates.
    iterations : int
        Number of EM iterations run.
    converged : bool
        ``False`` when the iteration cap stopped the loop or the
        log-likelihood decreased.
    """

    network: BayesianNetwork
    log_likelihoods: List[float] = field(default_factory=list)
    observed_log_likelihoods: List[float] = field(default_factory=list)
    iterations: int = 0
    converged: bool = True


@dataclass
class EpochResult:
    """Outcome of :func:`learn_in_epochs`."""

    network: BayesianNetwork
    validation_log_likelihoods: List[float] = field(default_factory=list)
    epochs: int = 0


# ------------------------------------------------------------------ #
#  Expectation
# ------------------------------------------------------------------ #

def family_marginal(potential: FactorTable, family: Sequence[str]) -> FactorTable:
    """Sum *potential* down to *family*, axes in family order."""
    return potential.marginalize_to(list(family))


def _observation_statistics(
    network: BayesianNetwork,
    evidence: Evidence,
    ipfp_options: Optional[IPFPOptions],
) -> Tuple[ExpectedCounts, float]:
    raw: RawInference = propagate(network, evidence, ipfp_options)
    counts: ExpectedCounts = {}
    for node_id in network.nodes:
        family = network.family(node_id)
        clique = raw.tree.smallest_clique_containing(family)
        if clique is None:
            raise JunctionTreeError(
                f"No clique contains the family {list(family)} of '{node_id}'"
            )
        counts[node_id] = family_marginal(raw.potentials[clique.id], family)
    return counts, raw.log_evidence


def _expected_statistics(
    network: BayesianNetwork,
    evidence_list: Sequence[Evidence],
    max_workers: int,
    ipfp_options: Optional[IPFPOptions],
) -> Tuple[ExpectedCounts, float]:
    """Expected counts and observed-data log-likelihood of *network*."""
    if max_workers > 1 and len(evidence_list) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            partials = list(pool.map(
                lambda ev: _observation_statistics(network, ev, ipfp_options),
                evidence_list,
            ))
    else:
        partials = [
            _observation_statistics(network, ev, ipfp_options) for ev in evidence_list
        ]

    counts: ExpectedCounts = {}
    for node_id in network.nodes:
        family = network.family(node_id)
        total = np.zeros(tuple(len(network.states(n)) for n in family))
        for partial, _ in partials:
            total = total + partial[node_id].values
        counts[node_id] = FactorTable(
            family, [network.states(n) for n in family], total
        )
    log_likelihood = math.fsum(log_evidence for _, log_evidence in partials)
    return counts, log_likelihood


def expectation_step(
    network: BayesianNetwork,
    evidence_list: Sequence[Evidence],
    max_workers: int = 1,
    ipfp_options: Optional[IPFPOptions] = None,
) -> ExpectedCounts:
    """Accumulate expected family counts over all observations.

    Parameters
    ----------
    network : BayesianNetwork
        Current parameters.
    evidence_list : sequence of mapping
        Training observations.
    max_workers : int
        Threads used to run the observations; ``1`` runs them in the
        calling thread.  Partial counts are summed in input order either
        way.
    ipfp_options : IPFPOptions, optional
        Soft-evidence fitting settings.

    Returns
    -------
    dict of str -> FactorTable
        Expected counts per node over ``[parents..., node]``.
    """
    counts, _ = _expected_statistics(network, evidence_list, max_workers, ipfp_options)
    return counts


def data_log_likelihood(
    network: BayesianNetwork,
    evidence_list: Sequence[Evidence],
    ipfp_options: Optional[IPFPOptions] = None,
) -> float:
    """Return ``sum(log P(observation))`` over *evidence_list*.

    Each term is the ``log_evidence`` of the propagated observation (see
    :func:`beliefflow.inference.junction_tree.soft_log_evidence`), so an
    impossible observation makes the total ``-inf``.
    """
    return math.fsum(
        propagate(network, evidence, ipfp_options).log_evidence
        for evidence in evidence_list
    )


# ------------------------------------------------------------------ #
#  Maximization
# ------------------------------------------------------------------ #

def maximization_step(
    network: BayesianNetwork,
    counts: ExpectedCounts,
    keep_empty_contexts: bool = False,
) -> BayesianNetwork:
    """Return a new network whose CPTs are the normalised *counts*.

    Parameters
    ----------
    network : BayesianNetwork
        Current parameters.
    counts : dict of str -> FactorTable
        Output of :func:`expectation_step`.
    keep_empty_contexts : bool
        Keep the current CPT row of a parent context that received no
        count instead of raising.  Mini-batches can miss a context.

    Raises
    ------
    JunctionTreeError
        If a node has no counts, or (unless *keep_empty_contexts*) a
        parent context received zero total count.
    """
    cpts = {}
    for node_id in network.nodes:
        if node_id not in counts:
            raise JunctionTreeError(f"No expected counts for node '{node_id}'")
        table = counts[node_id].transpose_to(network.family(node_id)).values
        totals = table.sum(axis=-1, keepdims=True)
        empty = totals <= 0
        if np.any(empty):
            if not keep_empty_contexts:
                raise JunctionTreeError(
                    f"A parent context of '{node_id}' received zero expected count"
                )
            table = np.where(empty, network.factor(node_id).values, table)
            totals = np.where(empty, 1.0, totals)
        cpts[node_id] = network.cpt_from_values(node_id, table / totals)
    return network.with_cpts(cpts)


def complete_data_log_likelihood(
    network: BayesianNetwork,
    counts: ExpectedCounts,
) -> float:
    """Return ``sum(count * log P(node | parents))`` over every family.

    Cells with zero count contribute nothing, even where the CPT is 0.
    """
    total = 0.0
    for node_id in network.nodes:
        table = counts[node_id].transpose_to(network.family(node_id)).values
        total += float(np.sum(xlogy(table, network.factor(node_id).values)))
    return total


# ------------------------------------------------------------------ #
#  Loop
# ------------------------------------------------------------------ #

def _has_soft_evidence(evidence: Evidence) -> bool:
    return any(isinstance(value, Mapping) for value in evidence.values())


def learn_parameters(
    network: BayesianNetwork,
    evidence_list: Sequence[Evidence],
    options: Optional[LearningOptions] = None,
) -> LearningResult:
    """Run EM and report the log-likelihood traces.

    Iteration ``k`` scores the current parameters while computing their
    expected counts, then replaces them with the maximization step's
    output.  Convergence returns the parameters just scored.  When the
    score drops the previous parameters are returned instead, and the
    complete-data entry of the discarded ones is removed from
    ``log_likelihoods``.

    See :func:`learning_from_evidence` for the arguments.  The input
    network is not modified.
    """
    options = options or LearningOptions()
    current = network.with_cpts({})
    if not evidence_list:
        return LearningResult(current)

    logger.info(
        "Learning from %d observations (stop ratio %g, at most %d iterations)",
        len(evidence_list), options.stop_ratio, options.max_iterations,
    )

    # IPFP stops within epsilon of its fixed point
    soft_slack = options.ipfp.epsilon * sum(
        1 for evidence in evidence_list if _has_soft_evidence(evidence)
    )

    history: List[float] = []
    observed: List[float] = []
    fallback = current
    previous = -math.inf
    converged = False
    iterations = 0

    while iterations < options.max_iterations:
        iterations += 1
        counts, log_likelihood = _expected_statistics(
            current, evidence_list, options.max_workers, options.ipfp
        )

        difference = log_likelihood - previous
        if not math.isfinite(previous):
            ratio = math.inf
        else:
            ratio = abs(difference) / max(abs(previous), 1.0)
        logger.info(
            "EM iteration %d: log-likelihood %.6f, difference %.3g, ratio %.3g",
            iterations, log_likelihood, difference, ratio,
        )

        slack = _LL_TOLERANCE * max(1.0, abs(previous)) + soft_slack
        if math.isfinite(previous) and difference < -slack:
            logger.warning(
                "Log-likelihood decreased at iteration %d (%.6f -> %.6f); "
                "keeping the previous parameters",
                iterations, previous, log_likelihood,
            )
            current = fallback
            history.pop()
            break

        observed.append(log_likelihood)
        if ratio < options.stop_ratio:
            converged = True
            break

        fallback = current
        current = maximization_step(current, counts)
        history.append(complete_data_log_likelihood(current, counts))
        previous = log_likelihood
    else:
        logger.warning(
            "EM stopped after %d iterations without reaching stop ratio %g",
            iterations, options.stop_ratio,
        )

    logger.info("Learning finished after %d iterations", iterations)
    return LearningResult(current, history, observed, iterations, converged)


def learning_from_evidence(
    network: BayesianNetwork,
    evidence_list: Sequence[Evidence],
    stop_ratio: float = DEFAULT_STOP_RATIO,
    options: Optional[LearningOptions] = None,
) -> BayesianNetwork:
    """Estimate the CPTs of *network* from *evidence_list* with EM.

    Parameters
    ----------
    network : BayesianNetwork
        Structure and starting parameters.  Not modified.
    evidence_list : sequence of mapping
        One evidence mapping per observation; hidden nodes are simply
        absent.
    stop_ratio : float
        Stop once ``|ΔLL| / max(|LL_previous|, 1)`` falls below this
        value, ``LL`` being the observed-data log-likelihood.
    options : LearningOptions, optional
        Further settings; its ``stop_ratio`` is replaced by *stop_ratio*.

    Returns
    -------
    BayesianNetwork
        A new network with re-estimated CPTs.  An empty *evidence_list*
        returns an equal copy of *network*.

    Examples
    --------
    >>> learned = learning_from_evidence(
    ...     network, [{"NODE": {"T": 0.12, "F": 0.88}}] * 32
    ... )  # doctest: +SKIP
    """
    options = options or LearningOptions()
    if options.stop_ratio != stop_ratio:
        options = LearningOptions(
            stop_ratio=stop_ratio,
            max_iterations=options.max_iterations,
            max_workers=options.max_workers,
            ipfp=options.ipfp,
        )
    return learn_parameters(network, evidence_list, options).network


def learn_in_epochs(
    network: BayesianNetwork,
    evidence_list: Sequence[Evidence],
    options: Optional[EpochOptions] = None,
) -> EpochResult:
    """Mini-batch EM: one update per epoch on a random batch.

    A ``validation_fraction`` share of the observations is held out once,
    up front.  Every epoch then draws ``batch_fraction`` of all
    observations (at least one, at most the whole training set) without
    replacement, runs one expectation and one maximization step on them,
    and scores the new parameters on the held-out set.  Parent contexts
    a batch never reaches keep their CPT rows.

    Examples
    --------
    >>> result = learn_in_epochs(
    ...     network, data, EpochOptions(epochs=20, validation_fraction=0.2, seed=7)
    ... )  # doctest: +SKIP
    >>> result.validation_log_likelihoods[-1]  # doctest: +SKIP
    """
    options = options or EpochOptions()
    current = network.with_cpts({})
    if not evidence_list:
        return EpochResult(current)

    rng = np.random.default_rng(options.seed)
    order = rng.permutation(len(evidence_list))
    n_validation = int(len(evidence_list) * options.validation_fraction)
    validation = [evidence_list[i] for i in order[:n_validation]]
    training = [evidence_list[i] for i in order[n_validation:]]
    batch_size = min(
        len(training), max(1, int(len(evidence_list) * options.batch_fraction))
    )
    logger.info(
        "Learning in %d epochs: %d training and %d validation observations, "
        "batches of %d",
        options.epochs, len(training), len(validation), batch_size,
    )

    scores: List[float] = []
    for epoch in range(1, options.epochs + 1):
        picked = rng.choice(len(training), size=batch_size, replace=False)
        batch = [training[i] for i in picked]
        counts = expectation_step(current, batch, options.max_workers, options.ipfp)
        current = maximization_step(current, counts, keep_empty_contexts=True)
        if validation:
            score = data_log_likelihood(current, validation, options.ipfp)
            scores.append(score)
            logger.info("Epoch %d: validation log-likelihood %.6f", epoch, score)
        else:
            logger.debug("Epoch %d done", epoch)
    return EpochResult(current, scores, options.epochs)
