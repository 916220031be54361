"""Option objects and numeric defaults shared across the package."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Tolerance for "sums to one" checks on CPT distributions
PROBABILITY_TOLERANCE = 1e-6

DEFAULT_IPFP_EPSILON = 1e-4
DEFAULT_IPFP_MAX_ITERATIONS = 100

DEFAULT_STOP_RATIO = 1e-5
DEFAULT_EM_MAX_ITERATIONS = 100

DEFAULT_EPOCHS = 50
DEFAULT_BATCH_FRACTION = 0.75

DEFAULT_PRECISION = 8


@dataclass(frozen=True)
class IPFPOptions:
    """Convergence settings for iterative proportional fitting.

    Parameters
    ----------
    epsilon : float
        Iteration stops once the largest per-cell change of the clique
        potential falls below this value.
    max_iterations : int
        Safety cap on the number of sweeps over the soft evidence.
    """

    epsilon: float = DEFAULT_IPFP_EPSILON
    max_iterations: int = DEFAULT_IPFP_MAX_ITERATIONS

    def __post_init__(self) -> None:
        if not self.epsilon > 0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")
        if self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be >= 1, got {self.max_iterations}"
            )


@dataclass(frozen=True)
class LearningOptions:
    """Settings for the EM parameter learner.

    Parameters
    ----------
    stop_ratio : float
        Stop when ``|ΔLL| / max(|LL_previous|, 1)`` of the observed-data
        log-likelihood drops below this ratio.
    max_iterations : int
        Safety cap on EM iterations.
    max_workers : int
        Worker threads used by the expectation step.  ``1`` runs the
        observations sequentially in the calling thread.
    ipfp : IPFPOptions
        Options forwarded to soft-evidence fitting during inference.
    """

    stop_ratio: float = DEFAULT_STOP_RATIO
    max_iterations: int = DEFAULT_EM_MAX_ITERATIONS
    max_workers: int = 1
    ipfp: IPFPOptions = field(default_factory=IPFPOptions)

    def __post_init__(self) -> None:
        if self.stop_ratio < 0:
            raise ValueError(
                f"stop_ratio must be non-negative, got {self.stop_ratio}"
            )
        if self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be >= 1, got {self.max_iterations}"
            )
        if self.max_workers < 1:
            raise ValueError(
                f"max_workers must be >= 1, got {self.max_workers}"
            )


@dataclass(frozen=True)
class EpochOptions:
    """Settings for mini-batch EM (:func:`beliefflow.learning.em.learn_in_epochs`).

    Parameters
    ----------
    epochs : int
        Number of EM updates, each on a fresh random batch.
    batch_fraction : float
        Share of all observations drawn (without replacement) from the
        training set for every epoch.
    validation_fraction : float
        Share of all observations held out before training; their
        log-likelihood is reported after every epoch.
    seed : int, optional
        Seed for :func:`numpy.random.default_rng`.
    max_workers : int
        Worker threads used by the expectation step.
    ipfp : IPFPOptions
        Options forwarded to soft-evidence fitting during inference.
    """

    epochs: int = DEFAULT_EPOCHS
    batch_fraction: float = DEFAULT_BATCH_FRACTION
    validation_fraction: float = 0.0
    seed: Optional[int] = None
    max_workers: int = 1
    ipfp: IPFPOptions = field(default_factory=IPFPOptions)

    def __post_init__(self) -> None:
        if self.epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {self.epochs}")
        if not 0 < self.batch_fraction <= 1:
            raise ValueError(
                f"batch_fraction must be in (0, 1], got {self.batch_fraction}"
            )
        if not 0 <= self.validation_fraction < 1:
            raise ValueError(
                "validation_fraction must be in [0, 1), "
                f"got {self.validation_fraction}"
            )
        if self.max_workers < 1:
            raise ValueError(
                f"max_workers must be >= 1, got {self.max_workers}"
            )


@dataclass(frozen=True)
class InferAllOptions:
    """Options for :func:`beliefflow.inference.infer_all.infer_all`.

    Parameters
    ----------
    force : bool
        Bypass the structure and potential caches.
    precision : int
        Number of decimal digits the probabilities are rounded to.
    clamp_soft_evidence : bool
        Treat the evidence as authoritative posteriors: every evidenced
        node becomes a root whose CPT is the given distribution.
    """

    force: bool = False
    precision: int = DEFAULT_PRECISION
    clamp_soft_evidence: bool = False

    def __post_init__(self) -> None:
        if self.precision < 0:
            raise ValueError(
                f"precision must be non-negative, got {self.precision}"
            )
