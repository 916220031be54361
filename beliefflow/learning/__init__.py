"""Parameter learning for BeliefFlow."""

from beliefflow.learning.em import (
    EpochResult,
    LearningResult,
    data_log_likelihood,
    learn_in_epochs,
    learn_parameters,
    learning_from_evidence,
)

__all__ = [
    "EpochResult",
    "LearningResult",
    "data_log_likelihood",
    "learn_in_epochs",
    "learn_parameters",
    "learning_from_evidence",
]
