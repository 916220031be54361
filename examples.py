"""Example usage of the BeliefFlow package.

This example demonstrates the core features of the BeliefFlow package including:
- Building a Bayesian network from plain data
- Exact queries with hard and soft evidence
- Marginals of every node, with and without clamping
- Likelihood of the evidence
- Learning CPTs from partially observed, soft data with EM, in full or
  in mini-batch epochs
"""

from beliefflow import (
    BayesianNetwork,
    evidence_probability,
    infer,
    infer_all,
    learn_in_epochs,
    learn_parameters,
)
from beliefflow.core.config import EpochOptions, InferAllOptions


def sprinkler_network():
    """Rain / sprinkler / wet grass."""
    return BayesianNetwork.from_dict({
        "RAIN": {"states": ["T", "F"], "cpt": {"T": 0.2, "F": 0.8}},
        "SPRINKLER": {
            "states": ["T", "F"],
            "parents": ["RAIN"],
            "cpt": [
                {"when": {"RAIN": "T"}, "then": {"T": 0.01, "F": 0.99}},
                {"when": {"RAIN": "F"}, "then": {"T": 0.4, "F": 0.6}},
            ],
        },
        "GRASS_WET": {
            "states": ["T", "F"],
            "parents": ["SPRINKLER", "RAIN"],
            "cpt": [
                {"when": {"SPRINKLER": "T", "RAIN": "T"}, "then": {"T": 0.99, "F": 0.01}},
                {"when": {"SPRINKLER": "T", "RAIN": "F"}, "then": {"T": 0.9, "F": 0.1}},
                {"when": {"SPRINKLER": "F", "RAIN": "T"}, "then": {"T": 0.8, "F": 0.2}},
                {"when": {"SPRINKLER": "F", "RAIN": "F"}, "then": {"T": 0.0, "F": 1.0}},
            ],
        },
    })


def query_example():
    """Demonstrate single queries."""
    print("=" * 60)
    print("Query Example")
    print("=" * 60)

    bn = sprinkler_network()

    print("\n1. Prior")
    print(f"   P(RAIN=T) = {infer(bn, {'RAIN': 'T'}):.4f}")

    print("\n2. Hard evidence")
    p = infer(bn, {"RAIN": "T"}, {"GRASS_WET": "T"})
    print(f"   P(RAIN=T | GRASS_WET=T) = {p:.5f}")

    print("\n3. Soft evidence")
    p = infer(bn, {"SPRINKLER": "T"}, {"RAIN": {"T": 0.3, "F": 0.7}})
    print(f"   P(SPRINKLER=T | RAIN ~ [0.3, 0.7]) = {p:.4f}")

    print("\n4. Evidence likelihood")
    p = evidence_probability(bn, {"GRASS_WET": "T"})
    print(f"   P(GRASS_WET=T) = {p:.5f}")


def infer_all_example():
    """Demonstrate marginals of every node."""
    print("\n" + "=" * 60)
    print("Marginals Example")
    print("=" * 60)

    bn = sprinkler_network()
    given = {"SPRINKLER": "T"}

    print("\n1. Conditioning on SPRINKLER=T")
    for node, dist in infer_all(bn, given).items():
        print(f"   {node:10s} {dist}")

    print("\n2. Clamping SPRINKLER=T (no flow back to RAIN)")
    clamped = infer_all(bn, given, InferAllOptions(clamp_soft_evidence=True, precision=4))
    for node, dist in clamped.items():
        print(f"   {node:10s} {dist}")


def learning_example():
    """Demonstrate EM parameter learning."""
    print("\n" + "=" * 60)
    print("Learning Example")
    print("=" * 60)

    bn = sprinkler_network()
    observations = (
        [{"GRASS_WET": "T", "RAIN": {"T": 0.6, "F": 0.4}}] * 5
        + [{"GRASS_WET": "F"}] * 5
        + [{"SPRINKLER": "T", "GRASS_WET": "T"}] * 2
    )
    result = learn_parameters(bn, observations)

    print(f"\n   Iterations: {result.iterations}, converged: {result.converged}")
    print(f"   Observed log-likelihood: {result.observed_log_likelihoods[-1]:.4f}")
    print(f"   Learned P(RAIN): {result.network['RAIN'].cpt.probabilities}")

    epochs = learn_in_epochs(
        bn, observations, EpochOptions(epochs=10, validation_fraction=0.25, seed=0)
    )
    print(f"\n   After {epochs.epochs} epochs, validation log-likelihood: "
          f"{epochs.validation_log_likelihoods[-1]:.4f}")


if __name__ == "__main__":
    query_example()
    infer_all_example()
    learning_example()

    print("\n" + "=" * 60)
    print("All examples completed successfully!")
    print("=" * 60)
