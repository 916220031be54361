"""Discrete potential tables.

:class:`FactorTable` holds a non-negative table over a list of named
variables, one numpy axis per variable.  It is the representation of CPT
factors, clique potentials, separator messages and expected counts.

Tables are treated as immutable: every operation returns a new table.
"""

from __future__ import annotations

import itertools
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

import numpy as np


class FactorTable:
    """A discrete factor (potential function) over a set of variables.

    Parameters
    ----------
    variables : list of str
        Variable names that index the axes of *values*.
    states : list of sequence of str
        State labels of each variable (same order as *variables*).
    values : numpy.ndarray
        An N-dimensional array whose shape equals the number of states
        of each variable.
    """

    def __init__(
        self,
        variables: Sequence[str],
        states: Sequence[Sequence[str]],
        values: np.ndarray,
    ) -> None:
        if len(variables) != len(states):
            raise ValueError(
                f"Got {len(variables)} variables but {len(states)} state lists"
            )
        if len(set(variables)) != len(variables):
            raise ValueError(f"Duplicate variables in factor: {list(variables)}")
        values = np.asarray(values, dtype=np.float64)
        expected = tuple(len(s) for s in states)
        if values.shape != expected:
            raise ValueError(
                f"FactorTable shape {values.shape} does not match "
                f"cardinalities {expected}"
            )
        self.variables: List[str] = list(variables)
        self.states: List[Tuple[str, ...]] = [tuple(s) for s in states]
        self.values: np.ndarray = values

    # ----- factory helpers ------------------------------------------------

    @classmethod
    def ones(
        cls,
        variables: Sequence[str],
        states: Sequence[Sequence[str]],
    ) -> "FactorTable":
        """Return the neutral potential (1 everywhere)."""
        return cls(variables, states, np.ones(tuple(len(s) for s in states)))

    # ----- properties -----------------------------------------------------

    @property
    def cardinalities(self) -> List[int]:
        return [len(s) for s in self.states]

    def total(self) -> float:
        return float(self.values.sum())

    def copy(self) -> "FactorTable":
        return FactorTable(self.variables, self.states, self.values.copy())

    def state_index(self, var: str, state: str) -> int:
        """Return the axis index of *state* for variable *var*."""
        if var not in self.variables:
            raise ValueError(f"Variable '{var}' not in factor")
        states = self.states[self.variables.index(var)]
        if state not in states:
            raise ValueError(
                f"State '{state}' is not a state of '{var}'. "
                f"Valid states: {list(states)}"
            )
        return states.index(state)

    # ----- core operations ------------------------------------------------

    def multiply(self, other: "FactorTable") -> "FactorTable":
        """Point-wise multiplication of two factors.

        Shared variables are aligned; non-shared variables are broadcast.
        The result keeps this factor's axes first, so multiplying by a
        factor over a subset of the variables preserves the axis order.
        """
        combined_vars: List[str] = list(self.variables)
        combined_states: List[Tuple[str, ...]] = list(self.states)
        for v, s in zip(other.variables, other.states):
            if v not in combined_vars:
                combined_vars.append(v)
                combined_states.append(s)

        a = self._broadcast_into(combined_vars)
        b = other._broadcast_into(combined_vars)
        return FactorTable(combined_vars, combined_states, a * b)

    def divide(self, other: "FactorTable") -> "FactorTable":
        """Point-wise division by a factor over a subset of the variables.

        Cells whose divisor is zero are set to zero: a zero marginal
        marks an impossible configuration.
        """
        missing = [v for v in other.variables if v not in self.variables]
        if missing:
            raise ValueError(f"Divisor variables {missing} not in factor")
        divisor = other._broadcast_into(self.variables)
        divisor = np.broadcast_to(divisor, self.values.shape)
        quotient = np.zeros_like(self.values)
        np.divide(self.values, divisor, out=quotient, where=divisor != 0)
        return FactorTable(self.variables, self.states, quotient)

    def marginalize_to(self, variables: Sequence[str]) -> "FactorTable":
        """Sum out every variable not in *variables*.

        The axes of the result follow the order of *variables*.
        """
        missing = [v for v in variables if v not in self.variables]
        if missing:
            raise ValueError(f"Variables {missing} not in factor")
        drop = tuple(
            i for i, v in enumerate(self.variables) if v not in variables
        )
        kept = [v for v in self.variables if v in variables]
        summed = self.values.sum(axis=drop) if drop else self.values
        table = FactorTable(
            kept,
            [self.states[self.variables.index(v)] for v in kept],
            summed,
        )
        return table.transpose_to(variables)

    def transpose_to(self, variables: Sequence[str]) -> "FactorTable":
        """Return the same factor with axes reordered to *variables*."""
        if sorted(variables) != sorted(self.variables):
            raise ValueError(
                f"Cannot reorder {self.variables} to {list(variables)}"
            )
        if list(variables) == self.variables:
            return self
        axes = [self.variables.index(v) for v in variables]
        return FactorTable(
            list(variables),
            [self.states[i] for i in axes],
            np.transpose(self.values, axes),
        )

    def restrict(self, var: str, state: str) -> "FactorTable":
        """Zero every cell inconsistent with *var* = *state*.

        The variable keeps its axis.
        """
        axis = self.variables.index(var) if var in self.variables else None
        idx = self.state_index(var, state)
        mask = np.zeros(self.cardinalities[axis])
        mask[idx] = 1.0
        shape = [1] * len(self.variables)
        shape[axis] = -1
        return FactorTable(
            self.variables, self.states, self.values * mask.reshape(shape)
        )

    def normalize(self) -> "FactorTable":
        """Return a copy normalized so that all entries sum to 1."""
        total = self.values.sum()
        if total > 0:
            return FactorTable(self.variables, self.states, self.values / total)
        return self.copy()

    def probability(self, assignment: Mapping[str, str]) -> float:
        """Return the normalised mass of the cells matching *assignment*.

        Variables of the factor absent from *assignment* are summed over.
        An all-zero factor yields ``0.0``.
        """
        index = [slice(None)] * len(self.variables)
        for var, state in assignment.items():
            idx = self.state_index(var, state)
            index[self.variables.index(var)] = idx
        total = self.values.sum()
        if total <= 0:
            return 0.0
        return float(np.sum(self.values[tuple(index)]) / total)

    def rows(self) -> Iterator[Tuple[Dict[str, str], float]]:
        """Iterate over ``(when, then)`` pairs in C (row-major) order."""
        for combo in itertools.product(*self.states):
            index = tuple(
                states.index(state) for states, state in zip(self.states, combo)
            )
            yield dict(zip(self.variables, combo)), float(self.values[index])

    # ----- helpers --------------------------------------------------------

    def _broadcast_into(self, target_vars: List[str]) -> np.ndarray:
        """Reshape values so axes align with *target_vars* (size-1 for missing)."""
        src_axes = [self.variables.index(tv) for tv in target_vars
                    if tv in self.variables]
        extra_axes = [i for i, tv in enumerate(target_vars)
                      if tv not in self.variables]

        transposed = np.transpose(self.values, src_axes)
        # Expand dims for missing variables
        for ea in extra_axes:
            transposed = np.expand_dims(transposed, axis=ea)
        return transposed

    def __repr__(self) -> str:
        return (
            f"FactorTable(variables={self.variables}, "
            f"shape={self.values.shape})"
        )
