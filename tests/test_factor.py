"""Tests for beliefflow/core/factor.py.

Covers:
- FactorTable: construction, multiply, divide, marginalize_to, restrict,
  normalize
- Axis ordering of marginalize_to / transpose_to
- Probability read-out and row enumeration
"""

from __future__ import annotations

import numpy as np
import pytest

from beliefflow.core.factor import FactorTable

AB = [("a0", "a1"), ("b0", "b1")]


class TestFactorTable:
    """Tests for the FactorTable class."""

    def test_create_factor(self):
        """FactorTable stores variables, states, and values."""
        f = FactorTable(["A"], [("x", "y", "z")], np.array([0.2, 0.5, 0.3]))
        assert f.variables == ["A"]
        assert f.cardinalities == [3]

    def test_create_factor_shape_mismatch(self):
        """ValueError when shape doesn't match the state lists."""
        with pytest.raises(ValueError, match="does not match"):
            FactorTable(["A", "B"], [("a0", "a1"), ("b0", "b1", "b2")], np.ones((2, 2)))

    def test_duplicate_variables(self):
        with pytest.raises(ValueError, match="Duplicate"):
            FactorTable(["A", "A"], AB, np.ones((2, 2)))

    def test_multiply_shared_variable(self):
        """Multiply two factors with a shared variable."""
        f1 = FactorTable(["A", "B"], AB, np.array([[0.3, 0.7], [0.6, 0.4]]))
        f2 = FactorTable(["B", "C"], [("b0", "b1"), ("c0", "c1")],
                         np.array([[0.1, 0.9], [0.8, 0.2]]))
        product = f1.multiply(f2)
        assert product.variables == ["A", "B", "C"]
        assert product.values.shape == (2, 2, 2)
        assert product.values[1, 0, 1] == pytest.approx(0.6 * 0.9)

    def test_multiply_keeps_own_axis_order(self):
        """Multiplying by a factor over a subset keeps the axes."""
        f1 = FactorTable(["A", "B"], AB, np.ones((2, 2)))
        f2 = FactorTable(["B"], [("b0", "b1")], np.array([2.0, 3.0]))
        product = f1.multiply(f2)
        assert product.variables == ["A", "B"]
        np.testing.assert_allclose(product.values, [[2.0, 3.0], [2.0, 3.0]])

    def test_divide_by_zero_gives_zero(self):
        """Cells divided by zero become 0, never NaN."""
        f = FactorTable(["A", "B"], AB, np.array([[1.0, 2.0], [3.0, 4.0]]))
        d = FactorTable(["B"], [("b0", "b1")], np.array([0.0, 2.0]))
        q = f.divide(d)
        np.testing.assert_allclose(q.values, [[0.0, 1.0], [0.0, 2.0]])
        assert not np.any(np.isnan(q.values))

    def test_divide_zero_by_zero(self):
        f = FactorTable(["A"], [("a0", "a1")], np.array([0.0, 1.0]))
        q = f.divide(FactorTable(["A"], [("a0", "a1")], np.array([0.0, 0.5])))
        np.testing.assert_allclose(q.values, [0.0, 2.0])

    def test_divide_unknown_variable(self):
        f = FactorTable(["A"], [("a0", "a1")], np.ones(2))
        with pytest.raises(ValueError, match="not in factor"):
            f.divide(FactorTable(["Z"], [("z0", "z1")], np.ones(2)))

    def test_marginalize(self):
        """Marginalize a variable out of a factor."""
        f = FactorTable(["A", "B"], AB, np.array([[0.3, 0.7], [0.6, 0.4]]))
        m = f.marginalize_to(["A"])
        assert m.variables == ["A"]
        np.testing.assert_allclose(m.values, [1.0, 1.0])

    def test_marginalize_missing_variable(self):
        """ValueError when marginalising a variable not in the factor."""
        f = FactorTable(["A"], [("a0", "a1")], np.array([0.5, 0.5]))
        with pytest.raises(ValueError, match="not in factor"):
            f.marginalize_to(["A", "Z"])

    def test_marginalize_to_follows_requested_order(self):
        values = np.arange(8, dtype=float).reshape(2, 2, 2)
        f = FactorTable(["A", "B", "C"], AB + [("c0", "c1")], values)
        m = f.marginalize_to(["C", "A"])
        assert m.variables == ["C", "A"]
        np.testing.assert_allclose(m.values, values.sum(axis=1).T)

    def test_transpose_to_invalid(self):
        f = FactorTable(["A", "B"], AB, np.ones((2, 2)))
        with pytest.raises(ValueError, match="Cannot reorder"):
            f.transpose_to(["A", "C"])

    def test_restrict_keeps_axis(self):
        f = FactorTable(["A", "B"], AB, np.array([[0.3, 0.7], [0.6, 0.4]]))
        r = f.restrict("B", "b1")
        assert r.variables == ["A", "B"]
        np.testing.assert_allclose(r.values, [[0.0, 0.7], [0.0, 0.4]])

    def test_restrict_unknown_state(self):
        f = FactorTable(["A"], [("a0", "a1")], np.ones(2))
        with pytest.raises(ValueError, match="Valid states"):
            f.restrict("A", "a9")

    def test_normalize(self):
        """Normalise a factor so entries sum to 1."""
        f = FactorTable(["A"], [("x", "y", "z")], np.array([2.0, 3.0, 5.0]))
        n = f.normalize()
        np.testing.assert_allclose(n.values, [0.2, 0.3, 0.5])

    def test_normalize_zero(self):
        """Normalising an all-zero factor returns all zeros."""
        f = FactorTable(["A"], [("a0", "a1")], np.array([0.0, 0.0]))
        np.testing.assert_allclose(f.normalize().values, [0.0, 0.0])

    def test_operations_do_not_mutate(self):
        values = np.array([[0.3, 0.7], [0.6, 0.4]])
        f = FactorTable(["A", "B"], AB, values.copy())
        f.multiply(FactorTable(["B"], [("b0", "b1")], np.array([2.0, 2.0])))
        f.restrict("A", "a0")
        f.normalize()
        np.testing.assert_array_equal(f.values, values)


class TestReadOut:
    """Probability and row enumeration."""

    def test_probability_is_normalised(self):
        f = FactorTable(["A", "B"], AB, np.array([[1.0, 3.0], [2.0, 4.0]]))
        assert f.probability({"A": "a0"}) == pytest.approx(0.4)
        assert f.probability({"A": "a1", "B": "b1"}) == pytest.approx(0.4)
        assert f.probability({}) == pytest.approx(1.0)

    def test_probability_of_empty_factor(self):
        f = FactorTable(["A"], [("a0", "a1")], np.zeros(2))
        assert f.probability({"A": "a0"}) == 0.0

    def test_probability_unknown_state(self):
        f = FactorTable(["A"], [("a0", "a1")], np.ones(2))
        with pytest.raises(ValueError, match="not a state"):
            f.probability({"A": "nope"})

    def test_rows_in_c_order(self):
        f = FactorTable(["A", "B"], AB, np.array([[1.0, 2.0], [3.0, 4.0]]))
        rows = list(f.rows())
        assert rows[0] == ({"A": "a0", "B": "b0"}, 1.0)
        assert rows[1] == ({"A": "a0", "B": "b1"}, 2.0)
        assert rows[3] == ({"A": "a1", "B": "b1"}, 4.0)
        assert len(rows) == 4
