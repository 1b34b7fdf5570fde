"""Shape extraction: vectors, column-major matrices and sparse triplets."""

from __future__ import annotations

import numpy as np
import pytest

from paramio import InvalidShape, Reader


def test_matrix_is_filled_column_major():
    data = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]

    tall = Reader(data)
    np.testing.assert_allclose(np.asarray(tall.matrix(3, 2)), [[1, 4], [2, 5], [3, 6]])
    assert tall.pos == 6

    wide = Reader(data)
    np.testing.assert_allclose(np.asarray(wide.matrix(2, 3)), [[1, 3, 5], [2, 4, 6]])
    assert wide.pos == 6


def test_matrix_element_matches_consumed_index():
    n, m = 3, 4
    data = np.arange(n * m, dtype=np.float64) * 1.5
    mat = np.asarray(Reader(data).matrix(n, m))
    for i in range(n):
        for j in range(m):
            assert mat[i, j] == data[j * n + i]


def test_matrix_and_std_vector_see_the_same_run():
    data = list(np.linspace(-1.0, 1.0, 6))

    mat = np.asarray(Reader(data).matrix(2, 3))
    flat = Reader(data).std_vector(6)

    np.testing.assert_allclose(mat.T.reshape(-1), np.asarray(flat, dtype=np.float64))


def test_empty_matrix_consumes_nothing():
    reader = Reader([1.0])
    assert reader.matrix(0, 3).shape == (0, 3)
    assert reader.matrix(2, 0).shape == (2, 0)
    assert reader.pos == 0


def test_vector_and_row_vector_shapes():
    reader = Reader([1.0, 2.0, 3.0, 4.0, 5.0])

    col = reader.vector(2)
    row = reader.row_vector(3)

    assert col.shape == (2,)
    assert row.shape == (1, 3)
    np.testing.assert_allclose(np.asarray(row), [[3.0, 4.0, 5.0]])
    assert reader.row_vector(0).shape == (1, 0)


def test_sparse_matrix_consumes_one_value_per_listed_cell():
    reader = Reader([10.0, 20.0, 30.0, 99.0])

    sp = reader.sparse_matrix([0, 2, 1], [1, 0, 1], 3, 2)

    assert reader.pos == 3
    assert sp.shape == (3, 2)
    expected = np.zeros((3, 2))
    expected[0, 1] = 10.0
    expected[2, 0] = 20.0
    expected[1, 1] = 30.0
    np.testing.assert_allclose(np.asarray(sp.todense()), expected)


def test_sparse_duplicates_sum_when_densified():
    reader = Reader([1.0, 2.0])
    sp = reader.sparse_matrix([0, 0], [0, 0], 1, 1)
    np.testing.assert_allclose(np.asarray(sp.todense()), [[3.0]])


def test_sparse_empty_dimensions_consume_nothing():
    reader = Reader([1.0, 2.0])
    sp = reader.sparse_matrix([0], [0], 0, 4)
    assert sp.shape == (0, 4)
    assert reader.pos == 0


@pytest.mark.parametrize(
    "rows, cols",
    [([0, 1], [0]), ([0, 3], [0, 0]), ([0], [-1])],
)
def test_sparse_bad_indices_fail_before_consuming(rows, cols):
    reader = Reader([1.0, 2.0])
    with pytest.raises(InvalidShape):
        reader.sparse_matrix(rows, cols, 3, 2)
    assert reader.pos == 0


def test_sparse_batch_applies_bound_per_element():
    reader = Reader([0.0, np.log(2.0)])

    sp = reader.sparse_matrix_lb_constrain(1.0, [1, 0], [0, 1], 2, 2)

    dense = np.asarray(sp.todense())
    np.testing.assert_allclose(dense, [[0.0, 3.0], [2.0, 0.0]])
    assert reader.pos == 2
