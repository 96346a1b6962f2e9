"""
Test suite for pySLmatrix.py and pySLbackend.py

Covers construction, ownership, element access and the in-place helpers of
the matrix container.
"""

import pytest
import numpy as np
import torch

from pyslsystem.pySLbackend import SLbackend
from pyslsystem.pySLmatrix import SLmatrix, t_dims


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(params=['cpu'])
def device(request):
    return request.param


@pytest.fixture
def backend(device):
    return SLbackend(device, torch.float64)


# ============================================================================
# Test construction
# ============================================================================

class TestSLmatrixConstruction:
    """Test allocation, wrapping and copying."""

    def test_zero_filled(self, backend):
        mat = SLmatrix(3, 4, backend=backend)
        assert mat.dims() == t_dims(3, 4)
        assert mat.size() == 12
        assert mat.owns
        assert not mat.isComplex
        np.testing.assert_array_equal(mat.toNumpy(), np.zeros((3, 4)))

    def test_fill_value(self, backend):
        mat = SLmatrix(2, 2, value=1.5, backend=backend)
        np.testing.assert_array_equal(mat.toNumpy(), np.full((2, 2), 1.5))

    def test_complex_allocation(self, backend):
        mat = SLmatrix.zeros((2, 5), isComplex=True, backend=backend)
        assert mat.isComplex
        assert mat.data().dtype == torch.complex128

    def test_invalid_dims(self, backend):
        with pytest.raises(ValueError):
            SLmatrix(0, 4, backend=backend)

    def test_wrap_is_view(self, backend):
        """Writes through a wrapping matrix are visible in the tensor."""
        data = torch.zeros(3, 3, dtype=torch.float64, device=backend.device)
        mat = SLmatrix.wrapTensor(data, backend)
        assert not mat.owns
        mat[1, 2] = 7.0
        assert data[1, 2].item() == 7.0

    def test_wrap_rejects_non_contiguous(self, backend):
        data = torch.zeros(4, 3, dtype=torch.float64, device=backend.device).t()
        with pytest.raises(ValueError):
            SLmatrix.wrapTensor(data, backend)

    def test_wrap_shape_mismatch(self, backend):
        data = torch.zeros(4, 3, dtype=torch.float64, device=backend.device)
        with pytest.raises(ValueError):
            SLmatrix(3, 4, data=data, backend=backend)

    def test_copy_is_deep(self, backend):
        data = torch.ones(2, 3, dtype=torch.float64, device=backend.device)
        view = SLmatrix.wrapTensor(data, backend)
        copied = view.copy()
        assert copied.owns
        data.fill_(5.0)
        np.testing.assert_array_equal(copied.toNumpy(), np.ones((2, 3)))

    def test_backend_copy_shape_mismatch(self, backend):
        dst = backend.allocate(3, 2)
        src = torch.zeros(2, 3, dtype=torch.float64, device=backend.device)
        with pytest.raises(ValueError):
            backend.copy(dst, src)

    def test_from_numpy_1d_is_row(self, backend):
        mat = SLmatrix.fromNumpy(np.arange(5.0), backend)
        assert mat.dims() == (1, 5)
        assert mat[0, 4] == 4.0

    def test_from_numpy_complex(self, backend):
        arr = np.array([[1 + 2j, 3 - 1j]])
        mat = SLmatrix.fromNumpy(arr, backend)
        assert mat.isComplex
        np.testing.assert_array_equal(mat.toNumpy(), arr)


# ============================================================================
# Test element access and in-place operations
# ============================================================================

class TestSLmatrixOperations:
    """Test element access and the in-place helpers."""

    def test_index_out_of_range(self, backend):
        mat = SLmatrix(2, 2, backend=backend)
        with pytest.raises(IndexError):
            mat[2, 0]
        with pytest.raises(IndexError):
            mat[0, -1] = 1.0

    def test_sum_and_product(self, backend):
        a = SLmatrix(2, 2, value=2.0, backend=backend)
        b = SLmatrix(2, 2, value=3.0, backend=backend)
        a += b
        np.testing.assert_allclose(a.toNumpy(), 5.0)
        a *= b
        np.testing.assert_allclose(a.toNumpy(), 15.0)
        a *= 2
        a /= 3
        np.testing.assert_allclose(a.toNumpy(), 10.0)

    def test_dimension_mismatch(self, backend):
        a = SLmatrix(2, 2, backend=backend)
        b = SLmatrix(2, 3, backend=backend)
        with pytest.raises(ValueError):
            a += b

    def test_normalize(self, backend):
        mat = SLmatrix.fromNumpy(np.array([[1.0, -3.0], [2.0, 2.0]]), backend)
        mat.normalize()
        np.testing.assert_allclose(np.sum(np.abs(mat.toNumpy())), 1.0)
        assert mat[0, 1] == pytest.approx(-0.375)

    def test_norm_size(self, backend):
        mat = SLmatrix(2, 4, value=8.0, backend=backend)
        mat.normSize()
        np.testing.assert_allclose(mat.toNumpy(), 1.0)

    def test_fliplr(self, backend):
        arr = np.arange(6.0).reshape(2, 3)
        mat = SLmatrix.fromNumpy(arr, backend)
        mat.fliplr(1)
        np.testing.assert_array_equal(mat.toNumpy(), arr[:, ::-1])
        mat.fliplr(0)
        np.testing.assert_array_equal(mat.toNumpy(), arr[::-1, ::-1])

    def test_hard_threshold(self, backend):
        mat = SLmatrix.fromNumpy(np.array([[0.5, -2.0, 1.0, -0.1]]), backend)
        mat.applyThreshold(-1.0)
        np.testing.assert_array_equal(mat.toNumpy(), [[0.0, -2.0, 1.0, 0.0]])

    def test_soft_threshold_complex(self, backend):
        mat = SLmatrix.fromNumpy(np.array([[3 + 4j, 0.3 + 0.4j]]), backend)
        mat.applySoftThreshold(1.0)
        np.testing.assert_allclose(mat.toNumpy(), [[2.4 + 3.2j, 0.0]], atol=1e-14)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
