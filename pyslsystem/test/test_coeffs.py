"""
Test suite for SLcoeffs in pySLsystem.py
"""

import pytest
import numpy as np
import torch

from pyslsystem.pySLbackend import SLbackend
from pyslsystem.pySLmatrix import SLmatrix
from pyslsystem.pySLsystem import SLcoeffs


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(params=['cpu'])
def device(request):
    return request.param


@pytest.fixture
def backend(device):
    return SLbackend(device, torch.float64)


@pytest.fixture
def coeffs(backend):
    c = SLcoeffs()
    c.addElement(SLmatrix.fromNumpy(np.array([[0.5, -2.0], [1.5, 0.1]]), backend))
    c.addElement(SLmatrix.fromNumpy(np.array([[3 + 4j, 0.3j], [-1.0, 0.0]]), backend))
    c.addElement(SLmatrix(2, 2, value=1.0, backend=backend))
    return c


# ============================================================================
# Test SLcoeffs
# ============================================================================

class TestSLcoeffs:
    """Test the coefficient container."""

    def test_length_and_iteration(self, coeffs):
        assert len(coeffs) == 3
        assert [band.dims() for band in coeffs] == [(2, 2)] * 3

    def test_add_element_copies(self, backend):
        mat = SLmatrix(2, 2, value=1.0, backend=backend)
        c = SLcoeffs()
        c.addElement(mat)
        mat.fill(5.0)
        np.testing.assert_array_equal(c.getElement(0).toNumpy(), 1.0)

    def test_get_element_is_stored_matrix(self, coeffs):
        coeffs.getElement(2)[0, 0] = 9.0
        assert coeffs[2][0, 0] == 9.0

    def test_get_element_out_of_range(self, coeffs):
        with pytest.raises(IndexError):
            coeffs.getElement(3)
        with pytest.raises(IndexError):
            coeffs.getElement(-1)

    def test_hard_threshold(self, coeffs):
        coeffs.applyThreshold([1.0, 1.0, 0.0])
        np.testing.assert_array_equal(coeffs[0].toNumpy(), [[0.0, -2.0], [1.5, 0.0]])
        np.testing.assert_array_equal(coeffs[1].toNumpy(), [[3 + 4j, 0.0], [-1.0, 0.0]])
        np.testing.assert_array_equal(coeffs[2].toNumpy(), 1.0)

    def test_threshold_count_mismatch(self, coeffs):
        with pytest.raises(ValueError):
            coeffs.applyThreshold([1.0, 1.0])
        with pytest.raises(ValueError):
            coeffs.applySoftThreshold([1.0] * 4)

    def test_soft_threshold(self, coeffs):
        coeffs.applySoftThreshold([1.0, 1.0, 0.5])
        np.testing.assert_allclose(coeffs[0].toNumpy(), [[0.0, -1.0], [0.5, 0.0]])
        np.testing.assert_allclose(coeffs[1].toNumpy(), [[2.4 + 3.2j, 0.0], [0.0, 0.0]], atol=1e-14)
        np.testing.assert_allclose(coeffs[2].toNumpy(), 0.5)

    def test_mute_shearlet(self, coeffs):
        coeffs.muteShearlet(1)
        np.testing.assert_array_equal(coeffs[1].toNumpy(), 0)
        np.testing.assert_array_equal(coeffs[2].toNumpy(), 1.0)
        with pytest.raises(IndexError):
            coeffs.muteShearlet(5)

    def test_threshold_and_mute_idempotent(self, coeffs):
        thresholds = [1.0, 1.0, 0.5]
        once = coeffs.copy()
        once.applyThreshold(thresholds)
        twice = coeffs.copy()
        twice.applyThreshold(thresholds)
        twice.applyThreshold(thresholds)
        assert torch.equal(once.toTensor(), twice.toTensor())

        once = coeffs.copy()
        once.muteShearlet(1)
        twice = coeffs.copy()
        twice.muteShearlet(1)
        twice.muteShearlet(1)
        assert torch.equal(once.toTensor(), twice.toTensor())

    def test_mute_and_threshold_commute(self, coeffs):
        """Muting band 0 and thresholding the others give the same result in either order."""
        thresholds = [1.0, 1.0, 0.5]
        muteFirst = coeffs.copy()
        muteFirst.muteShearlet(0)
        muteFirst.applyThreshold(thresholds)
        thresholdFirst = coeffs.copy()
        thresholdFirst.applyThreshold(thresholds)
        thresholdFirst.muteShearlet(0)
        assert torch.equal(muteFirst.toTensor(), thresholdFirst.toTensor())

    def test_copy_is_independent(self, coeffs):
        other = coeffs.copy()
        other.muteShearlet(0)
        assert coeffs[0][1, 0] == 1.5

    def test_tensor_conversion(self, backend):
        c = SLcoeffs()
        for k in range(4):
            c.addElement(SLmatrix(3, 5, value=float(k), backend=backend))
        stacked = c.toTensor()
        assert stacked.shape == (3, 5, 4)
        back = SLcoeffs.fromTensor(stacked)
        assert len(back) == 4
        np.testing.assert_array_equal(back[3].toNumpy(), 3.0)

    def test_empty_to_tensor(self):
        with pytest.raises(ValueError):
            SLcoeffs().toTensor()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
