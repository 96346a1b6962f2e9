"""
Test suite for pySLsystem.py

Validates the shearlet system: size of the system, perfect reconstruction
with the dual frame weights and the adjoint identities.
"""

import pytest
import numpy as np
import torch

from pyslsystem.pySLbackend import SLbackend
from pyslsystem.pySLmatrix import SLmatrix
from pyslsystem.pySLFilters import SLFilterType, SLfilterGenerator
from pyslsystem.pySLsystem import SLsystem, SLcoeffs


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(params=['cpu'])
def device(request):
    return request.param


@pytest.fixture(scope='module')
def system_128():
    return SLsystem(128, 128, nScales=2)


@pytest.fixture
def test_image():
    """Generate a simple test image."""
    np.random.seed(42)
    return np.random.randn(128, 128).astype(np.float64)


def relative_error(x, y):
    return np.linalg.norm(x - y) / np.linalg.norm(x)


# ============================================================================
# Test construction
# ============================================================================

class TestSLsystemConstruction:
    """Test shearlet system creation."""

    def test_single_scale_96(self, device):
        system = SLsystem(96, 96, nScales=1, device=device)
        assert system.nShearlets == 11
        assert len(system.shearlets) == 11
        assert system.weights.dims() == (96, 96)
        assert not system.weights.isComplex
        assert system.shearLevels == [1]

    def test_shearlet_count(self, system_128):
        assert system_128.nShearlets == 2 * (5 + 5) + 1
        assert system_128.shearletIdxs.shape == (21, 3)
        np.testing.assert_array_equal(system_128.shearletIdxs[-1], [0, 0, 0])

    def test_shearlets_in_frequency_domain(self, system_128):
        for psi in system_128.shearlets:
            assert psi.dims() == (128, 128)
            assert psi.isComplex

    def test_weights_positive(self, system_128):
        weights = system_128.weights.toNumpy()
        assert weights.min() > 1e-10

    def test_weights_are_energy_sum(self, system_128):
        expected = sum(np.abs(psi.toNumpy()) ** 2 for psi in system_128.shearlets)
        np.testing.assert_allclose(system_128.weights.toNumpy(), expected, rtol=1e-12)

    def test_rms(self, system_128):
        rms = system_128.RMS
        assert rms.shape == (21,)
        assert torch.all(rms > 0)
        psi = system_128.shearlets[3].toNumpy()
        np.testing.assert_allclose(rms[3].item(), np.sqrt(np.mean(np.abs(psi) ** 2)))

    def test_reduced_system(self, device):
        system = SLsystem(96, 96, nScales=1, full=0, device=device)
        assert system.nShearlets == 9
        assert system.full == 0

    def test_explicit_shear_levels(self, device):
        system = SLsystem(96, 96, nScales=2, shearLevels=[1, 1], device=device)
        assert system.nShearlets == 21
        with pytest.raises(ValueError):
            SLsystem(96, 96, nScales=2, shearLevels=[1], device=device)
        with pytest.raises(ValueError):
            SLsystem(256, 256, nScales=3, shearLevels=[2, 1, 1], device=device)

    def test_invalid_arguments(self, device):
        with pytest.raises(ValueError):
            SLsystem(96, 96, nScales=0, device=device)
        with pytest.raises(ValueError):
            SLsystem(0, 96, nScales=1, device=device)

    def test_image_too_small(self, device):
        with pytest.raises(ValueError):
            SLsystem(32, 32, nScales=1, device=device)


# ============================================================================
# Test decomposition and reconstruction
# ============================================================================

class TestSLsystemTransforms:
    """Test decode/recover and their adjoints."""

    def test_coefficient_count(self, system_128, test_image):
        coeffs = system_128.decode(test_image)
        assert isinstance(coeffs, SLcoeffs)
        assert len(coeffs) == system_128.nShearlets
        for band in coeffs:
            assert band.dims() == (128, 128)
            assert band.isComplex

    def test_dec_rec_roundtrip(self, system_128, test_image):
        """Test decomposition + reconstruction = identity."""
        coeffs = system_128.decode(test_image)
        rec = system_128.recover(coeffs)
        assert not rec.isComplex
        error = np.max(np.abs(rec.toNumpy() - test_image))
        assert error < 1e-8, f"Reconstruction error too large: {error}"

    @pytest.mark.parametrize("rows, cols", [(96, 128), (128, 96)])
    def test_rectangular_roundtrip(self, device, rows, cols):
        np.random.seed(0)
        X = np.random.randn(rows, cols)
        system = SLsystem(rows, cols, nScales=2, device=device)
        assert system.weights.dims() == (rows, cols)
        rec = system.recover(system.decode(X)).toNumpy()
        assert np.max(np.abs(rec - X)) < 1e-8

    def test_single_scale_roundtrip(self, device):
        np.random.seed(1)
        X = np.random.randn(96, 96)
        system = SLsystem(96, 96, nScales=1, device=device)
        rec = system.recover(system.decode(X)).toNumpy()
        assert relative_error(X, rec) < 1e-8

    def test_directional2_roundtrip(self, device):
        np.random.seed(2)
        X = np.random.randn(64, 64)
        directional = SLfilterGenerator(SLFilterType.SL_DIRECTIONAL2, SLbackend(device))
        system = SLsystem(64, 64, nScales=2, directionalFilter=directional, device=device)
        rec = system.recover(system.decode(X)).toNumpy()
        assert relative_error(X, rec) < 1e-8

    def test_float32(self, device):
        np.random.seed(3)
        X = np.random.randn(96, 96)
        system = SLsystem(96, 96, nScales=1, device=device, dtype=torch.float32)
        coeffs = system.decode(X)
        assert coeffs[0].data().dtype == torch.complex64
        rec = system.recover(coeffs).toNumpy()
        assert rec.dtype == np.float32
        assert relative_error(X, rec) < 1e-3

    def test_tensor_input(self, system_128, test_image):
        X = torch.from_numpy(test_image)
        from_tensor = system_128.decode(X)
        from_numpy = system_128.decode(test_image)
        np.testing.assert_allclose(from_tensor[5].toNumpy(), from_numpy[5].toNumpy(), atol=1e-14)

    def test_matrix_on_other_backend(self, system_128, test_image):
        """A single precision matrix is decoded on the double precision backend."""
        single = SLmatrix.fromNumpy(test_image, SLbackend('cpu', torch.float32))
        coeffs = system_128.decode(single)
        assert coeffs[5].data().dtype == torch.complex128
        expected = system_128.decode(test_image.astype(np.float32).astype(np.float64))
        np.testing.assert_allclose(coeffs[5].toNumpy(), expected[5].toNumpy(), atol=1e-12)

    def test_zero_input(self, system_128):
        coeffs = system_128.decode(np.zeros((128, 128)))
        for band in coeffs:
            assert np.all(band.toNumpy() == 0)
        np.testing.assert_array_equal(system_128.recover(coeffs).toNumpy(), 0)

    def test_adjoint_equation(self, system_128, test_image):
        """<A x, c> = <x, A* c> for complex coefficients c."""
        np.random.seed(7)
        c = system_128.decode(np.random.randn(128, 128))
        Ax = system_128.decode(test_image)
        lhs = sum(np.vdot(ci.toNumpy(), axi.toNumpy()) for ci, axi in zip(c, Ax))
        rhs = np.vdot(system_128.adjoint(c).toNumpy(), test_image)
        np.testing.assert_allclose(lhs, rhs, rtol=1e-8)

    def test_recover_adjoint_equation(self, system_128, test_image):
        """<R c, x> = Re <c, R* x> with R the dual frame reconstruction."""
        np.random.seed(8)
        c = system_128.decode(np.random.randn(128, 128))
        lhs = np.sum(system_128.recover(c).toNumpy() * test_image)
        Rx = system_128.recoverAdjoint(test_image)
        rhs = sum(np.vdot(ci.toNumpy(), rxi.toNumpy()) for ci, rxi in zip(c, Rx)).real
        np.testing.assert_allclose(lhs, rhs, rtol=1e-8)

    def test_wrong_image_dims(self, system_128):
        with pytest.raises(ValueError):
            system_128.decode(np.zeros((128, 64)))

    def test_wrong_coefficient_count(self, system_128, test_image):
        coeffs = system_128.decode(test_image)
        short = SLcoeffs()
        for i in range(len(coeffs) - 1):
            short.addElement(coeffs[i])
        with pytest.raises(ValueError):
            system_128.recover(short)

    def test_real_coefficients_accepted(self, system_128):
        coeffs = SLcoeffs()
        for _ in range(system_128.nShearlets):
            coeffs.addElement(SLmatrix(128, 128, value=1.0))
        rec = system_128.recover(coeffs)
        assert rec.dims() == (128, 128)

    def test_thresholding_denoises(self, system_128):
        """Hard thresholding reduces the error on a noisy piecewise constant image."""
        clean = np.zeros((128, 128))
        clean[32:96, 40:88] = 1.0
        np.random.seed(5)
        noisy = clean + 0.2 * np.random.randn(128, 128)

        coeffs = system_128.decode(noisy)
        rms = system_128.RMS.numpy()
        coeffs.applyThreshold(list(3 * 0.2 * rms[:-1]) + [0.0])
        denoised = system_128.recover(coeffs).toNumpy()
        assert relative_error(clean, denoised) < relative_error(clean, noisy)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
