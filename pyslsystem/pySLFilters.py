"""
Prototype filters for the shearlet filter bank.

The 1D scaling filter, its mirrored wavelet filter and the 2D directional
filters are the only inputs of the filter-bank construction. Directional
filters are derived from diamond maxflat filters by the McClellan
transformation, as in the Nonsubsampled Contourlet Toolbox that ShearLab
builds on.

All functions return SLmatrix objects on the requested backend; 1D filters
are 1 x N row matrices.
"""

from __future__ import division
from enum import Enum
import math
from typing import Optional, Tuple
import torch

from pyslsystem.pySLbackend import SLbackend, defaultBackend
from pyslsystem.pySLmatrix import SLmatrix
from pyslsystem.pySLtransform import _convolve2dFull


class SLFilterType(Enum):
    SL_SCALING = 'scaling'
    SL_WAVELET = 'wavelet'
    SL_DIRECTIONAL1 = 'directional1'
    SL_DIRECTIONAL2 = 'directional2'
    SL_COIFLET = 'coiflet'
    SL_TEST = 'test'
    SL_DIRECTIONAL_TEST = 'directional_test'


SCALING_FILTER = [0.0104933261758410, -0.0263483047033631,
                  -0.0517766952966370, 0.276348304703363,
                  0.582566738241592, 0.276348304703363,
                  -0.0517766952966369, -0.0263483047033631,
                  0.0104933261758408]

COIFLET_FILTER = [0.038580777748, -0.126969125396, -0.077161555496,
                  0.607491641386, 0.745687558934, 0.226584265197]


def SLfilterGenerator(type: SLFilterType,
                      backend: Optional[SLbackend] = None) -> SLmatrix:
    """
    Generates one of the predefined prototype filters.

    Args:
        type: Which filter to generate
        backend: Backend for the result (default: SLbackend('cpu', float64))

    Returns:
        The filter as a real SLmatrix
    """
    backend = defaultBackend(backend=backend)

    if type == SLFilterType.SL_SCALING:
        return _rowFilter(SCALING_FILTER, backend)
    elif type == SLFilterType.SL_WAVELET:
        return SLfilterMirror(_rowFilter(SCALING_FILTER, backend))
    elif type == SLFilterType.SL_COIFLET:
        return _rowFilter(COIFLET_FILTER, backend)
    elif type == SLFilterType.SL_DIRECTIONAL1:
        # ShearLab default: modulate2(dfilters('dmaxflat4','d')/sqrt(2),'c')
        h0, _ = dfilters('dmaxflat4', 'd', backend=backend)
        return _fromTensor(modulate2(h0 / math.sqrt(2), 'c'), backend)
    elif type == SLFilterType.SL_DIRECTIONAL2:
        # smaller alternative for small inputs or very large systems
        h0, _ = dfilters('cd', 'd', backend=backend)
        return _fromTensor(modulate2(h0, 'c'), backend)
    elif type == SLFilterType.SL_DIRECTIONAL_TEST:
        return _fromTensor(
            torch.tensor([[1.0, 2.0, 3.0]] * 3, dtype=backend.dtype, device=backend.device),
            backend)
    elif type == SLFilterType.SL_TEST:
        return _rowFilter([1.0, 2.0, 3.0, 4.0, 5.0], backend)
    raise ValueError(f"Unknown filter type: {type}")


def _rowFilter(values, backend: SLbackend) -> SLmatrix:
    return _fromTensor(torch.tensor([values], dtype=backend.dtype, device=backend.device), backend)


def _fromTensor(data: torch.Tensor, backend: SLbackend) -> SLmatrix:
    mat = SLmatrix(data.shape[0], data.shape[1], backend=backend)
    backend.copy(mat.data(), data)
    return mat


def SLfilterMirror(vecIn: SLmatrix) -> SLmatrix:
    """
    Apply (-1)^t modulation to a 1 x N filter, turning a lowpass into the
    matching highpass.
    """
    vecOut = SLmatrix(1, vecIn.size(), backend=vecIn.backend)
    vecIn.backend.mirror(vecIn.data(), vecOut.data())
    return vecOut


# ============================================================================
# Directional filter construction
# ============================================================================

def modulate2(x: torch.Tensor, type: str) -> torch.Tensor:
    """
    2D modulation around the centre floor(size/2)+1 (MATLAB indexing).

    Args:
        x: 2D input tensor
        type: 'r', 'c' or 'b' for modulation along rows, columns or both

    Returns:
        Modulated tensor
    """
    sz0, sz1 = x.shape
    n1 = torch.arange(sz0, device=x.device) - sz0 // 2
    n2 = torch.arange(sz1, device=x.device) - sz1 // 2
    m1 = (1 - 2 * (n1.abs() % 2)).to(x.dtype)
    m2 = (1 - 2 * (n2.abs() % 2)).to(x.dtype)

    if type == 'r':
        return x * m1.unsqueeze(1)
    elif type == 'c':
        return x * m2.unsqueeze(0)
    elif type == 'b':
        return x * torch.outer(m1, m2)
    raise ValueError(f"Unknown modulation type: {type}")


_DMAXFLAT_QUADRANTS = {
    4: ([[0, -5, 0, -3, 0], [-5, 0, 52, 0, 34],
         [0, 52, 0, -276, 0], [-3, 0, -276, 0, 1454],
         [0, 34, 0, 1454, 0]], 2**12),
    5: ([[0, 35, 0, 20, 0, 18], [35, 0, -425, 0, -250, 0],
         [0, -425, 0, 2500, 0, 1610], [20, 0, 2500, 0, -10200, 0],
         [0, -250, 0, -10200, 0, 47780],
         [18, 0, 1610, 0, 47780, 0]], 2**17),
}


def dmaxflat(N: int, d: float, backend: Optional[SLbackend] = None) -> torch.Tensor:
    """
    2D diamond maxflat filter of order N, from the Nonsubsampled Contourlet
    Toolbox. The table holds the upper-left quadrant; the rest follows by
    symmetry and the centre coefficient is set to d.
    """
    backend = defaultBackend(backend=backend)
    if N not in _DMAXFLAT_QUADRANTS:
        raise ValueError(f"dmaxflat order must be one of {sorted(_DMAXFLAT_QUADRANTS)}, got {N}.")
    quadrant, scale = _DMAXFLAT_QUADRANTS[N]
    h = torch.tensor(quadrant, dtype=backend.dtype, device=backend.device) / scale
    h = torch.cat([h, torch.flip(h[:, :-1], [1])], dim=1)
    h = torch.cat([h, torch.flip(h[:-1, :], [0])], dim=0)
    h[N, N] = d
    return h


def _addCentered(big: torch.Tensor, small: torch.Tensor) -> None:
    r0 = (big.shape[0] - small.shape[0]) // 2
    c0 = (big.shape[1] - small.shape[1]) // 2
    big[r0:r0 + small.shape[0], c0:c0 + small.shape[1]] += small


def mctrans(b: torch.Tensor, t: torch.Tensor) -> torch.Tensor:
    """
    McClellan transformation: the 2D FIR filter corresponding to the
    zero-phase 1D filter b under the transformation kernel t.

    Args:
        b: 1D filter of odd length
        t: 2D transformation kernel of odd size

    Returns:
        2D filter of size (n*(size(t)-1)+1) on each axis, n = (len(b)-1)/2
    """
    n = (b.numel() - 1) // 2
    # b(0) is the centre tap after ifftshift: b = sum a(k) cos(k w)
    b = torch.fft.ifftshift(b)
    a = torch.cat([b[:1], 2 * b[1:n + 1]])

    # Chebyshev recursion P_k = 2 t * P_{k-1} - P_{k-2}
    P0 = torch.ones((1, 1), dtype=t.dtype, device=t.device)
    P1 = t.clone()
    h = a[1] * P1
    _addCentered(h, a[0] * P0)

    for i in range(2, n + 1):
        P2 = 2 * _convolve2dFull(t, P1)
        _addCentered(P2, -P0)
        hh = h
        h = a[i] * P2
        _addCentered(h, hh)
        P0, P1 = P1, P2

    return torch.rot90(h, 2)


def _maxflatLadder(B: torch.Tensor, type: str, dtype, device) -> Tuple[torch.Tensor, torch.Tensor]:
    sqrt2 = math.sqrt(2.0)
    M1 = 1 / sqrt2
    M2 = M1
    k1 = 1 - sqrt2
    k3 = k1
    k2 = M1
    h = torch.tensor([0.25 * k2 * k3, 0.5 * k2, 1 + 0.5 * k2 * k3], dtype=dtype, device=device) * M1
    h = torch.cat([h, torch.flip(h[:-1], [0])])
    g = torch.tensor([-0.125 * k1 * k2 * k3, 0.25 * k1 * k2,
                      -0.5 * k1 - 0.5 * k3 - 0.375 * k1 * k2 * k3, 1 + 0.5 * k1 * k2],
                     dtype=dtype, device=device) * M2
    g = torch.cat([g, torch.flip(g[:-1], [0])])

    h0 = mctrans(h, B)
    g0 = mctrans(g, B)
    h0 = sqrt2 * h0 / h0.sum()
    g0 = sqrt2 * g0 / g0.sum()
    if type == 'r':
        return g0, modulate2(h0, 'b')
    return h0, modulate2(g0, 'b')


def dfilters(fname: str, type: str,
             backend: Optional[SLbackend] = None) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Directional 2D filter pairs from the Nonsubsampled Contourlet Toolbox.

    Args:
        fname: 'dmaxflat4', 'dmaxflat5' or 'cd' (alias '7-9')
        type: 'd' for decomposition or 'r' for reconstruction filters

    Returns:
        Tuple of (h0, h1) diamond filter pair (lowpass and highpass)
    """
    backend = defaultBackend(backend=backend)
    dtype = backend.dtype
    device = backend.device

    if fname in ('dmaxflat4', 'dmaxflat5'):
        B = dmaxflat(int(fname[-1]), 0, backend=backend)
        return _maxflatLadder(B, type, dtype, device)
    elif fname in ('cd', '7-9'):
        h0 = torch.tensor([0.026748757411, -0.016864118443, -0.078223266529,
                           0.266864118443, 0.602949018236, 0.266864118443,
                           -0.078223266529, -0.016864118443, 0.026748757411],
                          dtype=dtype, device=device)
        g0 = torch.tensor([-0.045635881557, -0.028771763114, 0.295635881557,
                           0.557543526229, 0.295635881557, -0.028771763114,
                           -0.045635881557], dtype=dtype, device=device)
        # 1D modulation around the centre tap
        n = torch.arange(g0.numel(), device=device) - g0.numel() // 2
        if type == 'd':
            h1 = g0 * (1 - 2 * (n.abs() % 2)).to(dtype)
        else:
            n = torch.arange(h0.numel(), device=device) - h0.numel() // 2
            h1 = h0 * (1 - 2 * (n.abs() % 2)).to(dtype)
            h0 = g0
        t = torch.tensor([[0, 1, 0], [1, 0, 1], [0, 1, 0]], dtype=dtype, device=device) / 4
        return math.sqrt(2.0) * mctrans(h0, t), math.sqrt(2.0) * mctrans(h1, t)
    raise ValueError(f"Unknown filter name: {fname}")
