"""
Backend capabilities for the shearlet system.

Every numeric kernel the matrix container, the transform primitives and the
Fourier engine need is routed through an SLbackend instance. The backend is a
torch device together with a real dtype; the complex dtype is derived from it.
Running on 'cpu' or on an accelerator ('cuda', 'mps', ...) only changes the
device passed here.
"""

from __future__ import division
import logging
from typing import Optional, Union
import torch
import numpy as np


logger = logging.getLogger(__name__)

_COMPLEX_OF = {
    torch.float32: torch.complex64,
    torch.float64: torch.complex128,
}


class SLfftPlan:
    """
    Precomputed data for 2D transforms of one (rows, cols) size.

    Holds the centred shift permutations for both axes and the inverse
    normalisation factor. fftshift moves index (i - n//2) mod n to i,
    ifftshift moves (i + n//2) mod n to i, which covers the even and odd
    extents on each axis.
    """

    def __init__(self, rows: int, cols: int, device: torch.device):
        self.rows = rows
        self.cols = cols
        self.device = device
        self.norm = rows * cols

        self.rowShift = self._permutation(rows, -(rows // 2))
        self.colShift = self._permutation(cols, -(cols // 2))
        self.rowIShift = self._permutation(rows, rows // 2)
        self.colIShift = self._permutation(cols, cols // 2)

    def _permutation(self, n: int, offset: int) -> torch.Tensor:
        return (torch.arange(n, dtype=torch.int64, device=self.device) + offset) % n

    def __repr__(self):
        return f"SLfftPlan(rows={self.rows}, cols={self.cols}, device={self.device})"


class SLbackend:
    """
    Capability set over a torch device and a real dtype.

    Args:
        device: Computation device (default: 'cpu')
        dtype: Real element dtype, torch.float32 or torch.float64
    """

    def __init__(self, device: Union[str, torch.device] = 'cpu',
                 dtype: torch.dtype = torch.float64):
        if dtype not in _COMPLEX_OF:
            raise ValueError(f"Unsupported real dtype {dtype}, use float32 or float64.")
        self.device = torch.device(device)
        self.dtype = dtype
        self.ctype = _COMPLEX_OF[dtype]
        self._plans = {}

    def __repr__(self):
        return f"SLbackend(device='{self.device}', dtype={self.dtype})"

    def __eq__(self, other):
        if not isinstance(other, SLbackend):
            return NotImplemented
        return self.device == other.device and self.dtype == other.dtype

    def __hash__(self):
        return hash((str(self.device), self.dtype))

    def elementType(self, isComplex: bool) -> torch.dtype:
        return self.ctype if isComplex else self.dtype

    # ------------------------------------------------------------------
    # memory
    # ------------------------------------------------------------------

    def allocate(self, rows: int, cols: int, isComplex: bool = False) -> torch.Tensor:
        return torch.empty((rows, cols), dtype=self.elementType(isComplex),
                           device=self.device)

    def fill(self, data: torch.Tensor, value) -> None:
        data.fill_(value)

    def copy(self, dst: torch.Tensor, src: torch.Tensor) -> None:
        if src.shape != dst.shape:
            raise ValueError(f"Cannot copy a tensor of shape {tuple(src.shape)} into one of shape {tuple(dst.shape)}.")
        dst.copy_(src)

    def copyFromHost(self, array: np.ndarray, isComplex: bool = False) -> torch.Tensor:
        """Copies a host (NumPy) array to the backend device."""
        tensor = torch.as_tensor(np.ascontiguousarray(array))
        return tensor.to(device=self.device, dtype=self.elementType(isComplex))

    def copyToHost(self, data: torch.Tensor) -> np.ndarray:
        return data.detach().cpu().numpy().copy()

    def wrap(self, data: torch.Tensor) -> torch.Tensor:
        if data.device != self.device:
            raise ValueError(f"Cannot wrap a tensor on {data.device} with a backend on {self.device}.")
        if data.dtype not in (self.dtype, self.ctype):
            raise ValueError(f"Cannot wrap a {data.dtype} tensor with a backend of dtype {self.dtype}.")
        if not data.is_contiguous():
            raise ValueError("Wrapped storage must be contiguous.")
        return data

    # ------------------------------------------------------------------
    # elementwise ops
    # ------------------------------------------------------------------

    def normalize(self, data: torch.Tensor) -> None:
        data.div_(torch.sum(torch.abs(data)))

    def sumInPlace(self, data1: torch.Tensor, data2: torch.Tensor) -> None:
        data1.add_(data2)

    def prodInPlace(self, data1: torch.Tensor, data2: torch.Tensor) -> None:
        data1.mul_(data2)

    def divScalarInPlace(self, data: torch.Tensor, value) -> None:
        data.div_(value)

    def prodScalarInPlace(self, data: torch.Tensor, value) -> None:
        data.mul_(value)

    def fliplr(self, data: torch.Tensor, dim: int) -> None:
        if dim not in (0, 1):
            raise ValueError(f"Invalid dim={dim}, must be 0 or 1.")
        data.copy_(torch.flip(data, [dim]))

    def applyThreshold(self, data: torch.Tensor, threshold) -> None:
        data[torch.abs(data) < abs(threshold)] = 0

    def softThreshold(self, data: torch.Tensor, threshold) -> None:
        # sgn is x/|x| for complex input, so the phase is kept
        data.copy_(torch.sgn(data) * torch.relu(torch.abs(data) - abs(threshold)))

    def mirror(self, src: torch.Tensor, dst: torch.Tensor) -> None:
        signs = torch.ones(src.numel(), dtype=src.dtype, device=src.device)
        signs[1::2] = -1
        dst.copy_((src.reshape(-1) * signs).reshape(dst.shape))

    # ------------------------------------------------------------------
    # complex ops
    # ------------------------------------------------------------------

    def corrComplex(self, a: torch.Tensor, b: torch.Tensor, out: torch.Tensor) -> None:
        torch.mul(a, torch.conj(b), out=out)

    def convComplex(self, a: torch.Tensor, b: torch.Tensor, out: torch.Tensor) -> None:
        torch.mul(a, b, out=out)

    def real2complex(self, src: torch.Tensor, dst: torch.Tensor) -> None:
        dst.copy_(src.to(self.ctype))

    def complex2real(self, src: torch.Tensor, dst: torch.Tensor) -> None:
        dst.copy_(src.real)

    def divComplexByReal(self, data: torch.Tensor, weights: torch.Tensor) -> None:
        data.div_(weights)

    # ------------------------------------------------------------------
    # fourier
    # ------------------------------------------------------------------

    def fourierPlan(self, rows: int, cols: int) -> SLfftPlan:
        """Plan for (rows, cols), created on first use and cached on the backend."""
        plan = self._plans.get((rows, cols))
        if plan is None:
            logger.debug("Creating FFT plan (%d, %d) on %s", rows, cols, self.device)
            plan = SLfftPlan(rows, cols, self.device)
            self._plans[(rows, cols)] = plan
        return plan

    def fft2(self, plan: SLfftPlan, data: torch.Tensor) -> None:
        data.copy_(torch.fft.fft2(data))

    def ifft2(self, plan: SLfftPlan, data: torch.Tensor) -> None:
        # unnormalised backward transform, the engine divides by plan.norm
        data.copy_(torch.fft.ifft2(data, norm='forward'))

    def shift(self, data: torch.Tensor, rowIdx: torch.Tensor, colIdx: torch.Tensor) -> None:
        data.copy_(data.index_select(0, rowIdx).index_select(1, colIdx))


def defaultBackend(device: Union[str, torch.device] = 'cpu',
                   dtype: torch.dtype = torch.float64,
                   backend: Optional[SLbackend] = None) -> SLbackend:
    """Returns backend if given, otherwise a new SLbackend(device, dtype)."""
    if backend is not None:
        return backend
    return SLbackend(device, dtype)
