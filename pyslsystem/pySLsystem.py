"""
2D discrete shearlet system: construction, decomposition and reconstruction.

An SLsystem is built once for a fixed image size. It precomputes every
shearlet in the centred frequency domain together with the weight matrix
sum_k |psi_k|^2, after which decode and recover run with one FFT, one
pointwise product per shearlet and one inverse FFT.

Example:
    >>> system = SLsystem(256, 256, nScales=3)
    >>> coeffs = system.decode(image)
    >>> coeffs.applyThreshold([0.1] * len(coeffs))
    >>> denoised = system.recover(coeffs)

Shearlets are listed cone 1 first, then cone 2, scales ascending and
shearings ascending within a scale; the lowpass is the last entry.
"""

from __future__ import division
import logging
import math
from typing import Iterator, List, Optional, Sequence, Union
import numpy as np
import torch

from pyslsystem.pySLbackend import SLbackend, defaultBackend
from pyslsystem.pySLmatrix import SLmatrix, t_dims
from pyslsystem.pySLfourier import SLfourier
from pyslsystem.pySLfilterBank import (SLfilterBundle, SLshearLevels, SLcheckShearLevels,
                                       SLgetShearletIdxs2D, SLprepareFilters)
from pyslsystem import pySLtransform as tr


logger = logging.getLogger(__name__)

MatrixLike = Union[SLmatrix, torch.Tensor, np.ndarray]


def _asMatrix(mat: MatrixLike, backend: SLbackend) -> SLmatrix:
    if isinstance(mat, SLmatrix):
        if mat.backend == backend:
            return mat
        mat = mat.data()
    if isinstance(mat, torch.Tensor):
        if mat.dim() == 1:
            mat = mat.unsqueeze(0)
        if mat.dim() != 2:
            raise ValueError(f"Expected a 1D or 2D tensor, got {mat.dim()}D.")
        out = SLmatrix(mat.shape[0], mat.shape[1], isComplex=mat.is_complex(), backend=backend)
        backend.copy(out.data(), mat.to(device=backend.device, dtype=out.data().dtype))
        return out
    return SLmatrix.fromNumpy(mat, backend)


# ============================================================================
# Coefficients
# ============================================================================

class SLcoeffs:
    """
    Ordered list of coefficient matrices, one per shearlet.

    The list owns its matrices: addElement stores a deep copy, so later
    changes to the caller's matrix do not leak in. Elements handed out by
    getElement are the stored matrices themselves.
    """

    def __init__(self):
        self._coeffs: List[SLmatrix] = []

    def __len__(self) -> int:
        return len(self._coeffs)

    def __iter__(self) -> Iterator[SLmatrix]:
        return iter(self._coeffs)

    def __repr__(self):
        return f"SLcoeffs(n={len(self._coeffs)})"

    def _checkIndex(self, i: int) -> int:
        if not 0 <= i < len(self._coeffs):
            raise IndexError(f"Coefficient index {i} out of range for {len(self._coeffs)} elements.")
        return i

    def addElement(self, mat: SLmatrix) -> None:
        self._coeffs.append(mat.copy())

    def getElement(self, i: int) -> SLmatrix:
        return self._coeffs[self._checkIndex(i)]

    def __getitem__(self, i: int) -> SLmatrix:
        return self.getElement(i)

    def copy(self) -> 'SLcoeffs':
        other = SLcoeffs()
        for mat in self._coeffs:
            other.addElement(mat)
        return other

    def _checkThresholds(self, thresholds: Sequence[float]) -> None:
        if len(thresholds) != len(self._coeffs):
            raise ValueError(f"Got {len(thresholds)} thresholds for {len(self._coeffs)} coefficient bands.")

    def applyThreshold(self, thresholds: Sequence[float]) -> None:
        """
        Hard thresholding: in band i, zero every coefficient whose magnitude
        is below |thresholds[i]|.
        """
        self._checkThresholds(thresholds)
        for mat, threshold in zip(self._coeffs, thresholds):
            mat.applyThreshold(threshold)

    def applySoftThreshold(self, thresholds: Sequence[float]) -> None:
        """
        Soft thresholding: in band i, shrink every magnitude by |thresholds[i]|
        and zero what falls below. Complex coefficients keep their phase.
        """
        self._checkThresholds(thresholds)
        for mat, threshold in zip(self._coeffs, thresholds):
            mat.applySoftThreshold(threshold)

    def muteShearlet(self, i: int) -> None:
        """Sets every coefficient of band i to zero."""
        self.getElement(i).fill(0)

    def toTensor(self) -> torch.Tensor:
        """Stacks the bands into a (rows, cols, N) tensor."""
        if len(self._coeffs) == 0:
            raise ValueError("Cannot stack an empty coefficient list.")
        return torch.stack([mat.data() for mat in self._coeffs], dim=-1)

    @classmethod
    def fromTensor(cls, data: torch.Tensor, backend: Optional[SLbackend] = None) -> 'SLcoeffs':
        """Builds a coefficient list from a (rows, cols, N) tensor."""
        if data.dim() != 3:
            raise ValueError(f"Expected a (rows, cols, N) tensor, got shape {tuple(data.shape)}.")
        if backend is None:
            real = data.real.dtype if data.is_complex() else data.dtype
            backend = SLbackend(data.device, real)
        coeffs = cls()
        for k in range(data.shape[-1]):
            coeffs._coeffs.append(_asMatrix(data[:, :, k], backend))
        return coeffs


# ============================================================================
# Shearlet system
# ============================================================================

class SLsystem:
    """
    Precomputed 2D shearlet system for images of size (rows, cols).

    Args:
        rows: Number of image rows
        cols: Number of image columns
        nScales: Number of scales (>= 1)
        shearLevels: Shear level per scale (default: ceil((1:nScales)/2))
        full: 1 for the full system (default), 0 for the reduced system that
              omits the border shearings of cone 2
        directionalFilter: Optional 2D directional filter
        scalingFilter: Optional 1D scaling filter
        device: Computation device ('cpu' or 'cuda')
        dtype: Real data type (torch.float32 or torch.float64)
        backend: Explicit backend, overrides device and dtype

    Raises:
        ValueError: for invalid sizes or schedules, or when the filters do
                    not fit inside the image
    """

    def __init__(self, rows: int, cols: int, nScales: int,
                 shearLevels: Optional[Sequence[int]] = None,
                 full: int = 1,
                 directionalFilter: Optional[MatrixLike] = None,
                 scalingFilter: Optional[MatrixLike] = None,
                 device: Union[str, torch.device] = 'cpu',
                 dtype: torch.dtype = torch.float64,
                 backend: Optional[SLbackend] = None):
        if rows < 1 or cols < 1:
            raise ValueError(f"Image dimensions must be positive, got ({rows}, {cols}).")
        self._backend = defaultBackend(device, dtype, backend)
        self._rows = int(rows)
        self._cols = int(cols)

        if shearLevels is None:
            shearLevels = SLshearLevels(nScales)
        elif isinstance(shearLevels, torch.Tensor):
            shearLevels = shearLevels.cpu().tolist()
        shearLevels = SLcheckShearLevels(shearLevels)
        if len(shearLevels) != nScales:
            raise ValueError(f"Got {len(shearLevels)} shear levels for {nScales} scales.")
        self._shearLevels = shearLevels
        self._full = int(full)

        if directionalFilter is not None:
            directionalFilter = _asMatrix(directionalFilter, self._backend)
        if scalingFilter is not None:
            scalingFilter = _asMatrix(scalingFilter, self._backend)

        logger.debug("Building shearlet system (%d, %d), nScales=%d, shearLevels=%s, full=%d",
                     self._rows, self._cols, nScales, shearLevels, self._full)

        self._fourier = SLfourier(self._rows, self._cols, self._backend)
        cone1, cone2 = SLprepareFilters(self._rows, self._cols, shearLevels,
                                        directionalFilter=directionalFilter,
                                        scalingFilter=scalingFilter,
                                        fourier=self._fourier)
        self._shearLevel2index = dict(cone1.shearLevel2index)

        self._shearletIdxs = SLgetShearletIdxs2D(shearLevels, self._full)
        self._shearlets = [self._assemble(cone1, cone2, idx) for idx in self._shearletIdxs]
        self._weights = tr.SLreduceNmat(self._shearlets)

        norm = self._rows * self._cols
        self._RMS = torch.tensor([math.sqrt(tr.SLnormL2(psi) / norm) for psi in self._shearlets],
                                 dtype=self._backend.dtype)

        logger.debug("Shearlet system ready with %d shearlets", len(self._shearlets))

    def _assemble(self, cone1: SLfilterBundle, cone2: SLfilterBundle, idx) -> SLmatrix:
        cone, scale, shearing = (int(v) for v in idx)
        if cone == 0:
            return cone1.lowpass.copy()

        nShears = 1 << self._shearLevels[scale]
        if cone == 1:
            psi = SLmatrix(self._rows, self._cols, isComplex=True, backend=self._backend)
            return cone1.fourier.corrFF2F(cone1.getWedge(self._shearLevels[scale], nShears - shearing),
                                          cone1.bandpass[scale], psi)

        # cone 2 lives on the transposed grid
        psiT = SLmatrix(self._cols, self._rows, isComplex=True, backend=self._backend)
        cone2.fourier.corrFF2F(cone2.getWedge(self._shearLevels[scale], nShears + shearing),
                               cone2.bandpass[scale], psiT)
        return tr.SLtranspose(psiT)

    # ------------------------------------------------------------------
    # properties
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    def dims(self) -> t_dims:
        return t_dims(self._rows, self._cols)

    @property
    def backend(self) -> SLbackend:
        return self._backend

    @property
    def shearLevels(self) -> List[int]:
        return list(self._shearLevels)

    @property
    def full(self) -> int:
        return self._full

    @property
    def shearLevel2index(self):
        """Position of each distinct shear level in the wedge filter lists."""
        return dict(self._shearLevel2index)

    @property
    def nShearlets(self) -> int:
        return len(self._shearlets)

    @property
    def shearletIdxs(self) -> np.ndarray:
        """Nx3 array of [cone, scale, shearing], in coefficient order."""
        return self._shearletIdxs.copy()

    @property
    def shearlets(self) -> List[SLmatrix]:
        """The shearlets in the centred frequency domain."""
        return self._shearlets

    @property
    def weights(self) -> SLmatrix:
        """Dual frame weights sum_k |psi_k|^2."""
        return self._weights

    @property
    def RMS(self) -> torch.Tensor:
        """Root mean square of each shearlet, for band-wise threshold scaling."""
        return self._RMS.clone()

    def __repr__(self):
        return (f"SLsystem(rows={self._rows}, cols={self._cols}, shearLevels={self._shearLevels}, "
                f"nShearlets={len(self._shearlets)}, {self._backend})")

    # ------------------------------------------------------------------
    # transforms
    # ------------------------------------------------------------------

    def _spectrum(self, image: MatrixLike) -> SLmatrix:
        image = _asMatrix(image, self._backend)
        if image.dims() != (self._rows, self._cols):
            raise ValueError(f"Image has dims {tuple(image.dims())}, the system was built "
                             f"for ({self._rows}, {self._cols}).")
        if image.isComplex:
            spectrum = image.copy()
        else:
            spectrum = tr.SLreal2complex(image)
        self._fourier.fftWithShifts(spectrum)
        return spectrum

    def _analyse(self, spectrum: SLmatrix) -> SLcoeffs:
        coeffs = SLcoeffs()
        coeff = SLmatrix(self._rows, self._cols, isComplex=True, backend=self._backend)
        for psi in self._shearlets:
            self._fourier.corrFF2D(spectrum, psi, coeff)
            coeffs.addElement(coeff)
        return coeffs

    def _synthesise(self, coeffs: SLcoeffs) -> SLmatrix:
        if len(coeffs) != len(self._shearlets):
            raise ValueError(f"Got {len(coeffs)} coefficient bands, the system has "
                             f"{len(self._shearlets)} shearlets.")
        acc = SLmatrix(self._rows, self._cols, isComplex=True, backend=self._backend)
        tmp = SLmatrix(self._rows, self._cols, isComplex=True, backend=self._backend)
        for coeff, psi in zip(coeffs, self._shearlets):
            if coeff.dims() != (self._rows, self._cols):
                raise ValueError(f"Coefficient band has dims {tuple(coeff.dims())}, expected "
                                 f"({self._rows}, {self._cols}).")
            if not coeff.isComplex:
                coeff = tr.SLreal2complex(coeff)
            self._fourier.convDF2F(coeff, psi, tmp)
            acc += tmp
        return acc

    def decode(self, image: MatrixLike) -> SLcoeffs:
        """
        Shearlet decomposition of a real image.

        Args:
            image: Real image of size (rows, cols)

        Returns:
            SLcoeffs with one complex band per shearlet, in index order
        """
        return self._analyse(self._spectrum(image))

    def recover(self, coeffs: SLcoeffs) -> SLmatrix:
        """
        Shearlet reconstruction with the dual frame.

        Args:
            coeffs: One band per shearlet, as returned by decode

        Returns:
            Real image of size (rows, cols)
        """
        acc = self._synthesise(coeffs)
        tr.SLdivComplexByReal(acc, self._weights)
        self._fourier.ifftWithShifts(acc)
        return tr.SLcomplex2real(acc)

    def adjoint(self, coeffs: SLcoeffs) -> SLmatrix:
        """
        Adjoint of the decomposition, the reconstruction without the weight
        division. Returns the complex result in the data domain.
        """
        acc = self._synthesise(coeffs)
        self._fourier.ifftWithShifts(acc)
        return acc

    def recoverAdjoint(self, image: MatrixLike) -> SLcoeffs:
        """Adjoint of recover: decomposition with the weights divided out."""
        spectrum = self._spectrum(image)
        tr.SLdivComplexByReal(spectrum, self._weights)
        return self._analyse(spectrum)
