"""
Fourier engine for fixed-size 2D complex matrices.

An SLfourier instance is bound to one (rows, cols) size and builds its
transform plan once. Besides the plain and centred transforms it provides the
composite correlation and convolution operators used by the filter bank and
the shearlet system. Their names follow the pattern

    <corr|conv><domain of A><domain of B>2<domain of result>

with D for the data domain and F for the (centred) frequency domain.
Data-domain operands are forward transformed with shifts; corr forms
A * conj(B), conv forms A * B; a result in D is obtained with a centred
inverse transform.

An engine and its plan serve one call stream; do not issue calls on the
same engine from several threads at once.
"""

from __future__ import division
from typing import Optional

from pyslsystem.pySLbackend import SLbackend, defaultBackend
from pyslsystem.pySLmatrix import SLmatrix
from pyslsystem.pySLtransform import SLpad


class SLfourier:
    """
    2D FFT operator of a fixed size.

    Args:
        rows: Number of rows of every operand
        cols: Number of columns of every operand
        backend: Backend the plan lives on (default: SLbackend('cpu', float64))
    """

    def __init__(self, rows: int, cols: int, backend: Optional[SLbackend] = None):
        self._backend = defaultBackend(backend=backend)
        self._rows = int(rows)
        self._cols = int(cols)
        self._plan = self._backend.fourierPlan(self._rows, self._cols)

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def backend(self) -> SLbackend:
        return self._backend

    @property
    def plan(self):
        return self._plan

    def __repr__(self):
        return f"SLfourier(rows={self._rows}, cols={self._cols}, backend={self._backend})"

    def _check(self, *mats: SLmatrix):
        for mat in mats:
            if mat.dims() != (self._rows, self._cols):
                raise ValueError(f"Matrix of dims {tuple(mat.dims())} used with an FFT "
                                 f"plan of size ({self._rows}, {self._cols}).")
            if not mat.isComplex:
                raise ValueError("The Fourier engine operates on complex matrices.")

    # ------------------------------------------------------------------
    # primitive transforms (in place)
    # ------------------------------------------------------------------

    def fft(self, mat: SLmatrix) -> None:
        self._check(mat)
        self._backend.fft2(self._plan, mat.data())

    def ifft(self, mat: SLmatrix) -> None:
        self._check(mat)
        self._backend.ifft2(self._plan, mat.data())
        mat.normSize()

    def fftshift(self, mat: SLmatrix) -> None:
        self._check(mat)
        self._backend.shift(mat.data(), self._plan.rowShift, self._plan.colShift)

    def ifftshift(self, mat: SLmatrix) -> None:
        self._check(mat)
        self._backend.shift(mat.data(), self._plan.rowIShift, self._plan.colIShift)

    def fftWithShifts(self, mat: SLmatrix) -> None:
        """Centred forward transform: ifftshift, fft, fftshift."""
        self.ifftshift(mat)
        self.fft(mat)
        self.fftshift(mat)

    def ifftWithShifts(self, mat: SLmatrix) -> None:
        """Centred inverse transform: ifftshift, ifft, fftshift."""
        self.ifftshift(mat)
        self.ifft(mat)
        self.fftshift(mat)

    def fftWithShiftsPadded(self, inMat: SLmatrix, outMat: SLmatrix) -> None:
        """Zero-pads inMat into outMat (centred) and transforms outMat."""
        self._check(outMat)
        SLpad(inMat, outMat)
        self.fftWithShifts(outMat)

    # ------------------------------------------------------------------
    # composite operators
    # ------------------------------------------------------------------

    def _toFrequency(self, mat: SLmatrix) -> SLmatrix:
        spectrum = mat.copy()
        self.fftWithShifts(spectrum)
        return spectrum

    def _combine(self, a: SLmatrix, b: SLmatrix, out: SLmatrix,
                 conjugate: bool, dataA: bool, dataB: bool, toData: bool) -> SLmatrix:
        self._check(a, b, out)
        if dataA:
            a = self._toFrequency(a)
        if dataB:
            b = self._toFrequency(b)
        if conjugate:
            self._backend.corrComplex(a.data(), b.data(), out.data())
        else:
            self._backend.convComplex(a.data(), b.data(), out.data())
        if toData:
            self.ifftWithShifts(out)
        return out

    def corrFF2F(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, True, False, False, False)

    def corrFF2D(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, True, False, False, True)

    def corrDF2F(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, True, True, False, False)

    def corrDF2D(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, True, True, False, True)

    def corrDD2F(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, True, True, True, False)

    def corrDD2D(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, True, True, True, True)

    def convFF2F(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, False, False, False, False)

    def convFF2D(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, False, False, False, True)

    def convDF2F(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        """Transforms the data-domain A, multiplies by the spectrum B, stays in F."""
        return self._combine(A, B, out, False, True, False, False)

    def convDF2D(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, False, True, False, True)

    def convDD2F(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        return self._combine(A, B, out, False, True, True, False)

    def convDD2D(self, A: SLmatrix, B: SLmatrix, out: SLmatrix) -> SLmatrix:
        """Circular convolution of two data-domain matrices, computed via FFT."""
        return self._combine(A, B, out, False, True, True, True)
