"""
2D matrix container used throughout the shearlet system.

An SLmatrix is a row-major (rows, cols) tensor of real or complex elements
living on an SLbackend. It either owns its storage (allocated at construction
or deep-copied) or wraps a tensor owned by someone else. Which one is decided
once, at construction, and exposed through the read-only `owns` property.
"""

from __future__ import division
from collections import namedtuple
from typing import Optional, Union
import torch
import numpy as np

from pyslsystem.pySLbackend import SLbackend, defaultBackend


t_dims = namedtuple('t_dims', ['rows', 'cols'])


class SLmatrix:
    """
    Dense 2D matrix on a backend.

    Args:
        rows: Number of rows
        cols: Number of columns
        value: Optional fill value
        data: Optional tensor of shape (rows, cols) to wrap without copying
        isComplex: Element kind of allocated storage (ignored when wrapping)
        backend: Backend for the storage (default: SLbackend('cpu', float64))
    """

    def __init__(self, rows: int, cols: int, value=None,
                 data: Optional[torch.Tensor] = None,
                 isComplex: bool = False,
                 backend: Optional[SLbackend] = None):
        rows = int(rows)
        cols = int(cols)
        if rows < 1 or cols < 1:
            raise ValueError(f"Matrix dimensions must be positive, got ({rows}, {cols}).")
        if data is not None and value is not None:
            raise ValueError("Pass either a fill value or storage to wrap, not both.")

        self._backend = defaultBackend(backend=backend)
        self._rows = rows
        self._cols = cols

        if data is None:
            self._data = self._backend.allocate(rows, cols, isComplex)
            self._owns = True
            self._backend.fill(self._data, 0 if value is None else value)
        else:
            if tuple(data.shape) != (rows, cols):
                raise ValueError(f"Wrapped storage has shape {tuple(data.shape)}, "
                                 f"expected ({rows}, {cols}).")
            self._data = self._backend.wrap(data)
            self._owns = False

    # ------------------------------------------------------------------
    # alternative constructors
    # ------------------------------------------------------------------

    @classmethod
    def zeros(cls, dims, isComplex: bool = False,
              backend: Optional[SLbackend] = None) -> 'SLmatrix':
        return cls(dims[0], dims[1], isComplex=isComplex, backend=backend)

    @classmethod
    def wrapTensor(cls, data: torch.Tensor,
                   backend: Optional[SLbackend] = None) -> 'SLmatrix':
        """Non-owning view of an existing 2D tensor."""
        if backend is None:
            real = data.real.dtype if data.is_complex() else data.dtype
            backend = SLbackend(data.device, real)
        return cls(data.shape[0], data.shape[1], data=data, backend=backend)

    @classmethod
    def fromNumpy(cls, array: np.ndarray,
                  backend: Optional[SLbackend] = None) -> 'SLmatrix':
        """Owning matrix holding a device copy of a 1D or 2D host array."""
        backend = defaultBackend(backend=backend)
        array = np.asarray(array)
        if array.ndim == 1:
            array = array.reshape(1, -1)
        if array.ndim != 2:
            raise ValueError(f"Expected a 1D or 2D array, got {array.ndim}D.")
        isComplex = np.iscomplexobj(array)
        mat = cls(array.shape[0], array.shape[1], isComplex=isComplex, backend=backend)
        backend.copy(mat._data, backend.copyFromHost(array, isComplex))
        return mat

    @classmethod
    def fromMatrix(cls, other: 'SLmatrix') -> 'SLmatrix':
        """Copy construction: always allocates and deep-copies."""
        mat = cls(other.rows, other.cols, isComplex=other.isComplex, backend=other.backend)
        mat._backend.copy(mat._data, other._data)
        return mat

    def copy(self) -> 'SLmatrix':
        return SLmatrix.fromMatrix(self)

    def __copy__(self):
        return self.copy()

    def __deepcopy__(self, memo):
        return self.copy()

    # ------------------------------------------------------------------
    # info
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def owns(self) -> bool:
        return self._owns

    @property
    def backend(self) -> SLbackend:
        return self._backend

    @property
    def isComplex(self) -> bool:
        return self._data.is_complex()

    def dims(self) -> t_dims:
        return t_dims(self._rows, self._cols)

    def size(self) -> int:
        return self._rows * self._cols

    def data(self) -> torch.Tensor:
        """Raw storage, shape (rows, cols). Writes go straight to the matrix."""
        return self._data

    def toNumpy(self) -> np.ndarray:
        return self._backend.copyToHost(self._data)

    def __repr__(self):
        kind = 'complex' if self.isComplex else 'real'
        return (f"SLmatrix({self._rows}x{self._cols}, {kind}, "
                f"{'owning' if self._owns else 'view'}, {self._backend})")

    # ------------------------------------------------------------------
    # element access
    # ------------------------------------------------------------------

    def _checkIndex(self, idx):
        if not isinstance(idx, tuple) or len(idx) != 2:
            raise IndexError("SLmatrix elements are addressed as mat[i, j].")
        i, j = idx
        if not (0 <= i < self._rows and 0 <= j < self._cols):
            raise IndexError(f"Index ({i}, {j}) out of range for a "
                             f"{self._rows}x{self._cols} matrix.")
        return i, j

    def __getitem__(self, idx):
        i, j = self._checkIndex(idx)
        return self._data[i, j].item()

    def __setitem__(self, idx, value):
        i, j = self._checkIndex(idx)
        self._data[i, j] = value

    # ------------------------------------------------------------------
    # in place operations
    # ------------------------------------------------------------------

    def _checkSameDims(self, other: 'SLmatrix'):
        if self.dims() != other.dims():
            raise ValueError(f"Dimension mismatch: {tuple(self.dims())} vs {tuple(other.dims())}.")

    def __iadd__(self, other: 'SLmatrix') -> 'SLmatrix':
        self._checkSameDims(other)
        self._backend.sumInPlace(self._data, other._data)
        return self

    def __imul__(self, other: Union['SLmatrix', int, float, complex]) -> 'SLmatrix':
        if isinstance(other, SLmatrix):
            self._checkSameDims(other)
            self._backend.prodInPlace(self._data, other._data)
        else:
            self._backend.prodScalarInPlace(self._data, other)
        return self

    def __itruediv__(self, value) -> 'SLmatrix':
        self._backend.divScalarInPlace(self._data, value)
        return self

    def fill(self, value) -> None:
        self._backend.fill(self._data, value)

    def normalize(self) -> None:
        """Divides every element by the sum of magnitudes."""
        self._backend.normalize(self._data)

    def normSize(self) -> None:
        """Divides every element by rows*cols."""
        self._backend.divScalarInPlace(self._data, self.size())

    def fliplr(self, dim: int) -> None:
        """Reverses the order of rows (dim=0) or columns (dim=1)."""
        self._backend.fliplr(self._data, dim)

    def applyThreshold(self, threshold) -> None:
        """Zeros every element whose magnitude is below |threshold|."""
        self._backend.applyThreshold(self._data, threshold)

    def applySoftThreshold(self, threshold) -> None:
        """Shrinks every magnitude by |threshold|, clipping at zero."""
        self._backend.softThreshold(self._data, threshold)
