"""
Matrix transform primitives for the shearlet filter bank.

Up/downsampling by zero insertion, centred zero padding, the discrete shear
operator, transposition, direct 2D convolution and a handful of reductions.
The filter-bank construction depends on the exact indexing of these
operations, so each one validates the dimensions of its output.

Each primitive accepts an optional output matrix. When it is given, its
dimensions are checked and it is written in place; otherwise a new matrix is
allocated and returned. The SL*Dims functions answer the dimension query
alone, without doing any work.
"""

from __future__ import division
from typing import List, Optional, Tuple
import torch
import torch.nn.functional as F

from pyslsystem.pySLmatrix import SLmatrix, t_dims


def _checkDim(dim: int):
    if dim not in (0, 1):
        raise ValueError(f"Invalid dim={dim}, must be 0 (rows) or 1 (cols).")


def _output(outMat: Optional[SLmatrix], dims: Tuple[int, int], like: SLmatrix,
            isComplex: Optional[bool] = None, name: str = 'output') -> SLmatrix:
    if isComplex is None:
        isComplex = like.isComplex
    if outMat is None:
        return SLmatrix(dims[0], dims[1], isComplex=isComplex, backend=like.backend)
    if tuple(outMat.dims()) != tuple(dims):
        raise ValueError(f"{name} has dims {tuple(outMat.dims())}, expected {tuple(dims)}.")
    return outMat


# ============================================================================
# Resampling
# ============================================================================

def SLdownsampleDims(dims: Tuple[int, int], dim: int, stride: int) -> t_dims:
    _checkDim(dim)
    if stride < 1:
        raise ValueError(f"stride must be >= 1, got {stride}.")
    rows, cols = dims
    if dim == 0:
        return t_dims(-(-rows // stride), cols)
    return t_dims(rows, -(-cols // stride))


def SLdownsample(inMat: SLmatrix, dim: int, stride: int,
                 outMat: Optional[SLmatrix] = None) -> SLmatrix:
    """
    Keeps every stride-th row (dim=0) or column (dim=1), starting with the first.

    Args:
        inMat: Input matrix
        dim: 0 for rows, 1 for columns
        stride: Sampling step, >= 1
        outMat: Optional output of dims SLdownsampleDims(inMat.dims(), dim, stride)

    Returns:
        The downsampled matrix
    """
    outMat = _output(outMat, SLdownsampleDims(inMat.dims(), dim, stride), inMat)
    src = inMat.data()
    if dim == 0:
        outMat.data().copy_(src[::stride, :])
    else:
        outMat.data().copy_(src[:, ::stride])
    return outMat


def SLupsampleDims(dims: Tuple[int, int], dim: int, nZeros: int) -> t_dims:
    _checkDim(dim)
    if nZeros < 0:
        raise ValueError(f"nZeros must be >= 0, got {nZeros}.")
    rows, cols = dims
    if dim == 0:
        return t_dims((rows - 1) * nZeros + rows, cols)
    return t_dims(rows, (cols - 1) * nZeros + cols)


def SLupsample(inMat: SLmatrix, dim: int, nZeros: int,
               outMat: Optional[SLmatrix] = None) -> SLmatrix:
    """
    Inserts nZeros zero rows (dim=0) or columns (dim=1) between consecutive
    rows or columns. Nothing is added before the first or after the last one.

    Args:
        inMat: Input matrix
        dim: 0 for rows, 1 for columns
        nZeros: Number of zeros to insert between elements
        outMat: Optional output of dims SLupsampleDims(inMat.dims(), dim, nZeros)

    Returns:
        The upsampled matrix
    """
    outMat = _output(outMat, SLupsampleDims(inMat.dims(), dim, nZeros), inMat)
    dst = outMat.data()
    dst.zero_()
    if dim == 0:
        dst[::nZeros + 1, :] = inMat.data()
    else:
        dst[:, ::nZeros + 1] = inMat.data()
    return outMat


# ============================================================================
# Padding, shearing and transposition
# ============================================================================

def SLpadOffsets(inDims: Tuple[int, int], outDims: Tuple[int, int]) -> Tuple[int, int]:
    """
    Offsets at which SLpad places the input. When the size difference is odd
    the extra zero goes before the content.
    """
    offsets = []
    for k in range(2):
        sizeDiff = outDims[k] - inDims[k]
        if sizeDiff < 0:
            raise ValueError(f"Target size {tuple(outDims)} is smaller than "
                             f"the input size {tuple(inDims)} in dimension {k}.")
        offsets.append(sizeDiff // 2 + sizeDiff % 2)
    return offsets[0], offsets[1]


def SLpad(inMat: SLmatrix, outMat: SLmatrix) -> SLmatrix:
    """
    Centers inMat inside the zero-filled outMat.

    Args:
        inMat: Input matrix
        outMat: Output matrix, at least as large as inMat on both axes

    Returns:
        outMat
    """
    r0, c0 = SLpadOffsets(inMat.dims(), outMat.dims())
    dst = outMat.data()
    dst.zero_()
    src = inMat.data()
    if dst.is_complex() and not src.is_complex():
        src = src.to(dst.dtype)
    dst[r0:r0 + inMat.rows, c0:c0 + inMat.cols] = src
    return outMat


def SLdshear(inMat: SLmatrix, k: int, dim: int,
             outMat: Optional[SLmatrix] = None) -> SLmatrix:
    """
    Computes the discretized shearing operator.

    With dim=1 every row is circularly shifted along the columns, with dim=0
    every column along the rows. Line i moves by k*(n//2 - i), n being the
    number of lines, so the shift grows linearly away from the centre line.
    Applying the operator with -k undoes it.

    Args:
        inMat: Input matrix
        k: Shear number
        dim: 0 to shear columns, 1 to shear rows
        outMat: Optional output with the same dims as inMat

    Returns:
        The sheared matrix
    """
    _checkDim(dim)
    outMat = _output(outMat, inMat.dims(), inMat)
    src = inMat.data()
    rows, cols = inMat.dims()

    if k == 0:
        outMat.data().copy_(src)
        return outMat

    # gather with one index per element: line i reads from (j - shift_i) mod n
    if dim == 1:
        shifts = k * (rows // 2 - torch.arange(rows, device=src.device))
        idx = (torch.arange(cols, device=src.device).unsqueeze(0) - shifts.unsqueeze(1)) % cols
        sheared = torch.gather(src, 1, idx)
    else:
        shifts = k * (cols // 2 - torch.arange(cols, device=src.device))
        idx = (torch.arange(rows, device=src.device).unsqueeze(1) - shifts.unsqueeze(0)) % rows
        sheared = torch.gather(src, 0, idx)

    outMat.data().copy_(sheared)
    return outMat


def SLtranspose(inMat: SLmatrix, outMat: Optional[SLmatrix] = None) -> SLmatrix:
    outMat = _output(outMat, (inMat.cols, inMat.rows), inMat)
    outMat.data().copy_(inMat.data().t())
    return outMat


# ============================================================================
# Convolution and products
# ============================================================================

def SLconvolveDims(dims1: Tuple[int, int], dims2: Tuple[int, int]) -> t_dims:
    return t_dims(dims1[0] + dims2[0] - 1, dims1[1] + dims2[1] - 1)


def SLconvolve(inMat: SLmatrix, filterMat: SLmatrix,
               outMat: Optional[SLmatrix] = None) -> SLmatrix:
    """
    Full 2D convolution computed directly in the data domain.

    Equivalent to zero-padding both operands to (r1+r2-1, c1+c2-1) and
    summing; meant for the small prototype filters, not for images.

    Args:
        inMat: First operand
        filterMat: Second operand
        outMat: Optional output of dims SLconvolveDims(...)

    Returns:
        The convolution of both operands
    """
    outMat = _output(outMat, SLconvolveDims(inMat.dims(), filterMat.dims()), inMat)
    a = inMat.data()
    b = filterMat.data()

    if a.is_complex() or b.is_complex():
        # conv2d has no complex kernels; combine the four real products
        ar, ai = (a.real, a.imag) if a.is_complex() else (a, torch.zeros_like(a))
        br, bi = (b.real, b.imag) if b.is_complex() else (b, torch.zeros_like(b))
        real = _convolve2dFull(ar, br) - _convolve2dFull(ai, bi)
        imag = _convolve2dFull(ar, bi) + _convolve2dFull(ai, br)
        outMat.data().copy_(torch.complex(real, imag))
    else:
        outMat.data().copy_(_convolve2dFull(a, b))
    return outMat


def _convolve2dFull(input: torch.Tensor, kernel: torch.Tensor) -> torch.Tensor:
    kernel_flipped = torch.flip(kernel, [0, 1])
    pad_h = kernel.shape[0] - 1
    pad_w = kernel.shape[1] - 1
    input_4d = input.unsqueeze(0).unsqueeze(0)
    kernel_4d = kernel_flipped.unsqueeze(0).unsqueeze(0)
    output = F.conv2d(input_4d, kernel_4d, padding=(pad_h, pad_w))
    return output.squeeze(0).squeeze(0)


def SLmatMul(aMat: SLmatrix, bMat: SLmatrix,
             outMat: Optional[SLmatrix] = None) -> SLmatrix:
    if aMat.cols != bMat.rows:
        raise ValueError(f"Cannot multiply {tuple(aMat.dims())} by {tuple(bMat.dims())}.")
    outMat = _output(outMat, (aMat.rows, bMat.cols), aMat)
    outMat.data().copy_(torch.matmul(aMat.data(), bMat.data()))
    return outMat


def SLnormL2(inMat: SLmatrix):
    """Sum of squared magnitudes of all elements."""
    return torch.sum(torch.abs(inMat.data()) ** 2).item()


# ============================================================================
# Element kind conversion and reductions
# ============================================================================

def SLreal2complex(inMat: SLmatrix, outMat: Optional[SLmatrix] = None) -> SLmatrix:
    if inMat.isComplex:
        raise ValueError("SLreal2complex expects a real matrix.")
    outMat = _output(outMat, inMat.dims(), inMat, isComplex=True)
    inMat.backend.real2complex(inMat.data(), outMat.data())
    return outMat


def SLcomplex2real(inMat: SLmatrix, outMat: Optional[SLmatrix] = None) -> SLmatrix:
    if not inMat.isComplex:
        raise ValueError("SLcomplex2real expects a complex matrix.")
    outMat = _output(outMat, inMat.dims(), inMat, isComplex=False)
    inMat.backend.complex2real(inMat.data(), outMat.data())
    return outMat


def SLdivComplexByReal(inOutMat: SLmatrix, weights: SLmatrix) -> SLmatrix:
    """Divides a complex matrix elementwise by a real one, in place."""
    if inOutMat.dims() != weights.dims():
        raise ValueError(f"Dimension mismatch: {tuple(inOutMat.dims())} vs {tuple(weights.dims())}.")
    inOutMat.backend.divComplexByReal(inOutMat.data(), weights.data())
    return inOutMat


def SLreduceNmat(mats: List[SLmatrix], outMat: Optional[SLmatrix] = None) -> SLmatrix:
    """
    Elementwise sum of squared magnitudes over a list of equally sized matrices.

    Args:
        mats: Non-empty list of matrices
        outMat: Optional real output with the same dims

    Returns:
        Real matrix holding sum_k |mats[k]|^2
    """
    if len(mats) == 0:
        raise ValueError("SLreduceNmat needs at least one matrix.")
    dims = mats[0].dims()
    outMat = _output(outMat, dims, mats[0], isComplex=False)
    acc = outMat.data()
    acc.zero_()
    for mat in mats:
        if mat.dims() != dims:
            raise ValueError(f"Dimension mismatch: {tuple(mat.dims())} vs {tuple(dims)}.")
        acc.add_(torch.abs(mat.data()) ** 2)
    return outMat
