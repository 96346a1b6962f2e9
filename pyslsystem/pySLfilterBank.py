"""
Construction of the frequency-domain filter bank of a 2D shearlet system.

From a 1D scaling filter, its mirrored wavelet filter, a 2D directional
filter and a second scaling filter, this module builds for one image size

    - the lowpass filter,
    - one bandpass (wavelet) filter per scale,
    - for every distinct shear level L, 2^(L+1)+1 directional wedge filters,

all as centred frequency-domain complex matrices of the image size. The
shearlet system combines them into shearlets and then drops the bundle.

The wedge construction follows ShearLab 3D (SLgetWedgeBandpassAndLowpassFilters2D).
"""

from __future__ import division
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np

from pyslsystem.pySLbackend import SLbackend, defaultBackend
from pyslsystem.pySLmatrix import SLmatrix
from pyslsystem.pySLfourier import SLfourier
from pyslsystem.pySLFilters import SLFilterType, SLfilterGenerator, SLfilterMirror
from pyslsystem import pySLtransform as tr


logger = logging.getLogger(__name__)


class SLfilterBundle:
    """
    Filters of one cone, all of size (fourier.rows, fourier.cols).

    Attributes:
        fourier: Engine the filters were transformed with
        lowpass: Lowpass filter
        bandpass: One bandpass filter per scale
        wedge: Per distinct shear level (see shearLevel2index), the list of
               directional filters; the filter for shearing k is at 2^L - k
        shearLevel2index: Maps a shear level to its position in wedge
    """

    def __init__(self, fourier: SLfourier, lowpass: SLmatrix,
                 bandpass: List[SLmatrix], wedge: List[List[SLmatrix]],
                 shearLevel2index: Dict[int, int]):
        self.fourier = fourier
        self.lowpass = lowpass
        self.bandpass = bandpass
        self.wedge = wedge
        self.shearLevel2index = shearLevel2index

    def getWedge(self, shearLevel: int, direction: int) -> SLmatrix:
        return self.wedge[self.shearLevel2index[shearLevel]][direction]


# ============================================================================
# Shear levels and shearlet indices
# ============================================================================

def SLshearLevels(nScales: int) -> List[int]:
    """Default shear levels ceil((1:nScales)/2)."""
    if nScales < 1:
        raise ValueError(f"nScales must be >= 1, got {nScales}.")
    return [int(math.ceil(i / 2)) for i in range(1, nScales + 1)]


def SLcheckShearLevels(shearLevels: Sequence[int]) -> List[int]:
    shearLevels = [int(level) for level in shearLevels]
    if len(shearLevels) == 0:
        raise ValueError("shearLevels must contain one entry per scale.")
    if any(level < 0 for level in shearLevels):
        raise ValueError(f"Each shear level has to be >= 0, got {shearLevels}.")
    if any(b < a for a, b in zip(shearLevels, shearLevels[1:])):
        raise ValueError(f"Shear levels must be non-decreasing, got {shearLevels}.")
    return shearLevels


def SLgetShearletIdxs2D(shearLevels: Sequence[int], full: int = 1) -> np.ndarray:
    """
    Computes the ordered index set of a 2D shearlet system.

    For cone 1 and then cone 2, for every scale, every shearing in
    [-2^L, 2^L] is listed; the single lowpass index (0, 0, 0) comes last.
    With full=0 the shearings |k| = 2^L of cone 2 are left out, as they
    almost coincide with the border shearlets of cone 1.

    Args:
        shearLevels: Shear level of each scale
        full: 1 for the full system (default), 0 for the reduced one

    Returns:
        shearletIdxs: Nx3 array with columns [cone, scale, shearing],
                      scale counted from 0
    """
    shearletIdxs = []
    for cone in (1, 2):
        for scale, shearLevel in enumerate(shearLevels):
            nShears = 1 << int(shearLevel)
            for shearing in range(-nShears, nShears + 1):
                if full or cone == 1 or abs(shearing) < nShears:
                    shearletIdxs.append([cone, scale, shearing])
    shearletIdxs.append([0, 0, 0])
    return np.asarray(shearletIdxs, dtype=np.int64)


def SLnShearlets(shearLevels: Sequence[int], full: int = 1) -> int:
    """Number of shearlets, lowpass included."""
    perCone = [2 * (1 << int(level)) + 1 for level in shearLevels]
    if full:
        return 2 * sum(perCone) + 1
    return sum(perCone) + sum(n - 2 for n in perCone) + 1


# ============================================================================
# Filter construction
# ============================================================================

def SLcascade(finest: SLmatrix, coarsest: SLmatrix, nStages: int) -> List[SLmatrix]:
    """
    Builds nStages 1D filters, coarsest first in the last slot.

    Stage j is the finest filter convolved with stage j+1 upsampled by one
    zero, iterating from nStages-2 down to 0.
    """
    stages: List[Optional[SLmatrix]] = [None] * nStages
    stages[-1] = coarsest.copy()
    for j in range(nStages - 2, -1, -1):
        upsampled = tr.SLupsample(stages[j + 1], 1, 1)
        stages[j] = tr.SLconvolve(finest, upsampled)
    return stages


def SLcomputeFilters(fourier: SLfourier, shearLevels: Sequence[int],
                     directionalFilter: SLmatrix, scalingFilter: SLmatrix,
                     waveletFilter: SLmatrix, scalingFilter2: SLmatrix) -> SLfilterBundle:
    """
    Computes lowpass, bandpass and wedge filters for one cone.

    Args:
        fourier: Engine of the target size (rows, cols)
        shearLevels: Shear level of each scale
        directionalFilter: 2D directional filter, normalised to unit l1 norm
        scalingFilter: 1 x N scaling filter
        waveletFilter: 1 x N wavelet filter
        scalingFilter2: 1 x N scaling filter of the directional cascade

    Returns:
        The filter bundle
    """
    rows, cols = fourier.rows, fourier.cols
    backend = fourier.backend
    nScales = len(shearLevels)
    maxLevel = max(shearLevels) + 1

    logger.debug("Computing filters for (%d, %d), shear levels %s", rows, cols, list(shearLevels))

    # 1D high and low pass filters at all scales
    filterLow = SLcascade(scalingFilter, scalingFilter, nScales)
    filterHigh = SLcascade(scalingFilter, waveletFilter, nScales)
    filterLow2 = SLcascade(scalingFilter2, scalingFilter2, maxLevel)

    bandpass = []
    for j in range(nScales):
        filterPaddedFFT = SLmatrix(rows, cols, isComplex=True, backend=backend)
        fourier.fftWithShiftsPadded(tr.SLreal2complex(filterHigh[j]), filterPaddedFFT)
        bandpass.append(filterPaddedFFT)

    # separable lowpass from the outer product of the finest lowpass filter
    filterLowTranspose = tr.SLtranspose(filterLow[0])
    filterLowOuter = tr.SLmatMul(filterLowTranspose, filterLow[0])
    lowpass = SLmatrix(rows, cols, isComplex=True, backend=backend)
    fourier.fftWithShiftsPadded(tr.SLreal2complex(filterLowOuter), lowpass)

    shearLevel2index: Dict[int, int] = {}
    wedge: List[List[SLmatrix]] = []
    for shearLevel in shearLevels:
        if shearLevel in shearLevel2index:
            continue
        shearLevel2index[shearLevel] = len(wedge)
        wedge.append(_computeWedges(fourier, shearLevel, directionalFilter, filterLow2))

    return SLfilterBundle(fourier, lowpass, bandpass, wedge, shearLevel2index)


def _computeWedges(fourier: SLfourier, shearLevel: int,
                   directionalFilter: SLmatrix,
                   filterLow2: List[SLmatrix]) -> List[SLmatrix]:
    rows, cols = fourier.rows, fourier.cols
    backend = fourier.backend
    maxLevel = len(filterLow2)
    nShears = 1 << shearLevel

    logger.debug("Computing %d wedge filters for shear level %d", 2 * nShears + 1, shearLevel)

    # directional filter, upsampled along the rows and smoothed by the lowpass
    directionalFilterUpsampled = tr.SLupsample(directionalFilter, 0, (1 << (shearLevel + 1)) - 1)
    filterLow2Transpose = tr.SLtranspose(filterLow2[maxLevel - 1 - shearLevel])
    wedgeHelp = tr.SLconvolve(directionalFilterUpsampled, filterLow2Transpose)
    wedgeHelpPad = tr.SLpad(wedgeHelp, SLmatrix(rows, cols, backend=backend))
    wedgeHelpUpsampled = tr.SLupsample(wedgeHelpPad, 1, nShears - 1)

    dimsUpsampled = wedgeHelpUpsampled.dims()
    lowpassHelp = tr.SLpad(filterLow2[maxLevel - 1 - max(shearLevel - 1, 0)],
                           SLmatrix(dimsUpsampled.rows, dimsUpsampled.cols, backend=backend))
    lowpassHelpComplex = tr.SLreal2complex(lowpassHelp)
    wedgeConv = tr.SLreal2complex(wedgeHelpUpsampled)

    # the upsampled grid needs its own engine
    upsampledFourier = SLfourier(dimsUpsampled.rows, dimsUpsampled.cols, backend)
    upsampledFourier.convDD2D(lowpassHelpComplex, wedgeConv, wedgeConv)

    lowpassHelpComplex.fliplr(1)

    wedgeUpsampledSheared = SLmatrix.zeros(dimsUpsampled, isComplex=True, backend=backend)
    wedgeUpsampledConv = SLmatrix.zeros(dimsUpsampled, isComplex=True, backend=backend)
    directions: List[Optional[SLmatrix]] = [None] * (2 * nShears + 1)

    for k in range(-nShears, nShears + 1):
        tr.SLdshear(wedgeConv, k, 1, wedgeUpsampledSheared)
        upsampledFourier.convDD2D(lowpassHelpComplex, wedgeUpsampledSheared, wedgeUpsampledConv)

        wedgeDownsampled = tr.SLdownsample(wedgeUpsampledConv, 1, nShears)
        wedgeDownsampled *= float(nShears)
        fourier.fftWithShifts(wedgeDownsampled)
        directions[nShears - k] = wedgeDownsampled

    return directions


def SLprepareFilters(rows: int, cols: int, shearLevels: Sequence[int],
                     directionalFilter: Optional[SLmatrix] = None,
                     scalingFilter: Optional[SLmatrix] = None,
                     waveletFilter: Optional[SLmatrix] = None,
                     scalingFilter2: Optional[SLmatrix] = None,
                     fourier: Optional[SLfourier] = None,
                     backend: Optional[SLbackend] = None) -> Tuple[SLfilterBundle, SLfilterBundle]:
    """
    Prepares the filter bundles of both cones.

    Cone 1 is built on (rows, cols). Cone 2 is built on the transposed grid
    (cols, rows); for square sizes it is the very same bundle as cone 1.

    Args:
        rows, cols: Image dimensions
        shearLevels: Shear level of each scale
        directionalFilter: Optional 2D directional filter (default: SL_DIRECTIONAL1)
        scalingFilter: Optional 1D scaling filter (default: SL_SCALING)
        waveletFilter: Optional 1D wavelet filter (default: mirrored scalingFilter)
        scalingFilter2: Optional second scaling filter (default: scalingFilter)
        fourier: Optional engine of size (rows, cols) to reuse
        backend: Computation backend

    Returns:
        Tuple of (cone1, cone2) filter bundles
    """
    if fourier is not None:
        backend = fourier.backend
    backend = defaultBackend(backend=backend)
    shearLevels = SLcheckShearLevels(shearLevels)

    if scalingFilter is None:
        scalingFilter = SLfilterGenerator(SLFilterType.SL_SCALING, backend)
    if waveletFilter is None:
        waveletFilter = SLfilterMirror(scalingFilter)
    if scalingFilter2 is None:
        scalingFilter2 = scalingFilter.copy()
    if directionalFilter is None:
        directionalFilter = SLfilterGenerator(SLFilterType.SL_DIRECTIONAL1, backend)
    else:
        directionalFilter = directionalFilter.copy()
    directionalFilter.normalize()

    if fourier is None or (fourier.rows, fourier.cols) != (rows, cols):
        fourier = SLfourier(rows, cols, backend)

    cone1 = SLcomputeFilters(fourier, shearLevels, directionalFilter,
                             scalingFilter, waveletFilter, scalingFilter2)
    if rows == cols:
        cone2 = cone1
    else:
        cone2 = SLcomputeFilters(SLfourier(cols, rows, backend), shearLevels, directionalFilter,
                                 scalingFilter, waveletFilter, scalingFilter2)
    return cone1, cone2
