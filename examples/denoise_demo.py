"""
Shearlet denoising demo.

Builds a shearlet system for a synthetic image with edges in several
directions, adds Gaussian noise and removes it by hard and by soft
thresholding of the shearlet coefficients. Thresholds are scaled per band
with the RMS of each shearlet.
"""

import os
import logging
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
import torch

from pyslsystem.pySLsystem import SLsystem

# Ensure output directory exists
os.makedirs("results", exist_ok=True)


def create_test_image(H: int, W: int) -> np.ndarray:
    """Rectangle, disc and a diagonal band on a dark background."""
    y, x = np.mgrid[0:H, 0:W]
    image = np.zeros((H, W))
    image[H // 5:H // 2, W // 6:W // 2] = 0.7
    image[(x - 0.65 * W) ** 2 + (y - 0.65 * H) ** 2 < (0.18 * H) ** 2] = 1.0
    image[np.abs(x - y - W // 8) < 3] = 0.5
    return image


def compute_psnr(clean: np.ndarray, estimate: np.ndarray) -> float:
    mse = np.mean((clean - estimate) ** 2)
    return 10 * np.log10(np.max(clean) ** 2 / mse)


def main():
    logging.basicConfig(level=logging.INFO)

    # === Setup ===
    device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
    print(f"Device: {device}")

    H, W = 256, 256
    n_scales = 3
    sigma = 0.1

    clean = create_test_image(H, W)
    np.random.seed(0)
    noisy = clean + sigma * np.random.randn(H, W)
    print(f"Image size: {H}x{W}, noise level sigma = {sigma}")

    # === Build the system ===
    print("Building shearlet system...")
    system = SLsystem(H, W, nScales=n_scales, device=device)
    print(f"{system.nShearlets} shearlets, shear levels {system.shearLevels}")

    # === Decompose and threshold ===
    coeffs = system.decode(noisy)
    rms = system.RMS.numpy()
    # the lowpass band is left untouched
    thresholds = list(3 * sigma * rms[:-1]) + [0.0]

    hard = coeffs.copy()
    hard.applyThreshold(thresholds)
    denoised_hard = system.recover(hard).toNumpy()

    soft = coeffs
    soft.applySoftThreshold([t / 2 for t in thresholds])
    denoised_soft = system.recover(soft).toNumpy()

    print(f"PSNR noisy:          {compute_psnr(clean, noisy):.2f} dB")
    print(f"PSNR hard threshold: {compute_psnr(clean, denoised_hard):.2f} dB")
    print(f"PSNR soft threshold: {compute_psnr(clean, denoised_soft):.2f} dB")

    # === Plot ===
    fig, axes = plt.subplots(1, 4, figsize=(16, 4))
    for ax, img, title in zip(axes,
                              [clean, noisy, denoised_hard, denoised_soft],
                              ['Clean', 'Noisy', 'Hard threshold', 'Soft threshold']):
        ax.imshow(img, cmap='gray', vmin=0, vmax=1)
        ax.set_title(title)
        ax.axis('off')
    plt.tight_layout()
    save_path = os.path.join("results", "denoise_demo.png")
    plt.savefig(save_path, dpi=150)
    print(f"Result saved to {save_path}")


if __name__ == '__main__':
    main()
