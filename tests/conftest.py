import numpy as np
import SimpleITK as sitk
import pytest

SPACING = (0.8, 0.8, 1.0)
ORIGIN = (-10.0, 5.0, 20.0)
SIZE = (40, 40, 40)  # x, y, z
BALL_CENTER = (5.3, 20.1, 38.4)
BALL_RADIUS = 6.0


def make_ball_image(center=BALL_CENTER, radius=BALL_RADIUS, intensity=1000.0,
                    size=SIZE, spacing=SPACING, origin=ORIGIN):
    """Synthetic CT-like volume with one bright ball defined in physical coordinates"""
    zz, yy, xx = np.meshgrid(
        np.arange(size[2]), np.arange(size[1]), np.arange(size[0]), indexing='ij'
    )
    x = origin[0] + xx * spacing[0]
    y = origin[1] + yy * spacing[1]
    z = origin[2] + zz * spacing[2]
    inside = (x - center[0])**2 + (y - center[1])**2 + (z - center[2])**2 <= radius**2

    image = sitk.GetImageFromArray((inside * intensity).astype(np.float32))
    image.SetSpacing(spacing)
    image.SetOrigin(origin)
    return image


@pytest.fixture
def ball_image():
    return make_ball_image()


def sphere_points(center, radius, n_theta=6, n_phi=8):
    """Points on a sphere surface from a spherical parameterization"""
    theta = np.linspace(0.2, np.pi - 0.2, n_theta)
    phi = np.linspace(0, 2 * np.pi, n_phi, endpoint=False)
    t, p = np.meshgrid(theta, phi, indexing='ij')
    t, p = t.ravel(), p.ravel()
    return np.column_stack([
        center[0] + radius * np.sin(t) * np.cos(p),
        center[1] + radius * np.sin(t) * np.sin(p),
        center[2] + radius * np.cos(t),
    ])
