#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Spherical harmonics illumination estimation from surface points with known normal, albedo and observed radiance.

The model is radiance = albedo * sum_i Y_i(normal) * k_i * L_i per color channel, with the SH basis functions Y_i, a per-coefficient kernel k_i and unknown RGB light coefficients L_i. The kernel is all ones to estimate the radiance itself, or the Lambert kernel to deconvolve the diffuse reflectance and recover the incident light.

The solve is a plain least squares fit without regularization. With few points, or normals covering only a small part of the sphere, the system is ill-conditioned and the higher bands are unreliable.
"""
import logging
from collections import namedtuple
import numpy as np
from scipy.linalg import lstsq
from sklearn.preprocessing import normalize
from ..utils.transform import shBasis, totalCoefficients, lambertKernel
from ..parameters import SphericalHarmonicsLight
from ..render.renderer import renderCorrespondence

logger = logging.getLogger(__name__)

IlluminatedPoint = namedtuple('IlluminatedPoint', ['normal', 'radiance', 'albedo'])

def solveSHArrays(normals, radiance, albedo, kernel):
    """
    Least squares SH light coefficients from arrays of point data

    Args:
        normals (ndarray): surface normals, (N, 3)
        radiance (ndarray): observed RGB radiance, (N, 3)
        albedo (ndarray): RGB albedo, (N, 3)
        kernel (ndarray): per-coefficient kernel, its length is the number of coefficients to estimate

    Returns:
        ndarray: RGB light coefficients, (len(kernel), 3)
    """
    normals = np.asarray(normals, dtype = float).reshape(-1, 3)
    radiance = np.asarray(radiance, dtype = float).reshape(-1, 3)
    albedo = np.asarray(albedo, dtype = float).reshape(-1, 3)
    kernel = np.asarray(kernel, dtype = float)

    numPoints = normals.shape[0]
    if numPoints == 0:
        raise ValueError('cannot solve for illumination without any illuminated point')
    if radiance.shape[0] != numPoints or albedo.shape[0] != numPoints:
        raise ValueError('got %d normals, %d radiances and %d albedos' % (numPoints, radiance.shape[0], albedo.shape[0]))
    if kernel.ndim != 1 or kernel.size == 0:
        raise ValueError('kernel must be a non-empty vector, got shape %s' % (kernel.shape,))

    numSH = kernel.size
    Y = shBasis(normals, numSH) * kernel

    # Rows are (point, color channel) and columns (SH coefficient, color channel); channels do not mix
    A = np.zeros((3*numPoints, 3*numSH))
    for c in range(3):
        A[c::3, c::3] = albedo[:, c, np.newaxis] * Y

    b = radiance.flatten()

    logger.debug('solving SH system with %d equations for %d unknowns', A.shape[0], A.shape[1])
    lightField = lstsq(A, b)[0]

    return lightField.reshape(numSH, 3)

def solveSHSystemDeconvolve(points, kernel):
    """
    SH light coefficients deconvolving ``kernel`` from the radiance of a sequence of ``IlluminatedPoint``, one RGB vector per kernel entry
    """
    points = list(points)
    if not points:
        raise ValueError('cannot solve for illumination without any illuminated point')

    normals = np.array([p.normal for p in points], dtype = float)
    radiance = np.array([p.radiance for p in points], dtype = float)
    albedo = np.array([p.albedo for p in points], dtype = float)

    return solveSHArrays(normals, radiance, albedo, kernel)

def solveSHSystem(points, nBands):
    """
    SH coefficients of the radiance itself, for bands 0 to nBands
    """
    return solveSHSystemDeconvolve(points, np.ones(totalCoefficients(nBands)))

class SphericalHarmonicsOptimizer:
    """Estimate the environment map of a target image for the current face, pose and camera

    The visible surface points of the rendered face are paired with the target pixels they cover. Target colors are mapped back through the inverse color transform and the light is solved with the Lambert kernel.

    Args:
        renderer (MoMoRenderer): renderer of the face model
        targetImage (ndarray): RGB or RGBA target image, (height, width, channels)
    """
    def __init__(self, renderer, targetImage):
        self.renderer = renderer
        self.targetImage = np.asarray(targetImage, dtype = float)

    def illuminatedPoints(self, parameters, numPoints = None, rng = None):
        """
        Normals, radiances and albedos of the visible surface points, optionally a random subset of ``numPoints`` of them
        """
        height, width = self.targetImage.shape[:2]
        if (width, height) != tuple(parameters.imageSize):
            raise ValueError('target image of size %d x %d does not match render size %d x %d' % (width, height, parameters.imageSize.width, parameters.imageSize.height))

        mesh, color, normals = self.renderer.instance(parameters)
        pixelCoord, pixelFaces, pixelBarycentricCoords = renderCorrespondence(mesh, parameters).fragments()

        if numPoints is not None and pixelFaces.size > numPoints:
            if rng is None:
                rng = np.random.default_rng()
            ind = np.sort(rng.choice(pixelFaces.size, numPoints, replace = False))
            pixelCoord, pixelFaces, pixelBarycentricCoords = pixelCoord[ind], pixelFaces[ind], pixelBarycentricCoords[ind]

        if pixelFaces.size == 0:
            return np.zeros((0, 3)), np.zeros((0, 3)), np.zeros((0, 3))

        albedo = color.onSurface(pixelFaces, pixelBarycentricCoords)[:, :3]
        vertexNorms = normalize(normals.onSurface(pixelFaces, pixelBarycentricCoords))
        radiance = parameters.colorTransform.invert(self.targetImage[pixelCoord[:, 0], pixelCoord[:, 1], :3])

        return vertexNorms, radiance, albedo

    def optimize(self, parameters, numPoints = None, rng = None):
        """
        New environment map, or the current one of the parameters if no surface point is visible

        Returns:
            SphericalHarmonicsLight: Lambert-deconvolved light of the first 3 bands
        """
        vertexNorms, radiance, albedo = self.illuminatedPoints(parameters, numPoints, rng)

        if vertexNorms.shape[0] == 0:
            logger.warning('no visible surface point, keeping the current environment map')
            return parameters.environmentMap

        return SphericalHarmonicsLight(solveSHArrays(vertexNorms, radiance, albedo, lambertKernel))
