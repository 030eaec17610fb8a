#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import numpy as np
from sklearn.preprocessing import normalize

def rotMat2angle(R):
    """
    Conversion between 3x3 rotation matrix and Euler angles psi, theta, and phi in radians (rotations about the x, y, and z axes, respectively). If the input is 3x3, then the output will return a size-3 array containing psi, theta, and phi. If the input is a size-3 array, then the output will return the 3x3 rotation matrix R = Rz(phi) Ry(theta) Rx(psi).
    """
    R = np.asarray(R, dtype = float)
    if R.shape == (3, 3):
        if abs(R[2, 0]) != 1:
            theta = -np.arcsin(R[2, 0])
            psi = np.arctan2(R[2, 1]/np.cos(theta), R[2, 2]/np.cos(theta))
            phi = np.arctan2(R[1, 0]/np.cos(theta), R[0, 0]/np.cos(theta))
        else:
            phi = 0
            if R[2, 0] == -1:
                theta = np.pi/2
                psi = np.arctan2(R[0, 1], R[0, 2])
            else:
                theta = -np.pi/2
                psi = np.arctan2(-R[0, 1], -R[0, 2])

        return np.array([psi, theta, phi])

    elif R.shape == (3,):
        psi, theta, phi = R
        Rx = np.array([[1, 0, 0], [0, np.cos(psi), -np.sin(psi)], [0, np.sin(psi), np.cos(psi)]])
        Ry = np.array([[np.cos(theta), 0, np.sin(theta)], [0, 1, 0], [-np.sin(theta), 0, np.cos(theta)]])
        Rz = np.array([[np.cos(phi), -np.sin(phi), 0], [np.sin(phi), np.cos(phi), 0], [0, 0, 1]])

        return np.dot(Rz, np.dot(Ry, Rx))

    raise ValueError('expected a 3x3 rotation matrix or 3 Euler angles, got shape %s' % (R.shape,))

def rotation4(psi, theta, phi):
    """
    Homogeneous 4x4 version of ``rotMat2angle`` for the Euler angles about the x, y, and z axes
    """
    M = np.eye(4)
    M[:3, :3] = rotMat2angle(np.array([psi, theta, phi]))
    return M

def translation4(t):
    M = np.eye(4)
    M[:3, 3] = t
    return M

def scaling4(s):
    M = np.eye(4)
    M[[0, 1, 2], [0, 1, 2]] = s
    return M

def applyTransform(M, points):
    """
    Apply a 4x4 affine transformation to an (N, 3) array of points
    """
    points = np.asarray(points, dtype = float)
    return np.dot(points, M[:3, :3].T) + M[:3, 3]

def applyRotation(M, vectors):
    """
    Apply the linear part of a 4x4 affine transformation to an (N, 3) array of direction vectors, renormalizing them afterwards
    """
    vectors = np.asarray(vectors, dtype = float)
    return normalize(np.dot(vectors.reshape(-1, 3), M[:3, :3].T)).reshape(vectors.shape)

# Spherical harmonics normalization constants of the real basis, by band and order
N0 = np.sqrt(1/np.pi)/2

N1 = np.sqrt(3/np.pi)/2

N2_2 = np.sqrt(15/np.pi)/4
N2_1 = np.sqrt(15/np.pi)/2
N2_0 = np.sqrt(5/np.pi)/4

N3_3 = np.sqrt(35/2/np.pi)/4
N3_2 = np.sqrt(105/np.pi)/2
N3_2p = np.sqrt(105/np.pi)/4
N3_1 = np.sqrt(21/2/np.pi)/4
N3_0 = np.sqrt(7/np.pi)/4

N4_4 = np.sqrt(35/np.pi)*3/16
N4_3 = np.sqrt(35/2/np.pi)*3/4
N4_2 = np.sqrt(5/np.pi)*3/8
N4_1 = np.sqrt(5/2/np.pi)*3/4
N4_0 = np.sqrt(1/np.pi)*3/16

# Values of the Lambertian reflectance kernel expressed in SH, per coefficient of the first 3 bands
lambertKernel = np.array([3.141593, 2.094395, 2.094395, 2.094395, 0.785398, 0.785398, 0.785398, 0.785398, 0.785398])

MAX_SH_BANDS = 4

def totalCoefficients(bands):
    return (bands + 1)**2

def coefficientsInBand(band):
    return 2*band + 1

def numberOfBandsForCoefficients(coefficients):
    return int(np.sqrt(coefficients)) - 1

def shIndex(i):
    """
    Band l and order m of the SH basis function with linear index i = l*l + l + m
    """
    l = int(np.sqrt(i))
    return l, i - l*l - l

def shBasis(directions, numCoefficients = 9):
    """
    Real spherical harmonics basis evaluated at a set of directions

    Args:
        directions (ndarray): direction vectors, (N, 3) or (3,); they do not need to be unit length
        numCoefficients (int): number of basis functions to evaluate, at most 25 (bands 0 to 4)

    Returns:
        ndarray: basis function values, (N, numCoefficients) or (numCoefficients,) for a single direction
    """
    if numCoefficients > totalCoefficients(MAX_SH_BANDS):
        raise ValueError('SH basis is tabulated up to band %d (%d coefficients), requested %d' % (MAX_SH_BANDS, totalCoefficients(MAX_SH_BANDS), numCoefficients))

    directions = np.asarray(directions, dtype = float)
    single = directions.ndim == 1

    # Work with normalized directions
    v = normalize(directions.reshape(-1, 3))
    x, y, z = v[:, 0], v[:, 1], v[:, 2]
    xx, yy, zz = x*x, y*y, z*z

    basis = [
        np.full(x.shape, N0),

        N1 * y,
        N1 * z,
        N1 * x,

        N2_1 * x * y,
        N2_1 * y * z,
        N2_0 * (2*zz - xx - yy),
        N2_1 * z * x,
        N2_2 * (xx - yy),

        N3_3 * (3*xx - yy) * y,
        N3_2 * x * y * z,
        N3_1 * (4*zz - xx - yy) * y,
        N3_0 * (2*zz - 3*xx - 3*yy) * z,
        N3_1 * (4*zz - xx - yy) * x,
        N3_2p * (xx - yy) * z,
        N3_3 * (xx - 3*yy) * x,

        N4_4 * 4 * x * y * (xx - yy),
        N4_3 * (3*xx - yy) * y * z,
        N4_2 * 2 * x * y * (7*zz - 1),
        N4_1 * y * z * (7*zz - 3),
        N4_0 * (35*zz*zz - 30*zz + 3),
        N4_1 * x * z * (7*zz - 3),
        N4_2 * (xx - yy) * (7*zz - 1),
        N4_3 * x * z * (xx - 3*yy),
        N4_4 * (xx*(xx - 3*yy) - yy*(3*xx - yy)),
    ]

    Y = np.stack(basis[:numCoefficients], axis = 1)

    if single:
        return Y[0]
    return Y
