#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Camera projections from eye space to normalized device coordinates (NDC) in [-1, 1]^3, following the OpenGL conventions: the camera looks along -z, and near and far clipping planes map to NDC depths -1 and 1.
"""
from collections import namedtuple
import numpy as np

class Frustum(namedtuple('Frustum', ['left', 'right', 'bottom', 'top', 'near', 'far'])):
    """Viewing frustum given by the extent of the near clipping plane and the clipping distances"""
    __slots__ = ()

    @classmethod
    def fromFocal(cls, focalLength, sensorSize, principalPoint, near, far):
        """
        Frustum of a pinhole camera, with the principal point given as an offset in normalized device coordinates
        """
        halfWidth = near * sensorSize[0] / (2 * focalLength)
        halfHeight = near * sensorSize[1] / (2 * focalLength)
        ppx, ppy = principalPoint

        return cls(-halfWidth * (1 + ppx), halfWidth * (1 - ppx), -halfHeight * (1 + ppy), halfHeight * (1 - ppy), near, far)

    @classmethod
    def fromSensor(cls, sensorSize, principalPoint, near, far):
        """
        Frustum of an orthographic camera which images a region of the size of the sensor
        """
        halfWidth = sensorSize[0] / 2
        halfHeight = sensorSize[1] / 2
        ppx, ppy = principalPoint

        return cls(-halfWidth * (1 + ppx), halfWidth * (1 - ppx), -halfHeight * (1 + ppy), halfHeight * (1 - ppy), near, far)

class PinholeProjection:
    """Perspective projection described by a frustum"""
    perspective = True

    def __init__(self, frustum):
        self.frustum = frustum

    @property
    def matrix(self):
        l, r, b, t, n, f = self.frustum
        return np.array([
            [2*n/(r - l), 0, (r + l)/(r - l), 0],
            [0, 2*n/(t - b), (t + b)/(t - b), 0],
            [0, 0, -(f + n)/(f - n), -2*f*n/(f - n)],
            [0, 0, -1, 0]])

    def apply(self, points):
        """
        Project eye space points, (N, 3), to NDC, (N, 3)
        """
        points = np.asarray(points, dtype = float)
        l, r, b, t, n, f = self.frustum
        x, y, z = points[..., 0], points[..., 1], points[..., 2]
        d = -z

        # Points on the eye plane are not projectable; let them run off to infinity instead of dividing by zero
        with np.errstate(divide = 'ignore', invalid = 'ignore'):
            return np.stack([
                (x*2*n/(r - l) + (r + l)/(r - l)*z) / d,
                (y*2*n/(t - b) + (t + b)/(t - b)*z) / d,
                (-(f + n)/(f - n)*z - 2*f*n/(f - n)) / d], axis = -1)

    def inverse(self, points):
        """
        Eye space points, (N, 3), from NDC, (N, 3)
        """
        points = np.asarray(points, dtype = float)
        l, r, b, t, n, f = self.frustum
        x, y, zNDC = points[..., 0], points[..., 1], points[..., 2]

        z = 1 / ((zNDC - (f + n)/(f - n)) * (f - n)/(2*f*n))
        return np.stack([
            -z*(r - l)/(2*n) * (x + (r + l)/(r - l)),
            -z*(t - b)/(2*n) * (y + (t + b)/(t - b)),
            z], axis = -1)

    def depthWeights(self, points):
        """
        Per-point weights for perspective-correct interpolation: the inverse distance to the eye plane of eye space points
        """
        with np.errstate(divide = 'ignore'):
            return -1 / np.asarray(points, dtype = float)[..., 2]

class OrthographicProjection:
    """Parallel projection described by a frustum"""
    perspective = False

    def __init__(self, frustum):
        self.frustum = frustum

    @property
    def matrix(self):
        l, r, b, t, n, f = self.frustum
        return np.array([
            [2/(r - l), 0, 0, -(r + l)/(r - l)],
            [0, 2/(t - b), 0, -(t + b)/(t - b)],
            [0, 0, -2/(f - n), -(f + n)/(f - n)],
            [0, 0, 0, 1]])

    def apply(self, points):
        points = np.asarray(points, dtype = float)
        l, r, b, t, n, f = self.frustum
        x, y, z = points[..., 0], points[..., 1], points[..., 2]

        return np.stack([
            (2*x - (r + l))/(r - l),
            (2*y - (t + b))/(t - b),
            (-2*z - (f + n))/(f - n)], axis = -1)

    def inverse(self, points):
        points = np.asarray(points, dtype = float)
        l, r, b, t, n, f = self.frustum
        x, y, z = points[..., 0], points[..., 1], points[..., 2]

        return np.stack([
            (x*(r - l) + (r + l))/2,
            (y*(t - b) + (t + b))/2,
            -(z*(f - n) + (f + n))/2], axis = -1)

    def depthWeights(self, points):
        # Screen space is affine to eye space, no correction needed
        return np.ones(np.shape(points)[:-1])

def bccScreenToWorld(screenBCC, weights):
    """
    Perspective correction of barycentric coordinates found in screen space

    Args:
        screenBCC (ndarray): barycentric coordinates in screen space, (..., 3)
        weights (ndarray): ``depthWeights`` of the three triangle corners, (..., 3)

    Returns:
        ndarray: barycentric coordinates of the same point on the world space triangle, (..., 3)
    """
    bcc = screenBCC * weights
    return bcc / np.sum(bcc, axis = -1, keepdims = True)

def bccWorldToScreen(worldBCC, weights):
    """
    Inverse of ``bccScreenToWorld``
    """
    bcc = worldBCC / weights
    return bcc / np.sum(bcc, axis = -1, keepdims = True)

def windowTransform(points, width, height):
    """
    NDC to screen coordinates: x to the right and y downwards in pixel units, depth in [0, 1]
    """
    points = np.asarray(points, dtype = float)
    return np.stack([
        width/2 * (points[..., 0] + 1),
        height/2 * (1 - points[..., 1]),
        (points[..., 2] + 1)/2], axis = -1)

def inverseWindowTransform(points, width, height):
    points = np.asarray(points, dtype = float)
    return np.stack([
        points[..., 0] * 2/width - 1,
        1 - points[..., 1] * 2/height,
        points[..., 2] * 2 - 1], axis = -1)
