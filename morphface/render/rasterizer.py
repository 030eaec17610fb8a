#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Triangle rasterization into a z-buffer.

Screen coordinates have x to the right and y downwards in pixel units, with the center of pixel (i, j) at (i + 0.5, j + 0.5). Triangles are front facing when their vertices appear counter-clockwise on the screen, which is the case for triangles that are counter-clockwise in NDC. Pixel centers exactly on an edge are covered by the triangle for which the edge is a top or a left edge.
"""
import logging
import numpy as np

logger = logging.getLogger(__name__)

class ZBuffer:
    """Per-pixel nearest depth with the owning triangle and its barycentric coordinates

    Args:
        width (int): image width
        height (int): image height

    Attributes:
        depth (ndarray): screen depth of the nearest surface, ``inf`` where nothing is covered, (height, width)
        triangleId (ndarray): index of the owning triangle, -1 where nothing is covered, (height, width)
        bcc (ndarray): screen space barycentric coordinates within the owning triangle, (height, width, 3)
    """
    def __init__(self, width, height):
        if width <= 0 or height <= 0:
            raise ValueError('buffer size must be positive, got %d x %d' % (width, height))
        self.width = width
        self.height = height
        self.depth = np.full((height, width), np.inf)
        self.triangleId = np.full((height, width), -1, dtype = np.int64)
        self.bcc = np.zeros((height, width, 3))

    @property
    def mask(self):
        return self.triangleId >= 0

def edgeFunction(v0, v1, x, y):
    """
    Signed edge function of the directed edge v0 -> v1 at the points (x, y)

    The value is computed from the lexicographically smaller end of the edge, so the reversed edge always gives the exact negative. This keeps neighbouring triangles consistent on their shared edge.
    """
    if (v0[0], v0[1]) > (v1[0], v1[1]):
        return -edgeFunction(v1, v0, x, y)
    return (x - v0[0]) * (v1[1] - v0[1]) - (y - v0[1]) * (v1[0] - v0[0])

def isTopLeft(v0, v1):
    """
    Whether the directed edge v0 -> v1 of a front facing triangle is a left edge or a horizontal top edge
    """
    dx = v1[0] - v0[0]
    dy = v1[1] - v0[1]
    return dy > 0 or (dy == 0 and dx < 0)

def covers(w, v0, v1):
    if isTopLeft(v0, v1):
        return w >= 0
    return w > 0

def triangleArea(a, b, c):
    """
    Twice the signed screen area, positive for front facing triangles
    """
    return edgeFunction(a, b, c[0], c[1])

def rasterizeTriangle(zBuffer, triangleId, a, b, c):
    """
    Rasterize one triangle with screen space corners a, b, c into the z-buffer

    A pixel is only taken over if the triangle is strictly closer, so on equal depth the triangle rasterized first keeps the pixel.

    Returns:
        int: number of pixels written
    """
    if not triangleArea(a, b, c) > 0:
        return 0

    # Bounding box of the pixel centers, clipped to the buffer
    xMin = max(int(np.floor(min(a[0], b[0], c[0]) - 0.5)), 0)
    xMax = min(int(np.ceil(max(a[0], b[0], c[0]) - 0.5)), zBuffer.width - 1)
    yMin = max(int(np.floor(min(a[1], b[1], c[1]) - 0.5)), 0)
    yMax = min(int(np.ceil(max(a[1], b[1], c[1]) - 0.5)), zBuffer.height - 1)
    if xMin > xMax or yMin > yMax:
        return 0

    x, y = np.meshgrid(np.arange(xMin, xMax + 1) + 0.5, np.arange(yMin, yMax + 1) + 0.5)

    # Edge functions opposite to each corner
    w0 = edgeFunction(b, c, x, y)
    w1 = edgeFunction(c, a, x, y)
    w2 = edgeFunction(a, b, x, y)

    inside = covers(w0, b, c) & covers(w1, c, a) & covers(w2, a, b)
    if not inside.any():
        return 0

    w0, w1, w2 = w0[inside], w1[inside], w2[inside]
    area = w0 + w1 + w2
    bcc = np.stack([w0/area, w1/area, w2/area], axis = -1)

    # Screen depth is affine in screen space
    z = bcc[:, 0]*a[2] + bcc[:, 1]*b[2] + bcc[:, 2]*c[2]

    rows = y[inside].astype(np.int64)
    cols = x[inside].astype(np.int64)
    closer = z < zBuffer.depth[rows, cols]

    rows, cols = rows[closer], cols[closer]
    zBuffer.depth[rows, cols] = z[closer]
    zBuffer.triangleId[rows, cols] = triangleId
    zBuffer.bcc[rows, cols] = bcc[closer]

    return rows.size

def clipDepth(screenPoints, triangles):
    """
    Triangles with all corners between the near and far clipping planes
    """
    z = screenPoints[:, 2]
    valid = np.isfinite(screenPoints).all(axis = 1) & (z >= 0) & (z <= 1)
    return valid[triangles].all(axis = 1)

def rasterize(screenPoints, triangles, width, height, triangleFilter = None, zBuffer = None):
    """
    Rasterize triangles given in screen coordinates

    Triangles are processed in the order given. Back facing and degenerate triangles, triangles crossing a clipping plane and triangles rejected by ``triangleFilter`` are skipped.

    Args:
        screenPoints (ndarray): screen coordinates and depth of the vertices, (numPoints, 3)
        triangles (ndarray): vertex indices of the triangles, (numTriangles, 3)
        width (int): image width
        height (int): image height
        triangleFilter (ndarray): optional boolean mask of the triangles to rasterize, (numTriangles,)
        zBuffer (ZBuffer): optional buffer to rasterize into, a new one is created otherwise

    Returns:
        ZBuffer: the filled z-buffer
    """
    screenPoints = np.asarray(screenPoints, dtype = float)
    triangles = np.asarray(triangles)

    if zBuffer is None:
        zBuffer = ZBuffer(width, height)
    elif (zBuffer.width, zBuffer.height) != (width, height):
        raise ValueError('z-buffer of size %d x %d does not match image size %d x %d' % (zBuffer.width, zBuffer.height, width, height))

    valid = clipDepth(screenPoints, triangles)
    if triangleFilter is not None:
        triangleFilter = np.asarray(triangleFilter, dtype = bool)
        if triangleFilter.shape != (triangles.shape[0],):
            raise ValueError('expected a triangle filter of length %d, got shape %s' % (triangles.shape[0], triangleFilter.shape))
        valid &= triangleFilter

    corners = screenPoints[triangles]
    numPixels = 0
    for t in np.flatnonzero(valid):
        a, b, c = corners[t]
        numPixels += rasterizeTriangle(zBuffer, t, a, b, c)

    logger.debug('rasterized %d of %d triangles into %d x %d buffer, %d pixel writes', valid.sum(), triangles.shape[0], width, height, numPixels)

    return zBuffer

def downsample(image, factor):
    """
    Box filter an image rendered at ``factor`` times the target resolution down to the target resolution
    """
    if factor == 1:
        return image
    height, width = image.shape[0] // factor, image.shape[1] // factor
    blocks = image.reshape((height, factor, width, factor) + image.shape[2:])
    return blocks.mean(axis = (1, 3))
