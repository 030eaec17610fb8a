#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Surface properties: quantities attached to a triangulated surface, evaluated at surface points given by a triangle index and barycentric coordinates.

Every property exposes ``onSurface(triangleId, bcc)``. Evaluation is vectorized: ``triangleId`` can be an int with ``bcc`` of shape (3,), or an (N,) array with ``bcc`` of shape (N, 3).
"""
import numpy as np
from scipy.ndimage import map_coordinates
from ..utils.mesh import barycentricReconstruction

def asSurfacePoints(triangleId, bcc):
    """
    Bring a single surface point or a set of surface points into array form

    Returns:
        tuple: triangle indices (N,), barycentric coordinates (N, 3), and whether the input was a single point
    """
    triangleId = np.asarray(triangleId)
    bcc = np.asarray(bcc, dtype = float)
    single = triangleId.ndim == 0

    triangleId = np.atleast_1d(triangleId)
    bcc = bcc.reshape(-1, 3)

    if not np.issubdtype(triangleId.dtype, np.integer):
        raise TypeError('triangle ids must be integers, got %s' % triangleId.dtype)
    if triangleId.shape[0] != bcc.shape[0]:
        raise ValueError('got %d triangle ids but %d barycentric coordinates' % (triangleId.shape[0], bcc.shape[0]))

    return triangleId, bcc, single

class SurfaceProperty:
    """Common interface of all surface properties

    Attributes:
        triangles (ndarray): the triangulation the property is defined on, (numTriangles, 3)
    """
    def __init__(self, triangles):
        self.triangles = np.asarray(triangles, dtype = np.int64)
        self.numTriangles = self.triangles.shape[0]

    def onSurface(self, triangleId, bcc):
        triangleId, bcc, single = asSurfacePoints(triangleId, bcc)
        self.checkTriangleId(triangleId)

        values = self.evaluate(triangleId, bcc)

        if single:
            return values[0]
        return values

    def __call__(self, triangleId, bcc):
        return self.onSurface(triangleId, bcc)

    def evaluate(self, triangleId, bcc):
        """
        Evaluate at validated surface points in array form, (N,) and (N, 3)
        """
        raise NotImplementedError

    def checkTriangleId(self, triangleId):
        if triangleId.size and (triangleId.min() < 0 or triangleId.max() >= self.numTriangles):
            bad = triangleId[(triangleId < 0) | (triangleId >= self.numTriangles)][0]
            raise IndexError('triangle id %d outside of triangulation with %d triangles' % (bad, self.numTriangles))

    def checkTriangulation(self, triangles):
        """
        Raise if the property is not defined on the given triangulation
        """
        if not np.array_equal(self.triangles, triangles):
            raise ValueError('%s is defined on a different triangulation (%d triangles) than the mesh (%d triangles)' % (type(self).__name__, self.numTriangles, np.shape(triangles)[0]))

class VertexProperty(SurfaceProperty):
    """Per-vertex data interpolated with barycentric weights

    Args:
        triangles (ndarray): triangulation, (numTriangles, 3)
        pointData (ndarray): one value per vertex, (numPoints,) or (numPoints, numChannels)
    """
    def __init__(self, triangles, pointData):
        super().__init__(triangles)
        self.pointData = np.asarray(pointData, dtype = float)

        if self.triangles.size and self.triangles.max() >= self.pointData.shape[0]:
            raise ValueError('triangulation references vertex %d but only %d vertex values are given' % (self.triangles.max(), self.pointData.shape[0]))

    def evaluate(self, triangleId, bcc):
        return barycentricReconstruction(self.pointData, triangleId, bcc, self.triangles)

class TriangleProperty(SurfaceProperty):
    """Constant value per triangle, barycentric coordinates are ignored

    Args:
        triangles (ndarray): triangulation, (numTriangles, 3)
        triangleData (ndarray): one value per triangle, (numTriangles,) or (numTriangles, numChannels)
    """
    def __init__(self, triangles, triangleData):
        super().__init__(triangles)
        self.triangleData = np.asarray(triangleData)

        if self.triangleData.shape[0] != self.numTriangles:
            raise ValueError('expected %d triangle values, got %d' % (self.numTriangles, self.triangleData.shape[0]))

    def evaluate(self, triangleId, bcc):
        return self.triangleData[triangleId]

class ConstantProperty(SurfaceProperty):
    """The same value everywhere on the surface"""
    def __init__(self, triangles, value):
        super().__init__(triangles)
        self.value = np.asarray(value, dtype = float)

    def evaluate(self, triangleId, bcc):
        return np.broadcast_to(self.value, triangleId.shape + self.value.shape).copy()

class VertexPropertyPerTriangle(SurfaceProperty):
    """Per-vertex data with its own vertex indices for each triangle corner, e.g. texture coordinates with seams

    Args:
        triangles (ndarray): triangulation of the mesh, (numTriangles, 3)
        triangleVertexIndex (ndarray): index into ``pointData`` of each triangle corner, (numTriangles, 3)
        pointData (ndarray): the values, (numValues,) or (numValues, numChannels)
    """
    def __init__(self, triangles, triangleVertexIndex, pointData):
        super().__init__(triangles)
        self.triangleVertexIndex = np.asarray(triangleVertexIndex, dtype = np.int64)
        self.pointData = np.asarray(pointData, dtype = float)

        if self.triangleVertexIndex.shape != self.triangles.shape:
            raise ValueError('expected per-triangle vertex indices of shape %s, got %s' % (self.triangles.shape, self.triangleVertexIndex.shape))
        if self.triangleVertexIndex.size and (self.triangleVertexIndex.min() < 0 or self.triangleVertexIndex.max() >= self.pointData.shape[0]):
            raise ValueError('per-triangle vertex indices outside [0, %d)' % self.pointData.shape[0])

    def evaluate(self, triangleId, bcc):
        return barycentricReconstruction(self.pointData, triangleId, bcc, self.triangleVertexIndex)

class IndirectProperty(SurfaceProperty):
    """Per-triangle index selecting which of several underlying properties to evaluate, e.g. for multi-material meshes

    Args:
        triangles (ndarray): triangulation, (numTriangles, 3)
        triangleIndex (ndarray): index into ``properties`` for each triangle, (numTriangles,)
        properties (list): the underlying surface properties, all defined on ``triangles``
    """
    def __init__(self, triangles, triangleIndex, properties):
        super().__init__(triangles)
        self.triangleIndex = np.asarray(triangleIndex, dtype = np.int64)
        self.properties = list(properties)

        if self.triangleIndex.shape != (self.numTriangles,):
            raise ValueError('expected %d property indices, got %d' % (self.numTriangles, self.triangleIndex.size))
        if self.triangleIndex.size and (self.triangleIndex.min() < 0 or self.triangleIndex.max() >= len(self.properties)):
            raise ValueError('property indices must lie in [0, %d)' % len(self.properties))
        for prop in self.properties:
            prop.checkTriangulation(self.triangles)

    def evaluate(self, triangleId, bcc):
        which = self.triangleIndex[triangleId]

        values = None
        for i, prop in enumerate(self.properties):
            sel = which == i
            if not sel.any():
                continue
            propValues = prop.evaluate(triangleId[sel], bcc[sel])
            if values is None:
                values = np.empty(triangleId.shape + propValues.shape[1:], dtype = propValues.dtype)
            values[sel] = propValues

        # No surface point at all, let the first property decide on the value shape
        if values is None:
            values = self.properties[0].evaluate(triangleId, bcc)

        return values

class MappedProperty(SurfaceProperty):
    """Another property with a vectorized function applied to its values, e.g. to rotate normals into world space"""
    def __init__(self, prop, func):
        super().__init__(prop.triangles)
        self.prop = prop
        self.func = func

    def evaluate(self, triangleId, bcc):
        return self.func(self.prop.evaluate(triangleId, bcc))

BOUNDARY_MODES = {'clamp': 'nearest', 'repeat': 'grid-wrap', 'strict': 'nearest'}

class TextureMappedProperty(SurfaceProperty):
    """Values sampled from a texture image at interpolated texture coordinates

    Texture coordinates (u, v) in [0, 1] map to the image with v pointing up, so (0, 0) is the bottom left corner of the image. Samples are bilinearly interpolated between pixel centers.

    Args:
        triangles (ndarray): triangulation, (numTriangles, 3)
        textureCoordinates (SurfaceProperty): 2D texture coordinates on the same triangulation
        texture (ndarray): texture image, (height, width) or (height, width, numChannels)
        boundary (str): what to do with texture coordinates outside the image: 'clamp' to the border, 'repeat' the texture periodically, or raise an ``IndexError`` for 'strict'
    """
    def __init__(self, triangles, textureCoordinates, texture, boundary = 'clamp'):
        super().__init__(triangles)
        if boundary not in BOUNDARY_MODES:
            raise ValueError('unknown texture boundary mode %r, expected one of %s' % (boundary, sorted(BOUNDARY_MODES)))
        textureCoordinates.checkTriangulation(self.triangles)

        self.textureCoordinates = textureCoordinates
        self.texture = np.asarray(texture, dtype = float)
        self.boundary = boundary

    def textureToImage(self, uv):
        """
        Texture coordinates to continuous (row, column) image coordinates with pixel centers at integer positions
        """
        height, width = self.texture.shape[:2]
        col = uv[:, 0] * width - 0.5
        row = (1 - uv[:, 1]) * height - 0.5
        return row, col

    def evaluate(self, triangleId, bcc):
        uv = self.textureCoordinates.evaluate(triangleId, bcc)
        row, col = self.textureToImage(uv)

        if self.boundary == 'strict':
            height, width = self.texture.shape[:2]
            outside = (row < -0.5) | (row > height - 0.5) | (col < -0.5) | (col > width - 0.5)
            if outside.any():
                raise IndexError('texture coordinate %s outside of the texture' % (uv[outside][0],))

        mode = BOUNDARY_MODES[self.boundary]
        coords = np.array([row, col])

        if self.texture.ndim == 2:
            return map_coordinates(self.texture, coords, order = 1, mode = mode)

        return np.stack([map_coordinates(self.texture[..., c], coords, order = 1, mode = mode) for c in range(self.texture.shape[2])], axis = -1)
