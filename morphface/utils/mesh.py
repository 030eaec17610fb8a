#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import numpy as np
from sklearn.preprocessing import normalize
from .transform import applyTransform

class TriangleMesh:
    """An immutable triangle mesh

    Args:
        points (ndarray): vertex coordinates, (numPoints, 3)
        triangles (ndarray): vertex indices of each triangle, (numTriangles, 3)

    Attributes:
        points (ndarray): read-only vertex coordinates, (numPoints, 3)
        triangles (ndarray): read-only vertex indices of each triangle, (numTriangles, 3)
        numPoints (int): number of vertices
        numTriangles (int): number of triangles
    """
    def __init__(self, points, triangles):
        points = np.array(points, dtype = float)
        triangles = np.array(triangles, dtype = np.int64)

        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError('mesh points must have shape (numPoints, 3), got %s' % (points.shape,))
        if triangles.size == 0:
            triangles = triangles.reshape(0, 3)
        if triangles.ndim != 2 or triangles.shape[1] != 3:
            raise ValueError('mesh triangles must have shape (numTriangles, 3), got %s' % (triangles.shape,))
        if triangles.size and (triangles.min() < 0 or triangles.max() >= points.shape[0]):
            raise ValueError('triangulation references vertex indices outside [0, %d)' % points.shape[0])

        points.setflags(write = False)
        triangles.setflags(write = False)

        self.points = points
        self.triangles = triangles
        self.numPoints = points.shape[0]
        self.numTriangles = triangles.shape[0]

    def transform(self, M):
        """
        New mesh with the same triangulation and the 4x4 affine transformation ``M`` applied to the points
        """
        return TriangleMesh(applyTransform(M, self.points), self.triangles)

    def cellNormals(self):
        return calcCellNormals(self.points, self.triangles)

    def vertexNormals(self):
        return calcNormals(self.points, self.triangles)

    @property
    def position(self):
        # Local import, properties depend on this module
        from ..render.properties import VertexProperty
        return VertexProperty(self.triangles, self.points)

    def hasSameTriangulation(self, triangles):
        return np.array_equal(self.triangles, triangles)

    def __repr__(self):
        return 'TriangleMesh(numPoints=%d, numTriangles=%d)' % (self.numPoints, self.numTriangles)

def calcCellNormals(vertices, triangles, unit = True):
    """
    Calculate the normal vector of each triangle, pointing to the side from which the vertices appear counter-clockwise
    """
    a = vertices[triangles[:, 0], :]
    b = vertices[triangles[:, 1], :]
    c = vertices[triangles[:, 2], :]
    faceNorm = np.cross(b - a, c - a)

    if unit:
        return normalize(faceNorm)
    return faceNorm

def calcNormals(vertices, triangles):
    """
    Calculate the per-vertex normal vectors as the normalized sum of the area-weighted normals of the adjacent triangles
    """
    faceNorm = calcCellNormals(vertices, triangles, unit = False)

    vNorm = np.zeros(vertices.shape)
    for corner in range(3):
        np.add.at(vNorm, triangles[:, corner], faceNorm)

    return normalize(vNorm)

def barycentricReconstruction(vertices, pixelFaces, pixelBarycentricCoords, indexData):
    """
    Interpolate per-vertex data at surface points given by triangle indices and barycentric coordinates

    Args:
        vertices (ndarray): per-vertex data, (numPoints, numChannels) or (numPoints,)
        pixelFaces (ndarray): triangle index of each surface point, (N,)
        pixelBarycentricCoords (ndarray): barycentric coordinates of each surface point, (N, 3)
        indexData (ndarray): triangulation, (numTriangles, 3)

    Returns:
        ndarray: interpolated data, (N, numChannels) or (N,)
    """
    pixelVertices = indexData[pixelFaces, :]

    if vertices.ndim == 1:
        return np.einsum('ij,ij->i', pixelBarycentricCoords, vertices[pixelVertices])

    return np.einsum('ij,ijk->ik', pixelBarycentricCoords, vertices[pixelVertices])
