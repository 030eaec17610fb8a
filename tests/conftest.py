#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import numpy as np
import pytest
from morphface.models import MorphableModel
from morphface.parameters import RenderParameter, ImageSize, MoMoInstance
from morphface.utils.mesh import TriangleMesh

def gridTriangles(n):
    """
    Triangulation of an n x n vertex grid with vertex index j*n + i, counter-clockwise seen from +z
    """
    triangles = []
    for j in range(n - 1):
        for i in range(n - 1):
            v00, v10, v01, v11 = j*n + i, j*n + i + 1, (j + 1)*n + i, (j + 1)*n + i + 1
            triangles.append([v00, v10, v11])
            triangles.append([v00, v11, v01])
    return np.array(triangles)

def capPoints(n, halfSize = 60.0, radius = 100.0):
    """
    Grid over a spherical cap bulging towards +z
    """
    x, y = np.meshgrid(np.linspace(-halfSize, halfSize, n), np.linspace(-halfSize, halfSize, n))
    z = np.sqrt(radius**2 - x**2 - y**2) - radius
    return np.c_[x.ravel(), y.ravel(), z.ravel()]

@pytest.fixture
def square():
    """
    Unit square in the xy plane made of two triangles, facing +z
    """
    points = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype = float)
    return TriangleMesh(points, [[0, 1, 2], [0, 2, 3]])

@pytest.fixture
def capModel():
    n = 9
    rng = np.random.default_rng(0)
    points = capPoints(n)
    numVertices = points.shape[0]

    idEvec = rng.standard_normal((3, numVertices, 2))
    texMean = 0.5 + 0.1 * rng.random((3, numVertices))
    texEvec = 0.01 * rng.standard_normal((3, numVertices, 2))

    return MorphableModel(gridTriangles(n), points.T, idEvec, np.array([4.0, 1.0]), texMean, texEvec, np.array([1.0, 1.0]), landmarks = {'center': numVertices // 2})

@pytest.fixture
def parameters():
    return RenderParameter.default().withImageSize(ImageSize(144, 96)).withMoMo(MoMoInstance([0.5, -0.3], [1.0, 0.2]))
