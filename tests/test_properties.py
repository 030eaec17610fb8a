#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import numpy as np
import pytest
from morphface.render.properties import VertexProperty, TriangleProperty, ConstantProperty, VertexPropertyPerTriangle, IndirectProperty, TextureMappedProperty, MappedProperty

TRIANGLES = np.array([[0, 1, 2], [0, 2, 3]])

@pytest.fixture
def colors():
    return np.array([[0.1, 0.2, 0.3], [0.7, 0.11, 0.13], [0.17, 0.19, 0.23], [0.29, 0.31, 0.37]])

def test_vertex_property_reproduces_corners_exactly(colors):
    prop = VertexProperty(TRIANGLES, colors)

    for t, triangle in enumerate(TRIANGLES):
        for corner, bcc in enumerate(np.eye(3)):
            assert np.array_equal(prop.onSurface(t, bcc), colors[triangle[corner]])

def test_vertex_property_interpolates(colors):
    prop = VertexProperty(TRIANGLES, colors)
    bcc = np.array([0.2, 0.3, 0.5])

    np.testing.assert_allclose(prop.onSurface(1, bcc), 0.2*colors[0] + 0.3*colors[2] + 0.5*colors[3])

def test_vertex_property_vectorized(colors):
    prop = VertexProperty(TRIANGLES, colors)
    triangleId = np.array([0, 1, 1])
    bcc = np.array([[1, 0, 0], [0, 1, 0], [1/3, 1/3, 1/3]])

    values = prop.onSurface(triangleId, bcc)

    assert values.shape == (3, 3)
    np.testing.assert_allclose(values[2], colors[[0, 2, 3]].mean(axis = 0))

def test_scalar_vertex_property():
    prop = VertexProperty(TRIANGLES, [1.0, 2.0, 3.0, 4.0])
    assert prop.onSurface(0, [0.5, 0.5, 0]) == pytest.approx(1.5)

@pytest.mark.parametrize('triangleId', [2, -1, 100])
def test_out_of_range_triangle_raises(colors, triangleId):
    prop = VertexProperty(TRIANGLES, colors)
    with pytest.raises(IndexError):
        prop.onSurface(triangleId, [1, 0, 0])

def test_triangle_property_ignores_bcc():
    prop = TriangleProperty(TRIANGLES, [[1, 0, 0], [0, 1, 0]])

    np.testing.assert_array_equal(prop.onSurface(1, [0.2, 0.3, 0.5]), [0, 1, 0])
    with pytest.raises(ValueError):
        TriangleProperty(TRIANGLES, [[1, 0, 0]])

def test_constant_property():
    prop = ConstantProperty(TRIANGLES, (0.5, 0.5, 0.5))
    values = prop.onSurface(np.array([0, 1]), np.eye(3)[:2])
    np.testing.assert_array_equal(values, np.full((2, 3), 0.5))

def test_vertex_property_per_triangle():
    # Both triangles have their own copies of the corner values
    uv = np.array([[0, 0], [1, 0], [1, 1], [0, 0.5], [0.5, 0.5], [0, 1]])
    prop = VertexPropertyPerTriangle(TRIANGLES, [[0, 1, 2], [3, 4, 5]], uv)

    np.testing.assert_array_equal(prop.onSurface(0, [0, 0, 1]), [1, 1])
    np.testing.assert_array_equal(prop.onSurface(1, [0, 1, 0]), [0.5, 0.5])

def test_indirect_property_delegates_per_triangle(colors):
    red = ConstantProperty(TRIANGLES, (1, 0, 0))
    perVertex = VertexProperty(TRIANGLES, colors)
    prop = IndirectProperty(TRIANGLES, [1, 0], [red, perVertex])

    np.testing.assert_array_equal(prop.onSurface(0, [0, 1, 0]), colors[1])
    np.testing.assert_array_equal(prop.onSurface(1, [0, 1, 0]), [1, 0, 0])

    values = prop.onSurface(np.array([1, 0]), np.array([[1, 0, 0], [1, 0, 0]]))
    np.testing.assert_array_equal(values, [[1, 0, 0], colors[0]])

def test_indirect_property_preconditions(colors):
    perVertex = VertexProperty(TRIANGLES, colors)

    with pytest.raises(ValueError):
        IndirectProperty(TRIANGLES, [0], [perVertex])
    with pytest.raises(ValueError):
        IndirectProperty(TRIANGLES, [0, 1], [perVertex])
    with pytest.raises(ValueError):
        IndirectProperty(TRIANGLES, [0, 0], [VertexProperty([[0, 1, 2]], colors)])

def test_triangulation_mismatch(colors):
    prop = VertexProperty(TRIANGLES, colors)
    prop.checkTriangulation(TRIANGLES.copy())
    with pytest.raises(ValueError):
        prop.checkTriangulation(TRIANGLES[::-1])

def test_mapped_property(colors):
    prop = MappedProperty(VertexProperty(TRIANGLES, colors), lambda c: 2 * c)
    np.testing.assert_allclose(prop.onSurface(0, [1, 0, 0]), 2 * colors[0])

@pytest.fixture
def texture():
    # 4 x 2 texture, value = column + 10 * row
    return np.array([[0, 1, 2, 3], [10, 11, 12, 13]], dtype = float)

def texturedProperty(texture, uv, boundary = 'clamp'):
    return TextureMappedProperty(TRIANGLES, VertexProperty(TRIANGLES, uv), texture, boundary)

def test_texture_sampled_bilinearly(texture):
    # All corners at the same uv
    uv = np.tile([0.5, 0.5], (4, 1))
    prop = texturedProperty(texture, uv)

    # The image center lies between the pixel centers of columns 1, 2 and rows 0, 1
    assert prop.onSurface(0, [1, 0, 0]) == pytest.approx(6.5)

def test_texture_pixel_centers_and_v_axis(texture):
    # u = 0.125 is the center of column 0, v = 0.75 the center of the top row
    uv = np.tile([0.125, 0.75], (4, 1))
    assert texturedProperty(texture, uv).onSurface(1, [0, 0, 1]) == pytest.approx(0.0)

    uv = np.tile([0.875, 0.25], (4, 1))
    assert texturedProperty(texture, uv).onSurface(1, [0, 0, 1]) == pytest.approx(13.0)

def test_texture_rgb(texture):
    rgb = np.stack([texture, 2 * texture, 3 * texture], axis = -1)
    uv = np.tile([0.5, 0.5], (4, 1))
    np.testing.assert_allclose(texturedProperty(rgb, uv).onSurface(0, [1, 0, 0]), [6.5, 13, 19.5])

def test_texture_boundary_modes(texture):
    uv = np.tile([1.5, 0.75], (4, 1))

    assert texturedProperty(texture, uv, 'clamp').onSurface(0, [1, 0, 0]) == pytest.approx(3.0)
    # Wraps around to u = 0.5
    assert texturedProperty(texture, uv, 'repeat').onSurface(0, [1, 0, 0]) == pytest.approx(1.5)
    with pytest.raises(IndexError):
        texturedProperty(texture, uv, 'strict').onSurface(0, [1, 0, 0])
    with pytest.raises(ValueError):
        texturedProperty(texture, uv, 'mirror')
