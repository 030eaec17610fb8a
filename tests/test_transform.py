#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import numpy as np
import pytest
from morphface.utils.transform import rotMat2angle, rotation4, applyTransform, shBasis, shIndex, totalCoefficients, numberOfBandsForCoefficients, N0, N1, N2_0

def test_rotMat2angle_round_trip():
    angles = np.array([0.3, -0.2, 1.1])
    R = rotMat2angle(angles)

    np.testing.assert_allclose(np.dot(R, R.T), np.eye(3), atol = 1e-12)
    np.testing.assert_allclose(rotMat2angle(R), angles, atol = 1e-12)

def test_rotation_about_z():
    M = rotation4(0, 0, np.pi/2)
    np.testing.assert_allclose(applyTransform(M, [[1, 0, 0]]), [[0, 1, 0]], atol = 1e-12)

def test_rotMat2angle_rejects_other_shapes():
    with pytest.raises(ValueError):
        rotMat2angle(np.zeros(4))

def test_sh_basis_values_on_axes():
    Y = shBasis(np.array([[0, 0, 1], [1, 0, 0], [0, 1, 0]]), 9)

    assert Y.shape == (3, 9)
    np.testing.assert_allclose(Y[:, 0], N0)
    # Band 1 is ordered y, z, x
    np.testing.assert_allclose(Y[0, 1:4], [0, N1, 0], atol = 1e-15)
    np.testing.assert_allclose(Y[1, 1:4], [0, 0, N1], atol = 1e-15)
    np.testing.assert_allclose(Y[2, 1:4], [N1, 0, 0], atol = 1e-15)
    np.testing.assert_allclose(Y[0, 6], 2 * N2_0)

def test_sh_basis_normalizes_directions():
    np.testing.assert_allclose(shBasis([0, 3, 4], 25), shBasis([0, 0.6, 0.8], 25), atol = 1e-14)

def test_sh_basis_is_orthonormal():
    # Quadrature on a fine latitude-longitude grid
    theta = (np.arange(200) + 0.5) * np.pi / 200
    phi = (np.arange(400) + 0.5) * 2 * np.pi / 400
    theta, phi = np.meshgrid(theta, phi)
    directions = np.c_[(np.sin(theta)*np.cos(phi)).ravel(), (np.sin(theta)*np.sin(phi)).ravel(), np.cos(theta).ravel()]
    weights = (np.sin(theta) * (np.pi / 200) * (2*np.pi / 400)).ravel()

    Y = shBasis(directions, 25)
    gram = np.dot(Y.T * weights, Y)

    np.testing.assert_allclose(gram, np.eye(25), atol = 1e-3)

def test_sh_basis_band_3_order_2():
    # The m = -2 and m = 2 functions of band 3 differ in their normalization
    Y = shBasis(np.array([[1, 1, 1], [1, 0, 1]]), 16)

    np.testing.assert_allclose(Y[0, 10], np.sqrt(105/np.pi)/2 / np.sqrt(27))
    np.testing.assert_allclose(Y[1, 14], np.sqrt(105/np.pi)/4 / np.sqrt(8))

def test_sh_basis_is_limited_to_band_4():
    with pytest.raises(ValueError):
        shBasis([0, 0, 1], 26)

def test_sh_index_helpers():
    assert totalCoefficients(2) == 9
    assert numberOfBandsForCoefficients(9) == 2
    assert numberOfBandsForCoefficients(25) == 4
    assert shIndex(0) == (0, 0)
    assert shIndex(3) == (1, 1)
    assert shIndex(4) == (2, -2)
