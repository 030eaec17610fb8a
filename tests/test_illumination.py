#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import logging
import numpy as np
import pytest
from morphface.optimize.illumination import IlluminatedPoint, solveSHArrays, solveSHSystem, solveSHSystemDeconvolve, SphericalHarmonicsOptimizer
from morphface.parameters import ColorTransform, SphericalHarmonicsLight
from morphface.render.renderer import MoMoRenderer
from morphface.utils.transform import shBasis, lambertKernel

@pytest.fixture
def rng():
    return np.random.default_rng(9)

def randomPoints(rng, coefficients, kernel, numPoints = 60):
    normals = rng.standard_normal((numPoints, 3))
    normals /= np.linalg.norm(normals, axis = 1, keepdims = True)
    albedo = rng.uniform(0.2, 1, (numPoints, 3))
    radiance = albedo * np.dot(shBasis(normals, kernel.size) * kernel, coefficients)
    return [IlluminatedPoint(n, r, a) for n, r, a in zip(normals, radiance, albedo)]

def test_solve_radiance_coefficients(rng):
    coefficients = rng.standard_normal((9, 3))
    points = randomPoints(rng, coefficients, np.ones(9))

    np.testing.assert_allclose(solveSHSystem(points, 2), coefficients, atol = 1e-8)

def test_solve_deconvolves_lambert_kernel(rng):
    coefficients = rng.standard_normal((9, 3))
    points = randomPoints(rng, coefficients, lambertKernel)

    np.testing.assert_allclose(solveSHSystemDeconvolve(points, lambertKernel), coefficients, atol = 1e-8)

def test_solve_fewer_bands(rng):
    coefficients = rng.standard_normal((4, 3))
    points = randomPoints(rng, coefficients, np.ones(4), numPoints = 12)

    result = solveSHSystem(points, 1)
    assert result.shape == (4, 3)
    np.testing.assert_allclose(result, coefficients, atol = 1e-8)

def test_solve_preconditions(rng):
    with pytest.raises(ValueError):
        solveSHSystem([], 2)
    with pytest.raises(ValueError):
        solveSHArrays(np.zeros((0, 3)), np.zeros((0, 3)), np.zeros((0, 3)), lambertKernel)
    with pytest.raises(ValueError):
        solveSHArrays(np.ones((4, 3)), np.ones((3, 3)), np.ones((4, 3)), lambertKernel)

@pytest.fixture
def target(capModel, parameters):
    light = SphericalHarmonicsLight(np.r_[SphericalHarmonicsLight.frontal().toArray(), 0.05 * np.ones((5, 3))])
    parameters = parameters.withEnvironmentMap(light).withColorTransform(ColorTransform(gain = 1.2))
    return parameters, MoMoRenderer(capModel).renderImage(parameters)

def test_optimizer_reproduces_target(capModel, target):
    parameters, image = target
    renderer = MoMoRenderer(capModel)
    optimizer = SphericalHarmonicsOptimizer(renderer, image)

    # Start from a different light
    start = parameters.withEnvironmentMap(SphericalHarmonicsLight.ambientWhite())
    light = optimizer.optimize(start)

    assert light.bands == 2
    np.testing.assert_allclose(renderer.renderImage(start.withEnvironmentMap(light)), image, atol = 1e-6)

def test_optimizer_on_random_subset(capModel, target):
    parameters, image = target
    renderer = MoMoRenderer(capModel)
    light = SphericalHarmonicsOptimizer(renderer, image).optimize(parameters, numPoints = 200, rng = np.random.default_rng(10))

    np.testing.assert_allclose(renderer.renderImage(parameters.withEnvironmentMap(light)), image, atol = 1e-6)

def test_illuminated_points(capModel, target):
    parameters, image = target
    optimizer = SphericalHarmonicsOptimizer(MoMoRenderer(capModel), image)

    normals, radiance, albedo = optimizer.illuminatedPoints(parameters, numPoints = 50, rng = np.random.default_rng(11))

    assert normals.shape == radiance.shape == albedo.shape == (50, 3)
    np.testing.assert_allclose(np.linalg.norm(normals, axis = 1), 1)
    assert np.all(normals[:, 2] > 0)

def test_optimizer_keeps_light_without_visible_face(capModel, target, caplog):
    parameters, image = target
    # Behind the camera
    hidden = parameters.withPose(parameters.pose.withTranslation((0, 0, 1000)))

    with caplog.at_level(logging.WARNING):
        light = SphericalHarmonicsOptimizer(MoMoRenderer(capModel), image).optimize(hidden)

    assert light is hidden.environmentMap
    assert 'no visible surface point' in caplog.text

def test_optimizer_checks_image_size(capModel, target):
    parameters, image = target
    with pytest.raises(ValueError):
        SphericalHarmonicsOptimizer(MoMoRenderer(capModel), image[:, :100]).optimize(parameters)
