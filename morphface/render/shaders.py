#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Shading of surface points.

A shader is a pure function ``shade(triangleId, bcc, worldPosition)`` evaluated on arrays of surface points: triangle indices (N,), barycentric coordinates (N, 3) and world positions (N, 3). It returns one value per point. A single surface point, an int with (3,) coordinates and a (3,) position, gives a single value.
"""
from functools import wraps
import numpy as np
from sklearn.preprocessing import normalize
from ..utils.transform import shBasis, lambertKernel, applyTransform
from .properties import ConstantProperty, asSurfacePoints

def surfacePointShader(shade):
    """
    Let a shade function written for arrays of surface points also accept a single surface point
    """
    @wraps(shade)
    def wrapper(*args):
        *head, triangleId, bcc, worldPosition = args
        triangleId, bcc, single = asSurfacePoints(triangleId, bcc)
        worldPosition = np.asarray(worldPosition, dtype = float).reshape(-1, 3)

        values = shade(*head, triangleId, bcc, worldPosition)

        if single:
            return values[0]
        return values

    return wrapper

def shIrradiance(normals, environmentMap):
    """
    Irradiance from a spherical harmonics environment map on surfaces with the given normals, (N, 3) RGB

    Only the first 3 bands of the environment map are used, convolved with the Lambert kernel.
    """
    coefficients = environmentMap.toArray()[:lambertKernel.size]
    Y = shBasis(normals, coefficients.shape[0])

    return np.dot(Y * lambertKernel[:coefficients.shape[0]], coefficients)

def lambertRadiance(albedo, normals, light):
    """
    Ambient plus Lambertian reflection of a directional light
    """
    direction = normalize(np.array(light.direction)[np.newaxis, :])[0]
    cosine = np.clip(np.dot(normals, direction), 0, None)
    return albedo * (np.array(light.ambient) + np.array(light.diffuse) * cosine[:, np.newaxis])

def blinnPhongRadiance(positions, normals, light, eyePosition):
    """
    Blinn-Phong specular highlight of a directional light seen from the eye position
    """
    direction = normalize(np.array(light.direction)[np.newaxis, :])[0]
    view = normalize(eyePosition - positions)
    halfway = normalize(view + direction)

    cosine = np.clip(np.sum(normals * halfway, axis = 1), 0, None)
    return np.array(light.specular) * np.power(cosine, light.shininess)[:, np.newaxis]

def directionalRadiance(albedo, normals, positions, light, eyePosition):
    return lambertRadiance(albedo, normals, light) + blinnPhongRadiance(positions, normals, light, eyePosition)

class PixelShader:
    """Shading with interpolated albedo and normals under spherical harmonics and directional illumination

    The radiance is the albedo times the SH irradiance of the environment map plus the Lambert and Blinn-Phong terms of the directional light. The color transform of the parameters is applied last. Normals and lights are expressed in world coordinates.

    Args:
        mesh (TriangleMesh): mesh in world coordinates
        color (SurfaceProperty): RGB albedo
        normals (SurfaceProperty): unit normals in world coordinates
        parameters (RenderParameter): illumination, view and color transform
    """
    def __init__(self, mesh, color, normals, parameters):
        color.checkTriangulation(mesh.triangles)
        normals.checkTriangulation(mesh.triangles)

        self.mesh = mesh
        self.color = color
        self.normals = normals
        self.environmentMap = parameters.environmentMap
        self.directionalLight = parameters.directionalLight
        self.colorTransform = parameters.colorTransform
        self.eyePosition = parameters.view.eyePosition

    def radiance(self, albedo, normals, worldPosition):
        radiance = np.zeros(albedo.shape)

        if self.environmentMap.nonEmpty:
            radiance += albedo * shIrradiance(normals, self.environmentMap)

        if not self.directionalLight.isOff:
            radiance += directionalRadiance(albedo, normals, worldPosition, self.directionalLight, self.eyePosition)

        return radiance

    @surfacePointShader
    def shade(self, triangleId, bcc, worldPosition):
        albedo = self.color.onSurface(triangleId, bcc)[..., :3]
        normals = normalize(self.normals.onSurface(triangleId, bcc))
        return self.colorTransform.apply(self.radiance(albedo, normals, worldPosition))

    def __call__(self, triangleId, bcc, worldPosition):
        return self.shade(triangleId, bcc, worldPosition)

# Modalities: shaders for single ingredients of the full shading

def depthShader(parameters):
    """
    Distance along the viewing direction from the eye plane to the surface
    """
    viewTransform = parameters.view.viewTransform()

    @surfacePointShader
    def shade(triangleId, bcc, worldPosition):
        return -applyTransform(viewTransform, worldPosition)[:, 2]

    return shade

def normalShader(normals):
    """
    Normals mapped from [-1, 1] to the RGB cube [0, 1]
    """
    @surfacePointShader
    def shade(triangleId, bcc, worldPosition):
        return 0.5 * normalize(normals.onSurface(triangleId, bcc)) + 0.5

    return shade

def albedoShader(color):
    @surfacePointShader
    def shade(triangleId, bcc, worldPosition):
        return color.onSurface(triangleId, bcc)[..., :3]

    return shade

def illuminationShader(mesh, normals, parameters, gray = 0.5):
    """
    Full shading of a uniformly gray surface
    """
    return PixelShader(mesh, ConstantProperty(mesh.triangles, (gray, gray, gray)), normals, parameters)
