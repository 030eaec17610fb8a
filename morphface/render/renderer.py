#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import logging
from collections import namedtuple
from functools import lru_cache, wraps
import numpy as np
from ..utils.mesh import barycentricReconstruction
from ..utils.transform import applyTransform, applyRotation
from .properties import MappedProperty
from .projection import bccScreenToWorld
from .rasterizer import rasterize, downsample
from .shaders import PixelShader, depthShader, normalShader, albedoShader, illuminationShader

logger = logging.getLogger(__name__)

Fragment = namedtuple('Fragment', ['mesh', 'triangleId', 'bcc', 'worldPosition', 'x', 'y', 'depth'])

class CorrespondenceImage:
    """Per-pixel record of the visible surface point

    Args:
        mesh (TriangleMesh): the rendered mesh in world coordinates
        triangleId (ndarray): index of the visible triangle, -1 for background, (height, width)
        bcc (ndarray): world space barycentric coordinates of the visible point, (height, width, 3)
        worldPosition (ndarray): world coordinates of the visible point, NaN for background, (height, width, 3)
        depth (ndarray): screen depth in [0, 1], ``inf`` for background, (height, width)
    """
    def __init__(self, mesh, triangleId, bcc, worldPosition, depth):
        for a in (triangleId, bcc, worldPosition, depth):
            a.setflags(write = False)

        self.mesh = mesh
        self.triangleId = triangleId
        self.bcc = bcc
        self.worldPosition = worldPosition
        self.depth = depth
        self.height, self.width = triangleId.shape

    @property
    def mask(self):
        return self.triangleId >= 0

    def fragment(self, x, y):
        """
        The fragment at pixel column x and row y, or None for background
        """
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError('pixel (%d, %d) outside of %d x %d image' % (x, y, self.width, self.height))
        tid = self.triangleId[y, x]
        if tid < 0:
            return None
        return Fragment(self.mesh, int(tid), self.bcc[y, x], self.worldPosition[y, x], x, y, self.depth[y, x])

    def fragments(self):
        """
        All covered pixels

        Returns:
            tuple: (row, column) pixel coordinates, (N, 2), the visible triangles, (N,), and the barycentric coordinates, (N, 3)
        """
        pixelCoord = np.transpose(np.nonzero(self.mask))
        pixelFaces = self.triangleId[self.mask]
        pixelBarycentricCoords = self.bcc[self.mask]

        return pixelCoord, pixelFaces, pixelBarycentricCoords

    def shade(self, shader, clearValue):
        """
        Image of a vectorized shader ``shader(triangleId, bcc, worldPosition)`` over all covered pixels, with ``clearValue`` on the background
        """
        mask = self.mask
        clearValue = np.asarray(clearValue, dtype = float)
        image = np.empty((self.height, self.width) + clearValue.shape)
        image[...] = clearValue

        if mask.any():
            image[mask] = shader(self.triangleId[mask], self.bcc[mask], self.worldPosition[mask])

        return image

    def __eq__(self, other):
        if not isinstance(other, CorrespondenceImage):
            return NotImplemented
        return np.array_equal(self.triangleId, other.triangleId) and np.array_equal(self.bcc, other.bcc) and np.array_equal(self.depth, other.depth)

    __hash__ = None

def renderCorrespondence(mesh, parameters, supersampling = 1):
    """
    Rasterize a mesh in world coordinates with the view, camera and image size of the parameters

    Returns:
        CorrespondenceImage: at ``supersampling`` times the resolution of the parameters' image size
    """
    width = parameters.imageSize.width * supersampling
    height = parameters.imageSize.height * supersampling
    projection = parameters.camera.projection()

    # World to eye space to NDC to screen
    eyePoints = applyTransform(parameters.view.viewTransform(), mesh.points)
    screenPoints = parameters.imageSize.screenTransform(projection.apply(eyePoints))
    screenPoints[:, :2] *= supersampling

    zBuffer = rasterize(screenPoints, mesh.triangles, width, height)

    triangleId = zBuffer.triangleId
    mask = zBuffer.mask
    tid = triangleId[mask]

    # Screen space barycentric coordinates are not the ones of the surface point under perspective projection
    bcc = np.zeros((height, width, 3))
    weights = projection.depthWeights(eyePoints)[mesh.triangles[tid]]
    bcc[mask] = bccScreenToWorld(zBuffer.bcc[mask], weights)

    worldPosition = np.full((height, width, 3), np.nan)
    worldPosition[mask] = barycentricReconstruction(mesh.points, tid, bcc[mask], mesh.triangles)

    return CorrespondenceImage(mesh, triangleId, bcc, worldPosition, zBuffer.depth)

class MoMoRenderer:
    """Renders images of morphable model instances

    Args:
        model (MorphableModel): anything with ``instance(momo) -> (mesh, color, normals)``
        clearColor (tuple): RGB background color
        supersampling (int): render color images at this many samples per pixel and direction, and box filter them down
    """
    def __init__(self, model, clearColor = (0, 0, 0), supersampling = 1):
        if supersampling < 1:
            raise ValueError('supersampling factor must be at least 1, got %s' % supersampling)
        self.model = model
        self.clearColor = tuple(clearColor)
        self.supersampling = int(supersampling)

    def instance(self, parameters):
        """
        Model instance of the parameters placed in the world: mesh, albedo and normals
        """
        mesh, color, normals = self.model.instance(parameters.momo)
        return self.placeInWorld(parameters, mesh, color, normals)

    def placeInWorld(self, parameters, mesh, color, normals):
        color.checkTriangulation(mesh.triangles)
        normals.checkTriangulation(mesh.triangles)

        pose = parameters.pose.transform()
        worldNormals = MappedProperty(normals, lambda n: applyRotation(pose, n))
        return mesh.transform(pose), color, worldNormals

    def renderCorrespondence(self, parameters):
        mesh, _, _ = self.instance(parameters)
        return renderCorrespondence(mesh, parameters)

    def renderMesh(self, parameters, mesh, color, normals):
        """
        Image of an explicit mesh in model coordinates, with albedo and normal properties, placed by the pose of the parameters
        """
        worldMesh, color, worldNormals = self.placeInWorld(parameters, mesh, color, normals)
        return self.shadeImage(parameters, PixelShader(worldMesh, color, worldNormals, parameters), worldMesh)

    def shadeImage(self, parameters, shader, worldMesh):
        correspondence = renderCorrespondence(worldMesh, parameters, self.supersampling)
        return downsample(correspondence.shade(shader, self.clearColor), self.supersampling)

    def renderImage(self, parameters):
        mesh, color, normals = self.instance(parameters)
        return self.shadeImage(parameters, PixelShader(mesh, color, normals, parameters), mesh)

    def renderAlbedo(self, parameters):
        mesh, color, _ = self.instance(parameters)
        return self.shadeImage(parameters, albedoShader(color), mesh)

    def renderIllumination(self, parameters):
        mesh, _, normals = self.instance(parameters)
        return self.shadeImage(parameters, illuminationShader(mesh, normals, parameters), mesh)

    def renderNormals(self, parameters):
        mesh, _, normals = self.instance(parameters)
        return self.shadeImage(parameters, normalShader(normals), mesh)

    def renderDepthMap(self, parameters):
        """
        Distance from the eye plane of the visible surface, ``inf`` on the background
        """
        mesh, _, _ = self.instance(parameters)
        return renderCorrespondence(mesh, parameters).shade(depthShader(parameters), np.inf)

    def renderMask(self, parameters):
        return self.renderCorrespondence(parameters).mask

    def renderLandmark(self, name, parameters):
        """
        Screen position of a named model landmark: pixel x, pixel y and depth in [0, 1]
        """
        point = self.model.landmarkPoint(name, parameters.momo)
        return parameters.renderTransform(point[np.newaxis, :])[0]

def readOnly(func):
    @wraps(func)
    def wrapped(*args):
        result = func(*args)
        if isinstance(result, np.ndarray):
            result.setflags(write = False)
        return result
    return wrapped

class CachedRenderer:
    """Renderer keeping the results of the most recent calls per method, keyed by the exact parameters

    Results are shared between calls and therefore read-only.

    Args:
        renderer (MoMoRenderer): the renderer to wrap
        cacheSize (int): number of results kept per method, least recently used ones are evicted first
    """
    cachedMethods = ('renderImage', 'renderCorrespondence', 'renderAlbedo', 'renderIllumination', 'renderNormals', 'renderDepthMap', 'renderMask', 'renderLandmark')

    def __init__(self, renderer, cacheSize = 10):
        if cacheSize < 1:
            raise ValueError('cache size must be at least 1, got %s' % cacheSize)
        self.renderer = renderer
        self.cacheSize = cacheSize

        for name in self.cachedMethods:
            setattr(self, name, lru_cache(maxsize = cacheSize)(readOnly(getattr(renderer, name))))

        logger.debug('caching %d results per method of %s', cacheSize, type(renderer).__name__)

    def __getattr__(self, name):
        # Everything not cached goes to the wrapped renderer
        return getattr(self.renderer, name)

    def cacheInfo(self):
        return {name: getattr(self, name).cache_info() for name in self.cachedMethods}

    def clearCache(self):
        for name in self.cachedMethods:
            getattr(self, name).cache_clear()
