#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Scene parameters for rendering a face model instance.

All parameters are immutable and hashable value objects. They are changed by creating modified copies with the ``with*`` methods, so a ``RenderParameter`` can be used directly as the key of a render cache.

Units follow the face models: lengths are in millimeters, angles in radians.
"""
from collections import namedtuple
import numpy as np
from sklearn.preprocessing import normalize
from .utils.transform import rotation4, translation4, scaling4, applyTransform, N0, N1, lambertKernel, totalCoefficients, numberOfBandsForCoefficients
from .render.projection import Frustum, PinholeProjection, OrthographicProjection, windowTransform, inverseWindowTransform

def vector(v, n = 3):
    """
    Tuple of floats of length n, a scalar is repeated n times
    """
    if np.isscalar(v):
        return (float(v),) * n
    v = tuple(float(x) for x in np.ravel(v))
    if len(v) != n:
        raise ValueError('expected a vector of length %d, got %d' % (n, len(v)))
    return v

def copyWith(param, **changes):
    """
    Copy of a parameter object with some fields changed, passing through its validation
    """
    fields = param._asdict()
    fields.update(changes)
    return type(param)(**fields)

class Pose(namedtuple('Pose', ['scaling', 'translation', 'roll', 'yaw', 'pitch'])):
    """Placement of the face in the world

    Args:
        scaling (float): isotropic scale factor
        translation (tuple): world position of the model origin
        roll (float): rotation about the z axis
        yaw (float): rotation about the y axis
        pitch (float): rotation about the x axis
    """
    __slots__ = ()

    def __new__(cls, scaling = 1.0, translation = (0, 0, 0), roll = 0.0, yaw = 0.0, pitch = 0.0):
        return super().__new__(cls, float(scaling), vector(translation), float(roll), float(yaw), float(pitch))

    @classmethod
    def neutral(cls):
        return cls()

    @classmethod
    def away1m(cls):
        return cls(translation = (0, 0, -1000))

    def transform(self):
        """
        Model to world transformation T Rz(roll) Ry(yaw) Rx(pitch) S as a 4x4 matrix
        """
        return translation4(self.translation).dot(rotation4(self.pitch, self.yaw, self.roll)).dot(scaling4(self.scaling))

    def withScaling(self, scaling):
        return copyWith(self, scaling = scaling)

    def withTranslation(self, translation):
        return copyWith(self, translation = translation)

    def withRotation(self, roll, yaw, pitch):
        return copyWith(self, roll = roll, yaw = yaw, pitch = pitch)

class ViewParameter(namedtuple('ViewParameter', ['translation', 'pitch', 'yaw', 'roll'])):
    """Position and orientation of the camera in the world"""
    __slots__ = ()

    def __new__(cls, translation = (0, 0, 0), pitch = 0.0, yaw = 0.0, roll = 0.0):
        return super().__new__(cls, vector(translation), float(pitch), float(yaw), float(roll))

    @classmethod
    def neutral(cls):
        return cls()

    def transform(self):
        """
        Camera to world transformation T Rz(roll) Ry(yaw) Rx(pitch)
        """
        return translation4(self.translation).dot(rotation4(self.pitch, self.yaw, self.roll))

    def viewTransform(self):
        """
        World to eye space transformation
        """
        return np.linalg.inv(self.transform())

    @property
    def eyePosition(self):
        return np.array(self.translation)

    def withTranslation(self, translation):
        return copyWith(self, translation = translation)

    def withRotation(self, pitch, yaw, roll):
        return copyWith(self, pitch = pitch, yaw = yaw, roll = roll)

class Camera(namedtuple('Camera', ['focalLength', 'principalPoint', 'sensorSize', 'near', 'far', 'orthographic'])):
    """Camera intrinsics

    Args:
        focalLength (float): focal length, same unit as the sensor size
        principalPoint (tuple): offset of the image center in normalized device coordinates
        sensorSize (tuple): sensor width and height
        near (float): distance of the near clipping plane
        far (float): distance of the far clipping plane
        orthographic (bool): parallel instead of perspective projection
    """
    __slots__ = ()

    def __new__(cls, focalLength = 50.0, principalPoint = (0, 0), sensorSize = (36, 24), near = 10.0, far = 1e6, orthographic = False):
        if not focalLength > 0:
            raise ValueError('focal length must be positive, got %s' % focalLength)
        sensorSize = vector(sensorSize, 2)
        if not min(sensorSize) > 0:
            raise ValueError('sensor size must be positive, got %s' % (sensorSize,))
        if not 0 < near < far:
            raise ValueError('clipping planes need 0 < near < far, got near = %s and far = %s' % (near, far))

        return super().__new__(cls, float(focalLength), vector(principalPoint, 2), sensorSize, float(near), float(far), bool(orthographic))

    @classmethod
    def for35mmFilm(cls, focalLength = 50.0):
        return cls(focalLength, (0, 0), (36, 24), 10.0, 1e6)

    def frustum(self):
        if self.orthographic:
            return Frustum.fromSensor(self.sensorSize, self.principalPoint, self.near, self.far)
        return Frustum.fromFocal(self.focalLength, self.sensorSize, self.principalPoint, self.near, self.far)

    def projection(self):
        if self.orthographic:
            return OrthographicProjection(self.frustum())
        return PinholeProjection(self.frustum())

    def withFocalLength(self, focalLength):
        return copyWith(self, focalLength = focalLength)

    def withPrincipalPoint(self, principalPoint):
        return copyWith(self, principalPoint = principalPoint)

    def withSensorSize(self, sensorSize):
        return copyWith(self, sensorSize = sensorSize)

class ImageSize(namedtuple('ImageSize', ['width', 'height'])):
    __slots__ = ()

    def __new__(cls, width = 720, height = 480):
        if width <= 0 or height <= 0:
            raise ValueError('image size must be positive, got %s x %s' % (width, height))
        return super().__new__(cls, int(width), int(height))

    @property
    def aspectRatio(self):
        return self.width / self.height

    def screenTransform(self, points):
        return windowTransform(points, self.width, self.height)

    def inverseScreenTransform(self, points):
        return inverseWindowTransform(points, self.width, self.height)

class ColorTransform(namedtuple('ColorTransform', ['gain', 'gamma', 'offset'])):
    """Sensor response applied to rendered colors: gain * color**gamma + offset per channel"""
    __slots__ = ()

    def __new__(cls, gain = (1, 1, 1), gamma = (1, 1, 1), offset = (0, 0, 0)):
        gamma = vector(gamma)
        if not min(gamma) > 0:
            raise ValueError('gamma must be positive, got %s' % (gamma,))
        return super().__new__(cls, vector(gain), gamma, vector(offset))

    @classmethod
    def neutral(cls):
        return cls()

    def apply(self, colors):
        """
        Transform RGB colors, (..., 3); negative values are clipped to 0 before the power
        """
        colors = np.asarray(colors, dtype = float)
        return np.array(self.gain) * np.power(np.clip(colors, 0, None), self.gamma) + np.array(self.offset)

    def invert(self, colors):
        colors = np.asarray(colors, dtype = float)
        return np.power(np.clip((colors - np.array(self.offset)) / np.array(self.gain), 0, None), 1 / np.array(self.gamma))

class DirectionalLight(namedtuple('DirectionalLight', ['ambient', 'diffuse', 'direction', 'specular', 'shininess'])):
    """Ambient light plus a light source at infinity with Lambertian and Blinn-Phong specular reflection

    Args:
        ambient (tuple): ambient RGB intensity
        diffuse (tuple): RGB intensity of the directional source
        direction (tuple): direction pointing towards the light source, in world coordinates
        specular (tuple): RGB intensity of the specular highlight
        shininess (float): Blinn-Phong exponent
    """
    __slots__ = ()

    def __new__(cls, ambient = (0, 0, 0), diffuse = (0, 0, 0), direction = (0, 0, 1), specular = (0, 0, 0), shininess = 10.0):
        return super().__new__(cls, vector(ambient), vector(diffuse), vector(direction), vector(specular), float(shininess))

    @classmethod
    def off(cls):
        return cls()

    @classmethod
    def ambientOnly(cls):
        return cls(ambient = (1, 1, 1))

    @property
    def isOff(self):
        return not any(self.ambient + self.diffuse + self.specular)

    def withAmbient(self, ambient):
        return copyWith(self, ambient = ambient)

    def withDiffuse(self, diffuse):
        return copyWith(self, diffuse = diffuse)

    def withDirection(self, direction):
        return copyWith(self, direction = direction)

    def withSpecular(self, specular, shininess = None):
        return copyWith(self, specular = specular, shininess = self.shininess if shininess is None else shininess)

class SphericalHarmonicsLight(namedtuple('SphericalHarmonicsLight', ['coefficients'])):
    """Environment map as spherical harmonics coefficients, one RGB triple per basis function"""
    __slots__ = ()

    def __new__(cls, coefficients = ()):
        coefficients = np.asarray(coefficients, dtype = float).reshape(-1, 3)
        return super().__new__(cls, tuple(tuple(float(x) for x in c) for c in coefficients))

    @classmethod
    def empty(cls):
        return cls()

    @classmethod
    def zero(cls, numberOfBands):
        return cls(np.zeros((totalCoefficients(numberOfBands), 3)))

    @classmethod
    def ambientWhite(cls):
        return cls(np.full((1, 3), 1 / lambertKernel[0] / N0))

    @classmethod
    def fromAmbientDiffuse(cls, ambient, diffuse, direction):
        """
        First two bands reproducing a constant ambient light and a diffuse light from the given direction
        """
        amb = np.array(vector(ambient))
        diff = np.array(vector(diffuse))
        x, y, z = normalize(np.array(vector(direction))[np.newaxis, :])[0]

        return cls([
            amb / N0 / lambertKernel[0],
            diff * y / N1 / lambertKernel[1],
            diff * z / N1 / lambertKernel[2],
            diff * x / N1 / lambertKernel[3]])

    @classmethod
    def frontal(cls):
        return cls.fromAmbientDiffuse(0.8, 0.2, (0, 0, 1))

    @classmethod
    def fromVector(cls, v):
        return cls(np.asarray(v, dtype = float).reshape(-1, 3))

    def toVector(self):
        return np.array(self.coefficients).reshape(-1)

    def toArray(self):
        return np.array(self.coefficients).reshape(-1, 3)

    @property
    def nonEmpty(self):
        return len(self.coefficients) > 0

    @property
    def bands(self):
        return numberOfBandsForCoefficients(len(self.coefficients))

    @property
    def energy(self):
        return float(np.sum(self.toArray()**2))

    def withNumberOfBands(self, numberOfBands):
        """
        Truncate to or pad with zeros up to the given number of bands
        """
        n = totalCoefficients(numberOfBands)
        coefficients = np.zeros((n, 3))
        current = self.toArray()[:n]
        coefficients[:current.shape[0]] = current
        return SphericalHarmonicsLight(coefficients)

    def directionFromSHLightIntensity(self):
        """
        Dominant light direction of the first band, summed over the color channels, or None if there is no directed light
        """
        if len(self.coefficients) < 4:
            return None

        c = self.toArray()[1:4].sum(axis = 1)
        v = np.array([c[2] * N1 / lambertKernel[3], c[0] * N1 / lambertKernel[1], c[1] * N1 / lambertKernel[2]])

        length = np.linalg.norm(v)
        if length < 1e-12:
            return None
        return v / length

class MoMoInstance(namedtuple('MoMoInstance', ['shape', 'color', 'expression'])):
    """Coefficients of a morphable model instance, in units of standard deviations"""
    __slots__ = ()

    def __new__(cls, shape = (), color = (), expression = ()):
        return super().__new__(cls, tuple(float(x) for x in np.ravel(shape)), tuple(float(x) for x in np.ravel(color)), tuple(float(x) for x in np.ravel(expression)))

    @classmethod
    def zero(cls, numShape, numColor, numExpression = 0):
        return cls(np.zeros(numShape), np.zeros(numColor), np.zeros(numExpression))

    def withShape(self, shape):
        return copyWith(self, shape = shape)

    def withColor(self, color):
        return copyWith(self, color = color)

    def withExpression(self, expression):
        return copyWith(self, expression = expression)

class RenderParameter(namedtuple('RenderParameter', ['pose', 'view', 'camera', 'environmentMap', 'directionalLight', 'momo', 'imageSize', 'colorTransform'])):
    """Complete scene description for rendering a face model instance

    Args:
        pose (Pose): placement of the face
        view (ViewParameter): placement of the camera
        camera (Camera): camera intrinsics
        environmentMap (SphericalHarmonicsLight): spherical harmonics illumination, used when non-empty
        directionalLight (DirectionalLight): added to the environment map illumination unless it is off
        momo (MoMoInstance): model coefficients
        imageSize (ImageSize): size of the rendered image
        colorTransform (ColorTransform): sensor response
    """
    __slots__ = ()

    def __new__(cls, pose = None, view = None, camera = None, environmentMap = None, directionalLight = None, momo = None, imageSize = None, colorTransform = None):
        return super().__new__(cls,
            Pose.away1m() if pose is None else pose,
            ViewParameter.neutral() if view is None else view,
            Camera.for35mmFilm(50) if camera is None else camera,
            SphericalHarmonicsLight.frontal().withNumberOfBands(2) if environmentMap is None else environmentMap,
            DirectionalLight.off() if directionalLight is None else directionalLight,
            MoMoInstance() if momo is None else momo,
            ImageSize(720, 480) if imageSize is None else imageSize,
            ColorTransform.neutral() if colorTransform is None else colorTransform)

    @classmethod
    def default(cls):
        return cls()

    def withPose(self, pose):
        return copyWith(self, pose = pose)

    def withView(self, view):
        return copyWith(self, view = view)

    def withCamera(self, camera):
        return copyWith(self, camera = camera)

    def withEnvironmentMap(self, environmentMap):
        return copyWith(self, environmentMap = environmentMap)

    def withDirectionalLight(self, directionalLight):
        return copyWith(self, directionalLight = directionalLight)

    def withMoMo(self, momo):
        return copyWith(self, momo = momo)

    def withImageSize(self, imageSize):
        return copyWith(self, imageSize = imageSize)

    def withColorTransform(self, colorTransform):
        return copyWith(self, colorTransform = colorTransform)

    def noLightAndColor(self):
        """
        Albedo rendering: white ambient environment map, no directional light and a neutral color transform
        """
        return copyWith(self, environmentMap = SphericalHarmonicsLight.ambientWhite(), directionalLight = DirectionalLight.off(), colorTransform = ColorTransform.neutral())

    def modelViewTransform(self):
        """
        Model to eye space transformation as a 4x4 matrix
        """
        return self.view.viewTransform().dot(self.pose.transform())

    def projection(self):
        return self.camera.projection()

    def eyePoints(self, points):
        return applyTransform(self.modelViewTransform(), points)

    def pointShader(self, points):
        """
        Model space points to normalized device coordinates
        """
        return self.projection().apply(self.eyePoints(points))

    def renderTransform(self, points):
        """
        Model space points to screen coordinates in pixels, with depth in [0, 1]
        """
        return self.imageSize.screenTransform(self.pointShader(points))

    def forImageSize(self, width, height):
        """
        Same view in a differently sized image: the sensor keeps its height and its width follows the aspect ratio
        """
        sensorHeight = self.camera.sensorSize[1]
        camera = self.camera.withSensorSize((sensorHeight * width / height, sensorHeight))
        return copyWith(self, imageSize = ImageSize(width, height), camera = camera)

    def fitToImageSize(self, width, height):
        """
        Same view scaled uniformly to fit into an image of the given size, keeping the whole current field of view visible
        """
        oldWidth, oldHeight = self.imageSize
        scale = min(width / oldWidth, height / oldHeight)
        sensorWidth, sensorHeight = self.camera.sensorSize
        camera = self.camera.withSensorSize((sensorWidth * width / (oldWidth * scale), sensorHeight * height / (oldHeight * scale)))
        return copyWith(self, imageSize = ImageSize(width, height), camera = camera)
