#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import logging
import numpy as np
from .utils.mesh import TriangleMesh, calcNormals
from .render.properties import VertexProperty

logger = logging.getLogger(__name__)

class MorphableModel:
    """A linear 3D Morphable Model of face shape, facial expression and color

    An instance is the mean plus the eigenvectors weighted by the coefficients times the square roots of the eigenvalues, so coefficients are given in units of standard deviations.

    Args:
        face (ndarray): vertex indices of each triangle, (numFaces, 3)
        idMean (ndarray): shape identity mean, (3, numVertices)
        idEvec (ndarray): shape identity eigenvectors, (3, numVertices, numId)
        idEval (ndarray): shape identity eigenvalues, (numId,)
        texMean (ndarray): color mean, (3, numVertices)
        texEvec (ndarray): color eigenvectors, (3, numVertices, numTex)
        texEval (ndarray): color eigenvalues, (numTex,)
        expEvec (ndarray): optional shape facial expression eigenvectors, (3, numVertices, numExp)
        expEval (ndarray): optional shape facial expression eigenvalues, (numExp,)
        landmarks (dict): optional mapping from landmark names to vertex indices

    Attributes:
        numId (int): number of shape identity eigenvectors
        numExp (int): number of shape facial expression eigenvectors
        numTex (int): number of color eigenvectors
        numVertices (int): number of vertices in the 3DMM
        numFaces (int): number of triangular faces in the 3DMM
    """
    def __init__(self, face, idMean, idEvec, idEval, texMean, texEvec, texEval, expEvec = None, expEval = None, landmarks = None):
        self.face = np.asarray(face, dtype = np.int64)
        self.idMean = np.asarray(idMean, dtype = float)
        self.idEvec = np.asarray(idEvec, dtype = float)
        self.idEval = np.asarray(idEval, dtype = float)
        self.texMean = np.asarray(texMean, dtype = float)
        self.texEvec = np.asarray(texEvec, dtype = float)
        self.texEval = np.asarray(texEval, dtype = float)

        self.numVertices = self.idMean.shape[1]
        self.numFaces = self.face.shape[0]

        # Models without facial expressions get an empty expression basis
        if expEvec is None:
            expEvec = np.zeros((3, self.numVertices, 0))
            expEval = np.zeros(0)
        self.expEvec = np.asarray(expEvec, dtype = float)
        self.expEval = np.asarray(expEval, dtype = float)

        self.numId = self.idEval.size
        self.numExp = self.expEval.size
        self.numTex = self.texEval.size

        self.landmarks = dict(landmarks or {})

        for name, mean, evec, evals in (('shape', self.idMean, self.idEvec, self.idEval), ('color', self.texMean, self.texEvec, self.texEval), ('expression', None, self.expEvec, self.expEval)):
            if mean is not None and mean.shape != (3, self.numVertices):
                raise ValueError('%s mean must have shape (3, %d), got %s' % (name, self.numVertices, mean.shape))
            if evec.shape != (3, self.numVertices, evals.size):
                raise ValueError('%s eigenvectors must have shape (3, %d, %d), got %s' % (name, self.numVertices, evals.size, evec.shape))

        # Validates the triangulation against the number of vertices
        self.reference = TriangleMesh(self.idMean.T, self.face)

    @classmethod
    def load(cls, modelFile, numIdEvecs = 80, numExpEvecs = 76, numTexEvecs = 80):
        """Loads a 3DMM from a .npz file, keeping the eigenvectors with the highest eigenvalues.
        """
        modelDict = np.load(modelFile)

        expEvec = modelDict['expEvec'][:, :, :numExpEvecs] if 'expEvec' in modelDict else None
        expEval = modelDict['expEval'][:numExpEvecs] if 'expEval' in modelDict else None

        landmarks = {}
        if 'landmarkNames' in modelDict:
            landmarks = dict(zip(modelDict['landmarkNames'].tolist(), modelDict['landmarkInd'].tolist()))

        model = cls(modelDict['face'], modelDict['idMean'], modelDict['idEvec'][:, :, :numIdEvecs], modelDict['idEval'][:numIdEvecs], modelDict['texMean'], modelDict['texEvec'][:, :, :numTexEvecs], modelDict['texEval'][:numTexEvecs], expEvec, expEval, landmarks)
        logger.info('loaded model %s with %d vertices, %d shape, %d expression and %d color components', modelFile, model.numVertices, model.numId, model.numExp, model.numTex)
        return model

    def pad(self, coef, numComponents, name):
        """
        Coefficient vector zero padded to the number of model components
        """
        coef = np.asarray(coef, dtype = float)
        if coef.size > numComponents:
            raise ValueError('model has %d %s components, got %d coefficients' % (numComponents, name, coef.size))
        return np.r_[coef, np.zeros(numComponents - coef.size)]

    def generateFace(self, idCoef, expCoef = (), ind = None):
        """
        Generate vertices based off of eigenmodel and vector of coefficients, (3, numVertices)
        """
        idCoef = self.pad(idCoef, self.numId, 'shape') * np.sqrt(self.idEval)
        expCoef = self.pad(expCoef, self.numExp, 'expression') * np.sqrt(self.expEval)

        if ind is None:
            return self.idMean + np.tensordot(self.idEvec, idCoef, axes = 1) + np.tensordot(self.expEvec, expCoef, axes = 1)
        return self.idMean[:, ind] + np.tensordot(self.idEvec[:, ind, :], idCoef, axes = 1) + np.tensordot(self.expEvec[:, ind, :], expCoef, axes = 1)

    def generateTexture(self, texCoef):
        """
        Generate per-vertex RGB colors, (3, numVertices)
        """
        texCoef = self.pad(texCoef, self.numTex, 'color') * np.sqrt(self.texEval)
        return self.texMean + np.tensordot(self.texEvec, texCoef, axes = 1)

    def instance(self, momo):
        """
        Mesh, per-vertex color and per-vertex normals of a model instance

        Args:
            momo (MoMoInstance): model coefficients

        Returns:
            tuple: ``TriangleMesh`` in model coordinates, color ``VertexProperty`` and normal ``VertexProperty``
        """
        vertices = self.generateFace(momo.shape, momo.expression).T
        colors = self.generateTexture(momo.color).T

        mesh = TriangleMesh(vertices, self.face)
        return mesh, VertexProperty(self.face, colors), VertexProperty(self.face, calcNormals(vertices, self.face))

    def landmarkPoint(self, name, momo):
        """
        Model coordinates of a named landmark vertex for an instance
        """
        if name not in self.landmarks:
            raise KeyError('unknown landmark %r' % name)
        return self.generateFace(momo.shape, momo.expression, ind = [self.landmarks[name]])[:, 0]
