#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import numpy as np
import pytest
from morphface.models import MorphableModel
from morphface.parameters import MoMoInstance
from morphface.utils.mesh import TriangleMesh, calcNormals, barycentricReconstruction

def test_mean_instance(capModel):
    mesh, color, normals = capModel.instance(MoMoInstance())

    np.testing.assert_array_equal(mesh.points, capModel.idMean.T)
    np.testing.assert_array_equal(color.onSurface(0, [1, 0, 0]), capModel.texMean[:, capModel.face[0, 0]])
    # The cap faces +z
    assert normals.onSurface(0, [1/3, 1/3, 1/3])[2] > 0

def test_coefficients_in_standard_deviations(capModel):
    face = capModel.generateFace([1.0])
    np.testing.assert_allclose(face - capModel.idMean, 2 * capModel.idEvec[:, :, 0])

    np.testing.assert_allclose(capModel.generateFace([0, 0], ind = [3, 5]), capModel.idMean[:, [3, 5]])
    np.testing.assert_allclose(capModel.generateTexture([0, 1]) - capModel.texMean, capModel.texEvec[:, :, 1])

def test_too_many_coefficients(capModel):
    with pytest.raises(ValueError):
        capModel.instance(MoMoInstance(shape = [1, 2, 3]))
    with pytest.raises(ValueError):
        capModel.generateFace([], expCoef = [1])

def test_landmarks(capModel):
    np.testing.assert_allclose(capModel.landmarkPoint('center', MoMoInstance()), capModel.idMean[:, capModel.landmarks['center']])
    with pytest.raises(KeyError):
        capModel.landmarkPoint('chin', MoMoInstance())

def test_model_shapes_are_checked(capModel):
    with pytest.raises(ValueError):
        MorphableModel(capModel.face, capModel.idMean, capModel.idEvec[:, :, :1], capModel.idEval, capModel.texMean, capModel.texEvec, capModel.texEval)
    with pytest.raises(ValueError):
        MorphableModel(capModel.face + capModel.numVertices, capModel.idMean, capModel.idEvec, capModel.idEval, capModel.texMean, capModel.texEvec, capModel.texEval)

def test_load(capModel, tmp_path):
    modelFile = tmp_path / 'model.npz'
    np.savez(modelFile, face = capModel.face, idMean = capModel.idMean, idEvec = capModel.idEvec, idEval = capModel.idEval, texMean = capModel.texMean, texEvec = capModel.texEvec, texEval = capModel.texEval)

    model = MorphableModel.load(modelFile, numIdEvecs = 1)
    assert model.numId == 1
    assert model.numTex == 2
    assert model.numExp == 0

def test_mesh_normals(square):
    np.testing.assert_allclose(square.cellNormals(), [[0, 0, 1], [0, 0, 1]])
    np.testing.assert_allclose(calcNormals(square.points, square.triangles), np.tile([0, 0, 1], (4, 1)))

def test_mesh_is_read_only(square):
    with pytest.raises(ValueError):
        square.points[0, 0] = 1
    with pytest.raises(ValueError):
        TriangleMesh(square.points, [[0, 1, 4]])

def test_mesh_transform(square):
    M = np.eye(4)
    M[:3, 3] = (1, 2, 3)
    moved = square.transform(M)

    np.testing.assert_allclose(moved.points, square.points + (1, 2, 3))
    assert moved.hasSameTriangulation(square.triangles)

def test_barycentric_reconstruction(square):
    points = barycentricReconstruction(square.points, np.array([0, 1]), np.array([[1/3, 1/3, 1/3], [0, 0.5, 0.5]]), square.triangles)
    np.testing.assert_allclose(points, [[2/3, 1/3, 0], [0.5, 1, 0]])

def test_position_property(square):
    np.testing.assert_allclose(square.position.onSurface(1, [0.5, 0, 0.5]), [0, 0.5, 0])
