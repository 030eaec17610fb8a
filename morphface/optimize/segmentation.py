#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Image segmentation with a pairwise Markov random field on the 4-connected pixel grid, solved by loopy belief propagation.

Each iteration computes the local messages from per-label color models, passes messages right, left, down and up through the image, computes the belief at each pixel, and re-estimates the color models from the most probable labels. Messages are normalized after every multiplication.

Label images are arrays of label distributions, (height, width, numLabels). The message passing works on these arrays directly; ``LabelDistribution`` and ``LogLabelDistribution`` are the view of a single pixel, as returned by ``labelDistributionAt``, for inspecting and combining results.
"""
import logging
import numpy as np
from scipy.special import logsumexp

logger = logging.getLogger(__name__)

# Index of the incoming message from the neighbour on that side
RIGHT, LEFT, DOWN, UP = 0, 1, 2, 3
DIRECTIONS = (RIGHT, LEFT, DOWN, UP)

def normalizeDistributions(values, axis = -1):
    """
    Divide non-negative weights by their sum along ``axis``
    """
    values = np.asarray(values, dtype = float)
    total = np.sum(values, axis = axis, keepdims = True)

    if not np.all(total > 0) or not np.all(np.isfinite(total)):
        raise ValueError('cannot normalize a label distribution with total weight %s' % total[~(total > 0) | ~np.isfinite(total)].ravel()[0])

    return values / total

def normalizeLogDistributions(logValues, axis = -1):
    """
    Normalize log weights along ``axis`` with the log-sum-exp
    """
    logValues = np.asarray(logValues, dtype = float)
    total = logsumexp(logValues, axis = axis, keepdims = True)

    if not np.all(np.isfinite(total)):
        raise ValueError('cannot normalize a log label distribution with total log weight %s' % total[~np.isfinite(total)].ravel()[0])

    return logValues - total

class LabelDistribution:
    """Categorical distribution over segmentation labels

    Args:
        values (ndarray): non-negative weight of each label, not necessarily normalized
    """
    def __init__(self, values):
        values = np.array(values, dtype = float)
        if values.ndim != 1:
            raise ValueError('label distribution must be a vector, got shape %s' % (values.shape,))
        if np.any(values < 0):
            raise ValueError('label weights must be non-negative, got %s' % values)
        self.values = values

    @classmethod
    def constant(cls, numLabels):
        return cls(np.full(numLabels, 1 / numLabels))

    @classmethod
    def fromSingleLabel(cls, label, numLabels, eps = 1e-3):
        """
        Smoothed indicator: 1 - numLabels * eps for the label, eps for all others
        """
        if not 0 <= label < numLabels:
            raise ValueError('label %d outside of [0, %d)' % (label, numLabels))
        values = np.full(numLabels, eps)
        values[label] = 1 - numLabels * eps
        return cls(values)

    @classmethod
    def tabulate(cls, numLabels, f):
        return cls([f(label) for label in range(numLabels)])

    def __len__(self):
        return self.values.size

    def __getitem__(self, label):
        return self.values[label]

    def normalized(self):
        return LabelDistribution(normalizeDistributions(self.values))

    def maxLabel(self):
        return int(np.argmax(self.values))

    def marginalize(self, p):
        """
        Expectation of ``p(label)``, the weights are normalized first
        """
        return float(sum(w * p(label) for label, w in enumerate(self.normalized().values)))

    def checkLength(self, other):
        if len(self) != len(other):
            raise ValueError('label distributions of different lengths: expected %d, got %d' % (len(self), len(other)))

    def __mul__(self, other):
        self.checkLength(other)
        return LabelDistribution(self.values * other.values)

    def toLogLabelDistribution(self):
        with np.errstate(divide = 'ignore'):
            return LogLabelDistribution(np.log(self.values))

    def __repr__(self):
        return 'LabelDistribution(%s)' % np.array2string(self.values, precision = 4)

class LogLabelDistribution:
    """Categorical distribution over segmentation labels stored as log weights, for long products"""
    def __init__(self, logValues):
        logValues = np.array(logValues, dtype = float)
        if logValues.ndim != 1:
            raise ValueError('log label distribution must be a vector, got shape %s' % (logValues.shape,))
        self.logValues = logValues

    @classmethod
    def constant(cls, numLabels):
        return cls(np.full(numLabels, -np.log(numLabels)))

    @classmethod
    def fromSingleLabel(cls, label, numLabels, eps = 1e-3):
        return LabelDistribution.fromSingleLabel(label, numLabels, eps).toLogLabelDistribution()

    @classmethod
    def tabulate(cls, numLabels, f):
        return cls([f(label) for label in range(numLabels)])

    def __len__(self):
        return self.logValues.size

    def __getitem__(self, label):
        return self.logValues[label]

    def normalized(self):
        return LogLabelDistribution(normalizeLogDistributions(self.logValues))

    def maxLabel(self):
        return int(np.argmax(self.logValues))

    def marginalize(self, p):
        return float(sum(np.exp(v) * p(label) for label, v in enumerate(self.normalized().logValues)))

    def marginalizeLog(self, logP):
        """
        Log of the expectation of exp(logP(label)), the weights are normalized first
        """
        return float(logsumexp([v + logP(label) for label, v in enumerate(self.normalized().logValues)]))

    def toLabelDistribution(self):
        return LabelDistribution(np.exp(self.logValues))

    def checkLength(self, other):
        if len(self) != len(other):
            raise ValueError('label distributions of different lengths: expected %d, got %d' % (len(self), len(other)))

    def __mul__(self, other):
        self.checkLength(other)
        return LogLabelDistribution(self.logValues + other.logValues)

    def __truediv__(self, other):
        self.checkLength(other)
        return LogLabelDistribution(self.logValues - other.logValues)

    def __repr__(self):
        return 'LogLabelDistribution(%s)' % np.array2string(self.logValues, precision = 4)

def labelDistributionAt(labelImage, x, y):
    """
    Label distribution of pixel (x, y) of a label image, (height, width, numLabels)
    """
    return LabelDistribution(labelImage[y, x])

def binDistribution(pEqual, numLabels):
    """
    Pairwise label compatibility: pEqual for equal neighbouring labels, the rest spread evenly over the other labels, (numLabels, numLabels)
    """
    if numLabels < 2:
        raise ValueError('need at least 2 labels, got %d' % numLabels)
    # Zero weights would make message products vanish
    if not 0 < pEqual < 1:
        raise ValueError('pEqual must lie strictly between 0 and 1, got %s' % pEqual)

    pElse = (1 - pEqual) / (numLabels - 1)
    binary = np.full((numLabels, numLabels), pElse)
    np.fill_diagonal(binary, pEqual)
    return binary

class GaussianColorDistribution:
    """Axis-aligned Gaussian distribution of RGB colors

    Args:
        mean (ndarray): mean color, (3,)
        sdev (ndarray): positive standard deviation of each channel, (3,)
    """
    def __init__(self, mean, sdev):
        self.mean = np.asarray(mean, dtype = float)
        self.sdev = np.asarray(sdev, dtype = float)
        if not np.all(self.sdev > 0):
            raise ValueError('standard deviations must be positive, got %s' % self.sdev)

        self.logNormalizer = -1.5 * np.log(2*np.pi) - 0.5 * np.log(np.sum(self.sdev**2))
        self.normalizer = np.exp(self.logNormalizer)

    @classmethod
    def fromColors(cls, colors, minSdev = 0.0):
        """
        Maximum likelihood fit to colors, (N, 3), with the standard deviations bounded from below by ``minSdev``
        """
        colors = np.asarray(colors, dtype = float).reshape(-1, 3)
        if colors.shape[0] == 0:
            raise ValueError('cannot fit a color distribution to no colors')

        mean = colors.mean(axis = 0)
        variance = np.mean(colors**2, axis = 0) - mean**2
        sdev = np.sqrt(np.clip(variance, 0, None))

        return cls(mean, np.maximum(sdev, minSdev))

    def evaluateLog(self, colors):
        d = (np.asarray(colors, dtype = float) - self.mean) / self.sdev
        return -0.5 * np.sum(d**2, axis = -1) + self.logNormalizer

    def evaluate(self, colors):
        return np.exp(self.evaluateLog(colors))

    def sample(self, rng, size = None):
        shape = (3,) if size is None else (size, 3)
        return self.mean + self.sdev * rng.standard_normal(shape)

    def __repr__(self):
        return 'GaussianColorDistribution(mean=%s, sdev=%s)' % (np.array2string(self.mean, precision = 3), np.array2string(self.sdev, precision = 3))

class UniformColorDistribution:
    """Uniform distribution over the RGB unit cube"""
    normalizer = 1.0
    logNormalizer = 0.0

    def evaluateLog(self, colors):
        return np.zeros(np.shape(colors)[:-1])

    def evaluate(self, colors):
        return np.ones(np.shape(colors)[:-1])

    def sample(self, rng, size = None):
        return rng.random((3,) if size is None else (size, 3))

    def __repr__(self):
        return 'UniformColorDistribution()'

def estimateColorDistributions(image, labelImage, minSdev = 0.01):
    """
    Gaussian color model per label from the pixels where it is the most probable one, uniform for labels without any such pixel
    """
    labels = np.argmax(labelImage, axis = -1)

    colorDistributions = []
    for label in range(labelImage.shape[-1]):
        colors = image[labels == label]
        if colors.shape[0] == 0:
            logger.warning('label %d has no pixels, using a uniform color model', label)
            colorDistributions.append(UniformColorDistribution())
        else:
            colorDistributions.append(GaussianColorDistribution.fromColors(colors, minSdev))

    return colorDistributions

def localMessages(image, colorDistributions):
    """
    Normalized color likelihood of each label at each pixel, computed in the log domain
    """
    logLikelihood = np.stack([dist.evaluateLog(image) for dist in colorDistributions], axis = -1)
    return np.exp(normalizeLogDistributions(logLikelihood))

def outgoingMessages(messages, local, binary, index, direction):
    """
    Messages sent in ``direction`` from the pixels selected by ``index``

    The product of the local message and all incoming messages except the one from the receiving neighbour is marginalized against the pairwise compatibility.
    """
    incoming = messages[index]
    product = local[index]
    for d in DIRECTIONS:
        if d != direction:
            product = normalizeDistributions(product * incoming[:, d])

    return normalizeDistributions(np.einsum('nlk,nk->nl', binary[index], product))

def messagePass(messages, local, binary, direction):
    """
    One directional pass, updating ``messages`` in place

    Sequential along the direction of propagation, as each message depends on the one just sent into the pixel. All rows (or columns) are updated together, and every step writes a single column (or row) of the field.
    """
    height, width = local.shape[:2]
    allRows = slice(None)

    if direction == RIGHT:
        for x in range(width - 1):
            messages[:, x + 1, LEFT] = outgoingMessages(messages, local, binary, (allRows, x), RIGHT)
    elif direction == LEFT:
        for x in range(width - 1, 0, -1):
            messages[:, x - 1, RIGHT] = outgoingMessages(messages, local, binary, (allRows, x), LEFT)
    elif direction == DOWN:
        for y in range(height - 1):
            messages[y + 1, :, UP] = outgoingMessages(messages, local, binary, (y, allRows), DOWN)
    elif direction == UP:
        for y in range(height - 1, 0, -1):
            messages[y - 1, :, DOWN] = outgoingMessages(messages, local, binary, (y, allRows), UP)
    else:
        raise ValueError('unknown direction %r' % direction)

def loopyBeliefPropagationPass(messages, local, binary):
    # The order matters, each pass reads the messages of the previous ones
    for direction in DIRECTIONS:
        messagePass(messages, local, binary, direction)

def calculateBelief(messages, local, priorMessages = None):
    """
    Normalized product of the local message and all incoming messages at each pixel
    """
    belief = local
    for d in DIRECTIONS:
        belief = normalizeDistributions(belief * messages[..., d, :])
    if priorMessages is not None:
        belief = normalizeDistributions(belief * priorMessages)
    return belief

def priorMessagePass(messages, local, regionPrior):
    """
    Exchange messages between the pixels and the region types

    Args:
        messages (ndarray): incoming lateral messages, (height, width, 4, numLabels)
        local (ndarray): local messages, (height, width, numLabels)
        regionPrior (ndarray): label distribution of each region type at each pixel, (numRegions, height, width, numLabels)

    Returns:
        tuple: the messages from the region types to the pixels, (height, width, numLabels), and the normalized log product of the evidence for each region type, (numRegions,)
    """
    # Everything the pixel knows about its label
    allMessages = calculateBelief(messages, local)

    # Evidence for each region type at each pixel
    incoming = normalizeDistributions(np.einsum('hwz,chwz->hwc', allMessages, regionPrior))
    logIncoming = np.log(np.maximum(incoming, np.finfo(float).tiny))

    # Product over all pixels in the log domain, the own contribution is divided out again below
    allRegionProduct = normalizeLogDistributions(logIncoming.sum(axis = (0, 1)))

    leaveOneOut = np.exp(normalizeLogDistributions(allRegionProduct - logIncoming))
    outgoing = normalizeDistributions(np.einsum('hwc,chwz->hwz', leaveOneOut, regionPrior))

    return outgoing, allRegionProduct

def binaryField(binaryDistribution, pEqual, numLabels, height, width):
    """
    Pairwise compatibility at each pixel as a (height, width, numLabels, numLabels) array view
    """
    if binaryDistribution is None:
        binaryDistribution = binDistribution(pEqual, numLabels)
    binaryDistribution = np.asarray(binaryDistribution, dtype = float)

    if binaryDistribution.shape not in ((numLabels, numLabels), (height, width, numLabels, numLabels)):
        raise ValueError('binary distribution must have shape (%d, %d) or (%d, %d, %d, %d), got %s' % (numLabels, numLabels, height, width, numLabels, numLabels, binaryDistribution.shape))

    return np.broadcast_to(binaryDistribution, (height, width, numLabels, numLabels))

def checkImage(image):
    image = np.asarray(image, dtype = float)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError('expected an RGB image of shape (height, width, 3), got %s' % (image.shape,))
    return image

def initialSegmentation(labelInit, numLabels, shape, eps):
    """
    Smoothed label distributions of the initial labels; unknown pixels, marked by -1, start with the last label
    """
    if numLabels < 2:
        raise ValueError('need at least 2 labels, got %d' % numLabels)

    labelInit = np.asarray(labelInit)
    if labelInit.shape != shape:
        raise ValueError('initial labels of shape %s do not match image of shape %s' % (labelInit.shape, shape))
    if not np.issubdtype(labelInit.dtype, np.integer):
        if not np.all(labelInit == np.round(labelInit)):
            raise ValueError('initial labels must be integers, got %s' % labelInit[labelInit != np.round(labelInit)].ravel()[0])
        labelInit = labelInit.astype(np.int64)
    if labelInit.size and (labelInit.min() < -1 or labelInit.max() >= numLabels):
        raise ValueError('initial labels must lie in [0, %d) or be -1 for unknown, got range [%d, %d]' % (numLabels, labelInit.min(), labelInit.max()))
    if not 0 < numLabels * eps < 1:
        raise ValueError('smoothing eps = %s is invalid for %d labels' % (eps, numLabels))

    labels = np.where(labelInit < 0, numLabels - 1, labelInit)
    segmentation = np.full(shape + (numLabels,), eps)
    np.put_along_axis(segmentation, labels[..., np.newaxis], 1 - numLabels * eps, axis = -1)
    return segmentation

def runSegmentation(image, labelInit, numLabels, numIterations, binaryDistribution, pEqual, regionPrior, eps, minSdev, onIterationComplete):
    image = checkImage(image)
    height, width = image.shape[:2]
    binary = binaryField(binaryDistribution, pEqual, numLabels, height, width)

    if regionPrior is not None:
        regionPrior = np.asarray(regionPrior, dtype = float)
        if regionPrior.ndim != 4 or regionPrior.shape[1:] != (height, width, numLabels):
            raise ValueError('region prior must have shape (numRegions, %d, %d, %d), got %s' % (height, width, numLabels, regionPrior.shape))

    # Color models of the initial labels
    belief = initialSegmentation(labelInit, numLabels, (height, width), eps)
    colorDistributions = estimateColorDistributions(image, belief, minSdev)

    # Message field, never handed out
    messages = np.full((height, width, len(DIRECTIONS), numLabels), 1 / numLabels)
    priorMessages = None
    regionProduct = None

    for i in range(numIterations):
        local = localMessages(image, colorDistributions)
        loopyBeliefPropagationPass(messages, local, binary)

        if regionPrior is not None:
            priorMessages, regionProduct = priorMessagePass(messages, local, regionPrior)

        belief = calculateBelief(messages, local, priorMessages)
        colorDistributions = estimateColorDistributions(image, belief, minSdev)

        logger.debug('iteration %d of %d, label fractions %s', i + 1, numIterations, np.bincount(belief.argmax(axis = -1).ravel(), minlength = numLabels) / belief[..., 0].size)

        if onIterationComplete is not None:
            onIterationComplete(i, belief)

    # Without any iteration the belief is the one of the initial color models
    if numIterations == 0:
        local = localMessages(image, colorDistributions)
        belief = calculateBelief(messages, local)
        if regionPrior is not None:
            regionProduct = normalizeLogDistributions(np.zeros(regionPrior.shape[0]))

    return belief, regionProduct

def segmentImage(image, labelInit, numLabels, numIterations, binaryDistribution = None, pEqual = 0.9, eps = 0.01, minSdev = 0.01, onIterationComplete = None):
    """
    Segment an image into numLabels regions with per-label Gaussian color models

    Args:
        image (ndarray): RGB image, (height, width, 3)
        labelInit (ndarray): initial label of each pixel, -1 where unknown, (height, width)
        numLabels (int): number of labels
        numIterations (int): number of message passing iterations
        binaryDistribution (ndarray): pairwise compatibility, (numLabels, numLabels) or per pixel (height, width, numLabels, numLabels); defaults to ``binDistribution(pEqual, numLabels)``
        pEqual (float): probability of equal neighbouring labels for the default compatibility
        eps (float): smoothing of the initial labels
        minSdev (float): lower bound of the color model standard deviations
        onIterationComplete (callable): called with the iteration index and the current belief after each iteration

    Returns:
        ndarray: final label distribution of each pixel, (height, width, numLabels)
    """
    belief, _ = runSegmentation(image, labelInit, numLabels, numIterations, binaryDistribution, pEqual, None, eps, minSdev, onIterationComplete)
    return belief

def segmentImageWithPrior(image, labelInit, regionPrior, numLabels, numIterations, binaryDistribution = None, pEqual = 0.9, eps = 0.01, minSdev = 0.01, onIterationComplete = None):
    """
    Like ``segmentImage``, with additional region types, each with a spatial prior over the labels

    Args:
        regionPrior (ndarray): label distribution of each region type at each pixel, (numRegions, height, width, numLabels)

    Returns:
        tuple: label distribution of each pixel, (height, width, numLabels), and the distribution over the region types, (numRegions,)
    """
    belief, regionProduct = runSegmentation(image, labelInit, numLabels, numIterations, binaryDistribution, pEqual, regionPrior, eps, minSdev, onIterationComplete)
    return belief, np.exp(regionProduct)

def segmentImageFromProb(bgProb, fgProb, numIterations, binaryDistribution = None, pEqual = 0.9, onIterationComplete = None):
    """
    Background/foreground segmentation with fixed local messages given by per-pixel probabilities

    Args:
        bgProb (ndarray): background probability, (height, width)
        fgProb (ndarray): foreground probability, (height, width)

    Returns:
        ndarray: label distribution of each pixel, label 0 for background and 1 for foreground, (height, width, 2)
    """
    bgProb = np.asarray(bgProb, dtype = float)
    fgProb = np.asarray(fgProb, dtype = float)
    if bgProb.shape != fgProb.shape or bgProb.ndim != 2:
        raise ValueError('background and foreground probabilities must be images of equal shape, got %s and %s' % (bgProb.shape, fgProb.shape))

    height, width = bgProb.shape
    binary = binaryField(binaryDistribution, pEqual, 2, height, width)

    local = normalizeDistributions(np.stack([bgProb, fgProb], axis = -1))
    messages = np.full((height, width, len(DIRECTIONS), 2), 0.5)

    belief = calculateBelief(messages, local)
    for i in range(numIterations):
        loopyBeliefPropagationPass(messages, local, binary)
        belief = calculateBelief(messages, local)

        if onIterationComplete is not None:
            onIterationComplete(i, belief)

    return belief

# Visualization of label images

def visRGBSegImage(labelImage):
    """
    Label probabilities as color channels: red and green for 2 labels, RGB for the first 3 labels otherwise
    """
    image = np.zeros(labelImage.shape[:2] + (3,))
    numChannels = min(labelImage.shape[-1], 3)
    image[..., :numChannels] = labelImage[..., :numChannels]
    return image

LABEL_COLORS = np.array([[1, 1, 1], [0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]], dtype = float)

def colorMapImage(labelImage):
    """
    Most probable label as color: white, black, red, green, and blue for all further labels
    """
    labels = np.minimum(np.argmax(labelImage, axis = -1), LABEL_COLORS.shape[0] - 1)
    return LABEL_COLORS[labels]

def visSampleImage(labelImage, colorDistributions, rng = None):
    """
    A color sampled at each pixel from the color model of its most probable label
    """
    if rng is None:
        rng = np.random.default_rng()

    labels = np.argmax(labelImage, axis = -1)
    image = np.zeros(labels.shape + (3,))
    for label, dist in enumerate(colorDistributions):
        sel = labels == label
        image[sel] = dist.sample(rng, int(sel.sum()))

    return np.clip(image, 0, 1)
