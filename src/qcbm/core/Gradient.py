import math

import torch

from qcbm.core.Blocks import rotations
from qcbm.core.MMD import asDistribution


def gradient(qcbm, mmd, prior):
    """MMD loss gradient by the parameter-shift rule, indexed like `qcbm.parameters()`.

    Each rotation angle is shifted by +pi/2 and -pi/2 and then set back to its
    exact original value before the next one is touched.
    """
    prior = asDistribution(prior, 1 << qcbm.n_qubits)
    prob = qcbm.probs()
    gates = list(rotations(qcbm.circuit))
    grad = torch.zeros(len(gates), dtype=torch.float64)

    for i, gate in enumerate(gates):
        theta = gate.theta
        try:
            gate.theta = theta + math.pi / 2
            prob_pos = qcbm.probs()
            gate.theta = theta - math.pi / 2
            prob_neg = qcbm.probs()
        finally:
            gate.theta = theta

        grad_pos = mmd.expect(prob, prob_pos) - mmd.expect(prob, prob_neg)
        grad_neg = mmd.expect(prior, prob_pos) - mmd.expect(prior, prob_neg)
        grad[i] = grad_pos - grad_neg

    return grad
