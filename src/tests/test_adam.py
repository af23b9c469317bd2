import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import unittest

import torch

from qcbm.core.Adam import Adam, clipGradient, optimizerOptions
from qcbm.core.Errors import ConfigurationError, ParameterCountMismatchError


class TestAdam(unittest.TestCase):

    def test_single_step(self):
        optim = Adam(1)
        params = optim.update([0.0], [1.0])
        self.assertEqual(optim.t, 1)
        self.assertAlmostEqual(params[0].item(), -0.001, places=9)

    def test_moments_allocated_up_front(self):
        optim = Adam(3, lr=0.1)
        self.assertTrue(torch.equal(optim.fstm, torch.zeros(3, dtype=torch.float64)))
        self.assertTrue(torch.equal(optim.scndm, torch.zeros(3, dtype=torch.float64)))
        self.assertEqual(optim.t, 0)

    def test_defaults(self):
        optim = Adam(2)
        self.assertEqual((optim.lr, optim.gclip, optim.beta1, optim.beta2, optim.eps),
                         (0.001, 0.0, 0.9, 0.999, 1e-8))

    def test_moment_updates(self):
        optim = Adam(2, lr=0.1)
        optim.update([0.0, 0.0], [2.0, -1.0])
        optim.update([0.0, 0.0], [1.0, 1.0])
        self.assertTrue(torch.allclose(optim.fstm, torch.tensor([0.9 * 0.2 + 0.1, 0.9 * -0.1 + 0.1], dtype=torch.float64)))
        self.assertTrue(torch.allclose(optim.scndm,
                                       torch.tensor([0.999 * 0.004 + 0.001, 0.999 * 0.001 + 0.001], dtype=torch.float64)))
        self.assertEqual(optim.t, 2)

    def test_gradient_clipping(self):
        optim = Adam(2, gclip=1.0)
        grad = torch.tensor([3.0, 4.0], dtype=torch.float64)
        optim.update([0.0, 0.0], grad)
        self.assertTrue(torch.allclose(optim.fstm, torch.tensor([0.06, 0.08], dtype=torch.float64)))
        self.assertTrue(torch.equal(grad, torch.tensor([3.0, 4.0], dtype=torch.float64)))

    def test_clip_leaves_small_gradients(self):
        grad = torch.tensor([0.3, 0.4], dtype=torch.float64)
        self.assertTrue(torch.equal(clipGradient(grad, 1.0), grad))
        self.assertTrue(torch.equal(clipGradient(grad * 10, 0), grad * 10))

    def test_size_mismatch(self):
        optim = Adam(2)
        with self.assertRaises(ParameterCountMismatchError):
            optim.update([0.0, 0.0, 0.0], [1.0, 1.0, 1.0])

    def test_long_option_names(self):
        options = optimizerOptions({"learning_rate": 0.1, "gradient_clip_threshold": 2.0, "beta1": 0.8})
        self.assertEqual(options, {"lr": 0.1, "gclip": 2.0, "beta1": 0.8})
        optim = Adam(1, **options)
        self.assertEqual((optim.lr, optim.gclip), (0.1, 2.0))

    def test_unknown_or_repeated_option(self):
        with self.assertRaises(ConfigurationError):
            optimizerOptions({"momentum": 0.9})
        with self.assertRaises(ConfigurationError):
            optimizerOptions({"lr": 0.1, "learning_rate": 0.2})

    def test_invalid_beta(self):
        with self.assertRaises(ConfigurationError):
            Adam(2, beta1=1.0)


if __name__ == "__main__":
    unittest.main()
