import numpy as np
from tqdm import tqdm

from qcbm.core.Adam import Adam, optimizerOptions
from qcbm.core.Gradient import gradient
from qcbm.core.MMD import MMD, asDistribution
from qcbm.utils.utils import klDivergence


class QCBMTrainer:
    """Fits a QCBM to `prior` with parameter-shift gradients and Adam.

    `optimizer` holds the Adam options (lr, gclip, beta1, beta2, eps). The loss
    stored for iteration i is the one of the parameters before the i-th update.
    """

    def __init__(self, qcbm, prior, n_iterations=100, sigma=0.25, optimizer=None, seed=None,
                 log_freq=10, verbose=True):
        self.qcbm = qcbm
        self.prior = asDistribution(prior, 1 << qcbm.n_qubits)
        self.mmd = MMD(qcbm.n_qubits, sigma)
        self.optimizer_config = optimizerOptions(optimizer or {})
        self.optimizer = None
        self.n_iterations = n_iterations
        self.rng = np.random.default_rng(seed)
        self.log_freq = log_freq
        self.verbose = verbose
        self.history = []
        self.divs = []

    def initialize(self):
        params = 2 * np.pi * self.rng.random(self.qcbm.n_parameters)
        self.qcbm.dispatch(params)
        self.optimizer = Adam(self.qcbm.n_parameters, **self.optimizer_config)

    def step(self):
        grad = gradient(self.qcbm, self.mmd, self.prior)
        loss, qcbm_probs = self.qcbm.mmd_loss(self.mmd, self.prior)
        self.history.append(loss.item())
        self.divs.append(klDivergence(self.prior, qcbm_probs))

        params = self.qcbm.parameters()
        params = self.optimizer.update(params, grad)
        self.qcbm.dispatch(params)
        return loss.item()

    def train(self):
        self.history = []
        self.divs = []
        if self.n_iterations == 0:
            return []
        self.initialize()
        for i in tqdm(range(self.n_iterations), disable=not self.verbose):
            loss = self.step()
            if self.verbose and i % self.log_freq == 0:
                print(f"Step: {i} Loss: {loss:.4f} KL-div: {self.divs[-1]:.4f}")
        return list(self.history)


def train(qcbm, prior, optimizer=None, niter=50, sigma=0.25, seed=None, verbose=False):
    trainer = QCBMTrainer(qcbm, prior, n_iterations=niter, sigma=sigma, optimizer=optimizer,
                          seed=seed, verbose=verbose)
    return trainer.train()
