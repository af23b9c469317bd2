import torch

from qcbm.core.Errors import NumericalError, ShapeMismatchError


def asDistribution(p, size=None):
    p = torch.as_tensor(p, dtype=torch.float64)
    if size is not None and p.shape != (size,):
        raise ShapeMismatchError(f"expected a vector of length {size}, got shape {tuple(p.shape)}")
    if not torch.isfinite(p).all():
        raise NumericalError("probability vector contains NaN or Inf")
    return p


class MMD:
    """Squared-exponential kernel over the basis outcomes 0 .. 2**n - 1.

    K[i, j] = exp(-gamma * (i - j)**2) with gamma = 1 / (2 * sigma). Note the
    bandwidth enters linearly, not squared.
    """

    def __init__(self, n_qubits, sigma=0.25, device="cpu"):
        if not sigma > 0:
            raise NumericalError(f"kernel bandwidth must be positive, got {sigma}")
        self.sigma = float(sigma)
        self.n_qubits = n_qubits
        self.dataSpace = torch.arange(1 << n_qubits, dtype=torch.float64, device=device)
        gamma = 1 / (2 * self.sigma)
        distance = torch.abs(self.dataSpace[:, None] - self.dataSpace[None, :]) ** 2
        self._kernel = torch.exp(-gamma * distance)

    @property
    def kernel(self) -> torch.Tensor:
        return self._kernel

    def expect(self, px, py):
        # px, py need not be normalized
        size = self._kernel.shape[0]
        return asDistribution(px, size) @ self._kernel @ asDistribution(py, size)

    def __call__(self, px, py):
        size = self._kernel.shape[0]
        pxy = asDistribution(px, size) - asDistribution(py, size)
        return self.expect(pxy, pxy)


def loss(qcbm, mmd, prior):
    return mmd(qcbm.probs(), prior)
