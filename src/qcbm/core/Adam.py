import torch

from qcbm.core.Errors import ConfigurationError, ParameterCountMismatchError


OPTIONS = ("lr", "gclip", "beta1", "beta2", "eps")
ALIASES = {"learning_rate": "lr", "gradient_clip_threshold": "gclip"}


def optimizerOptions(config):
    """Adam keyword arguments from a config dict, accepting the long option names too."""
    options = {}
    for key, value in dict(config).items():
        name = ALIASES.get(key, key)
        if name not in OPTIONS:
            raise ConfigurationError(f"unknown optimizer option {key!r}")
        if name in options:
            raise ConfigurationError(f"optimizer option {name!r} given twice")
        options[name] = value
    return options


def clipGradient(grad, gclip):
    if gclip <= 0:
        return grad
    gnorm = torch.linalg.vector_norm(grad)
    if gnorm <= gclip:
        return grad
    return grad * (gclip / gnorm)


class Adam:
    """Adam optimizer.

    Kingma, D. P., & Ba, J. L. (2015). Adam: a Method for Stochastic
    Optimization. International Conference on Learning Representations.

    Moments are allocated up front for `n_params` parameters. `gclip > 0`
    rescales gradients whose norm exceeds it.
    """

    def __init__(self, n_params, lr=0.001, gclip=0.0, beta1=0.9, beta2=0.999, eps=1e-8):
        for name, beta in (("beta1", beta1), ("beta2", beta2)):
            if not 0 <= beta < 1:
                raise ConfigurationError(f"{name} must be in [0, 1), got {beta}")
        self.n_params = n_params
        self.lr = lr
        self.gclip = gclip
        self.beta1 = beta1
        self.beta2 = beta2
        self.eps = eps
        self.t = 0
        self.fstm = torch.zeros(n_params, dtype=torch.float64)
        self.scndm = torch.zeros(n_params, dtype=torch.float64)

    def update(self, params, grad) -> torch.Tensor:
        params = torch.as_tensor(params, dtype=torch.float64)
        grad = torch.as_tensor(grad, dtype=torch.float64)
        for v in (params, grad):
            if v.numel() != self.n_params:
                raise ParameterCountMismatchError(self.n_params, v.numel())

        grad = clipGradient(grad, self.gclip)
        self.t += 1
        self.fstm = self.beta1 * self.fstm + (1 - self.beta1) * grad
        self.scndm = self.beta2 * self.scndm + (1 - self.beta2) * grad * grad
        fstm_corrected = self.fstm / (1 - self.beta1 ** self.t)
        scndm_corrected = self.scndm / (1 - self.beta2 ** self.t)
        return params - self.lr * fstm_corrected / (torch.sqrt(scndm_corrected) + self.eps)
