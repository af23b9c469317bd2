import json

import numpy as np
import torch


##############################################
def gaussianPdf(n, mu, sigma) -> np.ndarray:
    # discretized gaussian over x = 1 .. 2**n, normalized to sum to 1
    x = np.arange(1, (1 << n) + 1)
    pl = 1 / np.sqrt(2 * np.pi * sigma**2) * np.exp(-(x - mu) ** 2 / (2 * sigma**2))
    return pl / pl.sum()


##############################################
def klDivergence(prior, probs, eps=1e-10) -> float:
    prior = torch.as_tensor(prior, dtype=torch.float64)
    probs = torch.as_tensor(probs, dtype=torch.float64)
    safe_probs = probs + eps
    safe_prior = prior + eps
    return -torch.sum(prior * torch.log(safe_probs / safe_prior)).item()


#################################################
def loadConfig(fpath):
    with open(fpath, "r") as f:
        config = json.load(f)
    return config
