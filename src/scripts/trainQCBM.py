import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import numpy as np

from qcbm.core.QCBM import QCBM
from qcbm.core.QCBMTrainer import QCBMTrainer
from qcbm.utils.utils import gaussianPdf, loadConfig

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))


if __name__ == "__main__":
    fname = "qcbm"
    if len(sys.argv) >= 2:
        fname = sys.argv[-1]
    config = loadConfig(os.path.join(ROOT, "config", f"{fname}.json"))

    n_qubits = config["nQubits"]
    prior = gaussianPdf(n_qubits, config["target"]["mu"], config["target"]["sigma"])
    qcbm = QCBM(n_qubits, config["nLayers"], config["pairs"], strategy=config.get("strategy", "roll"))
    print(f"Training QCBM with {qcbm.n_parameters} parameters on {n_qubits} qubits")

    trainer = QCBMTrainer(qcbm, prior, n_iterations=config["iterations"], sigma=config["sigma"],
                          optimizer=config["optimizer"], seed=config.get("seed"),
                          log_freq=config.get("logFreq", 10))
    history = trainer.train()

    results_dir = os.path.join(ROOT, config["resultsDir"])
    os.makedirs(results_dir, exist_ok=True)
    np.save(os.path.join(results_dir, "QCBM_weights.npy"), qcbm.parameters().numpy())
    np.save(os.path.join(results_dir, "QCBM_history.npy"), np.array(history))
    np.save(os.path.join(results_dir, "QCBM_probs.npy"), qcbm.probs().numpy())
    print(f"Final loss: {history[-1]:.6f}" if history else "No iterations run")
    print(f"Results saved to {results_dir}")
