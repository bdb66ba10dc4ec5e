import threading
import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
from typing import Sequence, Tuple, Optional, List

from .base import ScalarRegressor, check_query
from .errors import FitFailure, InvalidInput, NotFitted

_init_lock = threading.Lock()


# 🔹 Simple MLP with Dropout
class MLP(nn.Module):
    def __init__(self, in_dim: int, out_dim: int,
                 hidden: Sequence[int] = (64, 64),
                 dropout: float = 0.1):
        super().__init__()
        layers = []
        last = in_dim
        for h in hidden:
            layers.append(nn.Linear(last, h))
            layers.append(nn.ReLU())
            layers.append(nn.Dropout(dropout))
            last = h
        layers.append(nn.Linear(last, out_dim))
        self.net = nn.Sequential(*layers)

    def forward(self, x):
        return self.net(x)


class DropoutNN(ScalarRegressor):
    """
    Neural-network regressor for one output dimension with MC-dropout.
    - compute() stores the data, optimize_hyperparams() trains the network (MSE, early stopping).
    - query() returns (mean, var) over MC-dropout passes plus the per-sample noise level.
    """

    def __init__(self,
                 in_dim: int,
                 hidden: Sequence[int] = (64, 64),
                 lr: float = 1e-3,
                 dropout: float = 0.1,
                 epochs: int = 200,
                 batch_size: int = 32,
                 patience: int = 20,
                 mc_passes: int = 20,
                 seed: int = 0,
                 device: Optional[str] = None):
        self.in_dim = in_dim
        self.hidden = tuple(hidden)
        self.lr = lr
        self.dropout = dropout
        self.epochs = epochs
        self.batch_size = batch_size
        self.patience = patience
        self.mc_passes = mc_passes
        self.seed = seed
        self.device = torch.device(
            device if device is not None else 'cpu'
        )

        self.model = None
        self.X = np.zeros((0, in_dim), dtype=np.float32)
        self.y = np.zeros(0, dtype=np.float32)
        self.noise = 0.0
        self.final_loss = None

    def samples(self) -> List[np.ndarray]:
        return [row.astype(float) for row in self.X]

    def h_params(self) -> np.ndarray:
        if self.model is None:
            return np.zeros(0)
        return np.concatenate([p.detach().cpu().numpy().ravel() for p in self.model.parameters()])

    def compute(self, samples: Sequence[np.ndarray], observations: Sequence[np.ndarray],
                noises: Optional[np.ndarray] = None) -> None:
        X = np.asarray([np.asarray(s, dtype=float).ravel() for s in samples], dtype=np.float32)
        y = np.asarray([np.asarray(o, dtype=float).ravel()[0] for o in observations], dtype=np.float32)
        if X.ndim != 2 or X.shape[0] == 0 or X.shape[1] != self.in_dim:
            raise InvalidInput(f"expected samples of size {self.in_dim}")
        if y.shape[0] != X.shape[0]:
            raise InvalidInput(f"got {X.shape[0]} samples but {y.shape[0]} observations")
        self.X = X
        self.y = y
        self.noise = float(np.mean(noises)) if noises is not None and len(noises) > 0 else 0.0

        # Model; the global torch RNG is shared between worker threads
        with _init_lock, torch.random.fork_rng(devices=[]):
            torch.manual_seed(self.seed)
            self.model = MLP(self.in_dim, 1, hidden=self.hidden, dropout=self.dropout).to(self.device)
        self._gen = torch.Generator().manual_seed(self.seed)

    def optimize_hyperparams(self) -> None:
        """
        Train on the stored data with early stopping.
        """
        if self.model is None:
            raise NotFitted("compute() must be called before optimize_hyperparams()")

        opt = optim.Adam(self.model.parameters(), lr=self.lr)
        criterion = nn.MSELoss()

        X = torch.from_numpy(self.X).to(self.device)
        Y = torch.from_numpy(self.y).unsqueeze(1).to(self.device)
        n = X.shape[0]
        batch_size = min(self.batch_size, n)

        # Training loop with early stopping
        best_loss = float('inf')
        patience_counter = 0
        self.model.train()
        for epoch in range(self.epochs):
            perm = torch.randperm(n, generator=self._gen)
            epoch_loss = 0.0
            n_batches = 0
            for start in range(0, n, batch_size):
                idx = perm[start:start + batch_size]
                pred = self.model(X[idx])
                loss = criterion(pred, Y[idx])

                opt.zero_grad()
                loss.backward()
                opt.step()
                epoch_loss += loss.item()
                n_batches += 1

            epoch_loss /= n_batches
            if not np.isfinite(epoch_loss):
                raise FitFailure(f"training loss became non-finite at epoch {epoch}")

            if epoch_loss < best_loss - 1e-6:
                best_loss = epoch_loss
                patience_counter = 0
            else:
                patience_counter += 1
                if patience_counter >= self.patience:
                    break

        self.final_loss = best_loss
        self.model.eval()

    def query(self, x: Sequence[float]) -> Tuple[np.ndarray, float]:
        if self.model is None:
            raise NotFitted("network has not been trained")
        inp = check_query(x, self.in_dim).astype(np.float32)
        xt = torch.from_numpy(inp).unsqueeze(0).to(self.device)

        if self.dropout <= 0.0 or self.mc_passes <= 1:
            self.model.eval()
            with torch.no_grad():
                out = self.model(xt).cpu().numpy().ravel()
            return out.astype(float), self.noise + 1e-8

        # Force dropout active
        self.model.train()
        preds = []
        with torch.no_grad():
            for _ in range(self.mc_passes):
                out = self.model(xt)
                preds.append(out.cpu().numpy().ravel())
        self.model.eval()
        preds = np.stack(preds, axis=0)

        mean = preds.mean(axis=0).astype(float)
        var = float(preds.var(axis=0)[0]) + self.noise + 1e-8
        return mean, var
