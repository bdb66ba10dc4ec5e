"""
Prediction diagnostics for fitted dynamics models
"""
from typing import Dict, Optional
import numpy as np
import matplotlib.pyplot as plt


def predict_batch(model, X: np.ndarray):
    """Query a fitted model row by row; returns (means [N, pred_dim], vars [N, pred_dim])."""
    means, variances = [], []
    for x in np.atleast_2d(X):
        if hasattr(model, 'predictm'):
            m, v = model.predictm(x)
        else:
            m, v = model.predict(x)
        means.append(np.asarray(m, dtype=float))
        variances.append(np.broadcast_to(np.asarray(v, dtype=float), np.shape(m)))
    return np.array(means), np.array(variances)


def rolling_metric(y_true, y_pred, window=20, metric="mse"):
    y_true, y_pred = np.asarray(y_true), np.asarray(y_pred)
    T = y_true.shape[0]
    out = np.zeros(T)
    for t in range(T):
        s = max(0, t - window + 1)
        yt = y_true[s:t+1]
        yp = y_pred[s:t+1]
        if metric == "mse":
            err = np.mean((yp - yt) ** 2)
        else:
            err = np.mean(np.abs(yp - yt))
        out[t] = err
    return out


def prediction_errors(model, X: np.ndarray, Y: np.ndarray) -> Dict[str, np.ndarray]:
    """MSE/MAE per output dimension plus the mean predicted variance."""
    means, variances = predict_batch(model, X)
    Y = np.atleast_2d(np.asarray(Y, dtype=float))
    return {
        'mse': np.mean((means - Y) ** 2, axis=0),
        'mae': np.mean(np.abs(means - Y), axis=0),
        'mean_var': np.mean(variances, axis=0),
    }


def plot_predictions(model, X: np.ndarray, Y: np.ndarray, dim: int = 0,
                     save_path: Optional[str] = None, title: Optional[str] = None):
    """Plot truth vs predicted mean (±1 std) for one output dimension."""
    means, variances = predict_batch(model, X)
    Y = np.atleast_2d(np.asarray(Y, dtype=float))
    t = np.arange(Y.shape[0])
    std = np.sqrt(variances[:, dim])

    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(t, Y[:, dim], label="True outcome", color="black")
    ax.plot(t, means[:, dim], label="Mean", color="blue")
    ax.fill_between(t, means[:, dim] - std, means[:, dim] + std,
                    color="blue", alpha=0.2, label="±1 std")
    ax.set_title(title or f"Predictions (dim {dim})")
    ax.legend()
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return fig
