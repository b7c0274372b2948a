"""Gaussian mixture models as stored by cv2.grabCut."""

from dataclasses import dataclass

import numpy as np

# cv2.grabCut always uses 5 components of 13 doubles each
# (1 weight, 3 mean, 9 covariance), packed as weights | means | covariances.
GMM_COMPONENTS = 5
MODEL_SIZE = GMM_COMPONENTS * 13

_SINGULAR_EPSILON = np.finfo(np.float64).eps
_COV_REGULARIZATION = 0.01


def empty_model() -> np.ndarray:
    """Zeroed model array in the layout cv2.grabCut expects."""
    return np.zeros((1, MODEL_SIZE), dtype=np.float64)


@dataclass
class GaussianMixture:
    """
    A color GMM unpacked from a cv2.grabCut model array.

    Means and covariances are in the units of the image handed to
    OpenCV (0-255 per channel).
    """
    weights: np.ndarray  # (K,)
    means: np.ndarray    # (K, 3)
    covs: np.ndarray     # (K, 3, 3)

    @classmethod
    def from_model(cls, model: np.ndarray) -> 'GaussianMixture':
        flat = np.asarray(model, dtype=np.float64).ravel()
        if flat.size != MODEL_SIZE:
            raise ValueError(f"Expected a model of {MODEL_SIZE} values, got {flat.size}")
        k = GMM_COMPONENTS
        return cls(
            weights=flat[:k].copy(),
            means=flat[k:4 * k].reshape(k, 3).copy(),
            covs=flat[4 * k:].reshape(k, 3, 3).copy(),
        )

    @property
    def is_empty(self) -> bool:
        return not np.any(self.weights > 0)

    def component_log_likelihoods(self, samples: np.ndarray) -> np.ndarray:
        """
        log(weight_k * N(x | mean_k, cov_k)) for every sample and component.

        The (2 pi)^-3/2 factor is dropped, as OpenCV does.

        Args:
            samples: (N, 3) colors

        Returns:
            (N, K) array; components with zero weight are -inf
        """
        samples = np.asarray(samples, dtype=np.float64).reshape(-1, 3)
        out = np.full((samples.shape[0], GMM_COMPONENTS), -np.inf)

        for k in range(GMM_COMPONENTS):
            weight = self.weights[k]
            if weight <= 0:
                continue
            cov = self.covs[k]
            det = np.linalg.det(cov)
            if det <= _SINGULAR_EPSILON:
                cov = cov + np.eye(3) * _COV_REGULARIZATION
                det = np.linalg.det(cov)
            inv = np.linalg.inv(cov)
            diff = samples - self.means[k]
            mahalanobis = np.einsum("ni,ij,nj->n", diff, inv, diff)
            out[:, k] = np.log(weight) - 0.5 * np.log(det) - 0.5 * mahalanobis

        return out

    def log_likelihood(self, samples: np.ndarray) -> np.ndarray:
        """log p(x) of the whole mixture, shape (N,)."""
        return np.logaddexp.reduce(self.component_log_likelihoods(samples), axis=1)

    def assign_components(self, samples: np.ndarray) -> np.ndarray:
        """Index of the most likely component for each sample, shape (N,)."""
        return np.argmax(self.component_log_likelihoods(samples), axis=1)


def data_costs(gmm: GaussianMixture, samples: np.ndarray) -> np.ndarray:
    """
    Negative log-likelihood of each sample under the mixture.

    Infinite costs (sample impossible under every component) are
    replaced by the largest finite cost so the result stays plottable.
    """
    costs = -gmm.log_likelihood(samples)
    finite = np.isfinite(costs)
    if not np.any(finite):
        return np.zeros_like(costs)
    costs[~finite] = costs[finite].max()
    return costs
