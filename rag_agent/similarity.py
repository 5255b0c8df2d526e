"""벡터 유사도 계산."""

import numpy as np


def cosine_similarity(a, b) -> float:
    """두 벡터의 코사인 유사도.

    어느 한쪽이라도 norm 이 0 이면 NaN 대신 0.0 을 반환한다.

    Raises:
        ValueError: 두 벡터의 차원이 다른 경우. 호출 측 버그이므로 보정하지 않는다.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError(f"Vectors must have the same length ({va.size} != {vb.size})")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def random_vector(dim: int, rng: np.random.Generator | None = None) -> list[float]:
    """각 성분이 [-0.5, 0.5) 에서 독립적으로 뽑힌 벡터."""
    rng = rng or np.random.default_rng()
    return (rng.random(dim) - 0.5).tolist()
