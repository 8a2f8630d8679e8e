from __future__ import annotations

import math

from pygame.math import Vector3


def _safe_normalize(vector: Vector3) -> Vector3:
    magnitude_sq = vector.length_squared()
    if magnitude_sq < 1e-18:
        return Vector3()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector3(vector.x * inv, vector.y * inv, vector.z * inv)


def _clamp_length(vector: Vector3, max_length: float) -> Vector3:
    if max_length <= 0:
        return Vector3()
    magnitude_sq = vector.length_squared()
    if magnitude_sq <= max_length * max_length:
        return Vector3(vector)
    inv = max_length / math.sqrt(magnitude_sq)
    return Vector3(vector.x * inv, vector.y * inv, vector.z * inv)


def _flatten(vector: Vector3) -> Vector3:
    return Vector3(vector.x, 0.0, vector.z)


def _planar_distance(a: Vector3, b: Vector3) -> float:
    return math.hypot(a.x - b.x, a.z - b.z)


def _heading_from_velocity(vector: Vector3, previous: float = 0.0) -> float:
    if vector.length_squared() <= 0.0:
        return previous
    return math.atan2(vector.x, vector.z)


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def _as_tuple(vector: Vector3) -> tuple[float, float, float]:
    return (float(vector.x), float(vector.y), float(vector.z))
