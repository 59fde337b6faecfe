from __future__ import annotations

import numpy as np

from ..sensors.imu_base import CalibratedSample


def remap_vec3(v: np.ndarray, axis_map: np.ndarray, axis_sign: np.ndarray) -> np.ndarray:
    """
    v: (3,) in device axis order (pitch/x, yaw/y, roll/z)
    axis_map: e.g. [0,1,2] keeps the order ; [0,2,1] swaps y/z
    axis_sign: e.g. [1,1,-1] flips z

    returns: (3,) in filter axis order
    """
    vv = np.asarray(v, dtype=float).reshape(3)
    am = np.asarray(axis_map, dtype=int).reshape(3)
    sg = np.asarray(axis_sign, dtype=int).reshape(3)
    return vv[am] * sg


def is_identity_mapping(axis_map: np.ndarray, axis_sign: np.ndarray) -> bool:
    return (np.asarray(axis_map).reshape(3).tolist() == [0, 1, 2]
            and np.asarray(axis_sign).reshape(3).tolist() == [1, 1, 1])


def remap_sample(sample: CalibratedSample, axis_map: np.ndarray, axis_sign: np.ndarray) -> CalibratedSample:
    # gyro and accel share one body frame, so both get the same mapping
    if is_identity_mapping(axis_map, axis_sign):
        return sample
    return CalibratedSample.from_vectors(
        remap_vec3(sample.gyro_dps(), axis_map, axis_sign),
        remap_vec3(sample.accel_g(), axis_map, axis_sign),
    )
