"""Turn motion primitives into streams of control set points."""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from drumbot.common import (
    ControlMode,
    ControlQueue,
    ControlSetPoint,
    MotionPrimitive,
    MotionType,
    TrajectoryProfile,
    TrajectorySpace,
)
from drumbot.kinematics import (
    DEFAULT_CONFIG_PATH,
    NUM_ARM_JOINTS,
    KinematicsError,
    KinematicsSolver,
    PathLike,
)
from drumbot.logger import Logger

_log = logging.getLogger(__name__)

DEFAULT_DT = 0.005          # 5 ms between set points
IDLE_DURATION = 1.0         # seconds of holding still per idle motion
NUM_JOINTS = 13

Sample = Tuple[List[float], List[float]]
Sampler = Callable[[Sequence[float], Sequence[float], int, int, float], Sample]


def _blend(
    q0: Sequence[float], q1: Sequence[float], s_pos: float, s_vel: float, t_total: float
) -> Sample:
    q: List[float] = []
    qd: List[float] = []
    for a, b in zip(q0, q1, strict=True):
        delta = b - a
        q.append(a + s_pos * delta)
        qd.append((s_vel / t_total) * delta)
    return q, qd


def sample_trapezoidal(
    q0: Sequence[float], q1: Sequence[float], n: int, k: int, dt: float = DEFAULT_DT
) -> Sample:
    """Trapezoidal velocity: accelerate for 1/4, cruise for 1/2, decelerate for 1/4."""
    s = k / n
    t_total = n * dt
    t_acc = 0.25
    v_max = 4.0 / 3.0

    if s < t_acc:
        s_pos = 0.5 * v_max * s * s / t_acc
        s_vel = v_max * s / t_acc
    elif s < 1.0 - t_acc:
        s_pos = 0.5 * v_max * t_acc + v_max * (s - t_acc)
        s_vel = v_max
    else:
        tau = 1.0 - s
        s_pos = 1.0 - 0.5 * v_max * tau * tau / t_acc
        s_vel = v_max * tau / t_acc
    s_pos = min(max(s_pos, 0.0), 1.0)
    return _blend(q0, q1, s_pos, s_vel, t_total)


def sample_cubic(
    q0: Sequence[float], q1: Sequence[float], n: int, k: int, dt: float = DEFAULT_DT
) -> Sample:
    """Cubic polynomial with zero velocity at both ends."""
    s = k / n
    s_pos = 3.0 * s * s - 2.0 * s * s * s
    s_vel = 6.0 * s * (1.0 - s)
    return _blend(q0, q1, s_pos, s_vel, n * dt)


def sample_quintic(
    q0: Sequence[float], q1: Sequence[float], n: int, k: int, dt: float = DEFAULT_DT
) -> Sample:
    """Quintic polynomial with zero velocity and acceleration at both ends."""
    s = k / n
    s2 = s * s
    s3 = s2 * s
    s4 = s3 * s
    s5 = s4 * s
    s_pos = 10.0 * s3 - 15.0 * s4 + 6.0 * s5
    s_vel = 30.0 * s2 - 60.0 * s3 + 30.0 * s4
    return _blend(q0, q1, s_pos, s_vel, n * dt)


def sample_cosine(
    q0: Sequence[float], q1: Sequence[float], n: int, k: int, dt: float = DEFAULT_DT
) -> Sample:
    """Cosine blend ``(1 - cos(pi s)) / 2`` with zero velocity at both ends."""
    s = k / n
    s_pos = 0.5 * (1.0 - math.cos(math.pi * s))
    s_vel = 0.5 * math.pi * math.sin(math.pi * s)
    return _blend(q0, q1, s_pos, s_vel, n * dt)


_SAMPLERS: Dict[TrajectoryProfile, Sampler] = {
    TrajectoryProfile.TRAPEZOIDAL: sample_trapezoidal,
    TrajectoryProfile.CUBIC: sample_cubic,
    TrajectoryProfile.QUINTIC: sample_quintic,
    TrajectoryProfile.COSINE: sample_cosine,
}


def sample(
    q0: Sequence[float],
    q1: Sequence[float],
    n: int,
    k: int,
    profile: TrajectoryProfile,
    dt: float = DEFAULT_DT,
) -> Sample:
    """Position and velocity at step ``k`` of ``n`` from ``q0`` to ``q1``."""
    return _SAMPLERS[profile](q0, q1, n, k, dt)


def _modes(tmotor: ControlMode, wrist: ControlMode, pedal: ControlMode) -> List[ControlMode]:
    return [tmotor] * 7 + [wrist] * 2 + [pedal] * 2 + [ControlMode.NONE] * 2


def default_modes() -> List[ControlMode]:
    """Control modes of the 13 joints: arms, wrists, pedals, head."""
    return _modes(ControlMode.VEL, ControlMode.CST, ControlMode.CSP)


class TrajectoryGenerator:
    """Sample motions into set points and push them onto the control queue."""

    def __init__(
        self,
        control_queue: ControlQueue,
        solver: Optional[KinematicsSolver] = None,
        *,
        dt: float = DEFAULT_DT,
        config_path: PathLike = DEFAULT_CONFIG_PATH,
        logger: Optional[Logger] = None,
    ) -> None:
        self.control_queue = control_queue
        self.solver = solver
        self.dt = dt
        self._config_path = config_path

        self.tmotor_control_mode = ControlMode.VEL
        self.wrist_control_mode = ControlMode.CST
        self.pedal_control_mode = ControlMode.CSP

        self.last_q: List[float] = []
        self.last_qd: List[float] = []
        self.last_p_r: Optional[Tuple[float, float, float]] = None
        self.last_p_l: Optional[Tuple[float, float, float]] = None

        self._log = logger if logger is not None else Logger("trajectory")
        self._log.set_header(f"joint {i}" for i in range(NUM_JOINTS))

    def initialize(self, init_pose: Sequence[float]) -> None:
        """Load kinematics if needed and start from ``init_pose``."""
        self._ensure_solver()
        self._update_last_q(init_pose)

    def generate_trajectory(self, motion: MotionPrimitive) -> None:
        """Push the set points of ``motion`` onto the control queue."""
        if motion.type is MotionType.TRANSLATE:
            if motion.space is TrajectorySpace.JOINT:
                self._joint_space(motion)
            elif motion.space is TrajectorySpace.TASK:
                self._task_space(motion)
            else:
                raise ValueError(f"unknown trajectory space: {motion.space}")
        elif motion.type is MotionType.IDLE:
            self._idle()
        else:
            raise ValueError(f"unknown motion type: {motion.type}")

    # ----- internals -----

    def _ensure_solver(self) -> KinematicsSolver:
        if self.solver is None:
            try:
                self.solver = KinematicsSolver.from_config(self._config_path)
            except (OSError, ValueError, KeyError) as exc:
                _log.error("failed to load kinematics config %s: %s", self._config_path, exc)
                self.solver = KinematicsSolver()
        return self.solver

    def _current_modes(self) -> List[ControlMode]:
        return _modes(self.tmotor_control_mode, self.wrist_control_mode, self.pedal_control_mode)

    def _push(self, point: ControlSetPoint) -> None:
        self.control_queue.push(point)
        self._log.record(point.q)

    def _joint_space(self, motion: MotionPrimitive) -> None:
        modes = self._current_modes()
        n = int(motion.t_total / self.dt)
        q0 = list(self.last_q)
        q1 = list(motion.q_target)
        for k in range(1, n + 1):
            q, qd = sample(q0, q1, n, k, motion.profile, self.dt)
            self._push(ControlSetPoint(q, qd, list(modes)))
        self._update_last_q(q1)

    def _task_space(self, motion: MotionPrimitive) -> None:
        if self.last_p_r is None or self.last_p_l is None:
            raise KinematicsError("current stick positions are unknown")
        solver = self._ensure_solver()
        modes = self._current_modes()
        n = int(motion.t_total / self.dt)
        q0 = list(self.last_q)
        q1 = list(motion.q_target)
        p0 = [*self.last_p_r, *self.last_p_l]
        p1 = [*motion.p_target_r[:3], *motion.p_target_l[:3]]

        prev_arm: Sequence[float] = q0
        for k in range(1, n + 1):
            q, qd = sample(q0, q1, n, k, motion.profile, self.dt)
            p, _ = sample(p0, p1, n, k, motion.profile, self.dt)
            arm = solver.ik_solve(p[:3], p[3:], q[0], q[7], q[8])
            point_q = arm + q[NUM_ARM_JOINTS:]
            point_qd = [
                (a - b) / self.dt for a, b in zip(arm, prev_arm[:NUM_ARM_JOINTS])
            ] + qd[NUM_ARM_JOINTS:]
            self._push(ControlSetPoint(point_q, point_qd, list(modes)))
            prev_arm = arm

        self._update_last_p(p1, q1)

    def _idle(self) -> None:
        modes = self._current_modes()
        n = int(IDLE_DURATION / self.dt)
        q0 = list(self.last_q)
        q1 = list(self.last_q)
        for k in range(1, n + 1):
            q, qd = sample_cosine(q0, q1, n, k, self.dt)
            self._push(ControlSetPoint(q, qd, list(modes)))
        self._update_last_q(q1)

    def _update_last_q(self, q: Sequence[float]) -> None:
        self.last_q = list(q)
        self.last_qd = [0.0] * len(q)
        try:
            p_r, p_l = self._ensure_solver().fk_solve(self.last_q)
        except KinematicsError as exc:
            _log.error("forward kinematics failed: %s", exc)
            return
        self.last_p_r, self.last_p_l = p_r, p_l

    def _update_last_p(self, p: Sequence[float], q: Sequence[float]) -> None:
        try:
            arm = self._ensure_solver().ik_solve(p[:3], p[3:6], q[0], q[7], q[8])
        except KinematicsError as exc:
            _log.error("inverse kinematics failed: %s", exc)
            return
        self.last_q = arm + list(q[NUM_ARM_JOINTS:])
        self.last_qd = [0.0] * len(self.last_q)
        self.last_p_r = (p[0], p[1], p[2])
        self.last_p_l = (p[3], p[4], p[5])