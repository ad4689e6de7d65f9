"""Forward and inverse kinematics of the two drumming arms."""

from __future__ import annotations

import json
import logging
import math
import os
import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

_log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "drumrobot/config/kinematics.json"
NUM_ARM_JOINTS = 9
ENDPOINT_TOLERANCE = 1e-4  # 0.1 mm

Vec3 = Tuple[float, float, float]
Matrix4 = List[List[float]]
PathLike = Union[str, "os.PathLike[str]"]


class KinematicsError(ValueError):
    """Raised when a kinematics problem has no valid solution."""


@dataclass(frozen=True)
class JointLimit:
    """Allowed range of one joint, in radians."""

    min_angle: float
    max_angle: float

    def contains(self, angle: float) -> bool:
        return self.min_angle <= angle <= self.max_angle


@dataclass(frozen=True)
class LinkLength:
    """Link lengths of the upper body, in metres."""

    waist: float = 0.0      # shoulder spacing
    upper_arm: float = 0.0
    forearm: float = 0.0
    stick: float = 0.0


@dataclass
class VerificationReport:
    """Outcome of an FK/IK round-trip check."""

    total: int
    tolerance_deg: float
    passed: int = 0
    mismatch_same_endpoint: int = 0   # other joint angles, same stick tip: multiple IK solutions
    mismatch_diff_endpoint: int = 0   # stick tip differs: the formulas disagree
    fk_failed: int = 0
    ik_failed: int = 0
    max_endpoint_error: float = 0.0
    worst_q_in: List[float] = field(default_factory=list)
    worst_q_out: List[float] = field(default_factory=list)
    worst_p_r_target: Optional[Vec3] = None
    worst_p_r_actual: Optional[Vec3] = None
    worst_p_l_target: Optional[Vec3] = None
    worst_p_l_actual: Optional[Vec3] = None


def dh_transform(a: float, alpha: float, d: float, theta: float) -> Matrix4:
    """Modified (Craig) Denavit-Hartenberg transform of one link."""
    ca, sa = math.cos(alpha), math.sin(alpha)
    ct, st = math.cos(theta), math.sin(theta)
    return [
        [ct, -st, 0.0, a],
        [st * ca, ct * ca, -sa, -d * sa],
        [st * sa, ct * sa, ca, d * ca],
        [0.0, 0.0, 0.0, 1.0],
    ]


def _matmul(a: Matrix4, b: Matrix4) -> Matrix4:
    columns = list(zip(*b))
    return [[sum(x * y for x, y in zip(row, col)) for col in columns] for row in a]


def _chain_position(table: Sequence[Tuple[float, float, float, float]]) -> Vec3:
    """Multiply the links of a DH table (alpha, a, d, theta) and return the end point."""
    t: Matrix4 = [[1.0 if i == j else 0.0 for j in range(4)] for i in range(4)]
    for alpha, a, d, theta in table:
        t = _matmul(t, dh_transform(a, alpha, d, theta))
    return (t[0][3], t[1][3], t[2][3])


def _angle_error(a: float, b: float) -> float:
    err = math.fmod(abs(a - b), 2.0 * math.pi)
    return 2.0 * math.pi - err if err > math.pi else err


class KinematicsSolver:
    """Kinematics of the waist, two arms and two wrists (joints 0 to 8)."""

    def __init__(
        self,
        link_length: LinkLength = LinkLength(),
        joint_limits: Optional[Mapping[int, JointLimit]] = None,
    ) -> None:
        self.link_length = link_length
        self.joint_limits: Dict[int, JointLimit] = dict(joint_limits or {})

    @classmethod
    def from_config(cls, path: PathLike = DEFAULT_CONFIG_PATH) -> "KinematicsSolver":
        """Load link lengths and joint limits (in degrees) from a JSON file."""
        with open(path, encoding="utf-8") as fh:
            config = json.load(fh)
        limits = {
            int(entry["joint"]): JointLimit(
                math.radians(float(entry["min_angle"])),
                math.radians(float(entry["max_angle"])),
            )
            for entry in config.get("joint_limits", [])
        }
        links = config["link_length"]
        link_length = LinkLength(
            waist=float(links["waist"]),
            upper_arm=float(links["upper_arm"]),
            forearm=float(links["forearm"]),
            stick=float(links["stick"]),
        )
        _log.info(
            "kinematics loaded: waist=%s upper_arm=%s forearm=%s stick=%s",
            link_length.waist, link_length.upper_arm, link_length.forearm, link_length.stick,
        )
        return cls(link_length, limits)

    # ----- helpers -----

    def effective_length(self, theta_wrist: float) -> float:
        """Length of the combined forearm-and-stick link."""
        x = self.link_length.forearm + self.link_length.stick * math.cos(theta_wrist)
        y = self.link_length.stick * math.sin(theta_wrist)
        return math.hypot(x, y)

    def effective_theta(self, theta_wrist: float) -> float:
        """Direction of the combined forearm-and-stick link relative to the forearm."""
        x = self.link_length.forearm + self.link_length.stick * math.cos(theta_wrist)
        y = self.link_length.stick * math.sin(theta_wrist)
        return math.atan2(y, x)

    def _limit_violation(self, q: Sequence[float]) -> Optional[str]:
        for i, angle in enumerate(q):
            limit = self.joint_limits.get(i)
            if limit is not None and not limit.contains(angle):
                return (
                    f"joint {i} out of range: {math.degrees(angle):.4f} deg "
                    f"(limit: {math.degrees(limit.min_angle):.4f} ~ "
                    f"{math.degrees(limit.max_angle):.4f} deg)"
                )
        return None

    def check_joint_limits(self, q: Sequence[float]) -> bool:
        """Return whether every joint of ``q`` that has a limit lies inside it."""
        violation = self._limit_violation(q)
        if violation is not None:
            _log.warning(violation)
            return False
        return True

    # ----- inverse kinematics -----

    def _arm_vertical(
        self, p: Sequence[float], shoulder_x: float, shoulder_y: float, theta_wrist: float, side: str
    ) -> Tuple[float, float]:
        l1 = self.link_length.upper_arm
        l2 = self.effective_length(theta_wrist)
        zeta = -p[2]
        r2 = (p[1] - shoulder_y) ** 2 + (p[0] - shoulder_x) ** 2
        x = zeta * zeta + r2 - l1 * l1 - l2 * l2
        rad = 4.0 * l1 * l1 * l2 * l2 - x * x
        if rad < 0.0:
            raise KinematicsError(f"{side} arm unreachable")
        elbow = math.atan2(math.sqrt(rad), x)
        combined = math.atan2(math.sqrt(max(r2, 0.0)), zeta)
        shoulder = combined - math.atan2(l2 * math.sin(elbow), l1 + l2 * math.cos(elbow))
        return shoulder, elbow - self.effective_theta(theta_wrist)

    def ik_solve(
        self,
        p_r: Sequence[float],
        p_l: Sequence[float],
        theta0: float,
        theta7: float,
        theta8: float,
    ) -> List[float]:
        """Joint angles 0 to 8 that put the stick tips at ``p_r`` and ``p_l``.

        The waist and wrist angles are given; raises KinematicsError when a
        point cannot be reached or the solution breaks a joint limit.
        """
        half = 0.5 * self.link_length.waist
        sx_r, sy_r = half * math.cos(theta0), half * math.sin(theta0)
        sx_l, sy_l = -sx_r, -sy_r

        theta1 = math.atan2(p_r[1] - sy_r, p_r[0] - sx_r) - theta0
        theta2 = math.atan2(p_l[1] - sy_l, p_l[0] - sx_l) - theta0

        theta3, theta4 = self._arm_vertical(p_r, sx_r, sy_r, theta7, "right")
        theta5, theta6 = self._arm_vertical(p_l, sx_l, sy_l, theta8, "left")

        q = [theta0, theta1, theta2, theta3, theta4, theta5, theta6, theta7, theta8]
        if not all(math.isfinite(v) for v in q):
            raise KinematicsError("NaN/Inf in inverse kinematics result")
        violation = self._limit_violation(q)
        if violation is not None:
            raise KinematicsError(violation)
        return q

    # ----- forward kinematics -----

    def fk_solve(self, q: Sequence[float]) -> Tuple[Vec3, Vec3]:
        """Stick tip positions (right, left) for joint angles ``q`` (at least 9)."""
        if len(q) < NUM_ARM_JOINTS:
            raise KinematicsError(f"q needs {NUM_ARM_JOINTS} joint angles, got {len(q)}")

        waist, r_sh1, l_sh1, r_sh2, r_elbow, l_sh2, l_elbow, r_wrist, l_wrist = q[:NUM_ARM_JOINTS]
        links = self.link_length
        z0 = 0.0
        half_pi = math.pi / 2.0

        right = _chain_position([
            (0.0, 0.0, z0, waist),
            (0.0, 0.5 * links.waist, 0.0, r_sh1),
            (half_pi, 0.0, 0.0, r_sh2 - half_pi),
            (0.0, links.upper_arm, 0.0, r_elbow),
            (0.0, links.forearm, 0.0, r_wrist),
            (0.0, links.stick, 0.0, 0.0),
        ])
        left = _chain_position([
            (0.0, 0.0, z0, waist),
            (0.0, -0.5 * links.waist, 0.0, l_sh1),
            (half_pi, 0.0, 0.0, l_sh2 - half_pi),
            (0.0, links.upper_arm, 0.0, l_elbow),
            (0.0, links.forearm, 0.0, l_wrist),
            (0.0, links.stick, 0.0, 0.0),
        ])

        if not all(math.isfinite(v) for v in (*right, *left)):
            raise KinematicsError("NaN/Inf in forward kinematics result")
        return right, left

    # ----- verification -----

    def verify_fk_ik(
        self,
        num_tests: int = 1000,
        tolerance_deg: float = 0.01,
        rng: Optional[random.Random] = None,
    ) -> VerificationReport:
        """Check random joint configurations for FK -> IK round-trip consistency."""
        missing = [i for i in range(NUM_ARM_JOINTS) if i not in self.joint_limits]
        if missing:
            raise KinematicsError(f"joint limits missing for joints {missing}")

        rng = rng or random.Random()
        tolerance_rad = math.radians(tolerance_deg)
        report = VerificationReport(total=num_tests, tolerance_deg=tolerance_deg)
        limits = [self.joint_limits[i] for i in range(NUM_ARM_JOINTS)]

        for _ in range(num_tests):
            q_in = [rng.uniform(lim.min_angle, lim.max_angle) for lim in limits]

            try:
                p_r, p_l = self.fk_solve(q_in)
            except KinematicsError:
                report.fk_failed += 1
                continue

            try:
                q_out = self.ik_solve(p_r, p_l, q_in[0], q_in[7], q_in[8])
            except KinematicsError:
                report.ik_failed += 1
                continue

            if all(_angle_error(a, b) <= tolerance_rad for a, b in zip(q_in, q_out)):
                report.passed += 1
                continue

            try:
                p_r2, p_l2 = self.fk_solve(q_out)
            except KinematicsError:
                report.mismatch_diff_endpoint += 1
                continue

            err = max(math.dist(p_r, p_r2), math.dist(p_l, p_l2))
            if err < ENDPOINT_TOLERANCE:
                report.mismatch_same_endpoint += 1
                continue

            report.mismatch_diff_endpoint += 1
            if err > report.max_endpoint_error:
                report.max_endpoint_error = err
                report.worst_q_in = q_in
                report.worst_q_out = q_out
                report.worst_p_r_target, report.worst_p_r_actual = p_r, p_r2
                report.worst_p_l_target, report.worst_p_l_actual = p_l, p_l2

        _log.info(
            "FK-IK round trip: total=%d pass=%d same_endpoint=%d diff_endpoint=%d "
            "fk_failed=%d ik_failed=%d",
            report.total, report.passed, report.mismatch_same_endpoint,
            report.mismatch_diff_endpoint, report.fk_failed, report.ik_failed,
        )
        if report.mismatch_diff_endpoint:
            _log.warning(
                "worst endpoint mismatch: %.4f mm", report.max_endpoint_error * 1000.0
            )
        return report