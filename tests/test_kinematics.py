import json
import math
import random

import pytest

from drumbot.kinematics import (
    JointLimit,
    KinematicsError,
    KinematicsSolver,
    LinkLength,
    VerificationReport,
    dh_transform,
)

LINKS = LinkLength(waist=0.25, upper_arm=0.25, forearm=0.29, stick=0.4)
Q_SAMPLE = [0.1, 0.2, -0.2, 0.5, 0.8, 0.5, 0.8, 0.3, 0.3]


def _safe_limits():
    ranges = [
        (-0.2, 0.2), (-0.3, 0.3), (-0.3, 0.3),
        (0.3, 0.8), (0.5, 1.2), (0.3, 0.8), (0.5, 1.2),
        (0.0, 0.5), (0.0, 0.5),
    ]
    return {i: JointLimit(lo, hi) for i, (lo, hi) in enumerate(ranges)}


@pytest.fixture
def solver():
    return KinematicsSolver(LINKS)


def test_dh_transform_zero_is_identity():
    t = dh_transform(0.0, 0.0, 0.0, 0.0)
    expected = [[1.0 if i == j else 0.0 for j in range(4)] for i in range(4)]
    for row, exp_row in zip(t, expected):
        assert row == pytest.approx(exp_row)


def test_dh_transform_translation_and_rotation():
    t = dh_transform(0.3, 0.0, 0.0, math.pi / 2)
    assert t[0][3] == pytest.approx(0.3)
    assert t[0][0] == pytest.approx(0.0, abs=1e-12)
    assert t[1][0] == pytest.approx(1.0)
    assert t[3] == [0.0, 0.0, 0.0, 1.0]


def test_effective_length_and_theta_straight_wrist(solver):
    assert solver.effective_length(0.0) == pytest.approx(LINKS.forearm + LINKS.stick)
    assert solver.effective_theta(0.0) == pytest.approx(0.0)
    assert solver.effective_length(math.pi) == pytest.approx(abs(LINKS.forearm - LINKS.stick))


def test_effective_theta_sign_follows_wrist(solver):
    assert solver.effective_theta(0.4) > 0.0
    assert solver.effective_theta(-0.4) == pytest.approx(-solver.effective_theta(0.4))


def test_fk_zero_pose_arms_hang_down(solver):
    p_r, p_l = solver.fk_solve([0.0] * 9)
    reach = LINKS.upper_arm + LINKS.forearm + LINKS.stick
    assert p_r == pytest.approx((LINKS.waist / 2, 0.0, -reach))
    assert p_l == pytest.approx((-LINKS.waist / 2, 0.0, -reach))


def test_fk_accepts_extra_joints(solver):
    assert solver.fk_solve(Q_SAMPLE + [1.0, 2.0, 3.0, 4.0]) == solver.fk_solve(Q_SAMPLE)


def test_fk_rejects_short_vector(solver):
    with pytest.raises(KinematicsError):
        solver.fk_solve([0.0] * 8)


def test_fk_ik_round_trip(solver):
    p_r, p_l = solver.fk_solve(Q_SAMPLE)
    q = solver.ik_solve(p_r, p_l, Q_SAMPLE[0], Q_SAMPLE[7], Q_SAMPLE[8])
    assert q == pytest.approx(Q_SAMPLE, abs=1e-9)


def test_ik_fk_endpoint_consistency(solver):
    p_r, p_l = solver.fk_solve(Q_SAMPLE)
    q = solver.ik_solve(p_r, p_l, Q_SAMPLE[0], Q_SAMPLE[7], Q_SAMPLE[8])
    p_r2, p_l2 = solver.fk_solve(q)
    assert math.dist(p_r, p_r2) < 1e-9
    assert math.dist(p_l, p_l2) < 1e-9


def test_ik_unreachable_right_arm(solver):
    _, p_l = solver.fk_solve(Q_SAMPLE)
    with pytest.raises(KinematicsError, match="right"):
        solver.ik_solve((10.0, 0.0, 0.0), p_l, 0.0, 0.0, 0.0)


def test_ik_unreachable_left_arm(solver):
    p_r, _ = solver.fk_solve(Q_SAMPLE)
    with pytest.raises(KinematicsError, match="left"):
        solver.ik_solve(p_r, (-10.0, 0.0, 0.0), Q_SAMPLE[0], Q_SAMPLE[7], 0.0)


def test_ik_respects_joint_limits():
    limits = {4: JointLimit(-0.1, 0.1)}
    limited = KinematicsSolver(LINKS, limits)
    p_r, p_l = limited.fk_solve(Q_SAMPLE)
    with pytest.raises(KinematicsError, match="joint 4"):
        limited.ik_solve(p_r, p_l, Q_SAMPLE[0], Q_SAMPLE[7], Q_SAMPLE[8])


def test_check_joint_limits():
    limited = KinematicsSolver(LINKS, {1: JointLimit(-0.5, 0.5)})
    assert limited.check_joint_limits([0.0, 0.4, 9.0]) is True
    assert limited.check_joint_limits([0.0, 0.6, 0.0]) is False
    assert limited.check_joint_limits([0.0, -0.5]) is True


def test_from_config_converts_degrees(tmp_path):
    config = {
        "joint_limits": [
            {"joint": 0, "min_angle": -90, "max_angle": 90},
            {"joint": 3, "min_angle": 0, "max_angle": 180},
        ],
        "link_length": {"waist": 0.25, "upper_arm": 0.25, "forearm": 0.29, "stick": 0.4},
    }
    path = tmp_path / "kinematics.json"
    path.write_text(json.dumps(config), encoding="utf-8")

    loaded = KinematicsSolver.from_config(path)
    assert loaded.link_length == LINKS
    assert loaded.joint_limits[0].min_angle == pytest.approx(-math.pi / 2)
    assert loaded.joint_limits[0].max_angle == pytest.approx(math.pi / 2)
    assert loaded.joint_limits[3].max_angle == pytest.approx(math.pi)
    assert set(loaded.joint_limits) == {0, 3}


def test_from_config_missing_file(tmp_path):
    with pytest.raises(OSError):
        KinematicsSolver.from_config(tmp_path / "absent.json")


def test_verify_requires_limits(solver):
    with pytest.raises(KinematicsError):
        solver.verify_fk_ik(10, 0.01, random.Random(1))


def test_verify_round_trip_passes():
    checked = KinematicsSolver(LINKS, _safe_limits())
    report = checked.verify_fk_ik(200, 0.01, random.Random(7))
    assert isinstance(report, VerificationReport)
    assert report.total == 200
    assert report.passed == 200
    assert report.mismatch_diff_endpoint == 0
    assert report.worst_q_in == []


def test_verify_counts_add_up():
    limits = {i: JointLimit(-math.pi, math.pi) for i in range(9)}
    checked = KinematicsSolver(LINKS, limits)
    report = checked.verify_fk_ik(100, 0.01, random.Random(3))
    counted = (
        report.passed
        + report.mismatch_same_endpoint
        + report.mismatch_diff_endpoint
        + report.fk_failed
        + report.ik_failed
    )
    assert counted == report.total == 100


def test_verify_is_deterministic_with_seed():
    checked = KinematicsSolver(LINKS, _safe_limits())
    first = checked.verify_fk_ik(50, 0.01, random.Random(11))
    second = checked.verify_fk_ik(50, 0.01, random.Random(11))
    assert first == second