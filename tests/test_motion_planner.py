import json
import math
import threading
import time

import pytest

from drumbot.common import (
    AppContext,
    CommandQueue,
    ControlQueue,
    JointInfo,
    MotionQueue,
    MotionType,
)
from drumbot.kinematics import KinematicsSolver, LinkLength
from drumbot.logger import Logger
from drumbot.motion_planner import MotionPlanner
from drumbot.trajectory import TrajectoryGenerator

INIT_DEG = [0.0] * 13
HOME_DEG = [0, 10, 170, 20, 30, 20, 30, 5, 5, 0, 0, 0, 0]


def write_poses(path, poses):
    path.write_text(json.dumps({"poses": poses}))
    return path


@pytest.fixture
def poses_path(tmp_path):
    return write_poses(tmp_path / "poses.json", {"init": INIT_DEG, "home": HOME_DEG})


def make_planner(tmp_path, poses_path, initial=0.0):
    ctx = AppContext()
    control = ControlQueue()
    joints = {i: JointInfo(i, f"j{i}", initial_joint_angle=initial) for i in range(13)}
    generator = TrajectoryGenerator(
        control,
        KinematicsSolver(LinkLength(0.3, 0.25, 0.2, 0.1)),
        logger=Logger("trajectory", base_path=tmp_path),
    )
    return MotionPlanner(
        ctx,
        CommandQueue(),
        control,
        MotionQueue(),
        joints,
        trajectory_generator=generator,
        poses_path=poses_path,
        logger=Logger("motion_command", base_path=tmp_path),
        period=0.001,
    )


def drain(queue):
    points = []
    while (p := queue.try_pop()) is not None:
        points.append(p)
    return points


def test_initialize_reports_no_mismatch(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path)
    assert mp.initialize() == []
    assert mp.trajectory_generator.last_q == [0.0] * 13


def test_initialize_reports_mismatch(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path, initial=0.5)
    assert mp.initialize() == list(range(13))


def test_initialize_without_init_pose_raises(tmp_path):
    path = write_poses(tmp_path / "p.json", {"home": HOME_DEG})
    mp = make_planner(tmp_path, path)
    with pytest.raises(ValueError):
        mp.initialize()


def test_start_command_generates_trajectory(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path)
    mp.initialize()
    mp.command_queue.push("START")
    mp.step()
    assert mp.ctx.send_active and mp.ctx.recv_active
    assert mp.motion_queue.empty()
    points = drain(mp.control_queue)
    assert len(points) > mp.threshold
    assert points[-1].q == pytest.approx([math.radians(a) for a in HOME_DEG])


def test_step_idle_when_inactive_does_nothing(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path)
    mp.initialize()
    mp.step()
    assert mp.control_queue.empty()
    assert mp.ctx.send_active is False


def test_step_schedules_idle_when_active(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path)
    mp.initialize()
    mp.ctx.send_active = True
    mp.step()
    points = drain(mp.control_queue)
    assert points
    assert all(p.q == pytest.approx([0.0] * 13) for p in points)
    assert "MOTION,idle" in open(mp._log.path, encoding="utf-8").read()


def test_schedule_idle_motion_queues_idle(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path)
    motion = mp.schedule_idle_motion()
    assert motion.type is MotionType.IDLE
    assert mp.motion_queue.try_pop() is motion


def test_shutdown_blocks_new_work(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path)
    mp.ctx.shutdown_requested = True
    assert mp.parse_command("START") == []
    assert mp.schedule_idle_motion() is None
    assert mp.motion_queue.empty()


def test_invalid_command_is_logged_not_raised(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path)
    mp.initialize()
    assert mp.parse_command("FOO|1") == []
    assert mp.motion_queue.empty()
    assert "CMD,FOO|1" in open(mp._log.path, encoding="utf-8").read()


def test_run_stops_when_context_stops(tmp_path, poses_path):
    mp = make_planner(tmp_path, poses_path)
    mp.command_queue.push("START")
    thread = threading.Thread(target=mp.run)
    thread.start()
    deadline = time.monotonic() + 5.0
    while mp.control_queue.empty() and time.monotonic() < deadline:
        time.sleep(0.01)
    mp.ctx.running = False
    thread.join(timeout=5.0)
    assert not thread.is_alive()
    assert mp.control_queue.size() > 0


def test_run_with_missing_poses_clears_running(tmp_path):
    mp = make_planner(tmp_path, tmp_path / "missing.json")
    with pytest.raises(FileNotFoundError):
        mp.run()
    assert mp.ctx.running is False