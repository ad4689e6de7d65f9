"""Planning thread: commands in, motions queued, trajectories generated."""

from __future__ import annotations

import logging
import math
import time
from typing import List, Mapping, Optional

from drumbot.behavior_planner import DEFAULT_POSES_PATH, BehaviorPlanner
from drumbot.command_parser import CommandError, CommandParser
from drumbot.common import (
    AppContext,
    CommandQueue,
    ControlQueue,
    JointInfo,
    MotionPrimitive,
    MotionQueue,
    MotionType,
)
from drumbot.kinematics import KinematicsError, PathLike
from drumbot.logger import Logger
from drumbot.trajectory import TrajectoryGenerator

_log = logging.getLogger(__name__)

POSE_TOLERANCE = 1e-4


class MotionPlanner:
    """Consume commands, queue motions and keep the control queue filled."""

    threshold = 20  # generate the next motion once fewer set points remain

    def __init__(
        self,
        ctx: AppContext,
        command_queue: CommandQueue,
        control_queue: ControlQueue,
        motion_queue: MotionQueue,
        joints: Mapping[int, JointInfo],
        *,
        behavior_planner: Optional[BehaviorPlanner] = None,
        trajectory_generator: Optional[TrajectoryGenerator] = None,
        poses_path: PathLike = DEFAULT_POSES_PATH,
        logger: Optional[Logger] = None,
        period: float = 0.005,
    ) -> None:
        self.ctx = ctx
        self.command_queue = command_queue
        self.control_queue = control_queue
        self.motion_queue = motion_queue
        self.joints = dict(joints)
        self.behavior_planner = behavior_planner or BehaviorPlanner(ctx, self.joints)
        self.trajectory_generator = trajectory_generator or TrajectoryGenerator(control_queue)
        self.command_parser = CommandParser()
        self.poses_path = poses_path
        self.period = period
        self._log = logger if logger is not None else Logger("motion_command")

    def initialize(self) -> List[int]:
        """Load poses and start the trajectory from the ``init`` pose.

        Returns the ids of joints whose ``init`` angle differs from the
        joint's configured initial angle.
        """
        self.behavior_planner.init_poses_from_json(self.poses_path)
        init_pose = self.behavior_planner.poses.get("init")
        if init_pose is None:
            raise ValueError("'init' pose is not defined")

        mismatched: List[int] = []
        for joint_id, joint in sorted(self.joints.items()):
            if joint_id >= len(init_pose):
                mismatched.append(joint_id)
                _log.warning("init pose has no angle for joint %d (%s)", joint_id, joint.name)
                continue
            if abs(init_pose[joint_id] - joint.initial_joint_angle) > POSE_TOLERANCE:
                mismatched.append(joint_id)
                _log.warning(
                    "init pose mismatch on joint %d (%s): poses=%.4f deg, motors=%.4f deg",
                    joint_id, joint.name,
                    math.degrees(init_pose[joint_id]),
                    math.degrees(joint.initial_joint_angle),
                )

        self.trajectory_generator.initialize(init_pose)
        return mismatched

    def step(self) -> None:
        """Run one planning cycle without sleeping."""
        cmd = self.command_queue.try_pop()
        if cmd is not None:
            self.parse_command(cmd)
        elif self.ctx.send_active and self.motion_queue.empty():
            self.schedule_idle_motion()

        if self.control_queue.size() < self.threshold:
            motion = self.motion_queue.try_pop()
            if motion is not None:
                try:
                    self.trajectory_generator.generate_trajectory(motion)
                except (KinematicsError, ValueError) as exc:
                    _log.error("trajectory generation failed: %s", exc)
                self.ctx.recv_active = True
                self.ctx.send_active = True
                self._record_motion(motion)

    def run(self) -> None:
        """Initialize, then plan until the context stops; clears ``ctx.running`` on exit."""
        try:
            self.initialize()
            while self.ctx.running:
                self.step()
                time.sleep(self.period)
        finally:
            self.ctx.running = False
            _log.info("motion planner finished")

    def parse_command(self, cmd: str) -> List[MotionPrimitive]:
        """Parse ``cmd`` and queue its motions; returns the motions queued."""
        if self.ctx.shutdown_requested:
            return []
        sequence: List[MotionPrimitive] = []
        try:
            parsed = self.command_parser.parse(cmd)
            sequence = self.behavior_planner.generate_motion_sequence(parsed)
        except CommandError as exc:
            _log.warning("command %r rejected: %s", cmd, exc)
        for motion in sequence:
            self.motion_queue.push(motion)
        self._log.record(["CMD", cmd])
        return sequence

    def schedule_idle_motion(self) -> Optional[MotionPrimitive]:
        """Queue an idle motion unless shutdown was requested."""
        if self.ctx.shutdown_requested:
            return None
        motion = MotionPrimitive(type=MotionType.IDLE)
        self.motion_queue.push(motion)
        self._record_motion(motion)
        return motion

    def _record_motion(self, motion: MotionPrimitive) -> None:
        kind = "idle" if motion.type is MotionType.IDLE else "translate"
        self._log.record(["MOTION", kind])