"""Turn parsed commands into sequences of joint-space motions."""

from __future__ import annotations

import json
import logging
import math
from enum import IntEnum
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from drumbot.command_parser import CommandError, Opcode, ParsedCommand
from drumbot.common import (
    AppContext,
    JointInfo,
    MotionPrimitive,
    MotionType,
    TrajectoryProfile,
    TrajectorySpace,
)
from drumbot.kinematics import PathLike

_log = logging.getLogger(__name__)

DEFAULT_POSES_PATH = "drumrobot/config/robot_poses.json"
NUM_JOINTS = 13


class JointID(IntEnum):
    """Index of each joint in a joint vector."""

    WAIST = 0
    R_SHOULDER_1 = 1
    L_SHOULDER_1 = 2
    R_SHOULDER_2 = 3
    R_ELBOW = 4
    L_SHOULDER_2 = 5
    L_ELBOW = 6
    R_WRIST = 7
    L_WRIST = 8
    R_PEDAL = 9
    L_PEDAL = 10
    HEAD_YAW = 11
    HEAD_PITCH = 12


def load_poses(path: PathLike = DEFAULT_POSES_PATH) -> Dict[str, List[float]]:
    """Read named poses (angles in degrees) from JSON and return them in radians."""
    with open(path, encoding="utf-8") as fh:
        config = json.load(fh)
    return {
        name: [math.radians(float(angle)) for angle in angles]
        for name, angles in config.get("poses", {}).items()
    }


def _number(text: str, what: str) -> float:
    try:
        return float(text)
    except ValueError as exc:
        raise CommandError(f"{what} parsing error: {text!r}") from exc


class BehaviorPlanner:
    """Expand high-level commands into joint-space motion primitives.

    The planner remembers the last joint target so that partial commands
    (LOOK, MOVE, gestures) only change the joints they are about.
    """

    DEFAULT_MOVE_TIME = 3.0
    LOOK_MOVE_TIME = 1.0
    GESTURE_MOVE_TIME = 1.0
    WAVE_MOVE_TIME = 0.4

    def __init__(
        self,
        ctx: AppContext,
        joints: Mapping[int, JointInfo],
        num_joint: int = NUM_JOINTS,
    ) -> None:
        self.ctx = ctx
        self.joints = dict(joints)
        self.num_joint = num_joint
        self.poses: Dict[str, List[float]] = {}

        self.last_q_target: List[float] = [0.0] * num_joint
        for joint_id, joint in self.joints.items():
            if joint_id < num_joint:
                self.last_q_target[joint_id] = joint.initial_joint_angle

        self._handlers: Dict[Opcode, Callable[[Sequence[str]], List[MotionPrimitive]]] = {
            Opcode.LOOK: self._handle_look,
            Opcode.GESTURE: self._handle_gesture,
            Opcode.MOVE: self._handle_move,
            Opcode.POSE: self._handle_pose,
            Opcode.HIT: self._handle_hit,
        }

    def init_poses_from_json(self, path: PathLike = DEFAULT_POSES_PATH) -> None:
        """Load the named poses from ``path``."""
        self.poses.update(load_poses(path))

    def find_motor_id(self, motor_name: str) -> Optional[int]:
        """Return the id of the joint called ``motor_name``, or None."""
        for joint_id, joint in self.joints.items():
            if joint.name == motor_name:
                return joint_id
        return None

    def generate_motion_sequence(self, parsed: ParsedCommand) -> List[MotionPrimitive]:
        """Motions for ``parsed``; raises CommandError when it cannot be carried out."""
        opcode = parsed.opcode

        if not self.ctx.send_active:
            if opcode is Opcode.START:
                return self._handle_start()
            if opcode is Opcode.QUIT:
                self.ctx.shutdown_requested = True
                return []
            raise CommandError(f"command {opcode.name} not allowed before START")

        if opcode is Opcode.START:
            raise CommandError("already started")
        if opcode is Opcode.QUIT:
            sequence: List[MotionPrimitive] = []
            shutdown = self.poses.get("shutdown")
            if shutdown is not None:
                sequence.append(self._translate(shutdown, self.DEFAULT_MOVE_TIME))
                self.last_q_target = list(shutdown)
            self.ctx.shutdown_requested = True
            return sequence

        handler = self._handlers.get(opcode)
        if handler is None:
            raise CommandError(f"unknown opcode: {opcode.name}")
        return handler(parsed.args)

    # ----- handlers -----

    def _handle_start(self) -> List[MotionPrimitive]:
        home = self.poses.get("home")
        if home is None:
            raise CommandError("'home' pose is not defined")
        self.last_q_target = list(home)
        return [self._translate(home, self.DEFAULT_MOVE_TIME)]

    def _handle_look(self, args: Sequence[str]) -> List[MotionPrimitive]:
        pan = _number(args[0], "LOOK")
        tilt = _number(args[1], "LOOK")
        q = list(self.last_q_target)
        q[JointID.HEAD_YAW] = math.radians(pan)
        q[JointID.HEAD_PITCH] = math.radians(tilt)
        self.last_q_target = q
        return [self._translate(q, self.LOOK_MOVE_TIME)]

    def _handle_gesture(self, args: Sequence[str]) -> List[MotionPrimitive]:
        kind = args[0]
        q = list(self.last_q_target)
        sequence: List[MotionPrimitive] = []

        if kind in ("nod", "shake"):
            joint = JointID.HEAD_PITCH if kind == "nod" else JointID.HEAD_YAW
            swing = 20.0 if kind == "nod" else 30.0
            for angle in (-swing, swing, 0.0):
                q[joint] = math.radians(angle)
                sequence.append(self._translate(q, self.GESTURE_MOVE_TIME))
        elif kind in ("wave", "hi"):
            q[JointID.R_SHOULDER_1] = math.radians(45.0)
            q[JointID.R_SHOULDER_2] = math.radians(45.0)
            q[JointID.R_ELBOW] = math.radians(90.0)
            q[JointID.R_WRIST] = 0.0
            q[JointID.HEAD_YAW] = math.radians(20.0)
            q[JointID.HEAD_PITCH] = math.radians(5.0)
            sequence.append(self._translate(q, self.DEFAULT_MOVE_TIME))
            for _ in range(3):
                for angle in (25.0, -25.0):
                    q[JointID.R_WRIST] = math.radians(angle)
                    sequence.append(self._translate(q, self.WAVE_MOVE_TIME))
            q[JointID.R_WRIST] = 0.0
            sequence.append(self._translate(q, self.WAVE_MOVE_TIME))
        elif kind in ("hurray", "happy"):
            q[JointID.R_SHOULDER_1] = math.radians(60.0)
            q[JointID.L_SHOULDER_1] = math.radians(120.0)
            q[JointID.R_SHOULDER_2] = math.radians(65.0)
            q[JointID.L_SHOULDER_2] = math.radians(65.0)
            q[JointID.R_ELBOW] = math.radians(95.0)
            q[JointID.L_ELBOW] = math.radians(95.0)
            q[JointID.R_WRIST] = 0.0
            q[JointID.L_WRIST] = 0.0
            q[JointID.HEAD_PITCH] = math.radians(15.0)
            sequence.append(self._translate(q, self.DEFAULT_MOVE_TIME))
        else:
            raise CommandError(f"unknown gesture: {kind}")

        self.last_q_target = q
        return sequence

    def _handle_move(self, args: Sequence[str]) -> List[MotionPrimitive]:
        motor_name = args[0]
        motor_id = self.find_motor_id(motor_name)
        if motor_id is None:
            raise CommandError(f"unknown motor name: {motor_name}")
        angle = _number(args[1], "MOVE")
        move_time = _number(args[2], "MOVE") if len(args) >= 3 else self.DEFAULT_MOVE_TIME
        q = list(self.last_q_target)
        q[motor_id] = math.radians(angle)
        self.last_q_target = q
        return [self._translate(q, move_time)]

    def _handle_pose(self, args: Sequence[str]) -> List[MotionPrimitive]:
        pose_name = args[0]
        pose = self.poses.get(pose_name)
        if pose is None:
            raise CommandError(f"unknown pose: {pose_name}")
        self.last_q_target = list(pose)
        if pose_name == "shutdown":
            self.ctx.shutdown_requested = True
        return [self._translate(pose, self.DEFAULT_MOVE_TIME)]

    def _handle_hit(self, args: Sequence[str]) -> List[MotionPrimitive]:
        _log.info("HIT has no motion yet (target=%s)", args[0])
        return []

    @staticmethod
    def _translate(
        q_target: Sequence[float],
        t_total: float,
        profile: TrajectoryProfile = TrajectoryProfile.COSINE,
    ) -> MotionPrimitive:
        return MotionPrimitive(
            type=MotionType.TRANSLATE,
            space=TrajectorySpace.JOINT,
            profile=profile,
            q_target=list(q_target),
            t_total=t_total,
        )