"""Shared state and thread-safe queues passed between the robot's worker threads."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Deque, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class AppContext:
    """Flags shared by every worker thread.

    ``running`` going false makes every loop exit; ``send_active`` and
    ``recv_active`` gate the real-time loops; ``shutdown_requested`` means no
    new commands are accepted.
    """

    running: bool = True
    send_active: bool = False
    recv_active: bool = False
    shutdown_requested: bool = False


@dataclass
class JointInfo:
    """What the planners need to know about one joint's motor."""

    id: int
    name: str
    initial_joint_angle: float = 0.0
    min_angle: float = float("-inf")
    max_angle: float = float("inf")
    current_joint_angle: float = 0.0


class _LockedQueue(Generic[T]):
    """A FIFO guarded by a lock, popped without blocking."""

    def __init__(self) -> None:
        self._items: Deque[T] = deque()
        self._lock = threading.Lock()

    def _push(self, item: T) -> None:
        with self._lock:
            self._items.append(item)

    def _empty(self) -> bool:
        with self._lock:
            return not self._items

    def _try_pop(self) -> Optional[T]:
        with self._lock:
            return self._items.popleft() if self._items else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class CommandQueue(_LockedQueue[str]):
    """Raw text commands waiting to be parsed."""

    def push(self, cmd: str) -> None:
        self._push(cmd)

    def empty(self) -> bool:
        return self._empty()

    def try_pop(self) -> Optional[str]:
        """Return the oldest command, or None when the queue is empty."""
        return self._try_pop()


class ControlMode(Enum):
    # T motor
    POS = auto()
    VEL = auto()
    # Maxon motor
    CST = auto()
    CSV = auto()
    CSP = auto()
    # Dynamixel or unset
    NONE = auto()


@dataclass
class ControlSetPoint:
    """One control-period target: joint positions, velocities and modes."""

    q: List[float] = field(default_factory=list)
    qd: List[float] = field(default_factory=list)
    mode: List[ControlMode] = field(default_factory=list)

    @classmethod
    def zeros(cls, n: int) -> "ControlSetPoint":
        return cls([0.0] * n, [0.0] * n, [ControlMode.NONE] * n)


class ControlQueue(_LockedQueue[ControlSetPoint]):
    """Set points waiting for the real-time sender."""

    def push(self, point: ControlSetPoint) -> None:
        self._push(point)

    def empty(self) -> bool:
        return self._empty()

    def size(self) -> int:
        return len(self)

    def try_pop(self) -> Optional[ControlSetPoint]:
        """Return the oldest set point, or None when the queue is empty."""
        return self._try_pop()


class MotionType(Enum):
    TRANSLATE = auto()
    IDLE = auto()


class TrajectorySpace(Enum):
    JOINT = auto()
    TASK = auto()


class TrajectoryProfile(Enum):
    TRAPEZOIDAL = auto()
    CUBIC = auto()
    QUINTIC = auto()
    COSINE = auto()


@dataclass
class MotionPrimitive:
    """A single motion to be turned into a trajectory."""

    type: MotionType = MotionType.TRANSLATE
    space: TrajectorySpace = TrajectorySpace.JOINT
    profile: TrajectoryProfile = TrajectoryProfile.COSINE
    q_target: List[float] = field(default_factory=list)
    p_target_r: List[float] = field(default_factory=list)
    p_target_l: List[float] = field(default_factory=list)
    t_total: float = 4.0


class MotionQueue(_LockedQueue[MotionPrimitive]):
    """Motions waiting for trajectory generation."""

    def push(self, motion: MotionPrimitive) -> None:
        self._push(motion)

    def empty(self) -> bool:
        return self._empty()

    def try_pop(self) -> Optional[MotionPrimitive]:
        """Return the oldest motion, or None when the queue is empty."""
        return self._try_pop()