# drumbot

Motion planning for a two-armed drumming robot with a movable head and two
pedals (13 joints in all). The package takes short text commands, turns them
into motion primitives, and samples those motions into a stream of joint set
points, one every 5 ms by default, placed on a queue for a real-time
controller to consume.

It uses only the standard library.

## Commands

Commands are single lines of the form `OPCODE|arg1|arg2|...`. The opcode is
case-insensitive, and whitespace around the command and around each field is
ignored.

| Opcode     | Arguments                                          | Meaning                                |
|------------|----------------------------------------------------|----------------------------------------|
| `LOOK`     | pan (deg), tilt (deg)                              | point the head                         |
| `GESTURE`  | `nod`, `shake`, `wave`/`hi`, `hurray`/`happy`      | play a predefined gesture              |
| `MOVE`     | motor name, angle (deg), [time in s, default 3.0]  | move one joint                         |
| `POSE`     | pose name                                          | go to a stored pose                    |
| `HIT`      | target                                             | accepted, but produces no motion yet   |
| `START`    | none                                               | move to the `home` pose                |
| `QUIT`/`Q` | none                                               | go to `shutdown` (if defined) and stop |

```python
from drumbot.command_parser import CommandParser, Opcode

parsed = CommandParser().parse("move | right_wrist | 45 | 1.0")
assert parsed.opcode is Opcode.MOVE
assert parsed.args == ("right_wrist", "45", "1.0")
```

`CommandParser.parse` raises `drumbot.command_parser.CommandError` (a
`ValueError`) for an empty command, an unknown opcode, or an opcode with too
few arguments. `to_opcode` and `validate_args` are available on their own.

Before the robot has started sending (`AppContext.send_active` is false) only
`START` and `QUIT` are accepted; after that, `START` is rejected. Going to the
`shutdown` pose, or `QUIT`, sets `AppContext.shutdown_requested`.

## Pipeline

- `drumbot.common` holds the shared state: `AppContext` (the `running`,
  `send_active`, `recv_active` and `shutdown_requested` flags), `JointInfo`
  (id, name, initial angle and limits of one joint) and the lock-guarded
  queues `CommandQueue`, `MotionQueue` and `ControlQueue`, each with `push`,
  `empty` and a non-blocking `try_pop` that returns `None` when empty. A
  `ControlSetPoint` carries joint positions `q`, velocities `qd` and a
  `ControlMode` per joint.
- `drumbot.behavior_planner.BehaviorPlanner` turns a `ParsedCommand` into a
  list of `MotionPrimitive`s, remembering the last target so that partial
  commands (`LOOK`, `MOVE`, gestures) change only the joints they concern.
  Joints are indexed by `JointID`.
- `drumbot.trajectory.TrajectoryGenerator` samples each primitive into set
  points on the control queue, in joint space or, through inverse kinematics,
  in task space. An idle motion holds the current pose for one second.
- `drumbot.motion_planner.MotionPlanner` ties these together. `step()` runs
  one cycle: it handles one pending command, or schedules an idle motion when
  sending is active and nothing is queued, and generates the next motion's
  trajectory whenever fewer than 20 set points remain. `run()` calls
  `initialize()` and then `step()` every period until `ctx.running` is false.
- `drumbot.tcp_server.TcpServer` listens on a TCP port, serves one client at
  a time, and pushes each received message (trailing spaces and line breaks
  removed) onto the command queue. After `QUIT` or `Q` it accepts no more
  clients. `run()` clears `ctx.running` when it returns; `stop()` closes the
  listening socket.
- `drumbot.logger.Logger` writes CSV rows prefixed with the seconds elapsed
  since it was opened, to `drumrobot/log/log_MMDD_HHMM_<name>.csv` by default
  (see `make_filename`). If the file cannot be opened, a warning is logged and
  rows are dropped.

```python
import threading

from drumbot.common import AppContext, CommandQueue, ControlQueue, JointInfo, MotionQueue
from drumbot.motion_planner import MotionPlanner
from drumbot.tcp_server import TcpServer

ctx = AppContext()
commands, controls, motions = CommandQueue(), ControlQueue(), MotionQueue()
joints = {0: JointInfo(0, "waist"), 7: JointInfo(7, "right_wrist")}

planner = MotionPlanner(ctx, commands, controls, motions, joints,
                        poses_path="config/robot_poses.json")
server = TcpServer(ctx, 1951, commands)

threading.Thread(target=planner.run).start()
server.run()      # returns after the context stops running
server.stop()
```

## Trajectory profiles

Four interpolation profiles are available as `TrajectoryProfile` members and
as plain functions in `drumbot.trajectory`: `sample_trapezoidal` (accelerate
for a quarter, cruise for a half, decelerate for a quarter), `sample_cubic`,
`sample_quintic` and `sample_cosine` (the default). `sample` picks one by
profile, and `default_modes` gives the control modes of the 13 joints.

```python
from drumbot.trajectory import sample_cosine

q, qd = sample_cosine([0.0, 0.0], [1.0, -1.0], n=200, k=100, dt=0.005)
# halfway through: q is [0.5, -0.5]
```

## Kinematics

`drumbot.kinematics.KinematicsSolver` models both arms with modified (Craig)
Denavit-Hartenberg parameters (`dh_transform`). Joint order is: waist, right
shoulder 1, left shoulder 1, right shoulder 2, right elbow, left shoulder 2,
left elbow, right wrist, left wrist.

```python
from drumbot.kinematics import KinematicsSolver

solver = KinematicsSolver.from_config("config/kinematics.json")
p_r, p_l = solver.fk_solve(q)                     # stick-tip positions of both hands
q_arm = solver.ik_solve(p_r, p_l, q[0], q[7], q[8])
```

`ik_solve` returns the nine arm joint angles and raises `KinematicsError` when
a point is out of reach or the result breaks a joint limit; `fk_solve` raises
it when given fewer than nine angles. `check_joint_limits` reports whether a
joint vector lies within the limits.

The configuration is a JSON document with link lengths in metres and joint
limits in degrees:

```json
{
  "link_length": {"waist": 0.25, "upper_arm": 0.25, "forearm": 0.2, "stick": 0.3},
  "joint_limits": [
    {"joint": 0, "min_angle": -90, "max_angle": 90}
  ]
}
```

`verify_fk_ik` runs random configurations through both solvers and returns a
`VerificationReport` counting matches, multi-solution mismatches, real
endpoint mismatches and failures. It needs limits for all nine arm joints.

## Poses

Named poses are read from a JSON document whose `poses` object maps each name
to a list of 13 joint angles in degrees; `drumbot.behavior_planner.load_poses`
returns them in radians. `MotionPlanner.initialize` requires an `init` pose and
returns the ids of joints whose `init` angle differs from their
`JointInfo.initial_joint_angle`. `START` needs a `home` pose.

## What it does not do

The package plans motion only. It does not drive motors: there is no CAN or
serial motor interface, no real-time sending loop that consumes the control
queue, no keyboard input, and no command-line program. A caller supplies the
joint descriptions as `JointInfo` values and reads set points from the
`ControlQueue`.