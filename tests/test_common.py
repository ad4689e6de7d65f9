import threading

from drumbot.common import (
    AppContext,
    CommandQueue,
    ControlMode,
    ControlQueue,
    ControlSetPoint,
    JointInfo,
    MotionPrimitive,
    MotionQueue,
    MotionType,
    TrajectoryProfile,
    TrajectorySpace,
)


def test_app_context_defaults():
    ctx = AppContext()
    assert ctx.running is True
    assert ctx.send_active is False
    assert ctx.recv_active is False
    assert ctx.shutdown_requested is False


def test_command_queue_is_fifo():
    q = CommandQueue()
    assert q.empty()
    q.push("START")
    q.push("QUIT")
    assert not q.empty()
    assert q.try_pop() == "START"
    assert q.try_pop() == "QUIT"
    assert q.try_pop() is None
    assert q.empty()


def test_control_set_point_zeros():
    p = ControlSetPoint.zeros(13)
    assert p.q == [0.0] * 13
    assert p.qd == [0.0] * 13
    assert p.mode == [ControlMode.NONE] * 13


def test_control_queue_size_tracks_push_and_pop():
    q = ControlQueue()
    assert q.size() == 0
    points = [ControlSetPoint.zeros(2) for _ in range(3)]
    for p in points:
        q.push(p)
    assert q.size() == 3
    assert q.try_pop() is points[0]
    assert q.size() == 2
    assert len(q) == 2


def test_control_queue_concurrent_pushes_all_arrive():
    q = ControlQueue()

    def worker():
        for _ in range(200):
            q.push(ControlSetPoint.zeros(1))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert q.size() == 800


def test_motion_primitive_defaults():
    m = MotionPrimitive()
    assert m.type is MotionType.TRANSLATE
    assert m.space is TrajectorySpace.JOINT
    assert m.profile is TrajectoryProfile.COSINE
    assert m.t_total == 4.0
    assert m.q_target == []


def test_motion_primitive_lists_are_independent():
    a = MotionPrimitive()
    b = MotionPrimitive()
    a.q_target.append(1.0)
    assert b.q_target == []


def test_motion_queue_order_and_empty():
    q = MotionQueue()
    idle = MotionPrimitive(type=MotionType.IDLE)
    move = MotionPrimitive(q_target=[0.1, 0.2], t_total=1.0)
    q.push(idle)
    q.push(move)
    assert q.try_pop() is idle
    assert q.try_pop() is move
    assert q.empty()
    assert q.try_pop() is None


def test_joint_info_keeps_fields():
    j = JointInfo(id=7, name="right_wrist", initial_joint_angle=0.5)
    assert j.id == 7
    assert j.name == "right_wrist"
    assert j.initial_joint_angle == 0.5
    assert j.min_angle < j.max_angle