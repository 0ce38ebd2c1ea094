"""
Pruebas del motor de checkpoints (escalera de porcentajes y puntero).
"""
import math

from app.tracking.checkpoints import (
    CHECKPOINT_PERCENTAGES,
    Checkpoint,
    CheckpointTracker,
    check_next_checkpoint,
    generate_checkpoints,
)


def test_generate_checkpoints_splits_duration_in_ladder():
    checkpoints = generate_checkpoints(200)
    assert [cp.percentage for cp in checkpoints] == list(CHECKPOINT_PERCENTAGES)
    assert checkpoints[0] == Checkpoint(percentage=10, time=20.0)
    assert checkpoints[-1] == Checkpoint(percentage=100, time=200.0)


def test_generate_checkpoints_unknown_duration():
    assert generate_checkpoints(0) == []
    assert generate_checkpoints(-5) == []
    assert generate_checkpoints("600") == []
    assert generate_checkpoints(math.nan) == []


def test_checkpoint_requires_crossing_and_watch_time():
    checkpoints = generate_checkpoints(100)
    assert check_next_checkpoint(15, 12, 0, checkpoints) == (10, 1)
    # Cruzado pero con poco tiempo de visualización (adelantar no cuenta)
    assert check_next_checkpoint(15, 5, 0, checkpoints) == (None, 0)
    # Tiempo suficiente pero sin llegar al umbral
    assert check_next_checkpoint(9.9, 50, 0, checkpoints) == (None, 0)


def test_jump_credits_one_checkpoint_per_call():
    checkpoints = generate_checkpoints(100)
    index = 0
    reached = []
    for _ in range(3):
        percentage, index = check_next_checkpoint(55, 30, index, checkpoints)
        reached.append(percentage)
    assert reached == [10, 20, 30]
    assert index == 3


def test_invalid_inputs_mean_no_progress():
    checkpoints = generate_checkpoints(100)
    assert check_next_checkpoint("abc", 20, 0, checkpoints) == (None, 0)
    assert check_next_checkpoint(50, None, 0, checkpoints) == (None, 0)
    assert check_next_checkpoint(True, 20, 0, checkpoints) == (None, 0)
    assert check_next_checkpoint(100, 20, 10, checkpoints) == (None, 10)
    assert check_next_checkpoint(100, 20, 0, []) == (None, 0)


def test_tracker_keeps_pointer_when_duration_arrives_late():
    tracker = CheckpointTracker()
    assert tracker.next_checkpoint is None
    assert tracker.check_next(50, 60) is None

    tracker.set_duration(100)
    assert tracker.check_next(50, 60) == 10
    tracker.set_duration(120)
    assert tracker.next_index == 1
    assert tracker.next_checkpoint == Checkpoint(percentage=20, time=24.0)


def test_tracker_restore_first_unreached():
    tracker = CheckpointTracker(100)
    tracker.restore([10, 20, 30], stored_time=35)
    assert tracker.next_index == 3

    tracker.restore([10, 30], stored_time=35)
    assert tracker.next_index == 1

    tracker.restore(CHECKPOINT_PERCENTAGES, stored_time=100)
    assert tracker.next_checkpoint is None
    assert tracker.reached_count == len(CHECKPOINT_PERCENTAGES)


def test_tracker_restore_inconsistent_record_starts_over():
    tracker = CheckpointTracker()
    tracker.restore([10, 20], stored_time=0, duration=100)
    assert tracker.next_index == 0


def test_tracker_reset():
    tracker = CheckpointTracker(100)
    tracker.restore([10, 20], stored_time=25)
    tracker.reset()
    assert tracker.next_index == 0
    assert tracker.duration == 100
