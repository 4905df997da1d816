import pytest

from goal_mover.lateral_controller import LateralPID

GAINS = dict(kp=2.0, ki=0.0, kd=20.0, weight=1.0, rotation_limit=0.5)


def test_first_tick_has_no_derivative():
    pid = LateralPID()
    assert pid.compute_control(0.1, **GAINS) == pytest.approx(0.2)
    assert pid.derivative == 0.0


def test_derivative_uses_change_per_tick():
    pid = LateralPID()
    pid.compute_control(0.1, **GAINS)
    # 2 * 0.12 + 20 * 0.02 = 0.64, clamped
    assert pid.compute_control(0.12, **GAINS) == pytest.approx(0.5)
    assert pid.derivative == pytest.approx(0.02)

    # 2 * 0.12 + 20 * 0 = 0.24
    assert pid.compute_control(0.12, **GAINS) == pytest.approx(0.24)


def test_output_is_clamped_both_ways():
    pid = LateralPID()
    assert pid.compute_control(-1.0, **GAINS) == pytest.approx(-0.5)


def test_integral_and_weight():
    pid = LateralPID()
    gains = dict(GAINS, kp=0.0, ki=1.0, kd=0.0, weight=0.5)
    pid.compute_control(0.2, **gains)
    assert pid.compute_control(0.2, **gains) == pytest.approx(0.2)
    assert pid.get_diagnostics()["lateral_integral"] == pytest.approx(0.2)
    assert pid.error == pytest.approx(0.1)


def test_reset_clears_state():
    pid = LateralPID()
    pid.compute_control(0.1, **GAINS)
    pid.compute_control(0.3, **GAINS)
    pid.reset()

    assert pid.get_diagnostics() == {
        "lateral_error": 0.0,
        "lateral_integral": 0.0,
        "lateral_derivative": 0.0,
        "rotation": 0.0,
    }
    # No derivative kick after a reset either
    assert pid.compute_control(0.1, **GAINS) == pytest.approx(0.2)
