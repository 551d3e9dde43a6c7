import pytest

from flappy_sim import (
    FLAP_IMPULSE,
    GROUND_REST_Y,
    GROUND_Y,
    Bird,
    GameState,
    SequenceGapSource,
    SimConfig,
    Simulation,
)


@pytest.fixture
def bird():
    return Bird(SimConfig())


def test_gravity_step_from_rest(bird):
    assert bird.y == 228
    assert bird.dy == 0

    assert bird.update(1) is False

    assert bird.dy == pytest.approx(0.05)
    assert bird.y == pytest.approx(228.05)
    assert bird.prev_y == 228


def test_position_integrates_from_previous_position(bird):
    bird.dy = 1.0
    bird.update(4)
    # dy becomes 1.0 + 0.05 * 4 = 1.2 before it is applied
    assert bird.y == pytest.approx(228 + 1.2 * 4)


def test_flap_overwrites_velocity(bird):
    bird.dy = 7.5
    bird.flap()
    assert bird.dy == FLAP_IMPULSE
    bird.flap()
    assert bird.dy == FLAP_IMPULSE


def test_ground_contact_clamps_and_stops(bird):
    bird.y = 481
    assert bird.update(1) is True
    assert bird.y == GROUND_REST_Y
    assert bird.dy == 0


def test_ceiling_is_soft(bird):
    bird.y = 1.0
    bird.dy = -5.0
    assert bird.update(1) is False
    assert bird.y == 0
    assert bird.dy == 0


def test_draw_interpolates_without_mutating(bird):
    bird.prev_y = 100.0
    bird.y = 110.0
    bird.dy = 3.0

    assert bird.draw(0.0) == 100.0
    assert bird.draw(0.5) == 105.0
    assert (bird.prev_y, bird.y, bird.dy) == (100.0, 110.0, 3.0)


def test_reset_restores_start(bird):
    bird.y, bird.prev_y, bird.dy = 10.0, 12.0, -1.0
    bird.reset()
    assert (bird.y, bird.prev_y, bird.dy) == (228, 228, 0)


@pytest.mark.parametrize("flap_every", [3, 9, 14, 1000])
def test_bird_stays_within_field(flap_every):
    sim = Simulation(gap_source=SequenceGapSource([130, 279, 200]))
    sim.begin()
    for step in range(1, 2000):
        if step % flap_every == 0:
            sim.flap()
        sim.update(sim.config.fixed_delta)
        assert 0 <= sim.bird.y <= GROUND_Y
        if sim.state is GameState.DEAD:
            break
