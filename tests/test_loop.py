import logging

import pytest

from flappy_loop import STEP_MS, GameLoop
from flappy_sim import GameState, SequenceGapSource, Simulation


class RecordingRenderer:
    def __init__(self):
        self.frames = []

    def render(self, frame):
        self.frames.append(frame)


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def loop(renderer):
    sim = Simulation(gap_source=SequenceGapSource([200]))
    return GameLoop(sim, renderer, step_ms=10)


def test_default_loop_owns_a_simulation():
    loop = GameLoop()
    assert isinstance(loop.simulation, Simulation)
    assert loop.step_ms == STEP_MS
    assert loop.simulation.state is GameState.IDLE


def test_idle_tick_only_draws(loop, renderer):
    frame = loop.tick(100)
    assert loop.simulation.steps == 0
    assert loop.accumulator == 0
    assert renderer.frames == [frame]
    assert frame.state is GameState.IDLE


def test_whole_steps_then_one_draw(loop, renderer):
    sim = loop.simulation
    sim.begin()

    frame = loop.tick(35)

    assert sim.steps == 3
    assert loop.accumulator == pytest.approx(5)
    assert len(renderer.frames) == 1
    assert frame.bird_y == pytest.approx(sim.bird.prev_y + (sim.bird.y - sim.bird.prev_y) * 0.5)


def test_leftover_carries_into_next_frame(loop):
    loop.simulation.begin()
    loop.tick(7)
    assert loop.simulation.steps == 0
    loop.tick(7)
    assert loop.simulation.steps == 1
    assert loop.accumulator == pytest.approx(4)


def test_non_positive_frame_time_adds_nothing(loop):
    loop.simulation.begin()
    loop.tick(0)
    loop.tick(-50)
    assert loop.simulation.steps == 0
    assert loop.accumulator == 0


def test_accumulator_reset_on_run_start(loop):
    sim = loop.simulation
    sim.begin()
    loop.tick(8)
    assert loop.accumulator == 8

    sim.bird.y = 481
    sim.update(4)
    assert sim.state is GameState.DEAD
    loop.accumulator = 9.0

    sim.revive()
    assert loop.accumulator == 0


def test_death_stops_the_frame(loop, renderer):
    sim = loop.simulation
    sim.begin()
    sim.bird.y = 481

    frame = loop.tick(100)

    assert sim.steps == 1
    assert sim.state is GameState.DEAD
    assert loop.accumulator == 0
    assert frame.state is GameState.DEAD
    assert frame.bird_y == 469
    assert len(renderer.frames) == 1

    loop.tick(100)
    assert sim.steps == 1


def test_backlog_is_capped(renderer, caplog):
    sim = Simulation(gap_source=SequenceGapSource([200]))
    loop = GameLoop(sim, renderer, step_ms=10, max_steps_per_frame=5)
    sim.begin()

    with caplog.at_level(logging.WARNING, logger="flappy_loop"):
        loop.tick(1000)

    assert sim.steps == 5
    assert loop.accumulator == 0
    assert "backlog" in caplog.text


def test_loop_without_renderer_returns_frame():
    loop = GameLoop(Simulation(gap_source=SequenceGapSource([200])))
    frame = loop.tick(16)
    assert frame.high_score_text == "Highscore: 0"


def test_rejects_bad_step():
    with pytest.raises(ValueError):
        GameLoop(step_ms=0)
