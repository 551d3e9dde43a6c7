import logging
from typing import Protocol

from flappy_sim import GameState, Simulation

logger = logging.getLogger(__name__)

STEP_MS = 1000.0 / 60.0       # wall-clock milliseconds per fixed step
MAX_STEPS_PER_FRAME = 240     # backlog beyond this is dropped

__all__ = ["STEP_MS", "MAX_STEPS_PER_FRAME", "Renderer", "GameLoop"]


class Renderer(Protocol):
    def render(self, frame):
        """Present one Frame. Must not call back into the simulation."""


class GameLoop:
    """
    Fixed-timestep driver. Wall-clock frame times go into an accumulator
    which is drained in whole steps of `step_ms`; each step advances the
    simulation by its config's fixed_delta. Every tick ends with exactly one
    interpolated draw.
    """

    def __init__(self, simulation=None, renderer=None,
                 step_ms=STEP_MS, max_steps_per_frame=MAX_STEPS_PER_FRAME):
        if step_ms <= 0:
            raise ValueError("step_ms must be positive")
        self.simulation = simulation if simulation is not None else Simulation()
        self.renderer = renderer
        self.step_ms = step_ms
        self.max_steps_per_frame = max_steps_per_frame
        self.accumulator = 0.0
        self.simulation.add_listener(self._on_transition)

    def _on_transition(self, old_state, new_state):
        # Entering Running must not replay time spent in Idle/Dead;
        # leaving it drops whatever was pending.
        self.accumulator = 0.0

    def tick(self, frame_time):
        """
        Advance by one external animation frame.
        :param frame_time: milliseconds elapsed since the previous frame.
        :return: the Frame handed to the renderer.
        """
        sim = self.simulation
        if sim.state is GameState.RUNNING and frame_time > 0:
            self.accumulator += frame_time
            steps = 0
            while self.accumulator >= self.step_ms:
                sim.update(sim.config.fixed_delta)
                self.accumulator -= self.step_ms
                steps += 1
                if sim.state is not GameState.RUNNING:
                    self.accumulator = 0.0
                    break
                if steps >= self.max_steps_per_frame and self.accumulator >= self.step_ms:
                    logger.warning(
                        "dropping %.1fms of simulation backlog after %d steps",
                        self.accumulator, steps,
                    )
                    self.accumulator = 0.0
                    break

        if sim.state is GameState.RUNNING:
            interp = self.accumulator / self.step_ms
        else:
            # frozen: show where the last step left everything
            interp = 1.0
        frame = sim.draw(interp)
        if self.renderer is not None:
            self.renderer.render(frame)
        return frame
