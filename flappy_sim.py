import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

# ----------------------- Global Configuration -----------------------
# Positions are in play-field pixels, time in simulation units.
FIXED_DELTA = 4.0          # simulation units advanced per fixed step

GROUND_Y = 480.0
GROUND_REST_Y = 469.0      # where the bird is left after touching the ground

BIRD_START_Y = 228.0
BIRD_LEFT_X = 82
BIRD_RIGHT_X = 114
BIRD_HEIGHT = 24
GRAVITY = 0.05
FLAP_IMPULSE = -2.0

PIPE_WIDTH = 52
PIPE_GAP_HEIGHT = 140
GAP_TOLERANCE = 10
PIPE_START_X = 400
PIPE_SPAWN_TICKS = 50
SCROLL_SPEED = 0.55
GAP_TOP_MIN = 130
GAP_TOP_SPAN = 150         # gap_top is drawn from [GAP_TOP_MIN, GAP_TOP_MIN + GAP_TOP_SPAN)

__all__ = [
    "FIXED_DELTA",
    "GROUND_Y",
    "GROUND_REST_Y",
    "BIRD_START_Y",
    "BIRD_LEFT_X",
    "BIRD_RIGHT_X",
    "BIRD_HEIGHT",
    "GRAVITY",
    "FLAP_IMPULSE",
    "PIPE_WIDTH",
    "PIPE_GAP_HEIGHT",
    "GAP_TOLERANCE",
    "PIPE_START_X",
    "PIPE_SPAWN_TICKS",
    "SCROLL_SPEED",
    "GAP_TOP_MIN",
    "GAP_TOP_SPAN",
    "SimConfig",
    "RandomGapSource",
    "SequenceGapSource",
    "Bird",
    "Pipe",
    "PipeManager",
    "Contact",
    "classify_contact",
    "ScoreTracker",
    "GameState",
    "PipeView",
    "Frame",
    "Simulation",
    "Trace",
    "run_headless",
]


@dataclass(frozen=True)
class SimConfig:
    """
    Every tunable of the simulation in one immutable bundle.
    Defaults are the module constants above.
    """
    fixed_delta: float = FIXED_DELTA
    ground_y: float = GROUND_Y
    ground_rest_y: float = GROUND_REST_Y
    bird_start_y: float = BIRD_START_Y
    bird_left_x: float = BIRD_LEFT_X
    bird_right_x: float = BIRD_RIGHT_X
    bird_height: float = BIRD_HEIGHT
    gravity: float = GRAVITY
    flap_impulse: float = FLAP_IMPULSE
    pipe_width: float = PIPE_WIDTH
    pipe_gap_height: float = PIPE_GAP_HEIGHT
    gap_tolerance: float = GAP_TOLERANCE
    pipe_start_x: float = PIPE_START_X
    pipe_spawn_ticks: int = PIPE_SPAWN_TICKS
    scroll_speed: float = SCROLL_SPEED

    def __post_init__(self):
        positive = ("fixed_delta", "ground_y", "bird_height", "gravity",
                    "pipe_width", "pipe_gap_height", "pipe_spawn_ticks", "scroll_speed")
        for name in positive:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)!r}")
        if self.bird_right_x <= self.bird_left_x:
            raise ValueError("bird_right_x must be greater than bird_left_x")
        if not 0 <= self.ground_rest_y <= self.ground_y:
            raise ValueError("ground_rest_y must lie within [0, ground_y]")
        if self.flap_impulse >= 0:
            raise ValueError("flap_impulse must be negative (upwards)")
        # Only one pipe may overlap the bird at a time, otherwise checking
        # the nearest pipe alone misses collisions.
        if self.pipe_spacing <= self.pipe_width + self.bird_width:
            raise ValueError(
                f"pipes are spawned {self.pipe_spacing:.1f}px apart, which must exceed "
                f"pipe width + bird width ({self.pipe_width + self.bird_width:.1f}px)"
            )

    @property
    def bird_width(self):
        return self.bird_right_x - self.bird_left_x

    @property
    def pipe_spacing(self):
        """Horizontal distance between two consecutively spawned pipes."""
        return self.pipe_spawn_ticks * self.scroll_speed * self.fixed_delta


# ----------------------- Gap Sources -----------------------
class RandomGapSource:
    """Uniform integer gap tops from a numpy Generator (seedable)."""

    def __init__(self, seed=None, low=GAP_TOP_MIN, span=GAP_TOP_SPAN):
        self.rng = np.random.default_rng(seed)
        self.low = low
        self.span = span

    def next_gap_top(self):
        return float(self.low + self.rng.integers(0, self.span))


class SequenceGapSource:
    """Replays a fixed sequence of gap tops, cycling when exhausted."""

    def __init__(self, values):
        values = [float(v) for v in values]
        if not values:
            raise ValueError("SequenceGapSource needs at least one value")
        self._values = itertools.cycle(values)

    def next_gap_top(self):
        return next(self._values)


# ----------------------- Bird -----------------------
class Bird:
    """
    The player's bird. Only the vertical axis moves; the horizontal span
    is fixed by the config.
    """

    def __init__(self, config):
        self.config = config
        self.reset()

    def reset(self):
        self.y = self.config.bird_start_y
        self.prev_y = self.y
        self.dy = 0.0

    def flap(self):
        """Overwrite the vertical velocity with the flap impulse."""
        self.dy = self.config.flap_impulse

    def update(self, delta):
        """
        Integrate one step of gravity.
        :return: True if the bird hit the ground during this step.
        """
        cfg = self.config
        self.prev_y = self.y
        self.dy += cfg.gravity * delta
        self.y = self.prev_y + self.dy * delta

        if self.y > cfg.ground_y:
            self.y = cfg.ground_rest_y
            self.dy = 0.0
            return True
        if self.y < 0:
            # ceiling is soft
            self.y = 0.0
            self.dy = 0.0
        return False

    def draw(self, interp):
        return self.prev_y + (self.y - self.prev_y) * interp


# ----------------------- Pipes -----------------------
@dataclass
class Pipe:
    """A pair of pipes sharing one leading edge, with a gap in between."""
    x: float
    gap_top: float
    width: float = PIPE_WIDTH
    gap_height: float = PIPE_GAP_HEIGHT
    prev_x: Optional[float] = None
    scored: bool = False

    def __post_init__(self):
        if self.prev_x is None:
            self.prev_x = self.x

    @property
    def right(self):
        return self.x + self.width

    @property
    def gap_bottom(self):
        return self.gap_top + self.gap_height

    def update(self, delta, speed):
        """Move the pipe to the left."""
        self.prev_x = self.x
        self.x -= speed * delta

    def off_screen(self):
        return self.x + self.width < 0

    def draw(self, interp):
        return self.prev_x + (self.x - self.prev_x) * interp


class PipeManager:
    """
    Spawns, scrolls and culls pipes. `pipes` is kept in spawn order,
    which is also left-to-right order on screen.
    """

    def __init__(self, config, gap_source):
        self.config = config
        self.gap_source = gap_source
        self.pipes = []
        self.spawn_timer = 0

    def reset(self):
        self.pipes = []
        self.spawn_timer = 0

    def clear(self):
        self.pipes = []

    def spawn(self):
        cfg = self.config
        pipe = Pipe(
            x=cfg.pipe_start_x,
            gap_top=self.gap_source.next_gap_top(),
            width=cfg.pipe_width,
            gap_height=cfg.pipe_gap_height,
        )
        self.pipes.append(pipe)
        logger.debug("spawned pipe at x=%s gap_top=%s", pipe.x, pipe.gap_top)
        return pipe

    def update(self, delta):
        for pipe in self.pipes:
            pipe.update(delta, self.config.scroll_speed)

        live = [pipe for pipe in self.pipes if not pipe.off_screen()]
        if len(live) != len(self.pipes):
            logger.debug("culled %d pipe(s)", len(self.pipes) - len(live))
        self.pipes = live

        # Spawned after scrolling so a new pipe starts exactly at pipe_start_x.
        if self.spawn_timer >= self.config.pipe_spawn_ticks:
            self.spawn()
            self.spawn_timer = 0
        self.spawn_timer += 1

    def nearest(self, bird_left_x):
        """Front-most pipe the bird has not yet fully passed, or None."""
        for pipe in self.pipes:
            if pipe.right >= bird_left_x:
                return pipe
        return None


# ----------------------- Collision -----------------------
class Contact(Enum):
    CLEAR = "clear"      # pipe does not overlap the bird horizontally
    PASSING = "passing"  # bird is inside the gap
    CRASH = "crash"


def classify_contact(bird_y, pipe, config):
    """Classify the bird's vertical position against one pipe."""
    overlaps = pipe.x <= config.bird_right_x and pipe.right >= config.bird_left_x
    if not overlaps:
        return Contact.CLEAR

    if (pipe.gap_top < bird_y
            and bird_y + config.bird_height < pipe.gap_bottom + config.gap_tolerance):
        return Contact.PASSING
    return Contact.CRASH


# ----------------------- Score -----------------------
class ScoreTracker:
    def __init__(self):
        self.score = 0
        self.high_score = 0
        self.last_score = 0

    def increment(self):
        self.score += 1

    def reset(self):
        self.score = 0

    def fold(self):
        """Close out a run: remember it, update the high score, zero the score."""
        self.last_score = self.score
        self.high_score = max(self.high_score, self.score)
        self.score = 0


# ----------------------- State / Simulation -----------------------
class GameState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DEAD = "dead"


@dataclass(frozen=True)
class PipeView:
    x: float
    gap_top: float
    gap_height: float
    width: float


@dataclass(frozen=True)
class Frame:
    """Everything a renderer needs for one frame. Built by Simulation.draw()."""
    state: GameState
    bird_y: float
    pipes: tuple
    score: int
    high_score: int
    last_score: int

    @property
    def score_text(self):
        return f"Score: {self.score}" if self.state is GameState.RUNNING else ""

    @property
    def high_score_text(self):
        return f"Highscore: {self.high_score}"


class Simulation:
    """
    Owns the bird, the pipes, the score and the game state.

    Collaborators only call begin(), revive(), update(), draw() and flap(),
    and are told about state changes through add_listener().
    """

    def __init__(self, config=None, gap_source=None):
        self.config = config if config is not None else SimConfig()
        self.gap_source = gap_source if gap_source is not None else RandomGapSource()
        self.bird = Bird(self.config)
        self.pipe_manager = PipeManager(self.config, self.gap_source)
        self.scores = ScoreTracker()
        self.state = GameState.IDLE
        self.steps = 0
        self._listeners = []

    @property
    def pipes(self):
        return self.pipe_manager.pipes

    @property
    def score(self):
        return self.scores.score

    @property
    def high_score(self):
        return self.scores.high_score

    def add_listener(self, callback):
        """Register callback(old_state, new_state), called after every transition."""
        self._listeners.append(callback)

    def remove_listener(self, callback):
        self._listeners.remove(callback)

    def _transition(self, new_state):
        old_state = self.state
        self.state = new_state
        logger.info("state %s -> %s", old_state.value, new_state.value)
        for callback in list(self._listeners):
            callback(old_state, new_state)

    # ------------------- Entry points -------------------
    def begin(self):
        """Start a run from Idle, or restart one after death."""
        if self.state is GameState.RUNNING:
            logger.debug("begin() ignored, already running")
            return
        self.bird.reset()
        self.pipe_manager.reset()
        self.scores.reset()
        self.steps = 0
        self._transition(GameState.RUNNING)

    def revive(self):
        if self.state is not GameState.DEAD:
            logger.debug("revive() ignored in state %s", self.state.value)
            return
        self.begin()

    def flap(self):
        if self.state is not GameState.RUNNING:
            return
        self.bird.flap()

    def update(self, delta):
        """Advance one fixed step: bird, pipes, collision/scoring, state."""
        if delta <= 0 or self.state is not GameState.RUNNING:
            return
        self.steps += 1

        grounded = self.bird.update(delta)
        self.pipe_manager.update(delta)
        crashed = self._check_collision()

        if grounded:
            self._die("ground")
        elif crashed:
            self._die("pipe")

    def _check_collision(self):
        """Score or crash against the nearest pipe. Returns True on a crash."""
        pipe = self.pipe_manager.nearest(self.config.bird_left_x)
        if pipe is None:
            return False

        contact = classify_contact(self.bird.y, pipe, self.config)
        if contact is Contact.CLEAR:
            pipe.scored = False
        elif contact is Contact.PASSING:
            if not pipe.scored:
                self.scores.increment()
                pipe.scored = True
        else:
            return True
        return False

    def _die(self, cause):
        self.scores.fold()
        self.pipe_manager.clear()
        logger.info(
            "run ended by %s after %d steps: score=%d high_score=%d",
            cause, self.steps, self.scores.last_score, self.scores.high_score,
        )
        self._transition(GameState.DEAD)

    def draw(self, interp):
        """Interpolated snapshot for presentation. Never mutates state."""
        interp = min(max(interp, 0.0), 1.0)
        pipes = tuple(
            PipeView(x=pipe.draw(interp), gap_top=pipe.gap_top,
                     gap_height=pipe.gap_height, width=pipe.width)
            for pipe in self.pipe_manager.pipes
        )
        return Frame(
            state=self.state,
            bird_y=self.bird.draw(interp),
            pipes=pipes,
            score=self.scores.score,
            high_score=self.scores.high_score,
            last_score=self.scores.last_score,
        )


# ----------------------- Headless Runs -----------------------
@dataclass
class Trace:
    bird_y: np.ndarray
    score: np.ndarray
    death_step: int = None


def run_headless(simulation, steps, flap_steps=()):
    """
    Drive a simulation for up to `steps` fixed steps without a loop driver
    or renderer, flapping before each step listed in `flap_steps` (1-based).
    Starts a run first if the simulation is not running.
    Stops early on death.
    """
    if simulation.state is not GameState.RUNNING:
        simulation.begin()
    flap_steps = set(flap_steps)
    delta = simulation.config.fixed_delta

    bird_y = np.zeros(steps)
    score = np.zeros(steps, dtype=int)
    death_step = None
    for step in range(1, steps + 1):
        if step in flap_steps:
            simulation.flap()
        simulation.update(delta)
        bird_y[step - 1] = simulation.bird.y
        if simulation.state is GameState.DEAD:
            # the run's score was folded away on death
            score[step - 1] = simulation.scores.last_score
            death_step = step
            bird_y = bird_y[:step]
            score = score[:step]
            break
        score[step - 1] = simulation.scores.score
    return Trace(bird_y=bird_y, score=score, death_step=death_step)
