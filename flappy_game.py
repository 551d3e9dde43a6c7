import argparse
import logging
import sys

import pygame

from flappy_loop import GameLoop
from flappy_sim import (
    BIRD_HEIGHT,
    BIRD_LEFT_X,
    BIRD_RIGHT_X,
    GROUND_Y,
    GameState,
    RandomGapSource,
    Simulation,
)

logger = logging.getLogger(__name__)

# ----------------------- Presentation Configuration -----------------------
WIDTH, HEIGHT = 400, 560
GROUND_TOP = int(GROUND_Y + BIRD_HEIGHT)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
GREEN = (0, 255, 0)
BLUE = (135, 206, 235)
BROWN = (222, 184, 135)

FPS = 60
FONT_SIZE = 24
GROUND_STRIPE = 24
GROUND_SCROLL = 2          # pixels per frame while the background animates

FLAP_KEYS = (pygame.K_SPACE, pygame.K_UP)

__all__ = [
    "WIDTH",
    "HEIGHT",
    "FPS",
    "PygameRenderer",
    "dispatch_event",
    "press",
    "FlappyGame",
    "parse_args",
    "main",
]


class PygameRenderer:
    """
    Paints Frames onto a pygame surface. It only reads the Frame it is
    given and never touches the simulation.
    """

    def __init__(self, surface, font=None):
        self.surface = surface
        self.font = font
        self.animating = False
        self.ground_offset = 0

    def set_animating(self, on):
        """Background/ground scrolling follows the Running state."""
        self.animating = on

    def render(self, frame):
        self.surface.fill(BLUE)

        for pipe in frame.pipes:
            x = int(pipe.x)
            w = int(pipe.width)
            gap_bottom = int(pipe.gap_top + pipe.gap_height)
            pygame.draw.rect(self.surface, GREEN, (x, 0, w, int(pipe.gap_top)))
            pygame.draw.rect(self.surface, GREEN, (x, gap_bottom, w, GROUND_TOP - gap_bottom))

        self.draw_ground()

        bird_rect = pygame.Rect(BIRD_LEFT_X, int(frame.bird_y), BIRD_RIGHT_X - BIRD_LEFT_X, BIRD_HEIGHT)
        pygame.draw.rect(self.surface, BLACK, bird_rect)

        if self.font is not None:
            self.draw_scoreboard(frame)
            self.draw_overlay(frame)

    def draw_ground(self):
        if self.animating:
            self.ground_offset = (self.ground_offset + GROUND_SCROLL) % (GROUND_STRIPE * 2)
        pygame.draw.rect(self.surface, BROWN, (0, GROUND_TOP, WIDTH, HEIGHT - GROUND_TOP))
        for x in range(-self.ground_offset, WIDTH, GROUND_STRIPE * 2):
            pygame.draw.rect(self.surface, BLACK, (x, GROUND_TOP, GROUND_STRIPE, 4))

    def draw_scoreboard(self, frame):
        """Draw the score and high score at the top-left."""
        lines = [frame.score_text, frame.high_score_text]
        x, y = 10, 10
        for line in lines:
            if line:
                text_surf = self.font.render(line, True, WHITE)
                self.surface.blit(text_surf, (x, y))
            y += 20

    def draw_overlay(self, frame):
        if frame.state is GameState.IDLE:
            messages = ["Press SPACE to start"]
        elif frame.state is GameState.DEAD:
            messages = [
                f"Game Over! Score: {frame.last_score}",
                "Press R to Restart",
            ]
        else:
            return

        y = HEIGHT // 2 - len(messages) * 12
        for msg in messages:
            text_surf = self.font.render(msg, True, WHITE)
            self.surface.blit(text_surf, (WIDTH // 2 - text_surf.get_width() // 2, y))
            y += text_surf.get_height() + 4


def dispatch_event(simulation, event):
    """
    Map one pygame event onto the simulation's entry points.
    :return: False if the game should quit, True otherwise.
    """
    if event.type == pygame.QUIT:
        return False

    if event.type == pygame.KEYDOWN:
        if event.key == pygame.K_ESCAPE:
            return False
        if event.key in FLAP_KEYS:
            press(simulation)
        elif event.key == pygame.K_r:
            simulation.revive()
    elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
        press(simulation)
    return True


def press(simulation):
    """The single 'button': start, flap or restart depending on the state."""
    if simulation.state is GameState.IDLE:
        simulation.begin()
    elif simulation.state is GameState.RUNNING:
        simulation.flap()
    else:
        simulation.revive()


class FlappyGame:
    """
    Window, clock and input around a GameLoop.
    """

    def __init__(self, caption="Flappy Bird", seed=None, fps=FPS):
        pygame.init()
        pygame.font.init()

        self.screen = pygame.display.set_mode((WIDTH, HEIGHT))
        pygame.display.set_caption(caption)

        self.clock = pygame.time.Clock()
        self.fps = fps
        self.font = pygame.font.SysFont(None, FONT_SIZE)

        self.simulation = Simulation(gap_source=RandomGapSource(seed))
        self.renderer = PygameRenderer(self.screen, self.font)
        self.loop = GameLoop(self.simulation, self.renderer)
        self.simulation.add_listener(self.on_transition)

    def on_transition(self, old_state, new_state):
        self.renderer.set_animating(new_state is GameState.RUNNING)
        if new_state is GameState.DEAD:
            logger.info("game over, high score %d", self.simulation.high_score)

    def run(self):
        """Main loop: one tick of the GameLoop per displayed frame."""
        running = True
        while running:
            frame_ms = self.clock.tick(self.fps)
            for event in pygame.event.get():
                if not dispatch_event(self.simulation, event):
                    running = False
                    break
            if not running:
                break
            self.loop.tick(frame_ms)
            pygame.display.flip()
        pygame.quit()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Play Flappy Bird.")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the pipe gap generator.")
    parser.add_argument("--fps", type=int, default=FPS,
                        help="Frame rate cap (the simulation step rate is fixed).")
    parser.add_argument("--log-level", default="info",
                        choices=["debug", "info", "warning", "error"])
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    game = FlappyGame(seed=args.seed, fps=args.fps)
    game.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
