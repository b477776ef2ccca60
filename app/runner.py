## app/runner.py

import logging
import time
from typing import Callable, Iterator, List, Optional

from errors import AuthError, ComicError, PerPanelImageError
from models import GenerationOptions, RunProgress, Storyboard
from pipeline import GeminiClient, generate_panel_image, generate_storyboard

logger = logging.getLogger(__name__)


class ComicRun:
    """
    Everything one generation run owns: its options, client, panels, progress and errors.
    A new submission builds a new ComicRun; nothing is shared between runs.
    """

    def __init__(self, options: GenerationOptions, client: GeminiClient, sleep: Callable[[float], None] = time.sleep):
        self.options = options
        self.client = client
        self.sleep = sleep
        self.storyboard: Optional[Storyboard] = None
        self.progress: Optional[RunProgress] = None
        self.panel_errors: List[PerPanelImageError] = []
        self.fatal_error: Optional[ComicError] = None

    @property
    def panels(self):
        return self.storyboard.panels if self.storyboard else []

    @property
    def stopped(self) -> bool:
        """A fatal error ended the run; pending panels will never be generated."""
        return self.fatal_error is not None

    @property
    def finished(self) -> bool:
        return self.fatal_error is not None or (
            bool(self.panels) and all(p.status != "pending" for p in self.panels)
        )

    def _report(self, step: str, percentage: float, current: Optional[int] = None) -> RunProgress:
        total = len(self.panels) or None
        self.progress = RunProgress(step=step, percentage=percentage, current_panel=current, total_panels=total)
        return self.progress


def run_comic(run: ComicRun) -> Iterator[RunProgress]:
    """
    Drive a run to completion, yielding progress as each stage advances.
    Scene generation errors and AuthError are fatal and stored on run.fatal_error;
    any other image error is recorded against its panel and the loop moves on.
    """
    yield run._report("Analyzing story & generating scene prompts...", 0)
    try:
        run.storyboard = generate_storyboard(run.client, run.options)
    except ComicError as e:
        logger.error("Comic generation failed: %s", e)
        run.fatal_error = e
        return

    total = len(run.panels)
    yield run._report(f"Generated {total} prompts. Starting image generation...", 10)

    for i, panel in enumerate(run.panels, start=1):
        yield run._report(f"Generating image for panel {panel.index}...", 10 + (i - 1) / total * 90, panel.index)
        try:
            panel.set_image(generate_panel_image(run.client, panel, run.options, sleep=run.sleep))
        except AuthError as e:
            logger.error("Aborting run on panel %d: %s", panel.index, e)
            panel.set_error(str(e))
            run.fatal_error = e
            return
        except ComicError as e:
            logger.error("Error generating image for panel %d: %s", panel.index, e)
            panel.set_error(str(e))
            run.panel_errors.append(PerPanelImageError(panel.index, e))
        yield run._report(f"Finished panel {panel.index}.", 10 + i / total * 90, panel.index)

    yield run._report("Comic generation complete!", 100, total)
