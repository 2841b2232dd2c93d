"""
Render every slide of a carousel.

Stage 1: resolve background + zones per slide (asset > template > color)
Stage 2: compose slides in parallel on a thread pool
Stage 3: write all results back into one new carousel aggregate
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from carousel_studio.config import get_settings
from carousel_studio.domain import CarouselOutput, CarouselSlide, CarouselTemplate, Fresh, TextZone, utcnow
from carousel_studio.errors import RenderError
from carousel_studio.services.composer import FontLoader, compose_slide

logger = logging.getLogger(__name__)


@dataclass
class SlideRenderJob:
    index: int
    slide: CarouselSlide
    background: Optional[bytes] = None
    zones: list[TextZone] = field(default_factory=list)


@dataclass
class RenderReport:
    carousel: CarouselOutput
    errors: list[RenderError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def failed_indices(self) -> list[int]:
        return [e.slide_index for e in self.errors]


def plan_render_jobs(
    carousel: CarouselOutput,
    template: Optional[CarouselTemplate] = None,
    assets: Optional[Mapping[str, bytes]] = None,
) -> list[SlideRenderJob]:
    """Pair each slide with its template slide (by position) and background bytes."""
    assets = assets or {}
    jobs = []

    for i, slide in enumerate(carousel.ordered_slides()):
        template_slide = template.slide_at(i) if template else None
        background = template_slide.background if template_slide else None
        zones = list(template_slide.text_zones) if template_slide else []

        if slide.background_ref:
            asset = assets.get(slide.background_ref)
            if asset:
                background = asset
            else:
                logger.warning(f"Asset {slide.background_ref} for slide {i} not found, using template/color background")

        jobs.append(SlideRenderJob(index=i, slide=slide, background=background, zones=zones))

    return jobs


def render_job(job: SlideRenderJob, width: int, height: int) -> bytes:
    logger.debug(f"Rendering slide {job.index}")
    return compose_slide(
        job.background,
        job.zones,
        job.slide,
        slide_width=width,
        slide_height=height,
        slide_index=job.index,
        fonts=FontLoader(),
    )


def apply_results(carousel: CarouselOutput, results: Mapping[int, bytes]) -> CarouselOutput:
    """Store fresh PNGs for rendered slides; other slides keep their cache."""
    slides = [
        replace(slide, render_cache=Fresh(results[i])) if i in results else slide
        for i, slide in enumerate(carousel.ordered_slides())
    ]
    return replace(carousel, slides=slides, updated_at=utcnow())


async def render_carousel(
    carousel: CarouselOutput,
    template: Optional[CarouselTemplate] = None,
    assets: Optional[Mapping[str, bytes]] = None,
    executor: Optional[ThreadPoolExecutor] = None,
) -> RenderReport:
    """Render all slides; failures are reported per slide, not raised."""
    settings = get_settings()
    jobs = plan_render_jobs(carousel, template, assets)
    start_time = time.perf_counter()

    own_executor = executor is None
    if own_executor:
        executor = ThreadPoolExecutor(max_workers=max(1, settings.render_workers))

    try:
        loop = asyncio.get_running_loop()
        futures = [
            loop.run_in_executor(executor, render_job, job, settings.slide_width, settings.slide_height)
            for job in jobs
        ]
        outcomes = await asyncio.gather(*futures, return_exceptions=True)
    except asyncio.CancelledError:
        if own_executor:
            # queued slides are dropped; running ones finish off-loop
            executor.shutdown(wait=False, cancel_futures=True)
            own_executor = False
        raise
    finally:
        if own_executor:
            executor.shutdown(wait=True)

    results = {}
    errors = []
    for job, outcome in zip(jobs, outcomes):
        if isinstance(outcome, RenderError):
            logger.error(f"Render failed for carousel {carousel.id}: {outcome}")
            errors.append(outcome)
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results[job.index] = outcome

    elapsed = time.perf_counter() - start_time
    logger.info(f"Rendered {len(results)}/{len(jobs)} slides of carousel {carousel.id} in {elapsed:.2f}s")
    return RenderReport(carousel=apply_results(carousel, results), errors=errors)


def render_slide(
    carousel: CarouselOutput,
    index: int,
    template: Optional[CarouselTemplate] = None,
    assets: Optional[Mapping[str, bytes]] = None,
) -> CarouselOutput:
    """Render one slide synchronously; raises RenderError on failure."""
    settings = get_settings()
    jobs = plan_render_jobs(carousel, template, assets)
    if not 0 <= index < len(jobs):
        raise RenderError(index, "slide index out of range")
    png = render_job(jobs[index], settings.slide_width, settings.slide_height)
    return apply_results(carousel, {index: png})
