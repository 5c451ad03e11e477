"""Placement pipeline orchestration.

Grid build -> terrain analysis -> per-request suitability and mask
synthesis. Requests only read the finished terrain and each owns its
suitability buffer, mask and random substream, so they can run in any
order or in parallel without changing the output.
"""

import zlib
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray

from ..exceptions import DataIntegrityError, UnknownObjectTypeError
from ..heightmap.sources import HeightSource, as_height_source
from ..types import DistributionStrategy
from .config import PlacementConfig
from .distribution import DistributionContext, resolve_strategy, synthesize_mask
from .grid import Grid
from .requests import ObjectRequest
from .rules import ObjectDefinition, RuleTable, default_rule_table
from .spacing import MaskPostProcessor, SpacingPostProcessor
from .suitability import compute_suitability
from .terrain import TerrainMap, analyze_terrain

logger = structlog.get_logger()


@dataclass
class PlacementMask:
    """Binary permission grid for one object type."""

    object_type: str
    cells: NDArray[np.uint8]
    width: float
    height: float
    grid_size: int

    @property
    def placed_count(self) -> int:
        return int(np.count_nonzero(self.cells))

    @property
    def coverage(self) -> float:
        """Fraction of cells where the type may be placed."""
        return self.placed_count / self.cells.size


class PlacementResult:
    """Masks produced by a run plus per-request warnings and failures."""

    def __init__(self, grid: Grid, terrain: TerrainMap, seed: int) -> None:
        self.grid = grid
        self.terrain = terrain
        self.seed = seed
        self.masks: dict[str, PlacementMask] = {}
        self.warnings: list[str] = []
        self.failures: dict[str, str] = {}

    @property
    def passed(self) -> bool:
        """True when no request failed."""
        return not self.failures

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_failure(self, object_type: str, message: str) -> None:
        self.failures[object_type] = message
        self.masks.pop(object_type, None)


@dataclass
class _Job:
    """One recognized request with everything it needs to run."""

    request: ObjectRequest
    definition: ObjectDefinition
    occurrence: int
    rng: np.random.Generator | None = field(default=None, repr=False)
    context: DistributionContext | None = field(default=None, repr=False)
    mask: NDArray[np.uint8] | None = None
    strategy: DistributionStrategy | None = None
    error: DataIntegrityError | None = field(default=None, repr=False)


def request_rng(seed: int, object_type: str, occurrence: int = 0) -> np.random.Generator:
    """Independent generator for one request.

    Derived from the run seed, a stable hash of the object type and the
    request's occurrence index among requests of that type.
    """
    return np.random.default_rng([seed, zlib.crc32(object_type.encode("utf-8")), occurrence])


class PlacementPipeline:
    """Generates placement masks for object requests over a height source.

    Args:
        rules: Rule table to resolve object types against.
        config: Pipeline configuration.
        post_processors: Hooks applied in order to each object type's merged
            mask. A spacing post-processor is appended when
            ``config.enforce_spacing`` is set.
    """

    def __init__(
        self,
        rules: RuleTable | None = None,
        config: PlacementConfig | None = None,
        post_processors: Sequence[MaskPostProcessor] = (),
    ):
        self.rules = rules if rules is not None else default_rule_table()
        self.config = config or PlacementConfig()
        self.config.validate_for_run()

        self.post_processors = list(post_processors)
        if self.config.enforce_spacing:
            self.post_processors.append(SpacingPostProcessor())

    def build_grid(self, width: float, height: float) -> Grid:
        return Grid(width, height, self.config.grid_size)

    def analyze(
        self,
        height_source: HeightSource | Callable[[float, float], float],
        width: float,
        height: float,
    ) -> TerrainMap:
        """Build the grid and analyze terrain once for the whole run."""
        grid = self.build_grid(width, height)
        return analyze_terrain(
            grid,
            as_height_source(height_source),
            samples_per_cell=self.config.samples_per_cell,
            config=self.config.classification,
        )

    def run(
        self,
        height_source: HeightSource | Callable[[float, float], float],
        requests: Iterable[ObjectRequest],
        width: float,
        height: float,
    ) -> PlacementResult:
        """Generate one mask per recognized object type.

        Args:
            height_source: Height field covering the map.
            requests: Object requests; unknown types are skipped.
            width: Map width in map units.
            height: Map height in map units.

        Returns:
            PlacementResult with masks, warnings and failures.

        Raises:
            ConfigurationError: If the map dimensions or grid are invalid.
        """
        terrain = self.analyze(height_source, width, height)
        return self.place(terrain, requests)

    def place(
        self,
        terrain: TerrainMap,
        requests: Iterable[ObjectRequest],
    ) -> PlacementResult:
        """Generate masks over already analyzed terrain."""
        result = PlacementResult(terrain.grid, terrain, self.config.seed)
        jobs = self._plan(requests, result)

        logger.info(
            "placement_started",
            requests=len(jobs),
            grid_size=terrain.grid.grid_size,
            workers=self.config.max_workers,
        )

        if self.config.max_workers > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                list(pool.map(lambda job: self._run_job(job, terrain), jobs))
        else:
            for job in jobs:
                self._run_job(job, terrain)

        self._collect(jobs, terrain.grid, result)

        logger.info(
            "placement_complete",
            masks=len(result.masks),
            warnings=len(result.warnings),
            failures=len(result.failures),
        )
        return result

    def _plan(
        self, requests: Iterable[ObjectRequest], result: PlacementResult
    ) -> list[_Job]:
        """Resolve requests against the rule table, in priority order."""
        jobs: list[_Job] = []
        for request in requests:
            try:
                definition = self.rules.get(request.object_type)
            except UnknownObjectTypeError as e:
                logger.warning("request_skipped", object_type=request.object_type)
                result.add_warning(str(e))
                continue
            jobs.append(_Job(request=request, definition=definition, occurrence=0))

        # Stable: equal priorities keep request order
        jobs.sort(key=lambda job: job.definition.priority)

        seen: dict[str, int] = {}
        for job in jobs:
            job.occurrence = seen.get(job.request.object_type, 0)
            seen[job.request.object_type] = job.occurrence + 1
        return jobs

    def _run_job(self, job: _Job, terrain: TerrainMap) -> None:
        """Score and synthesize one request; integrity errors are recorded on the job."""
        request = job.request
        job.rng = request_rng(self.config.seed, request.object_type, job.occurrence)
        job.context = DistributionContext(
            grid=terrain.grid,
            terrain=terrain,
            custom_rules=job.definition.subtype_rules(request.subtype),
            config=self.config,
        )

        try:
            suitability = compute_suitability(
                request, job.definition, terrain, self.config.water
            )
        except DataIntegrityError as e:
            logger.error("request_failed", object_type=request.object_type, error=str(e))
            job.error = e
            return

        job.strategy = resolve_strategy(request, job.definition)
        job.mask = synthesize_mask(job.strategy, suitability, job.context, job.rng)

        logger.info(
            "mask_generated",
            object_type=request.object_type,
            subtype=request.subtype,
            strategy=job.strategy.value,
            placed=int(np.count_nonzero(job.mask)),
        )

    def _collect(self, jobs: list[_Job], grid: Grid, result: PlacementResult) -> None:
        """Merge job masks per object type, then post-process each merged mask.

        Several requests for one type are OR-ed together. A type with any
        failed request gets no mask at all. Post-processors see the merged
        mask once, with the definition, context and generator of the type's
        first request.
        """
        first_jobs: dict[str, _Job] = {}
        for job in jobs:
            object_type = job.request.object_type
            if object_type in result.failures:
                continue
            if job.error is not None:
                result.add_failure(object_type, str(job.error))
                continue

            existing = result.masks.get(object_type)
            if existing is None:
                first_jobs[object_type] = job
                result.masks[object_type] = PlacementMask(
                    object_type=object_type,
                    cells=job.mask,
                    width=grid.width,
                    height=grid.height,
                    grid_size=grid.grid_size,
                )
            else:
                existing.cells = np.maximum(existing.cells, job.mask)

        if not self.post_processors:
            return
        for object_type, mask in result.masks.items():
            job = first_jobs[object_type]
            for post_process in self.post_processors:
                mask.cells = post_process(mask.cells, job.definition, job.context, job.rng)
            logger.debug(
                "mask_post_processed",
                object_type=object_type,
                placed=mask.placed_count,
            )


def generate_placement_masks(
    height_source: HeightSource | Callable[[float, float], float],
    requests: Iterable[ObjectRequest],
    width: float,
    height: float,
    rules: RuleTable | None = None,
    config: PlacementConfig | None = None,
) -> PlacementResult:
    """Run the full placement pipeline once.

    See PlacementPipeline.run.
    """
    pipeline = PlacementPipeline(rules=rules, config=config)
    return pipeline.run(height_source, requests, width, height)
