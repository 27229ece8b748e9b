"""Assembly of a complete evolution run from a :class:`RunConfig`.

The orchestrator turns a validated configuration into the objects the
integrator needs and writes the run products:

1. state blocks and their layout (:func:`build_state`, :func:`configure_layout`)
2. the derivative accumulator (:func:`configure_rhs`)
3. background context and drivers (:func:`build_context`, :func:`build_drivers`)
4. observers bound to the output directory (:func:`make_observers`)
5. integration and ``summary.json`` (:func:`run`)
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from .accumulator import RHSAccumulator
from .config_utils import gather_git_info
from .constants import MSUN_KM
from .context import DriverContext, GeometryCache, StarContext
from .errors import ConfigurationError
from .integrator import IntegrationResult, Integrator
from .io.tables import load_diagnostics, summarize_diagnostics
from .io.writer import write_run_config, write_summary
from .layout import StateLayout
from .observers import DiagnosticsObserver, Observer, TimeSeriesObserver
from .packing import pack_state_vector, unpack_state_vector
from .physics import HeatingFromChem, MagneticDipole, NeutrinoCooling, PhotonCooling
from .physics.base import Driver
from .physics.envelope import make_envelope
from .runtime.progress import ProgressReporter
from .schema import RunConfig
from .state import BNVState, ChemState, SpinState, StateBlock, ThermalState
from .state_vector import StateVector
from .system import EvolutionSystem
from .tags import StateTag, tag_name

__all__ = [
    "RunPaths",
    "RunAssembly",
    "make_run_paths",
    "build_state",
    "build_context",
    "build_drivers",
    "configure_layout",
    "configure_rhs",
    "make_observers",
    "build_run",
    "build_summary",
    "final_state_columns",
    "run",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunPaths:
    """Locations of every product of one run."""

    outdir: Path
    diagnostics: Path
    catalog: Path
    timeseries: Path
    timeseries_parquet: Optional[Path]
    summary: Path
    run_config: Path

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {
            "outdir": str(self.outdir),
            "diagnostics": str(self.diagnostics),
            "catalog": str(self.catalog),
            "timeseries": str(self.timeseries),
            "timeseries_parquet": str(self.timeseries_parquet) if self.timeseries_parquet else None,
            "summary": str(self.summary),
            "run_config": str(self.run_config),
        }


@dataclass
class RunAssembly:
    """Everything needed to integrate one configured run."""

    cfg: RunConfig
    paths: RunPaths
    state: StateVector
    layout: StateLayout
    rhs: RHSAccumulator
    ctx: DriverContext
    drivers: List[Driver]
    system: EvolutionSystem
    observers: List[Observer] = field(default_factory=list)
    y0: np.ndarray = field(default_factory=lambda: np.zeros(0))


def _under(outdir: Path, path: Optional[Path]) -> Optional[Path]:
    if path is None:
        return None
    path = Path(path)
    return path if path.is_absolute() else outdir / path


def make_run_paths(cfg: RunConfig, outdir: Optional[Path] = None) -> RunPaths:
    """Resolve relative output paths of ``cfg`` under ``outdir``."""

    base = Path(outdir) if outdir is not None else Path(cfg.output.outdir)
    diag = cfg.output.diagnostics
    ts = cfg.output.timeseries
    return RunPaths(
        outdir=base,
        diagnostics=_under(base, diag.output_path),
        catalog=_under(base, diag.catalog_output_path),
        timeseries=_under(base, ts.output_path),
        timeseries_parquet=_under(base, ts.parquet_path),
        summary=base / "summary.json",
        run_config=base / "run_config.json",
    )


def build_state(cfg: RunConfig) -> StateVector:
    """Register and initialise one block per tag of ``cfg.evolution``."""

    init = cfg.initial
    state = StateVector()
    for tag in cfg.evolution.ordered_tags():
        block: StateBlock
        if tag is StateTag.SPIN:
            block = SpinState(1)
            block.set_omega(init.Omega_rad_s)
        elif tag is StateTag.THERMAL:
            block = ThermalState(1)
            block.set_tinf(init.Tinf_K)
        elif tag is StateTag.CHEM:
            n_eta = cfg.evolution.n_eta
            block = ChemState(n_eta)
            etas = list(init.eta)[:n_eta]
            block.data[: len(etas)] = etas
        elif tag is StateTag.BNV:
            block = BNVState(2)
            block.data[:] = (init.eta_I, init.spin_down_limit)
        else:
            raise ConfigurationError(f"no state block is defined for tag '{tag_name(tag)}'.")
        state.register(tag, block)
        block.sanity_check()
    return state


def build_context(cfg: RunConfig) -> DriverContext:
    """Load the background structure and wrap it for the drivers."""

    structure = cfg.structure
    star: Optional[StarContext] = None
    if structure.table is not None:
        star = StarContext.from_table(structure.table, structure.columns)
    elif structure.use_uniform_fallback:
        star = StarContext.uniform_density(
            structure.radius_km, structure.mass_msun * MSUN_KM, n_points=structure.n_points
        )
        logger.info(
            "No structure table configured; using a uniform-density star (R=%g km, M=%g Msun)",
            structure.radius_km,
            structure.mass_msun,
        )
    geo = GeometryCache.from_star(star) if star is not None else None
    envelope = make_envelope(structure.envelope) if structure.envelope is not None else None
    return DriverContext(star=star, geo=geo, envelope=envelope, cfg=cfg)


def build_drivers(cfg: RunConfig, active: Optional[Iterable[StateTag]] = None) -> List[Driver]:
    """Instantiate the enabled drivers in :class:`DriversConfig` field order.

    Drivers touching a tag outside ``active`` (default: the evolved tags of
    ``cfg``) are skipped with a warning.
    """

    active_tags = set(cfg.evolution.ordered_tags() if active is None else active)
    opts = cfg.drivers
    candidates: List[Driver] = []
    if opts.magnetic_dipole.enabled:
        candidates.append(MagneticDipole(opts.magnetic_dipole))
    if opts.photon_cooling.enabled:
        candidates.append(PhotonCooling(opts.photon_cooling))
    if opts.neutrino_cooling.enabled:
        candidates.append(NeutrinoCooling(opts.neutrino_cooling))
    if opts.heating_from_chem.enabled:
        candidates.append(HeatingFromChem(opts.heating_from_chem))

    drivers: List[Driver] = []
    for drv in candidates:
        needed = set(drv.depends_on) | set(drv.updates)
        missing = sorted(tag_name(tag) for tag in needed - active_tags)
        if missing:
            logger.warning("Driver %s skipped: state tag(s) %s are not evolved", drv.name, missing)
            continue
        drivers.append(drv)
    logger.info("Drivers: %s", [drv.name for drv in drivers])
    return drivers


def configure_layout(state: StateVector, tags: Iterable[StateTag]) -> StateLayout:
    layout = StateLayout()
    layout.configure(state, tags)
    return layout


def configure_rhs(layout: StateLayout) -> RHSAccumulator:
    """Accumulator with one buffer per active tag, sized like the layout."""

    rhs = RHSAccumulator()
    for tag in layout.order:
        rhs.configure(tag, layout.block_size(tag))
    return rhs


def make_observers(cfg: RunConfig, drivers: List[Driver], paths: RunPaths) -> List[Observer]:
    observers: List[Observer] = []
    diag = cfg.output.diagnostics
    if diag.enabled:
        options = diag.model_copy(
            update={
                "output_path": paths.diagnostics,
                "catalog_output_path": paths.catalog,
                "run_id": diag.run_id or cfg.evolution.run_label,
            }
        )
        observers.append(DiagnosticsObserver(drivers, options))
    ts = cfg.output.timeseries
    if ts.enabled:
        options = ts.model_copy(
            update={
                "output_path": paths.timeseries,
                "parquet_path": paths.timeseries_parquet,
                "catalog_path": _under(paths.outdir, ts.catalog_path),
            }
        )
        observers.append(TimeSeriesObserver(options, drivers))
    return observers


def build_run(cfg: RunConfig, outdir: Optional[Path] = None) -> RunAssembly:
    """Wire state, layout, accumulator, context, drivers and observers."""

    paths = make_run_paths(cfg, outdir)
    tags = cfg.evolution.ordered_tags()
    state = build_state(cfg)
    layout = configure_layout(state, tags)
    rhs = configure_rhs(layout)
    ctx = build_context(cfg)
    drivers = build_drivers(cfg, tags)
    system = EvolutionSystem(ctx, state, rhs, layout, drivers)
    paths.outdir.mkdir(parents=True, exist_ok=True)
    observers = make_observers(cfg, drivers, paths)
    for obs in observers:
        system.add_observer(obs)
    y0 = np.zeros(layout.total_size(), dtype=float)
    pack_state_vector(state, layout, y0)
    return RunAssembly(
        cfg=cfg,
        paths=paths,
        state=state,
        layout=layout,
        rhs=rhs,
        ctx=ctx,
        drivers=drivers,
        system=system,
        observers=observers,
        y0=y0,
    )


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (float, np.floating)):
        value = float(value)
        return value if math.isfinite(value) else None
    if isinstance(value, np.integer):
        return int(value)
    return value


def final_state_columns(state: StateVector) -> Dict[str, float]:
    columns: Dict[str, float] = {}
    for tag in state.registered_tags():
        block = state.get(tag)
        columns.update(block.export_columns(prefix=f"{block.name}."))
    return columns


def build_summary(assembly: RunAssembly, result: IntegrationResult) -> Dict[str, Any]:
    cfg = assembly.cfg
    summary: Dict[str, Any] = {
        "run_label": cfg.evolution.run_label,
        "t0": cfg.time.t0,
        "tf": cfg.time.tf,
        "stepper": cfg.evolution.stepper,
        "integration": result.to_dict(),
        "final_state": final_state_columns(assembly.state),
        "layout": {
            tag_name(tag): {"offset": assembly.layout.offset(tag), "size": assembly.layout.block_size(tag)}
            for tag in assembly.layout.order
        },
        "drivers": [drv.name for drv in assembly.drivers],
        "structure": assembly.ctx.star.label if assembly.ctx.star is not None else None,
        "outputs": assembly.paths.as_dict(),
        "provenance": gather_git_info(),
    }
    if cfg.output.diagnostics.enabled and assembly.paths.diagnostics.exists():
        frame = summarize_diagnostics(load_diagnostics(assembly.paths.diagnostics))
        summary["diagnostics"] = frame.to_dict(orient="records")
    return _json_safe(summary)


def run(
    cfg: RunConfig,
    *,
    outdir: Optional[Path] = None,
    progress: Optional[bool] = None,
) -> Dict[str, Any]:
    """Integrate ``cfg`` and write its products; returns the summary mapping."""

    assembly = build_run(cfg, outdir)
    paths = assembly.paths
    write_run_config(cfg.model_dump(mode="json"), paths.run_config)
    show_progress = cfg.output.progress if progress is None else progress
    reporter = ProgressReporter(cfg.time.t0, cfg.time.tf, enabled=show_progress)
    integrator = Integrator(assembly.system, cfg.evolution, progress=reporter)
    logger.info(
        "Run '%s': dim=%d, t=[%g, %g] s, outdir=%s",
        cfg.evolution.run_label,
        assembly.system.dimension,
        cfg.time.t0,
        cfg.time.tf,
        paths.outdir,
    )
    result = integrator.run(
        assembly.y0,
        cfg.time.t0,
        cfg.time.tf,
        tag=cfg.evolution.run_label,
        output_dir=paths.outdir,
    )
    unpack_state_vector(assembly.state, assembly.layout, result.y_final)
    summary = build_summary(assembly, result)
    if cfg.output.summary:
        write_summary(summary, paths.summary)
        logger.info("Wrote run summary to %s", paths.summary)
    return summary
