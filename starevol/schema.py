"""Configuration schema for compact-star evolution runs.

The Pydantic models below mirror the YAML configuration files consumed by
:mod:`starevol.run`.  Driver option models live here as well so that the
same objects are used whether a driver is built from YAML or in code.
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import C_EFF_DEFAULT
from .errors import ConfigurationError
from .tags import StateTag, parse_tag

StepperName = Literal["RK45", "RK23", "DOP853", "Radau", "BDF", "LSODA"]


class EvolutionConfig(BaseModel):
    """Numerical and feature settings of one evolution run."""

    stepper: StepperName = Field("RK45", description="scipy.integrate stepper class name")
    rtol: float = Field(1.0e-6, gt=0.0, description="Relative tolerance of the adaptive stepper")
    atol: float = Field(1.0e-10, gt=0.0, description="Absolute tolerance of the adaptive stepper")
    max_steps: int = Field(1_000_000, gt=0, description="Upper bound on accepted solver steps")
    dt_save: Optional[float] = Field(
        None,
        gt=0.0,
        description="Sampling interval [s]; observers are notified after each chunk. None samples only at tf.",
    )
    first_step: Optional[float] = Field(None, gt=0.0, description="Initial step size hint [s]")
    enable_spin: bool = Field(True, description="Evolve the Spin block")
    enable_thermal: bool = Field(True, description="Evolve the Thermal block")
    enable_chem: bool = Field(False, description="Evolve the Chem block")
    enable_bnv: bool = Field(False, description="Evolve the BNV block")
    n_eta: int = Field(2, ge=1, description="Number of chemical-imbalance channels")
    run_label: str = Field("run", description="Tag recorded in observer metadata")
    order: Optional[List[str]] = Field(
        None,
        description="Explicit layout order of state tags; defaults to Spin, Thermal, Chem, BNV filtered by the enable flags.",
    )

    @field_validator("order")
    def _validate_order(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        tags = [parse_tag(item) for item in value]
        if len(set(tags)) != len(tags):
            raise ConfigurationError("evolution.order must not repeat a tag")
        return value

    def ordered_tags(self) -> List[StateTag]:
        if self.order is not None:
            return [parse_tag(item) for item in self.order]
        flags = (
            (StateTag.SPIN, self.enable_spin),
            (StateTag.THERMAL, self.enable_thermal),
            (StateTag.CHEM, self.enable_chem),
            (StateTag.BNV, self.enable_bnv),
        )
        return [tag for tag, enabled in flags if enabled]


class TimeWindow(BaseModel):
    t0: float = Field(0.0, description="Start time [s]")
    tf: float = Field(3.15576e13, description="Final time [s]")

    @model_validator(mode="after")
    def _check_order(self) -> "TimeWindow":
        if not (math.isfinite(self.t0) and math.isfinite(self.tf)):
            raise ConfigurationError("time.t0 and time.tf must be finite")
        if self.tf <= self.t0:
            raise ConfigurationError("time.tf must be greater than time.t0")
        return self


class InitialState(BaseModel):
    """Initial values of the evolved blocks."""

    Omega_rad_s: float = Field(100.0, description="Initial angular frequency [rad/s]")
    Tinf_K: float = Field(1.0e9, gt=0.0, description="Initial redshifted internal temperature [K]")
    eta: List[float] = Field(default_factory=list, description="Initial chemical imbalances; padded with zeros")
    eta_I: float = Field(0.0, description="Initial baryon-number-violation imbalance")
    spin_down_limit: float = Field(0.0, description="BNV spin-down limit")


class MagneticDipoleOptions(BaseModel):
    enabled: bool = True
    braking_index: float = Field(3.0, description="Exponent n in dOmega/dt = -K Omega^n")
    K_prefactor: float = Field(1.0e-15, description="Prefactor K in dOmega/dt = -K Omega^n")
    use_moment_of_inertia: bool = Field(
        False, description="Reserved for context-based scaling of K; currently only logged"
    )


class PhotonCoolingOptions(BaseModel):
    enabled: bool = True
    surface_model: Literal["direct", "envelope", "approx_from_tinf"] = Field(
        "approx_from_tinf", description="Mapping from T_inf to the surface temperature"
    )
    envelope: Optional[Literal["iron", "accreted"]] = Field(
        None,
        description="Envelope fit for surface_model='envelope'; None falls back to the context envelope, then iron",
    )
    envelope_xi: float = Field(0.0, description="Accreted light-element fraction parameter")
    rho_b: float = Field(1.0e10, gt=0.0, description="Base-of-envelope density [g cm^-3]")
    radiating_fraction: float = Field(1.0, ge=0.0, le=1.0, description="Fraction of the surface radiating")
    global_scale: float = Field(1.0, ge=0.0, description="Multiplicative scale of the luminosity")
    C_eff: float = Field(C_EFF_DEFAULT, description="Effective heat capacity [erg/K]")


class NeutrinoCoolingOptions(BaseModel):
    enabled: bool = True
    include_direct_urca: bool = True
    include_modified_urca: bool = True
    include_pair_breaking: bool = False
    global_scale: float = Field(1.0, ge=0.0, description="Multiplicative scale of the luminosity")
    C_eff: float = Field(C_EFF_DEFAULT, description="Effective heat capacity [erg/K]")


class HeatingFromChemOptions(BaseModel):
    enabled: bool = False
    use_electron_channel: bool = True
    use_muon_channel: bool = True
    heating_coefficient: float = Field(
        1.0e30, ge=0.0, description="Heating luminosity per unit eta^2 at T_inf = 1e8 K [erg/s]"
    )
    global_scale: float = Field(1.0, ge=0.0, description="Multiplicative safety factor")
    C_eff: float = Field(C_EFF_DEFAULT, description="Effective heat capacity [erg/K]")


class DriversConfig(BaseModel):
    """Driver selection; drivers are evaluated in this field order."""

    magnetic_dipole: MagneticDipoleOptions = Field(default_factory=MagneticDipoleOptions)
    photon_cooling: PhotonCoolingOptions = Field(default_factory=PhotonCoolingOptions)
    neutrino_cooling: NeutrinoCoolingOptions = Field(default_factory=NeutrinoCoolingOptions)
    heating_from_chem: HeatingFromChemOptions = Field(default_factory=HeatingFromChemOptions)


class StructureConfig(BaseModel):
    """Optional background structure profile."""

    table: Optional[Path] = Field(None, description="CSV/Parquet profile with r, nu, lambda, mass and density")
    columns: Dict[str, str] = Field(default_factory=dict, description="Field-to-column name overrides")
    radius_km: float = Field(12.0, gt=0.0, description="Radius of the uniform-density fallback star [km]")
    mass_msun: float = Field(1.4, gt=0.0, description="Mass of the uniform-density fallback star [M_sun]")
    n_points: int = Field(64, ge=2, description="Grid points of the uniform-density fallback star")
    use_uniform_fallback: bool = Field(
        True, description="Build a uniform-density star when no table is given"
    )
    envelope: Optional[Literal["iron", "accreted"]] = Field(
        None, description="Envelope model exposed through the driver context"
    )
    envelope_xi: float = 0.0


BuiltinName = Literal["time", "sample_index", "step_index", "Tinf_K", "Omega_rad_s"]


class TimeSeriesColumn(BaseModel):
    """One column of the time-series table."""

    key: str = Field(..., description="Header name")
    source: Literal["builtin", "driver"] = "builtin"
    builtin: Optional[BuiltinName] = None
    producer: Optional[str] = Field(None, description="Diagnostics name of the producing driver")
    driver_key: Optional[str] = Field(None, description="Scalar key inside the producer's packet")
    unit: str = ""
    description: str = ""

    @model_validator(mode="after")
    def _check_source(self) -> "TimeSeriesColumn":
        if self.source == "builtin" and self.builtin is None:
            raise ConfigurationError(f"column '{self.key}': builtin columns need 'builtin'")
        if self.source == "driver" and (not self.producer or not self.driver_key):
            raise ConfigurationError(f"column '{self.key}': driver columns need 'producer' and 'driver_key'")
        return self


class DiagnosticsOutput(BaseModel):
    """Options of :class:`~starevol.observers.DiagnosticsObserver`."""

    enabled: bool = True
    output_path: Path = Field(Path("diagnostics.jsonl"), description="JSON-lines output path")
    run_id: str = ""
    record_every_n_steps: int = Field(0, ge=0, description="Record when the sample counter is a multiple of n (0 disables)")
    record_every_dt: float = Field(0.0, ge=0.0, description="Record whenever simulated time advances by dt (0 disables)")
    record_at_start: bool = True
    append: bool = False
    unit_vocabulary: Optional[List[str]] = Field(
        None, description="Allowed unit strings; adds unit_ok per scalar when set"
    )
    check_units: bool = Field(
        False, description="Check units against the built-in vocabulary when unit_vocabulary is unset"
    )
    on_change_atol: float = Field(0.0, ge=0.0)
    on_change_rtol: float = Field(1.0e-12, ge=0.0)
    validate_catalog: bool = Field(True, description="Check packets against each driver's catalog")
    write_catalog: bool = True
    catalog_output_path: Path = Path("diagnostics_catalog.json")


class TimeSeriesOutput(BaseModel):
    """Options of :class:`~starevol.observers.TimeSeriesObserver`."""

    enabled: bool = True
    output_path: Path = Path("timeseries.csv")
    format: Literal["csv", "tsv"] = "csv"
    append: bool = False
    record_at_start: bool = True
    record_every_n_samples: int = Field(1, ge=0)
    record_every_dt: float = Field(0.0, ge=0.0)
    write_header: bool = True
    write_sidecar_metadata: bool = True
    float_precision: int = Field(17, ge=1, le=17)
    columns: List[TimeSeriesColumn] = Field(default_factory=list)
    use_catalog: bool = True
    catalog_path: Optional[Path] = None
    catalog_profiles: List[str] = Field(default_factory=lambda: ["timeseries_default"])
    include_builtin_time: bool = True
    include_builtin_sample_index: bool = True
    parquet_path: Optional[Path] = Field(None, description="Optional Parquet copy written on finish")

    @property
    def delimiter(self) -> str:
        return "\t" if self.format == "tsv" else ","


class OutputConfig(BaseModel):
    outdir: Path = Field(Path("out"), description="Directory receiving all run products")
    diagnostics: DiagnosticsOutput = Field(
        default_factory=lambda: DiagnosticsOutput(record_every_n_steps=1000)
    )
    timeseries: TimeSeriesOutput = Field(default_factory=TimeSeriesOutput)
    summary: bool = True
    progress: bool = False


class RunConfig(BaseModel):
    """Root configuration of a run."""

    evolution: EvolutionConfig = Field(default_factory=EvolutionConfig)
    time: TimeWindow = Field(default_factory=TimeWindow)
    initial: InitialState = Field(default_factory=InitialState)
    drivers: DriversConfig = Field(default_factory=DriversConfig)
    structure: StructureConfig = Field(default_factory=StructureConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @model_validator(mode="before")
    def _reject_unknown_sections(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = {"evolution", "time", "initial", "drivers", "structure", "output"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown configuration section(s): {unknown}")
        return data


__all__ = [
    "EvolutionConfig",
    "TimeWindow",
    "InitialState",
    "MagneticDipoleOptions",
    "PhotonCoolingOptions",
    "NeutrinoCoolingOptions",
    "HeatingFromChemOptions",
    "DriversConfig",
    "StructureConfig",
    "TimeSeriesColumn",
    "DiagnosticsOutput",
    "TimeSeriesOutput",
    "OutputConfig",
    "RunConfig",
]
