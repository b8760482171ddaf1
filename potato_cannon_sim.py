# potato_cannon_sim.py
# Burst-disc pneumatic potato cannon: potato position, velocity, kinetic energy and propellant entropy.
# Units: SI throughout (convert notebook units with parameters_from_notebook_units first).
# Requires: numpy, scipy
#
# Model (Newton's 2nd law + Boyle's law, isothermal ideal gas):
#   P0*Vt = P(t)*(Vt + A*x)               chamber gas behind the potato
#   m*x'' = A*(P(t) - Patm)               differential pressure force
#   x''   = a/(b + x) - c,  a = P0*Vt/m,  b = Vt/A,  c = A*Patm/m
#   x(0) = x'(0) = 0                      burst disc opens at t = 0
#
# Assumptions:
# - no barrel friction, no air leakage
# - potato remains intact
# - no heat transfer to/from barrel or potato
#
# Precondition (not enforced): final chamber pressure P_f >= Patm, or the potato will not leave the barrel.
# -------------------------------------------------------------

from dataclasses import dataclass, field, replace
import logging
import math
from typing import List, Optional

import numpy as np
from scipy.integrate import solve_ivp

logger = logging.getLogger(__name__)

# ---- Unit conversions -------------------------------------------------------
ATM_TO_PA = 101325.0   # Pa/atm
G_TO_KG = 1e-3         # kg/g
MM_TO_M = 1e-3         # m/mm
CM_TO_M = 1e-2         # m/cm
L_TO_M3 = 1e-3         # m^3/L

# Reference integration window of the notebook
DEFAULT_T_MAX = 0.2  # s

# Stop integrating once the gas volume has collapsed to this fraction of the tank volume
SINGULAR_VOLUME_FRACTION = 1e-6

# ---- Errors -----------------------------------------------------------------

class PotatoCannonError(Exception):
    """Base class for all potato cannon model errors."""

class InvalidParameterError(PotatoCannonError, ValueError):
    """Physical or solver input is outside the valid domain; raised before any integration."""

class NumericalFailureError(PotatoCannonError, RuntimeError):
    """Integrator failed or hit the b + x <= 0 singularity; parameters are unphysical, do not retry."""

# ---- Records ----------------------------------------------------------------

@dataclass(frozen=True)
class PhysicalParameters:
    potato_mass: float       # kg
    barrel_diameter: float   # m (bore)
    barrel_length: float     # m
    tank_volume: float       # m^3
    tank_pressure: float     # Pa (initial, absolute)
    ambient_pressure: float  # Pa

    @property
    def bore_area(self) -> float:
        """Barrel cross-sectional area A = pi*d^2/4 [m^2]."""
        return math.pi * self.barrel_diameter ** 2 / 4.0

    def validate(self) -> None:
        """Raise InvalidParameterError unless every field is finite and strictly positive."""
        # mass, bore and tank volume guard the divisions in reduce_parameters: check them first
        ordered = [
            ("potato_mass", self.potato_mass),
            ("barrel_diameter", self.barrel_diameter),
            ("tank_volume", self.tank_volume),
            ("tank_pressure", self.tank_pressure),
            ("ambient_pressure", self.ambient_pressure),
            ("barrel_length", self.barrel_length),
        ]
        for name, value in ordered:
            if not math.isfinite(value):
                raise InvalidParameterError(f"{name} must be finite, got {value!r}")
            if value <= 0.0:
                raise InvalidParameterError(f"{name} must be > 0, got {value!r}")

@dataclass(frozen=True)
class ODECoefficients:
    a: float  # m^2/s^2  P0*Vt/m
    b: float  # m        Vt/A
    c: float  # m/s^2    A*Patm/m

@dataclass(frozen=True)
class EntropyConstants:
    cv: float = 0.718e3   # J/(kg*K)   0.718 kJ/(kg*K)
    T0: float = 300.0     # K
    R: float = 8.314e3    # J/(mol*K)  8.314 kJ/(mol*K)

@dataclass(frozen=True)
class SimulationConfig:
    t_max: float = DEFAULT_T_MAX     # s
    infinite_barrel: bool = True     # ignore barrel length when True
    method: str = "RK45"             # any explicit adaptive scipy.integrate.solve_ivp method
    rtol: float = 1e-6
    atol: float = 1e-9
    max_step: float = np.inf         # s
    entropy: EntropyConstants = field(default_factory=EntropyConstants)

    def validate(self) -> None:
        if not (math.isfinite(self.t_max) and self.t_max > 0.0):
            raise InvalidParameterError(f"t_max must be a positive finite time, got {self.t_max!r}")
        if not (math.isfinite(self.rtol) and self.rtol > 0.0 and math.isfinite(self.atol) and self.atol > 0.0):
            raise InvalidParameterError(f"tolerances must be > 0, got rtol={self.rtol!r} atol={self.atol!r}")
        if math.isnan(self.max_step) or self.max_step <= 0.0:
            raise InvalidParameterError(f"max_step must be > 0, got {self.max_step!r}")

@dataclass(frozen=True)
class Trajectory:
    t: np.ndarray   # s, strictly increasing, solver step points
    x: np.ndarray   # m
    v: np.ndarray   # m/s
    exit_time: Optional[float] = None        # s, first crossing of x = barrel length
    muzzle_velocity: Optional[float] = None  # m/s at that crossing

    def __len__(self) -> int:
        return len(self.t)

    def head(self, n: int) -> "Trajectory":
        """First n samples; crossing metadata is kept."""
        return replace(self, t=self.t[:n], x=self.x[:n], v=self.v[:n])

@dataclass(frozen=True)
class SimulationResult:
    params: PhysicalParameters
    coefficients: ODECoefficients
    trajectory: Trajectory   # possibly truncated at the muzzle
    energy: np.ndarray       # J, kinetic energy of the potato
    entropy: np.ndarray      # J/K, propellant entropy change
    pressure: np.ndarray     # Pa, chamber pressure behind the potato
    work: np.ndarray         # J, net work done on the potato
    exited_barrel: bool      # some solved sample lies beyond the barrel length
    final_pressure: float    # Pa, chamber pressure with the potato at the muzzle
    precondition_ok: bool    # final_pressure >= ambient pressure

    @property
    def exit_time(self) -> Optional[float]:
        return self.trajectory.exit_time

    @property
    def muzzle_velocity(self) -> Optional[float]:
        return self.trajectory.muzzle_velocity

# ---- Parameter reduction ----------------------------------------------------

def parameters_from_notebook_units(
    mass_g: float,
    diameter_mm: float,
    length_cm: float,
    tank_volume_L: float,
    tank_pressure_atm: float,
    ambient_pressure_atm: float = 1.0,
) -> PhysicalParameters:
    """Build SI parameters from the notebook's slider units (g, mm, cm, L, atm)."""
    return PhysicalParameters(
        potato_mass=mass_g * G_TO_KG,
        barrel_diameter=diameter_mm * MM_TO_M,
        barrel_length=length_cm * CM_TO_M,
        tank_volume=tank_volume_L * L_TO_M3,
        tank_pressure=tank_pressure_atm * ATM_TO_PA,
        ambient_pressure=ambient_pressure_atm * ATM_TO_PA,
    )

def default_parameters() -> PhysicalParameters:
    # Notebook slider defaults: 100 g potato, 40 mm x 50 cm barrel, 10 L tank at 2 atm, 1 atm ambient
    return parameters_from_notebook_units(100.0, 40.0, 50.0, 10.0, 2.0, 1.0)

def reduce_parameters(params: PhysicalParameters) -> ODECoefficients:
    """
    Collapse the six free variables into the ODE coefficients.
    a = P0*Vt/m, b = Vt/A, c = A*Patm/m with A = pi*d^2/4.
    """
    params.validate()
    A = params.bore_area
    m = params.potato_mass
    coeffs = ODECoefficients(
        a=params.tank_pressure * params.tank_volume / m,
        b=params.tank_volume / A,
        c=A * params.ambient_pressure / m,
    )
    logger.debug("ODE coefficients a=%.6g b=%.6g c=%.6g", coeffs.a, coeffs.b, coeffs.c)
    return coeffs

def final_chamber_pressure(params: PhysicalParameters) -> float:
    """Boyle's law with the potato at the muzzle: P_f = P0*Vt/(Vt + A*L) [Pa]."""
    Vt = params.tank_volume
    return params.tank_pressure * Vt / (Vt + params.bore_area * params.barrel_length)

def check_exit_precondition(params: PhysicalParameters) -> bool:
    """True when P_f >= Patm, i.e. the gas still pushes the potato out of the muzzle."""
    return final_chamber_pressure(params) >= params.ambient_pressure

# ---- Position ODE -----------------------------------------------------------

def position_rhs(t: float, state, a: float, b: float, c: float) -> List[float]:
    """First-order form of x'' = a/(b + x) - c with state (v, x); returns [v', x']."""
    v, x = state
    return [a / (b + x) - c, v]

def _volume_collapse(t, state, a, b, c):
    # b + x reaching (almost) zero means zero total gas volume
    return b + state[1] - SINGULAR_VOLUME_FRACTION * b

_volume_collapse.terminal = True
_volume_collapse.direction = -1

def _muzzle_event(barrel_length: float):
    def event(t, state, a, b, c):
        return state[1] - barrel_length
    event.terminal = False
    event.direction = 1
    return event

def solve_position(
    coeffs: ODECoefficients,
    t_max: Optional[float] = None,
    config: Optional[SimulationConfig] = None,
    barrel_length: Optional[float] = None,
) -> Trajectory:
    """
    Integrate the potato position from rest over [0, t_max].
    t_max defaults to config.t_max; passing both overrides the config.

    Samples are the integrator's own (non-uniform) step points. When barrel_length
    is given, the first crossing of x = barrel_length is located by event detection
    and stored as exit_time / muzzle_velocity. Raises NumericalFailureError if the
    integrator fails or the gas volume collapses (b + x -> 0).
    """
    cfg = config if config is not None else SimulationConfig()
    if t_max is not None:
        cfg = replace(cfg, t_max=t_max)
    cfg.validate()
    if coeffs.b <= 0.0:
        raise InvalidParameterError(f"coefficient b must be > 0, got {coeffs.b!r}")

    events = [_volume_collapse]
    if barrel_length is not None:
        events.append(_muzzle_event(barrel_length))

    sol = solve_ivp(
        position_rhs,
        (0.0, cfg.t_max),
        [0.0, 0.0],  # v(0), x(0)
        method=cfg.method,
        args=(coeffs.a, coeffs.b, coeffs.c),
        rtol=cfg.rtol,
        atol=cfg.atol,
        max_step=cfg.max_step,
        events=events,
    )
    if sol.status == -1:
        raise NumericalFailureError(f"ODE integration failed: {sol.message}")
    if sol.t_events[0].size > 0:
        raise NumericalFailureError(
            "gas volume collapsed (b + x <= 0) at t = %.6g s" % sol.t_events[0][0]
        )
    if not np.all(np.isfinite(sol.y)):
        raise NumericalFailureError("ODE integration produced non-finite states")

    exit_time = None
    muzzle_velocity = None
    if barrel_length is not None and sol.t_events[1].size > 0:
        exit_time = float(sol.t_events[1][0])
        muzzle_velocity = float(sol.y_events[1][0][0])

    logger.debug(
        "solve_ivp(%s): %d samples, %d rhs evaluations, t_end=%.4g s",
        cfg.method, sol.t.size, sol.nfev, sol.t[-1],
    )
    return Trajectory(
        t=sol.t,
        v=sol.y[0],
        x=sol.y[1],
        exit_time=exit_time,
        muzzle_velocity=muzzle_velocity,
    )

# ---- Barrel exit ------------------------------------------------------------

def truncate_at_barrel_exit(trajectory: Trajectory, barrel_length: float, infinite_barrel: bool) -> Trajectory:
    """
    Drop every sample from the first one beyond the muzzle (x > barrel_length) onward.
    With infinite_barrel the trajectory is returned untouched. If the potato never passes
    the muzzle the full trajectory is kept and a warning is logged.
    """
    if infinite_barrel:
        return trajectory
    beyond = np.flatnonzero(trajectory.x > barrel_length)
    if beyond.size == 0:
        logger.warning(
            "potato never passed the muzzle (L = %.4g m) within t = %.4g s; keeping full trajectory",
            barrel_length, trajectory.t[-1],
        )
        return trajectory
    return trajectory.head(int(beyond[0]))

# ---- Derived quantities -----------------------------------------------------

def kinetic_energy(mass: float, v) -> np.ndarray:
    """U = 1/2*m*v^2 [J]."""
    v = np.asarray(v, dtype=float)
    return 0.5 * mass * v ** 2

def entropy_change(
    x,
    params: PhysicalParameters,
    constants: Optional[EntropyConstants] = None,
    strict: bool = True,
) -> np.ndarray:
    """
    Propellant entropy change at potato position x [J/K]:
    dS = cv*ln(P0*A*x/(cv*T0) + 1) + R*ln(1 + A*x/Vt)
    Where a logarithm is undefined (x far behind the start) strict raises
    InvalidParameterError, otherwise those samples are NaN.
    """
    k = constants if constants is not None else EntropyConstants()
    x = np.asarray(x, dtype=float)
    A = params.bore_area
    thermal = params.tank_pressure * A * x / (k.cv * k.T0)
    expansion = A * x / params.tank_volume
    defined = (thermal > -1.0) & (expansion > -1.0)
    if not np.all(defined):
        if strict:
            raise InvalidParameterError("entropy change undefined: logarithm argument <= 0 (x too negative)")
        logger.warning(
            "entropy change undefined for %d of %d samples (x too negative); reporting NaN",
            int(np.count_nonzero(~defined)), defined.size,
        )
        thermal = np.where(defined, thermal, np.nan)
        expansion = np.where(defined, expansion, np.nan)
    return k.cv * np.log1p(thermal) + k.R * np.log1p(expansion)

def chamber_pressure(x, params: PhysicalParameters) -> np.ndarray:
    """Gas pressure behind the potato, P = P0*Vt/(Vt + A*x) [Pa]."""
    x = np.asarray(x, dtype=float)
    Vt = params.tank_volume
    return params.tank_pressure * Vt / (Vt + params.bore_area * x)

def work_done(x, params: PhysicalParameters) -> np.ndarray:
    """
    Net work on the potato after travelling x [J]:
    W = P0*Vt*ln((Vt + A*x)/Vt) - Patm*A*x
    Lossless model, so W equals the kinetic energy at the same sample.
    """
    x = np.asarray(x, dtype=float)
    A = params.bore_area
    Vt = params.tank_volume
    return params.tank_pressure * Vt * np.log1p(A * x / Vt) - params.ambient_pressure * A * x

# ---- Simulation entry point -------------------------------------------------

def simulate(
    params: PhysicalParameters,
    config: Optional[SimulationConfig] = None,
    *,
    infinite_barrel: Optional[bool] = None,
    t_max: Optional[float] = None,
) -> SimulationResult:
    """
    Full pipeline: free variables -> coefficients -> trajectory -> muzzle truncation -> derived series.
    Keyword overrides take precedence over the matching config fields.
    """
    cfg = config if config is not None else SimulationConfig()
    if infinite_barrel is not None:
        cfg = replace(cfg, infinite_barrel=infinite_barrel)
    if t_max is not None:
        cfg = replace(cfg, t_max=t_max)
    cfg.validate()

    coeffs = reduce_parameters(params)

    P_f = final_chamber_pressure(params)
    precondition_ok = P_f >= params.ambient_pressure
    if not precondition_ok:
        logger.warning(
            "final chamber pressure %.1f Pa is below ambient %.1f Pa: potato will not leave the barrel",
            P_f, params.ambient_pressure,
        )

    full = solve_position(coeffs, cfg.t_max, cfg, barrel_length=params.barrel_length)
    exited_barrel = bool(np.any(full.x > params.barrel_length))
    traj = truncate_at_barrel_exit(full, params.barrel_length, cfg.infinite_barrel)

    return SimulationResult(
        params=params,
        coefficients=coeffs,
        trajectory=traj,
        energy=kinetic_energy(params.potato_mass, traj.v),
        entropy=entropy_change(traj.x, params, cfg.entropy, strict=False),
        pressure=chamber_pressure(traj.x, params),
        work=work_done(traj.x, params),
        exited_barrel=exited_barrel,
        final_pressure=P_f,
        precondition_ok=precondition_ok,
    )

# ---- Entry point for standalone use ----------------------------------------
if __name__ == "__main__":
    res = simulate(default_parameters())
    tr = res.trajectory
    print("Final t = %.3f s" % tr.t[-1])
    print("Final x = %.3f m, v = %.2f m/s" % (tr.x[-1], tr.v[-1]))
    print("Final U = %.1f J, dS = %.1f J/K" % (res.energy[-1], res.entropy[-1]))
    if res.muzzle_velocity is not None:
        print("Muzzle velocity = %.2f m/s at t = %.4f s" % (res.muzzle_velocity, res.exit_time))
