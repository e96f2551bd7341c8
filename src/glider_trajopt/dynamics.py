"""
Flat-plate glider model (FPGM) used by the collocation transcription.

The glider is two rigid flat plates: a wing fixed to the body and an elevator
hinged behind it.  Each plate produces a single force along its normal using
the stall-tolerant flat-plate coefficients, which keeps the model valid far
past stall where perching maneuvers live.

    state   x  = [x, z, theta, phi, xdot, zdot, thetadot]
    control u  = [phidot]
    dynamics dx = [xdot, zdot, thetadot, phidot, xdotdot, zdotdot, thetadotdot]

Reference: Moore, Cory, Tedrake, "Robust post-stall perching with a simple
fixed-wing glider using LQR-Trees" (2014).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np


StateVector = np.ndarray
SurfaceKinematics = Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]

STATE_DIM = 7
CONTROL_DIM = 1


@dataclass(frozen=True)
class GliderPhysicalParams:
    """
    Geometry, mass properties and cost weights for one solve.

    Attributes
    ----------
    l_w : float
        Center of gravity to wing centroid (m).
    l_e : float
        Elevator pivot to elevator centroid (m).
    l : float
        Center of gravity to elevator pivot (m).
    s_w, s_e : float
        Wing and elevator surface areas (m^2).
    mass : float
        Glider mass (kg).
    inertia : float
        Moment of inertia about the pitch axis (kg m^2).
    h : float
        Uniform collocation timestep (s).
    Q : np.ndarray
        7x7 state cost weight.
    R : float
        Control cost weight.
    air_density, gravity : float
        Environment constants.  Sea level defaults.
    """

    l_w: float
    l_e: float
    l: float
    s_w: float
    s_e: float
    mass: float
    inertia: float
    h: float
    Q: np.ndarray = field(default_factory=lambda: np.eye(STATE_DIM))
    R: float = 1.0
    air_density: float = 1.225
    gravity: float = 9.81

    def validate(self) -> None:
        for name in ("l_w", "l_e", "l", "s_w", "s_e", "mass", "inertia", "h"):
            value = getattr(self, name)
            if not np.isfinite(value) or value <= 0.0:
                raise ValueError(f"{name} must be a positive finite number, got {value}")
        if np.shape(self.Q) != (STATE_DIM, STATE_DIM):
            raise ValueError(f"Q must be {STATE_DIM}x{STATE_DIM}, got shape {np.shape(self.Q)}")
        if not np.isfinite(self.R):
            raise ValueError("R must be finite")
        if self.air_density < 0.0 or self.gravity < 0.0:
            raise ValueError("air_density and gravity must be non-negative")


def flat_plate_cl(aoa: float) -> float:
    return 2.0 * np.sin(aoa) * np.cos(aoa)


def flat_plate_cd(aoa: float) -> float:
    return 2.0 * np.sin(aoa) ** 2


def two_d_cross(v1: np.ndarray, v2: np.ndarray) -> float:
    return v1[0] * v2[1] - v1[1] * v2[0]


def surface_kinematics(
    state: StateVector, phidot: float, params: GliderPhysicalParams
) -> SurfaceKinematics:
    """
    Centroid positions and velocities of the wing and the elevator.

    Returns ``(x_w, x_e, x_w_dot, x_e_dot)``, each a 2-vector in the x-z plane.
    """
    x, z, theta, phi, xdot, zdot, thetadot = state
    l_w, l_e, l = params.l_w, params.l_e, params.l

    x_w = np.array([x - l_w * np.cos(theta), z - l_w * np.sin(theta)])
    x_e = np.array(
        [
            x - l * np.cos(theta) - l_e * np.cos(theta + phi),
            z - l * np.sin(theta) - l_e * np.sin(theta + phi),
        ]
    )
    x_w_dot = np.array(
        [xdot + l_w * thetadot * np.sin(theta), zdot - l_w * thetadot * np.cos(theta)]
    )
    x_e_dot = np.array(
        [
            xdot
            + l * thetadot * np.sin(theta)
            + l_e * (thetadot + phidot) * np.sin(theta + phi),
            zdot
            - l * thetadot * np.cos(theta)
            - l_e * (thetadot + phidot) * np.cos(theta + phi),
        ]
    )
    return x_w, x_e, x_w_dot, x_e_dot


def angle_of_attack(plate_angle: float, velocity: np.ndarray) -> float:
    """
    Plate angle minus the flight path angle of the centroid velocity.

    ``arctan2`` keeps the quadrant and stays defined at zero forward speed.
    The flat-plate force is pi-periodic in the angle of attack, so the result
    matches the single-argument form wherever that one is defined.
    """
    return plate_angle - np.arctan2(velocity[1], velocity[0])


def plate_force(
    aoa: float, velocity: np.ndarray, area: float, normal: np.ndarray, air_density: float
) -> np.ndarray:
    # |v|^2 directly, no sqrt needed
    dynamic_pressure = 0.5 * air_density * (velocity[0] ** 2 + velocity[1] ** 2)
    return dynamic_pressure * area * (flat_plate_cl(aoa) + flat_plate_cd(aoa)) * normal


def state_derivative(
    state: StateVector, control: float, params: GliderPhysicalParams
) -> StateVector:
    """Time derivative of the 7-state glider for elevator rate ``control``."""
    state = np.asarray(state, dtype=float)
    assert state.shape[0] == STATE_DIM
    x, z, theta, phi, xdot, zdot, thetadot = state
    phidot = float(control)

    n_w = np.array([-np.sin(theta), np.cos(theta)])
    n_e = np.array([-np.sin(theta + phi), np.cos(theta + phi)])

    _, _, x_w_dot, x_e_dot = surface_kinematics(state, phidot, params)

    alpha_w = angle_of_attack(theta, x_w_dot)
    alpha_e = angle_of_attack(theta + phi, x_e_dot)

    force_w = plate_force(alpha_w, x_w_dot, params.s_w, n_w, params.air_density)
    force_e = plate_force(alpha_e, x_e_dot, params.s_e, n_e, params.air_density)

    weight = np.array([0.0, params.mass * params.gravity])
    pos_dotdot = (force_w + force_e - weight) / params.mass

    wing_arm = np.array([params.l_w, 0.0])
    elevator_arm = np.array(
        [-params.l - params.l_e * np.cos(theta), -params.l + params.l_e * np.sin(theta)]
    )
    theta_dotdot = (
        two_d_cross(wing_arm, force_w) + two_d_cross(elevator_arm, force_e)
    ) / params.inertia

    return np.array(
        [xdot, zdot, thetadot, phidot, pos_dotdot[0], pos_dotdot[1], theta_dotdot]
    )


@dataclass(frozen=True)
class GliderDynamics:
    """
    Thin wrapper binding the model to one parameter set.

    Parameters
    ----------
    params : GliderPhysicalParams
        Immutable physical constants shared by every evaluation of a solve.
    """

    params: GliderPhysicalParams

    @property
    def state_dim(self) -> int:
        return STATE_DIM

    @property
    def control_dim(self) -> int:
        return CONTROL_DIM

    def state_derivative(self, state: StateVector, control: float) -> StateVector:
        return state_derivative(state, control, self.params)

    def knot_derivatives(self, decision: np.ndarray) -> np.ndarray:
        """
        Evaluates the dynamics at every knot of a flat decision vector.

        Returns an ``(N, 7)`` array whose row ``i`` is the derivative at knot
        ``i``.
        """
        knots = np.asarray(decision, dtype=float).reshape(-1, STATE_DIM + CONTROL_DIM)
        return np.array(
            [state_derivative(knot[:STATE_DIM], knot[STATE_DIM], self.params) for knot in knots]
        ).reshape(-1, STATE_DIM)
