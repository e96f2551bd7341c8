"""
Loading of the glider parameter document.

The document is a flat YAML mapping of scalar fields, see
``config/glider_parameters.yaml``.  Cost weights, horizon and targets are not
part of it; the caller supplies them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import yaml

from .collocation import BoundarySpec
from .dynamics import GliderPhysicalParams

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# document key -> GliderPhysicalParams field
PHYSICAL_FIELDS = {
    "length_cg_to_cwing": "l_w",
    "length_pivote_to_celevator": "l_e",
    "length_cg_to_pivote": "l",
    "surface_area_wing": "s_w",
    "surface_area_elevator": "s_e",
    "mass": "mass",
    "moments_of_inertia": "inertia",
}

# document key -> BoundarySpec field
BOUNDARY_FIELDS = {
    "velocity_constrain": "velocity",
    "theta_contrain": "theta",
    "phi_contrain": "phi",
    "thetadot_constrain": "theta_dot",
    "phidot_constrain": "phi_dot",
}

PARAMETER_FIELDS = {**PHYSICAL_FIELDS, **BOUNDARY_FIELDS}


def read_parameter_document(path: PathLike) -> Optional[Dict[str, Any]]:
    """Returns the parsed mapping, or ``None`` if it cannot be read."""
    path = Path(path)
    if not path.is_file():
        logger.warning("Parameter file %s not found", path)
        return None
    try:
        with open(path, "r") as f:
            document = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to read parameter file %s: %s", path, e)
        return None
    if not isinstance(document, dict):
        logger.warning("Parameter file %s does not contain a mapping", path)
        return None
    return document


def build_parameters(
    document: Dict[str, Any],
    total_sec: float,
    num_knots: int,
    Q: np.ndarray,
    R: float,
    initial_x: Sequence[float],
    initial_z: Sequence[float],
) -> Tuple[GliderPhysicalParams, BoundarySpec]:
    """
    Builds validated parameter structs from a parameter document.

    Raises ``KeyError`` for missing fields and ``ValueError`` for values that
    are not numbers or fail validation.
    """
    if num_knots <= 0:
        raise ValueError(f"num_knots must be positive, got {num_knots}")

    physical = {attr: float(document[key]) for key, attr in PHYSICAL_FIELDS.items()}
    limits = {attr: float(document[key]) for key, attr in BOUNDARY_FIELDS.items()}

    params = GliderPhysicalParams(
        h=float(total_sec) / num_knots,
        Q=np.array(Q, dtype=float),
        R=float(R),
        **physical,
    )
    boundary = BoundarySpec(
        initial_x=tuple(float(v) for v in initial_x),
        initial_z=tuple(float(v) for v in initial_z),
        **limits,
    )
    params.validate()
    boundary.validate()
    return params, boundary
