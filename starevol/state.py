"""State blocks holding the evolved degrees of freedom of each sub-state.

Every block stores its values in one contiguous ``float64`` array.  The
length is fixed with :meth:`StateBlock.resize` before the layout is computed
and must not change while an integration is running; the packing helpers in
:mod:`starevol.packing` re-check the size on every copy.
"""
from __future__ import annotations

import logging
import math
from typing import Dict

import numpy as np

from .constants import T_REF_K
from .errors import ConfigurationError, PhysicsError

__all__ = [
    "StateBlock",
    "SpinState",
    "ThermalState",
    "ChemState",
    "BNVState",
]

logger = logging.getLogger(__name__)


class StateBlock:
    """Contiguous numeric view over one physical sub-state."""

    #: Short label used in log messages and exported column names.
    name: str = "State"

    def __init__(self, size: int = 0) -> None:
        self._values = np.zeros(0, dtype=float)
        if size:
            self.resize(size)

    # ------------------------------------------------------------------
    # Size and raw access
    # ------------------------------------------------------------------
    def size(self) -> int:
        return int(self._values.size)

    def __len__(self) -> int:
        return self.size()

    @property
    def data(self) -> np.ndarray:
        """Mutable view of the stored values."""

        return self._values

    def values(self) -> np.ndarray:
        """Return a copy of the stored values."""

        return self._values.copy()

    def resize(self, n: int) -> None:
        """Allocate ``n`` components and zero-fill them."""

        n = int(n)
        if n < 0:
            raise ConfigurationError(f"{self.name}: cannot resize to a negative size ({n}).")
        self._values = np.zeros(n, dtype=float)

    def clear(self) -> None:
        """Zero-fill without changing the size."""

        self._values.fill(0.0)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------
    def sanity_check(self) -> bool:
        """Scan the stored values for NaN/Inf and report through logging.

        Returns
        -------
        bool
            ``True`` when the block is non-empty and every value is finite.
        """

        if self._values.size == 0:
            logger.warning("%s: sanity check on an empty block.", self.name)
            return False
        bad = np.flatnonzero(~np.isfinite(self._values))
        if bad.size:
            logger.error(
                "%s: non-finite values at components %s.", self.name, bad.tolist()
            )
            return False
        logger.debug("%s: sanity check OK (%d components).", self.name, self._values.size)
        return True

    # ------------------------------------------------------------------
    # Flat-buffer transfer
    # ------------------------------------------------------------------
    def _require_sized(self, action: str) -> int:
        n = self.size()
        if n == 0:
            raise ConfigurationError(
                f"{self.name}: {action} called before resize(); block has no components."
            )
        return n

    def pack_to(self, dest: np.ndarray) -> None:
        """Copy exactly ``size()`` values into the start of ``dest``."""

        n = self._require_sized("pack_to")
        if len(dest) < n:
            raise ConfigurationError(
                f"{self.name}: destination holds {len(dest)} values, block needs {n}."
            )
        dest[:n] = self._values

    def unpack_from(self, src: np.ndarray) -> None:
        """Overwrite the stored values with the first ``size()`` entries of ``src``."""

        n = self._require_sized("unpack_from")
        if len(src) < n:
            raise ConfigurationError(
                f"{self.name}: source holds {len(src)} values, block needs {n}."
            )
        self._values[:] = src[:n]

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------
    def component_labels(self) -> list[str]:
        return [f"{self.name}_{i}" for i in range(self.size())]

    def export_columns(self, prefix: str = "") -> Dict[str, float]:
        """Return ``{prefix + label: value}`` for every component."""

        return {
            f"{prefix}{label}": float(value)
            for label, value in zip(self.component_labels(), self._values)
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(size={self.size()})"


class SpinState(StateBlock):
    """Rotational state; component 0 is the angular frequency Ω [rad/s]."""

    name = "Spin"

    def omega(self) -> float:
        if self.size() == 0:
            raise ConfigurationError("SpinState: omega() requested on an empty block.")
        return float(self._values[0])

    def set_omega(self, omega: float) -> None:
        if self.size() == 0:
            self.resize(1)
        self._values[0] = float(omega)

    def component_labels(self) -> list[str]:
        labels = super().component_labels()
        if labels:
            labels[0] = "Omega_rad_s"
        return labels


class ThermalState(StateBlock):
    """Thermal state evolved in logarithmic form.

    Component 0 stores ``x = ln(T_inf / T_ref)`` with ``T_ref = 1e8 K``.  The
    local temperatures ``t_core``, ``t_blanket`` and ``t_surf`` are optional
    non-evolved attributes that drivers may consult.
    """

    name = "Thermal"
    T_REF: float = T_REF_K

    def __init__(self, size: int = 0) -> None:
        super().__init__(size)
        self.t_core: float = 0.0
        self.t_blanket: float = 0.0
        self.t_surf: float = 0.0

    def ln_tinf(self) -> float:
        if self.size() == 0:
            raise ConfigurationError("ThermalState: no components; resize before use.")
        return float(self._values[0])

    def tinf(self) -> float:
        """Return the redshifted internal temperature ``T_inf`` [K]."""

        with np.errstate(over="ignore"):
            return float(self.T_REF * np.exp(self.ln_tinf()))

    def set_tinf(self, tinf_k: float) -> None:
        """Store ``T_inf`` [K]; it must be finite and strictly positive."""

        if not (math.isfinite(tinf_k) and tinf_k > 0.0):
            raise PhysicsError(f"ThermalState: T_inf must be finite and > 0 (got {tinf_k!r}).")
        if self.size() == 0:
            self.resize(1)
        self._values[0] = math.log(tinf_k / self.T_REF)

    def component_labels(self) -> list[str]:
        labels = super().component_labels()
        if labels:
            labels[0] = "lnTinf"
        return labels

    def export_columns(self, prefix: str = "") -> Dict[str, float]:
        columns = super().export_columns(prefix)
        if self.size():
            columns[f"{prefix}Tinf_K"] = self.tinf()
        return columns


class ChemState(StateBlock):
    """Chemical imbalances ``eta_i``, one component per channel."""

    name = "Chem"

    def eta(self, i: int) -> float:
        if not 0 <= i < self.size():
            raise IndexError(f"ChemState: eta index {i} out of range (size {self.size()}).")
        return float(self._values[i])

    def component_labels(self) -> list[str]:
        return [f"eta_{i}" for i in range(self.size())]


class BNVState(StateBlock):
    """Baryon-number-violation state.

    Component 0 is the imbalance ``eta_I`` and component 1 the spin-down
    limit.
    """

    name = "BNV"

    def _component(self, idx: int, label: str) -> float:
        if self.size() <= idx:
            raise ConfigurationError(f"BNVState: {label} requires at least {idx + 1} components.")
        return float(self._values[idx])

    def eta_i(self) -> float:
        return self._component(0, "eta_I")

    def spin_down_limit(self) -> float:
        return self._component(1, "spin_down_limit")

    def component_labels(self) -> list[str]:
        labels = super().component_labels()
        for idx, label in enumerate(("eta_I", "spin_down_limit")):
            if idx < len(labels):
                labels[idx] = label
        return labels

