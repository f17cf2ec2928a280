from __future__ import annotations

from typing import Tuple

from ecomoni.core.standards.catalog import StandardsCatalog
from ecomoni.domain.models import MeasurementType, StandardEntry

WHO = "WHO"
AFC = "AFC"
SENEGAL = "Senegal"


def _entry(parameter: str, unit: str, measurement_type: MeasurementType, who: float, afc: float, senegal: float) -> StandardEntry:
    return StandardEntry(
        parameter=parameter,
        unit=unit,
        measurement_type=measurement_type,
        thresholds={WHO: who, AFC: afc, SENEGAL: senegal},
    )


_W = MeasurementType.WATER
_A = MeasurementType.AIR
_S = MeasurementType.SOIL
_D = MeasurementType.WASTE
_N = MeasurementType.NOISE

# Limits for mining-impact monitoring: WHO guidelines, the African
# framework (AFC) and the Senegalese national standard.
DEFAULT_STANDARDS: Tuple[StandardEntry, ...] = (
    # Water
    _entry("Arsenic", "mg/L", _W, 0.01, 0.01, 0.01),
    _entry("Mercury", "mg/L", _W, 0.006, 0.005, 0.006),
    _entry("Cyanides", "mg/L", _W, 0.07, 0.07, 0.07),
    _entry("Lead", "mg/L", _W, 0.01, 0.01, 0.01),
    _entry("Cadmium", "mg/L", _W, 0.003, 0.003, 0.003),
    _entry("Chromium", "mg/L", _W, 0.05, 0.05, 0.05),
    _entry("Nickel", "mg/L", _W, 0.07, 0.07, 0.07),
    _entry("Zinc", "mg/L", _W, 3, 3, 3),
    # Air
    _entry("PM2.5", "µg/m³", _A, 25, 25, 25),
    _entry("PM10", "µg/m³", _A, 50, 50, 50),
    _entry("SO2", "µg/m³", _A, 20, 20, 20),
    _entry("NO2", "µg/m³", _A, 40, 40, 40),
    _entry("CO", "mg/m³", _A, 10, 10, 10),
    _entry("O3", "µg/m³", _A, 100, 100, 100),
    # Soil
    _entry("Lead (soil)", "mg/kg", _S, 70, 70, 70),
    _entry("Cadmium (soil)", "mg/kg", _S, 3, 3, 3),
    _entry("Mercury (soil)", "mg/kg", _S, 2, 2, 2),
    _entry("Arsenic (soil)", "mg/kg", _S, 20, 20, 20),
    _entry("Chromium (soil)", "mg/kg", _S, 100, 100, 100),
    _entry("Nickel (soil)", "mg/kg", _S, 50, 50, 50),
    # Waste
    _entry("Total hydrocarbons", "mg/kg", _D, 500, 500, 500),
    _entry("Total heavy metals", "mg/kg", _D, 100, 100, 100),
    _entry("PCB", "mg/kg", _D, 0.1, 0.1, 0.1),
    # Noise
    _entry("Noise (residential day)", "dB(A)", _N, 55, 55, 55),
    _entry("Noise (residential night)", "dB(A)", _N, 45, 45, 45),
    _entry("Noise (industrial zone)", "dB(A)", _N, 70, 70, 70),
    _entry("Noise (commercial zone)", "dB(A)", _N, 65, 65, 65),
)


def default_catalog() -> StandardsCatalog:
    """Build the catalog from the built-in table."""
    return StandardsCatalog(DEFAULT_STANDARDS)
