"""Static country coordinate lookups.

Two tables keyed by the calling convention of the providers that use
them: ISO-2 (outage providers) and ISO-3 (VIEWS conflict forecasts).
Unknown codes resolve to None and the caller drops the record.
"""

from __future__ import annotations

from typing import NamedTuple


class Coordinates(NamedTuple):
    """Approximate country center plus population for radius scaling."""

    lat: float
    lon: float
    population: int | None = None


class Centroid(NamedTuple):
    """Country centroid with display name."""

    lat: float
    lon: float
    name: str


# ISO-2 -> center and population, used by outage providers
COUNTRY_COORDINATES: dict[str, Coordinates] = {
    # Frequently affected by shutdowns
    "IR": Coordinates(32.4, 53.7, 85_000_000),
    "MM": Coordinates(19.7, 96.1, 54_000_000),
    "UA": Coordinates(48.4, 35.0, 44_000_000),
    "PS": Coordinates(31.4, 34.4, 5_000_000),
    "SD": Coordinates(15.5, 32.5, 45_000_000),
    "ET": Coordinates(9.0, 38.8, 120_000_000),
    "RU": Coordinates(55.75, 37.6, 144_000_000),
    "CN": Coordinates(35.0, 105.0, 1_400_000_000),
    "CU": Coordinates(21.5, -80.0, 11_000_000),
    "VE": Coordinates(8.0, -66.0, 28_000_000),
    "KP": Coordinates(39.03, 125.75, 26_000_000),
    "SY": Coordinates(35.0, 38.0, 22_000_000),
    "AF": Coordinates(33.9, 67.7, 40_000_000),
    "YE": Coordinates(15.5, 48.5, 30_000_000),
    "BY": Coordinates(53.9, 27.6, 9_500_000),
    "TM": Coordinates(38.9, 59.6, 6_000_000),
    # Broader coverage
    "US": Coordinates(37.1, -95.7, 331_000_000),
    "IN": Coordinates(20.6, 78.9, 1_380_000_000),
    "BR": Coordinates(-14.2, -51.9, 212_000_000),
    "ID": Coordinates(-0.8, 113.9, 270_000_000),
    "PK": Coordinates(30.4, 69.3, 220_000_000),
    "NG": Coordinates(9.1, 8.7, 206_000_000),
    "BD": Coordinates(23.7, 90.4, 164_000_000),
    "JP": Coordinates(36.2, 138.3, 126_000_000),
    "MX": Coordinates(23.6, -102.6, 128_000_000),
    "PH": Coordinates(12.9, 121.8, 109_000_000),
    "EG": Coordinates(26.8, 30.8, 102_000_000),
    "VN": Coordinates(14.1, 108.3, 97_000_000),
    "TR": Coordinates(38.9, 35.2, 84_000_000),
    "DE": Coordinates(51.2, 10.5, 83_000_000),
    "TH": Coordinates(15.9, 100.9, 70_000_000),
    "GB": Coordinates(55.4, -3.4, 67_000_000),
    "FR": Coordinates(46.2, 2.2, 67_000_000),
    "IT": Coordinates(41.9, 12.6, 60_000_000),
    "ZA": Coordinates(-30.6, 22.9, 59_000_000),
    "KE": Coordinates(0.0, 37.9, 54_000_000),
    "CO": Coordinates(4.6, -74.3, 51_000_000),
    "KR": Coordinates(35.9, 127.8, 52_000_000),
    "ES": Coordinates(40.5, -3.7, 47_000_000),
    "AR": Coordinates(-38.4, -63.6, 45_000_000),
    "PL": Coordinates(51.9, 19.1, 38_000_000),
    "DZ": Coordinates(28.0, 1.7, 44_000_000),
    "IQ": Coordinates(33.2, 43.7, 40_000_000),
    "MA": Coordinates(31.8, -7.1, 37_000_000),
    "SA": Coordinates(23.9, 45.1, 35_000_000),
    "PE": Coordinates(-9.2, -75.0, 33_000_000),
    "MY": Coordinates(4.2, 101.9, 32_000_000),
    "UZ": Coordinates(41.4, 64.6, 34_000_000),
    "NP": Coordinates(28.4, 84.1, 30_000_000),
    "GH": Coordinates(7.9, -1.0, 31_000_000),
    "AO": Coordinates(-11.2, 17.9, 33_000_000),
    "MZ": Coordinates(-18.7, 35.5, 31_000_000),
    "AU": Coordinates(-25.3, 133.8, 26_000_000),
    "TW": Coordinates(23.7, 121.0, 24_000_000),
    "CL": Coordinates(-35.7, -71.5, 19_000_000),
    "NL": Coordinates(52.1, 5.3, 17_000_000),
    "KZ": Coordinates(48.0, 68.0, 19_000_000),
    "GT": Coordinates(15.8, -90.2, 18_000_000),
    "EC": Coordinates(-1.8, -78.2, 18_000_000),
    "SN": Coordinates(14.5, -14.5, 17_000_000),
    "ZW": Coordinates(-19.0, 29.2, 15_000_000),
    "HT": Coordinates(18.9, -72.3, 11_000_000),
    "LB": Coordinates(33.9, 35.9, 7_000_000),
    "LY": Coordinates(26.3, 17.2, 7_000_000),
    "SO": Coordinates(5.2, 46.2, 16_000_000),
    "ML": Coordinates(17.6, -4.0, 20_000_000),
    "BF": Coordinates(12.2, -1.6, 21_000_000),
    "NE": Coordinates(17.6, 8.1, 24_000_000),
    "TD": Coordinates(15.5, 18.7, 16_000_000),
    "ER": Coordinates(15.2, 39.8, 4_000_000),
}

# ISO-3 -> centroid, used by conflict forecasts and arcs
COUNTRY_CENTROIDS: dict[str, Centroid] = {
    "UKR": Centroid(48.38, 31.17, "Ukraine"),
    "ISR": Centroid(31.05, 34.85, "Israel"),
    "PSE": Centroid(31.95, 35.23, "Palestine"),
    "ETH": Centroid(9.15, 40.49, "Ethiopia"),
    "SOM": Centroid(5.15, 46.2, "Somalia"),
    "AFG": Centroid(33.94, 67.71, "Afghanistan"),
    "YEM": Centroid(15.55, 48.52, "Yemen"),
    "SYR": Centroid(34.8, 39.0, "Syria"),
    "MMR": Centroid(21.91, 95.96, "Myanmar"),
    "PAK": Centroid(30.38, 69.35, "Pakistan"),
    "NGA": Centroid(9.08, 8.68, "Nigeria"),
    "COD": Centroid(-4.04, 21.76, "DR Congo"),
    "MLI": Centroid(17.57, -4.0, "Mali"),
    "BFA": Centroid(12.24, -1.56, "Burkina Faso"),
    "SDN": Centroid(12.86, 30.22, "Sudan"),
    "SSD": Centroid(6.88, 31.31, "South Sudan"),
    "RUS": Centroid(61.52, 105.32, "Russia"),
    "IRN": Centroid(32.43, 53.69, "Iran"),
    "IRQ": Centroid(33.22, 43.68, "Iraq"),
    "LBN": Centroid(33.85, 35.86, "Lebanon"),
    "CHN": Centroid(35.86, 104.2, "China"),
    "TWN": Centroid(23.7, 121.0, "Taiwan"),
    "KOR": Centroid(35.91, 127.77, "South Korea"),
    "PRK": Centroid(40.34, 127.51, "North Korea"),
    "IND": Centroid(20.59, 78.96, "India"),
    "ERI": Centroid(15.18, 39.78, "Eritrea"),
}


def resolve_country(code: str | None) -> Coordinates | None:
    """Look up an ISO-2 country code.

    Args:
        code: ISO 3166-1 alpha-2 code, any case.

    Returns:
        Coordinates, or None for empty/unknown codes.
    """
    if not code:
        return None
    return COUNTRY_COORDINATES.get(code.strip().upper())


def resolve_centroid(code: str | None) -> Centroid | None:
    """Look up an ISO-3 country code.

    Args:
        code: ISO 3166-1 alpha-3 code, any case.

    Returns:
        Centroid, or None for empty/unknown codes.
    """
    if not code:
        return None
    return COUNTRY_CENTROIDS.get(code.strip().upper())


__all__ = [
    "COUNTRY_CENTROIDS",
    "COUNTRY_COORDINATES",
    "Centroid",
    "Coordinates",
    "resolve_centroid",
    "resolve_country",
]
