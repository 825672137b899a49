from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence, Tuple

from .seasonal import MonthlyRainfall


LOW_RAINFALL_MM = 500
HIGH_RAINFALL_MM = 1200


@dataclass(frozen=True)
class CropRecommendation:
    soil_type: str
    crops: str
    sowing_period: str
    common_diseases: str
    precautions: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


_RECOMMENDATIONS: Dict[str, Tuple[CropRecommendation, ...]] = {
    "low": (
        CropRecommendation(
            soil_type="Red Soil",
            crops="Millets, Pulses",
            sowing_period="June-July",
            common_diseases="Leaf spot",
            precautions="Drought-tolerant varieties",
        ),
        CropRecommendation(
            soil_type="Black Soil",
            crops="Sorghum, Wheat",
            sowing_period="June-July",
            common_diseases="Rust",
            precautions="Minimal irrigation",
        ),
    ),
    "moderate": (
        CropRecommendation(
            soil_type="Red Soil",
            crops="Groundnut, Cotton",
            sowing_period="June-July",
            common_diseases="Leaf spot, Root rot",
            precautions="Crop rotation",
        ),
        CropRecommendation(
            soil_type="Black Soil",
            crops="Cotton, Sorghum, Wheat",
            sowing_period="June-July",
            common_diseases="Rust, Blight",
            precautions="Integrated pest management",
        ),
    ),
    "high": (
        CropRecommendation(
            soil_type="Red Soil",
            crops="Paddy, Sugarcane",
            sowing_period="June-July",
            common_diseases="Blast, Root rot",
            precautions="Water management",
        ),
        CropRecommendation(
            soil_type="Black Soil",
            crops="Paddy, Cotton",
            sowing_period="June-July",
            common_diseases="Blight",
            precautions="Ensure drainage",
        ),
    ),
}


def rainfall_band(annual_rainfall: float) -> str:
    """Band of an annual rainfall figure: low (<500), moderate, high (>=1200)."""
    if annual_rainfall < LOW_RAINFALL_MM:
        return "low"
    if annual_rainfall < HIGH_RAINFALL_MM:
        return "moderate"
    return "high"


def get_crop_recommendations(annual_rainfall: float) -> List[CropRecommendation]:
    return list(_RECOMMENDATIONS[rainfall_band(annual_rainfall)])


def build_advisory_report(
    location: str,
    annual_rainfall: int,
    monthly: Sequence[MonthlyRainfall],
    recommendations: Sequence[CropRecommendation],
    data_level: str,
    target_year: int,
) -> str:
    """
    Turn a rainfall prediction into a plain-text advisory for farmers and
    extension officers.
    """
    wettest = sorted(monthly, key=lambda m: m.rainfall, reverse=True)[:3]
    band = rainfall_band(annual_rainfall)

    lines = []
    lines.append(f"Rainfall outlook for {location} ({target_year}):")
    lines.append("")
    lines.append(
        f"Predicted annual rainfall: {annual_rainfall} mm ({band} rainfall band)."
    )
    lines.append(
        "Wettest months: "
        + ", ".join(f"{m.month} (~{m.rainfall:.0f} mm)" for m in wettest)
        + "."
    )
    lines.append(f"Estimate based on {data_level.lower()}-level rainfall history.")
    lines.append("")
    lines.append("Recommended cropping by soil type:")
    for idx, rec in enumerate(recommendations, start=1):
        lines.append(
            f"{idx}. {rec.soil_type}: {rec.crops}; sow {rec.sowing_period}. "
            f"Watch for {rec.common_diseases.lower()}. {rec.precautions}."
        )
    lines.append("")
    lines.append(
        "Advisory note: These projections are based on district, taluk, and "
        "hobli rainfall records for past years. Farmers should adapt these "
        "recommendations to their specific field conditions and water "
        "availability, and review them with local agronomists where possible."
    )
    return "\n".join(lines)
