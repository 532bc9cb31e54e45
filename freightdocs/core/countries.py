"""Countries covered by the bilateral road-transport agreement."""
from typing import Dict, List, Optional


COUNTRIES: Dict[str, Dict[str, str]] = {
    "BR": {"code": "BR", "name": "Brasil"},
    "AR": {"code": "AR", "name": "Argentina"},
    "PY": {"code": "PY", "name": "Paraguai"},
    "UY": {"code": "UY", "name": "Uruguai"},
    "CL": {"code": "CL", "name": "Chile"},
    "BO": {"code": "BO", "name": "Bolívia"},
    "PE": {"code": "PE", "name": "Peru"},
}


def normalize_country(code: Optional[str]) -> Optional[str]:
    """Uppercase and strip a country code; None stays None."""
    if code is None:
        return None
    return code.strip().upper()


def list_countries() -> List[Dict[str, str]]:
    return list(COUNTRIES.values())
