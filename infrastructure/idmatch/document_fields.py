"""
Document Field Extractor
Turns recognized text lines from the front and back of a voter ID card
into structured identity fields. Every rule is optional: a field that
cannot be found is left as None.
"""

import logging
import re
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

import numpy as np

from .providers import TextRecognizer

logger = logging.getLogger(__name__)

CURP_PATTERN = r"[A-Z]{4}[0-9]{6}[HM][A-Z]{5}[A-Z0-9]{2}"
ELECTOR_KEY_PATTERN = r"[A-Z]{6}[0-9]{8}[A-Z][0-9]{3}"

SECTION_PATTERNS = [r"SECCI[OÓ]N\s*([0-9]{4})", r"SEC\s*([0-9]{4})"]
VALIDITY_PATTERN = r"VIGENCIA\s*([0-9]{4})"
ISSUANCE_PATTERN = r"EMISI[OÓ]N\s*([0-9]{2})"

NAME_STOPWORDS = ("INSTITUTO", "ELECTORAL", "CREDENCIAL", "VOTAR", "NOMBRE", "DOMICILIO")
ADDRESS_MARKER = "DOMICILIO"
ADDRESS_STOP_MARKERS = ("CLAVE", "CURP", "SECCI")

DEFAULT_LANGUAGE_HINTS = ["es-MX", "es", "en"]

MALE_LABEL = "Hombre"
FEMALE_LABEL = "Mujer"

# Two-letter birth state codes used in the national ID code
STATE_CODES: Dict[str, str] = {
    "AS": "Aguascalientes",
    "BC": "Baja California",
    "BS": "Baja California Sur",
    "CC": "Campeche",
    "CL": "Coahuila",
    "CM": "Colima",
    "CS": "Chiapas",
    "CH": "Chihuahua",
    "DF": "Ciudad de México",
    "DG": "Durango",
    "GT": "Guanajuato",
    "GR": "Guerrero",
    "HG": "Hidalgo",
    "JC": "Jalisco",
    "MC": "México",
    "MN": "Michoacán",
    "MS": "Morelos",
    "NT": "Nayarit",
    "NL": "Nuevo León",
    "OC": "Oaxaca",
    "PL": "Puebla",
    "QT": "Querétaro",
    "QR": "Quintana Roo",
    "SP": "San Luis Potosí",
    "SL": "Sinaloa",
    "SR": "Sonora",
    "TC": "Tabasco",
    "TS": "Tamaulipas",
    "TL": "Tlaxcala",
    "VZ": "Veracruz",
    "YN": "Yucatán",
    "ZS": "Zacatecas",
    "NE": "Nacido en el Extranjero",
}


@dataclass
class DocumentFrontFields:
    nombre: Optional[str] = None
    domicilio: Optional[str] = None
    curp: Optional[str] = None
    clave_elector: Optional[str] = None
    fecha_nacimiento: Optional[str] = None
    sexo: Optional[str] = None
    estado: Optional[str] = None
    seccion: Optional[str] = None
    vigencia: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass
class DocumentBackFields:
    curp: Optional[str] = None
    clave_elector: Optional[str] = None
    seccion: Optional[str] = None
    vigencia: Optional[str] = None
    emision: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


def _compact_upper(lines: List[str]) -> str:
    # Lines stay separated so a code never spans two OCR lines
    return "\n".join(lines).upper().replace(" ", "")


def find_curp(lines: List[str]) -> Optional[str]:
    match = re.search(CURP_PATTERN, _compact_upper(lines))
    return match.group(0) if match else None


def find_elector_key(lines: List[str]) -> Optional[str]:
    match = re.search(ELECTOR_KEY_PATTERN, _compact_upper(lines))
    return match.group(0) if match else None


def _first_group(patterns: List[str], text: str) -> Optional[str]:
    for pattern in patterns:
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            return match.group(1)
    return None


def find_section(lines: List[str]) -> Optional[str]:
    return _first_group(SECTION_PATTERNS, " ".join(lines))


def find_validity(lines: List[str]) -> Optional[str]:
    return _first_group([VALIDITY_PATTERN], " ".join(lines))


def find_issuance(lines: List[str]) -> Optional[str]:
    return _first_group([ISSUANCE_PATTERN], " ".join(lines))


def find_name(lines: List[str]) -> Optional[str]:
    """First plausible name among the top lines of the card."""
    for raw in lines[:10]:
        line = raw.strip()
        if len(line) < 5:
            continue
        upper = line.upper()
        if any(word in upper for word in NAME_STOPWORDS):
            continue
        letters = sum(1 for ch in line if ch.isalpha() or ch.isspace())
        if letters > len(line) * 70 // 100 and len(line) > 8:
            return upper
    return None


def find_address(lines: List[str]) -> Optional[str]:
    collected = []
    capturing = False
    for raw in lines:
        line = raw.strip()
        upper = line.upper()
        if ADDRESS_MARKER in upper:
            capturing = True
            continue
        if not capturing:
            continue
        if any(marker in upper for marker in ADDRESS_STOP_MARKERS):
            break
        if line:
            collected.append(line)
        if len(collected) >= 3:
            break
    return ", ".join(collected) if collected else None


def birth_date_from_curp(curp: Optional[str]) -> Optional[str]:
    """Decode YYMMDD at positions 4-9 into DD/MM/YYYY (pivot year 25)."""
    if not curp or len(curp) < 10:
        return None
    digits = curp[4:10]
    if not digits.isdigit():
        return None
    yy, mm, dd = int(digits[0:2]), int(digits[2:4]), int(digits[4:6])
    year = 1900 + yy if yy > 25 else 2000 + yy
    return "%02d/%02d/%04d" % (dd, mm, year)


def sex_from_curp(curp: Optional[str]) -> Optional[str]:
    if not curp or len(curp) < 11:
        return None
    return {"H": MALE_LABEL, "M": FEMALE_LABEL}.get(curp[10])


def state_from_curp(curp: Optional[str]) -> Optional[str]:
    if not curp or len(curp) < 13:
        return None
    return STATE_CODES.get(curp[11:13])


def extract_front(lines: List[str]) -> DocumentFrontFields:
    curp = find_curp(lines)
    fields = DocumentFrontFields(
        nombre=find_name(lines),
        domicilio=find_address(lines),
        curp=curp,
        clave_elector=find_elector_key(lines),
        fecha_nacimiento=birth_date_from_curp(curp),
        sexo=sex_from_curp(curp),
        estado=state_from_curp(curp),
        seccion=find_section(lines),
        vigencia=find_validity(lines),
    )
    found = sum(1 for value in fields.to_dict().values() if value)
    logger.info(f"Front extraction found {found} fields from {len(lines)} lines")
    return fields


def extract_back(lines: List[str]) -> DocumentBackFields:
    fields = DocumentBackFields(
        curp=find_curp(lines),
        clave_elector=find_elector_key(lines),
        seccion=find_section(lines),
        vigencia=find_validity(lines),
        emision=find_issuance(lines),
    )
    found = sum(1 for value in fields.to_dict().values() if value)
    logger.info(f"Back extraction found {found} fields from {len(lines)} lines")
    return fields


class DocumentFieldExtractor:
    """Runs the text recognizer and the extraction rules for each card side."""

    def __init__(self, recognizer: TextRecognizer, language_hints: Optional[List[str]] = None):
        self.recognizer = recognizer
        self.language_hints = language_hints or list(DEFAULT_LANGUAGE_HINTS)

    def recognize_lines(self, image: np.ndarray) -> List[str]:
        lines = self.recognizer.recognize(image, self.language_hints)
        logger.debug(f"Recognized {len(lines)} text lines")
        return lines

    def read_front(self, image: np.ndarray) -> DocumentFrontFields:
        return extract_front(self.recognize_lines(image))

    def read_back(self, image: np.ndarray) -> DocumentBackFields:
        return extract_back(self.recognize_lines(image))
