#!/usr/bin/env python3
"""
Tests for voter ID field extraction and national ID code decoding.
"""

import sys
import os
import logging

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from idmatch.document_fields import (STATE_CODES, DocumentFieldExtractor,
                                     birth_date_from_curp, extract_back,
                                     extract_front, find_address, find_curp,
                                     find_elector_key, find_name, find_section,
                                     sex_from_curp, state_from_curp)
from face_fixtures import BACK_LINES, FRONT_LINES, FakeTextRecognizer, tagged_image

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def test_curp_decoding():
    curp = "GARC850101HDFRRL09"
    assert birth_date_from_curp(curp) == "01/01/1985"
    assert sex_from_curp(curp) == "Hombre"
    assert state_from_curp(curp) == "Ciudad de México"


def test_century_pivot():
    assert birth_date_from_curp("LOPM251231MJCPRR01") == "31/12/2025"
    assert birth_date_from_curp("LOPM260115MJCPRR01") == "15/01/1926"
    assert sex_from_curp("LOPM260115MJCPRR01") == "Mujer"
    assert state_from_curp("LOPM260115MJCPRR01") == "Jalisco"


def test_failed_decode_yields_none():
    assert birth_date_from_curp("GARCXX0101HDFRRL09") is None
    assert sex_from_curp("GARC850101XDFRRL09") is None
    assert state_from_curp("GARC850101HZZRRL09") is None
    assert birth_date_from_curp(None) is None


def test_state_table():
    assert len(STATE_CODES) == 33
    assert STATE_CODES["NE"] == "Nacido en el Extranjero"


def test_front_extraction():
    fields = extract_front(FRONT_LINES)
    assert fields.nombre == "GARCIA RODRIGUEZ JUAN"
    assert fields.domicilio == "C SOL 123, COL CENTRO 06000, CUAUHTEMOC, CDMX"
    assert fields.curp == "GARC850101HDFRRL09"
    assert fields.clave_elector == "GRRDJN85010109H100"
    assert fields.fecha_nacimiento == "01/01/1985"
    assert fields.sexo == "Hombre"
    assert fields.estado == "Ciudad de México"
    assert fields.seccion == "1234"
    assert fields.vigencia == "2030"


def test_back_extraction():
    fields = extract_back(BACK_LINES)
    assert fields.curp == "GARC850101HDFRRL09"
    assert fields.clave_elector == "GRRDJN85010109H100"
    assert fields.seccion == "1234"
    assert fields.vigencia == "2030"
    assert fields.emision == "03"


def test_curp_split_by_spaces_is_found():
    fields = extract_back(["CURP GARC 850101 HDFRRL09"])
    assert fields.curp == "GARC850101HDFRRL09"


def test_missing_fields_are_none():
    fields = extract_front(["", "1234", "abc"])
    assert fields.nombre is None
    assert fields.curp is None
    assert fields.domicilio is None
    assert fields.fecha_nacimiento is None


def test_name_rules():
    assert find_name(["INSTITUTO NACIONAL ELECTORAL", "MARIA LOPEZ"]) == "MARIA LOPEZ"
    # Too short, too many digits
    assert find_name(["ANA LI", "CALLE 12345 67"]) is None
    # Only the first ten lines are considered
    assert find_name(["x"] * 10 + ["PEDRO SANCHEZ"]) is None
    assert find_name(["  pedro sanchez  "]) == "PEDRO SANCHEZ"


def test_address_rules():
    lines = ["DOMICILIO", "", "AV REFORMA 10", "CURP ABC", "IGNORED"]
    assert find_address(lines) == "AV REFORMA 10"
    assert find_address(["NO MARKER", "AV REFORMA 10"]) is None


def test_repeated_address_marker_is_skipped():
    lines = ["DOMICILIO", "C SOL 123", "DOMICILIO COMPLEMENTARIO", "COL CENTRO 06000"]
    assert find_address(lines) == "C SOL 123, COL CENTRO 06000"


def test_codes_do_not_span_lines():
    assert find_curp(["GARC850101", "HDFRRL09"]) is None
    assert find_elector_key(["GRRDJN850101", "09H100"]) is None
    assert find_curp(["CURP", "GARC850101 HDFRRL09"]) == "GARC850101HDFRRL09"


def test_section_fallback_and_case():
    assert find_section(["Sección 0456"]) == "0456"
    assert find_section(["SEC 0789"]) == "0789"
    assert find_section(["SECCION"]) is None


def test_extractor_uses_language_hints():
    recognizer = FakeTextRecognizer({10: FRONT_LINES, 20: BACK_LINES})
    extractor = DocumentFieldExtractor(recognizer)
    front = extractor.read_front(tagged_image(10))
    back = extractor.read_back(tagged_image(20))
    assert recognizer.hints == ["es-MX", "es", "en"]
    assert front.curp == back.curp


def main():
    tests = [value for name, value in sorted(globals().items()) if name.startswith('test_') and callable(value)]
    failed = 0
    for test in tests:
        try:
            test()
            logger.info(f"{test.__name__}: PASSED")
        except AssertionError as e:
            failed += 1
            logger.error(f"{test.__name__}: FAILED {e}")
    logger.info(f"{len(tests) - failed}/{len(tests)} document field tests passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
