from qimen_engine.engine import ENGINE_SIGNATURE, ENGINE_VERSION
from qimen_engine.epoch import JU_TABLE
from qimen_engine.pattern_analyzer import validate_rule
from qimen_engine.pattern_rules import PATTERN_RULES
from qimen_engine.solar_terms import SOLAR_TERM_NAMES

EXPECTED_VERSION = "1.0.0"
EXPECTED_SIGNATURE = "QIMEN_CORE_V1"

# NOTE:
# Version and signature are hard-locked.
# Any change to the ju table or rule table requires bumping EXPECTED_* here.
def validate_engine_integrity() -> bool:
    errors: list[str] = []

    if ENGINE_VERSION != EXPECTED_VERSION:
        errors.append(f"Version mismatch: {ENGINE_VERSION} != {EXPECTED_VERSION}")

    if ENGINE_SIGNATURE != EXPECTED_SIGNATURE:
        errors.append("Engine structural signature mismatch.")

    missing_terms = [name for name in SOLAR_TERM_NAMES if name not in JU_TABLE]
    if missing_terms:
        errors.append(f"Ju table missing terms: {', '.join(missing_terms)}")
    for term, (ascending, values) in JU_TABLE.items():
        if not isinstance(ascending, bool) or len(values) != 3:
            errors.append(f"Ju table entry malformed for {term}")
        elif any(not 1 <= ju <= 9 for ju in values):
            errors.append(f"Ju out of range for {term}: {values}")

    seen: set[str] = set()
    for rule in PATTERN_RULES:
        try:
            validate_rule(rule)
        except ValueError as exc:
            errors.append(str(exc))
            continue
        if rule["id"] in seen:
            errors.append(f"Duplicate rule id {rule['id']}")
        seen.add(rule["id"])

    if errors:
        raise RuntimeError("ENGINE INTEGRITY FAILURE:\n" + "\n".join(errors))

    return True
