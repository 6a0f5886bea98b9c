import re
from collections.abc import Callable

DEFAULT_QC_STEP_PATTERN = r"_qc_|_aqc_|quality_check|approve_mistake"
DEFAULT_APPROVAL_STEP_PATTERN = r"_qca_|_aqc_|approve_mistake|_confirm|confirm_"

StepPredicate = Callable[[str], bool]

_DELIMITED = re.compile(r"^/(.+)/([a-z]*)$")
_FLAG_MAP = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


class InvalidPatternError(ValueError):
    """Raised when a configured step pattern is not a valid regular expression."""


def compile_step_pattern(raw: str) -> re.Pattern[str]:
    """Compile a bare regex or a ``/regex/flags`` literal, always case-insensitive."""
    source = raw.strip()
    if not source:
        raise InvalidPatternError("step pattern must not be empty")
    flags = re.IGNORECASE
    match = _DELIMITED.match(source)
    if match:
        source = match.group(1)
        for flag in match.group(2):
            flags |= _FLAG_MAP.get(flag, 0)
    try:
        return re.compile(source, flags)
    except re.error as exc:
        raise InvalidPatternError(f"Invalid step pattern {raw!r}: {exc}") from exc


def pattern_predicate(pattern: re.Pattern[str]) -> StepPredicate:
    return lambda step_key: pattern.search(step_key) is not None


class QcPatterns:
    """Step-name classification used for QC effort and mistake attribution."""

    def __init__(
        self,
        qc_step_pattern: str = DEFAULT_QC_STEP_PATTERN,
        approval_step_pattern: str = DEFAULT_APPROVAL_STEP_PATTERN,
    ) -> None:
        self._qc = compile_step_pattern(qc_step_pattern)
        self._approval = compile_step_pattern(approval_step_pattern)

    def is_qc_step(self, step_key: str) -> bool:
        return self._qc.search(step_key) is not None

    def is_approval_step(self, step_key: str) -> bool:
        return self._approval.search(step_key) is not None


default_qc_predicate: StepPredicate = pattern_predicate(compile_step_pattern(DEFAULT_QC_STEP_PATTERN))
