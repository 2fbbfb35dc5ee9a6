# backend/vcf_filter.py

import logging
import math
import re
from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple, Union

from annotations.normalizer import AnnotationRecord, AnnotationSource, normalize

logger = logging.getLogger("vcf-filter")


# -----------------------------
# Variant Rules
# -----------------------------

MIN_VARIANT_QUALITY = 30.0
MAX_ALLELE_FREQUENCY_COMMON = 0.01
MAX_VARIANTS_TO_REPORT = 5

# Severity-descending; position is the rank
INTERESTING_CONSEQUENCES: Tuple[str, ...] = (
    "transcript_ablation",
    "splice_acceptor_variant",
    "splice_donor_variant",
    "stop_gained",
    "frameshift_variant",
    "stop_lost",
    "start_lost",
    "inframe_insertion",
    "inframe_deletion",
    "missense_variant",
    "protein_altering_variant",
    "splice_region_variant",
    "synonymous_variant",
)

CONSEQUENCE_PRIORITY = MappingProxyType(
    {consequence: rank for rank, consequence in enumerate(INTERESTING_CONSEQUENCES)}
)

# INFO key, header ID and source tag, in lookup priority order
ANNOTATION_KEYS: Tuple[Tuple[str, AnnotationSource], ...] = (
    ("ANN", AnnotationSource.SNPEFF),
    ("CSQ", AnnotationSource.VEP),
    ("BCSQ", AnnotationSource.BCFTOOLS),
)

UNKNOWN = "N/A"
EMPTY_VCF_ERROR = "Empty VCF"
NO_VARIANTS_ERROR = "No variants passed filters"

_INFO_HEADER_RE = re.compile(r"^##INFO=<ID=(ANN|CSQ|BCSQ)[,>]")
_FORMAT_RE = re.compile(r'Format: (.+?)">')


# -----------------------------
# Result Types
# -----------------------------

@dataclass(frozen=True)
class RankedVariant:
    representation: str
    gene: str
    consequence: str
    impact: str
    qual: float

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class AnalysisResult:
    variants: List[RankedVariant] = field(default_factory=list)
    genes: List[str] = field(default_factory=list)
    variant_summary: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict:
        return {
            "variants": [v.to_dict() for v in self.variants],
            "genes": list(self.genes),
            "variantSummary": self.variant_summary,
            "error": self.error,
        }


# -----------------------------
# Parsing Helpers
# -----------------------------

def _parse_number(value: str) -> Optional[float]:
    """float() that returns None instead of raising, and rejects NaN"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def parse_header_formats(lines: List[str]) -> Dict[AnnotationSource, List[str]]:
    """
    Collect the annotation field layout declared for ANN, CSQ and BCSQ.

    Only the text after the literal 'Format: ' up to the closing '">' is used.
    When a source is declared more than once, the last declaration that
    carries a Format clause wins.
    """
    sources = dict(ANNOTATION_KEYS)
    formats: Dict[AnnotationSource, List[str]] = {}

    for line in lines:
        if not line.startswith("##"):
            continue
        header = _INFO_HEADER_RE.match(line)
        if not header:
            continue
        fmt = _FORMAT_RE.search(line)
        if fmt:
            formats[sources[header.group(1)]] = fmt.group(1).split("|")

    return formats


def parse_info(info_str: str) -> Dict[str, Union[str, bool]]:
    """Split an INFO column into a dict; bare keys become True flags"""
    info: Dict[str, Union[str, bool]] = {}
    for item in info_str.split(";"):
        key, sep, value = item.partition("=")
        info[key] = value if sep else True
    return info


def _csv_numbers(value) -> List[float]:
    if not isinstance(value, str):
        return []
    numbers = (_parse_number(v) for v in value.split(","))
    return [n for n in numbers if n is not None]


def max_allele_frequency(info: Dict[str, Union[str, bool]]) -> Optional[float]:
    """
    Highest allele frequency for the record, or None if it cannot be derived.

    AF is preferred; otherwise AC / AN is used when AN is positive.
    """
    if info.get("AF"):
        af_values = _csv_numbers(info["AF"])
        return max(af_values) if af_values else None

    if info.get("AC") and info.get("AN"):
        an = _parse_number(info["AN"]) if isinstance(info["AN"], str) else None
        if an is None or an <= 0:
            return None
        ac_values = _csv_numbers(info["AC"])
        return max(ac / an for ac in ac_values) if ac_values else None

    return None


def extract_annotations(
    info: Dict[str, Union[str, bool]],
    formats: Dict[AnnotationSource, List[str]],
) -> List[AnnotationRecord]:
    """Normalize entries of the first usable annotation key (ANN > CSQ > BCSQ)"""
    for key, source in ANNOTATION_KEYS:
        value = info.get(key)
        fmt = formats.get(source)
        if isinstance(value, str) and value and fmt:
            return [normalize(raw, fmt, source) for raw in value.split(",")]
    return []


def select_best_annotation(annotations: List[AnnotationRecord]) -> Optional[AnnotationRecord]:
    """
    Most severe annotation among the interesting consequences.
    Ties keep the earliest annotation in file order.
    """
    best = None
    best_rank = None
    for annotation in annotations:
        rank = CONSEQUENCE_PRIORITY.get(annotation.consequence)
        if rank is None:
            continue
        if best_rank is None or rank < best_rank:
            best, best_rank = annotation, rank
    return best


# -----------------------------
# Filtering & Ranking
# -----------------------------

def _rank_line(line: str, formats: Dict[AnnotationSource, List[str]]) -> Optional[RankedVariant]:
    cols = line.split("\t")
    if len(cols) < 8:
        logger.debug(f"Skipping line with {len(cols)} columns")
        return None

    chrom, pos, _, ref, alt_str, qual_str, filter_status, info_str = cols[:8]

    qual = _parse_number(qual_str)
    if qual is None or not math.isfinite(qual) or qual < MIN_VARIANT_QUALITY:
        logger.debug(f"{chrom}:{pos} skipped: QUAL {qual_str!r}")
        return None

    if filter_status not in ("PASS", "."):
        logger.debug(f"{chrom}:{pos} skipped: FILTER {filter_status}")
        return None

    info = parse_info(info_str)

    max_af = max_allele_frequency(info)
    if max_af is not None and max_af > MAX_ALLELE_FREQUENCY_COMMON:
        logger.debug(f"{chrom}:{pos} skipped: common variant (AF {max_af:.4f})")
        return None

    best = select_best_annotation(extract_annotations(info, formats))
    if best is None:
        logger.debug(f"{chrom}:{pos} skipped: no actionable consequence")
        return None

    return RankedVariant(
        representation=f"{chrom}:{pos} {ref}>{alt_str.split(',')[0]}",
        gene=best.gene or UNKNOWN,
        consequence=best.consequence,
        impact=best.impact or UNKNOWN,
        qual=qual,
    )


def summarize_variants(variants: List[RankedVariant]) -> str:
    return "; ".join(
        f"{v.representation} (Gene: {v.gene}, Effect: {v.consequence})"
        for v in variants
    )


def analyze(file_content: str) -> AnalysisResult:
    """
    Filter and rank the variants of a VCF text.

    Quality, FILTER and allele-frequency gates are applied per data line,
    the most severe interesting annotation is kept, and scanning stops
    once MAX_VARIANTS_TO_REPORT variants are collected.

    Args:
        file_content: Full VCF text

    Returns:
        AnalysisResult; problems with the input are reported through
        its `error` field
    """
    if not isinstance(file_content, str):
        raise TypeError(f"VCF content must be str, got {type(file_content).__name__}")

    if not file_content.strip():
        return AnalysisResult(error=EMPTY_VCF_ERROR)

    lines = [line.rstrip("\r") for line in file_content.split("\n")]
    formats = parse_header_formats(lines)
    logger.info(f"Annotation formats found: {[s.value for s in formats] or 'none'}")

    variants: List[RankedVariant] = []
    scanned = 0
    for line in lines:
        if len(variants) >= MAX_VARIANTS_TO_REPORT:
            break
        if not line or line.startswith("#"):
            continue
        scanned += 1
        variant = _rank_line(line, formats)
        if variant is not None:
            variants.append(variant)

    logger.info(f"Ranked {len(variants)} variants from {scanned} data lines scanned")

    if not variants:
        return AnalysisResult(error=NO_VARIANTS_ERROR)

    genes = list(dict.fromkeys(v.gene for v in variants if v.gene != UNKNOWN))

    return AnalysisResult(
        variants=variants,
        genes=genes,
        variant_summary=summarize_variants(variants),
    )
