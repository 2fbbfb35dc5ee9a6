"""
Annotation normalization for ANN / CSQ / BCSQ INFO entries
SnpEff, VEP and bcftools csq each declare their own pipe-delimited layout
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Union


class AnnotationSource(str, Enum):
    SNPEFF = "snpeff"
    VEP = "vep"
    BCFTOOLS = "bcftools"


@dataclass(frozen=True)
class AnnotationRecord:
    gene: Optional[str] = None
    consequence: Optional[str] = None
    impact: Optional[str] = None


def _first_present(data: Dict[str, Optional[str]], *keys: str) -> Optional[str]:
    """Return the first non-empty value among keys"""
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


# -----------------------------
# Per-source field mapping
# -----------------------------

def _from_snpeff(data: Dict[str, Optional[str]]) -> AnnotationRecord:
    return AnnotationRecord(
        gene=_first_present(data, "GENE", "GENE_NAME"),
        consequence=_first_present(data, "ANNOTATION", "EFFECT"),
        impact=_first_present(data, "IMPACT"),
    )


def _from_vep(data: Dict[str, Optional[str]]) -> AnnotationRecord:
    consequence = _first_present(data, "Consequence")
    if consequence:
        # "stop_gained&splice_region_variant" -> primary term only
        consequence = consequence.split("&")[0]
    return AnnotationRecord(
        gene=_first_present(data, "SYMBOL"),
        consequence=consequence or None,
        impact=_first_present(data, "IMPACT"),
    )


def _from_bcftools(data: Dict[str, Optional[str]]) -> AnnotationRecord:
    return AnnotationRecord(
        gene=_first_present(data, "gene"),
        consequence=_first_present(data, "consequence"),
        impact=_first_present(data, "impact"),
    )


SOURCE_MAPPERS: Dict[AnnotationSource, Callable[[Dict[str, Optional[str]]], AnnotationRecord]] = {
    AnnotationSource.SNPEFF: _from_snpeff,
    AnnotationSource.VEP: _from_vep,
    AnnotationSource.BCFTOOLS: _from_bcftools,
}


def zip_fields(raw: str, fmt: List[str]) -> Dict[str, Optional[str]]:
    """
    Pair pipe-separated values with header field names by position.
    Format fields without a value map to None; surplus values are dropped.
    """
    values = raw.split("|")
    return {
        name: values[i] if i < len(values) else None
        for i, name in enumerate(fmt)
    }


def normalize(raw: str, fmt: List[str], source: Union[AnnotationSource, str]) -> AnnotationRecord:
    """
    Normalize one raw annotation string into a gene/consequence/impact record.

    Args:
        raw: Single annotation entry (one transcript/allele), pipe-delimited
        fmt: Field names declared in the header for this source
        source: AnnotationSource (or its string value)

    Unknown sources yield an empty record.
    """
    try:
        source = AnnotationSource(source)
    except ValueError:
        return AnnotationRecord()

    return SOURCE_MAPPERS[source](zip_fields(raw, fmt))
