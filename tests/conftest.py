"""Pytest configuration and shared VCF builders for Gene Guard tests."""

from typing import Iterable, Optional

import pytest

ANN_HEADER = '##INFO=<ID=ANN,Number=.,Type=String,Description="Functional annotations. Format: GENE|ANNOTATION|IMPACT">'
CSQ_HEADER = '##INFO=<ID=CSQ,Number=.,Type=String,Description="Consequence annotations from Ensembl VEP. Format: Allele|Consequence|IMPACT|SYMBOL">'
BCSQ_HEADER = '##INFO=<ID=BCSQ,Number=.,Type=String,Description="Haplotype-aware consequence annotation from BCFtools/csq. Format: consequence|gene|transcript|biotype|impact">'
COLUMN_HEADER = "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO"


def data_line(
    info: str,
    chrom: str = "chr1",
    pos: int = 100,
    ref: str = "A",
    alt: str = "T",
    qual: str = "50",
    filter_status: str = "PASS",
) -> str:
    return "\t".join([chrom, str(pos), ".", ref, alt, qual, filter_status, info])


def make_vcf(records: Iterable[str], headers: Optional[Iterable[str]] = None) -> str:
    """Assemble a VCF text; defaults to an ANN-only header."""
    if headers is None:
        headers = [ANN_HEADER]
    lines = ["##fileformat=VCFv4.2", *headers, COLUMN_HEADER, *records]
    return "\n".join(lines) + "\n"


@pytest.fixture
def minimal_vcf() -> str:
    return make_vcf([data_line("ANN=BRCA1|missense_variant|MODERATE")])
