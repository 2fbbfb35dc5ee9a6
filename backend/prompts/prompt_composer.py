"""
Prompt template loading and placeholder substitution
Templates use ${name} placeholders
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from vcf_filter import AnalysisResult

logger = logging.getLogger("prompt-composer")


class PromptTemplateError(RuntimeError):
    """Raised when no prompt template can be loaded"""


def load_template(inline: Optional[str] = None, path: Optional[Path] = None) -> str:
    """
    Returns the inline template if given, otherwise reads it from path.
    """
    if inline:
        logger.info("Using prompt template from GENAI_PROMPT")
        return inline

    if path is None:
        raise PromptTemplateError("No prompt template configured")

    try:
        template = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise PromptTemplateError(f"Cannot read prompt template {path}: {e}") from e

    logger.info(f"Loaded prompt template from {path}")
    return template


def detailed_variant_info(result: AnalysisResult) -> str:
    return "\n".join(
        f"- {v.representation}, Gene: {v.gene}, Effect: {v.consequence}"
        for v in result.variants
    )


def compose_prompt(template: str, result: AnalysisResult, age: str = "25", gender: str = "female") -> str:
    """Fill every known ${placeholder}; unknown ones are left as-is"""
    values: Dict[str, str] = {
        "age": str(age),
        "gender": str(gender),
        "variantSummary": result.variant_summary,
        "geneList": ", ".join(result.genes),
        "detailedVariantInfo": detailed_variant_info(result),
    }

    prompt = template
    for name, value in values.items():
        prompt = prompt.replace("${" + name + "}", value)
    return prompt
