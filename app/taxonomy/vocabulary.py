"""
Vocabulary Loader

Loads the static lookup data used by the pipeline from a JSON file:
- common name -> binomial table
- detection exclusion terms and species indicator words
- common-name descriptor vocabulary
- non-organism tokens
- known-lineage rules (e.g. class Aves implies phylum Chordata)

Keeping these as data means they can be extended without touching
pipeline logic. When the file cannot be read, a small built-in fallback
keeps the pipeline usable.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = Path(__file__).parent.parent / "data" / "vocabulary.json"


@dataclass(frozen=True)
class LineageRule:
    """If `rank` equals `value`, the ranks in `implies` are known."""
    rank: str
    value: str
    implies: Tuple[Tuple[str, str], ...]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineageRule":
        return cls(
            rank=str(data["rank"]).lower(),
            value=str(data["value"]).lower(),
            implies=tuple((str(k).lower(), str(v)) for k, v in (data.get("implies") or {}).items()),
        )


@dataclass(frozen=True)
class Vocabulary:
    """Static lookup data for the resolution pipeline."""
    common_names: Dict[str, str] = field(default_factory=dict)
    exclusion_terms: Tuple[str, ...] = ()
    species_indicators: Tuple[str, ...] = ()
    higher_rank_terms: Tuple[str, ...] = ("family", "order")
    common_name_descriptors: Tuple[str, ...] = ()
    non_organism_tokens: Tuple[str, ...] = ("virus", "bacteria")
    lineage_rules: Tuple[LineageRule, ...] = ()
    is_fallback: bool = False

    def lookup_common_name(self, name: str) -> Optional[str]:
        return self.common_names.get(name.strip().lower())


FALLBACK_VOCABULARY = Vocabulary(
    common_names={
        "american robin": "Turdus migratorius",
        "house sparrow": "Passer domesticus",
        "eurasian magpie": "Pica pica",
    },
    exclusion_terms=(
        "beak", "wing", "tail", "head", "eye", "leg", "foot", "feather", "claw",
        "bird", "vertebrate", "animal", "wildlife",
        "grey", "gray", "black", "white", "brown", "red", "blue", "green",
        "twig", "branch", "tree", "nature", "outdoor",
    ),
    species_indicators=("magpie", "crow", "jay", "hawk", "eagle", "sparrow", "robin", "owl"),
    common_name_descriptors=(
        "american", "european", "common", "lesser", "greater",
        "northern", "southern", "eastern", "western",
    ),
    lineage_rules=(
        LineageRule(rank="class", value="aves",
                    implies=(("phylum", "Chordata"), ("kingdom", "Animalia"))),
    ),
    is_fallback=True,
)


def _terms(values: Any) -> Tuple[str, ...]:
    return tuple(str(v).strip().lower() for v in (values or []) if str(v).strip())


class VocabularyLoader:
    """
    Loads vocabulary data from a JSON file.

    Usage:
        vocabulary = VocabularyLoader().load()
        vocabulary.lookup_common_name("American Robin")
    """

    def __init__(self, data_path: Optional[str] = None):
        self.data_path = Path(data_path) if data_path else DEFAULT_DATA_PATH
        self.load_error: Optional[str] = None

    def load(self) -> Vocabulary:
        """Parse the data file, returning the fallback vocabulary on failure."""
        try:
            with open(self.data_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            self.load_error = f"Vocabulary file not found: {self.data_path}"
            logger.warning(f"{self.load_error}. Using fallback vocabulary.")
            return FALLBACK_VOCABULARY
        except json.JSONDecodeError as e:
            self.load_error = f"Invalid JSON in vocabulary file: {e}"
            logger.error(f"Failed to parse vocabulary file {self.data_path}: {e}")
            return FALLBACK_VOCABULARY

        common_names = {
            str(k).strip().lower(): str(v).strip()
            for k, v in (data.get("common_names") or {}).items()
            if str(k).strip() and str(v).strip()
        }
        rules: List[LineageRule] = []
        for entry in data.get("lineage_rules") or []:
            try:
                rules.append(LineageRule.from_dict(entry))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed lineage rule {entry!r}: {e}")

        vocabulary = Vocabulary(
            common_names=common_names,
            exclusion_terms=_terms(data.get("exclusion_terms")),
            species_indicators=_terms(data.get("species_indicators")),
            higher_rank_terms=_terms(data.get("higher_rank_terms")) or ("family", "order"),
            common_name_descriptors=_terms(data.get("common_name_descriptors")),
            non_organism_tokens=_terms(data.get("non_organism_tokens")) or ("virus", "bacteria"),
            lineage_rules=tuple(rules),
        )
        logger.info(
            f"Loaded vocabulary: {len(common_names)} common names, "
            f"{len(vocabulary.exclusion_terms)} exclusion terms, "
            f"{len(rules)} lineage rules"
        )
        return vocabulary


# Singleton instance
_vocabulary: Optional[Vocabulary] = None


def get_vocabulary(data_path: Optional[str] = None) -> Vocabulary:
    """Get the vocabulary singleton (loaded on first use)."""
    global _vocabulary
    if _vocabulary is None:
        _vocabulary = VocabularyLoader(data_path).load()
    return _vocabulary
