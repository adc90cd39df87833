from __future__ import annotations

import logging
from typing import Callable, Optional

import pandas as pd

from sc_explorer.core.dataset import Dataset

logger = logging.getLogger(__name__)

Annotator = Callable[[str], Optional[str]]


class AnnotationLookupError(LookupError):
    """The annotation source could not answer for an identity."""
    pass


class RowDataAnnotator:
    """
    Feature annotation backed by a column of the row metadata (`var`),
    e.g. a gene description column shipped in the h5ad file.

    Returns None for features without an annotation; raises
    AnnotationLookupError when the identity is not a feature at all.
    """

    def __init__(self, dataset: Dataset, column: str) -> None:
        if column not in dataset.row_data.columns:
            raise ValueError(f"Row data has no column '{column}'")
        self.dataset = dataset
        self.column = column

    def __call__(self, identity: str) -> Optional[str]:
        var = self.dataset.row_data
        if identity not in var.index:
            raise AnnotationLookupError(f"'{identity}' is not a feature of {self.dataset.name}")
        value = var.at[identity, self.column]
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return None
        text = str(value).strip()
        return text or None


def safe_annotate(annotator: Optional[Annotator], identity: Optional[str]) -> Optional[str]:
    """
    Look up `identity`, degrading to None ("no supplementary output") on any
    failure so the owning panel still renders.
    """
    if annotator is None or identity is None:
        return None
    try:
        return annotator(identity)
    except Exception:
        logger.warning(
            "annotation_lookup_failed",
            extra={"identity": identity},
            exc_info=True,
        )
        return None


def build_annotator(dataset: Dataset) -> Optional[Annotator]:
    """Annotator for the dataset's configured annotation field, if any."""
    if dataset.annotation_field is None:
        return None
    return RowDataAnnotator(dataset, dataset.annotation_field)
