from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import anndata as ad

from sc_explorer.config.model import DatasetConfig
from sc_explorer.core.dataset import Dataset
from sc_explorer.core.exceptions import DatasetConfigError

logger = logging.getLogger(__name__)

DATA_ROOT_ENV = "SC_EXPLORER_DATA_ROOT"


def _ensure_unique_names(adata: ad.AnnData, cfg: DatasetConfig, path: Path) -> ad.AnnData:
    """
    Ensure obs_names and var_names are unique, logging what we do.
    Identities are the currency of selections, so duplicates can't be kept.
    """
    if not adata.obs_names.is_unique:
        logger.warning(
            "Observation names are not unique for dataset '%s' (%s); "
            "calling .obs_names_make_unique() (in-memory fix)",
            cfg.name,
            path,
        )
        adata.obs_names_make_unique()

    if not adata.var_names.is_unique:
        logger.warning(
            "Variable names are not unique for dataset '%s' (%s); "
            "calling .var_names_make_unique() (in-memory fix)",
            cfg.name,
            path,
        )
        adata.var_names_make_unique()

    return adata


def resolve_dataset_path(cfg: DatasetConfig, data_root: Optional[Path] = None) -> Path:
    """
    Resolve a relative dataset path against, in order:
    SC_EXPLORER_DATA_ROOT, the configured data_root, the directory of global.json.
    The first candidate that exists wins; otherwise the last one is returned.
    """
    path = cfg.path
    if path.is_absolute():
        return path

    roots = []
    env_root = os.environ.get(DATA_ROOT_ENV)
    if env_root:
        roots.append(Path(env_root))
    if data_root is not None:
        roots.append(Path(data_root))
    roots.append(cfg.source_path.parent)

    candidates = []
    for root in roots:
        candidates.append(root / path)
        # Fallback for redundant 'data/' prefix
        if len(path.parts) > 1 and path.parts[0] == "data":
            candidates.append(root / Path(*path.parts[1:]))

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return candidates[-1]


def from_config(cfg: DatasetConfig, data_root: Optional[Path] = None) -> Dataset:
    """
    Materialise an AnnData-backed Dataset from a DatasetConfig.

    :raises DatasetConfigError: missing file, or configured keys absent from the file
    """
    path = resolve_dataset_path(cfg, data_root)
    if not path.is_file():
        raise DatasetConfigError(f"AnnData file not found at {path}.")

    adata = ad.read_h5ad(path)
    adata = _ensure_unique_names(adata, cfg, path)

    embedding_key = cfg.embedding_key
    if embedding_key is not None and embedding_key not in adata.obsm:
        msg = f"Dataset '{cfg.name}': embedding_key='{embedding_key}' not found in .obsm"
        logger.error(msg, extra={"dataset": cfg.name, "path": str(path)})
        raise DatasetConfigError(msg)
    if embedding_key is None and len(adata.obsm):
        embedding_key = "X_umap" if "X_umap" in adata.obsm else str(next(iter(adata.obsm.keys())))

    annotation_column = cfg.annotation_column
    if annotation_column is not None and annotation_column not in adata.var.columns:
        msg = f"Dataset '{cfg.name}': annotation_column='{annotation_column}' not found in .var"
        logger.error(msg, extra={"dataset": cfg.name, "path": str(path)})
        raise DatasetConfigError(msg)

    logger.info(
        "dataset_loaded",
        extra={
            "dataset": cfg.name,
            "path": str(path),
            "n_rows": int(adata.n_vars),
            "n_columns": int(adata.n_obs),
        },
    )

    return Dataset(
        name=cfg.name,
        adata=adata,
        embedding_key=embedding_key,
        annotation_field=annotation_column,
        file_path=path,
    )
