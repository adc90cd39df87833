from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import anndata as ad
import numpy as np
import pandas as pd
import scipy.sparse as sp

from sc_explorer.core.selection import SelectionDimension

DEFAULT_ASSAY = "X"


@dataclass(frozen=True)
class ValidSets:
    """
    Cached valid values used when refining panel parameters.
    Building sets over large indexes is expensive, so we do it once per Dataset.
    """
    rows: frozenset[str]
    columns: frozenset[str]
    row_fields: frozenset[str]
    column_fields: frozenset[str]
    assays: frozenset[str]
    embeddings: frozenset[str]


class Dataset:
    """
    Read-only dataset abstraction used by every panel.

    Follows the SummarizedExperiment orientation:
    - rows are features (AnnData `var`), columns are cells (AnnData `obs`)
    - row metadata = `var`, column metadata = `obs`
    - assays = `X` plus every entry of `layers`
    - embeddings = `obsm`

    Includes:
    - Cached valid-value sets for parameter refinement
    - Cached subsetting by row/column identities
    - Cached expression extraction (cells × features)
    """

    MAX_SUBSET_CACHE = 128
    MAX_EXPR_CACHE = 128

    # -------------------------------------------------------------------------
    # Constructor
    # -------------------------------------------------------------------------
    def __init__(
        self,
        name: str,
        adata: ad.AnnData,
        embedding_key: Optional[str] = None,
        annotation_field: Optional[str] = None,
        file_path: Optional[Path] = None,
    ) -> None:
        self.name = name
        self.adata = adata
        self.embedding_key = embedding_key
        self.annotation_field = annotation_field
        self.file_path = file_path

        self._row_names: List[str] = [str(v) for v in adata.var_names]
        self._column_names: List[str] = [str(o) for o in adata.obs_names]

        # ---------------------------------------------------------------------
        # Caches
        # ---------------------------------------------------------------------
        self._subset_cache: Dict[Tuple[Tuple[str, ...], Tuple[str, ...]], "Dataset"] = {}
        self._expr_cache: Dict[Tuple[str, Tuple[str, ...]], pd.DataFrame] = {}
        self._valid_sets: Optional[ValidSets] = None

    def __repr__(self) -> str:
        return f"Dataset(name={self.name!r}, n_rows={self.n_rows}, n_columns={self.n_columns})"

    # -------------------------------------------------------------------------
    # Identities
    # -------------------------------------------------------------------------
    @property
    def n_rows(self) -> int:
        return len(self._row_names)

    @property
    def n_columns(self) -> int:
        return len(self._column_names)

    def row_names(self) -> List[str]:
        return list(self._row_names)

    def column_names(self) -> List[str]:
        return list(self._column_names)

    def names(self, dimension: SelectionDimension) -> List[str]:
        """All identities along `dimension`, in dataset order."""
        if dimension is SelectionDimension.ROW:
            return self.row_names()
        if dimension is SelectionDimension.COLUMN:
            return self.column_names()
        return []

    # -------------------------------------------------------------------------
    # Metadata tables
    # -------------------------------------------------------------------------
    @property
    def row_data(self) -> pd.DataFrame:
        return self.adata.var

    @property
    def column_data(self) -> pd.DataFrame:
        return self.adata.obs

    def metadata(self, dimension: SelectionDimension) -> pd.DataFrame:
        if dimension is SelectionDimension.ROW:
            return self.row_data
        if dimension is SelectionDimension.COLUMN:
            return self.column_data
        raise ValueError(f"No metadata table along dimension '{dimension.value}'")

    def row_fields(self) -> List[str]:
        return [str(c) for c in self.adata.var.columns]

    def column_fields(self) -> List[str]:
        return [str(c) for c in self.adata.obs.columns]

    def fields(self, dimension: SelectionDimension) -> List[str]:
        if dimension is SelectionDimension.ROW:
            return self.row_fields()
        if dimension is SelectionDimension.COLUMN:
            return self.column_fields()
        return []

    def numeric_column_fields(self) -> List[str]:
        obs = self.adata.obs
        return [str(c) for c in obs.columns if pd.api.types.is_numeric_dtype(obs[c])]

    def categorical_column_fields(self) -> List[str]:
        obs = self.adata.obs
        return [str(c) for c in obs.columns if not pd.api.types.is_numeric_dtype(obs[c])]

    def assay_names(self) -> List[str]:
        return [DEFAULT_ASSAY] + [str(k) for k in self.adata.layers.keys()]

    def embedding_names(self) -> List[str]:
        return [str(k) for k in self.adata.obsm.keys()]

    # -------------------------------------------------------------------------
    # Cached valid values for refinement
    # -------------------------------------------------------------------------
    def valid_sets(self) -> ValidSets:
        """
        Return cached valid values for parameter refinement.

        This avoids rebuilding sets every time a panel is (re)built.
        """
        if self._valid_sets is not None:
            return self._valid_sets

        self._valid_sets = ValidSets(
            rows=frozenset(self._row_names),
            columns=frozenset(self._column_names),
            row_fields=frozenset(self.row_fields()),
            column_fields=frozenset(self.column_fields()),
            assays=frozenset(self.assay_names()),
            embeddings=frozenset(self.embedding_names()),
        )
        return self._valid_sets

    # -------------------------------------------------------------------------
    # Subsetting with caching
    # -------------------------------------------------------------------------
    def subset(
        self,
        rows: Optional[Sequence[str]] = None,
        columns: Optional[Sequence[str]] = None,
        *,
        copy_adata: bool = False,
    ) -> "Dataset":
        """
        Return a new Dataset restricted to the given row and/or column identities.
        None means "keep everything" along that axis; unknown identities are ignored.
        Subsets are cached to avoid recomputation.

        Args:
            copy_adata: If True, forces `adata[...].copy()`. Default False keeps a
                        view (lower memory) assuming read-only usage.
        """
        key = (
            tuple(sorted(map(str, rows))) if rows is not None else ("*",),
            tuple(sorted(map(str, columns))) if columns is not None else ("*",),
        )
        cached = self._subset_cache.get(key)
        if cached is not None:
            return cached

        adata = self.adata
        obs_mask = np.ones(adata.n_obs, dtype=bool)
        var_mask = np.ones(adata.n_vars, dtype=bool)

        if columns is not None:
            obs_mask = adata.obs_names.isin([str(c) for c in columns])
        if rows is not None:
            var_mask = adata.var_names.isin([str(r) for r in rows])

        sub_adata = adata[obs_mask, var_mask]
        if copy_adata:
            sub_adata = sub_adata.copy()

        subset_ds = Dataset(
            name=self.name,
            adata=sub_adata,
            embedding_key=self.embedding_key,
            annotation_field=self.annotation_field,
            file_path=self.file_path,
        )

        self._subset_cache[key] = subset_ds

        # Prevent unbounded growth
        if len(self._subset_cache) > self.MAX_SUBSET_CACHE:
            self._subset_cache.clear()

        return subset_ds

    # -------------------------------------------------------------------------
    # Expression Matrix Extraction (cached)
    # -------------------------------------------------------------------------
    def expression_matrix(
        self,
        features: Sequence[str],
        assay: str = DEFAULT_ASSAY,
        columns: Optional[Sequence[str]] = None,
    ) -> pd.DataFrame:
        """
        Return an expression matrix (cells × features) for the given features.

        Notes:
        - Cache key is order-insensitive for features; the returned columns follow
          dataset order.
        - Restrict cells with `columns`; rows of the result follow `columns` order.
        - If none of the features exist, returns an empty DataFrame indexed by cells.
        """
        key = (assay, tuple(sorted(set(map(str, features)))))
        df = self._expr_cache.get(key)

        if df is None:
            adata = self.adata
            var_mask = adata.var_names.isin(list(key[1]))
            if not var_mask.any():
                df = pd.DataFrame(index=adata.obs_names.astype(str))
            else:
                matrix = adata.X if assay == DEFAULT_ASSAY else adata.layers[assay]
                X = matrix[:, np.flatnonzero(var_mask)]
                if sp.issparse(X):
                    X = X.toarray()
                df = pd.DataFrame(
                    np.asarray(X),
                    index=adata.obs_names.astype(str),
                    columns=adata.var_names[var_mask].astype(str),
                )

            self._expr_cache[key] = df
            if len(self._expr_cache) > self.MAX_EXPR_CACHE:
                self._expr_cache.clear()

        if columns is not None:
            df = df.loc[[str(c) for c in columns]]
        return df

    # -------------------------------------------------------------------------
    # Embeddings
    # -------------------------------------------------------------------------
    def get_embedding(self, key: Optional[str] = None) -> pd.DataFrame:
        """
        Return the embedding for the given obsm key as a DataFrame with dim1, dim2, ...

        If key is None, uses this dataset's configured embedding_key.
        """
        emb_key = key or self.embedding_key
        if emb_key is None:
            raise ValueError("No embedding key specified for this dataset")

        if emb_key not in self.adata.obsm:
            raise ValueError(f"Embedding '{emb_key}' not found in adata.obsm")

        emb = self.adata.obsm[emb_key]
        index = self.adata.obs_names.astype(str)

        if isinstance(emb, pd.DataFrame):
            arr = emb.to_numpy()
        else:
            arr = np.asarray(emb)

        if arr.ndim != 2:
            raise ValueError(f"Embedding '{emb_key}' must be 2D, got shape {arr.shape}")

        cols = [f"dim{i + 1}" for i in range(arr.shape[1])]
        return pd.DataFrame(arr, index=index, columns=cols)

    def embedding_width(self, key: str) -> int:
        emb = self.adata.obsm[key]
        return int(np.asarray(emb).shape[1]) if not isinstance(emb, pd.DataFrame) else emb.shape[1]

    # -------------------------------------------------------------------------
    # Cache management
    # -------------------------------------------------------------------------
    def clear_caches(self) -> None:
        """Reset caches for subsets, expression matrices, and valid value sets."""
        self._subset_cache.clear()
        self._expr_cache.clear()
        self._valid_sets = None
