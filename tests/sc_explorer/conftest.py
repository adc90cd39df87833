import numpy as np
import pandas as pd
import anndata as ad
import pytest

from sc_explorer.core.context import ExplorerContext
from sc_explorer.core.dataset import Dataset
from sc_explorer.services.annotation import build_annotator
from sc_explorer.views import build_panel_registry


def _make_adata() -> ad.AnnData:
    """
    Tiny AnnData with:
    - 6 cells (c1..c6) in 3 clusters (A, B, C) with a numeric n_counts
    - 4 features (g1..g4) with a description column (g3 has none)
    - a 2D UMAP and a 3D PCA embedding
    - a 'counts' layer equal to X
    """
    obs = pd.DataFrame(
        {
            "cluster": pd.Categorical(["A", "A", "B", "B", "C", "C"]),
            "n_counts": [10.0, 20.0, 30.0, 40.0, 50.0, 60.0],
        },
        index=["c1", "c2", "c3", "c4", "c5", "c6"],
    )
    var = pd.DataFrame(
        {"description": ["first gene", "second gene", np.nan, "fourth gene"]},
        index=["g1", "g2", "g3", "g4"],
    )
    X = np.array(
        [
            [0.0, 1.0, 2.0, 3.0],
            [2.0, 0.0, 4.0, 0.0],
            [1.0, 1.0, 0.0, 5.0],
            [3.0, 0.0, 0.0, 1.0],
            [0.0, 2.0, 6.0, 0.0],
            [4.0, 0.0, 2.0, 2.0],
        ]
    )
    adata = ad.AnnData(X=X, obs=obs, var=var)
    adata.layers["counts"] = X.copy()
    adata.obsm["X_umap"] = np.array(
        [[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]]
    )
    adata.obsm["X_pca"] = np.arange(18, dtype=float).reshape(6, 3)
    return adata


@pytest.fixture
def adata() -> ad.AnnData:
    return _make_adata()


@pytest.fixture
def dataset(adata) -> Dataset:
    return Dataset(
        name="Tiny",
        adata=adata,
        embedding_key="X_umap",
        annotation_field="description",
    )


@pytest.fixture
def ctx(dataset) -> ExplorerContext:
    """Empty explorer session over the tiny dataset."""
    return ExplorerContext(dataset, build_panel_registry(), annotator=build_annotator(dataset))
