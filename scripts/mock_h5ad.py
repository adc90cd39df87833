"""Write a small demo dataset to data/demo.h5ad for config/global.json."""
import numpy as np
import pandas as pd
import anndata as ad
from pathlib import Path

n_cells = 300
n_genes = 60

rng = np.random.default_rng(0)
X = rng.poisson(lam=1.0, size=(n_cells, n_genes)).astype(np.float32)

obs = pd.DataFrame(
    {
        "cluster":   pd.Categorical(rng.choice(["C0", "C1", "C2"], size=n_cells)),
        "condition": pd.Categorical(rng.choice(["ctrl", "stim"], size=n_cells)),
        "n_counts":  X.sum(axis=1),
        "n_genes":   (X > 0).sum(axis=1),
    },
    index=[f"cell_{i}" for i in range(n_cells)],
)

var = pd.DataFrame(
    {
        "description": [f"Demo gene number {j}" for j in range(n_genes)],
        "mean_counts": X.mean(axis=0),
        "highly_variable": rng.random(n_genes) > 0.7,
    },
    index=[f"gene_{j}" for j in range(n_genes)],
)

adata = ad.AnnData(X=X, obs=obs, var=var)
adata.obsm["X_umap"] = rng.normal(size=(n_cells, 2))
adata.obsm["X_pca"] = rng.normal(size=(n_cells, 10))

Path("data").mkdir(exist_ok=True)
adata.write_h5ad("data/demo.h5ad")
print("wrote data/demo.h5ad", adata.shape)
