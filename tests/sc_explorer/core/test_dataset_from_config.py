import pytest

from sc_explorer.config.model import DatasetConfig
from sc_explorer.core.dataset_loader import DATA_ROOT_ENV, from_config, resolve_dataset_path
from sc_explorer.core.exceptions import DatasetConfigError


def _cfg(tmp_path, **raw) -> DatasetConfig:
    raw.setdefault("path", "tiny.h5ad")
    return DatasetConfig.from_raw(raw, source_path=tmp_path / "global.json")


def test_loads_h5ad_next_to_config(tmp_path, adata, monkeypatch):
    monkeypatch.delenv(DATA_ROOT_ENV, raising=False)
    adata.write_h5ad(tmp_path / "tiny.h5ad")

    ds = from_config(_cfg(tmp_path, name="Tiny", annotation_column="description"))

    assert ds.name == "Tiny"
    assert ds.n_rows == 4 and ds.n_columns == 6
    assert ds.embedding_key == "X_umap"
    assert ds.annotation_field == "description"
    assert ds.file_path == tmp_path / "tiny.h5ad"


def test_data_root_env_wins(tmp_path, adata, monkeypatch):
    data_dir = tmp_path / "elsewhere"
    data_dir.mkdir()
    adata.write_h5ad(data_dir / "tiny.h5ad")
    monkeypatch.setenv(DATA_ROOT_ENV, str(data_dir))

    assert resolve_dataset_path(_cfg(tmp_path, path="data/tiny.h5ad")) == data_dir / "tiny.h5ad"


def test_missing_file_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(DATA_ROOT_ENV, raising=False)
    with pytest.raises(DatasetConfigError):
        from_config(_cfg(tmp_path))


@pytest.mark.parametrize(
    "raw",
    [
        {"embedding_key": "X_tsne"},
        {"annotation_column": "symbol"},
    ],
)
def test_unknown_keys_raise(tmp_path, adata, monkeypatch, raw):
    monkeypatch.delenv(DATA_ROOT_ENV, raising=False)
    adata.write_h5ad(tmp_path / "tiny.h5ad")
    with pytest.raises(DatasetConfigError):
        from_config(_cfg(tmp_path, **raw))
