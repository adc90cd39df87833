import pytest

from sc_explorer.core.selection import SelectionDimension


def test_orientation_rows_are_features_columns_are_cells(dataset):
    assert dataset.names(SelectionDimension.ROW) == ["g1", "g2", "g3", "g4"]
    assert dataset.names(SelectionDimension.COLUMN) == ["c1", "c2", "c3", "c4", "c5", "c6"]
    assert dataset.names(SelectionDimension.NONE) == []
    assert dataset.metadata(SelectionDimension.ROW) is dataset.row_data
    with pytest.raises(ValueError):
        dataset.metadata(SelectionDimension.NONE)


def test_field_typing(dataset):
    assert dataset.numeric_column_fields() == ["n_counts"]
    assert dataset.categorical_column_fields() == ["cluster"]
    assert dataset.assay_names() == ["X", "counts"]
    assert set(dataset.embedding_names()) == {"X_umap", "X_pca"}


def test_valid_sets_are_cached(dataset):
    first = dataset.valid_sets()
    assert dataset.valid_sets() is first
    assert "g1" in first.rows and "c1" in first.columns
    dataset.clear_caches()
    assert dataset.valid_sets() is not first


def test_subset_is_cached_and_order_insensitive(dataset):
    sub = dataset.subset(rows=["g2", "g1"], columns=["c3"])
    assert sub.row_names() == ["g1", "g2"]
    assert sub.column_names() == ["c3"]
    assert dataset.subset(rows=["g1", "g2"], columns=["c3"]) is sub


def test_expression_matrix_follows_requested_cells(dataset):
    df = dataset.expression_matrix(["g3", "g1"], columns=["c2", "c1"])
    assert list(df.columns) == ["g1", "g3"]
    assert list(df.index) == ["c2", "c1"]
    assert df.loc["c2", "g3"] == 4.0

    assert dataset.expression_matrix(["nope"]).shape == (6, 0)


def test_embedding(dataset):
    emb = dataset.get_embedding()
    assert list(emb.columns) == ["dim1", "dim2"]
    assert dataset.embedding_width("X_pca") == 3
    with pytest.raises(ValueError):
        dataset.get_embedding("X_tsne")
