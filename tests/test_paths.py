"""Tests for URI-aware path helpers."""

import pytest

from filemeta.common.paths import (
    base_name,
    is_hidden_name,
    join_path,
    normalize_location,
    parent_dir,
    relativize,
    split_uri,
    storage_root,
)


@pytest.mark.unit
def test_split_uri():
    assert split_uri("hdfs://nn:8020//wh/t/") == ("hdfs", "nn:8020", "/wh/t")
    assert split_uri("S3A://bucket/t") == ("s3a", "bucket", "/t")
    assert split_uri("/tmp/wh/./t") == ("", "", "/tmp/wh/t")


@pytest.mark.unit
def test_normalize_and_join():
    assert normalize_location("hdfs://nn:8020/wh/t/") == "hdfs://nn:8020/wh/t"
    assert normalize_location("s3a://bucket") == "s3a://bucket/"
    assert join_path("s3a://bucket", "t/a.parquet") == "s3a://bucket/t/a.parquet"
    assert join_path("/wh/t/", "year=2009/a.txt") == "/wh/t/year=2009/a.txt"
    assert storage_root("hdfs://nn:8020/wh") == "hdfs://nn:8020"
    assert storage_root("/wh") == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    "root,path,expected",
    [
        ("hdfs://nn:8020/wh/t", "hdfs://nn:8020/wh/t/year=2009/a.txt", "year=2009/a.txt"),
        ("hdfs://nn:8020/wh/t/", "hdfs://NN:8020/wh/t/a.txt", "a.txt"),
        ("hdfs://nn:8020/wh/t", "hdfs://nn:8020/wh/t2/a.txt", None),
        ("hdfs://nn:8020/wh/t", "hdfs://other:8020/wh/t/a.txt", None),
        ("hdfs://nn:8020/wh/t", "s3a://nn:8020/wh/t/a.txt", None),
        ("hdfs://nn:8020/wh/t", "hdfs://nn:8020/wh/t", None),
        ("/wh/t", "file:///wh/t/a.txt", "a.txt"),
    ],
)
def test_relativize(root, path, expected):
    assert relativize(root, path) == expected


@pytest.mark.unit
def test_name_helpers():
    assert is_hidden_name(".hive-staging_1")
    assert is_hidden_name("_tmp.year=2009")
    assert not is_hidden_name("year=2009")
    assert parent_dir("year=2009/month=1/a.txt") == "year=2009/month=1"
    assert parent_dir("a.txt") == ""
    assert base_name("hdfs://nn:8020/wh/t/") == "t"
