"""
Discovery and Argument Tests
============================

Feature discovery, logical name derivation and engine argument building.
Run with: pytest test_discovery_arguments.py
"""

import random
from pathlib import Path

import pytest

from feature_forks.arguments import build_arguments, output_paths_for
from feature_forks.discovery import feature_name_from_file, find_features, include_pattern, matches_include, walk_files
from feature_forks.errors import FeatureForksError
from feature_forks.models import FeatureFile, RunOptions, SnippetStyle


def _touch(path: Path, text: str = "Feature: x\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_name_from_nested_path():
    root = Path("/work/resources/features")
    feature = root / "billing" / "checkout.feature"
    assert feature_name_from_file(feature, [root]) == "billing.checkout"


def test_name_falls_back_to_file_name():
    feature = Path("/elsewhere/login.feature")
    assert feature_name_from_file(feature, [Path("/work/resources")]) == "login"


def test_name_uses_deepest_containing_root():
    outer = Path("/work/resources")
    inner = outer / "features"
    feature = inner / "billing" / "refund.feature"
    assert feature_name_from_file(feature, [outer, inner]) == "billing.refund"
    assert feature_name_from_file(feature, [inner, outer]) == "billing.refund"


def test_include_pattern():
    assert include_pattern("features") == "features/**/*.feature"
    assert include_pattern("/features/") == "features/**/*.feature"
    assert include_pattern("") == "**/*.feature"


def test_find_features_on_disk(tmp_path):
    root = tmp_path / "resources"
    _touch(root / "features" / "a.feature")
    _touch(root / "features" / "billing" / "checkout.feature")
    _touch(root / "features" / "notes.txt")
    _touch(root / "other" / "ignored.feature")

    features = find_features([root], ["features"])

    assert [f.name for f in features] == ["features.a", "features.billing.checkout"]
    assert all(f.path.is_absolute() for f in features)


def test_find_features_with_injected_walker():
    root = Path("/virtual/res").absolute()
    files = [
        root / "acceptance" / "one.feature",
        root / "acceptance" / "deep" / "two.feature",
        root / "smoke" / "three.feature",
        root / "acceptance" / "readme.md",
    ]

    features = find_features([root], ["acceptance", "smoke"], walk=lambda r: list(files))

    assert {f.name for f in features} == {"acceptance.one", "acceptance.deep.two", "smoke.three"}


def test_find_features_deduplicates_overlapping_patterns():
    root = Path("/virtual/res").absolute()
    files = [root / "features" / "billing" / "pay.feature"]

    features = find_features([root], ["features", "features/billing"], walk=lambda r: files)

    assert len(features) == 1


def test_find_features_star_does_not_cross_directories():
    root = Path("/virtual/res").absolute()
    files = [root / "featuresX" / "a.feature", root / "features" / "b.feature"]

    features = find_features([root], ["features"], walk=lambda r: files)

    assert [f.name for f in features] == ["features.b"]


def test_matches_include_segments():
    pattern = "features/**/*.feature"

    assert matches_include("features/a.feature", pattern)
    assert matches_include("features/x/y/a.feature", pattern)
    assert not matches_include("features/a.txt", pattern)
    assert not matches_include("featuresX/a.feature", pattern)
    assert not matches_include("other/features/a.feature", pattern)
    assert matches_include("smoke/login.feature", "**/*.feature")
    assert matches_include("a1/b.feature", "a?/*.feature")
    assert not matches_include("a1/c/b.feature", "a?/*.feature")


def test_find_features_rejects_clashing_names():
    r1 = Path("/virtual/r1").absolute()
    r2 = Path("/virtual/r2").absolute()
    files = {r1: [r1 / "features" / "a.feature"], r2: [r2 / "features" / "a.feature"]}

    with pytest.raises(FeatureForksError, match="features.a") as exc_info:
        find_features([r1, r2], ["features"], walk=lambda r: files[r])

    assert str(r1 / "features" / "a.feature") in str(exc_info.value)
    assert str(r2 / "features" / "a.feature") in str(exc_info.value)


def test_walk_files_missing_root(tmp_path):
    assert list(walk_files(tmp_path / "nope")) == []


def _feature() -> FeatureFile:
    return FeatureFile(path=Path("/suite/features/billing/checkout.feature").absolute(), name="billing.checkout")


def test_arguments_strict_and_tags_order():
    options = RunOptions(glue=["steps.billing", "steps.common"], tags=["@smoke"], strict=True)
    paths = output_paths_for(_feature(), Path("/out"))

    args = build_arguments(_feature(), options, paths.results_file, paths.junit_file)

    assert args == [
        "--glue", "steps.billing",
        "--glue", "steps.common",
        "--plugin", f"json:{paths.results_file}",
        "--strict",
        "--tags", "@smoke",
        "--snippets", "camelcase",
        str(_feature().path),
    ]


def test_arguments_all_flags():
    options = RunOptions(
        glue=["g"],
        tags=["@a", "@b", "@a"],
        strict=True,
        dry_run=True,
        monochrome=True,
        junit_report=True,
        snippets=SnippetStyle.UNDERSCORE,
    )
    paths = output_paths_for(_feature(), Path("/out"))

    args = build_arguments(_feature(), options, paths.results_file, paths.junit_file)

    assert args == [
        "--glue", "g",
        "--plugin", f"json:{paths.results_file}",
        "--plugin", f"junit:{paths.junit_file}",
        "--dry-run",
        "--monochrome",
        "--strict",
        "--tags", "@a,@b",
        "--snippets", "underscore",
        str(_feature().path),
    ]


def test_arguments_minimal():
    options = RunOptions()
    paths = output_paths_for(_feature(), Path("/out"))

    args = build_arguments(_feature(), options, paths.results_file, paths.junit_file)

    assert args == ["--plugin", f"json:{paths.results_file}", "--snippets", "camelcase", str(_feature().path)]


def test_output_paths_named_from_feature():
    paths = output_paths_for(_feature(), Path("/out"))

    assert paths.results_file.name == "billing.checkout.json"
    assert paths.junit_file.name == "billing.checkout.xml"
    assert paths.out_log_file.name == "billing.checkout-out.log"
    assert paths.err_log_file.name == "billing.checkout-err.log"


def _random_options(rng: random.Random) -> RunOptions:
    words = ["@smoke", "@slow", "@wip", "@billing", "@ui"]
    return RunOptions(
        glue=[f"steps.pkg{rng.randint(0, 9)}" for _ in range(rng.randint(0, 4))],
        tags=rng.sample(words, rng.randint(0, len(words))),
        strict=rng.random() < 0.5,
        dry_run=rng.random() < 0.5,
        monochrome=rng.random() < 0.5,
        junit_report=rng.random() < 0.5,
        snippets=rng.choice(list(SnippetStyle)),
        max_parallel_forks=rng.randint(1, 10),
    )


@pytest.mark.parametrize("seed", range(25))
def test_arguments_deterministic(seed):
    rng = random.Random(seed)
    options = _random_options(rng)
    feature = _feature()
    paths = output_paths_for(feature, Path("/out"))

    first = build_arguments(feature, options, paths.results_file, paths.junit_file)
    second = build_arguments(feature, options, paths.results_file, paths.junit_file)
    rebuilt = build_arguments(
        feature, RunOptions(**options.model_dump()), paths.results_file, paths.junit_file
    )

    assert first == second == rebuilt
    assert first[-1] == str(feature.path)
