import math

import matplotlib

matplotlib.use("Agg")

import pytest

from hypereffects import (
    OptimizationPath,
    Param,
    ResampleResult,
    TuneControl,
    TuneResult,
    generate_hyperpars_effect_data,
)

GRID = [0.25, 0.5, 1.0, 2.0, 4.0]


def _mmce(c, sigma=1.0, shift=0.0):
    return 0.1 + 0.05 * abs(math.log2(c)) + 0.03 * abs(math.log2(sigma)) + shift


@pytest.fixture
def crash_result():
    """C in {0.25, 1, 4} with the learner crashing at C=1."""
    path = OptimizationPath([Param("C", "discrete", values=[0.25, 1, 4])], ["mmce.test.mean"])
    path.add({"C": 0.25}, 0.3, exec_time=1.0)
    path.add({"C": 1}, None, exec_time=None, error_message="learner crashed")
    path.add({"C": 4}, 0.2, exec_time=1.5)
    return TuneResult(x={"C": 4}, y={"mmce.test.mean": 0.2}, opt_path=path, control=TuneControl("grid"))


@pytest.fixture
def grid_result():
    """Complete 5 x 5 grid over C and sigma, stored as discrete labels."""
    params = [
        Param("C", "discrete", values=GRID),
        Param("sigma", "discrete", values=GRID),
    ]
    path = OptimizationPath(params, ["mmce.test.mean", "acc.test.mean"], minimize=[True, False])
    for c in GRID:
        for s in GRID:
            err = _mmce(c, s)
            path.add({"C": c, "sigma": s}, {"mmce.test.mean": err, "acc.test.mean": 1 - err}, exec_time=0.5)
    return TuneResult(
        x={"C": 1.0, "sigma": 1.0},
        y={"mmce.test.mean": _mmce(1.0)},
        opt_path=path,
        control=TuneControl("grid"),
    )


@pytest.fixture
def random_result():
    """Irregular 2-D path with a noisy trace, numeric params."""
    points = [
        (0.3, 0.2), (3.5, 0.4), (1.1, 2.8), (2.2, 1.9), (0.6, 3.9),
        (3.9, 3.1), (1.7, 0.9), (2.8, 2.5), (0.9, 1.4), (3.2, 3.7),
        (1.4, 2.1), (2.5, 0.6),
    ]
    path = OptimizationPath(["C", "sigma"], ["mmce.test.mean"])
    for c, s in points:
        path.add({"C": c, "sigma": s}, 0.05 * (c - 2) ** 2 + 0.04 * (s - 2) ** 2 + 0.1, exec_time=0.2)
    return TuneResult(x={"C": 2.2, "sigma": 1.9}, y={}, opt_path=path, control=TuneControl("random"))


@pytest.fixture
def make_nested():
    def _make(n_folds=3, configs=GRID, crash_at=None):
        folds = []
        for fold in range(1, n_folds + 1):
            path = OptimizationPath(
                [Param("C", "discrete", values=GRID), Param("sigma", "discrete", values=GRID)],
                ["mmce.test.mean"],
            )
            for i, c in enumerate(configs):
                s = configs[-1 - i]
                if crash_at is not None and (fold, i) == crash_at:
                    path.add({"C": c, "sigma": s}, None, exec_time=None)
                else:
                    path.add({"C": c, "sigma": s}, _mmce(c, s, shift=0.01 * fold), exec_time=0.1 * fold)
            folds.append(
                TuneResult(x={"C": 1.0, "sigma": 1.0}, y={}, opt_path=path, control=TuneControl("random"))
            )
        return ResampleResult(folds)

    return _make


@pytest.fixture
def grid_data(grid_result):
    return generate_hyperpars_effect_data(grid_result)


@pytest.fixture
def crash_data(crash_result):
    return generate_hyperpars_effect_data(crash_result)


@pytest.fixture
def random_data(random_result):
    return generate_hyperpars_effect_data(random_result)
