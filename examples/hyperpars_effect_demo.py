import math
import os
import random

from sklearn.ensemble import RandomForestRegressor

from hypereffects import (
    OptimizationPath,
    Param,
    ResampleResult,
    TuneControl,
    TuneResult,
    generate_hyperpars_effect_data,
    plot_hyperpars_effect,
    render_plot,
)


def svm_error(c, sigma):
    # bowl around C=1, sigma=0.5 on the log2 scale
    return 0.08 + 0.03 * (math.log2(c)) ** 2 + 0.02 * (math.log2(sigma) + 1) ** 2


def random_search(n_iter=40, seed=0, crash_rate=0.05):
    rng = random.Random(seed)
    params = [
        Param("C", "numeric", trafo=lambda v: 2 ** v),
        Param("sigma", "numeric", trafo=lambda v: 2 ** v),
    ]
    path = OptimizationPath(params, ["mmce.test.mean"])
    for _ in range(n_iter):
        x = {"C": rng.uniform(-5, 5), "sigma": rng.uniform(-5, 5)}
        if rng.random() < crash_rate:
            path.add(x, None, error_message="svm did not converge")
            continue
        err = svm_error(2 ** x["C"], 2 ** x["sigma"]) + rng.uniform(0, 0.02)
        path.add(x, min(err, 1.0), exec_time=rng.uniform(0.1, 0.5))
    best = path.to_frame().nsmallest(1, "mmce.test.mean").iloc[0]
    return TuneResult(
        x={"C": best["C"], "sigma": best["sigma"]},
        y={"mmce.test.mean": best["mmce.test.mean"]},
        opt_path=path,
        control=TuneControl("random"),
    )


def run_demo(out_dir="hyperpars_effect_plots"):
    os.makedirs(out_dir, exist_ok=True)

    res = random_search()
    data = generate_hyperpars_effect_data(res, trafo=True)
    print(data)

    print("Optimizer trace...")
    spec = plot_hyperpars_effect(data, x="iteration", y="mmce.test.mean", plot_type="line")
    render_plot(spec, title="Best error so far", save_path=os.path.join(out_dir, "trace.png"))

    print("C effect with loess smoothing...")
    spec = plot_hyperpars_effect(data, x="C", y="mmce.test.mean", loess_smooth=True)
    render_plot(spec, save_path=os.path.join(out_dir, "c_effect.png"))

    print("Interpolated contour...")
    spec = plot_hyperpars_effect(
        data,
        x="C",
        y="sigma",
        z="mmce.test.mean",
        plot_type="contour",
        interpolate=RandomForestRegressor(n_estimators=50, random_state=0),
        show_experiments=True,
    )
    render_plot(spec, save_path=os.path.join(out_dir, "contour.png"))

    print("Nested resampling, one panel per outer fold...")
    nested = ResampleResult([random_search(n_iter=20, seed=s) for s in range(1, 4)])
    nested_data = generate_hyperpars_effect_data(nested, trafo=True)
    spec = plot_hyperpars_effect(
        nested_data, x="iteration", y="mmce.test.mean", plot_type="line", facet="nested_cv_run"
    )
    render_plot(spec, save_path=os.path.join(out_dir, "nested_trace.png"))

    print(f"Plots written to {out_dir}/")


if __name__ == "__main__":
    run_demo()
