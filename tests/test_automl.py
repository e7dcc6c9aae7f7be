import numpy as np
import pandas as pd
import pytest

from transaction_forecast.src.data.features import assemble_feature_table
from transaction_forecast.src.data.preprocess import train_test_partition
from transaction_forecast.src.models import automl as automl_module
from transaction_forecast.src.models.automl import (
    AutoMLConfig,
    ModelSearchResult,
    PyCaretSearchEngine,
    canonical_metric,
    fit_search,
    sort_leaderboard,
)

TARGET = "annual_transactions"


class ConstantModel:
    def __init__(self, value):
        self.value = value

    def predict(self, rows):
        return np.full(len(rows), self.value)


def _result(**overrides):
    board = pd.DataFrame(
        {
            "Model": ["A", "B", "C"],
            "RMSE": [3.0, 1.0, 2.0],
            "MAE": [2.0, 0.8, 1.5],
            "R2": [0.1, 0.9, 0.5],
        },
        index=pd.Index(["a", "b", "c"], name="model_id"),
    )
    kwargs = dict(
        models={"a": ConstantModel(1.0), "b": ConstantModel(2.0), "c": ConstantModel(3.0)},
        leaderboard=board,
        target=TARGET,
        predictor=lambda model, rows: model.predict(rows),
    )
    kwargs.update(overrides)
    return ModelSearchResult(**kwargs)


def test_leader_is_best_by_sort_metric():
    result = _result()
    assert result.leader_id == "b"
    assert result.model_ids == ["b", "c", "a"]


def test_rank_rmse_ascending():
    assert _result().rank("RMSE") == [("b", 1.0), ("c", 2.0), ("a", 3.0)]


def test_rank_r2_descending():
    assert [m for m, _ in _result().rank("r2")] == ["b", "c", "a"]


def test_sort_by_r2_changes_leader():
    board = _result().leaderboard.assign(R2=[0.2, 0.3, 0.95])  # rows b, c, a after sorting
    result = _result(leaderboard=board, sort_metric="R2")
    assert result.leader_id == "a"


def test_predict_uses_leader_and_ignores_target():
    rows = pd.DataFrame({TARGET: [1.0, 2.0], "city": ["x", "y"]}, index=[10, 20])
    seen = {}

    def predictor(model, frame):
        seen["columns"] = list(frame.columns)
        return model.predict(frame)

    preds = _result(predictor=predictor).predict(rows)
    assert list(preds.index) == [10, 20]
    assert np.allclose(preds, 2.0)
    assert seen["columns"] == ["city"]


def test_predict_specific_model():
    rows = pd.DataFrame({"city": ["x"]})
    assert _result().predict(rows, model_id="c").iloc[0] == 3.0
    with pytest.raises(KeyError):
        _result().predict(rows, model_id="zzz")


def test_predict_length_mismatch():
    result = _result(predictor=lambda model, rows: np.zeros(len(rows) + 1))
    with pytest.raises(ValueError, match="predictions"):
        result.predict(pd.DataFrame({"city": ["x", "y"]}))


def test_empty_search_is_an_error():
    with pytest.raises(RuntimeError):
        _result(models={}, leaderboard=pd.DataFrame(columns=["RMSE"]))


def test_leaderboard_row_without_model():
    with pytest.raises(ValueError, match="without a fitted model"):
        _result(models={"a": ConstantModel(1.0)})


@pytest.mark.parametrize("name,expected", [("rmse", "RMSE"), ("R²", "R2"), (" mae ", "MAE")])
def test_canonical_metric(name, expected):
    assert canonical_metric(name) == expected


def test_unknown_metric():
    with pytest.raises(ValueError):
        canonical_metric("accuracy")
    with pytest.raises(KeyError):
        sort_leaderboard(pd.DataFrame({"RMSE": [1.0]}), "MAPE")


def test_sort_leaderboard_is_stable_for_ties():
    board = pd.DataFrame({"RMSE": [1.0, 1.0, 0.5]}, index=["x", "y", "z"])
    assert list(sort_leaderboard(board, "RMSE").index) == ["z", "x", "y"]


def test_fit_search_passes_task_and_budget(fake_engine, customers_df, features_df):
    table = assemble_feature_table(customers_df, features_df)
    result = fit_search(fake_engine, table, TARGET, AutoMLConfig(time_budget_seconds=60))

    assert fake_engine.calls == [{"n_rows": len(table), "task": "regression", "budget": 60}]
    assert set(result.models) == {"ridge", "dt", "dummy"}
    assert result.leader_id in {"ridge", "dt"}


def test_fit_search_rejects_other_tasks(fake_engine, customers_df, features_df):
    table = assemble_feature_table(customers_df, features_df)
    with pytest.raises(ValueError, match="Unsupported task"):
        fit_search(fake_engine, table, TARGET, AutoMLConfig(task="classification"))


def test_default_menu_covers_model_families():
    include = AutoMLConfig().include
    for family in ("gbr", "rf", "et", "en", "mlp"):
        assert family in include
    assert AutoMLConfig().folds == 5
    assert AutoMLConfig().time_budget_seconds == 1800


def _fold_grid(rmse):
    return pd.DataFrame(
        {"MAE": [rmse, rmse, rmse, 0.0], "MSE": [rmse**2] * 3 + [0.0], "RMSE": [rmse, rmse, rmse, 0.0], "R2": [0.95] * 3 + [0.0]},
        index=["0", "1", "Mean", "Std"],
    )


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def monotonic(self):
        return self.now


class FakeExperiment:
    """Duck-typed ``RegressionExperiment`` with a fixed comparison grid."""

    def __init__(self, clock, completed=("rf", "et"), setup_seconds=0.0, compare_seconds=0.0):
        self.clock = clock
        self.completed = list(completed)
        self.setup_seconds = setup_seconds
        self.compare_seconds = compare_seconds
        self.calls = []
        self.compare_kwargs = {}
        self.stack_size = None
        self._grid = pd.DataFrame()

    def compare_models(self, **kwargs):
        self.calls.append("compare")
        self.compare_kwargs = kwargs
        self.clock.now += self.compare_seconds
        rmse = [1.0 + i for i in range(len(self.completed))]
        self._grid = pd.DataFrame(
            {
                "Model": [f"{m} model" for m in self.completed],
                "MAE": rmse,
                "MSE": [r**2 for r in rmse],
                "RMSE": rmse,
                "R2": [0.9 - 0.1 * i for i in range(len(self.completed))],
            },
            index=self.completed,
        )
        return [ConstantModel(10.0 + i) for i in range(len(self.completed))]

    def pull(self):
        return self._grid

    def tune_model(self, model, **kwargs):
        self.calls.append("tune")
        self._grid = _fold_grid(0.9)
        return ConstantModel(model.value)

    def stack_models(self, estimator_list, **kwargs):
        self.calls.append("stack")
        self.stack_size = len(estimator_list)
        self._grid = _fold_grid(0.5)
        return ConstantModel(12.0)

    def predict_model(self, model, data, verbose=False):
        return pd.DataFrame({"prediction_label": np.full(len(data), model.value)}, index=data.index)


@pytest.fixture
def pycaret_double(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr(automl_module, "time", clock)

    def install(**kwargs):
        exp = FakeExperiment(clock, **kwargs)

        def fake_setup(self, train, target):
            exp.calls.append("setup")
            clock.now += exp.setup_seconds
            return exp

        monkeypatch.setattr(PyCaretSearchEngine, "_setup", fake_setup)
        return exp

    return install


def _train():
    return pd.DataFrame(
        {"city": ["a", "b", "c", "a", "b", "c"], TARGET: [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]},
        index=[5, 6, 7, 8, 9, 10],
    )


def _menu_config(**overrides):
    kwargs = dict(include=["rf", "et", "gbr", "en"], time_budget_seconds=60, tune_leader=True, n_stack=5)
    kwargs.update(overrides)
    return AutoMLConfig(**kwargs)


def test_engine_pairs_leaderboard_rows_with_models(pycaret_double, package_logs):
    exp = pycaret_double(completed=("rf", "et"))
    result = PyCaretSearchEngine(_menu_config()).fit(_train(), TARGET)

    assert exp.calls == ["setup", "compare", "tune", "stack"]
    assert exp.compare_kwargs["n_select"] == 4
    assert exp.compare_kwargs["budget_time"] == pytest.approx(1.0)
    assert exp.stack_size == 2

    assert result.model_ids == ["stack", "rf_tuned", "rf", "et"]
    assert result.models["rf"].value == 10.0
    assert result.models["et"].value == 11.0
    assert result.leaderboard.loc["stack", "Model"] == "Stacking Regressor"
    assert result.leaderboard.loc["rf_tuned", "Model"] == "rf model (tuned)"
    assert result.leaderboard.loc["stack", "RMSE"] == pytest.approx(0.5)
    assert "Only 2 of 4 model families completed" in package_logs.text

    preds = result.predict(_train())
    assert list(preds.index) == [5, 6, 7, 8, 9, 10]
    assert (preds == 12.0).all()


def test_engine_without_candidates_is_an_error(pycaret_double):
    exp = pycaret_double(completed=())
    with pytest.raises(RuntimeError, match="no fitted candidates"):
        PyCaretSearchEngine(_menu_config()).fit(_train(), TARGET)
    assert "tune" not in exp.calls


def test_engine_single_completed_model_is_not_stacked(pycaret_double):
    exp = pycaret_double(completed=("rf",))
    result = PyCaretSearchEngine(_menu_config(tune_leader=False)).fit(_train(), TARGET)

    assert exp.calls == ["setup", "compare"]
    assert result.model_ids == ["rf"]


def test_engine_skips_tuning_and_stacking_once_budget_is_spent(pycaret_double, package_logs):
    exp = pycaret_double(completed=("rf", "et"), compare_seconds=90.0)
    result = PyCaretSearchEngine(_menu_config()).fit(_train(), TARGET)

    assert exp.calls == ["setup", "compare"]
    assert result.model_ids == ["rf", "et"]
    assert "skipping tuning of 'rf'" in package_logs.text
    assert "skipping the stacked ensemble" in package_logs.text


def test_engine_counts_setup_time_against_the_budget(pycaret_double):
    exp = pycaret_double(setup_seconds=45.0)
    PyCaretSearchEngine(_menu_config()).fit(_train(), TARGET)
    assert exp.compare_kwargs["budget_time"] == pytest.approx(0.25)


def test_engine_setup_overrun_still_passes_a_positive_limit(pycaret_double):
    exp = pycaret_double(setup_seconds=120.0)
    PyCaretSearchEngine(_menu_config()).fit(_train(), TARGET)

    assert 0.0 < exp.compare_kwargs["budget_time"] < 0.01
    assert exp.calls == ["setup", "compare"]


@pytest.mark.parametrize("budget", [0, -30.0])
def test_non_positive_budget_rejected(budget, pycaret_double, fake_engine):
    exp = pycaret_double()
    with pytest.raises(ValueError, match="must be positive"):
        PyCaretSearchEngine(_menu_config(time_budget_seconds=budget)).fit(_train(), TARGET)
    with pytest.raises(ValueError, match="must be positive"):
        PyCaretSearchEngine(_menu_config()).fit(_train(), TARGET, time_budget_seconds=budget)
    with pytest.raises(ValueError, match="must be positive"):
        fit_search(fake_engine, _train(), TARGET, AutoMLConfig(time_budget_seconds=budget))

    assert exp.calls == []
    assert fake_engine.calls == []


@pytest.mark.slow
def test_pycaret_engine_end_to_end(customers_df, features_df):
    pytest.importorskip("pycaret.regression")

    table = assemble_feature_table(customers_df, features_df)
    train, test = train_test_partition(table, random_state=1)
    engine = PyCaretSearchEngine(
        AutoMLConfig(include=["ridge", "en", "dt"], time_budget_seconds=300, n_stack=2, n_jobs=1)
    )
    result = engine.fit(train, TARGET)

    assert result.leader_id in result.models
    assert "stack" in result.models
    preds = result.predict(test)
    assert len(preds) == len(test)
    assert np.isfinite(preds).all()
