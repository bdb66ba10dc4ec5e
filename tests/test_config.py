import os
import tempfile
import unittest

import numpy as np
import matplotlib
matplotlib.use('Agg')
import yaml

from dynamics_model import (ConstantMean, DropoutNN, EnsembleDynamicsModel, ExactGP, FitFailure,
                            InvalidInput, ParametricMeanModel, ScipyOptimizer, build_model,
                            load_config, save_config)
from dynamics_model.diagnostics import plot_predictions, prediction_errors, rolling_metric
from dynamics_model.utils import ensure_dir, set_seed


class TestConfig(unittest.TestCase):
    def test_default_model(self):
        model = build_model()
        self.assertIsInstance(model, EnsembleDynamicsModel)
        self.assertIsInstance(model.regressor_factory(3), ExactGP)
        self.assertEqual(model.noise, 0.01)

    def test_nn_regressor(self):
        model = build_model({'model': {'regressor': 'nn'}, 'nn': {'hidden': [8]}})
        reg = model.regressor_factory(2)
        self.assertIsInstance(reg, DropoutNN)
        self.assertEqual(reg.hidden, (8,))

    def test_parametric_model(self):
        model = build_model({'model': {'type': 'parametric'}, 'parametric': {'mean': 'constant'}})
        self.assertIsInstance(model, ParametricMeanModel)
        self.assertIs(model.mean_factory, ConstantMean)

    def test_unknown_types(self):
        for cfg in ({'model': {'type': 'tree'}},
                    {'model': {'regressor': 'svm'}},
                    {'model': {'type': 'parametric'}, 'parametric': {'mean': 'cubic'}}):
            with self.assertRaises(InvalidInput):
                build_model(cfg)

    def test_load_merges_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'cfg', 'config.yaml')
            save_config({'seed': 7, 'gp': {'restarts': 1}}, path)
            config = load_config(path)
        self.assertEqual(config['seed'], 7)
        self.assertEqual(config['gp']['restarts'], 1)
        self.assertEqual(config['gp']['max_iter'], load_config()['gp']['max_iter'])

    def test_shipped_config_matches_defaults(self):
        path = os.path.join(os.path.dirname(__file__), '..', 'config', 'default.yaml')
        with open(path) as f:
            shipped = yaml.safe_load(f)
        self.assertEqual(load_config(path), load_config())
        self.assertEqual(set(shipped), set(load_config()))


class TestUtils(unittest.TestCase):
    def test_set_seed(self):
        set_seed(3)
        a = np.random.rand(4)
        set_seed(3)
        np.testing.assert_array_equal(a, np.random.rand(4))

    def test_ensure_dir(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'a', 'b')
            ensure_dir(path)
            ensure_dir(path)
            self.assertTrue(os.path.isdir(path))


class TestOptimizer(unittest.TestCase):
    def test_maximizes_with_gradient(self):
        def objective(p, eval_grad=False):
            value = -np.sum((p - 3.0) ** 2)
            return value, (-2.0 * (p - 3.0) if eval_grad else None)
        np.testing.assert_allclose(ScipyOptimizer()(objective, [0.0, 1.0]), [3.0, 3.0], atol=1e-6)

    def test_maximizes_without_gradient(self):
        def objective(p, eval_grad=False):
            return -float((p[0] + 1.0) ** 2), None
        np.testing.assert_allclose(ScipyOptimizer()(objective, [0.0]), [-1.0], atol=1e-4)

    def test_bounded(self):
        def objective(p, eval_grad=False):
            return float(p[0]), None
        opt = ScipyOptimizer(bounds=(-1.0, 1.0))
        np.testing.assert_allclose(opt(objective, [0.0], bounded=True), [1.0], atol=1e-6)

    def test_non_finite_objective(self):
        def objective(p, eval_grad=False):
            return float('nan'), None
        with self.assertRaises(FitFailure):
            ScipyOptimizer()(objective, [0.0])


class TestDiagnostics(unittest.TestCase):
    def setUp(self):
        self.obs = [([float(x)], [0.0], [2.0 * x]) for x in range(5)]
        self.model = ParametricMeanModel()
        self.model.learn(self.obs)
        self.X = self.model.samples()
        self.Y = self.model.observations()

    def test_prediction_errors(self):
        errors = prediction_errors(self.model, self.X, self.Y)
        self.assertLess(errors['mse'][0], 1e-6)
        self.assertEqual(errors['mean_var'][0], 0.0)

    def test_rolling_metric(self):
        out = rolling_metric(np.zeros((4, 1)), np.array([[1.0], [1.0], [3.0], [3.0]]), window=2, metric="mae")
        np.testing.assert_allclose(out, [1.0, 1.0, 2.0, 3.0])

    def test_plot_saved(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'pred.png')
            plot_predictions(self.model, self.X, self.Y, save_path=path)
            self.assertTrue(os.path.exists(path))


if __name__ == '__main__':
    unittest.main()
