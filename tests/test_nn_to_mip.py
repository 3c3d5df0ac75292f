import io
import unittest

import gurobipy as gp
import numpy as np
from gurobipy import GRB

from nn2mip import (
    Network,
    ReLUNetworkConstr,
    SolverParams,
    TighteningMode,
    forward_pass,
    nn_to_mip,
)
from nn2mip.exceptions import NoSolution, ParameterError


def example_network():
    """2 inputs, one hidden layer with 2 neurons and 1 output."""
    return Network.from_arrays(
        [[[1.0, 1.0], [1.0, -1.0]], [[1.0, 1.0]]], [[0.0, 0.0], [0.0]], name="example"
    )


class TestWorkedExample(unittest.TestCase):
    def setUp(self):
        self.env = gp.Env(params={"OutputFlag": 0})
        self.gpm = gp.Model(env=self.env)

    def tearDown(self):
        self.gpm.dispose()
        self.env.dispose()

    def test_fast_bounds(self):
        nn_constr, upper, lower = nn_to_mip(
            example_network(), [1.0, 1.0], [-1.0, -1.0], gp_model=self.gpm
        )
        self.assertIsInstance(nn_constr, ReLUNetworkConstr)
        self.assertEqual(len(upper), 2)
        np.testing.assert_array_equal(upper[0], [2.0, 2.0])
        np.testing.assert_array_equal(lower[0], [-2.0, -2.0])
        np.testing.assert_array_equal(upper[1], [4.0])
        np.testing.assert_array_equal(lower[1], [0.0])

    def test_forward_pass(self):
        nn_constr, _, _ = nn_to_mip(
            example_network(), [1.0, 1.0], [-1.0, -1.0], gp_model=self.gpm
        )
        np.testing.assert_allclose(
            forward_pass(nn_constr, [1.0, 0.0]), [2.0], atol=1e-6
        )
        np.testing.assert_allclose(
            forward_pass(nn_constr, [0.0, 1.0]), [1.0], atol=1e-6
        )
        np.testing.assert_allclose(
            forward_pass(nn_constr, [-1.0, -1.0]), [0.0], atol=1e-6
        )

    def test_model_structure(self):
        nn_constr, _, _ = nn_to_mip(
            example_network(), [1.0, 1.0], [-1.0, -1.0], gp_model=self.gpm
        )
        self.gpm.update()
        # x[0], x[1], s[1], z[1], x[2]
        self.assertEqual(self.gpm.NumVars, 2 + 2 + 2 + 2 + 1)
        self.assertEqual(self.gpm.NumBinVars, 2)
        # input box, 2 big-M and 1 affine per hidden neuron, 1 affine output
        self.assertEqual(self.gpm.NumConstrs, 4 + 2 * 3 + 1)
        self.assertEqual(len(nn_constr.vars), self.gpm.NumVars)
        self.assertEqual(len(nn_constr.constrs), self.gpm.NumConstrs)
        self.assertEqual(len(nn_constr.x), 3)
        self.assertEqual(list(nn_constr.z.keys()), [1])
        self.assertTrue((nn_constr.x[1].LB == 0.0).all())
        self.assertTrue((nn_constr.s[1].LB == 0.0).all())

    def test_big_m_constants(self):
        nn_constr, upper, lower = nn_to_mip(
            example_network(), [1.0, 0.5], [-0.5, -1.0], gp_model=self.gpm
        )
        self.gpm.update()
        for neuron, constr in enumerate(nn_constr.upper_constrs(1)):
            self.assertAlmostEqual(constr.RHS, max(0.0, upper[0][neuron]))
        for neuron, constr in enumerate(nn_constr.lower_constrs(1)):
            z = nn_constr.z[1][neuron].item()
            self.assertAlmostEqual(
                -self.gpm.getCoeff(constr, z), max(0.0, -lower[0][neuron])
            )

    def test_standard_bounds(self):
        _, upper, lower = nn_to_mip(
            example_network(),
            [1.0, 1.0],
            [-1.0, -1.0],
            tighten_bounds="standard",
            gp_model=self.gpm,
        )
        np.testing.assert_allclose(upper[0], [2.0, 2.0], atol=1e-4)
        np.testing.assert_allclose(lower[0], [-2.0, -2.0], atol=1e-4)
        # relu(a + b) + relu(a - b) is at most 2 on the box
        np.testing.assert_allclose(upper[1], [2.0], atol=1e-4)
        np.testing.assert_allclose(lower[1], [0.0], atol=1e-4)

    def test_output_bounds(self):
        nn_constr, upper, lower = nn_to_mip(
            example_network(),
            [1.0, 1.0],
            [-1.0, -1.0],
            tighten_bounds=TighteningMode.OUTPUT,
            output_ub=[0.5],
            output_lb=[0.0],
            gp_model=self.gpm,
        )
        # Both hidden neurons are re-tightened
        np.testing.assert_allclose(upper[0], [0.5, 0.5], atol=1e-4)
        np.testing.assert_allclose(lower[0], [-2.0, -2.0], atol=1e-4)
        np.testing.assert_array_equal(upper[1], [0.5])
        np.testing.assert_array_equal(lower[1], [0.0])
        self.gpm.update()
        for neuron, constr in enumerate(nn_constr.upper_constrs(1)):
            self.assertAlmostEqual(constr.RHS, 0.5, places=4)
        self.assertEqual(len(nn_constr.constrs), self.gpm.NumConstrs)

        np.testing.assert_allclose(
            forward_pass(nn_constr, [0.2, 0.1]), [0.4], atol=1e-6
        )
        self.assertFalse(forward_pass(nn_constr, [1.0, 0.0]))


class TestSingleLayer(unittest.TestCase):
    def test_no_binaries(self):
        network = Network.from_arrays([[[2.0, -1.0]]], [[0.5]])
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            nn_constr, upper, lower = nn_to_mip(
                network, [1.0, 1.0], [0.0, 0.0], gp_model=gpm
            )
            gpm.update()
            self.assertEqual(gpm.NumIntVars, 0)
            self.assertEqual(gpm.NumBinVars, 0)
            self.assertEqual(nn_constr.z, {})
            # input box and one affine equality
            self.assertEqual(gpm.NumConstrs, 5)
            senses = [c.Sense for c in nn_constr.constrs[4:]]
            self.assertEqual(senses, [GRB.EQUAL])
            np.testing.assert_array_equal(upper[0], [2.5])
            np.testing.assert_array_equal(lower[0], [-0.5])
            np.testing.assert_allclose(
                forward_pass(nn_constr, [0.5, 1.0]), [0.5], atol=1e-6
            )


class TestPreconditions(unittest.TestCase):
    def setUp(self):
        self.env = gp.Env(params={"OutputFlag": 0})
        self.gpm = gp.Model(env=self.env)

    def tearDown(self):
        self.gpm.dispose()
        self.env.dispose()

    def assert_empty(self):
        self.gpm.update()
        self.assertEqual(self.gpm.NumVars, 0)
        self.assertEqual(self.gpm.NumConstrs, 0)

    def test_short_input_bounds(self):
        with self.assertRaises(ParameterError):
            nn_to_mip(example_network(), [1.0], [-1.0, -1.0], gp_model=self.gpm)
        self.assert_empty()

    def test_crossing_input_bounds(self):
        with self.assertRaises(ParameterError):
            nn_to_mip(example_network(), [1.0, -2.0], [-1.0, -1.0], gp_model=self.gpm)
        self.assert_empty()

    def test_infinite_input_bounds(self):
        with self.assertRaises(ParameterError):
            nn_to_mip(
                example_network(), [1.0, np.inf], [-1.0, -1.0], gp_model=self.gpm
            )
        self.assert_empty()

    def test_output_mode_needs_output_bounds(self):
        with self.assertRaises(ParameterError):
            nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                tighten_bounds="output",
                gp_model=self.gpm,
            )
        with self.assertRaises(ParameterError):
            nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                tighten_bounds="output",
                output_ub=[1.0, 1.0],
                output_lb=[0.0, 0.0],
                gp_model=self.gpm,
            )
        self.assert_empty()

    def test_unknown_mode(self):
        with self.assertRaises(ParameterError):
            nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                tighten_bounds="tight",
                gp_model=self.gpm,
            )
        self.assert_empty()

    def test_precomputed_bounds_shape(self):
        with self.assertRaises(ParameterError):
            nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                bounds_upper=[[2.0, 2.0]],
                bounds_lower=[[-2.0, -2.0]],
                gp_model=self.gpm,
            )
        with self.assertRaises(ParameterError):
            nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                bounds_upper=[[2.0, 2.0], [4.0]],
                bounds_lower=[[-2.0, -2.0], [0.0, 0.0]],
                gp_model=self.gpm,
            )
        with self.assertRaises(ParameterError):
            nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                bounds_upper=[[2.0, 2.0], [4.0]],
                gp_model=self.gpm,
            )
        self.assert_empty()


class TestPrecomputedBounds(unittest.TestCase):
    def test_bounds_used(self):
        bounds_upper = [[3.0, 2.5], [7.0]]
        bounds_lower = [[-2.0, -3.5], [-1.0]]
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            nn_constr, upper, lower = nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                tighten_bounds="standard",
                bounds_upper=bounds_upper,
                bounds_lower=bounds_lower,
                gp_model=gpm,
            )
            for computed, given in zip(upper, bounds_upper):
                np.testing.assert_array_equal(computed, given)
            for computed, given in zip(lower, bounds_lower):
                np.testing.assert_array_equal(computed, given)
            gpm.update()
            self.assertEqual(
                [c.RHS for c in nn_constr.upper_constrs(1)], [3.0, 2.5]
            )
            np.testing.assert_allclose(
                forward_pass(nn_constr, [0.5, -0.5]), [1.0], atol=1e-6
            )


class TestReLUNetworkConstr(unittest.TestCase):
    def test_no_solution(self):
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            nn_constr, _, _ = nn_to_mip(
                example_network(), [1.0, 1.0], [-1.0, -1.0], gp_model=gpm
            )
            with self.assertRaises(NoSolution):
                nn_constr.output_values
            with self.assertRaises(NoSolution):
                nn_constr.get_error()

    def test_optimize(self):
        """Maximize the output over the input box."""
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            nn_constr, _, _ = nn_to_mip(
                example_network(), [1.0, 1.0], [-1.0, -1.0], gp_model=gpm
            )
            gpm.setObjective(nn_constr.output.sum(), GRB.MAXIMIZE)
            gpm.optimize()
            self.assertEqual(gpm.Status, GRB.OPTIMAL)
            self.assertAlmostEqual(gpm.ObjVal, 2.0, places=6)
            self.assertLessEqual(np.max(nn_constr.get_error()), 1e-6)

    def test_names(self):
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            nn_constr, _, _ = nn_to_mip(
                example_network(), [1.0, 1.0], [-1.0, -1.0], gp_model=gpm, name="nn"
            )
            gpm.update()
            self.assertEqual(str(nn_constr), "nn")
            self.assertTrue(all(v.VarName.startswith("nn.") for v in nn_constr.vars))
            self.assertTrue(
                all(c.ConstrName.startswith("nn.") for c in nn_constr.constrs)
            )

    def test_replace_big_m(self):
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            nn_constr, upper, _ = nn_to_mip(
                example_network(), [1.0, 1.0], [-1.0, -1.0], gp_model=gpm
            )
            old = nn_constr.upper_constrs(1)[0]
            n_constrs = len(nn_constr.constrs)
            nn_constr.replace_big_m(1, 0, 1.5, -1.0)
            new = nn_constr.upper_constrs(1)[0]
            self.assertIsNot(old, new)
            self.assertAlmostEqual(new.RHS, 1.5)
            self.assertEqual(upper[0][0], 1.5)
            self.assertEqual(len(nn_constr.constrs), n_constrs)
            self.assertEqual(gpm.NumConstrs, n_constrs)
            with self.assertRaises(ParameterError):
                nn_constr.replace_big_m(2, 0, 1.0, -1.0)

    def test_print_stats(self):
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            nn_constr, _, _ = nn_to_mip(
                example_network(), [1.0, 1.0], [-1.0, -1.0], gp_model=gpm
            )
            output = io.StringIO()
            nn_constr.print_stats(file=output)
            stats = output.getvalue()
            self.assertIn("dense1 (relu)", stats)
            self.assertIn("dense2 (identity)", stats)
            self.assertIn(f"{gpm.NumVars} variables", stats)

    def test_remove(self):
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            other = gpm.addVar(name="other")
            nn_constr, _, _ = nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                tighten_bounds="output",
                output_ub=[1.0],
                output_lb=[0.0],
                gp_model=gpm,
            )
            nn_constr.remove()
            self.assertEqual(gpm.NumVars, 1)
            self.assertEqual(gpm.NumConstrs, 0)
            self.assertEqual(gpm.getVars()[0].VarName, other.VarName)

    def test_solver_params_applied(self):
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            nn_to_mip(
                example_network(),
                [1.0, 1.0],
                [-1.0, -1.0],
                solver_params=SolverParams(threads=1, time_limit=10),
                gp_model=gpm,
            )
            self.assertEqual(gpm.Params.Threads, 1)
            self.assertEqual(gpm.Params.TimeLimit, 10.0)
            self.assertEqual(gpm.Params.OutputFlag, 0)
