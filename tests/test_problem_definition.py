"""
Tests for problem definition, bounds normalization and the symbolic
function snapshot handed to transcriptions.
"""

import math

import casadi as ca
import numpy as np
import pytest
from numpy.testing import assert_allclose

from dircol import Bounds, Problem, ProblemDefinitionError


def _double_integrator() -> Problem:
    problem = Problem("Double Integrator")
    problem.time(initial=0.0, final=(0.5, 5.0))
    problem.state("position", boundary=(-10.0, 10.0), initial=0.0, final=1.0)
    problem.state("speed", initial=0.0, final=0.0)
    problem.control("force", boundary=(-2.0, 2.0))
    problem.dynamics(lambda t, x, u, p: [x[1], u[0]])
    problem.endpoint_cost("final_time", lambda t0, x0, tf, xf, p: tf)
    return problem


class TestBounds:
    def test_bounds_input_forms(self):
        """None is free, a number is fixed, None in a pair opens that side."""
        assert Bounds.from_input(None) == Bounds(-math.inf, math.inf)
        assert Bounds.from_input(2.5) == Bounds(2.5, 2.5)
        assert Bounds.from_input((None, 3.0)) == Bounds(-math.inf, 3.0)
        assert Bounds.from_input((1, None)) == Bounds(1.0, math.inf)

    def test_fixed_and_free(self):
        assert Bounds.from_input(1.0).is_fixed
        assert Bounds.from_input(None).is_free
        assert not Bounds.from_input((0.0, 1.0)).is_fixed

    @pytest.mark.parametrize(
        "bounds_input, expected",
        [((0.0, 4.0), 2.0), ((1.0, None), 1.0), ((None, -3.0), -3.0), (None, 0.0)],
    )
    def test_guess(self, bounds_input, expected):
        """Bounds guess: midpoint, finite side, or zero."""
        assert Bounds.from_input(bounds_input).guess() == expected

    @pytest.mark.parametrize(
        "bounds_input",
        [(2.0, 1.0), (math.nan, 1.0), (math.inf, None), (None, -math.inf), (1.0, 2.0, 3.0), "x"],
    )
    def test_invalid_bounds_rejected(self, bounds_input):
        """Inverted, NaN, infinite-wrong-side and malformed bounds are rejected."""
        with pytest.raises(ProblemDefinitionError):
            Bounds.from_input(bounds_input)

    def test_direct_construction_validates(self):
        with pytest.raises(ProblemDefinitionError):
            Bounds(3.0, -3.0)


class TestProblemBuilder:
    def test_variable_indices_and_names(self):
        problem = Problem("Indices")
        assert problem.state("a") == 0
        assert problem.state("b") == 1
        assert problem.control("u") == 0
        assert problem.parameter("mass", boundary=(1.0, 2.0)) == 0

        assert problem.state_names == ["a", "b"]
        assert problem.control_names == ["u"]
        assert problem.parameter_names == ["mass"]
        assert (problem.num_states, problem.num_controls, problem.num_parameters) == (2, 1, 1)

    def test_initial_and_final_bounds_default_to_path_bounds(self):
        """Unset initial/final bounds inherit the path bounds."""
        problem = Problem()
        problem.state("x", boundary=(-1.0, 1.0), final=0.5)

        assert problem.get_state_bounds() == [Bounds(-1.0, 1.0)]
        assert problem.get_state_initial_bounds() == [Bounds(-1.0, 1.0)]
        assert problem.get_state_final_bounds() == [Bounds(0.5, 0.5)]

    def test_kinematic_constraints_with_generated_multiplier_names(self):
        """Unnamed multipliers are called lambda_0, lambda_1, ..."""
        problem = Problem()
        problem.kinematic_constraints(lambda t, x, u, p: [x[0]], multipliers=2)
        assert problem.multiplier_names == ["lambda_0", "lambda_1"]
        assert problem.num_multipliers == 2

    def test_time_bounds_required(self):
        problem = Problem()
        with pytest.raises(ProblemDefinitionError):
            _ = problem.initial_time_bounds

    def test_valid_problem_passes_validation(self):
        _double_integrator().validate()

    def test_missing_states_rejected(self):
        problem = Problem()
        problem.time(initial=0.0, final=1.0)
        problem.dynamics(lambda t, x, u, p: [])
        with pytest.raises(ProblemDefinitionError, match="at least one state"):
            problem.validate()

    def test_missing_dynamics_rejected(self):
        problem = Problem()
        problem.time(initial=0.0, final=1.0)
        problem.state("x")
        with pytest.raises(ProblemDefinitionError, match="dynamics"):
            problem.validate()

    def test_final_time_must_exceed_initial_time(self):
        """tf bounds entirely below t0 bounds cannot give a positive horizon."""
        problem = _double_integrator()
        problem.time(initial=(1.0, 2.0), final=(0.0, 1.0))
        with pytest.raises(ProblemDefinitionError):
            problem.validate()

    def test_dynamics_output_length_mismatch(self):
        """Two states but one derivative returned."""
        problem = _double_integrator()
        problem.dynamics(lambda t, x, u, p: [x[1]])
        with pytest.raises(ProblemDefinitionError, match="Dynamics returned 1 entries"):
            problem.validate()

    def test_kinematic_output_length_mismatch(self):
        problem = _double_integrator()
        problem.dynamics(lambda t, x, u, p, lam: [x[1], u[0] + lam[0]])
        problem.kinematic_constraints(lambda t, x, u, p: [x[0], x[1]], multipliers=["lam"])
        with pytest.raises(ProblemDefinitionError, match="Kinematic constraints returned 2"):
            problem.validate()

    def test_path_constraint_bounds_length_mismatch(self):
        problem = _double_integrator()
        problem.path_constraint(
            "box", lambda t, x, u, p: [x[0], x[1]], bounds=[(0.0, 1.0), (0.0, 1.0), (0.0, 1.0)]
        )
        with pytest.raises(ProblemDefinitionError, match="bound pairs"):
            problem.validate()

    def test_duplicate_names_rejected(self):
        problem = _double_integrator()
        problem.state("position")
        with pytest.raises(ProblemDefinitionError, match="Duplicate state name"):
            problem.validate()

    def test_user_callable_errors_are_wrapped(self):
        """Exceptions from user callables surface as ProblemDefinitionError."""
        problem = _double_integrator()

        def broken(t, x, u, p):
            raise ValueError("boom")

        problem.dynamics(broken)
        with pytest.raises(ProblemDefinitionError, match="ValueError"):
            problem.validate()

    def test_non_callable_rejected(self):
        with pytest.raises(ProblemDefinitionError):
            Problem().dynamics("not callable")

    @pytest.mark.parametrize("entry", [ca.DM([1.0, 2.0]), np.array([1.0, 2.0])])
    def test_non_scalar_sequence_entry_rejected(self, entry):
        """A vector inside the returned list is a definition error, not a CasADi crash."""
        problem = _double_integrator()
        problem.dynamics(lambda t, x, u, p: [x[1], entry])
        with pytest.raises(ProblemDefinitionError, match="non-scalar entry at index 1"):
            problem.validate()


class TestProblemFunctions:
    def test_dynamics_evaluates_numerically(self):
        """xdot = [v, u] at x = [0.3, 1.5], u = 0.7."""
        functions = _double_integrator().create_functions()
        xdot = functions.dynamics(0.0, [0.3, 1.5], [0.7])
        assert_allclose(np.array(xdot).flatten(), [1.5, 0.7], rtol=1e-14)

    def test_dynamics_receives_multipliers_when_kinematic_constraints_exist(self):
        """xdot = [v, u + 2*lam] with lam passed as the fifth argument."""
        problem = _double_integrator()
        problem.dynamics(lambda t, x, u, p, lam: [x[1], u[0] + 2.0 * lam[0]])
        problem.kinematic_constraints(lambda t, x, u, p: [x[0] - x[1]], multipliers=["lam"])
        functions = problem.create_functions()

        assert functions.has_kinematic_constraints
        xdot = functions.dynamics(0.0, [1.0, 2.0], [0.5], None, [0.25])
        assert_allclose(np.array(xdot).flatten(), [2.0, 1.0], rtol=1e-14)
        kcerr = functions.kinematic_constraint_errors(0.0, [1.0, 2.0], [0.5])
        assert_allclose(np.array(kcerr).flatten(), [-1.0], rtol=1e-14)

    def test_evaluator_rejects_wrong_argument_length(self):
        functions = _double_integrator().create_functions()
        with pytest.raises(ProblemDefinitionError, match="states of length 3"):
            functions.dynamics(0.0, [1.0, 2.0, 3.0], [0.0])

    def test_missing_parameters_rejected_when_problem_has_parameters(self):
        problem = _double_integrator()
        problem.parameter("mass", boundary=(1.0, 2.0))
        functions = problem.create_functions()
        with pytest.raises(ProblemDefinitionError, match="parameters required"):
            functions.dynamics(0.0, [1.0, 2.0], [0.0])

    def test_evaluators_accept_symbolic_arguments(self):
        functions = _double_integrator().create_functions()
        x = ca.MX.sym("x", 2)
        u = ca.MX.sym("u", 1)
        xdot = functions.dynamics(ca.MX.sym("t"), x, u)
        assert xdot.shape == (2, 1)

    def test_endpoint_cost_and_integrand(self):
        """The final_time endpoint cost returns tf; the integrand u^2 at u = 3 is 9."""
        problem = _double_integrator()
        problem.integral_cost("effort", lambda t, x, u, p: u[0] ** 2, weight=0.5)
        functions = problem.create_functions()

        assert float(functions.endpoint_cost(0, 0.0, [0.0, 0.0], 3.0, [1.0, 0.0])) == 3.0
        assert float(functions.integrand(0, 0.0, [0.0, 0.0], [3.0])) == 9.0
        assert functions.integral_costs[0].weight == 0.5

    def test_path_constraint_bounds_broadcast(self):
        """A single bound pair applies to every entry of a vector constraint."""
        problem = _double_integrator()
        problem.path_constraint("box", lambda t, x, u, p: [x[0], x[1]], bounds=(-1.0, 1.0))
        path = problem.create_functions().path_constraints[0]

        assert path.size == 2
        assert_allclose(path.lower, [-1.0, -1.0])
        assert_allclose(path.upper, [1.0, 1.0])

    def test_snapshot_is_isolated_from_later_edits(self):
        """Replacing the dynamics does not change an existing snapshot."""
        problem = _double_integrator()
        functions = problem.create_functions()
        problem.dynamics(lambda t, x, u, p: [x[1], 10.0 * u[0]])

        xdot = functions.dynamics(0.0, [0.0, 0.0], [1.0])
        assert_allclose(np.array(xdot).flatten(), [0.0, 1.0], rtol=1e-14)
