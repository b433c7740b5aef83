"""
Mathematical correctness of the trapezoidal transcription, checked on the
assembled NLP without calling the NLP solver.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

import dircol.transcription.base as transcription_base
from dircol import ConfigurationError, Mesh, Problem, Solver, Transcription, Trapezoidal


def _block_values(transcription, values):
    """Split the evaluated constraint vector into (block, values) pairs."""
    g = transcription.evaluate_constraints(values)
    pairs = []
    offset = 0
    for block in transcription.constraint_blocks:
        pairs.append((block, g[offset : offset + block.size]))
        offset += block.size
    assert offset == len(g), "Constraint blocks must cover the whole constraint vector"
    return pairs


def _single_state_problem(dynamics, final=1.0):
    problem = Problem("Single State")
    problem.time(initial=0.0, final=final)
    problem.state("x", boundary=(-10.0, 10.0))
    problem.control("u", boundary=(-1.0, 1.0))
    problem.dynamics(dynamics)
    return problem


def _kinematic_problem():
    problem = Problem("Coupled States")
    problem.time(initial=0.0, final=1.0)
    problem.state("a", initial=0.0)
    problem.state("b")
    problem.control("u")
    problem.dynamics(lambda t, x, u, p, lam: [u[0] + lam[0], -lam[0]])
    problem.kinematic_constraints(
        lambda t, x, u, p: [x[0] - x[1]], multipliers=["lam"], boundary=(-10.0, 10.0)
    )
    return problem


def _transcribe(problem, num_mesh_points=None, mesh=None, **solver_options):
    solver = Solver(num_mesh_points=num_mesh_points, mesh=mesh, **solver_options)
    return solver.create_transcription(problem)


class TestTrapezoidalDefects:
    @pytest.mark.parametrize("num_mesh_points", [2, 5, 11])
    def test_zero_dynamics_reduces_defects_to_state_differences(self, num_mesh_points):
        """With f = 0 each defect is x[k+1] - x[k]."""
        transcription = _transcribe(
            _single_state_problem(lambda t, x, u, p: [0.0]), num_mesh_points
        )
        layout = transcription.layout
        rng = np.random.default_rng(0)
        states = rng.uniform(-1.0, 1.0, size=(num_mesh_points, 1))
        controls = rng.uniform(-1.0, 1.0, size=(num_mesh_points, 1))
        values = layout.assemble(states, controls, 0.0, 1.0)

        defects = [v for b, v in _block_values(transcription, values) if b.kind == "defect"]

        assert len(defects) == num_mesh_points - 1
        for k, defect in enumerate(defects):
            assert_allclose(
                defect,
                states[k + 1] - states[k],
                atol=1e-14,
                err_msg=f"Defect {k} must equal x[k+1] - x[k] when f == 0",
            )

    @pytest.mark.parametrize(
        "mesh",
        [Mesh.uniform(6), Mesh([0.0, 0.05, 0.3, 0.31, 0.7, 1.0]), Mesh.from_intervals([3, 1, 2])],
    )
    def test_constant_velocity_trajectory_has_zero_residual(self, mesh):
        """x = x0 + v*t satisfies the defects on any mesh."""
        problem = Problem("Constant Velocity")
        problem.time(initial=(0.0, 5.0), final=(0.0, 5.0))
        problem.state("position")
        problem.state("velocity")
        problem.dynamics(lambda t, x, u, p: [x[1], 0.0])
        transcription = _transcribe(problem, mesh=mesh)

        t0, tf, speed = 1.0, 3.0, -0.75
        times = mesh.times(t0, tf)
        states = np.column_stack([2.0 + speed * (times - t0), np.full(mesh.num_points, speed)])
        values = transcription.layout.assemble(states, np.zeros((mesh.num_points, 0)), t0, tf)

        for block, residual in _block_values(transcription, values):
            if block.kind == "defect":
                assert_allclose(
                    residual, 0.0, atol=1e-13, err_msg=f"Defect {block.mesh_index} not zero"
                )

    def test_two_point_defect_matches_trapezoidal_rule(self):
        """Defect = x1 - x0 - 0.5*(u0 + u1)."""
        transcription = _transcribe(_single_state_problem(lambda t, x, u, p: [u[0]]), 2)
        values = transcription.layout.assemble([[0.2], [0.9]], [[0.4], [-0.6]], 0.0, 1.0)

        [(block, defect)] = [
            pair for pair in _block_values(transcription, values) if pair[0].kind == "defect"
        ]

        expected = 0.9 - 0.2 - 0.5 * (0.4 - 0.6)
        assert block.mesh_index == 0
        assert_allclose(defect, [expected], rtol=1e-14)

    def test_defects_scale_with_horizon_length(self):
        """h_k = (tf - t0) * dtau_k."""
        problem = _single_state_problem(lambda t, x, u, p: [u[0]], final=(0.1, 10.0))
        transcription = _transcribe(problem, 3)
        values = transcription.layout.assemble(
            [[0.0], [1.0], [2.0]], [[1.0], [1.0], [1.0]], 0.0, 4.0
        )

        defects = [v for b, v in _block_values(transcription, values) if b.kind == "defect"]
        # h = 2 per interval, so x[k+1] - x[k] - h * u = 1 - 2 = -1
        assert_allclose(np.concatenate(defects), [-1.0, -1.0], rtol=1e-14)

    def test_defects_use_multipliers_in_dynamics(self):
        """Multipliers enter the defects through the dynamics at both interval ends."""
        transcription = _transcribe(_kinematic_problem(), 2)
        values = transcription.layout.assemble(
            states=[[0.0, 0.0], [1.0, 1.0]],
            controls=[[2.0], [2.0]],
            initial_time=0.0,
            final_time=1.0,
            multipliers=[[-0.5], [-1.5]],
        )

        [defect] = [v for b, v in _block_values(transcription, values) if b.kind == "defect"]
        # a: 1 - 0.5 * ((2 - 0.5) + (2 - 1.5)) = 0, b: 1 - 0.5 * (0.5 + 1.5) = 0
        assert_allclose(defect, [0.0, 0.0], atol=1e-14)

    def test_defect_bounds_are_equalities(self):
        transcription = _transcribe(_single_state_problem(lambda t, x, u, p: [u[0]]), 4)
        for block in transcription.get_constraint_blocks("defect"):
            assert block.is_equality
            assert_allclose(block.lower, 0.0)


class TestTrapezoidalQuadrature:
    @pytest.mark.parametrize("num_mesh_points", [2, 3, 7, 50])
    @pytest.mark.parametrize("duration", [1.0, 2.5])
    def test_uniform_weights_sum_to_horizon(self, num_mesh_points, duration):
        """Weights h/2, h, ..., h, h/2 sum to (N-1)*h."""
        transcription = _transcribe(
            _single_state_problem(lambda t, x, u, p: [u[0]], final=duration), num_mesh_points
        )
        h = duration / (num_mesh_points - 1)
        weights = transcription.quadrature_weights(duration)

        assert_allclose(np.sum(weights), (num_mesh_points - 1) * h, rtol=1e-13)
        assert_allclose(weights[0], h / 2.0, rtol=1e-13)
        assert_allclose(weights[-1], h / 2.0, rtol=1e-13)
        if num_mesh_points > 2:
            assert_allclose(weights[1:-1], h, rtol=1e-13)

    def test_two_point_weights(self):
        """A single interval of length 1 has weights [0.5, 0.5]."""
        transcription = _transcribe(_single_state_problem(lambda t, x, u, p: [u[0]]), 2)
        assert_allclose(transcription.quadrature_weights(1.0), [0.5, 0.5], rtol=1e-14)

    def test_non_uniform_coefficients(self):
        """Mesh [0, 0.2, 1] gives coefficients [0.1, 0.5, 0.4]."""
        transcription = _transcribe(
            _single_state_problem(lambda t, x, u, p: [u[0]]), mesh=[0.0, 0.2, 1.0]
        )
        assert_allclose(transcription.quadrature_coefficients, [0.1, 0.5, 0.4], rtol=1e-14)
        assert_allclose(np.sum(transcription.quadrature_coefficients), 1.0, rtol=1e-14)

    def test_coefficients_are_read_only(self):
        transcription = _transcribe(_single_state_problem(lambda t, x, u, p: [u[0]]), 4)
        with pytest.raises(ValueError):
            transcription.quadrature_coefficients[0] = 1.0

    @pytest.mark.parametrize("num_mesh_points", [2, 9])
    def test_constant_integrand_integrates_exactly(self, num_mesh_points):
        """Integral of a constant c over the horizon is c * duration."""
        constant = 3.0
        duration = 2.0
        problem = _single_state_problem(lambda t, x, u, p: [u[0]], final=duration)
        problem.integral_cost("constant", lambda t, x, u, p: constant)
        transcription = _transcribe(problem, num_mesh_points)

        h = duration / (num_mesh_points - 1)
        objective = transcription.evaluate_objective(transcription.default_guess())
        assert_allclose(objective, constant * (num_mesh_points - 1) * h, rtol=1e-13)

    def test_linear_integrand_on_free_horizon(self):
        """Trapezoidal quadrature is exact for linear integrands on a non-uniform mesh."""
        problem = _single_state_problem(lambda t, x, u, p: [u[0]], final=(0.5, 10.0))
        problem.integral_cost("time", lambda t, x, u, p: t, weight=2.0)
        transcription = _transcribe(problem, mesh=[0.0, 0.3, 1.0])
        values = transcription.layout.assemble(np.zeros((3, 1)), np.zeros((3, 1)), 0.0, 4.0)

        # trapezoidal rule is exact for linear integrands: 2 * 4**2 / 2
        assert_allclose(transcription.evaluate_objective(values), 16.0, rtol=1e-13)

    def test_objective_breakdown_by_cost_term(self):
        """J = 10 * xf + integral of u^2 = 10 + 1."""
        problem = _single_state_problem(lambda t, x, u, p: [u[0]])
        problem.endpoint_cost("terminal", lambda t0, x0, tf, xf, p: xf[0], weight=10.0)
        problem.integral_cost("effort", lambda t, x, u, p: u[0] ** 2)
        transcription = _transcribe(problem, 3)
        values = transcription.layout.assemble(
            [[0.0], [0.5], [1.0]], [[1.0], [1.0], [1.0]], 0.0, 1.0
        )

        terms = transcription.evaluate_objective_terms(values)
        assert_allclose(terms["terminal"], 10.0, rtol=1e-14)
        assert_allclose(terms["effort"], 1.0, rtol=1e-14)
        assert_allclose(transcription.evaluate_objective(values), 11.0, rtol=1e-14)


class TestKinematicConstraints:
    @pytest.mark.parametrize("num_mesh_points", [2, 4, 10])
    def test_one_kinematic_block_per_mesh_point(self, num_mesh_points):
        """Kinematic constraints give N blocks, not N-1."""
        transcription = _transcribe(_kinematic_problem(), num_mesh_points)

        blocks = transcription.get_constraint_blocks("kinematic")
        assert len(blocks) == num_mesh_points
        assert [b.mesh_index for b in blocks] == list(range(num_mesh_points))
        assert transcription.kinematic_constraint_indices == tuple(range(num_mesh_points))
        assert transcription.layout.size == num_mesh_points * (2 + 1 + 1) + 2

    def test_kinematic_errors_evaluated_per_point(self):
        """Kinematic error a - b at each mesh point."""
        transcription = _transcribe(_kinematic_problem(), 3)
        states = [[0.0, 0.0], [1.0, 0.5], [2.0, 2.5]]
        values = transcription.layout.assemble(states, np.zeros((3, 1)), 0.0, 1.0)

        errors = [v for b, v in _block_values(transcription, values) if b.kind == "kinematic"]
        assert_allclose(np.concatenate(errors), [0.0, 0.5, -0.5], atol=1e-14)

    def test_no_kinematic_blocks_without_kinematic_constraints(self):
        transcription = _transcribe(_single_state_problem(lambda t, x, u, p: [u[0]]), 5)
        assert transcription.get_constraint_blocks("kinematic") == []
        assert transcription.kinematic_constraint_indices == ()

    def test_multiplier_bounds_applied_at_every_point(self):
        transcription = _transcribe(_kinematic_problem(), 3)
        layout = transcription.layout
        for k in range(3):
            assert layout.lower[layout.multiplier_slice(k)][0] == -10.0
            assert layout.upper[layout.multiplier_slice(k)][0] == 10.0


class TestConstraintAssembly:
    def test_blocks_emitted_in_mesh_order(self):
        """Blocks run defect k, kinematic k, path k in increasing k."""
        problem = _kinematic_problem()
        problem.path_constraint("gap", lambda t, x, u, p: [x[0] + x[1]], bounds=(None, 5.0))
        transcription = _transcribe(problem, 3)

        order = [(b.kind, b.mesh_index) for b in transcription.constraint_blocks]
        assert order == [
            ("defect", 0), ("kinematic", 0), ("path", 0),
            ("defect", 1), ("kinematic", 1), ("path", 1),
            ("kinematic", 2), ("path", 2),
        ]  # fmt: skip

    def test_path_constraint_bounds(self):
        problem = _single_state_problem(lambda t, x, u, p: [u[0]])
        problem.path_constraint(
            "window", lambda t, x, u, p: [x[0], x[0] + u[0]], bounds=[(-1.0, 1.0), (0.0, None)]
        )
        transcription = _transcribe(problem, 4)

        blocks = transcription.get_constraint_blocks("path")
        assert len(blocks) == 4
        for block in blocks:
            assert_allclose(block.lower, [-1.0, 0.0])
            assert_allclose(block.upper, [1.0, np.inf])

    def test_duration_block_only_for_free_time(self):
        """Fixed t0 and tf need no duration constraint."""
        fixed = _transcribe(_single_state_problem(lambda t, x, u, p: [u[0]]), 3)
        free = _transcribe(_single_state_problem(lambda t, x, u, p: [u[0]], final=(0.5, 9.0)), 3)

        assert fixed.get_constraint_blocks("duration") == []
        [duration] = free.get_constraint_blocks("duration")
        assert duration.lower[0] > 0.0 and np.isposinf(duration.upper[0])

    def test_nlp_dimensions(self):
        """NLP sizes match the layout and the emitted constraint blocks."""
        transcription = _transcribe(_kinematic_problem(), 5)
        nlp = transcription.nlp

        assert nlp.num_variables == transcription.layout.size
        assert len(nlp.lbx) == len(nlp.ubx) == nlp.num_variables
        assert nlp.num_constraints == sum(b.size for b in transcription.constraint_blocks)
        assert len(nlp.lbg) == len(nlp.ubg) == nlp.num_constraints
        # 4 defects of size 2 and 5 kinematic blocks of size 1
        assert nlp.num_constraints == 4 * 2 + 5

    def test_time_bounds_in_layout(self):
        transcription = _transcribe(
            _single_state_problem(lambda t, x, u, p: [u[0]], final=(0.5, 9.0)), 3
        )
        layout = transcription.layout
        t0, tf = layout.initial_time_index, layout.final_time_index

        assert (layout.lower[t0], layout.upper[t0]) == (0.0, 0.0)
        assert (layout.lower[tf], layout.upper[tf]) == (0.5, 9.0)


class TestTrapezoidalConfiguration:
    def test_constraint_derivatives_rejected_before_layout(self, monkeypatch):
        """Derivative enforcement fails before any layout is built."""
        def fail_if_called(*args, **kwargs):
            raise AssertionError("Layout must not be built for a rejected configuration")

        monkeypatch.setattr(transcription_base, "LayoutBuilder", fail_if_called)
        solver = Solver(num_mesh_points=5, enforce_constraint_derivatives=True)

        with pytest.raises(ConfigurationError, match="constraint derivatives"):
            solver.create_transcription(_kinematic_problem())

    def test_configuration_checked_before_problem_validation(self):
        incomplete = Problem("No Dynamics")
        solver = Solver(num_mesh_points=5, enforce_constraint_derivatives=True)

        with pytest.raises(ConfigurationError):
            solver.create_transcription(incomplete)

    def test_unknown_scheme_options_rejected(self):
        solver = Solver(num_mesh_points=5, scheme_options={"order": 4})
        with pytest.raises(ConfigurationError, match="order"):
            solver.create_transcription(_kinematic_problem())

    def test_mismatched_mesh_point_count_rejected(self):
        """A scheme asking for N+1 points on an N-point mesh is rejected."""
        class OffByOne(Trapezoidal):
            def __init__(self, solver, problem):
                Transcription.__init__(
                    self, solver, problem, solver.num_mesh_points + 1, solver.num_mesh_points + 1
                )

        with pytest.raises(ConfigurationError, match="mesh"):
            OffByOne(Solver(num_mesh_points=4), _kinematic_problem())

    def test_default_guess_respects_bounds(self):
        transcription = _transcribe(_kinematic_problem(), 4)
        guess = transcription.default_guess()
        layout = transcription.layout

        assert len(guess) == layout.size
        assert np.all(guess >= layout.lower) and np.all(guess <= layout.upper)


class TestProblemSnapshot:
    def test_later_problem_edits_do_not_change_transcription(self):
        """Adding a state or freeing tf after transcription leaves the NLP untouched."""
        problem = _single_state_problem(lambda t, x, u, p: [u[0]])
        transcription = _transcribe(problem, 5)
        size = transcription.layout.size

        problem.state("y")
        problem.time(initial=0.0, final=(0.5, 2.0))

        kinds = {block.kind for block in transcription.constraint_blocks}
        assert "duration" not in kinds
        assert transcription.nlp.num_variables == size
        assert transcription.functions.state_names == ("x",)
        assert transcription.functions.has_fixed_times

    def test_snapshot_records_names_and_time_bounds(self):
        """Names and time bounds are copied when the functions are built."""
        functions = _kinematic_problem().create_functions()

        assert functions.state_names == ("a", "b")
        assert functions.control_names == ("u",)
        assert functions.multiplier_names == ("lam",)
        assert functions.parameter_names == ()
        assert functions.final_time_bounds.upper == 1.0
