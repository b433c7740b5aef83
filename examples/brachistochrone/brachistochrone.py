import casadi as ca
import numpy as np

import dircol


# Problem setup
problem = dircol.Problem("Brachistochrone Problem")

# Variables
problem.time(initial=0.0, final=(0.01, 2.0))
problem.state("x", initial=0.0, final=1.0, boundary=(0, 10))
problem.state("y", initial=0.0, boundary=(0, 10))
problem.state("v", initial=0.0, boundary=(0, 10))
problem.control("u", boundary=(0, np.pi / 2))

# Dynamics
g0 = 32.174  # ft/sec^2
problem.dynamics(lambda t, x, u, p: [x[2] * ca.cos(u[0]), x[2] * ca.sin(u[0]), g0 * ca.sin(u[0])])

# Objective
problem.endpoint_cost("final_time", lambda t0, x0, tf, xf, p: tf)

# Coarse solve, then refine from the coarse solution
coarse = dircol.Solver(num_mesh_points=21).solve(problem)

if coarse.success:
    solution = dircol.Solver(num_mesh_points=201, show_summary=True).solve(problem, guess=coarse)
    if solution.success:
        print(f"Objective: {solution.objective:.9f}")
        print("Literature reference: 0.312480130")
        print(f"Difference: {abs(solution.objective - 0.312480130):.2e}")

        check = dircol.simulate_solution(problem, solution)
        print(f"Forward simulation max state deviation: {check.max_state_deviation:.2e}")
    else:
        print(f"Refined solve failed: {solution.message}")
else:
    print(f"Failed: {coarse.message}")
