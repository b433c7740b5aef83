import numpy as np

import dircol


# Pendulum bob in Cartesian coordinates; the rod is a kinematic constraint
# whose multiplier is the rod tension per unit mass.
length = 1.0
g0 = 9.81
swing = 0.5

problem = dircol.Problem("Cartesian Pendulum")

# Variables
problem.time(initial=0.0, final=2.0)
problem.state("x", initial=0.0, final=length * np.sin(swing))
problem.state("y", initial=-length, final=-length * np.cos(swing))
problem.state("vx", initial=0.0, final=0.0)
problem.state("vy", initial=0.0, final=0.0)
problem.control("force", boundary=(-20.0, 20.0))


# Dynamics
def pendulum_dynamics(t, x, u, p, lam):
    return [x[2], x[3], -lam[0] * x[0] + u[0], -lam[0] * x[1] - g0]


problem.dynamics(pendulum_dynamics)
problem.kinematic_constraints(
    lambda t, x, u, p: [x[0] ** 2 + x[1] ** 2 - length**2],
    multipliers=["tension"],
    boundary=(0.0, 100.0),
)

# Objective
problem.integral_cost("effort", lambda t, x, u, p: u[0] ** 2)

# Guess: hanging at rest, tension balancing gravity
times = np.array([0.0, 2.0])
guess = dircol.InitialGuess(
    times=times,
    states=[[0.0, -length, 0.0, 0.0], [length * np.sin(swing), -length * np.cos(swing), 0.0, 0.0]],
    controls=[[0.0], [0.0]],
    multipliers=[[g0 / length], [g0 / length]],
)

solver = dircol.Solver(num_mesh_points=81, optim_max_iterations=500, verbosity=1)
solution = solver.solve(problem, guess=guess)

# Results
if solution.success:
    print(f"Effort: {solution.objective:.6f}")
    rod_error = np.abs(solution["x"] ** 2 + solution["y"] ** 2 - length**2).max()
    print(f"Max rod length error: {rod_error:.2e}")
    print(solution.to_dataframe().head())
else:
    print(f"Failed: {solution.message}")
