# Copyright © 2023-2026 Gurobi Optimization, LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""Parameters passed to the solver when building and evaluating models."""

from .exceptions import ParameterError

SUPPORTED_SOLVERS = ("gurobi",)


class SolverParams:
    """Solver configuration used by :py:func:`nn2mip.nn_to_mip`.

    Parameters
    ----------
    solver : str, optional
        Backend to use. Only ``"gurobi"`` is supported.
    silent : bool, optional
        Suppress the solver log (Gurobi's ``OutputFlag``).
    threads : int, optional
        Number of threads for each solve, 0 lets the solver decide.
    relax : bool, optional
        Solve the bound tightening subproblems as linear relaxations
        (binary variables treated as continuous in [0, 1]). The final
        model keeps its binary variables.
    time_limit : float, optional
        Wall-clock limit in seconds for every solve, 0 for no limit.

    Examples
    --------
    >>> params = SolverParams(silent=True, threads=0, relax=False, time_limit=0)
    >>> params.gurobi_params()
    {'OutputFlag': 0, 'Threads': 0}
    """

    def __init__(
        self, solver="gurobi", silent=True, threads=0, relax=False, time_limit=0.0
    ):
        solver = solver.lower()
        if solver not in SUPPORTED_SOLVERS:
            raise ParameterError(
                f"Unsupported solver {solver}, should be one of "
                + ", ".join(SUPPORTED_SOLVERS)
            )
        if threads < 0:
            raise ParameterError(f"Number of threads should be >= 0, got {threads}")
        if time_limit < 0:
            raise ParameterError(f"Time limit should be >= 0, got {time_limit}")
        self.solver = solver
        self.silent = bool(silent)
        self.threads = int(threads)
        self.relax = bool(relax)
        self.time_limit = float(time_limit)

    @classmethod
    def from_dict(cls, config):
        """Build parameters from a plain mapping (e.g. a parsed config file)."""
        known = {"solver", "silent", "threads", "relax", "time_limit"}
        unknown = set(config) - known
        if unknown:
            raise ParameterError(
                "Unknown solver parameters: " + ", ".join(sorted(unknown))
            )
        return cls(**config)

    def gurobi_params(self):
        """Dictionary of Gurobi parameters corresponding to this configuration."""
        params = {
            "OutputFlag": 0 if self.silent else 1,
            "Threads": self.threads,
        }
        if self.time_limit > 0:
            params["TimeLimit"] = self.time_limit
        return params

    def apply(self, gp_model):
        """Set the parameters on gp_model."""
        for param, value in self.gurobi_params().items():
            gp_model.setParam(param, value)

    def __repr__(self):
        return (
            f"SolverParams(solver={self.solver!r}, silent={self.silent}, "
            f"threads={self.threads}, relax={self.relax}, "
            f"time_limit={self.time_limit})"
        )
