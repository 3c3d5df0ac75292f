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

"""Optimization based tightening of the bounds of the neurons.

For a neuron of layer k the pre-activation value
``b_k[n] + W_k[n, :] @ x[k - 1]`` is maximized and minimized over the
model built so far. The optimal values are valid bounds that are usually
much tighter than the ones obtained by interval propagation.

The subproblems of the neurons of one layer are independent. They can be
solved in sequence on the model itself, or concurrently by a pool of
threads each working on its own copy of the model.
"""

import logging
import threading
from contextlib import contextmanager
from enum import Enum

import gurobipy as gp
from gurobipy import GRB
from joblib import Parallel, delayed

from ..exceptions import ParameterError
from .bounds import improve_bounds

logger = logging.getLogger(__name__)

_copy_lock = threading.Lock()


class TighteningMode(Enum):
    """How the bounds used for the big-M constants are computed.

    FAST
        Interval propagation only.
    STANDARD
        Interval propagation, then every neuron is tightened by solving two
        optimization problems over the layers built before it.
    OUTPUT
        Interval propagation while building, then bounds on the output of
        the network are added and every hidden layer is tightened again on
        the complete model.
    """

    FAST = "fast"
    STANDARD = "standard"
    OUTPUT = "output"

    @classmethod
    def from_value(cls, mode):
        if isinstance(mode, cls):
            return mode
        try:
            return cls(f"{mode}".lower())
        except ValueError:
            raise ParameterError(
                f"Unknown bound tightening mode {mode}, should be one of "
                + ", ".join(m.value for m in cls)
            ) from None


@contextmanager
def _subproblem_model(gp_model, relax):
    """Save objective (and variable types if relax) of gp_model and restore them."""
    gp_model.update()
    objective = gp_model.getObjective()
    sense = gp_model.ModelSense
    variables = gp_model.getVars()
    vtypes = None
    if relax:
        vtypes = gp_model.getAttr(GRB.Attr.VType, variables)
        gp_model.setAttr(
            GRB.Attr.VType, variables, [GRB.CONTINUOUS] * len(variables)
        )
    try:
        yield gp_model
    finally:
        if vtypes is not None:
            gp_model.setAttr(GRB.Attr.VType, variables, vtypes)
        gp_model.setObjective(objective, sense)
        gp_model.update()


def _optimal_value(gp_model, expr, sense):
    gp_model.setObjective(expr, sense)
    gp_model.optimize()
    if gp_model.Status != GRB.OPTIMAL:
        return None
    # The incumbent of a MIP can be within the gap of the optimum
    if gp_model.IsMIP:
        return gp_model.ObjBound
    return gp_model.ObjVal


def neuron_bounds(gp_model, prev_vars, weights_row, bias):
    """Maximize and minimize the pre-activation value of one neuron.

    The objective of gp_model is overwritten, use
    :py:func:`tighten_layer` to have it restored.

    Parameters
    ----------
    gp_model : :gurobipy:`model`
        The model in which to solve.
    prev_vars : list of :gurobipy:`var`
        Variables of the previous layer in gp_model.
    weights_row : ndarray
        Weights of the neuron.
    bias : float
        Bias of the neuron.

    Returns
    -------
    tuple
        Upper and lower bound. A bound is None if its problem wasn't solved
        to optimality (infeasible, unbounded, time limit,...).
    """
    expr = gp.LinExpr(weights_row.tolist(), list(prev_vars)) + float(bias)
    upper = _optimal_value(gp_model, expr, GRB.MAXIMIZE)
    if upper is None:
        logger.warning(
            "Maximization could not be solved to optimality (status %d)",
            gp_model.Status,
        )
    lower = _optimal_value(gp_model, expr, GRB.MINIMIZE)
    if lower is None:
        logger.warning(
            "Minimization could not be solved to optimality (status %d)",
            gp_model.Status,
        )
    return (upper, lower)


def _neuron_bounds_on_copy(gp_model, var_indices, weights_row, bias, solver_params):
    # Environments aren't thread safe, every copy gets its own
    with _copy_lock:
        env = gp.Env(params=solver_params.gurobi_params())
        model_copy = gp_model.copy(env=env)
    with env, model_copy:
        solver_params.apply(model_copy)
        variables = model_copy.getVars()
        prev_vars = [variables[i] for i in var_indices]
        with _subproblem_model(model_copy, solver_params.relax):
            return neuron_bounds(model_copy, prev_vars, weights_row, bias)


def tighten_layer(
    gp_model, prev_vars, weights, bias, upper, lower, solver_params, n_jobs=1
):
    """Tighten the bounds of all neurons in a layer.

    Parameters
    ----------
    gp_model : :gurobipy:`model`
        Model containing the formulation of the previous layers.
    prev_vars : :gurobipy:`mvar`
        Output variables of the previous layer.
    weights, bias : ndarray
        Weights and bias of the layer.
    upper, lower : ndarray
        Current bounds of the layer.
    solver_params : SolverParams
        Parameters of the subproblems.
    n_jobs : int, optional
        Number of concurrent subproblems. 1 solves them in sequence in
        gp_model itself; other values (-1 for all cores) use a thread pool
        where each subproblem is solved in a copy of gp_model.

    Returns
    -------
    tuple of ndarray
        The new upper and lower bounds. They are never worse than upper and
        lower.
    """
    gp_model.update()
    prev_vars = prev_vars.tolist()
    n_neurons = weights.shape[0]

    if n_jobs == 1:
        with _subproblem_model(gp_model, solver_params.relax):
            results = [
                neuron_bounds(gp_model, prev_vars, weights[neuron], bias[neuron])
                for neuron in range(n_neurons)
            ]
    else:
        var_indices = [v.index for v in prev_vars]
        results = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(_neuron_bounds_on_copy)(
                gp_model, var_indices, weights[neuron], bias[neuron], solver_params
            )
            for neuron in range(n_neurons)
        )

    for neuron, (neuron_upper, neuron_lower) in enumerate(results):
        logger.debug(
            "Neuron: %d, bounds: [%s, %s]", neuron, neuron_lower, neuron_upper
        )
    new_upper, new_lower = improve_bounds(
        upper, lower, [r[0] for r in results], [r[1] for r in results]
    )
    return (new_upper, new_lower)
