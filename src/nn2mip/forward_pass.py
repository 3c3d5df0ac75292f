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

"""Evaluate a formulated network by solving its model with a fixed input."""

import logging

import numpy as np

from .exceptions import ParameterError

logger = logging.getLogger(__name__)


class Infeasible:
    """Result of a forward pass that has no solution.

    This happens when the input lies outside of the input bounds of the
    formulation, when the formulation cuts off the point (e.g. too tight
    precomputed or output bounds), or when the solve stops on the time limit
    set on the model by :py:class:`nn2mip.SolverParams` before finding a
    solution (status ``GRB.TIME_LIMIT``). Objects of this class evaluate to
    False.

    Attributes
    ----------
    input_values : ndarray
        The input that was evaluated.
    status : int
        Gurobi optimization status.
    """

    def __init__(self, input_values, status):
        self.input_values = input_values
        self.status = status

    def __bool__(self):
        return False

    def __repr__(self):
        return f"Infeasible(input={self.input_values.tolist()}, status={self.status})"


def forward_pass(nn_constr, input_values):
    """Compute the output of a formulated network for some input.

    The input variables are fixed to input_values and the model is solved.
    Their bounds are restored afterwards. The objective of the model is left
    untouched. Restoring the bounds updates the model, which discards the
    solution: read the returned vector, not the solution attributes of the
    model (``Status``, ``X``, ...) after the call.

    Parameters
    ----------
    nn_constr : ReLUNetworkConstr
        Formulation returned by :py:func:`nn2mip.nn_to_mip`.
    input_values : array_like
        Input vector of the network.

    Returns
    -------
    ndarray or Infeasible
        Values of the output of the network, or an :py:class:`Infeasible`
        object if the model has no solution with this input.

    Raises
    ------
    ParameterError
        If input_values doesn't have the length of the input of the network.

    Warnings
    --------
    The gurobipy model is modified during the call, calls on the same
    formulation must not run concurrently.
    """
    input_values = np.array(input_values, dtype=np.float64).reshape(-1)
    input_vars = nn_constr.input
    if input_values.shape[0] != input_vars.shape[0]:
        raise ParameterError(
            f"Incorrect input length: {input_values.shape[0]} != {input_vars.shape[0]}"
        )
    gp_model = nn_constr.gp_model
    gp_model.update()
    saved_lb = input_vars.LB
    saved_ub = input_vars.UB
    input_vars.LB = input_values
    input_vars.UB = input_values
    try:
        gp_model.optimize()
        if gp_model.SolCount == 0:
            logger.info(
                "Input outside of input bounds or incorrectly constructed model"
                + " (status %d)",
                gp_model.Status,
            )
            return Infeasible(input_values, gp_model.Status)
        return nn_constr.output.X.copy()
    finally:
        input_vars.LB = saved_lb
        input_vars.UB = saved_ub
        gp_model.update()
