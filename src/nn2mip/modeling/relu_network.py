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

"""Big-M formulation of a ReLU network in a gurobipy model.

Every neuron n of a hidden layer k is modeled with a continuous variable
x[k][n] for its (non-negative) output, a continuous variable s[k][n] for the
negative part of its pre-activation value cut by the ReLU and a binary
variable z[k][n] that is 1 when the neuron is inactive:

.. math::

    x_{k,n} - s_{k,n} &= b_{k,n} + \\sum_i W_{k,n,i} x_{k-1,i} \\\\
    x_{k,n} &\\leq \\max(0, U_{k,n}) (1 - z_{k,n}) \\\\
    s_{k,n} &\\leq \\max(0, -L_{k,n}) z_{k,n} \\\\
    x_{k,n}, s_{k,n} &\\geq 0, \\quad z_{k,n} \\in \\{0, 1\\}

where U and L are bounds on the pre-activation value of the neuron. The
output layer is an affine map. The input x[0] is restricted to a box by
linear constraints.
"""

import logging

import gurobipy as gp
import numpy as np
from gurobipy import GRB

from ..exceptions import NoSolution, ParameterError
from ..neuralnet import Network
from ..registered_networks import as_network
from ..solver_params import SolverParams
from .bounds import propagate_bounds
from .tightening import TighteningMode, tighten_layer

logger = logging.getLogger(__name__)


def _as_vector(values, length, what):
    if values is None:
        raise ParameterError(f"Missing {what}")
    values = np.array(values, dtype=np.float64).reshape(-1)
    if values.shape[0] != length:
        raise ParameterError(
            f"{what} should have length {length} and has length {values.shape[0]}"
        )
    return values


class ReLUNetworkConstr:
    """Formulation of a ReLU network in a gurobipy model.

    Objects of this class are returned by :py:func:`nn2mip.nn_to_mip`.
    They give access to the variables of each layer, the bounds used for the
    big-M constants and everything that was added to the gurobipy model.

    Warnings
    --------
    The formulation is built when the object is created. It can't be built
    twice in the same object.
    """

    def __init__(
        self,
        gp_model,
        network,
        input_ub,
        input_lb,
        solver_params=None,
        tighten_bounds=TighteningMode.FAST,
        bounds_upper=None,
        bounds_lower=None,
        output_ub=None,
        output_lb=None,
        n_jobs=1,
        name=None,
    ):
        if not isinstance(network, Network):
            raise ParameterError(
                f"Expected a Network and got {type(network).__name__}"
            )
        self.network = network
        self.tighten_bounds = TighteningMode.from_value(tighten_bounds)
        self.solver_params = solver_params if solver_params else SolverParams()
        self.n_jobs = n_jobs
        self._name = name if name is not None else network.name

        self._input_ub = _as_vector(input_ub, network.n_inputs, "Input upper bounds")
        self._input_lb = _as_vector(input_lb, network.n_inputs, "Input lower bounds")
        if not (
            np.isfinite(self._input_ub).all() and np.isfinite(self._input_lb).all()
        ):
            raise ParameterError("Input bounds should be finite")
        if (self._input_lb > self._input_ub).any():
            raise ParameterError("Input lower bounds are larger than upper bounds")

        self._precomputed = self._validate_precomputed(bounds_upper, bounds_lower)
        if self._precomputed:
            self._bounds_upper = [
                np.array(u, dtype=np.float64).reshape(-1) for u in bounds_upper
            ]
            self._bounds_lower = [
                np.array(low, dtype=np.float64).reshape(-1) for low in bounds_lower
            ]
        else:
            self._bounds_upper = []
            self._bounds_lower = []

        if self.tighten_bounds is TighteningMode.OUTPUT:
            self._output_ub = _as_vector(
                output_ub, network.n_outputs, "Output upper bounds"
            )
            self._output_lb = _as_vector(
                output_lb, network.n_outputs, "Output lower bounds"
            )
        else:
            self._output_ub = None
            self._output_lb = None

        self._gp_model = gp_model
        self._x = []
        self._s = {}
        self._z = {}
        self._input_constrs = []
        self._affine_constrs = {}
        self._upper_constrs = {}
        self._lower_constrs = {}
        self._output_bound_constrs = []

        self._mip_model()

    def _validate_precomputed(self, bounds_upper, bounds_lower):
        if bounds_upper is None and bounds_lower is None:
            return False
        if bounds_upper is None or bounds_lower is None:
            raise ParameterError("Both upper and lower bounds should be given")
        neuron_count = self.network.neuron_count
        for what, bounds in (("upper", bounds_upper), ("lower", bounds_lower)):
            if len(bounds) != len(neuron_count):
                raise ParameterError(
                    f"Precomputed {what} bounds should have one array per layer, "
                    + f"{len(neuron_count)} != {len(bounds)}"
                )
            for k, (layer_bounds, count) in enumerate(zip(bounds, neuron_count)):
                if np.size(layer_bounds) != count:
                    raise ParameterError(
                        f"Precomputed {what} bounds of layer {k + 1} should have "
                        + f"length {count}"
                    )
        return True

    def _name_var(self, name):
        if self._name:
            return f"{self._name}.{name}"
        return name

    def _indexed_name(self, index, name):
        index = f"{index}".replace(" ", "")
        return self._name_var(f"{name}[{index}]")

    def _mip_model(self):
        """Add the formulation of the network to the gurobipy model."""
        model = self._gp_model
        network = self.network
        n_layers = len(network)
        logger.info("Creating a MIP model from %s", network)

        input_vars = model.addMVar(
            network.n_inputs, lb=-GRB.INFINITY, name=self._name_var("x[0]")
        )
        self._x.append(input_vars)
        model.update()
        self._input_constrs = (
            model.addConstr(
                input_vars <= self._input_ub, name=self._name_var("input_ub")
            ).tolist()
            + model.addConstr(
                input_vars >= self._input_lb, name=self._name_var("input_lb")
            ).tolist()
        )

        for k, layer in enumerate(network, start=1):
            logger.info("Layer %d", k)
            if not self._precomputed:
                self._layer_bounds(k, layer)
            if k == n_layers:
                break
            self._add_relu_layer(k, layer)

        self._add_output_layer(n_layers, network[-1])

        if self.tighten_bounds is TighteningMode.OUTPUT:
            self._output_tightening()
        model.update()
        logger.info("Model creation complete")

    def _layer_bounds(self, k, layer):
        """Compute bounds of layer k, every previous layer has to be formulated."""
        if k == 1:
            upper, lower = propagate_bounds(
                layer.weights, layer.bias, self._input_ub, self._input_lb, clamp=False
            )
        else:
            upper, lower = propagate_bounds(
                layer.weights,
                layer.bias,
                self._bounds_upper[k - 2],
                self._bounds_lower[k - 2],
                clamp=True,
            )
        if self.tighten_bounds is TighteningMode.STANDARD:
            upper, lower = tighten_layer(
                self._gp_model,
                self._x[k - 1],
                layer.weights,
                layer.bias,
                upper,
                lower,
                self.solver_params,
                n_jobs=self.n_jobs,
            )
        self._bounds_upper.append(upper)
        self._bounds_lower.append(lower)

    def _add_relu_layer(self, k, layer):
        model = self._gp_model
        n_neurons = layer.n_outputs
        x = model.addMVar(n_neurons, lb=0.0, name=self._name_var(f"x[{k}]"))
        s = model.addMVar(n_neurons, lb=0.0, name=self._name_var(f"s[{k}]"))
        z = model.addMVar(n_neurons, vtype=GRB.BINARY, name=self._name_var(f"z[{k}]"))
        model.update()
        self._x.append(x)
        self._s[k] = s
        self._z[k] = z

        self._upper_constrs[k] = [None] * n_neurons
        self._lower_constrs[k] = [None] * n_neurons
        for neuron in range(n_neurons):
            self._add_big_m(
                k,
                neuron,
                self._bounds_upper[k - 1][neuron],
                self._bounds_lower[k - 1][neuron],
            )

        self._affine_constrs[k] = model.addConstr(
            x - s == self._x[k - 1] @ layer.weights.T + layer.bias,
            name=self._name_var(f"mix[{k}]"),
        ).tolist()

    def _add_big_m(self, k, neuron, upper, lower):
        model = self._gp_model
        x = self._x[k][neuron].item()
        s = self._s[k][neuron].item()
        z = self._z[k][neuron].item()
        self._upper_constrs[k][neuron] = model.addConstr(
            x <= float(max(0.0, upper)) * (1 - z),
            name=self._indexed_name((k, neuron), "relu_ub"),
        )
        self._lower_constrs[k][neuron] = model.addConstr(
            s <= float(max(0.0, -lower)) * z,
            name=self._indexed_name((k, neuron), "relu_lb"),
        )

    def _add_output_layer(self, k, layer):
        model = self._gp_model
        output = model.addMVar(
            layer.n_outputs, lb=-GRB.INFINITY, name=self._name_var(f"x[{k}]")
        )
        model.update()
        self._x.append(output)
        self._affine_constrs[k] = model.addConstr(
            output == self._x[k - 1] @ layer.weights.T + layer.bias,
            name=self._name_var(f"mix[{k}]"),
        ).tolist()

    def _output_tightening(self):
        """Tighten hidden layers again using the bounds on the output."""
        model = self._gp_model
        logger.info(
            "Starting bound tightening based on output bounds as well as input bounds"
        )
        output = self.output
        self._output_bound_constrs = (
            model.addConstr(
                output >= self._output_lb, name=self._name_var("output_lb")
            ).tolist()
            + model.addConstr(
                output <= self._output_ub, name=self._name_var("output_ub")
            ).tolist()
        )

        for k in range(1, len(self.network)):
            logger.info("Layer %d", k)
            layer = self.network[k - 1]
            upper, lower = tighten_layer(
                model,
                self._x[k - 1],
                layer.weights,
                layer.bias,
                self._bounds_upper[k - 1],
                self._bounds_lower[k - 1],
                self.solver_params,
                n_jobs=self.n_jobs,
            )
            for neuron in range(layer.n_outputs):
                self.replace_big_m(k, neuron, upper[neuron], lower[neuron])

        self._bounds_upper[-1] = self._output_ub.copy()
        self._bounds_lower[-1] = self._output_lb.copy()

    def replace_big_m(self, layer, neuron, upper, lower):
        """Replace the big-M constraints of a neuron using new bounds.

        Parameters
        ----------
        layer : int
            Index of a hidden layer (starting at 1).
        neuron : int
            Index of the neuron in the layer.
        upper, lower : float
            New bounds on the pre-activation value of the neuron.

        Warnings
        --------
        The new bounds have to be valid for every feasible input, otherwise
        solutions of the model are cut off.
        """
        if layer not in self._upper_constrs:
            raise ParameterError(f"Layer {layer} is not a hidden layer")
        model = self._gp_model
        model.remove(self._upper_constrs[layer][neuron])
        model.remove(self._lower_constrs[layer][neuron])
        self._bounds_upper[layer - 1][neuron] = upper
        self._bounds_lower[layer - 1][neuron] = lower
        self._add_big_m(layer, neuron, upper, lower)
        model.update()

    @property
    def gp_model(self):
        """Access gurobipy model the formulation is a part of"""
        return self._gp_model

    @property
    def x(self):
        """Output variables of each layer, x[0] is the input of the network."""
        return self._x

    @property
    def s(self):
        """Dictionary of the slack variables of each hidden layer."""
        return self._s

    @property
    def z(self):
        """Dictionary of the binary variables of each hidden layer."""
        return self._z

    @property
    def input(self):
        """Input variables of the network (:gurobipy:`mvar`)."""
        return self._x[0]

    @property
    def output(self):
        """Output variables of the network (:gurobipy:`mvar`)."""
        return self._x[-1]

    @property
    def bounds_upper(self):
        """Upper bounds on the pre-activation values, item k - 1 is layer k."""
        return self._bounds_upper

    @property
    def bounds_lower(self):
        """Lower bounds on the pre-activation values, item k - 1 is layer k."""
        return self._bounds_lower

    def upper_constrs(self, layer):
        """Constraints x <= U (1 - z) of a hidden layer."""
        return list(self._upper_constrs[layer])

    def lower_constrs(self, layer):
        """Constraints s <= -L z of a hidden layer."""
        return list(self._lower_constrs[layer])

    @property
    def vars(self):
        """Return the list of variables added to the model."""
        rval = []
        for k, x in enumerate(self._x):
            rval += x.tolist()
            if k in self._s:
                rval += self._s[k].tolist() + self._z[k].tolist()
        return rval

    def _layer_constrs(self, k):
        rval = list(self._affine_constrs.get(k, []))
        rval += self._upper_constrs.get(k, [])
        rval += self._lower_constrs.get(k, [])
        return rval

    @property
    def constrs(self):
        """Return the list of linear constraints added to the model."""
        rval = list(self._input_constrs)
        for k in range(1, len(self._x)):
            rval += self._layer_constrs(k)
        return rval + self._output_bound_constrs

    @property
    def input_values(self):
        """Values of the input variables in the current solution.

        Raises
        ------
        NoSolution
            If the gurobipy model has no solution.
        """
        return self._values(self.input)

    @property
    def output_values(self):
        """Values of the output variables in the current solution.

        Raises
        ------
        NoSolution
            If the gurobipy model has no solution.
        """
        return self._values(self.output)

    def _values(self, mvar):
        try:
            return mvar.X
        except (gp.GurobiError, AttributeError):
            raise NoSolution() from None

    def get_error(self):
        """Absolute difference between the network and the solution of the model.

        Raises
        ------
        NoSolution
            If the gurobipy model has no solution.
        """
        return np.abs(self.network.forward(self.input_values) - self.output_values)

    def print_stats(self, file=None):
        """Print statistics on the variables and constraints of each layer.

        Parameters
        ----------
        file : None, optional
            Text stream to which output should be redirected. By default sys.stdout.
        """
        print(f"Model for {self._name}:", file=file)
        print(f"{len(self.vars)} variables", file=file)
        print(f"{len(self.constrs)} constraints", file=file)
        print(f"Input has shape {self.input.shape}", file=file)
        print(f"Output has shape {self.output.shape}", file=file)
        print(f"Bound tightening: {self.tighten_bounds.value}", file=file)
        print(file=file)

        header = f"{'Layer':13} {'Output Shape':>14} {'Variables':>12} {'Binaries':>12} {'Constraints':>12}"
        print("-" * len(header), file=file)
        print(header, file=file)
        print("=" * len(header), file=file)
        for k in range(1, len(self._x)):
            n_vars = self._x[k].size
            n_bin = 0
            if k in self._s:
                n_bin = self._z[k].size
                n_vars += self._s[k].size + n_bin
            kind = "relu" if k in self._s else "identity"
            print(
                f"{f'dense{k} ({kind})':13} {self._x[k].shape.__str__():>14} "
                + f"{n_vars:>12} {n_bin:>12} {len(self._layer_constrs(k)):>12}",
                file=file,
            )
            print(file=file)
        print("-" * len(header), file=file)

    def remove(self):
        """Remove from the gurobipy model everything that was added."""
        if self._gp_model is None:
            return
        self._gp_model.remove(self.constrs)
        self._gp_model.remove(self.vars)
        self._gp_model.update()
        self._x = []
        self._s = {}
        self._z = {}
        self._input_constrs = []
        self._affine_constrs = {}
        self._upper_constrs = {}
        self._lower_constrs = {}
        self._output_bound_constrs = []
        self._gp_model = None

    def __str__(self):
        return self._name


def nn_to_mip(
    network,
    input_ub,
    input_lb,
    solver_params=None,
    tighten_bounds=TighteningMode.FAST,
    bounds_upper=None,
    bounds_lower=None,
    output_ub=None,
    output_lb=None,
    gp_model=None,
    n_jobs=1,
    name=None,
):
    """Create a mixed-integer formulation of a ReLU network.

    Parameters
    ----------
    network : Network or trained predictor
        The network to formulate. Predictors of the supported ML frameworks
        (see :py:func:`nn2mip.as_network`) are converted first.
    input_ub, input_lb : array_like
        Upper and lower bounds of the input of the network.
    solver_params : SolverParams, optional
        Parameters for the solver. Default is a silent Gurobi.
    tighten_bounds : TighteningMode or str, optional
        ``"fast"`` (default), ``"standard"`` or ``"output"``.
    bounds_upper, bounds_lower : list of array_like, optional
        Precomputed bounds on the pre-activation values of every layer
        (hidden and output). When given no bounds are computed.
    output_ub, output_lb : array_like, optional
        Bounds on the output of the network, required with ``"output"``.
    gp_model : :gurobipy:`model`, optional
        Model in which the formulation is added. A new model is created if
        not given.
    n_jobs : int, optional
        Number of bound tightening problems solved concurrently.
    name : str, optional
        Prefix of the names of the variables and constraints.

    Returns
    -------
    tuple
        The :py:class:`ReLUNetworkConstr` holding the formulation, and the
        lists of upper and lower bounds used (item k - 1 is layer k).

    Raises
    ------
    ParameterError
        If the bounds given don't conform with the network, or an
        unknown tightening mode is asked. Nothing is added to the model.
    NoModel
        If the network doesn't only use ReLU hidden layers and an identity
        output layer.

    Examples
    --------
    >>> nn_constr, U, L = nn_to_mip(network, [1, 1], [-1, -1])  # doctest: +SKIP
    >>> forward_pass(nn_constr, [1, 0])  # doctest: +SKIP
    """
    network = as_network(network)
    created = gp_model is None
    if created:
        gp_model = gp.Model(network.name)
    if created or solver_params is not None:
        solver_params = solver_params if solver_params else SolverParams()
        solver_params.apply(gp_model)
    try:
        nn_constr = ReLUNetworkConstr(
            gp_model,
            network,
            input_ub,
            input_lb,
            solver_params=solver_params,
            tighten_bounds=tighten_bounds,
            bounds_upper=bounds_upper,
            bounds_lower=bounds_lower,
            output_ub=output_ub,
            output_lb=output_lb,
            n_jobs=n_jobs,
            name=name,
        )
    except ParameterError:
        if created:
            gp_model.dispose()
        raise
    return (nn_constr, nn_constr.bounds_upper, nn_constr.bounds_lower)
