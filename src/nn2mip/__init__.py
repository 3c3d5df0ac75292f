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

"""
nn2mip
==================================

A Python package to formulate trained ReLU neural networks as
mixed-integer linear programs in gurobipy models.

The formulation uses one binary variable per hidden neuron and big-M
constraints whose constants are bounds on the pre-activation values of the
neurons. Those bounds are computed by interval propagation and can be
tightened by solving auxiliary optimization problems.
"""

from gurobipy import gurobi

from ._version import __version__
from .exceptions import NoModel, NoSolution, NotRegistered, ParameterError
from .forward_pass import Infeasible, forward_pass
from .modeling import ReLUNetworkConstr, TighteningMode, nn_to_mip, propagate_bounds
from .neuralnet import Activation, DenseLayer, Network
from .registered_networks import as_network, register_network_convertor
from .solver_params import SolverParams

MIN_GRB_VERSION = 11
if gurobi.version()[0] < MIN_GRB_VERSION:
    raise ImportError(
        "Gurobi version should be at least {}.0.0".format(MIN_GRB_VERSION)
    )
